from typing import Optional

from fastapi import Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from .config import Config
from ..exceptions import AccessTokenRequiredException, InvalidTokenException


class AccessTokenBearer(HTTPBearer):
    """
    Extracts the bearer token from the Authorization header and verifies it.

    Tokens are issued by an external identity provider; this service only checks the
    signature and expiry and hands the claims (``sub``, ``email``, ``role``) to the
    route dependencies.
    """

    def __init__(self, auto_error: bool = False):
        super().__init__(auto_error=auto_error)


    async def __call__(self, request: Request) -> dict:
        credentials: Optional[HTTPAuthorizationCredentials] = await super().__call__(request)

        if credentials is None:
            raise AccessTokenRequiredException()

        token_data = self.decode_token(credentials.credentials)

        if not token_data.get("sub"):
            raise InvalidTokenException()

        return token_data


    @staticmethod
    def decode_token(token: str) -> dict:
        try:
            return jwt.decode(token, Config.JWT_SECRET, algorithms=[Config.JWT_ALGORITHM])
        except JWTError:
            raise InvalidTokenException()
