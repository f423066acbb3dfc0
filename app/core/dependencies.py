from fastapi import Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, AsyncGenerator, List, Optional

from ..enums import UserRole
from ..exceptions import InvalidTokenException, PermissionRequiredException
from ..core.token_bearer import AccessTokenBearer
from ..db.database import AsyncSessionLocal


class CurrentUser(BaseModel):
    """ Authenticated caller identity, as asserted by the access token. """
    id: str
    email: Optional[str] = None
    role: UserRole = UserRole.CUSTOMER


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Asynchronous dependency that provides a database session for FastAPI routes.

    Yields:
        AsyncSession: An instance of the asynchronous database session.

    Usage:
        Use as a dependency in FastAPI endpoints to access the database session.
        The session is automatically closed after the request is processed.
    """

    async with AsyncSessionLocal() as db:
        yield db


async def get_current_user(token: dict = Depends(AccessTokenBearer())) -> CurrentUser:
    """
    Build the caller identity from the verified access token claims.

    Raises:
        InvalidTokenException: If the token carries an unknown role.
    """

    try:
        role = UserRole(str(token.get("role", UserRole.CUSTOMER.value)).upper())
    except ValueError:
        raise InvalidTokenException()

    return CurrentUser(id=str(token["sub"]), email=token.get("email"), role=role)


class RoleChecker:
    """
    Dependency class for FastAPI route protection using Role Based Access Control (RBAC).

    Args:
        allowed_roles (List[UserRole]): A list of roles that are allowed to access the endpoint.
    """

    def __init__(self, allowed_roles: List[UserRole]):
        self.allowed_roles = allowed_roles


    async def __call__(self, current_user: CurrentUser = Depends(get_current_user)) -> Any:
        if current_user.role in self.allowed_roles:
            return True

        raise PermissionRequiredException()
