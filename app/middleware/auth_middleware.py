from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ..exceptions import AccessTokenRequiredException


api_version = 'v1'


class CustomAuthMiddleWare(BaseHTTPMiddleware):
    """
    Custom authentication middleware for FastAPI applications.
    This middleware intercepts incoming HTTP requests and enforces authentication
    for protected routes. It allows unauthenticated access to the health checks and
    the API documentation. For all other routes, it checks for the presence of the
    "Authorization" header. If the header is missing, it returns a 401 Unauthorized response.

    Token verification itself happens in the ``AccessTokenBearer`` dependency.
    """

    async def dispatch(self, request: Request, call_next):
        # Always allow OPTIONS requests (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        path = request.url.path.rstrip("/")

        # Root path is exact-match only; an empty prefix would open every route
        if path == "":
            return await call_next(request)

        allowed_paths = [
            # Health endpoints
            "/health",
            "/favicon.ico",

            # Documentation endpoints
            "/openapi.json",
            f"/api/{api_version}/openapi.json",
            f"/api/{api_version}/docs",
            f"/api/{api_version}/redoc",
        ]

        if any(path == prefix or path.startswith(prefix + "/") for prefix in allowed_paths):
            return await call_next(request)

        if "Authorization" not in request.headers:
            error = AccessTokenRequiredException("Not authenticated! Please login again to proceed.")
            return JSONResponse(
                content={
                    "detail": error.detail,
                    "error_code": error.error_code,
                    "reason": error.reason,
                },
                status_code=401
            )

        return await call_next(request)
