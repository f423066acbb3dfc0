import logging
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


CORRELATION_ID_HEADER = "X-Correlation-ID"

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")

logger = logging.getLogger(__name__)


class CorrelationIdFilter(logging.Filter):
    """ Stamps every log record with the correlation id of the request being served. """

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        return True


def _caller_id(request: Request) -> str:
    # Identity is only used for the log line here; the token is verified by AccessTokenBearer.
    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return "anonymous"
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return "anonymous"
    return str(claims.get("sub", "anonymous"))


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Binds a correlation id to each request and logs its start, completion and failure.

    The id is taken from the ``X-Correlation-ID`` request header when the caller
    supplies one, otherwise a new uuid4 is generated. It is echoed back on the response.
    Request bodies are never logged.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id: Optional[str] = request.headers.get(CORRELATION_ID_HEADER) or str(uuid.uuid4())
        token = correlation_id_var.set(correlation_id)

        user_id = _caller_id(request)
        started = time.perf_counter()
        logger.info("Request started: %s %s user=%s", request.method, request.url.path, user_id)

        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.exception(
                "Request failed: %s %s user=%s duration=%.1fms",
                request.method, request.url.path, user_id, elapsed_ms,
            )
            raise
        else:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                "Request completed: %s %s user=%s status=%s duration=%.1fms",
                request.method, request.url.path, user_id, response.status_code, elapsed_ms,
            )
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            correlation_id_var.reset(token)
