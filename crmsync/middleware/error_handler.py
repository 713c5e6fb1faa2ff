"""
Global Error Handler Middleware
Turns unhandled exceptions into JSON error responses
"""
import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from crmsync.core.exceptions import ConfigurationError, SyncError

logger = logging.getLogger(__name__)


def status_for(exc: Exception) -> int:
    """HTTP status for an exception escaping a route."""
    if isinstance(exc, ConfigurationError):
        return 503
    if isinstance(exc, SyncError):
        return 502
    return 500


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Catches exceptions escaping the routes.
    Sync errors keep their type name in the body; everything else is an opaque 500.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            status_code = status_for(exc)
            logger.error(
                f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
                exc_info=True
            )
            return JSONResponse(
                status_code=status_code,
                content={
                    "detail": str(exc) if isinstance(exc, SyncError) else "Internal server error",
                    "error_type": type(exc).__name__,
                    "path": request.url.path
                }
            )
