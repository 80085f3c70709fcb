"""Global exception handlers for consistent error responses.

Proxied results never reach these handlers: the core always returns a
status/body pair which routes write verbatim. These cover the edges:
- AppError subclasses → mapped status with a JSON error envelope
- Unknown route → 404 {"message": "Method not found"}
- Unexpected Exception → 500 {"message": "Internal server error"}, no
  internal detail leaked

The last two are router-level answers and carry a bare message body, not
the AppError envelope.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from feed_proxy.core.errors import (
    AppError,
    ConfigurationAppError,
    DispatcherNotRunningError,
)
from feed_proxy.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _error_body(code: str, message: str, **extra) -> dict:
    error = {"code": code, "message": message, "request_id": get_request_id()}
    error.update(extra)
    return {"error": error}


def _status_for(exc: AppError) -> int:
    if isinstance(exc, DispatcherNotRunningError):
        return 503
    if isinstance(exc, ConfigurationAppError):
        return 500
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    - DispatcherNotRunningError → 503 (proxy not started or shutting down)
    - ConfigurationAppError → 500
    - any other AppError → 400

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = _status_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
        },
    )

    extra = {"details": exc.details} if exc.details else {}
    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, **extra),
    )


async def not_found_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Answer unmatched routes (and explicit 404s raised by handlers)."""

    logger.info(
        "route_not_found",
        extra={"request_path": request.url.path, "request_method": request.method},
    )
    return JSONResponse(
        status_code=404,
        content={"message": "Method not found"},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the failure for debugging while returning a generic message, so
    no stack trace or exception text reaches the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={"message": "Internal server error"},
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(404)(not_found_handler)
    app.exception_handler(Exception)(general_exception_handler)
