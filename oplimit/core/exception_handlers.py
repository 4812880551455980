"""Global exception handlers for consistent error responses.

Design:
- AppError subclasses map to HTTP status codes (400, 403, 500, 503)
- Store failures never leak bucket keys or backend messages to clients
- Unexpected Exception falls back to a generic 500
- All responses include request_id for tracing
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from oplimit.core.errors import (
    AppError,
    AuthenticationAppError,
    ConfigurationError,
    StoreAccessError,
)
from oplimit.core.logging import get_request_id

logger = logging.getLogger(__name__)

STORE_UNAVAILABLE_MESSAGE = "Rate limit state is temporarily unavailable. Try again later."


def _status_for(exc: AppError) -> int:
    if isinstance(exc, AuthenticationAppError):
        return 403
    if isinstance(exc, StoreAccessError):
        return 503
    if isinstance(exc, ConfigurationError):
        return 500
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    - ValidationAppError → 400 Bad Request
    - AuthenticationAppError → 403 Forbidden
    - ConfigurationError → 500 Internal Server Error (misconfigured limiter)
    - StoreAccessError → 503 Service Unavailable (decision unavailable)

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
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    if isinstance(exc, StoreAccessError):
        error_content = {
            "code": exc.code,
            "message": STORE_UNAVAILABLE_MESSAGE,
            "request_id": get_request_id(),
        }
        return JSONResponse(
            status_code=status_code,
            content={"error": error_content},
            headers={"Retry-After": "1"},
        )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the error type and route, returns a generic message without stack
    traces or exception text.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
