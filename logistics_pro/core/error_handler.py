"""
Error handling and sanitization

- LogisticsError subclasses → structured JSON with their own status code
- Store failures → generic message, full detail logged only
- Anything unhandled → generic 500 via ErrorSanitizationMiddleware
"""
import logging
import traceback

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from logistics_pro.core.config import settings
from logistics_pro.core.exceptions import LogisticsError, StoreFailureError

logger = logging.getLogger(__name__)

# Patterns that indicate internal/sensitive error information
SENSITIVE_PATTERNS = [
    "password",
    "secret",
    "token",
    "credential",
    "sqlalchemy",
    "asyncpg",
    "psycopg",
    "postgresql",
    "sqlite",
    "traceback",
    "file \"",
]

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


def is_sensitive_error(message: str) -> bool:
    """Check if error message contains sensitive information."""
    message_lower = message.lower()
    return any(pattern in message_lower for pattern in SENSITIVE_PATTERNS)


def sanitize_error_message(error: LogisticsError) -> str:
    """Return a message that is safe to send to the caller."""
    if isinstance(error, StoreFailureError):
        return StoreFailureError().message

    message = error.message
    if settings.DEBUG:
        return message

    # 4xx messages are authored here; only server-side ones can leak internals
    if error.status_code >= 500 and is_sensitive_error(message):
        return GENERIC_ERROR_MESSAGE

    if len(message) > 200:
        return message[:200] + "..."

    return message


async def logistics_error_handler(request: Request, exc: LogisticsError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
            exc_info=exc.__cause__ or exc,
        )
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")

    content = {
        "success": False,
        "error": exc.code,
        "message": sanitize_error_message(exc),
    }
    if exc.status_code < 500 and exc.details:
        content["details"] = exc.details

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LogisticsError, logistics_error_handler)


class ErrorSanitizationMiddleware(BaseHTTPMiddleware):
    """
    Catch unhandled exceptions and sanitize error responses.

    - In production: Returns generic error, logs full details
    - In development: Returns full error for debugging
    """

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except HTTPException:
            raise
        except Exception as e:
            error_id = f"{request.client.host if request.client else 'unknown'}-{id(e)}"
            logger.error(
                f"Unhandled exception [{error_id}]: {type(e).__name__}: {str(e)}\n"
                f"Path: {request.url.path}\n"
                f"Method: {request.method}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            content = {
                "success": False,
                "error": "internal_error",
                "message": GENERIC_ERROR_MESSAGE,
                "error_id": error_id,
            }
            if settings.DEBUG:
                content["message"] = str(e)
                content["type"] = type(e).__name__
            return JSONResponse(status_code=500, content=content)
