"""
Request rate limits

Per-client limits on the unauthenticated surface: login/registration
(RATE_LIMIT_AUTH) and public tracking lookups (RATE_LIMIT_TRACKING).
Counters live in process memory; set RATE_LIMIT_ENABLED=false to turn
limiting off (tests do).
"""
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from logistics_pro.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the peer address."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    enabled=settings.RATE_LIMIT_ENABLED,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
)


def retry_after_seconds(exc: RateLimitExceeded) -> int:
    """Length of the exceeded limit's window."""
    try:
        return int(exc.limit.limit.get_expiry())
    except (AttributeError, TypeError, ValueError):
        return DEFAULT_RETRY_AFTER_SECONDS


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the same envelope as every other API error."""
    retry_after = retry_after_seconds(exc)
    logger.warning(
        f"Rate limit {exc.detail} exceeded by {get_client_ip(request)} on {request.url.path}"
    )
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "RATE_LIMITED",
            "message": f"Too many requests. Please try again in {retry_after} seconds.",
            "details": {"limit": exc.detail, "retry_after": retry_after},
        },
        headers={"Retry-After": str(retry_after)},
    )
