"""
Rate Limiting for School Ledger API
===================================
slowapi limiter with in-process memory storage.

Only the login endpoint is limited (LOGIN_RATE_LIMIT, default 10/minute)
as brute force protection. Set RATE_LIMIT_ENABLED=false to turn it off.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from school_ledger.core.config import settings
from school_ledger.core.logging_config import logger


def get_client_identifier(request: Request) -> str:
    """Rate limit key: authenticated user if known, else client IP"""
    user_id = getattr(request.state, 'user_id', None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_client_identifier,
    storage_uri="memory://",
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Render a 429 in the standard envelope with a Retry-After header"""
    logger.warning(
        f"[RateLimit] Exceeded for {get_client_identifier(request)}: {exc.detail}",
        extra={"event_type": "rate_limit", "http_path": request.url.path}
    )

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "message": "Too many requests. Please slow down.",
            "details": {"limit": str(exc.detail)},
        },
        headers={"Retry-After": "60"},
    )


def login_rate_limit():
    """Decorator applying LOGIN_RATE_LIMIT to the login endpoint"""
    return limiter.limit(settings.LOGIN_RATE_LIMIT)
