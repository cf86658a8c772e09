"""
Rate Limiting for PetConnect API
================================
slowapi limiter with in-memory storage by default and Redis in production
(RATE_LIMIT_STORAGE_URI=redis://...).

Special endpoints have their own limits:
- /auth/register: 3 req/min
- /auth/login: 5 req/min (brute force protection)
- /auth/forgot-password: 5 req/min
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging_config import logger


def get_user_identifier(request: Request) -> str:
    """
    Rate limit key: authenticated user id when known, otherwise client IP.
    """
    user_id = getattr(request.state, 'user_id', None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_user_identifier,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """
    Return the standard error body with a Retry-After header.
    """
    retry_after = "60"

    logger.warning(
        f"[RateLimit] Exceeded for {get_user_identifier(request)}: {exc.detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": {
                "code": "RATE_LIMIT_EXCEEDED",
                "message": "Too many requests. Please slow down.",
                "details": {"limit": str(exc.detail), "retry_after_seconds": int(retry_after)},
            },
        },
        headers={"Retry-After": retry_after},
    )


def strict_rate_limit():
    """Very strict rate limit for account creation (3/min)"""
    return limiter.limit("3/minute", key_func=get_user_identifier)


def auth_rate_limit():
    """Rate limit for credential endpoints (5/min)"""
    return limiter.limit("5/minute", key_func=get_user_identifier)
