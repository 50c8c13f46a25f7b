"""Rate limiting configuration using SlowAPI."""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from discount_scheduler.config import get_settings

# Create limiter with IP-based key function
limiter = Limiter(key_func=get_remote_address)


def schedule_limit() -> str:
    """Limit for the schedule endpoint, taken from settings."""
    return get_settings().schedule_rate_limit


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Custom handler for rate limit exceeded errors."""
    return JSONResponse(
        status_code=429,
        content={"error": "Too many requests. Please try again later."},
    )
