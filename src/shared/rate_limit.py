"""Per-IP request throttling (slowapi)."""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from src.config.settings import settings
from src.shared.result import ErrorCode
from src.shared.schemas import ApiResponse, envelope

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)


async def rate_limit_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle rate limit exceeded errors."""
    detail = exc.detail if isinstance(exc, RateLimitExceeded) else "Rate limit exceeded"
    return envelope(
        ApiResponse.failure(f"Too many requests: {detail}", ErrorCode.RATE_LIMIT_EXCEEDED),
        status_code=429,
    )
