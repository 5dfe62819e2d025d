from __future__ import annotations

import hashlib

from wooffy_api.core.settings import get_settings
from wooffy_api.services.rate_limit import SlidingWindowRateLimiter

_LIMITER: SlidingWindowRateLimiter | None = None


def get_assistant_rate_limiter() -> SlidingWindowRateLimiter:
    """Process-local limiter shared by every assistant request."""

    global _LIMITER
    if _LIMITER is None:
        settings = get_settings()
        _LIMITER = SlidingWindowRateLimiter(
            limit=settings.assistant_rate_limit_requests,
            window_seconds=settings.assistant_rate_limit_window_seconds,
            cleanup_interval_seconds=settings.assistant_rate_limit_cleanup_seconds,
        )
    return _LIMITER


def rate_limit_identifier(authorization: str | None, client_ip: str | None) -> str:
    """Key requests by a digest of the bearer token, else by client IP."""

    if authorization:
        token = authorization.removeprefix("Bearer ").strip()
        return f"auth:{hashlib.sha256(token.encode()).hexdigest()[:16]}"
    return f"ip:{client_ip or 'unknown'}"


__all__ = ["get_assistant_rate_limiter", "rate_limit_identifier"]
