from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass

from fastapi import Request
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from app.core.config import settings
from app.redis_client import get_redis

WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

_WINDOW_SECONDS = {
    "sec": 1,
    "second": 1,
    "seconds": 1,
    "min": 60,
    "minute": 60,
    "minutes": 60,
    "hour": 3600,
    "hours": 3600,
    "day": 86400,
    "days": 86400,
}


@dataclass(frozen=True)
class Rate:
    limit: int
    window_seconds: int


def parse_rate(rate: str) -> Rate:
    """Parse ``"<count>/<unit>"`` such as ``"60/minute"`` or ``"30/min"``."""
    count, sep, unit = rate.strip().lower().partition("/")
    if not sep:
        raise ValueError(f"Invalid rate format: {rate}")
    window = _WINDOW_SECONDS.get(unit.strip())
    if window is None:
        raise ValueError(f"Invalid rate window: {unit}")
    return Rate(limit=int(count), window_seconds=window)


def _identity(request: Request) -> str:
    # Per token, so users behind one NAT don't share a bucket
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer ") and len(auth) > len("Bearer "):
        return "tok:" + hashlib.sha256(auth.encode("utf-8")).hexdigest()[:16]
    return "ip:" + (request.client.host if request.client else "unknown")


def _limit_headers(rate: Rate, remaining: int, reset: int) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(rate.limit),
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": str(reset),
    }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window counters in Redis, one bucket for reads and a stricter one for writes."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if (
            not settings.rate_limit_enabled
            or request.method == "OPTIONS"
            or request.url.path in settings.rate_limit_exempt_paths
        ):
            return await call_next(request)

        is_write = request.method in WRITE_METHODS
        try:
            rate = parse_rate(settings.rate_limit_write if is_write else settings.rate_limit_default)
        except ValueError:
            return await call_next(request)

        now = int(time.time())
        window = now // rate.window_seconds
        key = f"rl:{_identity(request)}:{'w' if is_write else 'r'}:{rate.window_seconds}:{window}"
        try:
            redis = get_redis()
            count = int(redis.incr(key))
            if count == 1:
                redis.expire(key, rate.window_seconds)
        except RedisError:
            # Fail open
            return await call_next(request)

        reset = (window + 1) * rate.window_seconds
        if count > rate.limit:
            headers = _limit_headers(rate, 0, reset)
            headers["Retry-After"] = str(max(0, reset - now))
            return JSONResponse(
                status_code=429,
                content={"detail": {"code": "RATE_LIMITED", "message": "rate limit exceeded"}},
                headers=headers,
            )

        response = await call_next(request)
        for name, value in _limit_headers(rate, max(0, rate.limit - count), reset).items():
            response.headers.setdefault(name, value)
        return response
