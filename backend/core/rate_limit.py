# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Fixed-window API rate limiter.

Clients are keyed ``user:<id>`` when a session has been validated for the
request and ``ip:<address>`` otherwise.  The request budget per window is
the ``api_rate_limit`` system setting, read on every request; the window
length comes from process config.

Counters live in Redis (``REDIS_URL``), one key per client and window,
so every uvicorn worker draws from the same budget.
"""

import math
from dataclasses import dataclass
from typing import Optional

from redis.asyncio import Redis

from core.config import settings

DEFAULT_API_RATE_LIMIT = 100

KEY_PREFIX = "rate_limit"

# Not counted against any budget
SKIP_PATHS = ("/health",)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float          # epoch seconds when the current window ends


def rate_limit_key(user_id: Optional[int], client_ip: str) -> str:
    return f"user:{user_id}" if user_id is not None else f"ip:{client_ip}"


class FixedWindowRateLimiter:
    def __init__(self, redis: Redis):
        self.redis = redis

    async def hit(self, key: str, limit: int, window_seconds: int, now: float) -> RateLimitDecision:
        """Count one request for ``key`` and decide whether it is within ``limit``."""
        window_start = math.floor(now / window_seconds) * window_seconds
        counter = f"{KEY_PREFIX}:{key}:{int(window_start)}"

        # INCR and EXPIRE in one MULTI so a counter never outlives its window
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.incr(counter)
            pipe.expire(counter, window_seconds)
            count, _ = await pipe.execute()

        return RateLimitDecision(
            allowed=count <= limit,
            limit=limit,
            remaining=max(limit - count, 0),
            reset_at=window_start + window_seconds,
        )

    async def close(self) -> None:
        await self.redis.aclose()


rate_limiter = FixedWindowRateLimiter(Redis.from_url(settings.redis_url))
