from __future__ import annotations

import time
from dataclasses import dataclass
from functools import lru_cache

import redis.asyncio as redis

from marketplace.core.config import settings


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_seconds: int


class FixedWindowRateLimiter:
    """Counts requests per key in fixed windows kept in Redis."""

    def __init__(self, client: redis.Redis):
        self._redis = client

    async def allow(self, *, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        now = int(time.time())
        bucket = f"rl:{key}:{now // window_seconds}"

        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.incr(bucket)
            pipe.expire(bucket, window_seconds, nx=True)
            used, _ = await pipe.execute()

        return RateLimitResult(
            allowed=used <= limit,
            remaining=max(0, limit - used),
            reset_seconds=window_seconds - now % window_seconds,
        )


@lru_cache(maxsize=1)
def get_rate_limiter() -> FixedWindowRateLimiter:
    # from_url does not connect until the first command
    return FixedWindowRateLimiter(redis.from_url(settings.redis_url, decode_responses=True))
