"""Per-provider outbound rate limiting.

Fixed one-minute windows. Each call performs exactly one atomic increment of
its window counter and decides from the returned value; there is no
read-then-write across an await.
"""

import time
from collections.abc import Callable
from typing import Protocol

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from framepay.common.errors import ProviderUnavailable, RateLimited


class RateLimiter(Protocol):
    async def hit(self, key: str) -> None: ...


class NoopRateLimiter:
    async def hit(self, key: str) -> None:
        return None


class InMemoryRateLimiter:
    """Process-local window counters keyed by provider name."""

    def __init__(self, limit_per_minute: int, clock: Callable[[], float] = time.time) -> None:
        self.limit_per_minute = limit_per_minute
        self._clock = clock
        self._counts: dict[tuple[str, int], int] = {}

    async def hit(self, key: str) -> None:
        window = int(self._clock() // 60)
        bucket = (key, window)
        count = self._counts[bucket] = self._counts.get(bucket, 0) + 1
        for stale in [b for b in self._counts if b[1] < window]:
            del self._counts[stale]
        if count > self.limit_per_minute:
            raise RateLimited(f"outbound rate limit exceeded for {key}", provider=key)


class RedisRateLimiter:
    """Window counters shared by every process pointing at the same Redis."""

    def __init__(
        self,
        rdb: aioredis.Redis,
        limit_per_minute: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.rdb = rdb
        self.limit_per_minute = limit_per_minute
        self._clock = clock

    async def hit(self, key: str) -> None:
        window = int(self._clock() // 60)
        redis_key = f"ratelimit:provider:{key}:{window}"
        try:
            count = await self.rdb.incr(redis_key)
            if count == 1:
                await self.rdb.expire(redis_key, 120)
        except RedisError as exc:
            raise ProviderUnavailable(f"rate limiter unavailable for {key}: {exc}", provider=key) from exc
        if count > self.limit_per_minute:
            raise RateLimited(f"outbound rate limit exceeded for {key}", provider=key)


def build_rate_limiter(limit_per_minute: int, rdb: aioredis.Redis | None = None) -> RateLimiter:
    if limit_per_minute <= 0:
        return NoopRateLimiter()
    if rdb is not None:
        return RedisRateLimiter(rdb, limit_per_minute)
    return InMemoryRateLimiter(limit_per_minute)
