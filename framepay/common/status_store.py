"""Terminal status latch.

Once a payment is observed in a terminal status the first observation wins and
is kept for `ttl_seconds`. Latching is a single atomic set-if-absent; the
stored value is then read back so concurrent pollers agree on the winner.
"""

import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Protocol

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from framepay.common.errors import ProviderUnavailable
from framepay.common.state_machine import CanonicalStatus


class StatusStoreUnavailable(ProviderUnavailable):
    pass


class TerminalStatusStore(Protocol):
    async def get(self, payment_id: str) -> CanonicalStatus | None: ...

    async def latch(self, payment_id: str, status: CanonicalStatus) -> CanonicalStatus: ...


class InMemoryTerminalStatusStore:
    """Bounded, TTL-expiring latch for single-process deployments and tests."""

    def __init__(
        self,
        ttl_seconds: float = 86400,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[CanonicalStatus, float]] = OrderedDict()

    def _evict(self) -> None:
        now = self._clock()
        while self._entries:
            key, (_, expires_at) = next(iter(self._entries.items()))
            if expires_at > now and len(self._entries) <= self.max_entries:
                break
            del self._entries[key]

    async def get(self, payment_id: str) -> CanonicalStatus | None:
        self._evict()
        entry = self._entries.get(payment_id)
        return entry[0] if entry else None

    async def latch(self, payment_id: str, status: CanonicalStatus) -> CanonicalStatus:
        self._evict()
        entry = self._entries.setdefault(payment_id, (status, self._clock() + self.ttl_seconds))
        return entry[0]


class RedisTerminalStatusStore:
    """Latch shared across processes through Redis `SET NX EX`.

    Redis failures surface as `StatusStoreUnavailable`.
    """

    def __init__(self, rdb: aioredis.Redis, ttl_seconds: int = 86400) -> None:
        self.rdb = rdb
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(payment_id: str) -> str:
        return f"payment:terminal:{payment_id}"

    async def get(self, payment_id: str) -> CanonicalStatus | None:
        try:
            value = await self.rdb.get(self._key(payment_id))
        except RedisError as exc:
            raise StatusStoreUnavailable(f"terminal status read failed: {exc}") from exc
        return CanonicalStatus(value) if value else None

    async def latch(self, payment_id: str, status: CanonicalStatus) -> CanonicalStatus:
        key = self._key(payment_id)
        try:
            if await self.rdb.set(key, status.value, nx=True, ex=self.ttl_seconds):
                return status
            value = await self.rdb.get(key)
        except RedisError as exc:
            raise StatusStoreUnavailable(f"terminal status write failed: {exc}") from exc
        return CanonicalStatus(value) if value else status
