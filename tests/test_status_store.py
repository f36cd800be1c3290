"""Terminal status latch: first terminal observation wins."""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from framepay.common.state_machine import CanonicalStatus
from framepay.common.status_store import (
    InMemoryTerminalStatusStore,
    RedisTerminalStatusStore,
    StatusStoreUnavailable,
)


async def test_in_memory_latch_keeps_first_status():
    store = InMemoryTerminalStatusStore()

    assert await store.get("pay_1") is None
    assert await store.latch("pay_1", CanonicalStatus.APPROVED) == CanonicalStatus.APPROVED
    assert await store.latch("pay_1", CanonicalStatus.DECLINED) == CanonicalStatus.APPROVED
    assert await store.get("pay_1") == CanonicalStatus.APPROVED


async def test_in_memory_latch_expires_after_ttl():
    now = [0.0]
    store = InMemoryTerminalStatusStore(ttl_seconds=10, clock=lambda: now[0])
    await store.latch("pay_1", CanonicalStatus.EXPIRED)

    now[0] = 11.0
    assert await store.get("pay_1") is None


async def test_in_memory_latch_is_bounded():
    store = InMemoryTerminalStatusStore(max_entries=2)
    for index in range(3):
        await store.latch(f"pay_{index}", CanonicalStatus.APPROVED)

    assert await store.get("pay_0") is None
    assert await store.get("pay_2") == CanonicalStatus.APPROVED


async def test_redis_latch_uses_set_nx():
    rdb = AsyncMock()
    rdb.set.return_value = True
    store = RedisTerminalStatusStore(rdb, ttl_seconds=60)

    assert await store.latch("pay_1", CanonicalStatus.APPROVED) == CanonicalStatus.APPROVED
    rdb.set.assert_awaited_once_with("payment:terminal:pay_1", "approved", nx=True, ex=60)


async def test_redis_latch_returns_existing_winner():
    rdb = AsyncMock()
    rdb.set.return_value = None
    rdb.get.return_value = "declined"
    store = RedisTerminalStatusStore(rdb)

    assert await store.latch("pay_1", CanonicalStatus.APPROVED) == CanonicalStatus.DECLINED
    assert await store.get("pay_1") == CanonicalStatus.DECLINED


async def test_redis_outage_surfaces_as_status_store_unavailable():
    rdb = AsyncMock()
    rdb.get.side_effect = RedisConnectionError("redis down")
    rdb.set.side_effect = RedisConnectionError("redis down")
    store = RedisTerminalStatusStore(rdb)

    with pytest.raises(StatusStoreUnavailable):
        await store.get("pay_1")
    with pytest.raises(StatusStoreUnavailable):
        await store.latch("pay_1", CanonicalStatus.APPROVED)
