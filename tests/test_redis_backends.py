"""Redis-backed components against an in-process stand-in for RedisCache."""
import pytest

from infrastructure.cache import RedisRateLimiter, RedisThrottleGate
from infrastructure.pending_orders import RedisPendingOrderIndex


class FakeRedisCache:
    def __init__(self):
        self.data = {}
        self.ttls = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ttl=None, *, nx=False):
        if nx and key in self.data:
            return False
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    async def pop(self, key):
        self.ttls.pop(key, None)
        return self.data.pop(key, None)

    async def incr(self, key, amount=1, ttl=None):
        self.data[key] = self.data.get(key, 0) + amount
        if self.data[key] == amount:
            self.ttls[key] = ttl
        return self.data[key]

    async def ttl(self, key):
        return self.ttls.get(key) or -1


@pytest.mark.asyncio
async def test_redis_pending_index_round_trip():
    cache = FakeRedisCache()
    index = RedisPendingOrderIndex(cache, ttl_seconds=900)

    await index.put("corr-1", "ORD-1", ["2024-05-01T10:00"])
    assert cache.ttls["pending-order:corr-1"] == 900
    assert await index.get("corr-1") == "ORD-1"

    entry = await index.pop("corr-1")
    assert entry.order_id == "ORD-1"
    assert entry.time_slots == ["2024-05-01T10:00"]
    assert await index.get("corr-1") is None
    assert await index.pop("corr-1") is None


@pytest.mark.asyncio
async def test_redis_gate_uses_set_nx():
    gate = RedisThrottleGate(FakeRedisCache())
    assert await gate.try_acquire("ORD-1", 300) is True
    assert await gate.try_acquire("ORD-1", 300) is False


@pytest.mark.asyncio
async def test_redis_rate_limiter():
    limiter = RedisRateLimiter(FakeRedisCache(), limit=1, window_seconds=60)
    assert (await limiter.hit("ip")).allowed
    blocked = await limiter.hit("ip")
    assert not blocked.allowed
    assert blocked.retry_after == 60
