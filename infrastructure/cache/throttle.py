"""Verify gate implementations (one pass per key per TTL window)."""
from __future__ import annotations

import asyncio
import time
from typing import Callable, Dict

from application.ports.throttling import ThrottleGate
from infrastructure.cache.redis_cache import RedisCache


class InMemoryThrottleGate(ThrottleGate):
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._until: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    async def try_acquire(self, key: str, ttl_seconds: int) -> bool:  # type: ignore[override]
        now = self._clock()
        async with self._lock:
            # 顺带清理过期键，避免无界增长
            for stale in [k for k, until in self._until.items() if until <= now]:
                del self._until[stale]
            if key in self._until:
                return False
            self._until[key] = now + ttl_seconds
            return True


class RedisThrottleGate(ThrottleGate):
    def __init__(self, cache: RedisCache, prefix: str = "verify-gate") -> None:
        self._cache = cache
        self._prefix = prefix

    async def try_acquire(self, key: str, ttl_seconds: int) -> bool:  # type: ignore[override]
        return await self._cache.set(f"{self._prefix}:{key}", 1, ttl=ttl_seconds, nx=True)
