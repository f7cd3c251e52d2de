"""Fixed-window request rate limiters."""
from __future__ import annotations

import asyncio
import math
import time
from typing import Callable, Dict, Tuple

from application.ports.throttling import RateLimitDecision, RateLimiter
from infrastructure.cache.redis_cache import RedisCache


class InMemoryRateLimiter(RateLimiter):
    """Process-local counters keyed by caller (usually client IP)."""

    def __init__(self, *, limit: int, window_seconds: int, clock: Callable[[], float] = time.monotonic) -> None:
        self._limit = limit
        self._window = window_seconds
        self._clock = clock
        # key -> (count, window reset time)
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = asyncio.Lock()

    async def hit(self, key: str) -> RateLimitDecision:  # type: ignore[override]
        now = self._clock()
        async with self._lock:
            for stale in [k for k, (_, reset) in self._windows.items() if reset <= now]:
                del self._windows[stale]
            count, reset_at = self._windows.get(key, (0, now + self._window))
            count += 1
            self._windows[key] = (count, reset_at)
        retry_after = max(1, math.ceil(reset_at - now))
        return RateLimitDecision(
            allowed=count <= self._limit,
            limit=self._limit,
            remaining=max(0, self._limit - count),
            retry_after=retry_after,
        )


class RedisRateLimiter(RateLimiter):
    """Counters shared by all instances through Redis INCR + EXPIRE."""

    def __init__(self, cache: RedisCache, *, limit: int, window_seconds: int, prefix: str = "rate-limit") -> None:
        self._cache = cache
        self._limit = limit
        self._window = window_seconds
        self._prefix = prefix

    async def hit(self, key: str) -> RateLimitDecision:  # type: ignore[override]
        redis_key = f"{self._prefix}:{key}"
        count = await self._cache.incr(redis_key, ttl=self._window)
        ttl = await self._cache.ttl(redis_key)
        return RateLimitDecision(
            allowed=count <= self._limit,
            limit=self._limit,
            remaining=max(0, self._limit - count),
            retry_after=ttl if ttl > 0 else self._window,
        )
