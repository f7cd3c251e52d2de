"""
Throttling ports: the verify gate and the request rate limiter.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class ThrottleGate(Protocol):
    """At most one pass per key per TTL window."""

    async def try_acquire(self, key: str, ttl_seconds: int) -> bool: ...


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int


class RateLimiter(Protocol):
    """Fixed-window request counter."""

    async def hit(self, key: str) -> RateLimitDecision: ...


__all__ = ["ThrottleGate", "RateLimitDecision", "RateLimiter"]
