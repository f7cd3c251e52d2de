"""Redis-backed PendingOrderIndex for multi-instance deployments.

Entries are stored with ``SET ... EX ttl`` so every instance sees the same
index. Redis offers no expiry callback, so TIMEOUT demotion for this backend
is done by the ``payments.expire_stale_pending`` periodic task.
"""
from __future__ import annotations

import math
import time
from typing import Iterable, Optional

from application.ports.pending_orders import PendingOrderIndex
from core.logging_config import get_logger
from domain.payment.entity import PendingOrderEntry
from infrastructure.cache.redis_cache import RedisCache


logger = get_logger(__name__)


class RedisPendingOrderIndex(PendingOrderIndex):
    def __init__(self, cache: RedisCache, *, ttl_seconds: float, prefix: str = "pending-order") -> None:
        self._cache = cache
        self._ttl = float(ttl_seconds)
        self._prefix = prefix

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def put(self, key: str, order_id: str, time_slots: Optional[Iterable[str]] = None) -> PendingOrderEntry:  # type: ignore[override]
        entry = PendingOrderEntry(order_id=order_id, created_at=time.time(), time_slots=list(time_slots or []))
        await self._cache.set(
            self._key(key),
            {"order_id": entry.order_id, "created_at": entry.created_at, "time_slots": entry.time_slots},
            ttl=max(1, math.ceil(self._ttl)),
        )
        logger.info("pending_order_registered", key=key, order_id=order_id, ttl_seconds=self._ttl, backend="redis")
        return entry

    async def get(self, key: str) -> Optional[str]:  # type: ignore[override]
        data = await self._cache.get(self._key(key))
        if not data:
            return None
        return data.get("order_id")

    async def pop(self, key: str) -> Optional[PendingOrderEntry]:  # type: ignore[override]
        data = await self._cache.pop(self._key(key))
        if not data:
            return None
        logger.info("pending_order_consumed", key=key, order_id=data.get("order_id"), backend="redis")
        return PendingOrderEntry(
            order_id=data["order_id"],
            created_at=float(data.get("created_at") or 0.0),
            time_slots=list(data.get("time_slots") or []),
        )

    async def aclose(self) -> None:  # type: ignore[override]
        # The shared Redis client is closed by the application lifespan.
        return None
