"""In-memory implementation of PendingOrderIndex.

Single-process only: entries and their timers live in this process and are
lost on restart. Construct once at startup and inject where needed.
"""
from __future__ import annotations

import asyncio
import time
from typing import Callable, Dict, Iterable, Optional

from application.ports.pending_orders import ExpiryHandler, PendingOrderIndex
from core.logging_config import get_logger
from domain.payment.entity import PendingOrderEntry


logger = get_logger(__name__)


class InMemoryPendingOrderIndex(PendingOrderIndex):
    def __init__(
        self,
        *,
        ttl_seconds: float,
        on_expire: Optional[ExpiryHandler] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = float(ttl_seconds)
        self._on_expire = on_expire
        self._clock = clock
        self._entries: Dict[str, PendingOrderEntry] = {}
        self._timers: Dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    async def put(self, key: str, order_id: str, time_slots: Optional[Iterable[str]] = None) -> PendingOrderEntry:  # type: ignore[override]
        entry = PendingOrderEntry(
            order_id=order_id,
            created_at=self._clock(),
            time_slots=list(time_slots or []),
        )
        async with self._lock:
            self._cancel_timer(key)
            self._entries[key] = entry
            self._timers[key] = asyncio.create_task(
                self._expire_later(key, entry), name=f"pending-order-expiry:{key}"
            )
        logger.info("pending_order_registered", key=key, order_id=order_id, ttl_seconds=self._ttl)
        return entry

    async def get(self, key: str) -> Optional[str]:  # type: ignore[override]
        async with self._lock:
            entry = self._entries.get(key)
        if entry is None or entry.is_expired(self._clock(), self._ttl):
            return None
        return entry.order_id

    async def pop(self, key: str) -> Optional[PendingOrderEntry]:  # type: ignore[override]
        async with self._lock:
            entry = self._entries.pop(key, None)
            self._cancel_timer(key)
        if entry is not None:
            logger.info("pending_order_consumed", key=key, order_id=entry.order_id)
        return entry

    async def aclose(self) -> None:  # type: ignore[override]
        async with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
            self._entries.clear()
        for task in timers:
            task.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)

    def _cancel_timer(self, key: str) -> None:
        task = self._timers.pop(key, None)
        if task is not None and not task.done():
            task.cancel()

    async def _expire_later(self, key: str, entry: PendingOrderEntry) -> None:
        await asyncio.sleep(self._ttl)
        async with self._lock:
            if self._entries.get(key) is not entry:
                return
            # Past this point a consuming webhook only removes the entry; the
            # TIMEOUT write and the webhook write race at the store.
            self._timers.pop(key, None)
        try:
            if self._on_expire is not None:
                await self._on_expire(key, entry)
        except Exception as exc:
            logger.error(
                "pending_order_expiry_failed",
                key=key,
                order_id=entry.order_id,
                error=str(exc),
                exc_info=True,
            )
        finally:
            async with self._lock:
                if self._entries.get(key) is entry:
                    del self._entries[key]
            logger.info("pending_order_evicted", key=key, order_id=entry.order_id)
