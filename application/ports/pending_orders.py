"""
Pending-order index port.

Holds provisional orders between checkout and the confirming webhook.
Entries expire after a TTL; what happens on expiry is supplied by the
application as an ``ExpiryHandler``.
"""
from __future__ import annotations

from typing import Awaitable, Callable, Iterable, Optional, Protocol

from domain.payment.entity import PendingOrderEntry


ExpiryHandler = Callable[[str, PendingOrderEntry], Awaitable[None]]


class PendingOrderIndex(Protocol):
    """Short-lived map: correlation key -> pending order."""

    @property
    def ttl_seconds(self) -> float: ...

    async def put(self, key: str, order_id: str, time_slots: Optional[Iterable[str]] = None) -> PendingOrderEntry:
        """Register an order, (re)starting its TTL."""
        ...

    async def get(self, key: str) -> Optional[str]:
        """Return the order id for ``key`` unless absent or expired."""
        ...

    async def pop(self, key: str) -> Optional[PendingOrderEntry]:
        """Consume the entry and cancel its expiry."""
        ...

    async def aclose(self) -> None: ...


__all__ = ["ExpiryHandler", "PendingOrderIndex"]
