"""Pending-order index backends (in-memory, Redis)."""

from .inmemory import InMemoryPendingOrderIndex
from .redis import RedisPendingOrderIndex

__all__ = [
    "InMemoryPendingOrderIndex",
    "RedisPendingOrderIndex",
]
