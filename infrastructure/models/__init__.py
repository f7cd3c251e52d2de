"""Infrastructure models package exports."""
from .base import Base, metadata
from .payment_status import PaymentStatusModel

__all__ = [
    "Base",
    "metadata",
    "PaymentStatusModel",
]
