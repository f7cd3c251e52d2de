"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from typing import Optional

from application.ports.payment_gateway import PaymentGateway


def get_payment_gateway(provider: Optional[str] = None) -> PaymentGateway:
    name = (provider or "lemonsqueezy").lower()
    if name in {"lemonsqueezy", "lemon", "ls"}:
        from .lemonsqueezy_client import LemonSqueezyClient
        return LemonSqueezyClient()
    raise ValueError(f"Unsupported payment provider: {name}")
