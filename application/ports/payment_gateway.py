"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from application.dtos.payments import (
    CheckoutSession,
    CheckoutSessionRequest,
    ProviderOrder,
    WebhookEvent,
)


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for third-party payment providers.

    Implementations should be async and side-effect free beyond IO.
    """

    provider: str

    async def create_checkout(self, req: CheckoutSessionRequest) -> CheckoutSession: ...

    async def get_order(self, order_ref: str) -> ProviderOrder: ...

    def parse_webhook(self, headers: dict[str, Any], body: bytes) -> WebhookEvent: ...

    async def aclose(self) -> None: ...
