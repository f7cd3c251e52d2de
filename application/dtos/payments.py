"""
Payment DTOs (Pydantic v2) used at application boundaries.

Request/response bodies use camelCase on the wire; Python code uses
snake_case attribute names.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Literal
from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from domain.payment.entity import PaymentStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TimeSlot(BaseModel):
    date: str


class CustomerContext(CamelModel):
    user_email: EmailStr
    user_name: str
    frequency: Literal["once", "weekly", "twice-weekly"]
    duration: str
    first_slot: Optional[TimeSlot] = None
    second_slot: Optional[TimeSlot] = None

    @property
    def time_slots(self) -> list[str]:
        return [slot.date for slot in (self.first_slot, self.second_slot) if slot and slot.date]


class CheckoutRequest(CamelModel):
    variant_id: str
    custom_data: CustomerContext
    test_mode: bool = False
    preview: bool = False

    @field_validator("variant_id", mode="before")
    @classmethod
    def _coerce_variant_id(cls, v: Any) -> str:
        if isinstance(v, bool) or v is None:
            raise ValueError("variantId is required")
        s = str(v).strip()
        if not s:
            raise ValueError("variantId is required")
        return s


class CheckoutSessionRequest(BaseModel):
    """What the provider adapter needs to open a hosted checkout."""

    variant_id: str
    email: str
    name: str
    correlation_id: str
    test_mode: bool = False
    preview: bool = False


class CheckoutSession(BaseModel):
    checkout_id: str
    checkout_url: str
    identifier: Optional[str] = None
    provider: str


class CheckoutResult(CamelModel):
    checkout_url: str
    order_id: str
    expires_in: int
    correlation_id: str


class ProviderOrder(BaseModel):
    """Order/checkout state as reported by the provider API."""

    order_ref: str
    status: Optional[str] = None
    numeric_id: Optional[str] = None
    identifier: Optional[str] = None
    provider: str


class WebhookEvent(BaseModel):
    event_name: Optional[str] = None
    numeric_id: Optional[str] = None
    identifier: Optional[str] = None
    status: Optional[str] = None
    custom_data: dict[str, Any] = Field(default_factory=dict)
    test_mode: bool = False
    provider: str
    # raw fields for traceability (optional)
    raw_headers: Optional[dict[str, Any]] = None
    raw_body: Optional[bytes] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def correlation_id(self) -> Optional[str]:
        value = self.custom_data.get("correlation_id")
        return str(value) if value not in (None, "") else None


class ReconcileOutcome(CamelModel):
    received: bool
    processed: bool
    event_name: Optional[str] = None
    order_id: Optional[str] = None
    status: Optional[PaymentStatus] = None
    resolved_by: Optional[Literal["numeric_id", "pending_index", "correlation_id", "recent_pending"]] = None
    reason: Optional[str] = None


class PaymentStatusView(CamelModel):
    order_id: str
    status: PaymentStatus
    updated_at: Optional[datetime] = None


class VerifyResult(CamelModel):
    order_id: str
    status: PaymentStatus
    source: Literal["provider", "cache"]
    updated_at: Optional[datetime] = None


class TokenRequest(CamelModel):
    client_id: str
    client_secret: str


class TokenResponse(CamelModel):
    token: str
    token_type: str = "Bearer"
    expires_in: int
