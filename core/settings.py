"""
Payment-related settings using pydantic-settings v2 with nested env keys.

All keys live under the ``PAYMENT__`` prefix, e.g.
``PAYMENT__LEMONSQUEEZY__API_KEY`` or ``PAYMENT__PENDING__TTL_SECONDS``.
"""
from __future__ import annotations

from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymentTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 3.0
    write: float = 3.0
    total: float = 5.0


class PaymentRetry(BaseModel):
    # Retries after the first attempt: 2 -> at most 3 provider calls
    max: int = 2
    base_backoff: float = 0.2


class LemonSqueezySettings(BaseModel):
    api_key: Optional[str] = None
    store_id: Optional[str] = None
    webhook_secret: Optional[str] = None
    api_base: str = "https://api.lemonsqueezy.com"
    app_url: str = "http://localhost:3000"

    @property
    def redirect_url(self) -> str:
        return f"{self.app_url.rstrip('/')}/payment/success"


class WebhookSettings(BaseModel):
    verify_signature: bool = True
    signature_header: str = "X-Signature"
    event_header: str = "X-Event-Name"
    # Upper bound for a single parse/lookup/write stage, and for the whole path
    stage_timeout: float = 2.0
    total_budget: float = 5.0
    recent_pending_limit: int = 5


class PendingOrderSettings(BaseModel):
    ttl_seconds: float = 15 * 60
    backend: Literal["memory", "redis"] = "memory"


class VerifySettings(BaseModel):
    cache_seconds: int = 5 * 60


class RateLimitSettings(BaseModel):
    enabled: bool = True
    limit: int = 20
    window_seconds: int = 60


class PaymentSettings(BaseSettings):
    lemonsqueezy: LemonSqueezySettings = Field(default_factory=LemonSqueezySettings)
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    pending: PendingOrderSettings = Field(default_factory=PendingOrderSettings)
    verify: VerifySettings = Field(default_factory=VerifySettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PAYMENT__",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
