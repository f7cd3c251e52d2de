"""
LemonSqueezy client (httpx + tenacity).

Checkout creation and order lookup go through the JSON:API REST endpoints.
Webhooks are authenticated with an HMAC-SHA256 hex digest of the raw body
carried in the ``X-Signature`` header.
"""
from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from application.dtos.payments import (
    CheckoutSession,
    CheckoutSessionRequest,
    ProviderOrder,
    WebhookEvent,
)
from core.settings import payment_settings
from domain.payment.events import is_subscription_event, parse_event_name
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import (
    PaymentPayloadError,
    PaymentProviderError,
    PaymentSignatureError,
)


JSON_API = "application/vnd.api+json"


class LemonSqueezyClient(BasePaymentClient):
    provider = "lemonsqueezy"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        store_id: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        verify_signature: Optional[bool] = None,
        api_base: Optional[str] = None,
        redirect_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        cfg = payment_settings.lemonsqueezy
        super().__init__(
            base_url=api_base or cfg.api_base,
            timeouts=payment_settings.timeouts.model_dump(),
            retry={"max": payment_settings.retry.max, "base": payment_settings.retry.base_backoff},
            transport=transport,
        )
        self._api_key = api_key if api_key is not None else cfg.api_key
        self._store_id = store_id if store_id is not None else cfg.store_id
        self._webhook_secret = webhook_secret if webhook_secret is not None else cfg.webhook_secret
        self._verify_signature = (
            verify_signature if verify_signature is not None else payment_settings.webhook.verify_signature
        )
        self._redirect_url = redirect_url or cfg.redirect_url
        self._signature_header = payment_settings.webhook.signature_header.lower()
        self._event_header = payment_settings.webhook.event_header.lower()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": JSON_API,
            "Content-Type": JSON_API,
        }

    def _require_credentials(self) -> None:
        if not self._api_key or not self._store_id:
            raise PaymentProviderError(
                "LemonSqueezy API key or store id not configured",
                provider=self.provider,
                provider_code="CONFIG",
            )

    async def create_checkout(self, req: CheckoutSessionRequest) -> CheckoutSession:
        self._require_credentials()
        payload = {
            "data": {
                "type": "checkouts",
                "attributes": {
                    "product_options": {"redirect_url": self._redirect_url},
                    "checkout_data": {
                        "email": req.email,
                        "name": req.name,
                        "custom": {"correlation_id": req.correlation_id},
                    },
                    "test_mode": req.test_mode,
                    "preview": req.preview,
                },
                "relationships": {
                    "store": {"data": {"type": "stores", "id": str(self._store_id)}},
                    "variant": {"data": {"type": "variants", "id": req.variant_id}},
                },
            }
        }
        body = await self._request("POST", "/v1/checkouts", json=payload, headers=self._headers())
        data = body.get("data") or {}
        attrs = data.get("attributes") or {}
        if not data.get("id") or not attrs.get("url"):
            raise PaymentProviderError(
                "Malformed checkout response",
                provider=self.provider,
                provider_code="BAD_RESPONSE",
            )
        return CheckoutSession(
            checkout_id=str(data["id"]),
            checkout_url=attrs["url"],
            identifier=attrs.get("identifier"),
            provider=self.provider,
        )

    async def get_order(self, order_ref: str) -> ProviderOrder:
        self._require_credentials()
        # Numeric refs are provider order ids; anything else is a checkout id.
        is_order = order_ref.isdigit()
        path = f"/v1/orders/{order_ref}" if is_order else f"/v1/checkouts/{order_ref}"
        body = await self._request("GET", path, headers=self._headers())
        data = body.get("data") or {}
        attrs = data.get("attributes") or {}
        return ProviderOrder(
            order_ref=order_ref,
            status=attrs.get("status"),
            numeric_id=str(data["id"]) if is_order and data.get("id") is not None else None,
            identifier=attrs.get("identifier"),
            provider=self.provider,
        )

    def _check_signature(self, headers: dict[str, Any], body: bytes) -> None:
        if not self._webhook_secret:
            raise PaymentSignatureError(
                "Webhook secret not configured",
                provider=self.provider,
                reason="MISSING_SECRET",
            )
        signature = headers.get(self._signature_header)
        if not signature:
            raise PaymentSignatureError(
                "Missing webhook signature",
                provider=self.provider,
                reason="MISSING_SIGNATURE",
            )
        expected = hmac.new(self._webhook_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
        if not hmac.compare_digest(expected, str(signature).strip().lower()):
            raise PaymentSignatureError(
                "Invalid webhook signature",
                provider=self.provider,
                reason="INVALID_SIGNATURE",
            )

    def parse_webhook(self, headers: dict[str, Any], body: bytes) -> WebhookEvent:
        lowered = {str(k).lower(): v for k, v in headers.items()}
        if self._verify_signature:
            self._check_signature(lowered, body)

        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise PaymentPayloadError("Webhook body is not valid JSON", provider=self.provider) from exc
        if not isinstance(payload, dict):
            raise PaymentPayloadError("Webhook body must be a JSON object", provider=self.provider)

        meta = payload.get("meta") or {}
        data = payload.get("data") or {}
        if not isinstance(meta, dict) or not isinstance(data, dict):
            raise PaymentPayloadError("Webhook meta/data must be objects", provider=self.provider)

        event_name = meta.get("event_name") or lowered.get(self._event_header)
        if not event_name:
            raise PaymentPayloadError("Missing webhook event name", provider=self.provider)

        attrs = data.get("attributes") or {}
        if not isinstance(attrs, dict):
            raise PaymentPayloadError("Webhook data.attributes must be an object", provider=self.provider)

        numeric_id = self._scalar(data.get("id"), "data.id", allow_int=True)
        # Subscription payloads carry the subscription id in data.id
        if is_subscription_event(parse_event_name(str(event_name))) and attrs.get("order_id") is not None:
            numeric_id = self._scalar(attrs["order_id"], "attributes.order_id", allow_int=True)

        custom_data = meta.get("custom_data")
        try:
            return WebhookEvent(
                event_name=str(event_name).strip().lower(),
                numeric_id=numeric_id,
                identifier=self._scalar(attrs.get("identifier"), "attributes.identifier"),
                status=self._scalar(attrs.get("status"), "attributes.status"),
                custom_data=custom_data if isinstance(custom_data, dict) else {},
                test_mode=bool(meta.get("test_mode", False)),
                provider=self.provider,
                raw_headers=dict(headers),
                raw_body=body,
            )
        except ValidationError as exc:
            raise PaymentPayloadError("Webhook payload has invalid fields", provider=self.provider) from exc

    def _scalar(self, value: Any, field: str, *, allow_int: bool = False) -> Optional[str]:
        """Empty values become None; ids may arrive as JSON numbers, text fields may not."""
        if value is None or value == "":
            return None
        if isinstance(value, str):
            return value
        if allow_int and isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        raise PaymentPayloadError(f"Webhook field {field} has an invalid type", provider=self.provider)
