import hashlib
import hmac
import json

import httpx
import pytest
import pytest_asyncio

from application.dtos.payments import CheckoutSession, ProviderOrder
from application.services.checkout_service import CheckoutService
from application.services.payment_status_service import PaymentStatusService
from application.services.reconciliation_service import WebhookReconciler
from application.services.token_service import TokenService
from domain.payment.entity import PaymentStatus
from infrastructure.cache import InMemoryRateLimiter, InMemoryThrottleGate
from infrastructure.external.payments.lemonsqueezy_client import LemonSqueezyClient
from infrastructure.pending_orders import InMemoryPendingOrderIndex
from main import create_app


SECRET = "whsec-test"


class StubGateway(LemonSqueezyClient):
    """Real webhook parsing, canned provider API responses."""

    def __init__(self):
        super().__init__(webhook_secret=SECRET, verify_signature=True)
        self.order_status = "paid"

    async def create_checkout(self, req):
        return CheckoutSession(
            checkout_id="ORD-1",
            checkout_url="https://pay.example/checkout/ORD-1",
            provider=self.provider,
        )

    async def get_order(self, order_ref):
        return ProviderOrder(order_ref=order_ref, status=self.order_status, numeric_id="9001", provider=self.provider)


@pytest_asyncio.fixture
async def app(uow_factory):
    application = create_app()
    gateway = StubGateway()
    index = InMemoryPendingOrderIndex(ttl_seconds=900)
    application.state.gateway = gateway
    application.state.pending_index = index
    application.state.rate_limiter = InMemoryRateLimiter(limit=3, window_seconds=60)
    application.state.status_service = PaymentStatusService(uow_factory, gateway, InMemoryThrottleGate())
    application.state.checkout_service = CheckoutService(uow_factory, gateway, index)
    application.state.reconciler = WebhookReconciler(uow_factory, gateway, index)
    application.state.token_service = TokenService(client_id="svc", client_secret="s3cret")
    yield application
    await index.aclose()


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def _token(client) -> dict:
    resp = await client.post("/auth/token", json={"clientId": "svc", "clientSecret": "s3cret"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['data']['token']}"}


def _webhook(event_name="order_created", status="paid", numeric_id="9001", custom=None):
    body = json.dumps({
        "meta": {"event_name": event_name, "custom_data": custom or {}},
        "data": {"id": numeric_id, "attributes": {"status": status}},
    }).encode()
    headers = {
        "Content-Type": "application/json",
        "X-Signature": hmac.new(SECRET.encode(), body, hashlib.sha256).hexdigest(),
    }
    return body, headers


CHECKOUT_BODY = {
    "variantId": "42",
    "customData": {
        "userEmail": "ana@example.com",
        "userName": "Ana",
        "frequency": "once",
        "duration": "30",
        "firstSlot": {"date": "2024-05-01T10:00"},
    },
}


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["data"] == {"status": "healthy"}


@pytest.mark.asyncio
async def test_checkout_webhook_status_flow(client):
    auth = await _token(client)

    resp = await client.post("/checkout", json=CHECKOUT_BODY, headers=auth)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["checkoutUrl"] == "https://pay.example/checkout/ORD-1"
    assert data["orderId"] == "ORD-1"
    assert data["expiresIn"] == 900

    status = await client.get("/payment-status", params={"orderId": "ORD-1"}, headers=auth)
    assert status.json()["data"]["status"] == "PENDING"

    body, headers = _webhook(custom={"correlation_id": data["correlationId"]})
    hook = await client.post("/webhook", content=body, headers=headers)
    assert hook.status_code == 200
    assert hook.json()["data"]["resolvedBy"] == "pending_index"

    status = await client.get("/payment-status", params={"orderId": "ORD-1"}, headers=auth)
    payload = status.json()["data"]
    assert payload["status"] == "PAID"
    assert payload["orderId"] == "ORD-1"
    assert payload["updatedAt"]


@pytest.mark.asyncio
async def test_protected_routes_require_token(client):
    assert (await client.post("/checkout", json=CHECKOUT_BODY)).status_code == 401
    resp = await client.get("/payment-status", params={"orderId": "ORD-1"}, headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_token_rejects_bad_credentials(client):
    resp = await client.post("/auth/token", json={"clientId": "svc", "clientSecret": "wrong"})
    assert resp.status_code == 401
    assert resp.json()["error"]["type"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_token_endpoint_is_rate_limited(client):
    codes = []
    for _ in range(4):
        resp = await client.post("/auth/token", json={"clientId": "svc", "clientSecret": "wrong"})
        codes.append(resp.status_code)
    assert codes == [401, 401, 401, 429]
    assert int(resp.headers["Retry-After"]) > 0


@pytest.mark.asyncio
async def test_status_not_found(client):
    auth = await _token(client)
    resp = await client.get("/payment-status", params={"orderId": "missing"}, headers=auth)
    assert resp.status_code == 404
    assert resp.json()["error"]["type"] == "STATUS_NOT_FOUND"


@pytest.mark.asyncio
async def test_checkout_validation_error(client):
    auth = await _token(client)
    bad = {**CHECKOUT_BODY, "customData": {**CHECKOUT_BODY["customData"], "userEmail": "not-an-email"}}
    resp = await client.post("/checkout", json=bad, headers=auth)
    assert resp.status_code == 422
    assert resp.json()["error"]["type"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_webhook_bad_signature_is_401(client):
    body, headers = _webhook()
    headers["X-Signature"] = "0" * 64
    resp = await client.post("/webhook", content=body, headers=headers)
    assert resp.status_code == 401
    assert resp.json()["error"]["type"] == "INVALID_SIGNATURE"
    assert "WWW-Authenticate" not in resp.headers


@pytest.mark.asyncio
async def test_webhook_malformed_body_is_400(client):
    body = b"{not json"
    headers = {"X-Signature": hmac.new(SECRET.encode(), body, hashlib.sha256).hexdigest()}
    resp = await client.post("/webhook", content=body, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["type"] == "INVALID_PAYLOAD"


@pytest.mark.asyncio
async def test_unmatched_webhook_is_still_acknowledged(client):
    body, headers = _webhook()
    resp = await client.post("/webhook", content=body, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["received"] is False
    assert resp.json()["data"]["reason"] == "order_not_found"


@pytest.mark.asyncio
async def test_verify_is_cache_gated(client, uow_factory):
    async with uow_factory() as uow:
        await uow.payment_status_repository.upsert_status("ORD-1", PaymentStatus.PENDING)
    auth = await _token(client)

    first = await client.get("/verify", params={"orderId": "ORD-1"}, headers=auth)
    second = await client.get("/verify", params={"orderId": "ORD-1"}, headers=auth)

    assert first.json()["data"]["source"] == "provider"
    assert first.json()["data"]["status"] == "PAID"
    assert second.json()["data"]["source"] == "cache"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "attributes",
    [{"status": "paid", "identifier": 123}, {"status": 1}, ["not", "an", "object"]],
)
async def test_webhook_with_mistyped_attributes_is_400(client, attributes):
    body = json.dumps({"meta": {"event_name": "order_created"}, "data": {"id": "9001", "attributes": attributes}}).encode()
    headers = {"X-Signature": hmac.new(SECRET.encode(), body, hashlib.sha256).hexdigest()}
    resp = await client.post("/webhook", content=body, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["type"] == "INVALID_PAYLOAD"
