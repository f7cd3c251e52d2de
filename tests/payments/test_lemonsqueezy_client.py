import hashlib
import hmac
import json

import httpx
import pytest

from application.dtos.payments import CheckoutSessionRequest
from infrastructure.external.payments.exceptions import (
    PaymentPayloadError,
    PaymentProviderError,
    PaymentRecoverableError,
    PaymentSignatureError,
)
from infrastructure.external.payments.lemonsqueezy_client import LemonSqueezyClient


SECRET = "whsec-test"


def _client(handler=None, **kwargs) -> LemonSqueezyClient:
    transport = httpx.MockTransport(handler) if handler else None
    return LemonSqueezyClient(
        api_key="key",
        store_id="1234",
        webhook_secret=SECRET,
        api_base="https://api.test",
        redirect_url="https://app.test/payment/success",
        transport=transport,
        **kwargs,
    )


def _sign(body: bytes) -> str:
    return hmac.new(SECRET.encode(), body, hashlib.sha256).hexdigest()


def _checkout_req() -> CheckoutSessionRequest:
    return CheckoutSessionRequest(variant_id="42", email="ana@example.com", name="Ana", correlation_id="corr-1")


@pytest.mark.asyncio
async def test_create_checkout_sends_json_api_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"data": {"id": "chk_1", "attributes": {"url": "https://pay.test/chk_1"}}})

    client = _client(handler)
    session = await client.create_checkout(_checkout_req())
    await client.aclose()

    assert session.checkout_id == "chk_1"
    assert session.checkout_url == "https://pay.test/chk_1"
    assert seen["path"] == "/v1/checkouts"
    assert seen["auth"] == "Bearer key"
    attrs = seen["body"]["data"]["attributes"]
    assert attrs["checkout_data"]["custom"] == {"correlation_id": "corr-1"}
    assert attrs["product_options"]["redirect_url"] == "https://app.test/payment/success"
    rel = seen["body"]["data"]["relationships"]
    assert rel["store"]["data"]["id"] == "1234"
    assert rel["variant"]["data"]["id"] == "42"


@pytest.mark.asyncio
async def test_server_errors_are_retried_three_times():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        return httpx.Response(503, json={"errors": []})

    client = _client(handler)
    with pytest.raises(PaymentRecoverableError):
        await client.create_checkout(_checkout_req())
    await client.aclose()
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_server_error_then_success():
    responses = iter([
        httpx.Response(502),
        httpx.Response(200, json={"data": {"id": "77", "attributes": {"status": "paid", "identifier": "idf"}}}),
    ])

    client = _client(lambda request: next(responses))
    order = await client.get_order("77")
    await client.aclose()
    assert order.status == "paid"
    assert order.numeric_id == "77"


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        return httpx.Response(422, json={"errors": [{"detail": "bad variant"}]})

    client = _client(handler)
    with pytest.raises(PaymentProviderError) as exc_info:
        await client.create_checkout(_checkout_req())
    await client.aclose()
    assert len(attempts) == 1
    assert exc_info.value.provider_code == "422"


@pytest.mark.asyncio
async def test_network_errors_become_recoverable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    with pytest.raises(PaymentRecoverableError):
        await client.get_order("77")
    await client.aclose()


@pytest.mark.asyncio
async def test_get_order_routes_by_reference_shape():
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={"data": {"id": "x", "attributes": {}}})

    client = _client(handler)
    await client.get_order("9001")
    checkout = await client.get_order("7f1c-uuid")
    await client.aclose()
    assert paths == ["/v1/orders/9001", "/v1/checkouts/7f1c-uuid"]
    assert checkout.numeric_id is None
    assert checkout.status is None


def test_parse_webhook_order_event():
    body = json.dumps({
        "meta": {"event_name": "order_created", "custom_data": {"correlation_id": "corr-1"}, "test_mode": True},
        "data": {"id": 9001, "attributes": {"status": "paid", "identifier": "idf-1"}},
    }).encode()
    event = _client().parse_webhook({"X-Signature": _sign(body)}, body)
    assert event.event_name == "order_created"
    assert event.numeric_id == "9001"
    assert event.identifier == "idf-1"
    assert event.status == "paid"
    assert event.correlation_id == "corr-1"
    assert event.test_mode is True


def test_parse_webhook_subscription_uses_order_id():
    body = json.dumps({
        "meta": {},
        "data": {"id": "sub_5", "attributes": {"status": "active", "order_id": 9001}},
    }).encode()
    event = _client().parse_webhook({"x-signature": _sign(body), "X-Event-Name": "subscription_created"}, body)
    assert event.event_name == "subscription_created"
    assert event.numeric_id == "9001"


def test_parse_webhook_signature_errors():
    body = b'{"meta": {"event_name": "order_created"}, "data": {}}'
    client = _client()
    with pytest.raises(PaymentSignatureError) as missing:
        client.parse_webhook({}, body)
    assert missing.value.error_type == "MISSING_SIGNATURE"
    with pytest.raises(PaymentSignatureError) as invalid:
        client.parse_webhook({"X-Signature": _sign(b"other")}, body)
    assert invalid.value.error_type == "INVALID_SIGNATURE"


def test_parse_webhook_signature_check_can_be_disabled():
    body = b'{"meta": {"event_name": "order_refunded"}, "data": {"id": "1"}}'
    event = _client(verify_signature=False).parse_webhook({}, body)
    assert event.event_name == "order_refunded"


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        b"[]",
        b'{"meta": {}, "data": {}}',
        b'{"meta": "x", "data": {}}',
        b'{"meta": {"event_name": "order_created"}, "data": {"id": "1", "attributes": ["not", "an", "object"]}}',
        b'{"meta": {"event_name": "order_created"}, "data": {"id": "1", "attributes": {"status": 1}}}',
        b'{"meta": {"event_name": "order_created"}, "data": {"id": "1", "attributes": {"status": "paid", "identifier": 123}}}',
        b'{"meta": {"event_name": "order_created"}, "data": {"id": {"n": 1}, "attributes": {"status": "paid"}}}',
    ],
)
def test_parse_webhook_rejects_malformed_payloads(body):
    with pytest.raises(PaymentPayloadError):
        _client().parse_webhook({"X-Signature": _sign(body)}, body)
