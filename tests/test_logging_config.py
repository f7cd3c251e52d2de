from api.middleware.logging import LoggingMiddleware
from core.logging_config import mask_email, redact_sensitive


def test_redact_sensitive_masks_secrets_and_emails():
    event = {
        "event": "payment_webhook_received",
        "X-Signature": "abc123",
        "client_secret": "s3cret",
        "user_email": "ana@example.com",
        "order_id": "ORD-1",
    }
    out = redact_sensitive(None, "info", event)
    assert out["X-Signature"] == "***"
    assert out["client_secret"] == "***"
    assert out["user_email"] == "a***@example.com"
    assert out["order_id"] == "ORD-1"


def test_mask_email_leaves_non_emails_alone():
    assert mask_email("not-an-email") == "not-an-email"
    assert mask_email(None) is None


def test_request_body_sanitizer_walks_nested_payloads():
    middleware = LoggingMiddleware(app=None)
    body = {"customData": {"userEmail": "ana@example.com", "userName": "Ana"}, "clientSecret": "x"}
    out = middleware._sanitize_data(body)
    assert out["clientSecret"] == "***"
    assert out["customData"] == {"userEmail": "a***@example.com", "userName": "Ana"}
