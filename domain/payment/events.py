"""
支付渠道 webhook 事件词表

只有代表订单/订阅状态变化的事件会驱动状态写入，其余已知事件仅确认收到。
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class WebhookEventName(str, Enum):
    """渠道推送的事件名"""
    ORDER_CREATED = "order_created"
    ORDER_REFUNDED = "order_refunded"
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    SUBSCRIPTION_RESUMED = "subscription_resumed"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    SUBSCRIPTION_PAUSED = "subscription_paused"
    SUBSCRIPTION_UNPAUSED = "subscription_unpaused"
    SUBSCRIPTION_PAYMENT_FAILED = "subscription_payment_failed"
    SUBSCRIPTION_PAYMENT_SUCCESS = "subscription_payment_success"
    LICENSE_KEY_CREATED = "license_key_created"
    LICENSE_KEY_UPDATED = "license_key_updated"


STATUS_CHANGE_EVENTS = frozenset(
    name for name in WebhookEventName if not name.value.startswith("license_key_")
)


def parse_event_name(raw: Optional[str]) -> Optional[WebhookEventName]:
    """解析事件名，未知事件返回 None"""
    if not raw:
        return None
    try:
        return WebhookEventName(raw.strip().lower())
    except ValueError:
        return None


def is_status_change(name: Optional[WebhookEventName]) -> bool:
    return name in STATUS_CHANGE_EVENTS


def is_subscription_event(name: Optional[WebhookEventName]) -> bool:
    return name is not None and name.value.startswith("subscription_")
