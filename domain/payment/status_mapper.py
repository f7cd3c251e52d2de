"""
渠道状态映射 - 将外部支付渠道的状态字符串映射为内部 PaymentStatus
"""
from __future__ import annotations

from typing import Optional

from .entity import PaymentStatus


# 渠道状态词表并非长期契约，未知值一律回落为 PENDING
_RAW_STATUS_TO_INTERNAL: dict[str, PaymentStatus] = {
    "paid": PaymentStatus.PAID,
    "completed": PaymentStatus.PAID,
    "success": PaymentStatus.PAID,
    "refunded": PaymentStatus.REFUNDED,
    "void": PaymentStatus.VOID,
    "cancelled": PaymentStatus.VOID,
    "canceled": PaymentStatus.VOID,
    "pending": PaymentStatus.PENDING,
}


def map_status(raw_status: Optional[str]) -> PaymentStatus:
    """映射渠道状态（大小写不敏感，全函数，不会抛出异常）"""
    if not raw_status:
        return PaymentStatus.PENDING
    return _RAW_STATUS_TO_INTERNAL.get(str(raw_status).strip().lower(), PaymentStatus.PENDING)
