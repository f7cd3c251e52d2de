"""
支付状态领域实体 - 订单支付状态记录与待确认订单
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from enum import Enum

from domain.common.exceptions import DomainValidationException


class PaymentStatus(str, Enum):
    """支付状态枚举（唯一权威的内部状态集合）"""
    PENDING = "PENDING"      # 待支付
    PAID = "PAID"            # 已支付
    VOID = "VOID"            # 已作废/取消
    REFUNDED = "REFUNDED"    # 已退款
    TIMEOUT = "TIMEOUT"      # 本地超时（仅作为活性兜底，可被后续 webhook 覆盖）


# 已由支付渠道确认的状态，超时任务不得覆盖
PROVIDER_CONFIRMED_STATUSES = frozenset(
    {PaymentStatus.PAID, PaymentStatus.VOID, PaymentStatus.REFUNDED}
)


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class PaymentRecord:
    """
    订单支付状态记录 - 以 order_id 为键

    业务规则：
    1. 每个 order_id 只有一条记录，写入均为 upsert
    2. numeric_id / identifier_id / correlation_id 为次级标识，一旦已知不会被置空
    3. 任意状态都可以被后续 webhook 覆盖（渠道才是最终事实来源）
    """

    order_id: str
    status: PaymentStatus
    numeric_id: Optional[str] = None
    identifier_id: Optional[str] = None
    correlation_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: Optional[int] = None

    def __post_init__(self):
        """初始化后验证"""
        if not self.order_id or not str(self.order_id).strip():
            raise DomainValidationException("order_id 不能为空", field="order_id")
        if not isinstance(self.status, PaymentStatus):
            self.status = PaymentStatus(self.status)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    def is_unresolved(self) -> bool:
        """是否仍等待渠道确认（PENDING）"""
        return self.status == PaymentStatus.PENDING


@dataclass
class PendingOrderEntry:
    """
    待确认订单条目 - 仅存在于进程内存，不持久化

    time_slots 为预约上下文，原样透传，不参与状态判断。
    """

    order_id: str
    created_at: float
    time_slots: list[str] = field(default_factory=list)

    def is_expired(self, now: float, ttl_seconds: float) -> bool:
        return now - self.created_at >= ttl_seconds
