"""
支付状态仓储接口 - 定义支付状态数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List

from .entity import PaymentRecord, PaymentStatus


class PaymentStatusRepository(ABC):
    """支付状态仓储抽象接口 - 只定义能做什么，不管怎么做

    查询未命中返回 None；基础设施故障抛出 PaymentStoreError。
    """

    @abstractmethod
    async def get_by_order_id(self, order_id: str) -> Optional[PaymentRecord]:
        """根据订单ID获取支付状态"""
        pass

    @abstractmethod
    async def get_by_numeric_id(self, numeric_id: str) -> Optional[PaymentRecord]:
        """根据渠道数字订单ID获取支付状态"""
        pass

    @abstractmethod
    async def get_by_correlation_id(self, correlation_id: str) -> Optional[PaymentRecord]:
        """根据结账关联ID获取支付状态"""
        pass

    @abstractmethod
    async def upsert_status(
        self,
        order_id: str,
        status: PaymentStatus,
        *,
        numeric_id: Optional[str] = None,
        identifier_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> PaymentRecord:
        """不存在则创建，存在则更新状态与时间戳；未提供的次级标识保持原值"""
        pass

    @abstractmethod
    async def find_pending_without_numeric_id(self, limit: int = 5) -> List[PaymentRecord]:
        """获取尚无数字订单ID的 PENDING 记录，按创建时间倒序"""
        pass

    @abstractmethod
    async def list_stale_pending(self, created_before: datetime, limit: int = 100) -> List[PaymentRecord]:
        """获取创建时间早于指定时刻、仍为 PENDING 的记录"""
        pass

    @abstractmethod
    async def demote_pending(self, order_id: str, status: PaymentStatus) -> bool:
        """仅当记录仍为 PENDING 时改写状态（条件更新），返回是否命中"""
        pass
