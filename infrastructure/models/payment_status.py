"""
支付状态数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import Column, Integer, String, DateTime, Index
from datetime import datetime, timezone

from .base import Base


class PaymentStatusModel(Base):
    """
    支付状态数据库模型（payments_status 表）

    这是数据库表的映射，不包含业务逻辑
    所有业务规则都在 domain.payment.entity.PaymentRecord 中
    """
    __tablename__ = "payments_status"

    # 主键
    id = Column(Integer, primary_key=True, autoincrement=True)

    # 内部订单ID（upsert 冲突键）
    order_id = Column(String(100), unique=True, nullable=False, comment="订单ID")

    # 状态
    status = Column(
        String(20),
        nullable=False,
        default="PENDING",
        comment="支付状态: PENDING/PAID/VOID/REFUNDED/TIMEOUT"
    )

    # 渠道分配的次级标识
    numeric_id = Column(String(64), nullable=True, index=True, comment="渠道数字订单ID")
    identifier_id = Column(String(100), nullable=True, index=True, comment="渠道结账标识")
    correlation_id = Column(String(64), nullable=True, index=True, comment="结账关联ID（回传于 custom_data）")

    # 时间戳
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    # 索引
    __table_args__ = (
        Index("ix_payments_status_status_created_at", "status", "created_at"),
    )

    def __repr__(self):
        return (
            f"<PaymentStatusModel(order_id='{self.order_id}', status='{self.status}', "
            f"numeric_id={self.numeric_id!r}, identifier_id={self.identifier_id!r})>"
        )
