"""
支付状态仓储实现 - 使用SQLAlchemy实现数据访问
"""
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional, List

from sqlalchemy import select, func, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.exceptions import PaymentStoreError
from domain.payment.entity import PaymentRecord, PaymentStatus
from domain.payment.repository import PaymentStatusRepository
from infrastructure.models.payment_status import PaymentStatusModel
from core.logging_config import get_logger


logger = get_logger(__name__)

# 支持 INSERT ... ON CONFLICT DO UPDATE 的方言
_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class SQLAlchemyPaymentStatusRepository(PaymentStatusRepository):
    """支付状态仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentStatusModel) -> PaymentRecord:
        """将数据库模型转换为领域实体"""
        return PaymentRecord(
            id=model.id,
            order_id=model.order_id,
            status=PaymentStatus(model.status),
            numeric_id=model.numeric_id,
            identifier_id=model.identifier_id,
            correlation_id=model.correlation_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @contextmanager
    def _store_errors(self, operation: str, order_id: Optional[str] = None):
        """把 SQLAlchemy 异常统一转换为 PaymentStoreError"""
        try:
            yield
        except SQLAlchemyError as exc:
            logger.error(
                "payment_store_error",
                operation=operation,
                order_id=order_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise PaymentStoreError(str(exc), operation=operation, order_id=order_id) from exc

    async def _load(self, order_id: str) -> Optional[PaymentStatusModel]:
        result = await self.session.execute(
            select(PaymentStatusModel)
            .where(PaymentStatusModel.order_id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_order_id(self, order_id: str) -> Optional[PaymentRecord]:
        """根据订单ID获取支付状态"""
        with self._store_errors("get_by_order_id", order_id):
            model = await self._load(order_id)
        return self._to_entity(model) if model else None

    async def get_by_numeric_id(self, numeric_id: str) -> Optional[PaymentRecord]:
        """根据渠道数字订单ID获取支付状态（重复时取最近更新的一条）"""
        with self._store_errors("get_by_numeric_id"):
            result = await self.session.execute(
                select(PaymentStatusModel)
                .where(PaymentStatusModel.numeric_id == str(numeric_id))
                .order_by(PaymentStatusModel.updated_at.desc(), PaymentStatusModel.id.desc())
                .limit(1)
            )
            model = result.scalars().first()
        return self._to_entity(model) if model else None

    async def get_by_correlation_id(self, correlation_id: str) -> Optional[PaymentRecord]:
        """根据结账关联ID获取支付状态"""
        with self._store_errors("get_by_correlation_id"):
            result = await self.session.execute(
                select(PaymentStatusModel)
                .where(PaymentStatusModel.correlation_id == correlation_id)
                .order_by(PaymentStatusModel.id.desc())
                .limit(1)
            )
            model = result.scalars().first()
        return self._to_entity(model) if model else None

    async def upsert_status(
        self,
        order_id: str,
        status: PaymentStatus,
        *,
        numeric_id: Optional[str] = None,
        identifier_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> PaymentRecord:
        """
        幂等写入支付状态

        PostgreSQL/SQLite 使用单条 INSERT ... ON CONFLICT DO UPDATE，
        次级标识通过 COALESCE 合并，新值缺省时保留旧值。
        """
        status = PaymentStatus(status)
        numeric_id = str(numeric_id) if numeric_id is not None else None
        now = datetime.now(timezone.utc)

        with self._store_errors("upsert_status", order_id):
            insert = _UPSERT_INSERTS.get(self.session.get_bind().dialect.name)
            if insert is not None:
                stmt = insert(PaymentStatusModel).values(
                    order_id=order_id,
                    status=status.value,
                    numeric_id=numeric_id,
                    identifier_id=identifier_id,
                    correlation_id=correlation_id,
                    created_at=now,
                    updated_at=now,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[PaymentStatusModel.order_id],
                    set_={
                        "status": stmt.excluded.status,
                        "updated_at": stmt.excluded.updated_at,
                        "numeric_id": func.coalesce(stmt.excluded.numeric_id, PaymentStatusModel.numeric_id),
                        "identifier_id": func.coalesce(stmt.excluded.identifier_id, PaymentStatusModel.identifier_id),
                        "correlation_id": func.coalesce(stmt.excluded.correlation_id, PaymentStatusModel.correlation_id),
                    },
                )
                await self.session.execute(stmt)
            else:
                await self._upsert_by_select(order_id, status, numeric_id, identifier_id, correlation_id, now)

            model = await self._load(order_id)

        logger.info(
            "payment_status_upserted",
            order_id=order_id,
            status=status.value,
            numeric_id=model.numeric_id,
            identifier_id=model.identifier_id,
        )
        return self._to_entity(model)

    async def _upsert_by_select(
        self,
        order_id: str,
        status: PaymentStatus,
        numeric_id: Optional[str],
        identifier_id: Optional[str],
        correlation_id: Optional[str],
        now: datetime,
    ) -> None:
        # 其它方言：行锁读取后写入
        result = await self.session.execute(
            select(PaymentStatusModel)
            .where(PaymentStatusModel.order_id == order_id)
            .with_for_update()
        )
        model = result.scalar_one_or_none()
        if model is None:
            self.session.add(
                PaymentStatusModel(
                    order_id=order_id,
                    status=status.value,
                    numeric_id=numeric_id,
                    identifier_id=identifier_id,
                    correlation_id=correlation_id,
                    created_at=now,
                    updated_at=now,
                )
            )
        else:
            model.status = status.value
            model.updated_at = now
            if numeric_id is not None:
                model.numeric_id = numeric_id
            if identifier_id is not None:
                model.identifier_id = identifier_id
            if correlation_id is not None:
                model.correlation_id = correlation_id
        await self.session.flush()

    async def find_pending_without_numeric_id(self, limit: int = 5) -> List[PaymentRecord]:
        """获取尚无数字订单ID的 PENDING 记录，按创建时间倒序"""
        with self._store_errors("find_pending_without_numeric_id"):
            result = await self.session.execute(
                select(PaymentStatusModel)
                .where(
                    PaymentStatusModel.status == PaymentStatus.PENDING.value,
                    PaymentStatusModel.numeric_id.is_(None),
                )
                .order_by(PaymentStatusModel.created_at.desc(), PaymentStatusModel.id.desc())
                .limit(limit)
            )
            models = result.scalars().all()
        return [self._to_entity(m) for m in models]

    async def list_stale_pending(self, created_before: datetime, limit: int = 100) -> List[PaymentRecord]:
        """获取创建时间早于 created_before 且仍为 PENDING 的记录（最早的优先）"""
        with self._store_errors("list_stale_pending"):
            result = await self.session.execute(
                select(PaymentStatusModel)
                .where(
                    PaymentStatusModel.status == PaymentStatus.PENDING.value,
                    PaymentStatusModel.created_at < created_before,
                )
                .order_by(PaymentStatusModel.created_at.asc())
                .limit(limit)
            )
            models = result.scalars().all()
        return [self._to_entity(m) for m in models]

    async def demote_pending(self, order_id: str, status: PaymentStatus) -> bool:
        """条件更新：WHERE status = PENDING，避免覆盖渠道已确认的状态"""
        status = PaymentStatus(status)
        with self._store_errors("demote_pending", order_id):
            result = await self.session.execute(
                update(PaymentStatusModel)
                .where(
                    PaymentStatusModel.order_id == order_id,
                    PaymentStatusModel.status == PaymentStatus.PENDING.value,
                )
                .values(status=status.value, updated_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
        hit = bool(result.rowcount)
        if hit:
            logger.info("payment_status_demoted", order_id=order_id, status=status.value)
        return hit
