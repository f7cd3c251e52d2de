"""
Celery tasks for payment status maintenance.
"""
from __future__ import annotations

import asyncio

from celery import shared_task

from application.services.payment_status_service import PaymentStatusService
from core.logging_config import get_logger
from core.settings import payment_settings
from infrastructure.cache import InMemoryThrottleGate
from infrastructure.database import engine
from infrastructure.external.payments import get_payment_gateway
from infrastructure.tasks.utils.base_task import BaseTask
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


logger = get_logger(__name__)


async def expire_stale_pending(older_than_seconds: float, limit: int) -> int:
    gateway = get_payment_gateway()
    service = PaymentStatusService(SQLAlchemyUnitOfWork, gateway, InMemoryThrottleGate())
    try:
        return await service.expire_stale_pending(older_than_seconds, limit=limit)
    finally:
        await gateway.aclose()
        # Pooled connections are bound to this loop; asyncio.run closes it.
        await engine.dispose()


@shared_task(name="payments.expire_stale_pending", bind=True, base=BaseTask, max_retries=3, default_retry_delay=30)
def task_expire_stale_pending(self, older_than_seconds: float | None = None, limit: int = 100):
    older_than = older_than_seconds if older_than_seconds is not None else payment_settings.pending.ttl_seconds
    try:
        count = asyncio.run(expire_stale_pending(older_than, limit))
    except Exception as exc:  # pragma: no cover
        logger.error("stale_pending_sweep_failed", older_than_seconds=older_than, error=str(exc))
        raise self.retry(exc=exc)
    return {"expired": count}
