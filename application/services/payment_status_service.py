"""
Payment status queries, provider verification and local TIMEOUT demotion.

Status reads come straight from the store. ``verify`` asks the provider for
the authoritative state, guarded by a per-order gate so that one order is
polled at most once per cache window.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from application.dtos.payments import PaymentStatusView, VerifyResult
from application.ports.payment_gateway import PaymentGateway
from application.ports.throttling import ThrottleGate
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException, PaymentStatusNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import PaymentRecord, PaymentStatus, PendingOrderEntry
from domain.payment.status_mapper import map_status
from shared.codes.payment_codes import PaymentCode


logger = get_logger(__name__)


class PaymentStatusService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: PaymentGateway,
        gate: ThrottleGate,
        *,
        verify_cache_seconds: int = 300,
    ) -> None:
        self._uow_factory = uow_factory
        self.gateway = gateway
        self._gate = gate
        self._verify_cache_seconds = verify_cache_seconds

    async def _find(self, uow: AbstractUnitOfWork, order_id: str) -> Optional[PaymentRecord]:
        record = await uow.payment_status_repository.get_by_order_id(order_id)
        if record is None and order_id.isdigit():
            record = await uow.payment_status_repository.get_by_numeric_id(order_id)
        return record

    async def get_status(self, order_id: str) -> PaymentStatusView:
        async with self._uow_factory(readonly=True) as uow:
            record = await self._find(uow, order_id)
        if record is None:
            raise PaymentStatusNotFoundException(order_id)
        return PaymentStatusView(order_id=record.order_id, status=record.status, updated_at=record.updated_at)

    async def verify(self, order_id: str) -> VerifyResult:
        """Refresh an order's status from the provider, at most once per window."""
        async with self._uow_factory(readonly=True) as uow:
            record = await self._find(uow, order_id)

        if not await self._gate.try_acquire(order_id, self._verify_cache_seconds):
            logger.info("payment_verify_gated", order_id=order_id)
            if record is None:
                raise PaymentStatusNotFoundException(order_id)
            return VerifyResult(
                order_id=record.order_id,
                status=record.status,
                source="cache",
                updated_at=record.updated_at,
            )

        target = record.order_id if record else order_id
        provider_ref = record.numeric_id if record and record.numeric_id else order_id
        logger.info("payment_verify_request", order_id=target, provider_ref=provider_ref, provider=self.gateway.provider)
        try:
            remote = await self.gateway.get_order(provider_ref)
        except BusinessException as exc:
            if exc.code == PaymentCode.PROVIDER_ERROR and (exc.details or {}).get("status_code") == 404:
                raise PaymentStatusNotFoundException(order_id) from exc
            raise

        if remote.status is None:
            # Checkout objects carry no order status; only backfill identifiers.
            if record is None:
                raise PaymentStatusNotFoundException(order_id)
            status = record.status
        else:
            status = map_status(remote.status)

        async with self._uow_factory() as uow:
            saved = await uow.payment_status_repository.upsert_status(
                target,
                status,
                numeric_id=remote.numeric_id,
                identifier_id=remote.identifier,
            )
        logger.info("payment_verify_response", order_id=target, raw_status=remote.status, status=saved.status.value)
        return VerifyResult(order_id=saved.order_id, status=saved.status, source="provider", updated_at=saved.updated_at)

    async def expire_pending_order(self, key: str, entry: PendingOrderEntry) -> None:
        """Expiry handler for the pending-order index: demote to TIMEOUT if still unresolved."""
        async with self._uow_factory() as uow:
            repo = uow.payment_status_repository
            if await repo.demote_pending(entry.order_id, PaymentStatus.TIMEOUT):
                demoted = True
            elif await repo.get_by_order_id(entry.order_id) is None:
                await repo.upsert_status(entry.order_id, PaymentStatus.TIMEOUT, correlation_id=key)
                demoted = True
            else:
                demoted = False
        logger.info(
            "pending_order_expired",
            key=key,
            order_id=entry.order_id,
            demoted=demoted,
            time_slots=entry.time_slots,
        )

    async def expire_stale_pending(self, older_than_seconds: float, limit: int = 100) -> int:
        """Demote PENDING rows created before ``now - older_than_seconds``."""
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=older_than_seconds)
        count = 0
        async with self._uow_factory() as uow:
            repo = uow.payment_status_repository
            for record in await repo.list_stale_pending(cutoff, limit=limit):
                if await repo.demote_pending(record.order_id, PaymentStatus.TIMEOUT):
                    count += 1
        logger.info("stale_pending_expired", count=count, cutoff=cutoff.isoformat())
        return count
