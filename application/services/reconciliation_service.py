"""
Webhook reconciliation: correlate a provider event with a local order and
record the mapped status.

Correlation tries, in order: the provider numeric order id, the pending-order
index under the correlation id echoed in custom data, the row stored with that
correlation id, and the newest PENDING row that has no numeric id yet. Handled
events are always acknowledged; only input errors (signature, malformed body)
surface to the caller.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from application.dtos.payments import ReconcileOutcome, WebhookEvent
from application.ports.payment_gateway import PaymentGateway
from application.ports.pending_orders import PendingOrderIndex
from core.logging_config import get_logger
from domain.common.exceptions import PaymentStoreError
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import PaymentStatus
from domain.payment.events import is_status_change, parse_event_name
from domain.payment.status_mapper import map_status


logger = get_logger(__name__)

T = TypeVar("T")


class WebhookReconciler:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: PaymentGateway,
        index: PendingOrderIndex,
        *,
        stage_timeout: float = 2.0,
        total_budget: float = 5.0,
        recent_pending_limit: int = 5,
    ) -> None:
        self._uow_factory = uow_factory
        self.gateway = gateway
        self._index = index
        self._stage_timeout = stage_timeout
        self._total_budget = total_budget
        self._recent_pending_limit = recent_pending_limit

    async def handle(self, headers: dict[str, Any], body: bytes) -> ReconcileOutcome:
        """Authenticate and parse a raw delivery, then reconcile it.

        Signature and payload errors propagate; everything after parsing is acked.
        """
        event = self.gateway.parse_webhook(headers, body)
        logger.info(
            "payment_webhook_received",
            provider=event.provider,
            event_name=event.event_name,
            numeric_id=event.numeric_id,
            correlation_id=event.correlation_id,
            test_mode=event.test_mode,
        )
        return await self.reconcile(event)

    async def reconcile(self, event: WebhookEvent) -> ReconcileOutcome:
        name = parse_event_name(event.event_name)
        if name is None:
            logger.info("payment_webhook_ignored", event_name=event.event_name, reason="unknown_event")
            return ReconcileOutcome(received=True, processed=False, event_name=event.event_name, reason="unknown_event")
        if not is_status_change(name):
            logger.info("payment_webhook_ignored", event_name=event.event_name, reason="not_status_change")
            return ReconcileOutcome(received=True, processed=False, event_name=event.event_name, reason="not_status_change")

        try:
            return await asyncio.wait_for(self._reconcile(event), timeout=self._total_budget)
        except asyncio.TimeoutError:
            logger.warning(
                "payment_webhook_timeout",
                event_name=event.event_name,
                numeric_id=event.numeric_id,
                budget_seconds=self._total_budget,
            )
            return ReconcileOutcome(received=True, processed=False, event_name=event.event_name, reason="timeout")
        except PaymentStoreError as exc:
            logger.error(
                "payment_webhook_store_error",
                event_name=event.event_name,
                numeric_id=event.numeric_id,
                operation=exc.operation,
                error=exc.message,
            )
            return ReconcileOutcome(received=True, processed=False, event_name=event.event_name, reason="store_error")
        except Exception as exc:
            logger.exception(
                "payment_webhook_failed",
                event_name=event.event_name,
                numeric_id=event.numeric_id,
                error=str(exc),
            )
            return ReconcileOutcome(received=True, processed=False, event_name=event.event_name, reason="internal_error")

    async def _stage(self, aw: Awaitable[T]) -> T:
        return await asyncio.wait_for(aw, timeout=self._stage_timeout)

    async def _resolve(self, event: WebhookEvent) -> tuple[Optional[str], Optional[str]]:
        if event.numeric_id:
            async with self._uow_factory(readonly=True) as uow:
                record = await self._stage(uow.payment_status_repository.get_by_numeric_id(event.numeric_id))
            if record is not None:
                return record.order_id, "numeric_id"

        if event.correlation_id:
            order_id = await self._stage(self._index.get(event.correlation_id))
            if order_id:
                return order_id, "pending_index"
            async with self._uow_factory(readonly=True) as uow:
                record = await self._stage(uow.payment_status_repository.get_by_correlation_id(event.correlation_id))
            if record is not None:
                return record.order_id, "correlation_id"

        async with self._uow_factory(readonly=True) as uow:
            candidates = await self._stage(
                uow.payment_status_repository.find_pending_without_numeric_id(self._recent_pending_limit)
            )
        if candidates:
            return candidates[0].order_id, "recent_pending"
        return None, None

    async def _reconcile(self, event: WebhookEvent) -> ReconcileOutcome:
        order_id, resolved_by = await self._resolve(event)
        if order_id is None:
            logger.warning(
                "payment_webhook_unmatched",
                event_name=event.event_name,
                numeric_id=event.numeric_id,
                identifier=event.identifier,
                correlation_id=event.correlation_id,
            )
            return ReconcileOutcome(received=False, processed=False, event_name=event.event_name, reason="order_not_found")

        status = map_status(event.status)
        async with self._uow_factory() as uow:
            record = await self._stage(
                uow.payment_status_repository.upsert_status(
                    order_id,
                    status,
                    numeric_id=event.numeric_id,
                    identifier_id=event.identifier,
                )
            )

        if status != PaymentStatus.PENDING and event.correlation_id:
            await self._stage(self._index.pop(event.correlation_id))

        logger.info(
            "payment_webhook_reconciled",
            event_name=event.event_name,
            order_id=record.order_id,
            numeric_id=record.numeric_id,
            raw_status=event.status,
            status=record.status.value,
            resolved_by=resolved_by,
        )
        return ReconcileOutcome(
            received=True,
            processed=True,
            event_name=event.event_name,
            order_id=record.order_id,
            status=record.status,
            resolved_by=resolved_by,
        )
