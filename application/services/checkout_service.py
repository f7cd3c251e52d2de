"""
Checkout initiation: open a hosted provider checkout, remember it as a
pending order and record it as PENDING.
"""
from __future__ import annotations

import uuid
from typing import Callable

from application.dtos.payments import CheckoutRequest, CheckoutResult, CheckoutSessionRequest
from application.ports.payment_gateway import PaymentGateway
from application.ports.pending_orders import PendingOrderIndex
from core.logging_config import get_logger
from domain.common.exceptions import PaymentStoreError
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import PaymentStatus


logger = get_logger(__name__)


class CheckoutService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: PaymentGateway,
        index: PendingOrderIndex,
    ) -> None:
        self._uow_factory = uow_factory
        self.gateway = gateway
        self._index = index

    async def create_checkout(self, req: CheckoutRequest) -> CheckoutResult:
        correlation_id = str(uuid.uuid4())
        context = req.custom_data
        logger.info(
            "checkout_create_request",
            variant_id=req.variant_id,
            provider=self.gateway.provider,
            correlation_id=correlation_id,
            frequency=context.frequency,
            test_mode=req.test_mode,
        )
        # Provider failures propagate: there is nothing to hand back.
        session = await self.gateway.create_checkout(
            CheckoutSessionRequest(
                variant_id=req.variant_id,
                email=context.user_email,
                name=context.user_name,
                correlation_id=correlation_id,
                test_mode=req.test_mode,
                preview=req.preview,
            )
        )
        order_id = session.checkout_id

        await self._index.put(correlation_id, order_id, context.time_slots)

        try:
            async with self._uow_factory() as uow:
                await uow.payment_status_repository.upsert_status(
                    order_id,
                    PaymentStatus.PENDING,
                    identifier_id=session.identifier,
                    correlation_id=correlation_id,
                )
        except PaymentStoreError as exc:
            # The buyer can still pay; the webhook will create the row.
            logger.error(
                "checkout_store_failed",
                order_id=order_id,
                operation=exc.operation,
                error=exc.message,
            )

        logger.info(
            "checkout_create_response",
            order_id=order_id,
            provider=session.provider,
            correlation_id=correlation_id,
        )
        return CheckoutResult(
            checkout_url=session.checkout_url,
            order_id=order_id,
            expires_in=int(self._index.ttl_seconds),
            correlation_id=correlation_id,
        )
