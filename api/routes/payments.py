"""
Payments API routes.

Checkout, provider webhook, stored status and provider verification.
Keep this thin: orchestration lives in the application services.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies import (
    enforce_rate_limit,
    get_checkout_service,
    get_reconciler,
    get_status_service,
    require_service_token,
)
from application.dtos.payments import CheckoutRequest
from application.services.checkout_service import CheckoutService
from application.services.payment_status_service import PaymentStatusService
from application.services.reconciliation_service import WebhookReconciler
from core.response import success_response


router = APIRouter(tags=["Payments"])


@router.post(
    "/checkout",
    summary="Create hosted checkout",
    dependencies=[Depends(enforce_rate_limit), Depends(require_service_token)],
)
async def create_checkout(payload: CheckoutRequest, service: CheckoutService = Depends(get_checkout_service)):
    result = await service.create_checkout(payload)
    return success_response(data=result.model_dump(mode="json", by_alias=True), message="Checkout created")


@router.post("/webhook", summary="Provider webhook")
async def payments_webhook(request: Request, reconciler: WebhookReconciler = Depends(get_reconciler)):
    raw_body = await request.body()
    headers = {k: v for k, v in request.headers.items()}
    outcome = await reconciler.handle(headers, raw_body)
    # Acknowledge with 2xx so the provider does not redeliver handled events
    return success_response(
        data=outcome.model_dump(mode="json", by_alias=True, exclude_none=True),
        message="Webhook received" if outcome.received else "Webhook acknowledged",
    )


@router.get(
    "/payment-status",
    summary="Stored payment status",
    dependencies=[Depends(require_service_token)],
)
async def payment_status(
    order_id: str = Query(..., alias="orderId", min_length=1),
    service: PaymentStatusService = Depends(get_status_service),
):
    view = await service.get_status(order_id)
    return success_response(data=view.model_dump(mode="json", by_alias=True), message="Payment status")


@router.get(
    "/verify",
    summary="Re-query provider for payment status",
    dependencies=[Depends(require_service_token)],
)
async def verify_payment(
    order_id: str = Query(..., alias="orderId", min_length=1),
    service: PaymentStatusService = Depends(get_status_service),
):
    result = await service.verify(order_id)
    return success_response(data=result.model_dump(mode="json", by_alias=True), message="Payment verified")
