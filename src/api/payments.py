"""Payments API - payment capture and order refunds."""

from fastapi import APIRouter

from src.api.deps import AdminUser, CurrentUser, Settlement, raise_http_error
from src.core.exceptions import SettlementError
from src.schemas.ledger import LedgerTransactionResponse
from src.schemas.payment import CapturePaymentRequest, CaptureQueuedResponse, RefundRequest

router = APIRouter()


@router.post("/capture", response_model=LedgerTransactionResponse)
async def capture_payment(
    data: CapturePaymentRequest,
    user: CurrentUser,
    settlement: Settlement,
) -> LedgerTransactionResponse:
    """Verify a payment with the gateway and settle the order."""
    try:
        txn = await settlement.capture_payment(
            data.order_id, data.payment_reference, data.idempotency_key
        )
    except SettlementError as e:
        raise_http_error(e)
    return LedgerTransactionResponse.model_validate(txn)


@router.post("/capture-async", response_model=CaptureQueuedResponse)
async def capture_payment_async(data: CapturePaymentRequest, user: CurrentUser) -> CaptureQueuedResponse:
    """Queue settlement of a payment (e.g. from a gateway notification)."""
    from src.tasks.settlement import capture_payment as capture_task

    task = capture_task.delay(data.order_id, data.payment_reference, data.idempotency_key)
    return CaptureQueuedResponse(task_id=task.id, order_id=data.order_id)


@router.post("/orders/{order_id}/refund", response_model=LedgerTransactionResponse)
async def refund_order(
    order_id: int,
    data: RefundRequest,
    admin: AdminUser,
    settlement: Settlement,
) -> LedgerTransactionResponse:
    """Refund (part of) a paid order (admin only)."""
    try:
        txn = await settlement.refund_order(
            order_id,
            data.amount,
            data.reason,
            actor_id=admin.id,
            idempotency_key=data.idempotency_key,
            issue_gateway_refund=data.issue_gateway_refund,
        )
    except SettlementError as e:
        raise_http_error(e)
    return LedgerTransactionResponse.model_validate(txn)
