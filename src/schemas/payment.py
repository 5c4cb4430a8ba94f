"""Payment schemas - capture and refund DTOs."""

from decimal import Decimal

from pydantic import BaseModel, Field


class CapturePaymentRequest(BaseModel):
    """Gateway confirmed a payment for an order.

    Sent by the checkout flow once the customer returns from the gateway;
    the payment is verified again server side before settlement.
    """

    order_id: int
    payment_reference: str = Field(..., min_length=1, max_length=128)
    idempotency_key: str | None = Field(None, max_length=128)


class RefundRequest(BaseModel):
    """Refund (part of) a paid order (admin)."""

    amount: Decimal = Field(..., gt=0, decimal_places=2)
    reason: str = Field("Customer request", max_length=500)
    idempotency_key: str | None = Field(None, max_length=128)
    issue_gateway_refund: bool = True


class CaptureQueuedResponse(BaseModel):
    task_id: str
    order_id: int
