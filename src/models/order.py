"""Marketplace Settlement Engine - Order model.

Only the payment-facing slice of a marketplace order is modelled: who pays,
which vendors and delivery agent get a share, and the payment status the
settlement workflows move forward.
"""

import secrets
import time
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, Relationship, SQLModel

from src.utils.helpers import utc_now


class PaymentStatus(str, Enum):
    """Order payment status.

    State transitions:
    - pending -> paid / failed
    - paid -> partially_refunded -> refunded
    """

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"


def generate_order_no() -> str:
    """Generate a unique order number.

    Format: ORD + timestamp_ms + random_hex(5), e.g. ORD1702345678000ABC12345FF
    """
    timestamp = int(time.time() * 1000)
    return f"ORD{timestamp}{secrets.token_hex(5).upper()}"


class Order(SQLModel, table=True):
    """Marketplace order.

    Attributes:
        id: Auto-increment primary key
        order_no: System-generated unique order number
        customer_id: Paying customer
        delivery_agent_id: Dispatch agent fulfilling delivery (if any)
        delivery_fee: Fee owed to the delivery agent
        total_amount: Amount the customer pays (lines + delivery)
        vat_category_code: Tax category used to resolve the VAT rate
        payment_status: Current payment status
        payment_reference: Gateway reference of the captured payment
        payment_transaction_id: Ledger transaction recording the capture
        refunded_amount: Cumulative amount refunded so far
    """

    __tablename__ = "orders"

    id: int | None = Field(default=None, primary_key=True)
    order_no: str = Field(default_factory=generate_order_no, max_length=32, unique=True)
    customer_id: int = Field(foreign_key="users.id", index=True)
    delivery_agent_id: int | None = Field(default=None, foreign_key="users.id", index=True)

    delivery_fee: Decimal = Field(
        default=Decimal("0"),
        sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False, default=Decimal("0")),
    )
    total_amount: Decimal = Field(
        sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False),
    )
    vat_category_code: str | None = Field(default=None, max_length=32)

    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING, index=True)
    payment_reference: str | None = Field(default=None, max_length=128, index=True)
    payment_transaction_id: str | None = Field(default=None, max_length=64)
    refunded_amount: Decimal = Field(
        default=Decimal("0"),
        sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False, default=Decimal("0")),
    )
    paid_at: datetime | None = Field(default=None)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Relationships - selectin so lines are available inside async sessions
    lines: list["OrderLine"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"lazy": "selectin", "order_by": "OrderLine.id"},
    )

    @property
    def primary_vendor_id(self) -> int | None:
        """Vendor of the first line; used for VAT responsibility resolution."""
        return self.lines[0].vendor_id if self.lines else None


class OrderLine(SQLModel, table=True):
    """One product line of an order.

    Attributes:
        vendor_id: Store owner receiving the store price
        store_price: Vendor-facing unit price
        listed_price: Customer-facing unit price (store price + platform markup)
        quantity: Units ordered
    """

    __tablename__ = "order_lines"

    id: int | None = Field(default=None, primary_key=True)
    order_id: int | None = Field(default=None, foreign_key="orders.id", index=True)
    vendor_id: int = Field(foreign_key="users.id", index=True)
    product_name: str = Field(default="", max_length=255)
    store_price: Decimal = Field(sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False))
    listed_price: Decimal = Field(sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False))
    quantity: int = Field(default=1, ge=0)

    order: Optional[Order] = Relationship(back_populates="lines")
