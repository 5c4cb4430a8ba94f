"""Marketplace Settlement Engine - Ledger models.

This module defines the double-entry ledger:
1. LedgerTransaction (账务交易) - one balanced record per settlement event
2. LedgerEntry (分录) - debit-or-credit lines of a transaction
"""

import secrets
import time
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

import sqlalchemy as sa
from sqlmodel import Field, Relationship, SQLModel

from src.utils.helpers import utc_now

# =============================================================================
# Enumerations
# =============================================================================


class TransactionType(str, Enum):
    """Ledger transaction type."""

    # Order related
    ORDER_PAYMENT = "order_payment"
    ORDER_REFUND = "order_refund"
    ORDER_CANCELLATION = "order_cancellation"

    # Commission related
    PLATFORM_COMMISSION = "platform_commission"
    VENDOR_COMMISSION = "vendor_commission"
    DISPATCH_COMMISSION = "dispatch_commission"

    # VAT related
    VAT_COLLECTION = "vat_collection"
    VAT_REMITTANCE = "vat_remittance"

    # Wallet operations
    WALLET_DEPOSIT = "wallet_deposit"
    WALLET_WITHDRAWAL = "wallet_withdrawal"
    WALLET_TRANSFER = "wallet_transfer"

    # Payment processing
    PAYMENT_PROCESSING_FEE = "payment_processing_fee"
    BANK_TRANSFER_FEE = "bank_transfer_fee"

    # System operations
    ADJUSTMENT = "adjustment"
    RECONCILIATION = "reconciliation"


class TransactionStatus(str, Enum):
    """Transaction status.

    State transitions:
    - pending -> completed -> reversed
    - pending -> failed / cancelled
    """

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REVERSED = "reversed"


class LedgerAccount(str, Enum):
    """Ledger accounts."""

    # Asset accounts
    CASH = "cash_account"
    BANK = "bank_account"
    WALLET_VENDOR = "wallet_vendor"
    WALLET_DISPATCH = "wallet_dispatch"
    WALLET_PLATFORM = "wallet_platform"
    ACCOUNTS_RECEIVABLE = "accounts_receivable"

    # Liability accounts
    ACCOUNTS_PAYABLE = "accounts_payable"
    VAT_PAYABLE = "vat_payable"
    COMMISSION_PAYABLE = "commission_payable"

    # Revenue accounts
    PLATFORM_REVENUE = "platform_revenue"
    COMMISSION_REVENUE = "commission_revenue"
    VAT_REVENUE = "vat_revenue"

    # Expense accounts
    PAYMENT_PROCESSING_FEES = "payment_processing_fees"
    BANK_TRANSFER_FEES = "bank_transfer_fees"
    OPERATING_EXPENSES = "operating_expenses"


class VATResponsibility(str, Enum):
    """Party liable to remit collected VAT."""

    PLATFORM = "platform"
    VENDOR = "vendor"


class RelatedEntityType(str, Enum):
    """Kind of record that caused a transaction."""

    ORDER = "order"
    WITHDRAWAL = "withdrawal"
    PAYMENT = "payment"
    ADJUSTMENT = "adjustment"


TRANSACTION_ID_PREFIXES: dict[TransactionType, str] = {
    TransactionType.ORDER_PAYMENT: "ORD",
    TransactionType.ORDER_REFUND: "REF",
    TransactionType.WALLET_WITHDRAWAL: "WD",
    TransactionType.WALLET_DEPOSIT: "REV",
}


def generate_transaction_id(tx_type: TransactionType) -> str:
    """Generate a unique transaction ID.

    Format: PREFIX_timestamp_ms_random_hex(6), e.g. ORD_1702345678000_9F2A11C3D4E5
    """
    prefix = TRANSACTION_ID_PREFIXES.get(tx_type, "TXN")
    timestamp = int(time.time() * 1000)
    return f"{prefix}_{timestamp}_{secrets.token_hex(6).upper()}"


# =============================================================================
# Ledger Transaction (账务交易)
# =============================================================================


class LedgerTransaction(SQLModel, table=True):
    """Balanced double-entry transaction.

    Created once per settlement event. Immutable once completed except for
    the single completed -> reversed transition.

    Attributes:
        transaction_id: Public unique identifier
        reference: Human readable reference (e.g. 'Order-12')
        idempotency_key: Caller supplied key; a retried event reuses it
        type: Transaction type
        total_amount: Amount of the movement tagged as total
        fee_amount: Fee charged on top of the total (withdrawals)

        vat_*: VAT rate, amount, liable party and collection flags
        platform_rate / platform_amount / vendor_amount / dispatch_amount:
            Commission split (platform_rate is informational only)
        vendor_shares: Vendor user id -> amount credited to that vendor

        related_entity_type / related_entity_id: Weak back-reference
        status: Lifecycle status
        created_by / approved_by / reversed_by: Audit actors
        details: Payment method, bank reference, external id, notes,
            original transaction id
    """

    __tablename__ = "ledger_transactions"

    id: int | None = Field(default=None, primary_key=True)
    transaction_id: str = Field(max_length=64, unique=True, index=True)
    reference: str = Field(max_length=128, index=True)
    idempotency_key: str | None = Field(default=None, max_length=128, unique=True)

    type: TransactionType = Field(index=True)
    total_amount: Decimal = Field(sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False))
    fee_amount: Decimal = Field(
        default=Decimal("0"),
        sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False, default=Decimal("0")),
    )
    currency: str = Field(default="NGN", max_length=3)

    # VAT information
    vat_rate: Decimal = Field(
        default=Decimal("0"),
        sa_column=sa.Column(sa.DECIMAL(10, 4), nullable=False, default=Decimal("0")),
    )
    vat_amount: Decimal = Field(
        default=Decimal("0"),
        sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False, default=Decimal("0")),
    )
    vat_responsibility: VATResponsibility = Field(default=VATResponsibility.PLATFORM)
    vat_collected: bool = Field(default=False)
    vat_remitted: bool = Field(default=False)
    vat_remittance_date: datetime | None = Field(default=None)

    # Commission information
    platform_rate: Decimal = Field(
        default=Decimal("0"),
        sa_column=sa.Column(sa.DECIMAL(10, 4), nullable=False, default=Decimal("0")),
    )
    platform_amount: Decimal = Field(
        default=Decimal("0"),
        sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False, default=Decimal("0")),
    )
    vendor_amount: Decimal = Field(
        default=Decimal("0"),
        sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False, default=Decimal("0")),
    )
    dispatch_amount: Decimal = Field(
        default=Decimal("0"),
        sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False, default=Decimal("0")),
    )
    vendor_shares: dict[str, str] = Field(
        default={},
        sa_column=sa.Column(sa.JSON, nullable=False, default={}),
    )

    # Related entity
    related_entity_type: RelatedEntityType | None = Field(default=None)
    related_entity_id: int | None = Field(default=None, index=True)

    status: TransactionStatus = Field(default=TransactionStatus.PENDING, index=True)

    # Audit information
    created_by: int | None = Field(default=None, foreign_key="users.id")
    approved_by: int | None = Field(default=None, foreign_key="users.id")
    approved_at: datetime | None = Field(default=None)
    reversal_reason: str | None = Field(default=None, max_length=500)
    reversed_by: int | None = Field(default=None, foreign_key="users.id")
    reversed_at: datetime | None = Field(default=None)

    details: dict[str, Any] = Field(
        default={},
        sa_column=sa.Column(sa.JSON, nullable=False, default={}),
    )

    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)

    # Relationships
    entries: list["LedgerEntry"] = Relationship(
        back_populates="transaction",
        sa_relationship_kwargs={
            "lazy": "selectin",
            "order_by": "LedgerEntry.position",
            "cascade": "all, delete-orphan",
        },
    )

    @property
    def total_debits(self) -> Decimal:
        return sum((e.debit for e in self.entries), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((e.credit for e in self.entries), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return abs(self.total_debits - self.total_credits) <= Decimal("0.01")

    def vendor_share(self, vendor_id: int) -> Decimal:
        """Amount this transaction attributes to a vendor."""
        return Decimal(self.vendor_shares.get(str(vendor_id), "0"))


# =============================================================================
# Ledger Entry (分录)
# =============================================================================


class LedgerEntry(SQLModel, table=True):
    """One debit-or-credit line of a transaction.

    Attributes:
        position: Order of the line inside its transaction
        account: Ledger account
        user_id: Party owning the line (None for platform-internal accounts)
        debit / credit: Amounts, exactly one normally non-zero
        is_total: Line belongs to the movement summing to the transaction total
    """

    __tablename__ = "ledger_entries"

    id: int | None = Field(default=None, primary_key=True)
    transaction_pk: int | None = Field(
        default=None, foreign_key="ledger_transactions.id", index=True
    )
    position: int = Field(default=0)
    account: LedgerAccount = Field(index=True)
    user_id: int | None = Field(default=None, foreign_key="users.id", index=True)
    debit: Decimal = Field(
        default=Decimal("0"),
        sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False, default=Decimal("0")),
    )
    credit: Decimal = Field(
        default=Decimal("0"),
        sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False, default=Decimal("0")),
    )
    description: str = Field(default="", max_length=500)
    is_total: bool = Field(default=False)

    transaction: Optional[LedgerTransaction] = Relationship(back_populates="entries")
