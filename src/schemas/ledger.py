"""Ledger schemas - Request/Response DTOs for ledger transactions."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from src.models.ledger import (
    LedgerAccount,
    RelatedEntityType,
    TransactionStatus,
    TransactionType,
    VATResponsibility,
)

# =============================================================================
# Transaction Schemas
# =============================================================================


class LedgerEntryResponse(BaseModel):
    """One debit or credit line."""

    position: int
    account: LedgerAccount
    user_id: int | None = None
    debit: Decimal
    credit: Decimal
    description: str

    class Config:
        from_attributes = True


class LedgerTransactionResponse(BaseModel):
    """Ledger transaction with its entries."""

    transaction_id: str
    reference: str
    type: TransactionType
    status: TransactionStatus
    total_amount: Decimal
    fee_amount: Decimal
    currency: str

    vat_rate: Decimal
    vat_amount: Decimal
    vat_responsibility: VATResponsibility
    vat_collected: bool

    platform_rate: Decimal
    platform_amount: Decimal
    vendor_amount: Decimal
    dispatch_amount: Decimal

    related_entity_type: RelatedEntityType | None = None
    related_entity_id: int | None = None

    created_by: int | None = None
    approved_by: int | None = None
    approved_at: datetime | None = None
    reversal_reason: str | None = None
    reversed_by: int | None = None
    reversed_at: datetime | None = None

    details: dict[str, Any] = {}
    entries: list[LedgerEntryResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True


class LedgerTransactionListResponse(BaseModel):
    """Paginated transaction list response."""

    items: list[LedgerTransactionResponse]
    total: int
    page: int
    page_size: int
    has_more: bool


class ReverseTransactionRequest(BaseModel):
    """Admin reversal of a completed transaction."""

    reason: str = Field(..., min_length=1, max_length=500)


# =============================================================================
# Reporting Schemas
# =============================================================================


class VATSummaryItem(BaseModel):
    responsibility: VATResponsibility
    total_vat_collected: Decimal
    total_transactions: int
    total_amount: Decimal


class VATSummaryResponse(BaseModel):
    """VAT collected in a period, per liable party."""

    start_date: datetime
    end_date: datetime
    summary: list[VATSummaryItem]
    total_vat_collected: Decimal
    total_transactions: int


class WithdrawalStatusBreakdown(BaseModel):
    status: TransactionStatus
    count: int
    total_amount: Decimal


class WithdrawalStatsResponse(BaseModel):
    """Withdrawal statistics in a period."""

    start_date: datetime
    end_date: datetime
    status_breakdown: list[WithdrawalStatusBreakdown]
    total_count: int
    total_amount: Decimal
    total_fees: Decimal
