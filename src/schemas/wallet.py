"""Wallet schemas - Request/Response DTOs for wallets, withdrawals and banks."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from src.models.wallet import WalletStatus, WalletType


class WalletResponse(BaseModel):
    """Wallet of the current user."""

    user_id: int
    wallet_type: WalletType
    balance: Decimal
    currency: str
    status: WalletStatus
    daily_withdrawal_limit: Decimal
    monthly_withdrawal_limit: Decimal
    minimum_balance: Decimal
    bank_account_name: str | None = None
    bank_account_number: str | None = None
    bank_code: str | None = None
    bank_name: str | None = None
    bank_verified: bool
    last_transaction_at: datetime | None = None

    class Config:
        from_attributes = True


class WalletStatsResponse(BaseModel):
    """Wallet overview: balance, lifetime totals, limit usage."""

    current_balance: Decimal
    total_earnings: Decimal
    total_withdrawals: Decimal
    total_commissions: Decimal
    total_vat_collected: Decimal
    daily_limit: Decimal
    monthly_limit: Decimal
    daily_used: Decimal
    monthly_used: Decimal
    transaction_count: int
    last_transaction_at: datetime | None = None
    can_withdraw: bool

    class Config:
        from_attributes = True


class BankAccountUpdate(BaseModel):
    """Replace the payout bank account."""

    account_name: str = Field(..., min_length=1, max_length=255)
    account_number: str = Field(..., min_length=6, max_length=32, pattern=r"^\d+$")
    bank_code: str = Field(..., min_length=1, max_length=16)
    bank_name: str = Field(..., min_length=1, max_length=255)


# =============================================================================
# Withdrawal Schemas
# =============================================================================


class WithdrawalRequest(BaseModel):
    """Withdraw from the wallet to the bank account on file."""

    amount: Decimal = Field(..., gt=0, decimal_places=2)
    idempotency_key: str | None = Field(None, max_length=128)


class WithdrawalRejectRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class WithdrawalResponse(BaseModel):
    """A withdrawal as seen by admins and the wallet owner."""

    transaction_id: str
    reference: str
    user_id: int | None = None
    amount: Decimal
    fee: Decimal
    total_deduction: Decimal
    status: str
    bank_reference: str | None = None
    created_at: datetime


class WithdrawalListResponse(BaseModel):
    items: list[WithdrawalResponse]
    total: int
    page: int
    page_size: int
    has_more: bool


class WithdrawalRejectResponse(BaseModel):
    transaction_id: str
    refund_amount: Decimal
    status: str
    reversal_transaction_id: str


# =============================================================================
# Bank Directory Schemas
# =============================================================================


class BankResponse(BaseModel):
    code: str
    name: str


class ResolveAccountRequest(BaseModel):
    account_number: str = Field(..., min_length=6, max_length=32, pattern=r"^\d+$")
    bank_code: str = Field(..., min_length=1, max_length=16)


class ResolvedAccountResponse(BaseModel):
    account_number: str
    account_name: str
