"""Marketplace Settlement Engine - Wallet model."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from src.utils.helpers import utc_now


class WalletType(str, Enum):
    """Wallet owner kind, selects the ledger account used for the wallet."""

    VENDOR = "vendor"  # 店主钱包
    DISPATCH = "dispatch"  # 骑手钱包


class WalletStatus(str, Enum):
    """Wallet status."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    FROZEN = "frozen"
    CLOSED = "closed"


def _money_column(default: Decimal = Decimal("0")) -> sa.Column:
    return sa.Column(sa.DECIMAL(32, 2), nullable=False, default=default)


class Wallet(SQLModel, table=True):
    """Per-party balance.

    Mutated only through WalletService so the rolling withdrawal windows and
    the lifetime totals stay consistent with the balance.

    Withdrawal windows:
        daily_withdrawn_amount is valid for the calendar day daily_withdrawn_date,
        monthly_withdrawn_amount for the month starting at monthly_window_start.
        Both are rolled forward lazily in the reporting timezone.

    Attributes:
        id: Primary key
        user_id: Owner (one wallet per user)
        wallet_type: vendor or dispatch
        balance: Current balance (never negative)
        status: active/suspended/frozen/closed
        bank_*: Payout bank account
        total_*: Lifetime totals for statistics
    """

    __tablename__ = "wallets"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", unique=True, index=True)
    wallet_type: WalletType = Field(default=WalletType.VENDOR)

    balance: Decimal = Field(default=Decimal("0"), sa_column=_money_column())
    currency: str = Field(default="NGN", max_length=3)
    status: WalletStatus = Field(default=WalletStatus.ACTIVE, index=True)

    # Limits
    daily_withdrawal_limit: Decimal = Field(
        default=Decimal("1000000"), sa_column=_money_column(Decimal("1000000"))
    )
    monthly_withdrawal_limit: Decimal = Field(
        default=Decimal("10000000"), sa_column=_money_column(Decimal("10000000"))
    )
    minimum_balance: Decimal = Field(default=Decimal("0"), sa_column=_money_column())

    # Rolling withdrawal windows
    daily_withdrawn_amount: Decimal = Field(default=Decimal("0"), sa_column=_money_column())
    daily_withdrawn_date: date | None = Field(default=None)
    monthly_withdrawn_amount: Decimal = Field(default=Decimal("0"), sa_column=_money_column())
    monthly_window_start: date | None = Field(default=None)

    # Bank account for withdrawals
    bank_account_name: str | None = Field(default=None, max_length=255)
    bank_account_number: str | None = Field(default=None, max_length=32)
    bank_code: str | None = Field(default=None, max_length=16)
    bank_name: str | None = Field(default=None, max_length=255)
    bank_verified: bool = Field(default=False)
    bank_verified_at: datetime | None = Field(default=None)

    # Lifetime totals
    total_earnings: Decimal = Field(default=Decimal("0"), sa_column=_money_column())
    total_withdrawals: Decimal = Field(default=Decimal("0"), sa_column=_money_column())
    total_commissions: Decimal = Field(default=Decimal("0"), sa_column=_money_column())
    total_vat_collected: Decimal = Field(default=Decimal("0"), sa_column=_money_column())
    last_transaction_at: datetime | None = Field(default=None)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def has_bank_account(self) -> bool:
        return bool(self.bank_account_number and self.bank_code)
