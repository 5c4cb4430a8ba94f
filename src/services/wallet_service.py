"""Wallet Service - Balances, withdrawal windows and payout bank accounts."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from src.core.config import get_settings
from src.core.exceptions import InsufficientBalanceError, NotFoundError, ValidationError
from src.models.ledger import LedgerAccount
from src.models.user import User, UserRole
from src.models.wallet import Wallet, WalletStatus, WalletType
from src.services.ledger_service import LedgerService
from src.utils.amount import ZERO, percent_of, round_money, to_decimal
from src.utils.helpers import local_date, month_start, utc_now

if TYPE_CHECKING:
    from src.services.bank_directory_service import BankDirectoryService

logger = logging.getLogger(__name__)

# Credit kinds that count towards lifetime totals
EARNING = "earning"
COMMISSION = "commission"
REFUND = "refund"
# Debit kinds
WITHDRAWAL = "withdrawal"
CLAWBACK = "clawback"


@dataclass
class WalletStats:
    """Wallet overview for the owner."""

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
    last_transaction_at: datetime | None
    can_withdraw: bool


def wallet_account(wallet: Wallet) -> LedgerAccount:
    """Ledger account that mirrors a wallet."""
    if wallet.wallet_type == WalletType.DISPATCH:
        return LedgerAccount.WALLET_DISPATCH
    return LedgerAccount.WALLET_VENDOR


class WalletService:
    """Service for wallet mutations.

    All balance changes go through credit/debit so the lifetime totals and
    the rolling withdrawal windows stay consistent. Like LedgerService it
    only flushes; the surrounding UnitOfWork commits.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    # =========================================================================
    # Lookup / creation
    # =========================================================================

    async def get_wallet(self, user_id: int, for_update: bool = False) -> Wallet | None:
        query = select(Wallet).where(Wallet.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def lock_wallet(self, user_id: int) -> Wallet:
        """Read a wallet with a row lock for check-then-modify.

        Raises:
            NotFoundError: User has no wallet
        """
        wallet = await self.get_wallet(user_id, for_update=True)
        if wallet is None:
            raise NotFoundError("Wallet not found", {"user_id": user_id})
        return wallet

    async def get_or_create_wallet(self, user_id: int) -> Wallet:
        """Locked wallet of a user, created on first use.

        Wallet type follows the owner's role: dispatch agents get a dispatch
        wallet, everyone else a vendor wallet.
        """
        wallet = await self.get_wallet(user_id, for_update=True)
        if wallet is not None:
            return wallet

        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found", {"user_id": user_id})

        wallet = Wallet(
            user_id=user_id,
            wallet_type=WalletType.DISPATCH if user.role == UserRole.DISPATCH else WalletType.VENDOR,
            currency=self.settings.currency,
            daily_withdrawal_limit=self.settings.default_daily_withdrawal_limit,
            monthly_withdrawal_limit=self.settings.default_monthly_withdrawal_limit,
        )
        self.db.add(wallet)
        await self.db.flush()
        logger.info(f"Created {wallet.wallet_type.value} wallet for user {user_id}")
        return wallet

    # =========================================================================
    # Balance mutations
    # =========================================================================

    def credit(self, wallet: Wallet, amount: Decimal, kind: str = EARNING) -> Wallet:
        """Add funds. Never fails for a positive amount.

        kind=earning also counts towards total_earnings, kind=commission
        towards total_commissions; refunds of rejected withdrawals count
        towards neither.
        """
        amount = round_money(amount)
        if amount <= 0:
            raise ValidationError("Credit amount must be positive", {"amount": str(amount)})

        wallet.balance = wallet.balance + amount
        if kind == EARNING:
            wallet.total_earnings = wallet.total_earnings + amount
        elif kind == COMMISSION:
            wallet.total_commissions = wallet.total_commissions + amount

        self._touch(wallet)
        return wallet

    def debit(
        self,
        wallet: Wallet,
        amount: Decimal,
        kind: str = WITHDRAWAL,
        at: datetime | None = None,
    ) -> Wallet:
        """Remove funds.

        Raises:
            InsufficientBalanceError: balance < amount
        """
        amount = round_money(amount)
        if amount <= 0:
            raise ValidationError("Debit amount must be positive", {"amount": str(amount)})

        if wallet.balance < amount:
            raise InsufficientBalanceError(
                required=amount,
                available=wallet.balance,
                details={"user_id": wallet.user_id},
            )

        wallet.balance = wallet.balance - amount
        if kind == WITHDRAWAL:
            self.record_withdrawal(wallet, amount, at=at)

        self._touch(wallet)
        return wallet

    def _touch(self, wallet: Wallet) -> None:
        now = utc_now()
        wallet.last_transaction_at = now
        wallet.updated_at = now
        self.db.add(wallet)

    # =========================================================================
    # Withdrawal windows
    # =========================================================================

    def roll_windows(self, wallet: Wallet, at: datetime | None = None) -> None:
        """Reset counters whose calendar day / month has passed.

        Days and months are taken in the reporting timezone.
        """
        today = local_date(at or utc_now(), self.settings.reporting_timezone)

        if wallet.daily_withdrawn_date != today:
            wallet.daily_withdrawn_amount = ZERO
            wallet.daily_withdrawn_date = today

        this_month = month_start(today)
        if wallet.monthly_window_start != this_month:
            wallet.monthly_withdrawn_amount = ZERO
            wallet.monthly_window_start = this_month

    def record_withdrawal(self, wallet: Wallet, amount: Decimal, at: datetime | None = None) -> None:
        """Add a withdrawal to both windows and the lifetime total."""
        self.roll_windows(wallet, at)
        wallet.daily_withdrawn_amount = wallet.daily_withdrawn_amount + amount
        wallet.monthly_withdrawn_amount = wallet.monthly_withdrawn_amount + amount
        wallet.total_withdrawals = wallet.total_withdrawals + amount

    def can_withdraw(
        self,
        wallet: Wallet,
        amount: Decimal | None = None,
        at: datetime | None = None,
    ) -> bool:
        """Whether the wallet may withdraw now.

        Requires an active wallet and both counters below their limits after
        rollover. With an amount, the counters plus that amount must also
        stay within the limits.
        """
        if wallet.status != WalletStatus.ACTIVE:
            return False

        self.roll_windows(wallet, at)

        if wallet.daily_withdrawn_amount >= wallet.daily_withdrawal_limit:
            return False
        if wallet.monthly_withdrawn_amount >= wallet.monthly_withdrawal_limit:
            return False

        if amount is not None:
            amount = to_decimal(amount)
            if wallet.daily_withdrawn_amount + amount > wallet.daily_withdrawal_limit:
                return False
            if wallet.monthly_withdrawn_amount + amount > wallet.monthly_withdrawal_limit:
                return False

        return True

    def calculate_withdrawal_fee(self, amount: Decimal) -> Decimal:
        """Fee = max(amount * 1%, 100), rounded to the minor unit.

        Example: 100,000 -> 1,000; 5,000 -> 100
        """
        fee = percent_of(amount, self.settings.withdrawal_fee_percent)
        return round_money(max(fee, self.settings.withdrawal_fee_minimum))

    # =========================================================================
    # Bank account
    # =========================================================================

    async def update_bank_account(
        self,
        user_id: int,
        account_name: str,
        account_number: str,
        bank_code: str,
        bank_name: str,
    ) -> Wallet:
        """Replace the payout account; the new account starts unverified."""
        if not all((account_name, account_number, bank_code, bank_name)):
            raise ValidationError("All bank account fields are required")

        wallet = await self.lock_wallet(user_id)
        wallet.bank_account_name = account_name
        wallet.bank_account_number = account_number
        wallet.bank_code = bank_code
        wallet.bank_name = bank_name
        wallet.bank_verified = False
        wallet.bank_verified_at = None
        wallet.updated_at = utc_now()
        self.db.add(wallet)
        await self.db.flush()
        return wallet

    async def verify_bank_account(self, user_id: int, directory: "BankDirectoryService") -> Wallet:
        """Resolve the account name with the gateway and mark it verified."""
        wallet = await self.lock_wallet(user_id)
        if not wallet.has_bank_account:
            raise ValidationError("No bank account on file")

        resolved = await directory.resolve_account(wallet.bank_account_number, wallet.bank_code)  # type: ignore[arg-type]
        wallet.bank_account_name = resolved.account_name
        wallet.bank_verified = True
        wallet.bank_verified_at = utc_now()
        wallet.updated_at = wallet.bank_verified_at
        self.db.add(wallet)
        await self.db.flush()

        logger.info(f"Verified bank account for user {user_id}")
        return wallet

    # =========================================================================
    # Statistics
    # =========================================================================

    async def get_wallet_stats(self, user_id: int) -> WalletStats:
        wallet = await self.get_wallet(user_id)
        if wallet is None:
            raise NotFoundError("Wallet not found", {"user_id": user_id})

        can_withdraw = self.can_withdraw(wallet)
        transaction_count = await LedgerService(self.db).count_user_transactions(user_id)

        return WalletStats(
            current_balance=wallet.balance,
            total_earnings=wallet.total_earnings,
            total_withdrawals=wallet.total_withdrawals,
            total_commissions=wallet.total_commissions,
            total_vat_collected=wallet.total_vat_collected,
            daily_limit=wallet.daily_withdrawal_limit,
            monthly_limit=wallet.monthly_withdrawal_limit,
            daily_used=wallet.daily_withdrawn_amount,
            monthly_used=wallet.monthly_withdrawn_amount,
            transaction_count=transaction_count,
            last_transaction_at=wallet.last_transaction_at,
            can_withdraw=can_withdraw,
        )
