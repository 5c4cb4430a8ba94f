"""Ledger Service - Double-entry transactions, validation and reversal."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from src.core.config import get_settings
from src.core.exceptions import InvalidTransitionError, LedgerUnbalancedError, NotFoundError
from src.models.ledger import (
    LedgerAccount,
    LedgerEntry,
    LedgerTransaction,
    RelatedEntityType,
    TransactionStatus,
    TransactionType,
    VATResponsibility,
    generate_transaction_id,
)
from src.utils.amount import ZERO, amounts_match
from src.utils.helpers import utc_now
from src.utils.pagination import PaginatedResult, PaginationParams, paginate_query

logger = logging.getLogger(__name__)

# pending -> completed -> reversed, pending -> failed / cancelled
ALLOWED_TRANSITIONS: dict[TransactionStatus, set[TransactionStatus]] = {
    TransactionStatus.PENDING: {
        TransactionStatus.COMPLETED,
        TransactionStatus.FAILED,
        TransactionStatus.CANCELLED,
    },
    TransactionStatus.COMPLETED: {TransactionStatus.REVERSED},
}


@dataclass
class VATInfo:
    """VAT block of a transaction."""

    rate: Decimal = ZERO
    amount: Decimal = ZERO
    responsibility: VATResponsibility = VATResponsibility.PLATFORM
    collected: bool = False


@dataclass
class CommissionInfo:
    """Commission block of a transaction."""

    platform_rate: Decimal = ZERO
    platform_amount: Decimal = ZERO
    vendor_amount: Decimal = ZERO
    dispatch_amount: Decimal = ZERO
    vendor_shares: dict[int, Decimal] = field(default_factory=dict)


@dataclass
class VATSummaryRow:
    """VAT collected over a period for one liable party."""

    responsibility: VATResponsibility
    total_vat_collected: Decimal
    total_transactions: int
    total_amount: Decimal


@dataclass
class WithdrawalStats:
    """Withdrawal statistics over a period."""

    by_status: dict[TransactionStatus, tuple[int, Decimal]]
    total_count: int
    total_amount: Decimal
    total_fees: Decimal


def entry(
    account: LedgerAccount,
    *,
    debit: Decimal = ZERO,
    credit: Decimal = ZERO,
    user_id: int | None = None,
    description: str = "",
    is_total: bool = False,
) -> LedgerEntry:
    """Build an unsaved ledger entry."""
    return LedgerEntry(
        account=account,
        user_id=user_id,
        debit=debit,
        credit=credit,
        description=description[:500],
        is_total=is_total,
    )


class LedgerService:
    """Service for ledger transactions.

    Runs inside a caller-owned session (normally a UnitOfWork): it adds and
    flushes but never commits.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # Validation
    # =========================================================================

    @staticmethod
    def validate_entries(entries: Sequence[LedgerEntry], total_amount: Decimal) -> None:
        """Check a transaction's entries before anything is persisted.

        Rules:
        1. At least one entry, no negative amounts
        2. Sum of debits equals sum of credits (tolerance 0.01)
        3. Entries tagged is_total sum to total_amount on both sides

        Raises:
            LedgerUnbalancedError: If any rule is broken
        """
        if not entries:
            raise LedgerUnbalancedError("Transaction has no entries")

        for e in entries:
            if e.debit < 0 or e.credit < 0:
                raise LedgerUnbalancedError(
                    "Entry amounts must not be negative",
                    {"account": e.account.value, "debit": str(e.debit), "credit": str(e.credit)},
                )

        total_debits = sum((e.debit for e in entries), ZERO)
        total_credits = sum((e.credit for e in entries), ZERO)
        if not amounts_match(total_debits, total_credits):
            raise LedgerUnbalancedError(
                "Transaction is not balanced",
                {"debits": str(total_debits), "credits": str(total_credits)},
            )

        total_debit_leg = sum((e.debit for e in entries if e.is_total), ZERO)
        total_credit_leg = sum((e.credit for e in entries if e.is_total), ZERO)
        if not (
            amounts_match(total_debit_leg, total_amount)
            and amounts_match(total_credit_leg, total_amount)
        ):
            raise LedgerUnbalancedError(
                "Total movement does not match transaction total",
                {
                    "total_amount": str(total_amount),
                    "total_debits": str(total_debit_leg),
                    "total_credits": str(total_credit_leg),
                },
            )

    # =========================================================================
    # Creation
    # =========================================================================

    async def create_transaction(
        self,
        *,
        tx_type: TransactionType,
        entries: list[LedgerEntry],
        total_amount: Decimal,
        reference: str,
        status: TransactionStatus = TransactionStatus.COMPLETED,
        fee_amount: Decimal = ZERO,
        vat: VATInfo | None = None,
        commission: CommissionInfo | None = None,
        related_entity_type: RelatedEntityType | None = None,
        related_entity_id: int | None = None,
        idempotency_key: str | None = None,
        transaction_id: str | None = None,
        created_by: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> LedgerTransaction:
        """Validate and persist a transaction with its entries.

        The ledger does not deduplicate; callers look up idempotency_key
        first and pass it here so a retried event cannot insert twice.

        Args:
            tx_type: Transaction type
            entries: Unsaved entries, kept in the given order
            total_amount: Amount of the total movement
            reference: Human readable reference
            status: completed, or pending for workflows needing approval

        Returns:
            Flushed LedgerTransaction

        Raises:
            LedgerUnbalancedError: Entries fail validation
        """
        if status not in (TransactionStatus.COMPLETED, TransactionStatus.PENDING):
            raise InvalidTransitionError(
                f"Transactions are created completed or pending, not {status.value}"
            )

        self.validate_entries(entries, total_amount)

        vat = vat or VATInfo()
        commission = commission or CommissionInfo()

        for position, e in enumerate(entries):
            e.position = position

        txn = LedgerTransaction(
            transaction_id=transaction_id or generate_transaction_id(tx_type),
            reference=reference,
            idempotency_key=idempotency_key,
            type=tx_type,
            total_amount=total_amount,
            fee_amount=fee_amount,
            currency=get_settings().currency,
            vat_rate=vat.rate,
            vat_amount=vat.amount,
            vat_responsibility=vat.responsibility,
            vat_collected=vat.collected,
            platform_rate=commission.platform_rate,
            platform_amount=commission.platform_amount,
            vendor_amount=commission.vendor_amount,
            dispatch_amount=commission.dispatch_amount,
            vendor_shares={str(k): str(v) for k, v in commission.vendor_shares.items()},
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
            status=status,
            created_by=created_by,
            details=details or {},
        )
        txn.entries = entries

        self.db.add(txn)
        await self.db.flush()

        logger.debug(
            f"Ledger transaction {txn.transaction_id} staged: "
            f"type={tx_type.value} total={total_amount} status={status.value}"
        )
        return txn

    # =========================================================================
    # State machine
    # =========================================================================

    def _transition(self, txn: LedgerTransaction, target: TransactionStatus) -> None:
        if target not in ALLOWED_TRANSITIONS.get(txn.status, set()):
            raise InvalidTransitionError(
                f"Cannot move transaction from {txn.status.value} to {target.value}",
                {"transaction_id": txn.transaction_id},
            )
        txn.status = target
        txn.updated_at = utc_now()

    async def mark_completed(
        self,
        txn: LedgerTransaction,
        approved_by: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> LedgerTransaction:
        """pending -> completed, stamping the approver."""
        self._transition(txn, TransactionStatus.COMPLETED)
        if approved_by is not None:
            txn.approved_by = approved_by
            txn.approved_at = utc_now()
        if details:
            txn.details = {**txn.details, **details}
        self.db.add(txn)
        await self.db.flush()
        return txn

    async def mark_failed(self, txn: LedgerTransaction, notes: str | None = None) -> LedgerTransaction:
        """pending -> failed."""
        self._transition(txn, TransactionStatus.FAILED)
        if notes:
            txn.details = {**txn.details, "notes": notes}
        self.db.add(txn)
        await self.db.flush()
        return txn

    async def mark_cancelled(
        self,
        txn: LedgerTransaction,
        actor_id: int | None = None,
        notes: str | None = None,
    ) -> LedgerTransaction:
        """pending -> cancelled."""
        self._transition(txn, TransactionStatus.CANCELLED)
        if actor_id is not None:
            txn.approved_by = actor_id
            txn.approved_at = utc_now()
        if notes:
            txn.details = {**txn.details, "notes": notes}
        self.db.add(txn)
        await self.db.flush()
        return txn

    async def reverse_transaction(
        self,
        txn: LedgerTransaction,
        reason: str,
        actor_id: int | None = None,
    ) -> LedgerTransaction:
        """Reverse a completed transaction in place.

        Every entry has its debit and credit swapped; wallets are not touched.

        Raises:
            InvalidTransitionError: Transaction is not completed
        """
        if txn.status != TransactionStatus.COMPLETED:
            raise InvalidTransitionError(
                "Only completed transactions can be reversed",
                {"transaction_id": txn.transaction_id, "status": txn.status.value},
            )

        for e in txn.entries:
            e.debit, e.credit = e.credit, e.debit
            self.db.add(e)

        self._transition(txn, TransactionStatus.REVERSED)
        txn.reversal_reason = reason[:500]
        txn.reversed_by = actor_id
        txn.reversed_at = utc_now()
        self.db.add(txn)
        await self.db.flush()

        logger.info(f"Reversed transaction {txn.transaction_id}: {reason}")
        return txn

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_by_transaction_id(
        self, transaction_id: str, for_update: bool = False
    ) -> LedgerTransaction | None:
        query = select(LedgerTransaction).where(LedgerTransaction.transaction_id == transaction_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def require_transaction(
        self, transaction_id: str, for_update: bool = False
    ) -> LedgerTransaction:
        """Like get_by_transaction_id but raises NotFoundError."""
        txn = await self.get_by_transaction_id(transaction_id, for_update=for_update)
        if txn is None:
            raise NotFoundError(
                "Transaction not found", {"transaction_id": transaction_id}
            )
        return txn

    async def get_by_idempotency_key(self, key: str) -> LedgerTransaction | None:
        result = await self.db.execute(
            select(LedgerTransaction).where(LedgerTransaction.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    async def find_payment_for_order(self, order_id: int) -> LedgerTransaction | None:
        """Completed payment transaction of an order."""
        result = await self.db.execute(
            select(LedgerTransaction)
            .where(
                LedgerTransaction.type == TransactionType.ORDER_PAYMENT,
                LedgerTransaction.related_entity_type == RelatedEntityType.ORDER,
                LedgerTransaction.related_entity_id == order_id,
                LedgerTransaction.status == TransactionStatus.COMPLETED,
            )
            .order_by(LedgerTransaction.id.desc())  # type: ignore[union-attr]
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_refunds_for_order(self, order_id: int) -> list[LedgerTransaction]:
        """Completed refund transactions of an order, oldest first."""
        result = await self.db.execute(
            select(LedgerTransaction)
            .where(
                LedgerTransaction.type == TransactionType.ORDER_REFUND,
                LedgerTransaction.related_entity_type == RelatedEntityType.ORDER,
                LedgerTransaction.related_entity_id == order_id,
                LedgerTransaction.status == TransactionStatus.COMPLETED,
            )
            .order_by(LedgerTransaction.id)
        )
        return list(result.scalars().all())

    # =========================================================================
    # Reporting
    # =========================================================================

    async def list_user_transactions(
        self,
        user_id: int,
        params: PaginationParams,
        tx_type: TransactionType | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> PaginatedResult[LedgerTransaction]:
        """Transactions with at least one entry owned by the user, newest first."""
        owned = select(LedgerEntry.transaction_pk).where(LedgerEntry.user_id == user_id)
        query = select(LedgerTransaction).where(LedgerTransaction.id.in_(owned))  # type: ignore[union-attr]

        if tx_type:
            query = query.where(LedgerTransaction.type == tx_type)
        if start_date:
            query = query.where(LedgerTransaction.created_at >= start_date)
        if end_date:
            query = query.where(LedgerTransaction.created_at <= end_date)

        query = query.order_by(LedgerTransaction.created_at.desc(), LedgerTransaction.id.desc())  # type: ignore[attr-defined,union-attr]
        items, total = await paginate_query(self.db, query, params)
        return PaginatedResult(items=items, total=total, page=params.page, page_size=params.page_size)

    async def count_user_transactions(
        self, user_id: int, status: TransactionStatus = TransactionStatus.COMPLETED
    ) -> int:
        owned = select(LedgerEntry.transaction_pk).where(LedgerEntry.user_id == user_id)
        result = await self.db.execute(
            select(func.count(LedgerTransaction.id)).where(
                LedgerTransaction.id.in_(owned),  # type: ignore[union-attr]
                LedgerTransaction.status == status,
            )
        )
        return result.scalar() or 0

    async def get_vat_summary(self, start_date: datetime, end_date: datetime) -> list[VATSummaryRow]:
        """VAT collected in [start_date, end_date], grouped by liable party.

        Reversed transactions collected nothing and are left out.
        """
        result = await self.db.execute(
            select(
                LedgerTransaction.vat_responsibility,
                func.sum(LedgerTransaction.vat_amount),
                func.count(LedgerTransaction.id),
                func.sum(LedgerTransaction.total_amount),
            )
            .where(
                LedgerTransaction.vat_collected.is_(True),  # type: ignore[attr-defined]
                LedgerTransaction.status != TransactionStatus.REVERSED,
                LedgerTransaction.created_at >= start_date,
                LedgerTransaction.created_at <= end_date,
            )
            .group_by(LedgerTransaction.vat_responsibility)
        )
        return [
            VATSummaryRow(
                responsibility=VATResponsibility(responsibility),
                total_vat_collected=Decimal(str(vat_total or 0)),
                total_transactions=count,
                total_amount=Decimal(str(amount_total or 0)),
            )
            for responsibility, vat_total, count, amount_total in result.all()
        ]

    async def get_withdrawal_stats(self, start_date: datetime, end_date: datetime) -> WithdrawalStats:
        """Withdrawal counts and amounts by status, plus fees charged."""
        result = await self.db.execute(
            select(
                LedgerTransaction.status,
                func.count(LedgerTransaction.id),
                func.sum(LedgerTransaction.total_amount),
                func.sum(LedgerTransaction.fee_amount),
            )
            .where(
                LedgerTransaction.type == TransactionType.WALLET_WITHDRAWAL,
                LedgerTransaction.created_at >= start_date,
                LedgerTransaction.created_at <= end_date,
            )
            .group_by(LedgerTransaction.status)
        )

        by_status: dict[TransactionStatus, tuple[int, Decimal]] = {}
        total_count = 0
        total_amount = ZERO
        total_fees = ZERO
        for status, count, amount, fees in result.all():
            amount = Decimal(str(amount or 0))
            by_status[TransactionStatus(status)] = (count, amount)
            total_count += count
            total_amount += amount
            total_fees += Decimal(str(fees or 0))

        return WithdrawalStats(
            by_status=by_status,
            total_count=total_count,
            total_amount=total_amount,
            total_fees=total_fees,
        )

    async def list_pending_withdrawals(
        self, params: PaginationParams
    ) -> PaginatedResult[LedgerTransaction]:
        """Withdrawals awaiting admin approval, newest first."""
        query = (
            select(LedgerTransaction)
            .where(
                LedgerTransaction.type == TransactionType.WALLET_WITHDRAWAL,
                LedgerTransaction.status == TransactionStatus.PENDING,
            )
            .order_by(LedgerTransaction.created_at.desc(), LedgerTransaction.id.desc())  # type: ignore[attr-defined,union-attr]
        )
        items, total = await paginate_query(self.db, query, params)
        return PaginatedResult(items=items, total=total, page=params.page, page_size=params.page_size)
