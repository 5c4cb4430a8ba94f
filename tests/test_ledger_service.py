"""Tests for ledger validation, persistence, state machine and reporting."""

from datetime import timedelta
from decimal import Decimal

import pytest

from src.core.exceptions import InvalidTransitionError, LedgerUnbalancedError
from src.models.ledger import (
    LedgerAccount,
    RelatedEntityType,
    TransactionStatus,
    TransactionType,
    VATResponsibility,
)
from src.services.ledger_service import LedgerService, VATInfo, entry
from src.utils.helpers import utc_now
from src.utils.pagination import PaginationParams


def payment_entries(amount: str = "100", user_id: int | None = None) -> list:
    return [
        entry(LedgerAccount.CASH, debit=Decimal(amount), user_id=user_id, is_total=True),
        entry(
            LedgerAccount.ACCOUNTS_RECEIVABLE, credit=Decimal(amount), user_id=user_id, is_total=True
        ),
    ]


class TestValidateEntries:
    def test_balanced_entries_pass(self):
        entries = payment_entries() + [
            entry(LedgerAccount.COMMISSION_REVENUE, debit=Decimal("7.5")),
            entry(LedgerAccount.ACCOUNTS_PAYABLE, credit=Decimal("7.5")),
        ]
        LedgerService.validate_entries(entries, Decimal("100"))

    def test_empty_entries_rejected(self):
        with pytest.raises(LedgerUnbalancedError):
            LedgerService.validate_entries([], Decimal("0"))

    def test_unbalanced_rejected(self):
        entries = [
            entry(LedgerAccount.CASH, debit=Decimal("100"), is_total=True),
            entry(LedgerAccount.ACCOUNTS_RECEIVABLE, credit=Decimal("99.98"), is_total=True),
        ]
        with pytest.raises(LedgerUnbalancedError) as exc_info:
            LedgerService.validate_entries(entries, Decimal("100"))
        assert exc_info.value.code == "ledger_unbalanced"

    def test_one_cent_tolerance(self):
        entries = [
            entry(LedgerAccount.CASH, debit=Decimal("100"), is_total=True),
            entry(LedgerAccount.ACCOUNTS_RECEIVABLE, credit=Decimal("99.99"), is_total=True),
        ]
        LedgerService.validate_entries(entries, Decimal("100"))

    def test_negative_amount_rejected(self):
        entries = [
            entry(LedgerAccount.CASH, debit=Decimal("-5"), is_total=True),
            entry(LedgerAccount.ACCOUNTS_RECEIVABLE, credit=Decimal("-5"), is_total=True),
        ]
        with pytest.raises(LedgerUnbalancedError):
            LedgerService.validate_entries(entries, Decimal("-5"))

    def test_total_leg_must_match_total_amount(self):
        # Balanced, but the tagged movement is 100 while the total claims 120
        with pytest.raises(LedgerUnbalancedError):
            LedgerService.validate_entries(payment_entries("100"), Decimal("120"))

    def test_untagged_entries_do_not_count_towards_total(self):
        entries = [
            entry(LedgerAccount.CASH, debit=Decimal("100")),
            entry(LedgerAccount.ACCOUNTS_RECEIVABLE, credit=Decimal("100")),
        ]
        with pytest.raises(LedgerUnbalancedError):
            LedgerService.validate_entries(entries, Decimal("100"))


class TestCreateTransaction:
    async def test_persists_with_ordered_entries(self, session):
        ledger = LedgerService(session)
        txn = await ledger.create_transaction(
            tx_type=TransactionType.ORDER_PAYMENT,
            entries=payment_entries("250"),
            total_amount=Decimal("250"),
            reference="Order-1",
            vat=VATInfo(rate=Decimal("7.5"), amount=Decimal("18.75"), collected=True),
            related_entity_type=RelatedEntityType.ORDER,
            related_entity_id=1,
        )
        await session.commit()

        assert txn.transaction_id.startswith("ORD_")
        assert txn.status == TransactionStatus.COMPLETED
        assert [e.position for e in txn.entries] == [0, 1]
        assert txn.is_balanced

        loaded = await ledger.get_by_transaction_id(txn.transaction_id)
        assert loaded is not None
        assert loaded.vat_amount == Decimal("18.75")
        assert [e.account for e in loaded.entries] == [
            LedgerAccount.CASH,
            LedgerAccount.ACCOUNTS_RECEIVABLE,
        ]

    async def test_unbalanced_transaction_writes_nothing(self, session):
        ledger = LedgerService(session)
        with pytest.raises(LedgerUnbalancedError):
            await ledger.create_transaction(
                tx_type=TransactionType.ADJUSTMENT,
                entries=[entry(LedgerAccount.CASH, debit=Decimal("10"), is_total=True)],
                total_amount=Decimal("10"),
                reference="Adjustment",
            )
        assert await ledger.count_user_transactions(1) == 0

    async def test_cannot_create_in_terminal_status(self, session):
        with pytest.raises(InvalidTransitionError):
            await LedgerService(session).create_transaction(
                tx_type=TransactionType.ADJUSTMENT,
                entries=payment_entries(),
                total_amount=Decimal("100"),
                reference="Adjustment",
                status=TransactionStatus.REVERSED,
            )

    async def test_lookup_by_idempotency_key(self, session):
        ledger = LedgerService(session)
        txn = await ledger.create_transaction(
            tx_type=TransactionType.ORDER_PAYMENT,
            entries=payment_entries(),
            total_amount=Decimal("100"),
            reference="Order-9",
            idempotency_key="order_payment:9",
        )
        assert await ledger.get_by_idempotency_key("order_payment:9") is txn
        assert await ledger.get_by_idempotency_key("order_payment:10") is None


class TestStateMachine:
    async def _pending(self, session):
        return await LedgerService(session).create_transaction(
            tx_type=TransactionType.WALLET_WITHDRAWAL,
            entries=payment_entries(),
            total_amount=Decimal("100"),
            reference="Withdrawal-1",
            status=TransactionStatus.PENDING,
        )

    async def test_pending_to_completed(self, session):
        txn = await self._pending(session)
        await LedgerService(session).mark_completed(txn, approved_by=4, details={"x": "y"})
        assert txn.status == TransactionStatus.COMPLETED
        assert txn.approved_by == 4
        assert txn.approved_at is not None
        assert txn.details["x"] == "y"

    async def test_pending_to_failed_and_cancelled(self, session):
        ledger = LedgerService(session)
        failed = await self._pending(session)
        await ledger.mark_failed(failed, notes="bank rejected")
        assert failed.status == TransactionStatus.FAILED

        cancelled = await self._pending(session)
        await ledger.mark_cancelled(cancelled, actor_id=4, notes="rejected")
        assert cancelled.status == TransactionStatus.CANCELLED
        assert cancelled.details["notes"] == "rejected"

    async def test_terminal_states_do_not_move(self, session):
        ledger = LedgerService(session)
        txn = await self._pending(session)
        await ledger.mark_cancelled(txn)

        with pytest.raises(InvalidTransitionError):
            await ledger.mark_completed(txn)
        with pytest.raises(InvalidTransitionError):
            await ledger.mark_failed(txn)

    async def test_reverse_swaps_every_entry(self, session):
        ledger = LedgerService(session)
        txn = await ledger.create_transaction(
            tx_type=TransactionType.ORDER_PAYMENT,
            entries=payment_entries("80"),
            total_amount=Decimal("80"),
            reference="Order-2",
        )
        before = [(e.debit, e.credit) for e in txn.entries]

        await ledger.reverse_transaction(txn, "Duplicate posting", actor_id=4)

        assert txn.status == TransactionStatus.REVERSED
        assert [(e.credit, e.debit) for e in txn.entries] == before
        assert txn.reversal_reason == "Duplicate posting"
        assert txn.reversed_by == 4
        assert txn.reversed_at is not None
        assert txn.is_balanced

    async def test_reverse_only_completed(self, session):
        ledger = LedgerService(session)
        txn = await self._pending(session)
        with pytest.raises(InvalidTransitionError):
            await ledger.reverse_transaction(txn, "nope")

        completed = await ledger.create_transaction(
            tx_type=TransactionType.ORDER_PAYMENT,
            entries=payment_entries(),
            total_amount=Decimal("100"),
            reference="Order-3",
        )
        await ledger.reverse_transaction(completed, "first")
        with pytest.raises(InvalidTransitionError):
            await ledger.reverse_transaction(completed, "second")


class TestReporting:
    async def test_user_history_is_paginated_and_filtered(self, session, users):
        ledger = LedgerService(session)
        vendor_id = users["vendor"].id
        for i in range(3):
            await ledger.create_transaction(
                tx_type=TransactionType.ORDER_PAYMENT,
                entries=payment_entries(str(100 + i), user_id=vendor_id),
                total_amount=Decimal(100 + i),
                reference=f"Order-{i}",
            )
        await ledger.create_transaction(
            tx_type=TransactionType.WALLET_WITHDRAWAL,
            entries=payment_entries("50", user_id=vendor_id),
            total_amount=Decimal("50"),
            reference="Withdrawal-1",
            status=TransactionStatus.PENDING,
        )
        # Someone else's transaction
        await ledger.create_transaction(
            tx_type=TransactionType.ORDER_PAYMENT,
            entries=payment_entries("70", user_id=users["customer"].id),
            total_amount=Decimal("70"),
            reference="Order-x",
        )
        await session.commit()

        page = await ledger.list_user_transactions(vendor_id, PaginationParams(page=1, page_size=3))
        assert page.total == 4
        assert len(page.items) == 3
        assert page.has_more

        payments = await ledger.list_user_transactions(
            vendor_id, PaginationParams(), tx_type=TransactionType.ORDER_PAYMENT
        )
        assert payments.total == 3
        assert not payments.has_more

        future = await ledger.list_user_transactions(
            vendor_id, PaginationParams(), start_date=utc_now() + timedelta(days=1)
        )
        assert future.total == 0

        assert await ledger.count_user_transactions(vendor_id) == 3

    async def test_vat_summary_groups_by_responsibility(self, session):
        ledger = LedgerService(session)
        for amount, vat, responsibility in [
            ("1000", "75", VATResponsibility.PLATFORM),
            ("2000", "150", VATResponsibility.PLATFORM),
            ("4000", "300", VATResponsibility.VENDOR),
        ]:
            await ledger.create_transaction(
                tx_type=TransactionType.ORDER_PAYMENT,
                entries=payment_entries(amount),
                total_amount=Decimal(amount),
                reference="Order",
                vat=VATInfo(
                    rate=Decimal("7.5"),
                    amount=Decimal(vat),
                    responsibility=responsibility,
                    collected=True,
                ),
            )
        await session.commit()

        now = utc_now()
        rows = await ledger.get_vat_summary(now - timedelta(days=1), now + timedelta(days=1))
        by_party = {row.responsibility: row for row in rows}

        assert by_party[VATResponsibility.PLATFORM].total_vat_collected == Decimal("225")
        assert by_party[VATResponsibility.PLATFORM].total_transactions == 2
        assert by_party[VATResponsibility.VENDOR].total_amount == Decimal("4000")

    async def test_vat_summary_skips_reversed_transactions(self, session):
        ledger = LedgerService(session)
        vat = VATInfo(
            rate=Decimal("7.5"),
            amount=Decimal("75"),
            responsibility=VATResponsibility.PLATFORM,
            collected=True,
        )
        kept = await ledger.create_transaction(
            tx_type=TransactionType.ORDER_PAYMENT,
            entries=payment_entries("1000"),
            total_amount=Decimal("1000"),
            reference="Order-1",
            vat=vat,
        )
        reversed_txn = await ledger.create_transaction(
            tx_type=TransactionType.ORDER_PAYMENT,
            entries=payment_entries("1000"),
            total_amount=Decimal("1000"),
            reference="Order-2",
            vat=vat,
        )
        await ledger.reverse_transaction(reversed_txn, "Duplicate capture")
        await session.commit()

        now = utc_now()
        rows = await ledger.get_vat_summary(now - timedelta(days=1), now + timedelta(days=1))

        assert len(rows) == 1
        assert rows[0].total_transactions == 1
        assert rows[0].total_vat_collected == Decimal("75")
        assert rows[0].total_amount == kept.total_amount

    async def test_withdrawal_stats_and_pending_listing(self, session):
        ledger = LedgerService(session)
        txns = []
        for amount in ("100", "200", "300"):
            txns.append(
                await ledger.create_transaction(
                    tx_type=TransactionType.WALLET_WITHDRAWAL,
                    entries=payment_entries(amount),
                    total_amount=Decimal(amount),
                    fee_amount=Decimal("100"),
                    reference="Withdrawal",
                    status=TransactionStatus.PENDING,
                )
            )
        await ledger.mark_completed(txns[0])
        await session.commit()

        now = utc_now()
        stats = await ledger.get_withdrawal_stats(now - timedelta(days=1), now + timedelta(days=1))
        assert stats.total_count == 3
        assert stats.total_amount == Decimal("600")
        assert stats.total_fees == Decimal("300")
        assert stats.by_status[TransactionStatus.PENDING] == (2, Decimal("500"))
        assert stats.by_status[TransactionStatus.COMPLETED] == (1, Decimal("100"))

        pending = await ledger.list_pending_withdrawals(PaginationParams())
        assert pending.total == 2
        assert {t.transaction_id for t in pending.items} == {
            txns[1].transaction_id,
            txns[2].transaction_id,
        }
