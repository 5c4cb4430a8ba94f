"""Tests for order refunds: proportional reversal, clawbacks and rollback."""

from decimal import Decimal

import pytest
from sqlmodel import select

from src.core.exceptions import (
    GatewayFailureError,
    NotFoundError,
    ReconciliationError,
    ValidationError,
)
from src.models.ledger import LedgerAccount, LedgerTransaction, TransactionType
from src.models.order import Order, PaymentStatus
from src.models.user import User, UserRole
from src.models.wallet import Wallet, WalletType
from tests.conftest import create_order, load_wallet


async def list_refunds(session_factory) -> list[LedgerTransaction]:
    async with session_factory() as session:
        result = await session.execute(
            select(LedgerTransaction)
            .where(LedgerTransaction.type == TransactionType.ORDER_REFUND)
            .order_by(LedgerTransaction.id)
        )
        return list(result.scalars().all())


async def load_order(session_factory, order_id: int) -> Order:
    async with session_factory() as session:
        return await session.get(Order, order_id)


async def set_balance(session_factory, user_id: int, balance: str) -> None:
    async with session_factory() as session:
        result = await session.execute(select(Wallet).where(Wallet.user_id == user_id))
        wallet = result.scalar_one()
        wallet.balance = Decimal(balance)
        session.add(wallet)
        await session.commit()


class TestFullRefund:
    async def test_full_refund_reverses_every_component(
        self, settlement, gateway, session_factory, paid_order, users
    ):
        txn = await settlement.refund_order(paid_order.id, Decimal("10750"), "Customer cancelled")

        assert txn.type == TransactionType.ORDER_REFUND
        assert txn.total_amount == Decimal("10750")
        assert txn.platform_amount == Decimal("675")
        assert txn.vendor_amount == Decimal("9000")
        assert txn.dispatch_amount == Decimal("1075")
        assert txn.vat_amount == Decimal("806.25")
        assert txn.reference == f"Refund-{paid_order.id}"
        assert txn.details["notes"] == "Customer cancelled"
        assert txn.details["external_transaction_id"] == "rfd-1"
        assert txn.is_balanced

        assert gateway.refunds == [("flw-FLW-REF-1", Decimal("10750"))]
        assert (await load_wallet(session_factory, users["vendor"].id)).balance == Decimal("0")
        assert (await load_wallet(session_factory, users["rider"].id)).balance == Decimal("0")

        order = await load_order(session_factory, paid_order.id)
        assert order.payment_status == PaymentStatus.REFUNDED
        assert order.refunded_amount == Decimal("10750")

    async def test_refund_without_gateway_call(
        self, settlement, gateway, session_factory, paid_order
    ):
        txn = await settlement.refund_order(
            paid_order.id, Decimal("10750"), "Refunded offline", issue_gateway_refund=False
        )

        assert gateway.refunds == []
        assert "external_transaction_id" not in txn.details
        order = await load_order(session_factory, paid_order.id)
        assert order.payment_status == PaymentStatus.REFUNDED


    async def test_courier_with_vendor_wallet_is_debited_on_its_account(
        self, settlement, gateway, session_factory, users, tax_policy
    ):
        courier = User(clerk_id="user_courier", email="courier@example.com", role=UserRole.VENDOR)
        async with session_factory() as session:
            session.add(courier)
            await session.commit()
        order = await create_order(
            session_factory,
            users["customer"],
            [(users["vendor"], "9000", "9675", 1)],
            delivery_fee="1075",
            rider=courier,
        )
        gateway.confirm_payment("FLW-REF-3", Decimal("10750"))
        capture = await settlement.capture_payment(order.id, "FLW-REF-3")
        assert (await load_wallet(session_factory, courier.id)).wallet_type == WalletType.VENDOR

        refund = await settlement.refund_order(order.id, Decimal("10750"), "Cancelled")

        courier_debit = next(e for e in refund.entries if e.user_id == courier.id and e.debit > 0)
        assert courier_debit.account == LedgerAccount.WALLET_VENDOR
        assert courier_debit.debit == Decimal("1075")
        assert not [e for e in refund.entries if e.account == LedgerAccount.WALLET_DISPATCH]

        # The courier's wallet account nets to zero across capture and refund
        net: dict[LedgerAccount, Decimal] = {}
        for e in capture.entries + refund.entries:
            if e.user_id == courier.id:
                net[e.account] = net.get(e.account, Decimal("0")) + e.credit - e.debit
        assert all(v == 0 for v in net.values())
        assert (await load_wallet(session_factory, courier.id)).balance == Decimal("0")

class TestPartialRefunds:
    async def test_half_refund_scales_the_split(
        self, settlement, session_factory, paid_order, users
    ):
        txn = await settlement.refund_order(paid_order.id, Decimal("5375"), "Item missing")

        assert txn.platform_amount == Decimal("337.50")
        assert txn.vendor_amount == Decimal("4500")
        assert txn.dispatch_amount == Decimal("537.50")
        assert txn.vat_amount == Decimal("403.13")
        assert txn.vendor_share(users["vendor"].id) == Decimal("4500")

        assert (await load_wallet(session_factory, users["vendor"].id)).balance == Decimal("4500")
        order = await load_order(session_factory, paid_order.id)
        assert order.payment_status == PaymentStatus.PARTIALLY_REFUNDED
        assert order.refunded_amount == Decimal("5375")

    async def test_final_refund_takes_the_remainder(
        self, settlement, session_factory, paid_order, users
    ):
        await settlement.refund_order(paid_order.id, Decimal("5375"), "First half")
        last = await settlement.refund_order(paid_order.id, Decimal("5375"), "Second half")

        # Rounding of the first refund is absorbed by the last one
        assert last.vat_amount == Decimal("403.12")
        refunds = await list_refunds(session_factory)
        assert sum(r.vat_amount for r in refunds) == Decimal("806.25")
        assert sum(r.platform_amount for r in refunds) == Decimal("675")
        assert sum(r.dispatch_amount for r in refunds) == Decimal("1075")

        assert (await load_wallet(session_factory, users["vendor"].id)).balance == Decimal("0")
        assert (await load_wallet(session_factory, users["rider"].id)).balance == Decimal("0")
        order = await load_order(session_factory, paid_order.id)
        assert order.payment_status == PaymentStatus.REFUNDED

    async def test_refund_beyond_refundable_rest(self, settlement, paid_order):
        await settlement.refund_order(paid_order.id, Decimal("5375"), "First half")

        with pytest.raises(ValidationError) as exc_info:
            await settlement.refund_order(paid_order.id, Decimal("6000"), "Too much")
        assert Decimal(exc_info.value.details["refundable"]) == Decimal("5375")

    async def test_refund_above_total(self, settlement, session_factory, paid_order):
        with pytest.raises(ValidationError):
            await settlement.refund_order(paid_order.id, Decimal("10750.01"), "Too much")
        assert await list_refunds(session_factory) == []

    async def test_non_positive_amount(self, settlement, paid_order):
        with pytest.raises(ValidationError):
            await settlement.refund_order(paid_order.id, Decimal("0"), "Nothing")

    async def test_idempotency_key_returns_first_refund(
        self, settlement, gateway, session_factory, paid_order, users
    ):
        first = await settlement.refund_order(
            paid_order.id, Decimal("1000"), "Late delivery", idempotency_key="refund-77"
        )
        second = await settlement.refund_order(
            paid_order.id, Decimal("1000"), "Late delivery", idempotency_key="refund-77"
        )

        assert first.transaction_id == second.transaction_id
        assert len(await list_refunds(session_factory)) == 1
        assert len(gateway.refunds) == 1


    async def test_capture_key_cannot_be_reused_for_refund(
        self, settlement, gateway, session_factory, paid_order
    ):
        with pytest.raises(ValidationError) as exc_info:
            await settlement.refund_order(
                paid_order.id,
                Decimal("1000"),
                "Late delivery",
                idempotency_key=f"order_payment:{paid_order.id}",
            )

        assert exc_info.value.message == "Idempotency key already used for a different operation"
        assert await list_refunds(session_factory) == []
        assert gateway.refunds == []

class TestRefundFailures:
    async def test_unpaid_order_has_nothing_to_refund(self, settlement, order):
        with pytest.raises(NotFoundError):
            await settlement.refund_order(order.id, Decimal("100"), "Not paid")

    async def test_drained_wallet_raises_reconciliation_error(
        self, settlement, session_factory, paid_order, users, caplog
    ):
        # Vendor already withdrew most of the earnings
        await set_balance(session_factory, users["vendor"].id, "100")

        with pytest.raises(ReconciliationError) as exc_info:
            await settlement.refund_order(paid_order.id, Decimal("10750"), "Chargeback")

        assert exc_info.value.code == "reconciliation_exception"
        assert "Reconciliation exception" in caplog.text
        assert await list_refunds(session_factory) == []
        # Nothing from the aborted refund is kept
        assert (await load_wallet(session_factory, users["rider"].id)).balance == Decimal("1075")
        order = await load_order(session_factory, paid_order.id)
        assert order.payment_status == PaymentStatus.PAID
        assert order.refunded_amount == Decimal("0")

    async def test_gateway_refusal_rolls_back(
        self, settlement, gateway, session_factory, paid_order, users
    ):
        gateway.refund_successful = False

        with pytest.raises(GatewayFailureError) as exc_info:
            await settlement.refund_order(paid_order.id, Decimal("10750"), "Cancelled")

        assert exc_info.value.message == "Refund window closed"
        assert await list_refunds(session_factory) == []
        assert (await load_wallet(session_factory, users["vendor"].id)).balance == Decimal("9000")
        order = await load_order(session_factory, paid_order.id)
        assert order.payment_status == PaymentStatus.PAID
