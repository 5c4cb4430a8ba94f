"""Settlement Service - payment capture, refunds and wallet withdrawals.

Each workflow runs in one UnitOfWork: the ledger transaction and every
wallet and order mutation it implies commit together or not at all.
Gateway calls that must not hold a database transaction open (payment
verification, payout transfers) run between units of work.

Workflows:
1. capture_payment: verify with gateway -> split -> ledger -> credit wallets
2. refund_order: scale the original split -> ledger -> claw back wallets
3. request_withdrawal: check limits -> debit wallet -> pending ledger entry
4. approve_withdrawal: claim -> gateway transfer -> mark completed
5. reject_withdrawal: cancel -> credit back -> compensating deposit
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from src.core.config import get_settings
from src.core.exceptions import (
    GatewayFailureError,
    GatewayTimeoutError,
    InsufficientBalanceError,
    InvalidTransitionError,
    NotFoundError,
    PaymentDeclinedError,
    ReconciliationError,
    ValidationError,
    WithdrawalNotAllowedError,
)
from src.db.unit_of_work import SessionFactory, UnitOfWork
from src.models.ledger import (
    LedgerAccount,
    LedgerTransaction,
    RelatedEntityType,
    TransactionStatus,
    TransactionType,
    VATResponsibility,
)
from src.models.order import Order, PaymentStatus
from src.models.user import User
from src.models.wallet import Wallet, WalletStatus
from src.services.commission_service import CommissionCalculator
from src.services.ledger_service import CommissionInfo, LedgerService, VATInfo, entry
from src.services.payment_gateway import BankDetails, GatewayTransfer, PaymentGateway
from src.services.tax_policy_service import TaxPolicyService
from src.services.wallet_service import (
    CLAWBACK,
    EARNING,
    REFUND,
    WITHDRAWAL,
    WalletService,
    wallet_account,
)
from src.utils.amount import ZERO, round_money
from src.utils.helpers import utc_now

logger = logging.getLogger(__name__)

WALLET_ACCOUNTS = (LedgerAccount.WALLET_VENDOR, LedgerAccount.WALLET_DISPATCH)

PAYOUT_CLAIMED_BY = "payout_claimed_by"
PAYOUT_CLAIMED_AT = "payout_claimed_at"


@dataclass
class WithdrawalRejection:
    """Cancelled withdrawal and the deposit that returned its funds."""

    withdrawal: LedgerTransaction
    deposit: LedgerTransaction


def _wallet_owner(txn: LedgerTransaction) -> int:
    """User whose wallet a withdrawal transaction debits."""
    for e in txn.entries:
        if e.account in WALLET_ACCOUNTS and e.user_id is not None:
            return e.user_id
    raise NotFoundError("Withdrawal has no wallet entry", {"transaction_id": txn.transaction_id})


def _replayed(
    existing: LedgerTransaction,
    idempotency_key: str,
    tx_type: TransactionType,
    entity_type: RelatedEntityType,
    entity_id: int,
) -> LedgerTransaction:
    """Return the transaction an idempotency key already produced.

    The key must have been used for the same kind of operation on the same
    order or wallet; anything else is a client error, not a replay.
    """
    if (
        existing.type != tx_type
        or existing.related_entity_type != entity_type
        or existing.related_entity_id != entity_id
    ):
        logger.warning(
            f"Idempotency key {idempotency_key} reused: held by {existing.type.value} "
            f"{existing.transaction_id}, requested {tx_type.value} for {entity_type.value} {entity_id}"
        )
        raise ValidationError(
            "Idempotency key already used for a different operation",
            {
                "idempotency_key": idempotency_key,
                "transaction_id": existing.transaction_id,
            },
        )
    return existing


async def _lock_order(db: AsyncSession, order_id: int) -> Order:
    result = await db.execute(select(Order).where(Order.id == order_id).with_for_update())
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found", {"order_id": order_id})
    return order


class SettlementService:
    """Orchestrates settlement workflows over ledger, wallets and gateway."""

    def __init__(self, gateway: PaymentGateway, session_factory: SessionFactory | None = None):
        self.gateway = gateway
        self.session_factory = session_factory
        self.settings = get_settings()

    def _uow(self) -> UnitOfWork:
        return UnitOfWork(self.session_factory)

    # =========================================================================
    # Payment capture
    # =========================================================================

    async def capture_payment(
        self,
        order_id: int,
        payment_reference: str,
        idempotency_key: str | None = None,
    ) -> LedgerTransaction:
        """Settle a customer payment for an order.

        Verifies the payment with the gateway first. A declined payment
        (or one short of the order total) marks the order failed and writes
        no ledger rows.

        A retry with the same idempotency key, or a capture of an order that
        is already paid, returns the existing transaction.

        Returns:
            Completed order_payment transaction

        Raises:
            NotFoundError: Unknown order
            PaymentDeclinedError: Gateway did not confirm the payment
            TaxPolicyMissingError: No tax policy in force
            GatewayTimeoutError / GatewayFailureError: Verification failed
        """
        idempotency_key = idempotency_key or f"order_payment:{order_id}"

        async with self._uow() as uow:
            existing = await self._existing_capture(uow.session, order_id, idempotency_key)
            if existing is not None:
                return existing
            order = await uow.session.get(Order, order_id)
            if order is None:
                raise NotFoundError("Order not found", {"order_id": order_id})
            if order.payment_status not in (PaymentStatus.PENDING, PaymentStatus.FAILED):
                raise InvalidTransitionError(
                    f"Order payment is {order.payment_status.value}", {"order_id": order_id}
                )
            expected_amount = order.total_amount

        verification = await self.gateway.verify(payment_reference)

        if not verification.successful or verification.amount < expected_amount:
            async with self._uow() as uow:
                order = await _lock_order(uow.session, order_id)
                if order.payment_status == PaymentStatus.PENDING:
                    order.payment_status = PaymentStatus.FAILED
                    order.payment_reference = payment_reference
                    order.updated_at = utc_now()
                    uow.session.add(order)
            logger.warning(
                f"Payment declined for order {order_id}: ref={payment_reference} "
                f"successful={verification.successful} amount={verification.amount}"
            )
            raise PaymentDeclinedError(
                "Payment was not confirmed by the gateway",
                {"order_id": order_id, "payment_reference": payment_reference},
            )

        async with self._uow() as uow:
            db = uow.session
            ledger = LedgerService(db)
            wallets = WalletService(db)

            order = await _lock_order(db, order_id)
            existing = await self._existing_capture(db, order_id, idempotency_key)
            if existing is not None:
                return existing

            now = utc_now()
            resolver = await TaxPolicyService(db).get_resolver(now)
            breakdown = CommissionCalculator.compute(
                order.lines, order.delivery_fee, order.delivery_agent_id
            )

            total = order.total_amount
            vendor_id = order.primary_vendor_id
            vendor = await db.get(User, vendor_id) if vendor_id is not None else None
            vat_rate = resolver.get_rate(order.vat_category_code)
            vat_amount = resolver.calculate_vat(total, order.vat_category_code)
            responsibility = resolver.resolve_responsibility(vendor, total)

            entries = [
                entry(
                    LedgerAccount.CASH,
                    debit=total,
                    user_id=order.customer_id,
                    description=f"Order payment for order {order.order_no}",
                    is_total=True,
                ),
                entry(
                    LedgerAccount.ACCOUNTS_RECEIVABLE,
                    credit=total,
                    user_id=order.customer_id,
                    description=f"Receivable from customer for order {order.order_no}",
                    is_total=True,
                ),
            ]

            if breakdown.platform_amount > 0:
                entries += [
                    entry(
                        LedgerAccount.COMMISSION_REVENUE,
                        debit=breakdown.platform_amount,
                        description=f"Platform commission from order {order.order_no}",
                    ),
                    entry(
                        LedgerAccount.ACCOUNTS_PAYABLE,
                        credit=breakdown.platform_amount,
                        description="Platform commission payable",
                    ),
                ]

            credits: list[tuple[Wallet, Decimal]] = []
            for share_vendor_id, share in breakdown.vendor_shares.items():
                wallet = await wallets.get_or_create_wallet(share_vendor_id)
                credits.append((wallet, share))
                entries += [
                    entry(
                        LedgerAccount.COMMISSION_PAYABLE,
                        debit=share,
                        user_id=share_vendor_id,
                        description=f"Vendor earnings for order {order.order_no}",
                    ),
                    entry(
                        wallet_account(wallet),
                        credit=share,
                        user_id=share_vendor_id,
                        description=f"Vendor wallet credit for order {order.order_no}",
                    ),
                ]

            if breakdown.dispatch_amount > 0 and breakdown.dispatch_agent_id is not None:
                wallet = await wallets.get_or_create_wallet(breakdown.dispatch_agent_id)
                credits.append((wallet, breakdown.dispatch_amount))
                entries += [
                    entry(
                        LedgerAccount.COMMISSION_PAYABLE,
                        debit=breakdown.dispatch_amount,
                        user_id=breakdown.dispatch_agent_id,
                        description=f"Dispatch earnings for order {order.order_no}",
                    ),
                    entry(
                        wallet_account(wallet),
                        credit=breakdown.dispatch_amount,
                        user_id=breakdown.dispatch_agent_id,
                        description=f"Dispatch wallet credit for order {order.order_no}",
                    ),
                ]

            if vat_amount > 0:
                entries += [
                    entry(
                        LedgerAccount.VAT_PAYABLE,
                        debit=vat_amount,
                        user_id=vendor_id if responsibility == VATResponsibility.VENDOR else None,
                        description=f"VAT collected for order {order.order_no}",
                    ),
                    entry(
                        LedgerAccount.VAT_REVENUE,
                        credit=vat_amount,
                        description=f"VAT revenue from order {order.order_no}",
                    ),
                ]

            txn = await ledger.create_transaction(
                tx_type=TransactionType.ORDER_PAYMENT,
                entries=entries,
                total_amount=total,
                reference=f"Order-{order.id}",
                idempotency_key=idempotency_key,
                vat=VATInfo(
                    rate=vat_rate,
                    amount=vat_amount,
                    responsibility=responsibility,
                    collected=vat_amount > 0,
                ),
                commission=CommissionInfo(
                    platform_rate=breakdown.platform_rate,
                    platform_amount=breakdown.platform_amount,
                    vendor_amount=breakdown.vendor_amount,
                    dispatch_amount=breakdown.dispatch_amount,
                    vendor_shares=breakdown.vendor_shares,
                ),
                related_entity_type=RelatedEntityType.ORDER,
                related_entity_id=order.id,
                created_by=order.customer_id,
                details={
                    "payment_method": verification.payment_method or "card",
                    "payment_reference": payment_reference,
                    "external_transaction_id": verification.transaction_id,
                    "notes": f"Order payment processed with VAT responsibility: {responsibility.value}",
                },
            )

            for wallet, amount in credits:
                wallets.credit(wallet, amount, EARNING)

            order.payment_status = PaymentStatus.PAID
            order.payment_reference = payment_reference
            order.payment_transaction_id = txn.transaction_id
            order.paid_at = now
            order.updated_at = now
            db.add(order)

        logger.info(
            f"Captured payment {txn.transaction_id} for order {order_id}: "
            f"total={total} vat={vat_amount} ({responsibility.value})"
        )
        return txn

    async def _existing_capture(
        self, db: AsyncSession, order_id: int, idempotency_key: str
    ) -> LedgerTransaction | None:
        ledger = LedgerService(db)
        existing = await ledger.get_by_idempotency_key(idempotency_key)
        if existing is not None:
            return _replayed(
                existing,
                idempotency_key,
                TransactionType.ORDER_PAYMENT,
                RelatedEntityType.ORDER,
                order_id,
            )
        return await ledger.find_payment_for_order(order_id)

    # =========================================================================
    # Refund
    # =========================================================================

    async def refund_order(
        self,
        order_id: int,
        refund_amount: Decimal,
        reason: str,
        actor_id: int | None = None,
        idempotency_key: str | None = None,
        issue_gateway_refund: bool = True,
    ) -> LedgerTransaction:
        """Refund (part of) a captured order.

        Every component of the original split is scaled by
        refund_amount / original total. The refund that completes the full
        amount takes exactly the remaining components, so refunds of an
        order always add up to the original split.

        Beneficiary wallets are debited their scaled share. A wallet that
        cannot cover its share aborts the refund with ReconciliationError.

        The gateway refund, when requested, runs after all ledger and wallet
        changes are flushed and before the commit; its failure rolls back.

        Raises:
            NotFoundError: Unknown order or no captured payment
            ValidationError: Amount not positive or above the refundable rest
            ReconciliationError: A wallet cannot cover its clawback
        """
        amount = round_money(refund_amount)
        if amount <= 0:
            raise ValidationError("Refund amount must be positive", {"amount": str(amount)})

        async with self._uow() as uow:
            db = uow.session
            ledger = LedgerService(db)
            wallets = WalletService(db)

            if idempotency_key:
                existing = await ledger.get_by_idempotency_key(idempotency_key)
                if existing is not None:
                    return _replayed(
                        existing,
                        idempotency_key,
                        TransactionType.ORDER_REFUND,
                        RelatedEntityType.ORDER,
                        order_id,
                    )

            order = await _lock_order(db, order_id)
            original = await ledger.find_payment_for_order(order.id)
            if original is None:
                raise NotFoundError("Original payment not found", {"order_id": order_id})

            previous = await ledger.list_refunds_for_order(order.id)
            refunded = sum((r.total_amount for r in previous), ZERO)
            refundable = original.total_amount - refunded
            if amount > refundable:
                raise ValidationError(
                    f"Refund exceeds refundable amount of {refundable}",
                    {"requested": str(amount), "refundable": str(refundable)},
                )

            is_final = amount == refundable
            ratio = amount / original.total_amount

            def scaled(original_value: Decimal, refunded_value: Decimal) -> Decimal:
                remaining = original_value - refunded_value
                if is_final:
                    return remaining
                return min(round_money(original_value * ratio), remaining)

            platform_refund = scaled(
                original.platform_amount, sum((r.platform_amount for r in previous), ZERO)
            )
            dispatch_refund = scaled(
                original.dispatch_amount, sum((r.dispatch_amount for r in previous), ZERO)
            )
            vat_refund = scaled(original.vat_amount, sum((r.vat_amount for r in previous), ZERO))
            vendor_refunds: dict[int, Decimal] = {}
            for key in original.vendor_shares:
                vid = int(key)
                vendor_refunds[vid] = scaled(
                    original.vendor_share(vid),
                    sum((r.vendor_share(vid) for r in previous), ZERO),
                )

            entries = [
                entry(
                    LedgerAccount.ACCOUNTS_RECEIVABLE,
                    debit=amount,
                    user_id=order.customer_id,
                    description=f"Refund for order {order.order_no}",
                    is_total=True,
                ),
                entry(
                    LedgerAccount.CASH,
                    credit=amount,
                    user_id=order.customer_id,
                    description="Refund payment to customer",
                    is_total=True,
                ),
            ]

            if platform_refund > 0:
                entries += [
                    entry(
                        LedgerAccount.ACCOUNTS_PAYABLE,
                        debit=platform_refund,
                        description="Platform commission refund payable",
                    ),
                    entry(
                        LedgerAccount.COMMISSION_REVENUE,
                        credit=platform_refund,
                        description="Platform commission reversal for refund",
                    ),
                ]

            debits: list[tuple[int, Decimal]] = []
            for vid, share in vendor_refunds.items():
                if share <= 0:
                    continue
                wallet = await wallets.get_wallet(vid, for_update=True)
                debits.append((vid, share))
                entries += [
                    entry(
                        wallet_account(wallet) if wallet else LedgerAccount.WALLET_VENDOR,
                        debit=share,
                        user_id=vid,
                        description=f"Vendor refund for order {order.order_no}",
                    ),
                    entry(
                        LedgerAccount.COMMISSION_PAYABLE,
                        credit=share,
                        user_id=vid,
                        description="Vendor commission reversal",
                    ),
                ]

            if dispatch_refund > 0 and order.delivery_agent_id is not None:
                wallet = await wallets.get_wallet(order.delivery_agent_id, for_update=True)
                debits.append((order.delivery_agent_id, dispatch_refund))
                entries += [
                    entry(
                        wallet_account(wallet) if wallet else LedgerAccount.WALLET_DISPATCH,
                        debit=dispatch_refund,
                        user_id=order.delivery_agent_id,
                        description=f"Dispatch refund for order {order.order_no}",
                    ),
                    entry(
                        LedgerAccount.COMMISSION_PAYABLE,
                        credit=dispatch_refund,
                        user_id=order.delivery_agent_id,
                        description="Dispatch commission reversal",
                    ),
                ]

            if vat_refund > 0:
                vat_party = (
                    order.primary_vendor_id
                    if original.vat_responsibility == VATResponsibility.VENDOR
                    else None
                )
                entries += [
                    entry(
                        LedgerAccount.VAT_REVENUE,
                        debit=vat_refund,
                        description="VAT revenue reversal",
                    ),
                    entry(
                        LedgerAccount.VAT_PAYABLE,
                        credit=vat_refund,
                        user_id=vat_party,
                        description="VAT reversal for refund",
                    ),
                ]

            txn = await ledger.create_transaction(
                tx_type=TransactionType.ORDER_REFUND,
                entries=entries,
                total_amount=amount,
                reference=f"Refund-{order.id}",
                idempotency_key=idempotency_key,
                vat=VATInfo(
                    rate=original.vat_rate,
                    amount=vat_refund,
                    responsibility=original.vat_responsibility,
                ),
                commission=CommissionInfo(
                    platform_rate=original.platform_rate,
                    platform_amount=platform_refund,
                    vendor_amount=sum(vendor_refunds.values(), ZERO),
                    dispatch_amount=dispatch_refund,
                    vendor_shares={vid: s for vid, s in vendor_refunds.items() if s > 0},
                ),
                related_entity_type=RelatedEntityType.ORDER,
                related_entity_id=order.id,
                created_by=actor_id,
                details={
                    "notes": reason,
                    "original_transaction_id": original.transaction_id,
                },
            )

            for user_id, share in debits:
                await self._claw_back(wallets, user_id, share, order.id)

            order.refunded_amount = order.refunded_amount + amount
            order.payment_status = (
                PaymentStatus.REFUNDED if is_final else PaymentStatus.PARTIALLY_REFUNDED
            )
            order.updated_at = utc_now()
            db.add(order)
            await db.flush()

            if issue_gateway_refund:
                gateway_ref = original.details.get("external_transaction_id") or order.payment_reference
                result = await self.gateway.refund(gateway_ref, amount)
                if not result.successful:
                    raise GatewayFailureError(
                        result.message or "Gateway refused the refund",
                        {"order_id": order.id},
                    )
                txn.details = {**txn.details, "external_transaction_id": result.refund_id}
                db.add(txn)

        logger.info(
            f"Refunded {amount} on order {order_id} as {txn.transaction_id} "
            f"({'full' if is_final else 'partial'})"
        )
        return txn

    async def _claw_back(
        self, wallets: WalletService, user_id: int, amount: Decimal, order_id: int
    ) -> None:
        wallet = await wallets.get_wallet(user_id, for_update=True)
        available = wallet.balance if wallet else ZERO
        if wallet is None or wallet.balance < amount:
            logger.error(
                f"Reconciliation exception: wallet of user {user_id} cannot cover "
                f"refund clawback {amount} for order {order_id} (balance {available})"
            )
            raise ReconciliationError(
                required=amount,
                available=available,
                message="Wallet cannot cover refund clawback",
                details={"user_id": user_id, "order_id": order_id},
            )
        wallets.debit(wallet, amount, CLAWBACK)

    # =========================================================================
    # Withdrawals
    # =========================================================================

    async def request_withdrawal(
        self,
        user_id: int,
        amount: Decimal,
        idempotency_key: str | None = None,
    ) -> LedgerTransaction:
        """Debit amount + fee from a wallet and queue the payout for approval.

        Balance and limits are read under a row lock in the same unit of
        work that debits the wallet.

        Example: amount 100,000 -> fee 1,000 -> wallet debited 101,000

        Raises:
            WithdrawalNotAllowedError: Inactive wallet, no bank account, limit exceeded
            InsufficientBalanceError: Balance (less minimum balance) below amount + fee
        """
        amount = round_money(amount)
        if amount <= 0:
            raise ValidationError("Withdrawal amount must be positive", {"amount": str(amount)})

        async with self._uow() as uow:
            db = uow.session
            ledger = LedgerService(db)
            wallets = WalletService(db)

            wallet = await wallets.lock_wallet(user_id)
            if idempotency_key:
                existing = await ledger.get_by_idempotency_key(idempotency_key)
                if existing is not None:
                    return _replayed(
                        existing,
                        idempotency_key,
                        TransactionType.WALLET_WITHDRAWAL,
                        RelatedEntityType.WITHDRAWAL,
                        wallet.id,
                    )

            if wallet.status != WalletStatus.ACTIVE:
                raise WithdrawalNotAllowedError(
                    f"Wallet is {wallet.status.value}", {"user_id": user_id}
                )
            if not wallet.has_bank_account:
                raise WithdrawalNotAllowedError(
                    "Add a bank account before withdrawing", {"user_id": user_id}
                )

            fee = wallets.calculate_withdrawal_fee(amount)
            total = amount + fee
            now = utc_now()

            if not wallets.can_withdraw(wallet, total, at=now):
                logger.warning(
                    f"Withdrawal limit exceeded for user {user_id}: requested {total}, "
                    f"daily {wallet.daily_withdrawn_amount}/{wallet.daily_withdrawal_limit}, "
                    f"monthly {wallet.monthly_withdrawn_amount}/{wallet.monthly_withdrawal_limit}"
                )
                raise WithdrawalNotAllowedError(
                    "Withdrawal limit exceeded",
                    {
                        "user_id": user_id,
                        "requested": str(total),
                        "daily_used": str(wallet.daily_withdrawn_amount),
                        "daily_limit": str(wallet.daily_withdrawal_limit),
                    },
                )

            if wallet.balance - total < wallet.minimum_balance:
                logger.warning(f"Insufficient balance for withdrawal by user {user_id}")
                raise InsufficientBalanceError(
                    required=total + wallet.minimum_balance,
                    available=wallet.balance,
                    details={"user_id": user_id},
                )

            account = wallet_account(wallet)
            entries = [
                entry(
                    LedgerAccount.ACCOUNTS_PAYABLE,
                    debit=amount,
                    user_id=user_id,
                    description=f"Withdrawal to {wallet.bank_name or wallet.bank_code}",
                    is_total=True,
                ),
                entry(
                    account,
                    credit=amount,
                    user_id=user_id,
                    description="Wallet withdrawal",
                    is_total=True,
                ),
                entry(
                    LedgerAccount.BANK_TRANSFER_FEES,
                    debit=fee,
                    user_id=user_id,
                    description="Withdrawal processing fee",
                ),
                entry(account, credit=fee, user_id=user_id, description="Fee deduction"),
            ]

            wallets.debit(wallet, total, WITHDRAWAL, at=now)

            txn = await ledger.create_transaction(
                tx_type=TransactionType.WALLET_WITHDRAWAL,
                entries=entries,
                total_amount=amount,
                fee_amount=fee,
                reference=f"Withdrawal-{wallet.id}",
                status=TransactionStatus.PENDING,
                idempotency_key=idempotency_key,
                related_entity_type=RelatedEntityType.WITHDRAWAL,
                related_entity_id=wallet.id,
                created_by=user_id,
                details={
                    "payment_method": "bank_transfer",
                    "bank_reference": wallet.bank_account_number,
                    "notes": f"Withdrawal request for {amount} {wallet.currency}",
                },
            )

        logger.info(
            f"Withdrawal {txn.transaction_id} requested by user {user_id}: "
            f"amount={amount} fee={fee}"
        )
        return txn

    async def approve_withdrawal(self, transaction_id: str, admin_id: int) -> LedgerTransaction:
        """Pay out a pending withdrawal and mark it completed.

        The withdrawal is claimed under a row lock before the transfer, and
        a claimed withdrawal cannot be rejected. The transfer itself runs
        outside any database transaction.

        A definite gateway failure releases the claim so the withdrawal can
        be retried or rejected. A timeout keeps it: the payout may still
        land, so only another approval attempt may proceed.

        Raises:
            InvalidTransitionError: Withdrawal is not pending
            GatewayTimeoutError / GatewayFailureError: Transfer failed
            ReconciliationError: Transfer went out but the withdrawal left
                pending meanwhile
        """
        async with self._uow() as uow:
            db = uow.session
            txn = await LedgerService(db).require_transaction(transaction_id, for_update=True)
            self._ensure_pending_withdrawal(txn)
            owner_id = _wallet_owner(txn)
            wallet = await WalletService(db).get_wallet(owner_id)
            if wallet is None or not wallet.has_bank_account:
                raise WithdrawalNotAllowedError(
                    "Wallet has no bank account", {"transaction_id": transaction_id}
                )
            bank = BankDetails(
                account_number=wallet.bank_account_number,  # type: ignore[arg-type]
                bank_code=wallet.bank_code,  # type: ignore[arg-type]
                account_name=wallet.bank_account_name,
            )
            amount = txn.total_amount
            txn.details = {
                **txn.details,
                PAYOUT_CLAIMED_BY: admin_id,
                PAYOUT_CLAIMED_AT: utc_now().isoformat(),
            }
            db.add(txn)

        try:
            transfer = await self._transfer(bank, amount, transaction_id)
        except GatewayFailureError:
            await self._release_claim(transaction_id)
            raise

        transfer_id = transfer.transfer_id or transfer.reference
        async with self._uow() as uow:
            ledger = LedgerService(uow.session)
            txn = await ledger.require_transaction(transaction_id, for_update=True)
            settled_elsewhere = txn.status != TransactionStatus.PENDING
            if settled_elsewhere:
                txn.details = {**txn.details, "orphan_transfer_id": transfer_id}
                uow.session.add(txn)
            else:
                await ledger.mark_completed(
                    txn,
                    approved_by=admin_id,
                    details={
                        "external_transaction_id": transfer_id,
                        "notes": "Withdrawal approved and processed via payment gateway",
                    },
                )

        if settled_elsewhere:
            logger.error(
                f"Reconciliation exception: transfer {transfer_id} paid out withdrawal "
                f"{transaction_id} which is now {txn.status.value}"
            )
            raise ReconciliationError(
                message="Payout sent for a withdrawal that is no longer pending",
                details={
                    "transaction_id": transaction_id,
                    "transfer_id": transfer_id,
                    "status": txn.status.value,
                },
            )

        logger.info(f"Withdrawal {transaction_id} approved by admin {admin_id}: amount={amount}")
        return txn

    async def _release_claim(self, transaction_id: str) -> None:
        async with self._uow() as uow:
            txn = await LedgerService(uow.session).require_transaction(
                transaction_id, for_update=True
            )
            txn.details = {
                k: v
                for k, v in txn.details.items()
                if k not in (PAYOUT_CLAIMED_BY, PAYOUT_CLAIMED_AT)
            }
            uow.session.add(txn)
        logger.info(f"Payout claim on withdrawal {transaction_id} released after transfer failure")

    async def _transfer(self, bank: BankDetails, amount: Decimal, transaction_id: str) -> GatewayTransfer:
        reference = f"WD_{transaction_id}"
        try:
            async with asyncio.timeout(self.settings.gateway_timeout_seconds):
                transfer = await self.gateway.transfer(
                    bank,
                    amount,
                    reference,
                    narration=f"Wallet withdrawal - {transaction_id}",
                )
        except TimeoutError as e:
            logger.error(f"Transfer timed out for withdrawal {transaction_id}")
            raise GatewayTimeoutError(
                "Payment gateway timed out", {"transaction_id": transaction_id}
            ) from e

        if not transfer.successful:
            logger.error(f"Transfer failed for withdrawal {transaction_id}: {transfer.message}")
            raise GatewayFailureError(
                transfer.message or "Transfer initiation failed",
                {"transaction_id": transaction_id},
            )
        return transfer

    async def reject_withdrawal(
        self, transaction_id: str, admin_id: int, reason: str | None = None
    ) -> WithdrawalRejection:
        """Cancel a pending withdrawal and return amount + fee to the wallet.

        The credit is recorded as a completed wallet_deposit that references
        the cancelled withdrawal. Rolling withdrawal counters keep the
        cancelled amount.

        A withdrawal claimed by an approval in flight cannot be rejected.
        """
        reason = reason or "No reason provided"

        async with self._uow() as uow:
            db = uow.session
            ledger = LedgerService(db)
            wallets = WalletService(db)

            txn = await ledger.require_transaction(transaction_id, for_update=True)
            self._ensure_pending_withdrawal(txn)
            if txn.details.get(PAYOUT_CLAIMED_AT):
                raise InvalidTransitionError(
                    "Withdrawal payout is in progress",
                    {
                        "transaction_id": transaction_id,
                        "claimed_by": txn.details.get(PAYOUT_CLAIMED_BY),
                    },
                )
            owner_id = _wallet_owner(txn)
            wallet = await wallets.lock_wallet(owner_id)

            await ledger.mark_cancelled(
                txn, actor_id=admin_id, notes=f"Withdrawal rejected: {reason}"
            )

            refund_total = txn.total_amount + txn.fee_amount
            account = wallet_account(wallet)
            deposit = await ledger.create_transaction(
                tx_type=TransactionType.WALLET_DEPOSIT,
                entries=[
                    entry(
                        account,
                        credit=refund_total,
                        user_id=owner_id,
                        description=f"Refund for rejected withdrawal {transaction_id}",
                        is_total=True,
                    ),
                    entry(
                        LedgerAccount.CASH,
                        debit=refund_total,
                        user_id=owner_id,
                        description="Refund payment",
                        is_total=True,
                    ),
                ],
                total_amount=refund_total,
                reference=f"Reversal-{transaction_id}",
                related_entity_type=RelatedEntityType.WITHDRAWAL,
                related_entity_id=txn.id,
                created_by=admin_id,
                details={
                    "payment_method": "refund",
                    "notes": f"Refund for rejected withdrawal: {reason}",
                    "original_transaction_id": transaction_id,
                },
            )

            wallets.credit(wallet, refund_total, REFUND)

        logger.info(
            f"Withdrawal {transaction_id} rejected by admin {admin_id}, "
            f"{refund_total} returned as {deposit.transaction_id}"
        )
        return WithdrawalRejection(withdrawal=txn, deposit=deposit)

    @staticmethod
    def _ensure_pending_withdrawal(txn: LedgerTransaction) -> None:
        if txn.type != TransactionType.WALLET_WITHDRAWAL:
            raise ValidationError(
                "Transaction is not a withdrawal", {"transaction_id": txn.transaction_id}
            )
        if txn.status != TransactionStatus.PENDING:
            raise InvalidTransitionError(
                "Withdrawal already processed",
                {"transaction_id": txn.transaction_id, "status": txn.status.value},
            )

    # =========================================================================
    # Reversal
    # =========================================================================

    async def reverse_transaction(
        self, transaction_id: str, reason: str, actor_id: int
    ) -> LedgerTransaction:
        """Structurally reverse a completed transaction (admin).

        Wallet balances are not changed.
        """
        async with self._uow() as uow:
            ledger = LedgerService(uow.session)
            txn = await ledger.require_transaction(transaction_id, for_update=True)
            await ledger.reverse_transaction(txn, reason, actor_id)
        return txn
