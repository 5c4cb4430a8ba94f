"""Marketplace Settlement Engine - Custom exceptions.

Every error carries a stable ``code`` for callers and a ``public_message``
that is safe to show to end users (no ledger account names).
"""

from decimal import Decimal
from typing import Any


class SettlementError(Exception):
    """Base exception for all settlement errors."""

    code = "settlement_error"
    public_message = "The operation could not be completed"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(SettlementError):
    """Input validation failed."""

    code = "validation_error"

    @property
    def public_message(self) -> str:  # type: ignore[override]
        return self.message


class NotFoundError(SettlementError):
    """Referenced entity does not exist."""

    code = "not_found"
    public_message = "The requested record was not found"


class LedgerUnbalancedError(SettlementError):
    """Entries do not balance or do not add up to the transaction total.

    This is a programming error in entry construction, never retried.
    """

    code = "ledger_unbalanced"


class InsufficientBalanceError(SettlementError):
    """Wallet balance cannot cover the requested deduction."""

    code = "insufficient_balance"
    public_message = "Insufficient wallet balance"

    def __init__(
        self,
        required: Decimal | None = None,
        available: Decimal | None = None,
        message: str = "Insufficient wallet balance",
        details: dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if required is not None:
            details["required"] = str(required)
        if available is not None:
            details["available"] = str(available)
        super().__init__(message, details)


class ReconciliationError(InsufficientBalanceError):
    """Money moved (or must move) in a way the ledger cannot record.

    Raised when a refund clawback exceeds a wallet balance, or when a payout
    transfer lands on a withdrawal that is no longer pending.
    """

    code = "reconciliation_exception"
    public_message = "The operation could not be settled and has been flagged for review"


class TaxPolicyMissingError(SettlementError):
    """No active tax policy resolves for the settlement time."""

    code = "tax_policy_missing"


class InvalidTransitionError(SettlementError):
    """Transaction status change not permitted by the state machine."""

    code = "invalid_transition"
    public_message = "The transaction is not in a state that allows this action"


class WithdrawalNotAllowedError(SettlementError):
    """Wallet is inactive, has no bank account, or its limits are exhausted."""

    code = "withdrawal_not_allowed"

    @property
    def public_message(self) -> str:  # type: ignore[override]
        return self.message


class PaymentDeclinedError(SettlementError):
    """Gateway reported the payment as not successful."""

    code = "payment_declined"
    public_message = "The payment was not successful"


class GatewayError(SettlementError):
    """Payment gateway interaction error."""

    code = "gateway_error"
    public_message = "The payment provider could not process the request, please retry"


class GatewayTimeoutError(GatewayError):
    """Gateway did not answer in time. Safe to retry."""

    code = "gateway_timeout"


class GatewayFailureError(GatewayError):
    """Gateway rejected the request or answered with an error."""

    code = "gateway_failure"
