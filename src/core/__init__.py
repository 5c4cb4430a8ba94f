"""Core module - configuration and exceptions."""

from src.core.config import Settings, get_settings
from src.core.exceptions import (
    GatewayError,
    GatewayFailureError,
    GatewayTimeoutError,
    InsufficientBalanceError,
    InvalidTransitionError,
    LedgerUnbalancedError,
    NotFoundError,
    PaymentDeclinedError,
    ReconciliationError,
    SettlementError,
    TaxPolicyMissingError,
    ValidationError,
    WithdrawalNotAllowedError,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Exceptions
    "SettlementError",
    "ValidationError",
    "NotFoundError",
    "LedgerUnbalancedError",
    "InsufficientBalanceError",
    "ReconciliationError",
    "TaxPolicyMissingError",
    "InvalidTransitionError",
    "WithdrawalNotAllowedError",
    "PaymentDeclinedError",
    "GatewayError",
    "GatewayTimeoutError",
    "GatewayFailureError",
]
