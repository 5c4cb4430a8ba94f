"""Schemas module - Pydantic DTOs for request/response."""

from src.schemas.ledger import (
    LedgerEntryResponse,
    LedgerTransactionListResponse,
    LedgerTransactionResponse,
    ReverseTransactionRequest,
    VATSummaryResponse,
    WithdrawalStatsResponse,
)
from src.schemas.payment import CapturePaymentRequest, CaptureQueuedResponse, RefundRequest
from src.schemas.tax_policy import TaxCategoryBase, TaxPolicyCreate, TaxPolicyResponse
from src.schemas.wallet import (
    BankAccountUpdate,
    BankResponse,
    ResolveAccountRequest,
    ResolvedAccountResponse,
    WalletResponse,
    WalletStatsResponse,
    WithdrawalListResponse,
    WithdrawalRejectRequest,
    WithdrawalRejectResponse,
    WithdrawalRequest,
    WithdrawalResponse,
)

__all__: list[str] = [
    # Ledger
    "LedgerEntryResponse",
    "LedgerTransactionResponse",
    "LedgerTransactionListResponse",
    "ReverseTransactionRequest",
    "VATSummaryResponse",
    "WithdrawalStatsResponse",
    # Payment
    "CapturePaymentRequest",
    "CaptureQueuedResponse",
    "RefundRequest",
    # Tax policy
    "TaxCategoryBase",
    "TaxPolicyCreate",
    "TaxPolicyResponse",
    # Wallet
    "WalletResponse",
    "WalletStatsResponse",
    "BankAccountUpdate",
    "WithdrawalRequest",
    "WithdrawalRejectRequest",
    "WithdrawalResponse",
    "WithdrawalListResponse",
    "WithdrawalRejectResponse",
    # Banks
    "BankResponse",
    "ResolveAccountRequest",
    "ResolvedAccountResponse",
]
