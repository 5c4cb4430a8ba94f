"""Models module - SQLModel database entities."""

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
from src.models.order import Order, OrderLine, PaymentStatus, generate_order_no
from src.models.tax_policy import (
    RemittanceFrequency,
    TaxCategory,
    TaxPolicy,
    TaxPolicyStatus,
)
from src.models.user import User, UserRole
from src.models.wallet import Wallet, WalletStatus, WalletType

__all__ = [
    # User
    "User",
    "UserRole",
    # Order
    "Order",
    "OrderLine",
    "PaymentStatus",
    "generate_order_no",
    # Ledger
    "LedgerTransaction",
    "LedgerEntry",
    "LedgerAccount",
    "TransactionType",
    "TransactionStatus",
    "VATResponsibility",
    "RelatedEntityType",
    "generate_transaction_id",
    # Wallet
    "Wallet",
    "WalletType",
    "WalletStatus",
    # Tax policy
    "TaxPolicy",
    "TaxCategory",
    "TaxPolicyStatus",
    "RemittanceFrequency",
]
