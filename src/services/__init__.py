"""Settlement service layer.

Pure calculators (tax policy, commission), session-bound services (ledger,
wallets, tax policies) and the settlement orchestrator that combines them
inside units of work.
"""

from src.services.bank_directory_service import BankDirectoryService
from src.services.commission_service import CommissionBreakdown, CommissionCalculator
from src.services.ledger_service import LedgerService
from src.services.payment_gateway import FlutterwaveGateway, PaymentGateway
from src.services.settlement_service import SettlementService
from src.services.tax_policy_service import TaxPolicyResolver, TaxPolicyService
from src.services.wallet_service import WalletService

__all__ = [
    "BankDirectoryService",
    "CommissionBreakdown",
    "CommissionCalculator",
    "FlutterwaveGateway",
    "LedgerService",
    "PaymentGateway",
    "SettlementService",
    "TaxPolicyResolver",
    "TaxPolicyService",
    "WalletService",
]
