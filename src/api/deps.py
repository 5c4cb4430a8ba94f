"""Common FastAPI dependencies for API endpoints."""

from typing import Annotated, NoReturn

from fastapi import Depends, HTTPException

from src.api.auth import get_current_user, require_role
from src.core.exceptions import (
    GatewayError,
    InsufficientBalanceError,
    InvalidTransitionError,
    NotFoundError,
    PaymentDeclinedError,
    ReconciliationError,
    SettlementError,
    ValidationError,
    WithdrawalNotAllowedError,
)
from src.core.redis import get_redis
from src.models.user import User, UserRole
from src.services.bank_directory_service import BankDirectoryService
from src.services.payment_gateway import FlutterwaveGateway, PaymentGateway
from src.services.settlement_service import SettlementService
from src.utils.cache import RedisReadThroughCache

# Gateway client shared across requests (one httpx connection pool)
_gateway: FlutterwaveGateway | None = None


def get_gateway() -> PaymentGateway:
    global _gateway
    if _gateway is None:
        _gateway = FlutterwaveGateway()
    return _gateway


async def close_gateway() -> None:
    global _gateway
    if _gateway is not None:
        await _gateway.close()
        _gateway = None


def get_settlement_service(
    gateway: Annotated[PaymentGateway, Depends(get_gateway)],
) -> SettlementService:
    return SettlementService(gateway)


def get_bank_directory(
    gateway: Annotated[PaymentGateway, Depends(get_gateway)],
) -> BankDirectoryService:
    return BankDirectoryService(gateway, RedisReadThroughCache(get_redis()))


# HTTP status per error class; first match wins so subclasses come first
_STATUS_CODES: list[tuple[type[SettlementError], int]] = [
    (NotFoundError, 404),
    (ValidationError, 400),
    (ReconciliationError, 409),
    (InsufficientBalanceError, 400),
    (WithdrawalNotAllowedError, 400),
    (InvalidTransitionError, 409),
    (PaymentDeclinedError, 402),
    (GatewayError, 502),
]


def raise_http_error(error: SettlementError) -> NoReturn:
    """Re-raise a settlement error as HTTPException with its public message."""
    status_code = next((code for cls, code in _STATUS_CODES if isinstance(error, cls)), 500)
    raise HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": error.public_message},
    ) from error


# ============ Type Aliases for Common Dependencies ============

# Authenticated user
CurrentUser = Annotated[User, Depends(get_current_user)]

# Vendors and dispatch agents own wallets
WalletOwner = Annotated[User, Depends(require_role(UserRole.VENDOR, UserRole.DISPATCH))]

# Platform administrators
AdminUser = Annotated[User, Depends(require_role(UserRole.ADMIN))]

Settlement = Annotated[SettlementService, Depends(get_settlement_service)]
BankDirectory = Annotated[BankDirectoryService, Depends(get_bank_directory)]
