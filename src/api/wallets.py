"""Wallets API - wallet overview, bank account and withdrawal requests."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import BankDirectory, Settlement, WalletOwner, raise_http_error
from src.api.withdrawals import to_withdrawal_response
from src.core.exceptions import NotFoundError, SettlementError
from src.db import UnitOfWork, get_db
from src.models.ledger import TransactionType
from src.schemas.ledger import LedgerTransactionResponse
from src.schemas.wallet import (
    BankAccountUpdate,
    WalletResponse,
    WalletStatsResponse,
    WithdrawalListResponse,
    WithdrawalRequest,
    WithdrawalResponse,
)
from src.services.ledger_service import LedgerService
from src.services.wallet_service import WalletService
from src.utils.pagination import PaginationParams

router = APIRouter()


def get_wallet_service(db: Annotated[AsyncSession, Depends(get_db)]) -> WalletService:
    """Get wallet service instance."""
    return WalletService(db)


@router.get("/me", response_model=WalletResponse)
async def get_my_wallet(
    user: WalletOwner,
    service: Annotated[WalletService, Depends(get_wallet_service)],
) -> WalletResponse:
    """Get the current user's wallet."""
    wallet = await service.get_wallet(user.id)  # type: ignore[arg-type]
    if wallet is None:
        raise_http_error(NotFoundError("Wallet not found"))
    return WalletResponse.model_validate(wallet)


@router.get("/me/stats", response_model=WalletStatsResponse)
async def get_my_wallet_stats(
    user: WalletOwner,
    service: Annotated[WalletService, Depends(get_wallet_service)],
) -> WalletStatsResponse:
    """Balance, lifetime totals and withdrawal limit usage."""
    try:
        stats = await service.get_wallet_stats(user.id)  # type: ignore[arg-type]
    except SettlementError as e:
        raise_http_error(e)
    return WalletStatsResponse.model_validate(stats)


@router.put("/me/bank-account", response_model=WalletResponse)
async def update_bank_account(user: WalletOwner, data: BankAccountUpdate) -> WalletResponse:
    """Replace the payout bank account. The new account starts unverified."""
    try:
        async with UnitOfWork() as uow:
            wallet = await WalletService(uow.session).update_bank_account(
                user.id,  # type: ignore[arg-type]
                account_name=data.account_name,
                account_number=data.account_number,
                bank_code=data.bank_code,
                bank_name=data.bank_name,
            )
    except SettlementError as e:
        raise_http_error(e)
    return WalletResponse.model_validate(wallet)


@router.post("/me/bank-account/verify", response_model=WalletResponse)
async def verify_bank_account(user: WalletOwner, directory: BankDirectory) -> WalletResponse:
    """Resolve the account holder name with the gateway and mark verified."""
    try:
        async with UnitOfWork() as uow:
            wallet = await WalletService(uow.session).verify_bank_account(user.id, directory)  # type: ignore[arg-type]
    except SettlementError as e:
        raise_http_error(e)
    return WalletResponse.model_validate(wallet)


@router.post("/me/withdrawals", response_model=LedgerTransactionResponse)
async def request_withdrawal(
    user: WalletOwner,
    data: WithdrawalRequest,
    settlement: Settlement,
) -> LedgerTransactionResponse:
    """Request a withdrawal; the wallet is debited amount + fee immediately."""
    try:
        txn = await settlement.request_withdrawal(user.id, data.amount, data.idempotency_key)  # type: ignore[arg-type]
    except SettlementError as e:
        raise_http_error(e)
    return LedgerTransactionResponse.model_validate(txn)


@router.get("/me/withdrawals", response_model=WithdrawalListResponse)
async def list_my_withdrawals(
    user: WalletOwner,
    db: Annotated[AsyncSession, Depends(get_db)],
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Page size"),
) -> WithdrawalListResponse:
    """Withdrawal history of the current user."""
    result = await LedgerService(db).list_user_transactions(
        user.id,  # type: ignore[arg-type]
        PaginationParams(page=page, page_size=page_size),
        tx_type=TransactionType.WALLET_WITHDRAWAL,
    )
    items: list[WithdrawalResponse] = [to_withdrawal_response(txn) for txn in result.items]
    return WithdrawalListResponse(
        items=items,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        has_more=result.has_more,
    )
