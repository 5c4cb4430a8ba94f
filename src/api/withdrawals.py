"""Withdrawals API - admin review of pending withdrawals."""

from datetime import datetime, timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import AdminUser, Settlement, raise_http_error
from src.core.exceptions import SettlementError
from src.db import get_db
from src.models.ledger import LedgerAccount, LedgerTransaction
from src.schemas.ledger import (
    LedgerTransactionResponse,
    WithdrawalStatsResponse,
    WithdrawalStatusBreakdown,
)
from src.schemas.wallet import (
    WithdrawalListResponse,
    WithdrawalRejectRequest,
    WithdrawalRejectResponse,
    WithdrawalResponse,
)
from src.services.ledger_service import LedgerService
from src.utils.helpers import utc_now
from src.utils.pagination import PaginationParams

router = APIRouter()


def to_withdrawal_response(txn: LedgerTransaction) -> WithdrawalResponse:
    owner = next(
        (
            e.user_id
            for e in txn.entries
            if e.account in (LedgerAccount.WALLET_VENDOR, LedgerAccount.WALLET_DISPATCH)
        ),
        None,
    )
    return WithdrawalResponse(
        transaction_id=txn.transaction_id,
        reference=txn.reference,
        user_id=owner,
        amount=txn.total_amount,
        fee=txn.fee_amount,
        total_deduction=txn.total_amount + txn.fee_amount,
        status=txn.status.value,
        bank_reference=txn.details.get("bank_reference"),
        created_at=txn.created_at,
    )


@router.get("/pending", response_model=WithdrawalListResponse)
async def list_pending_withdrawals(
    admin: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Page size"),
) -> WithdrawalListResponse:
    """Withdrawals awaiting approval, newest first."""
    result = await LedgerService(db).list_pending_withdrawals(
        PaginationParams(page=page, page_size=page_size)
    )
    return WithdrawalListResponse(
        items=[to_withdrawal_response(txn) for txn in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        has_more=result.has_more,
    )


@router.get("/stats", response_model=WithdrawalStatsResponse)
async def get_withdrawal_stats(
    admin: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    start_date: datetime | None = Query(None, description="Defaults to 30 days ago"),
    end_date: datetime | None = Query(None, description="Defaults to now"),
) -> WithdrawalStatsResponse:
    """Withdrawal counts, amounts and fees by status."""
    end = end_date or utc_now()
    start = start_date or end - timedelta(days=30)
    stats = await LedgerService(db).get_withdrawal_stats(start, end)
    return WithdrawalStatsResponse(
        start_date=start,
        end_date=end,
        status_breakdown=[
            WithdrawalStatusBreakdown(status=status, count=count, total_amount=amount)
            for status, (count, amount) in stats.by_status.items()
        ],
        total_count=stats.total_count,
        total_amount=stats.total_amount,
        total_fees=stats.total_fees,
    )


@router.post("/{transaction_id}/approve", response_model=LedgerTransactionResponse)
async def approve_withdrawal(
    transaction_id: str,
    admin: AdminUser,
    settlement: Settlement,
) -> LedgerTransactionResponse:
    """Pay out a pending withdrawal.

    On gateway timeout the withdrawal stays pending and can be approved again.
    """
    try:
        txn = await settlement.approve_withdrawal(transaction_id, admin.id)  # type: ignore[arg-type]
    except SettlementError as e:
        raise_http_error(e)
    return LedgerTransactionResponse.model_validate(txn)


@router.post("/{transaction_id}/approve-async")
async def approve_withdrawal_async(transaction_id: str, admin: AdminUser) -> dict:
    """Queue the payout; the task retries while the gateway is unavailable."""
    from src.tasks.settlement import approve_withdrawal as approve_task

    task = approve_task.delay(transaction_id, admin.id)
    return {"task_id": task.id, "transaction_id": transaction_id}


@router.post("/{transaction_id}/reject", response_model=WithdrawalRejectResponse)
async def reject_withdrawal(
    transaction_id: str,
    data: WithdrawalRejectRequest,
    admin: AdminUser,
    settlement: Settlement,
) -> WithdrawalRejectResponse:
    """Cancel a pending withdrawal and return amount + fee to the wallet."""
    try:
        result = await settlement.reject_withdrawal(transaction_id, admin.id, data.reason)  # type: ignore[arg-type]
    except SettlementError as e:
        raise_http_error(e)
    return WithdrawalRejectResponse(
        transaction_id=result.withdrawal.transaction_id,
        refund_amount=result.deposit.total_amount,
        status=result.withdrawal.status.value,
        reversal_transaction_id=result.deposit.transaction_id,
    )
