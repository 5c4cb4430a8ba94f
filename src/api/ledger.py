"""Ledger API - transaction history, VAT summary and reversals."""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import AdminUser, CurrentUser, Settlement, raise_http_error
from src.core.exceptions import NotFoundError, SettlementError
from src.db import get_db
from src.models.ledger import TransactionType
from src.schemas.ledger import (
    LedgerTransactionListResponse,
    LedgerTransactionResponse,
    ReverseTransactionRequest,
    VATSummaryItem,
    VATSummaryResponse,
)
from src.services.ledger_service import LedgerService
from src.utils.helpers import utc_now
from src.utils.pagination import PaginationParams

router = APIRouter(prefix="/ledger", tags=["Ledger"])


def get_ledger_service(db: Annotated[AsyncSession, Depends(get_db)]) -> LedgerService:
    """Get ledger service instance."""
    return LedgerService(db)


@router.get("/transactions", response_model=LedgerTransactionListResponse)
async def list_my_transactions(
    user: CurrentUser,
    service: Annotated[LedgerService, Depends(get_ledger_service)],
    type: TransactionType | None = Query(None, description="Filter by transaction type"),
    start_date: datetime | None = Query(None, description="Filter by start date"),
    end_date: datetime | None = Query(None, description="Filter by end date"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Page size"),
) -> LedgerTransactionListResponse:
    """Transactions with an entry owned by the current user."""
    result = await service.list_user_transactions(
        user.id,  # type: ignore[arg-type]
        PaginationParams(page=page, page_size=page_size),
        tx_type=type,
        start_date=start_date,
        end_date=end_date,
    )
    return LedgerTransactionListResponse(
        items=[LedgerTransactionResponse.model_validate(t) for t in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        has_more=result.has_more,
    )


@router.get("/transactions/{transaction_id}", response_model=LedgerTransactionResponse)
async def get_transaction(
    transaction_id: str,
    user: CurrentUser,
    service: Annotated[LedgerService, Depends(get_ledger_service)],
) -> LedgerTransactionResponse:
    """Transaction detail; non-admins only see transactions they take part in."""
    txn = await service.get_by_transaction_id(transaction_id)
    if txn is None or (not user.is_admin and all(e.user_id != user.id for e in txn.entries)):
        raise_http_error(NotFoundError("Transaction not found"))
    return LedgerTransactionResponse.model_validate(txn)


@router.post("/transactions/{transaction_id}/reverse", response_model=LedgerTransactionResponse)
async def reverse_transaction(
    transaction_id: str,
    data: ReverseTransactionRequest,
    admin: AdminUser,
    settlement: Settlement,
) -> LedgerTransactionResponse:
    """Reverse a completed transaction (admin only). Wallets are not changed."""
    try:
        txn = await settlement.reverse_transaction(transaction_id, data.reason, admin.id)  # type: ignore[arg-type]
    except SettlementError as e:
        raise_http_error(e)
    return LedgerTransactionResponse.model_validate(txn)


@router.get("/vat-summary", response_model=VATSummaryResponse)
async def get_vat_summary(
    admin: AdminUser,
    service: Annotated[LedgerService, Depends(get_ledger_service)],
    start_date: datetime | None = Query(None, description="Defaults to 30 days ago"),
    end_date: datetime | None = Query(None, description="Defaults to now"),
) -> VATSummaryResponse:
    """VAT collected in a period, grouped by liable party (admin only)."""
    end = end_date or utc_now()
    start = start_date or end - timedelta(days=30)
    rows = await service.get_vat_summary(start, end)
    return VATSummaryResponse(
        start_date=start,
        end_date=end,
        summary=[
            VATSummaryItem(
                responsibility=row.responsibility,
                total_vat_collected=row.total_vat_collected,
                total_transactions=row.total_transactions,
                total_amount=row.total_amount,
            )
            for row in rows
        ],
        total_vat_collected=sum((row.total_vat_collected for row in rows), Decimal("0")),
        total_transactions=sum(row.total_transactions for row in rows),
    )
