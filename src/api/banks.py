"""Banks API - payout bank directory."""

from fastapi import APIRouter, Query

from src.api.deps import BankDirectory, CurrentUser, raise_http_error
from src.core.exceptions import SettlementError
from src.schemas.wallet import BankResponse, ResolveAccountRequest, ResolvedAccountResponse

router = APIRouter()


@router.get("", response_model=list[BankResponse])
async def list_banks(
    user: CurrentUser,
    directory: BankDirectory,
    country: str = Query("NG", min_length=2, max_length=2),
) -> list[BankResponse]:
    """Banks available for payouts."""
    try:
        banks = await directory.list_banks(country)
    except SettlementError as e:
        raise_http_error(e)
    return [BankResponse(code=b.code, name=b.name) for b in banks]


@router.post("/resolve", response_model=ResolvedAccountResponse)
async def resolve_account(
    data: ResolveAccountRequest,
    user: CurrentUser,
    directory: BankDirectory,
) -> ResolvedAccountResponse:
    """Look up the account holder name of a bank account."""
    try:
        account = await directory.resolve_account(data.account_number, data.bank_code)
    except SettlementError as e:
        raise_http_error(e)
    return ResolvedAccountResponse(
        account_number=account.account_number, account_name=account.account_name
    )
