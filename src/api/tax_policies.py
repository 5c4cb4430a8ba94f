"""Tax Policies API - versioned VAT configuration (admin only)."""

from fastapi import APIRouter

from src.api.deps import AdminUser, raise_http_error
from src.core.exceptions import SettlementError
from src.db import UnitOfWork
from src.schemas.tax_policy import TaxPolicyCreate, TaxPolicyResponse
from src.services.tax_policy_service import TaxPolicyService

router = APIRouter(prefix="/tax-policies", tags=["Tax Policies"])


@router.get("", response_model=list[TaxPolicyResponse])
async def list_tax_policies(admin: AdminUser) -> list[TaxPolicyResponse]:
    """All policy versions, newest first."""
    async with UnitOfWork() as uow:
        policies = await TaxPolicyService(uow.session).list_policies()
        return [TaxPolicyResponse.model_validate(p) for p in policies]


@router.get("/active", response_model=TaxPolicyResponse)
async def get_active_tax_policy(admin: AdminUser) -> TaxPolicyResponse:
    """Policy currently in force."""
    try:
        async with UnitOfWork() as uow:
            policy = await TaxPolicyService(uow.session).get_active_policy()
            return TaxPolicyResponse.model_validate(policy)
    except SettlementError as e:
        raise_http_error(e)


@router.post("", response_model=TaxPolicyResponse, status_code=201)
async def create_tax_policy(data: TaxPolicyCreate, admin: AdminUser) -> TaxPolicyResponse:
    """Create a new policy version.

    An active policy expires the previously active one at its effective date.
    """
    fields = data.model_dump(exclude={"categories"}, exclude_none=True)
    categories = [c.model_dump() for c in data.categories]
    async with UnitOfWork() as uow:
        policy = await TaxPolicyService(uow.session).create_policy(
            fields, categories, updated_by=admin.id
        )
        return TaxPolicyResponse.model_validate(policy)
