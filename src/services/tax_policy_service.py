"""Tax Policy Service - VAT rate and liability resolution."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import or_, select

from src.core.exceptions import TaxPolicyMissingError
from src.models.ledger import VATResponsibility
from src.models.tax_policy import TaxCategory, TaxPolicy, TaxPolicyStatus
from src.models.user import User
from src.utils.amount import percent_of, to_decimal
from src.utils.helpers import utc_now

logger = logging.getLogger(__name__)


class TaxPolicyResolver:
    """Pure VAT calculations over one resolved tax policy.

    Holds no session; everything it needs is loaded with the policy.
    """

    def __init__(self, policy: TaxPolicy):
        self.policy = policy
        self._categories: dict[str, TaxCategory] = {c.code: c for c in policy.categories}

    def get_rate(self, category_code: str | None = None) -> Decimal:
        """Get VAT rate (percent) for a category.

        Args:
            category_code: Tax category code, or None for the standard rate

        Returns:
            0 for exempt categories, the category rate for known categories,
            the standard rate otherwise
        """
        if not category_code:
            return self.policy.standard_rate

        category = self._categories.get(category_code)
        if category:
            return Decimal("0") if category.is_exempt else category.rate

        return self.policy.standard_rate

    def resolve_responsibility(
        self, vendor: User | None, transaction_amount: Decimal
    ) -> VATResponsibility:
        """Determine which party is liable for VAT.

        Precedence (order matters):
        1. Vendor independently VAT registered -> vendor
        2. Transaction above the platform threshold -> platform
        3. Vendor turnover above the registration threshold -> vendor
        4. Otherwise -> platform
        """
        if vendor is not None and vendor.vat_registered:
            return VATResponsibility.VENDOR

        threshold = self.policy.platform_threshold
        if threshold and to_decimal(transaction_amount) > threshold:
            return VATResponsibility.PLATFORM

        if vendor is not None and vendor.annual_turnover > self.policy.registration_threshold:
            return VATResponsibility.VENDOR

        return VATResponsibility.PLATFORM

    def calculate_vat(self, amount: Decimal, category_code: str | None = None) -> Decimal:
        """Calculate VAT: amount * rate / 100, rounded to the minor unit.

        Example: calculate_vat(10750) at 7.5% -> 806.25
        """
        return percent_of(amount, self.get_rate(category_code))


class TaxPolicyService:
    """Service for tax policy persistence and resolution."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_active_policy(self, at: datetime | None = None) -> TaxPolicy:
        """Resolve the policy in force at a point in time.

        Picks the latest effective_date <= at among active policies that have
        no expiry or expire after ``at``.

        Raises:
            TaxPolicyMissingError: If no policy resolves
        """
        at = at or utc_now()
        result = await self.db.execute(
            select(TaxPolicy)
            .where(
                TaxPolicy.status == TaxPolicyStatus.ACTIVE,
                TaxPolicy.effective_date <= at,
                or_(TaxPolicy.expiry_date.is_(None), TaxPolicy.expiry_date > at),  # type: ignore[union-attr]
            )
            .order_by(TaxPolicy.effective_date.desc())  # type: ignore[attr-defined]
            .limit(1)
        )
        policy = result.scalar_one_or_none()
        if policy is None:
            logger.error(f"No active tax policy for {at.isoformat()}")
            raise TaxPolicyMissingError(
                "No active tax policy configured", {"at": at.isoformat()}
            )
        return policy

    async def get_resolver(self, at: datetime | None = None) -> TaxPolicyResolver:
        """Resolver bound to the policy in force at ``at``."""
        return TaxPolicyResolver(await self.get_active_policy(at))

    async def list_policies(self) -> list[TaxPolicy]:
        """List all policies, newest version first."""
        result = await self.db.execute(select(TaxPolicy).order_by(TaxPolicy.version.desc()))  # type: ignore[attr-defined]
        return list(result.scalars().all())

    async def create_policy(
        self,
        data: dict[str, Any],
        categories: list[dict[str, Any]] | None = None,
        updated_by: int | None = None,
    ) -> TaxPolicy:
        """Create a new policy version.

        The version is one above the highest existing version. When the new
        policy is active, currently active policies whose window overlaps it
        get expired at its effective date so only one stays in force.

        Args:
            data: Policy fields
            categories: Category overrides (code, name, rate, is_exempt, ...)
            updated_by: Admin creating the policy

        Returns:
            Created policy (flushed, not committed)
        """
        result = await self.db.execute(select(TaxPolicy.version).order_by(TaxPolicy.version.desc()).limit(1))  # type: ignore[attr-defined]
        latest_version = result.scalar_one_or_none() or 0

        policy = TaxPolicy(**data, version=latest_version + 1, updated_by=updated_by)
        policy.categories = [TaxCategory(**c) for c in categories or []]

        if policy.status == TaxPolicyStatus.ACTIVE:
            active = await self.db.execute(
                select(TaxPolicy).where(
                    TaxPolicy.status == TaxPolicyStatus.ACTIVE,
                    or_(
                        TaxPolicy.expiry_date.is_(None),  # type: ignore[union-attr]
                        TaxPolicy.expiry_date > policy.effective_date,  # type: ignore[operator]
                    ),
                )
            )
            for previous in active.scalars().all():
                previous.expiry_date = policy.effective_date
                previous.updated_at = utc_now()
                self.db.add(previous)

        self.db.add(policy)
        await self.db.flush()
        logger.info(f"Created tax policy v{policy.version} ({policy.status.value})")
        return policy
