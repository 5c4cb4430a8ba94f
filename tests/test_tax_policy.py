"""Tests for VAT rate/liability resolution and versioned tax policies."""

from datetime import datetime
from decimal import Decimal

import pytest

from src.core.exceptions import TaxPolicyMissingError
from src.models.ledger import VATResponsibility
from src.models.tax_policy import TaxPolicyStatus
from src.models.user import User, UserRole
from src.services.tax_policy_service import TaxPolicyResolver, TaxPolicyService
from tests.conftest import make_policy


def _vendor(**kwargs) -> User:
    return User(clerk_id="v", email="v@example.com", role=UserRole.VENDOR, **kwargs)


class TestResolverRates:
    def test_standard_rate_without_category(self):
        resolver = TaxPolicyResolver(make_policy())
        assert resolver.get_rate() == Decimal("7.5")

    def test_known_category_rate(self):
        resolver = TaxPolicyResolver(make_policy())
        assert resolver.get_rate("FOOD") == Decimal("7.5")

    def test_exempt_category_is_zero_regardless_of_rate(self):
        resolver = TaxPolicyResolver(make_policy())
        assert resolver.get_rate("BOOKS") == Decimal("0")

    def test_unknown_category_falls_back_to_standard(self):
        resolver = TaxPolicyResolver(make_policy(standard_rate=Decimal("10")))
        assert resolver.get_rate("FURNITURE") == Decimal("10")

    def test_calculate_vat_rounds_half_up(self):
        resolver = TaxPolicyResolver(make_policy())
        assert resolver.calculate_vat(Decimal("10750")) == Decimal("806.25")
        # 0.075 * 0.07 = 0.00525 -> 0.01
        assert resolver.calculate_vat(Decimal("0.07")) == Decimal("0.01")

    def test_calculate_vat_exempt(self):
        resolver = TaxPolicyResolver(make_policy())
        assert resolver.calculate_vat(Decimal("10750"), "BOOKS") == Decimal("0.00")


class TestResolverResponsibility:
    def test_registered_vendor_is_liable(self):
        resolver = TaxPolicyResolver(make_policy(platform_threshold=Decimal("1000")))
        vendor = _vendor(vat_registered=True)
        # Registration wins even above the platform threshold
        assert resolver.resolve_responsibility(vendor, Decimal("5000")) == VATResponsibility.VENDOR

    def test_platform_threshold_beats_turnover(self):
        resolver = TaxPolicyResolver(make_policy(platform_threshold=Decimal("1000")))
        vendor = _vendor(annual_turnover=Decimal("30000000"))
        assert resolver.resolve_responsibility(vendor, Decimal("5000")) == VATResponsibility.PLATFORM

    def test_turnover_above_registration_threshold(self):
        resolver = TaxPolicyResolver(make_policy())
        vendor = _vendor(annual_turnover=Decimal("30000000"))
        assert resolver.resolve_responsibility(vendor, Decimal("5000")) == VATResponsibility.VENDOR

    def test_turnover_at_threshold_stays_with_platform(self):
        resolver = TaxPolicyResolver(make_policy())
        vendor = _vendor(annual_turnover=Decimal("25000000"))
        assert resolver.resolve_responsibility(vendor, Decimal("5000")) == VATResponsibility.PLATFORM

    def test_small_vendor_defaults_to_platform(self):
        resolver = TaxPolicyResolver(make_policy())
        assert resolver.resolve_responsibility(_vendor(), Decimal("5000")) == VATResponsibility.PLATFORM

    def test_no_vendor_defaults_to_platform(self):
        resolver = TaxPolicyResolver(make_policy())
        assert resolver.resolve_responsibility(None, Decimal("5000")) == VATResponsibility.PLATFORM


class TestTaxPolicyService:
    async def test_missing_policy_raises(self, session):
        with pytest.raises(TaxPolicyMissingError) as exc_info:
            await TaxPolicyService(session).get_active_policy()
        assert exc_info.value.code == "tax_policy_missing"

    async def test_latest_effective_policy_wins(self, session):
        session.add(make_policy(effective_date=datetime(2024, 1, 1), version=1))
        session.add(
            make_policy(
                effective_date=datetime(2025, 1, 1), version=2, standard_rate=Decimal("10")
            )
        )
        await session.commit()

        policy = await TaxPolicyService(session).get_active_policy(datetime(2025, 6, 1))
        assert policy.version == 2

        earlier = await TaxPolicyService(session).get_active_policy(datetime(2024, 6, 1))
        assert earlier.version == 1

    async def test_expired_and_inactive_policies_are_ignored(self, session):
        session.add(make_policy(expiry_date=datetime(2024, 12, 31), version=1))
        session.add(
            make_policy(
                status=TaxPolicyStatus.DRAFT, effective_date=datetime(2025, 1, 1), version=2
            )
        )
        await session.commit()

        with pytest.raises(TaxPolicyMissingError):
            await TaxPolicyService(session).get_active_policy(datetime(2025, 6, 1))

    async def test_create_policy_increments_version_and_expires_previous(self, session):
        service = TaxPolicyService(session)
        first = await service.create_policy(
            {"status": TaxPolicyStatus.ACTIVE, "effective_date": datetime(2024, 1, 1)},
            [{"code": "BOOKS", "name": "Books", "rate": Decimal("0"), "is_exempt": True}],
        )
        second = await service.create_policy(
            {
                "status": TaxPolicyStatus.ACTIVE,
                "effective_date": datetime(2026, 1, 1),
                "standard_rate": Decimal("10"),
            },
            updated_by=None,
        )
        await session.commit()

        assert (first.version, second.version) == (1, 2)
        assert first.expiry_date == datetime(2026, 1, 1)
        assert second.expiry_date is None

        resolver = await service.get_resolver(datetime(2026, 3, 1))
        assert resolver.policy.version == 2
        assert resolver.get_rate() == Decimal("10")

        old = await service.get_resolver(datetime(2025, 3, 1))
        assert old.get_rate("BOOKS") == Decimal("0")

        versions = [p.version for p in await service.list_policies()]
        assert versions == [2, 1]
