"""Initialize the default (Nigerian) VAT policy.

Run this script once per environment before the first payment is captured;
capture fails with tax_policy_missing while no active policy exists.

Usage:
    uv run python -m src.scripts.init_tax_policy
"""

import asyncio
from decimal import Decimal
from typing import Any

from src.db import UnitOfWork, close_db
from src.models.tax_policy import RemittanceFrequency, TaxPolicyStatus
from src.services.tax_policy_service import TaxPolicyService

DEFAULT_POLICY: dict[str, Any] = {
    "status": TaxPolicyStatus.ACTIVE,
    "standard_rate": Decimal("7.5"),  # 7.5%
    "reduced_rate": Decimal("0"),
    "zero_rate": Decimal("0"),
    "registration_threshold": Decimal("25000000"),  # 25M NGN annual turnover
    "collection_threshold": Decimal("1000000"),
    "platform_conditions": ["vendor_not_registered", "below_registration_threshold"],
    "vendor_conditions": ["vendor_registered", "above_registration_threshold"],
    "vendor_threshold": Decimal("25000000"),
    "remittance_frequency": RemittanceFrequency.MONTHLY,
    "remittance_due_day": 21,
    "remittance_minimum_amount": Decimal("100000"),
    "notes": "Default Nigerian VAT configuration",
}

DEFAULT_CATEGORIES: list[dict[str, Any]] = [
    {"code": "FOOD", "name": "Food & Beverages", "rate": Decimal("7.5")},
    {"code": "ELECTRONICS", "name": "Electronics", "rate": Decimal("7.5")},
    {"code": "CLOTHING", "name": "Clothing & Fashion", "rate": Decimal("7.5")},
    {
        "code": "BOOKS",
        "name": "Books & Educational Materials",
        "rate": Decimal("0"),
        "is_exempt": True,
        "exemption_reason": "Educational materials are VAT exempt",
    },
    {
        "code": "MEDICAL",
        "name": "Medical & Pharmaceutical",
        "rate": Decimal("0"),
        "is_exempt": True,
        "exemption_reason": "Medical and pharmaceutical products are VAT exempt",
    },
    {
        "code": "AGRICULTURE",
        "name": "Basic Agricultural Products",
        "rate": Decimal("0"),
        "is_exempt": True,
        "exemption_reason": "Basic food items and agricultural produce are VAT exempt",
    },
    {"code": "TRANSPORT", "name": "Transport & Logistics", "rate": Decimal("7.5")},
    {"code": "GENERAL", "name": "General Merchandise", "rate": Decimal("7.5")},
]


async def init_tax_policy() -> None:
    """Create the default tax policy unless one already exists."""
    async with UnitOfWork() as uow:
        service = TaxPolicyService(uow.session)
        existing = await service.list_policies()

        if existing:
            print(f"Found {len(existing)} existing tax policies:")
            for policy in existing:
                print(f"  - v{policy.version} ({policy.status.value}) {policy.standard_rate}%")
            print("\nSkipping initialization. Create a new version through the API instead.")
            return

        policy = await service.create_policy(DEFAULT_POLICY, DEFAULT_CATEGORIES)

        print(f"✅ Created tax policy v{policy.version}:")
        print(f"    Standard rate: {policy.standard_rate}%")
        print(f"    Registration threshold: {policy.registration_threshold}")
        for category in policy.categories:
            rate = "exempt" if category.is_exempt else f"{category.rate}%"
            print(f"    - {category.code}: {rate}")


async def main() -> None:
    """Main function with proper cleanup."""
    try:
        await init_tax_policy()
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
