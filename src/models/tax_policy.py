"""Marketplace Settlement Engine - Tax policy models.

Versioned, effective-dated VAT configuration. At most one policy is active
for a given point in time; TaxPolicyService resolves it.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, Relationship, SQLModel

from src.utils.helpers import utc_now


class TaxPolicyStatus(str, Enum):
    """Tax policy status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    DRAFT = "draft"


class RemittanceFrequency(str, Enum):
    """How often collected VAT is remitted."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"


class TaxPolicy(SQLModel, table=True):
    """VAT configuration.

    Attributes:
        version: Monotonic version number
        standard_rate / reduced_rate / zero_rate: Rates in percent
        registration_threshold: Annual turnover above which a vendor must register
        collection_threshold: Minimum collection threshold
        platform_conditions / vendor_conditions: Responsibility rule conditions
        platform_categories / vendor_categories: Categories covered by each rule
        platform_threshold: Transaction amount above which the platform is liable
        vendor_threshold: Turnover threshold recorded for the vendor rule
        remittance_*: Remittance cadence (informational)
        effective_date / expiry_date: Validity window
    """

    __tablename__ = "tax_policies"

    id: int | None = Field(default=None, primary_key=True)
    version: int = Field(default=1, index=True)
    status: TaxPolicyStatus = Field(default=TaxPolicyStatus.DRAFT, index=True)

    # Rates (percent)
    standard_rate: Decimal = Field(
        default=Decimal("7.5"),
        sa_column=sa.Column(sa.DECIMAL(10, 4), nullable=False, default=Decimal("7.5")),
    )
    reduced_rate: Decimal = Field(
        default=Decimal("0"),
        sa_column=sa.Column(sa.DECIMAL(10, 4), nullable=False, default=Decimal("0")),
    )
    zero_rate: Decimal = Field(
        default=Decimal("0"),
        sa_column=sa.Column(sa.DECIMAL(10, 4), nullable=False, default=Decimal("0")),
    )

    # Thresholds
    registration_threshold: Decimal = Field(
        default=Decimal("25000000"),
        sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False, default=Decimal("25000000")),
    )
    collection_threshold: Decimal = Field(
        default=Decimal("1000000"),
        sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False, default=Decimal("1000000")),
    )

    # Responsibility rules
    platform_conditions: list[str] = Field(
        default=[], sa_column=sa.Column(sa.JSON, nullable=False, default=[])
    )
    platform_categories: list[str] = Field(
        default=[], sa_column=sa.Column(sa.JSON, nullable=False, default=[])
    )
    platform_threshold: Decimal | None = Field(
        default=None, sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=True)
    )
    vendor_conditions: list[str] = Field(
        default=[], sa_column=sa.Column(sa.JSON, nullable=False, default=[])
    )
    vendor_categories: list[str] = Field(
        default=[], sa_column=sa.Column(sa.JSON, nullable=False, default=[])
    )
    vendor_threshold: Decimal | None = Field(
        default=None, sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=True)
    )

    # Remittance
    remittance_frequency: RemittanceFrequency = Field(default=RemittanceFrequency.MONTHLY)
    remittance_due_day: int = Field(default=21, ge=1, le=31)
    remittance_minimum_amount: Decimal = Field(
        default=Decimal("100000"),
        sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False, default=Decimal("100000")),
    )

    effective_date: datetime = Field(default_factory=utc_now, index=True)
    expiry_date: datetime | None = Field(default=None, index=True)
    notes: str | None = Field(default=None, max_length=500)
    updated_by: int | None = Field(default=None, foreign_key="users.id")

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Relationships - selectin so the resolver can read categories synchronously
    categories: list["TaxCategory"] = Relationship(
        back_populates="policy",
        sa_relationship_kwargs={"lazy": "selectin", "cascade": "all, delete-orphan"},
    )


class TaxCategory(SQLModel, table=True):
    """Per-category VAT override.

    Attributes:
        code: Category code, unique per policy (e.g. 'BOOKS')
        rate: Rate in percent applied when not exempt
        is_exempt: Exempt categories always resolve to 0
    """

    __tablename__ = "tax_categories"
    __table_args__ = (sa.UniqueConstraint("policy_id", "code", name="uq_tax_category_code"),)

    id: int | None = Field(default=None, primary_key=True)
    policy_id: int | None = Field(default=None, foreign_key="tax_policies.id", index=True)
    code: str = Field(max_length=32)
    name: str = Field(max_length=100)
    rate: Decimal = Field(sa_column=sa.Column(sa.DECIMAL(10, 4), nullable=False))
    description: str | None = Field(default=None, max_length=255)
    is_exempt: bool = Field(default=False)
    exemption_reason: str | None = Field(default=None, max_length=255)

    policy: Optional[TaxPolicy] = Relationship(back_populates="categories")
