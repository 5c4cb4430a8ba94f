"""Marketplace Settlement Engine - User model."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from src.utils.helpers import utc_now


class UserRole(str, Enum):
    """User roles for access control."""

    CUSTOMER = "customer"
    VENDOR = "vendor"  # 店主 / store owner
    DISPATCH = "dispatch"  # delivery agent
    ADMIN = "admin"


class User(SQLModel, table=True):
    """User model - synced from Clerk.

    Only the fields the settlement engine reads are modelled here; profile
    data lives with the marketplace's user service.

    Attributes:
        id: Auto-increment primary key
        clerk_id: Unique Clerk user ID (indexed)
        email: User email address
        role: User role for RBAC
        vat_registered: Vendor is independently registered for VAT
        annual_turnover: Vendor's declared annual turnover, used for VAT liability
    """

    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    clerk_id: str = Field(max_length=255, unique=True, index=True)
    email: str = Field(max_length=255, index=True)
    full_name: str | None = Field(default=None, max_length=255)
    role: UserRole = Field(default=UserRole.CUSTOMER, index=True)
    is_active: bool = Field(default=True)

    # Tax registration data (vendors only)
    vat_registered: bool = Field(default=False)
    annual_turnover: Decimal = Field(
        default=Decimal("0"),
        sa_column=sa.Column(sa.DECIMAL(32, 2), nullable=False, default=Decimal("0")),
    )

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
