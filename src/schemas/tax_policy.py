"""Tax policy schemas - versioned VAT configuration DTOs."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from src.models.tax_policy import RemittanceFrequency, TaxPolicyStatus


class TaxCategoryBase(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)
    name: str = Field(..., min_length=1, max_length=100)
    rate: Decimal = Field(..., ge=0, le=100)
    description: str | None = Field(None, max_length=255)
    is_exempt: bool = False
    exemption_reason: str | None = Field(None, max_length=255)


class TaxCategoryResponse(TaxCategoryBase):
    class Config:
        from_attributes = True


class TaxPolicyCreate(BaseModel):
    """New policy version. Version numbers are assigned by the server."""

    status: TaxPolicyStatus = TaxPolicyStatus.DRAFT
    standard_rate: Decimal = Field(Decimal("7.5"), ge=0, le=100)
    reduced_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    zero_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    registration_threshold: Decimal = Field(Decimal("25000000"), ge=0)
    collection_threshold: Decimal = Field(Decimal("1000000"), ge=0)
    platform_conditions: list[str] = []
    platform_categories: list[str] = []
    platform_threshold: Decimal | None = Field(None, ge=0)
    vendor_conditions: list[str] = []
    vendor_categories: list[str] = []
    vendor_threshold: Decimal | None = Field(None, ge=0)
    remittance_frequency: RemittanceFrequency = RemittanceFrequency.MONTHLY
    remittance_due_day: int = Field(21, ge=1, le=31)
    remittance_minimum_amount: Decimal = Field(Decimal("100000"), ge=0)
    effective_date: datetime | None = None
    expiry_date: datetime | None = None
    notes: str | None = Field(None, max_length=500)
    categories: list[TaxCategoryBase] = []


class TaxPolicyResponse(BaseModel):
    id: int
    version: int
    status: TaxPolicyStatus
    standard_rate: Decimal
    reduced_rate: Decimal
    zero_rate: Decimal
    registration_threshold: Decimal
    collection_threshold: Decimal
    platform_threshold: Decimal | None = None
    vendor_threshold: Decimal | None = None
    remittance_frequency: RemittanceFrequency
    remittance_due_day: int
    remittance_minimum_amount: Decimal
    effective_date: datetime
    expiry_date: datetime | None = None
    notes: str | None = None
    categories: list[TaxCategoryResponse] = []

    class Config:
        from_attributes = True
