"""Package management Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from fertility_api.db.enums import PackageTier


def _clean_benefits(v: list[str] | None) -> list[str] | None:
    if v is None:
        return None
    cleaned = [item.strip() for item in v if item and item.strip()]
    return cleaned or None


class PackageCreate(BaseModel):
    """
    Request schema for creating a package.

    Validates:
    - monthly_cost is a positive amount with at most 2 decimal places
    - tier is a valid PackageTier
    - organization_id is required (existence checked by the service)
    """
    name: str = Field(min_length=1, max_length=255)
    tier: PackageTier
    monthly_cost: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    description: str | None = None
    key_benefits: list[str] | None = None
    is_base_employer_package: bool = False
    organization_id: UUID

    model_config = {"str_strip_whitespace": True}

    @field_validator("key_benefits")
    @classmethod
    def clean_benefits(cls, v: list[str] | None) -> list[str] | None:
        return _clean_benefits(v)


class PackageUpdate(BaseModel):
    """Partial update. Only fields present in the payload are applied."""
    name: str | None = Field(default=None, min_length=1, max_length=255)
    tier: PackageTier | None = None
    monthly_cost: Decimal | None = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    description: str | None = None
    key_benefits: list[str] | None = None
    is_base_employer_package: bool | None = None
    organization_id: UUID | None = None

    model_config = {"str_strip_whitespace": True}

    @field_validator("key_benefits")
    @classmethod
    def clean_benefits(cls, v: list[str] | None) -> list[str] | None:
        return _clean_benefits(v)


class PackageRead(BaseModel):
    id: UUID
    name: str
    tier: PackageTier
    monthly_cost: Decimal
    description: str | None
    key_benefits: list[str] | None
    is_base_employer_package: bool
    organization_id: UUID | None = None
    organization_name: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
