"""Benefit verification wizard Pydantic schemas."""

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from fertility_api.db.enums import BenefitSource, WizardStep

PHONE_PATTERN = re.compile(r"^\+?[\d\s\-\(\)]+$")


class BenefitSessionRead(BaseModel):
    """Full server-held wizard record."""
    id: UUID
    current_step: WizardStep
    benefit_source: BenefitSource | None
    sponsoring_organization_id: UUID | None
    sponsoring_organization_name: str | None
    personal_info: dict[str, Any] | None
    work_email: str | None
    work_email_submitted: bool
    benefit_status: str | None
    selected_package_id: UUID | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StepCheck(BaseModel):
    """Result of the precondition check a wizard page runs on mount."""
    step: WizardStep
    allowed: bool
    redirect_to: WizardStep | None = None


class StepResult(BaseModel):
    """Outcome of a persisted wizard step."""
    session: BenefitSessionRead
    next_step: WizardStep | None


class BenefitSourceUpdate(BaseModel):
    benefit_source: BenefitSource


class SponsoringOrganizationUpdate(BaseModel):
    organization_id: UUID


class PersonalInformation(BaseModel):
    """
    Identity and billing address fields collected in step 3.

    Validates:
    - Date of birth is between 1900 and today
    - Phone contains only digits, spaces, dashes, parentheses and a leading +
    """
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    date_of_birth: date
    phone_number: str = Field(min_length=5, max_length=50)
    address_line1: str = Field(min_length=3, max_length=255)
    address_line2: str | None = Field(default=None, max_length=255)
    address_city: str = Field(min_length=2, max_length=100)
    address_state: str = Field(min_length=2, max_length=100)
    address_postal_code: str = Field(min_length=3, max_length=20)
    address_country: str = Field(default="US", min_length=2, max_length=2)

    model_config = {"str_strip_whitespace": True}

    @field_validator("date_of_birth")
    @classmethod
    def validate_dob(cls, v: date) -> date:
        if v.year < 1900 or v > date.today():
            raise ValueError("Invalid date of birth")
        return v

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        if not PHONE_PATTERN.match(v):
            raise ValueError("Invalid phone number")
        return v

    @field_validator("address_country")
    @classmethod
    def uppercase_country(cls, v: str) -> str:
        return v.upper()

    @field_validator("address_line2")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        return v or None


class WorkEmailSubmit(BaseModel):
    """The work email is optional; only malformed syntax is rejected."""
    work_email: EmailStr | None = None

    @field_validator("work_email", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("work_email")
    @classmethod
    def lowercase_email(cls, v: str | None) -> str | None:
        return v.lower() if v else v


class WorkEmailResult(BaseModel):
    session: BenefitSessionRead
    next_step: WizardStep
    verification_status: str
    message: str


class PackageSelect(BaseModel):
    package_id: UUID


class WizardPackage(BaseModel):
    """Package as offered in the package-selection step."""
    id: UUID
    name: str
    tier: str
    monthly_cost: Decimal
    description: str | None
    key_benefits: list[str] | None
    is_base_employer_package: bool
    is_employer_sponsored: bool
