"""Organization directory Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, field_validator


def _clean_name(v: str) -> str:
    v = v.strip()
    if len(v) < 2:
        raise ValueError("Organization name must be at least 2 characters.")
    return v


def _clean_optional(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip()
    return v or None


class OrganizationCreate(BaseModel):
    """Request schema for creating an organization."""
    name: str
    domain: str | None = None
    hr_contact_info: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)

    @field_validator("domain", "hr_contact_info")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        return _clean_optional(v)


class OrganizationUpdate(BaseModel):
    """Partial update. Only fields present in the payload are applied."""
    name: str | None = None
    domain: str | None = None
    hr_contact_info: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return _clean_name(v)

    @field_validator("domain", "hr_contact_info")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        return _clean_optional(v)


class OrganizationRead(BaseModel):
    id: UUID
    name: str
    domain: str | None
    hr_contact_info: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrganizationSearchResult(BaseModel):
    """Search hit shown in the wizard's organization picker."""
    id: UUID
    label: str


# =============================================================================
# Approved emails
# =============================================================================

class ApprovedEmailCreate(BaseModel):
    """
    Request schema for approving an email for an organization.

    Email is normalized to lowercase.
    """
    organization_id: UUID
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class ApprovedEmailDelete(BaseModel):
    """Deletion is keyed by the approved-email row id, not the address."""
    organization_id: UUID
    email_id: UUID


class ApprovedEmailRead(BaseModel):
    id: UUID
    organization_id: UUID
    email: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ApprovedEmailList(BaseModel):
    emails: list[ApprovedEmailRead]
    org_name: str
