"""User administration Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from fertility_api.db.enums import Role


class UserRead(BaseModel):
    id: UUID
    email: str
    role: Role
    first_name: str | None
    last_name: str | None
    benefit_status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserCreate(BaseModel):
    """
    Request schema for admin user creation.

    A provider profile is created alongside when role is provider. `id` is
    the identity provider's user id. Without it the row gets a fresh id
    that no session carries, and that person's first sign-in is refused
    as a conflict by `/auth/sync`.
    """
    id: UUID | None = None
    email: EmailStr
    role: Role
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    specialization: str | None = None

    model_config = {"str_strip_whitespace": True}

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class UserUpdate(BaseModel):
    """Partial update of profile fields and role."""
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    role: Role | None = None

    model_config = {"str_strip_whitespace": True}


class RoleUpdate(BaseModel):
    """Role change addressed by email."""
    email: EmailStr
    role: Role

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()
