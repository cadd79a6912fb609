"""Authentication-related Pydantic schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from fertility_api.db.enums import Role


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # user_id
    email: str


class Identity(BaseModel):
    """Caller identity resolved from the session cookie."""
    user_id: UUID
    email: str


class MeResponse(BaseModel):
    """Response schema for GET /auth/me endpoint."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    role: Role
    first_name: str | None
    last_name: str | None
    benefit_source: str
    benefit_status: str
    sponsoring_organization_id: UUID | None
    selected_package_id: UUID | None
    created_at: datetime


class SyncRequest(BaseModel):
    """Optional profile fields sent with the first sync after signup."""
    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: date | None = None
