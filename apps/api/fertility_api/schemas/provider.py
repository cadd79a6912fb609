"""Provider-facing Pydantic schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel


class RosterPatient(BaseModel):
    """One row per distinct patient seen by the provider."""
    id: UUID
    first_name: str | None
    last_name: str | None
    email: str
    phone: str | None
    date_of_birth: date | None
    last_appointment_date: datetime
