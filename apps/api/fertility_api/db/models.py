"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fertility_api.db.base import Base
from fertility_api.db.enums import (
    BenefitSource,
    BenefitStatus,
    Role,
    VerificationStatus,
    WizardStep,
)

# JSONB on PostgreSQL, plain JSON elsewhere (tests run on SQLite)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Identity
# =============================================================================


class User(Base):
    """
    Application user, mirrored from the identity provider on signup.

    No passwords stored - authentication is delegated to the identity
    provider. `role` is the only authorization signal.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), default=Role.PATIENT.value, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    stripe_customer_id: Mapped[str | None] = mapped_column(
        String(255), unique=True, nullable=True
    )

    # Benefit verification fragments (mirrored from the wizard session)
    benefit_source: Mapped[str] = mapped_column(
        String(30), default=BenefitSource.NONE.value, nullable=False
    )
    benefit_status: Mapped[str] = mapped_column(
        String(30), default=BenefitStatus.NOT_STARTED.value, nullable=False
    )
    sponsoring_organization_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True
    )
    selected_package_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("packages.id", ondelete="SET NULL"), nullable=True
    )

    # Billing address (used for the payment processor customer record)
    address_line1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address_line2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address_state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address_postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    address_country: Mapped[str | None] = mapped_column(String(2), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    patient_profile: Mapped["PatientProfile | None"] = relationship(
        back_populates="user", cascade="all, delete-orphan", uselist=False
    )
    provider_profile: Mapped["Provider | None"] = relationship(
        back_populates="user", cascade="all, delete-orphan", uselist=False
    )

    @property
    def full_name(self) -> str | None:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return None


class PatientProfile(Base):
    """Clinical-facing patient details, one per patient user."""

    __tablename__ = "patient_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    user: Mapped["User"] = relationship(back_populates="patient_profile")


class Provider(Base):
    """Provider profile linked to a user with the provider role."""

    __tablename__ = "providers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    specialization: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    user: Mapped["User"] = relationship(back_populates="provider_profile")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_provider_date", "provider_id", "appointment_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    appointment_date: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)


# =============================================================================
# Organizations & packages
# =============================================================================


class Organization(Base):
    """A sponsoring employer or plan."""

    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    domain: Mapped[str | None] = mapped_column(String(255), nullable=True)
    hr_contact_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    approved_emails: Mapped[list["ApprovedEmail"]] = relationship(
        back_populates="organization", passive_deletes=True
    )
    package_links: Mapped[list["OrganizationPackage"]] = relationship(
        back_populates="organization", passive_deletes=True
    )


class ApprovedEmail(Base):
    """An address pre-authorized by an organization for its sponsored benefit."""

    __tablename__ = "organization_approved_emails"
    __table_args__ = (
        UniqueConstraint("organization_id", "email", name="uq_organization_email"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)  # Stored lower-cased
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    organization: Mapped["Organization"] = relationship(back_populates="approved_emails")


class Package(Base):
    __tablename__ = "packages"
    __table_args__ = (
        CheckConstraint("monthly_cost > 0", name="ck_packages_monthly_cost_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tier: Mapped[str] = mapped_column(String(20), nullable=False)  # PackageTier
    monthly_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    key_benefits: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    is_base_employer_package: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    organization_links: Mapped[list["OrganizationPackage"]] = relationship(
        back_populates="package", cascade="all, delete-orphan"
    )


class OrganizationPackage(Base):
    """Join row linking a package to a sponsoring organization."""

    __tablename__ = "organization_packages"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True
    )
    package_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("packages.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    organization: Mapped["Organization"] = relationship(back_populates="package_links")
    package: Mapped["Package"] = relationship(back_populates="organization_links")


# =============================================================================
# Benefit verification
# =============================================================================


class BenefitVerificationSession(Base):
    """
    Server-held benefit verification wizard state.

    The row id is the opaque session token handed to the client. Every step
    reads and writes the full record, so a reload resumes where the patient
    left off.
    """

    __tablename__ = "benefit_verification_sessions"
    __table_args__ = (
        Index("idx_benefit_sessions_user_open", "user_id", "completed_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    current_step: Mapped[str] = mapped_column(
        String(30), default=WizardStep.BENEFIT_SOURCE.value, nullable=False
    )
    benefit_source: Mapped[str | None] = mapped_column(String(30), nullable=True)
    sponsoring_organization_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True
    )
    sponsoring_organization_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    personal_info: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    work_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    work_email_submitted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    benefit_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    selected_package_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("packages.id", ondelete="SET NULL"), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)


class UserBenefitVerificationAttempt(Base):
    __tablename__ = "user_benefit_verification_attempts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    organization_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True
    )
    submitted_first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    submitted_last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    submitted_dob: Mapped[date | None] = mapped_column(Date, nullable=True)
    submitted_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    submitted_work_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=VerificationStatus.PENDING.value, nullable=False
    )
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


# =============================================================================
# Activity log
# =============================================================================


class ActivityLog(Base):
    """
    Append-only audit trail of administrative and financial actions.

    Rows are written once by activity_log_service and never updated or
    deleted.
    """

    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("idx_activity_logs_timestamp", "timestamp"),
        Index("idx_activity_logs_action_timestamp", "action_type", "timestamp"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    timestamp: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    action_type: Mapped[str] = mapped_column(String(80), nullable=False)
    target_entity_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    target_entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str | None] = mapped_column(String(20), nullable=True)  # ActivityStatus
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


@event.listens_for(ActivityLog, "before_update")
def _reject_activity_log_update(mapper, connection, target):
    raise RuntimeError("Activity log entries are immutable")


@event.listens_for(ActivityLog, "before_delete")
def _reject_activity_log_delete(mapper, connection, target):
    raise RuntimeError("Activity log entries are immutable")
