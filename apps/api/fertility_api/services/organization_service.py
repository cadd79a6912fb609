"""Organization directory service - sponsoring organizations and approved emails."""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fertility_api.core.config import settings
from fertility_api.core.errors import ConflictError, NotFoundError
from fertility_api.db.models import ApprovedEmail, Organization, OrganizationPackage
from fertility_api.schemas.organization import (
    ApprovedEmailCreate,
    OrganizationCreate,
    OrganizationSearchResult,
    OrganizationUpdate,
)

logger = logging.getLogger(__name__)

UNKNOWN_ORGANIZATION = "Unknown Organization"


def _duplicate_name(name: str) -> ConflictError:
    return ConflictError(f"Organization name '{name}' already exists.")


# =============================================================================
# Organizations
# =============================================================================

def list_organizations(db: Session) -> list[Organization]:
    """All organizations, sorted by name."""
    return db.query(Organization).order_by(Organization.name.asc()).all()


def get_organization(db: Session, org_id: UUID) -> Organization:
    org = db.query(Organization).filter(Organization.id == org_id).first()
    if not org:
        raise NotFoundError("Organization not found.")
    return org


def create_organization(db: Session, data: OrganizationCreate) -> Organization:
    """
    Create an organization.

    The duplicate check is an exact, case-sensitive name match.

    Raises:
        ConflictError: Name already taken
    """
    existing = db.query(Organization.id).filter(Organization.name == data.name).first()
    if existing:
        raise _duplicate_name(data.name)

    org = Organization(
        name=data.name,
        domain=data.domain,
        hr_contact_info=data.hr_contact_info,
    )
    db.add(org)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent create of the same name
        db.rollback()
        raise _duplicate_name(data.name)
    db.refresh(org)
    return org


def update_organization(db: Session, org_id: UUID, data: OrganizationUpdate) -> Organization:
    """Apply the fields present in the payload."""
    org = get_organization(db, org_id)
    changes = data.model_dump(exclude_unset=True)

    new_name = changes.get("name")
    if new_name is None:
        changes.pop("name", None)
    elif new_name != org.name:
        taken = (
            db.query(Organization.id)
            .filter(Organization.name == new_name, Organization.id != org.id)
            .first()
        )
        if taken:
            raise _duplicate_name(new_name)

    for field, value in changes.items():
        setattr(org, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _duplicate_name(new_name or org.name)
    db.refresh(org)
    return org


def delete_organization(db: Session, org_id: UUID) -> dict:
    """
    Delete an organization with no approved emails or package links.

    Raises:
        NotFoundError: Unknown organization
        ConflictError: Still referenced
    """
    org = get_organization(db, org_id)

    email_count = (
        db.query(ApprovedEmail).filter(ApprovedEmail.organization_id == org.id).count()
    )
    package_count = (
        db.query(OrganizationPackage)
        .filter(OrganizationPackage.organization_id == org.id)
        .count()
    )
    if email_count or package_count:
        raise ConflictError(
            f"Organization '{org.name}' still has {email_count} approved email(s) "
            f"and {package_count} linked package(s)."
        )

    snapshot = {"id": org.id, "name": org.name, "domain": org.domain}
    db.delete(org)
    db.commit()
    return snapshot


def search_organizations(db: Session, query: str) -> list[OrganizationSearchResult]:
    """
    Case-insensitive substring search on organization name.

    Short queries return nothing. Store errors are logged and yield an
    empty result so the picker keeps working.
    """
    term = (query or "").strip()
    if len(term) < settings.ORGANIZATION_SEARCH_MIN_CHARS:
        return []

    try:
        rows = (
            db.query(Organization.id, Organization.name)
            .filter(Organization.name.ilike(f"%{term}%"))
            .order_by(Organization.name.asc())
            .limit(settings.ORGANIZATION_SEARCH_LIMIT)
            .all()
        )
    except SQLAlchemyError:
        logger.exception("Organization search failed for query %r", term)
        db.rollback()
        return []

    return [OrganizationSearchResult(id=row.id, label=row.name) for row in rows]


# =============================================================================
# Approved emails
# =============================================================================

def list_approved_emails(db: Session, org_id: UUID) -> tuple[list[ApprovedEmail], str]:
    """Approved emails ordered by address, plus the organization's name."""
    org_name = db.query(Organization.name).filter(Organization.id == org_id).scalar()
    emails = (
        db.query(ApprovedEmail)
        .filter(ApprovedEmail.organization_id == org_id)
        .order_by(ApprovedEmail.email.asc())
        .all()
    )
    return emails, org_name or UNKNOWN_ORGANIZATION


def add_approved_email(db: Session, data: ApprovedEmailCreate) -> ApprovedEmail:
    """
    Approve an (already lower-cased) email for an organization.

    Raises:
        NotFoundError: Unknown organization
        ConflictError: Address already approved for this organization
    """
    get_organization(db, data.organization_id)

    duplicate = ConflictError("This email address is already approved for this organization.")
    exists = (
        db.query(ApprovedEmail.id)
        .filter(
            ApprovedEmail.organization_id == data.organization_id,
            ApprovedEmail.email == data.email,
        )
        .first()
    )
    if exists:
        raise duplicate

    record = ApprovedEmail(organization_id=data.organization_id, email=data.email)
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise duplicate
    db.refresh(record)
    return record


def delete_approved_email(db: Session, org_id: UUID, email_id: UUID) -> dict:
    """
    Delete an approved email by its row id.

    Returns a snapshot of the deleted row so callers can log what was removed.

    Raises:
        NotFoundError: No such row under this organization
    """
    record = (
        db.query(ApprovedEmail)
        .filter(ApprovedEmail.id == email_id, ApprovedEmail.organization_id == org_id)
        .first()
    )
    if not record:
        raise NotFoundError("Approved email record not found.")

    snapshot = {"id": record.id, "organization_id": record.organization_id, "email": record.email}
    db.delete(record)
    db.commit()
    return snapshot


def is_email_approved(db: Session, org_id: UUID, email: str) -> bool:
    """Exact (lower-cased) match against the organization's approved list."""
    return (
        db.query(ApprovedEmail.id)
        .filter(
            ApprovedEmail.organization_id == org_id,
            ApprovedEmail.email == email.lower(),
        )
        .first()
        is not None
    )
