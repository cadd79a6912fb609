"""Package management service.

Package creation writes the package and its organization link in one
transaction: both rows commit together or neither does.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fertility_api.core.errors import NotFoundError, UnexpectedError
from fertility_api.db.models import Organization, OrganizationPackage, Package
from fertility_api.schemas.package import PackageCreate, PackageRead, PackageUpdate

logger = logging.getLogger(__name__)


def _require_organization(db: Session, org_id: UUID) -> Organization:
    org = db.query(Organization).filter(Organization.id == org_id).first()
    if not org:
        raise NotFoundError(f"Organization with ID {org_id} not found.")
    return org


def build_organization_link(package_id: UUID, organization_id: UUID) -> OrganizationPackage:
    return OrganizationPackage(package_id=package_id, organization_id=organization_id)


def _clear_other_base_packages(db: Session, org_id: UUID, keep_package_id: UUID) -> None:
    """Unset the base flag on the organization's other packages (same transaction)."""
    other_ids = select(OrganizationPackage.package_id).where(
        OrganizationPackage.organization_id == org_id,
        OrganizationPackage.package_id != keep_package_id,
    )
    db.query(Package).filter(
        Package.id.in_(other_ids),
        Package.is_base_employer_package.is_(True),
    ).update({Package.is_base_employer_package: False}, synchronize_session="fetch")


def to_read(package: Package, org: Organization | None) -> PackageRead:
    return PackageRead(
        id=package.id,
        name=package.name,
        tier=package.tier,
        monthly_cost=package.monthly_cost,
        description=package.description,
        key_benefits=package.key_benefits,
        is_base_employer_package=package.is_base_employer_package,
        organization_id=org.id if org else None,
        organization_name=org.name if org else None,
        created_at=package.created_at,
        updated_at=package.updated_at,
    )


def list_packages(db: Session) -> list[PackageRead]:
    """All packages with their linked organization, ordered by name."""
    rows = (
        db.query(Package, Organization)
        .outerjoin(OrganizationPackage, OrganizationPackage.package_id == Package.id)
        .outerjoin(Organization, Organization.id == OrganizationPackage.organization_id)
        .order_by(Package.name.asc())
        .all()
    )
    return [to_read(package, org) for package, org in rows]


def get_package(db: Session, package_id: UUID) -> Package:
    package = db.query(Package).filter(Package.id == package_id).first()
    if not package:
        raise NotFoundError("Package not found.")
    return package


def get_package_organization(db: Session, package_id: UUID) -> Organization | None:
    return (
        db.query(Organization)
        .join(OrganizationPackage, OrganizationPackage.organization_id == Organization.id)
        .filter(OrganizationPackage.package_id == package_id)
        .first()
    )


def create_package(db: Session, data: PackageCreate) -> PackageRead:
    """
    Create a package linked to an organization.

    Raises:
        NotFoundError: organization_id does not resolve
        UnexpectedError: Store failure (nothing persisted)
    """
    org = _require_organization(db, data.organization_id)

    try:
        package = Package(
            name=data.name,
            tier=data.tier.value,
            monthly_cost=data.monthly_cost,
            description=data.description,
            key_benefits=data.key_benefits,
            is_base_employer_package=data.is_base_employer_package,
        )
        db.add(package)
        db.flush()

        db.add(build_organization_link(package.id, org.id))
        db.flush()

        if package.is_base_employer_package:
            _clear_other_base_packages(db, org.id, package.id)

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Package creation rolled back for organization %s", org.id)
        raise UnexpectedError("Failed to create package.")

    db.refresh(package)
    logger.info("Package %s created for organization %s", package.id, org.id)
    return to_read(package, org)


def update_package(db: Session, package_id: UUID, data: PackageUpdate) -> PackageRead:
    """
    Partial update. Relinking to another organization happens in the same
    transaction as the field changes.
    """
    package = get_package(db, package_id)
    changes = data.model_dump(exclude_unset=True)
    new_org_id = changes.pop("organization_id", None)

    org = _require_organization(db, new_org_id) if new_org_id else get_package_organization(db, package.id)

    try:
        for field, value in changes.items():
            if value is None and field in ("name", "tier", "monthly_cost", "is_base_employer_package"):
                continue
            if field == "tier":
                value = value.value
            setattr(package, field, value)

        if new_org_id:
            db.query(OrganizationPackage).filter(
                OrganizationPackage.package_id == package.id
            ).delete(synchronize_session="fetch")
            db.add(build_organization_link(package.id, new_org_id))

        db.flush()

        if package.is_base_employer_package and org is not None:
            _clear_other_base_packages(db, org.id, package.id)

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Package update rolled back for package %s", package_id)
        raise UnexpectedError("Failed to update package.")

    db.refresh(package)
    return to_read(package, org)


def delete_package(db: Session, package_id: UUID) -> dict:
    """Delete a package and its organization links. Returns a snapshot."""
    package = get_package(db, package_id)
    snapshot = {"id": package.id, "name": package.name, "tier": package.tier}
    db.delete(package)
    db.commit()
    return snapshot
