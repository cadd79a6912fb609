"""Benefit verification wizard service.

The wizard state lives in one server-held `BenefitVerificationSession` row.
Every step reads the full record, checks its prerequisites, writes its
fragment, and mirrors the user-facing fields onto the `User` row.

Step order:
    benefit_source -> organization_search -> personal_information
    -> work_email -> package_selection

Only employer/plan sponsored flows go through organization search and work
email capture; the other sources jump straight to package selection.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fertility_api.core.errors import NotFoundError, UnexpectedError, ValidationError
from fertility_api.db.enums import (
    BenefitSource,
    BenefitStatus,
    VerificationStatus,
    WizardStep,
)
from fertility_api.db.models import (
    BenefitVerificationSession,
    Organization,
    OrganizationPackage,
    Package,
    PatientProfile,
    User,
    UserBenefitVerificationAttempt,
)
from fertility_api.schemas.benefit_verification import (
    PersonalInformation,
    StepCheck,
    WizardPackage,
)
from fertility_api.services import organization_service

logger = logging.getLogger(__name__)

EMAIL_REQUIRED_REASON = "Work email is required for verification."
EMAIL_NOT_APPROVED_REASON = "Submitted work email is not on the approved list for this organization."
VERIFIED_MESSAGE = "Verification successful!"


# =============================================================================
# Session lifecycle
# =============================================================================

def start_session(db: Session, user: User) -> tuple[BenefitVerificationSession, bool]:
    """
    Return the caller's open session, or create one.

    Returns:
        (session, created)
    """
    existing = (
        db.query(BenefitVerificationSession)
        .filter(
            BenefitVerificationSession.user_id == user.id,
            BenefitVerificationSession.completed_at.is_(None),
        )
        .order_by(BenefitVerificationSession.created_at.desc())
        .first()
    )
    if existing:
        return existing, False

    session = BenefitVerificationSession(
        user_id=user.id,
        current_step=WizardStep.BENEFIT_SOURCE.value,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session, True


def get_session(db: Session, user: User, session_id: UUID) -> BenefitVerificationSession:
    """Sessions are only visible to their owner."""
    session = (
        db.query(BenefitVerificationSession)
        .filter(
            BenefitVerificationSession.id == session_id,
            BenefitVerificationSession.user_id == user.id,
        )
        .first()
    )
    if not session:
        raise NotFoundError("Benefit verification session not found.")
    return session


# =============================================================================
# Step preconditions
# =============================================================================

def _is_employer_flow(session: BenefitVerificationSession) -> bool:
    return session.benefit_source == BenefitSource.EMPLOYER_OR_PLAN.value


def first_unmet_step(session: BenefitVerificationSession, step: WizardStep) -> WizardStep | None:
    """Earliest step whose data is missing for `step` to be shown, or None."""
    if step == WizardStep.BENEFIT_SOURCE:
        return None

    if not session.benefit_source:
        return WizardStep.BENEFIT_SOURCE

    if step == WizardStep.ORGANIZATION_SEARCH:
        return None if _is_employer_flow(session) else WizardStep.BENEFIT_SOURCE

    if step == WizardStep.WORK_EMAIL and not _is_employer_flow(session):
        return WizardStep.BENEFIT_SOURCE

    if _is_employer_flow(session) and not session.sponsoring_organization_id:
        return WizardStep.ORGANIZATION_SEARCH

    if step == WizardStep.PERSONAL_INFORMATION:
        return None

    if _is_employer_flow(session) and not session.personal_info:
        return WizardStep.PERSONAL_INFORMATION

    if step == WizardStep.WORK_EMAIL:
        return None

    # package_selection
    if _is_employer_flow(session) and not session.work_email_submitted:
        return WizardStep.WORK_EMAIL
    return None


def check_step(session: BenefitVerificationSession, step: WizardStep) -> StepCheck:
    """Precondition check a wizard page runs once on mount. Never raises."""
    unmet = first_unmet_step(session, step)
    return StepCheck(step=step, allowed=unmet is None, redirect_to=unmet)


def _require_step(session: BenefitVerificationSession, step: WizardStep) -> None:
    unmet = first_unmet_step(session, step)
    if unmet is not None:
        raise ValidationError(
            f"Complete the '{unmet.value}' step first.",
            errors={"redirect_to": unmet.value},
        )


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Benefit verification step '%s' failed to persist", action)
        raise UnexpectedError(f"Failed to {action}.")


def _reset_verification(session: BenefitVerificationSession, user: User, status: BenefitStatus) -> None:
    """Clear the work-email outcome and package choice on session and user."""
    session.work_email = None
    session.work_email_submitted = False
    session.selected_package_id = None
    session.benefit_status = status.value
    user.selected_package_id = None
    user.benefit_status = status.value


# =============================================================================
# Steps
# =============================================================================

def update_benefit_source(
    db: Session,
    session: BenefitVerificationSession,
    user: User,
    source: BenefitSource,
) -> WizardStep:
    """
    Persist the benefit source and return the next step.

    Re-submitting the same source keeps the later steps. A different source
    discards any earlier verification result.
    """
    next_step = (
        WizardStep.ORGANIZATION_SEARCH
        if source == BenefitSource.EMPLOYER_OR_PLAN
        else WizardStep.PACKAGE_SELECTION
    )
    session.current_step = next_step.value

    if session.benefit_source == source.value:
        _commit(db, "update benefit source")
        return next_step

    status = (
        BenefitStatus.NOT_APPLICABLE if source == BenefitSource.NONE else BenefitStatus.NOT_STARTED
    )
    _reset_verification(session, user, status)

    session.benefit_source = source.value
    if source != BenefitSource.EMPLOYER_OR_PLAN:
        session.sponsoring_organization_id = None
        session.sponsoring_organization_name = None
        user.sponsoring_organization_id = None
    user.benefit_source = source.value

    _commit(db, "update benefit source")
    return next_step


def update_sponsoring_organization(
    db: Session,
    session: BenefitVerificationSession,
    user: User,
    organization_id: UUID,
) -> Organization:
    """Store the chosen organization (id and name). Switching organizations
    discards the previous verification result."""
    _require_step(session, WizardStep.ORGANIZATION_SEARCH)
    org = organization_service.get_organization(db, organization_id)

    if session.sponsoring_organization_id != org.id:
        _reset_verification(session, user, BenefitStatus.NOT_STARTED)

    session.sponsoring_organization_id = org.id
    session.sponsoring_organization_name = org.name
    session.current_step = WizardStep.PERSONAL_INFORMATION.value
    user.sponsoring_organization_id = org.id

    _commit(db, "update sponsoring organization")
    return org


def submit_personal_information(
    db: Session,
    session: BenefitVerificationSession,
    user: User,
    info: PersonalInformation,
) -> WizardStep:
    """Store identity fields and update the user profile and billing address."""
    _require_step(session, WizardStep.PERSONAL_INFORMATION)

    session.personal_info = info.model_dump(mode="json")
    next_step = (
        WizardStep.WORK_EMAIL if _is_employer_flow(session) else WizardStep.PACKAGE_SELECTION
    )
    session.current_step = next_step.value

    user.first_name = info.first_name
    user.last_name = info.last_name
    user.address_line1 = info.address_line1
    user.address_line2 = info.address_line2
    user.address_city = info.address_city
    user.address_state = info.address_state
    user.address_postal_code = info.address_postal_code
    user.address_country = info.address_country

    profile = db.query(PatientProfile).filter(PatientProfile.user_id == user.id).first()
    if profile is None:
        profile = PatientProfile(user_id=user.id, first_name=info.first_name, last_name=info.last_name)
        db.add(profile)
    profile.first_name = info.first_name
    profile.last_name = info.last_name
    profile.email = user.email
    profile.phone = info.phone_number
    profile.date_of_birth = info.date_of_birth

    _commit(db, "save personal information")
    return next_step


def _find_base_package(db: Session, org_id: UUID | None) -> Package | None:
    """The organization's base employer package, else any base package."""
    if org_id:
        package = (
            db.query(Package)
            .join(OrganizationPackage, OrganizationPackage.package_id == Package.id)
            .filter(
                OrganizationPackage.organization_id == org_id,
                Package.is_base_employer_package.is_(True),
            )
            .first()
        )
        if package:
            return package
    return (
        db.query(Package)
        .filter(Package.is_base_employer_package.is_(True))
        .order_by(Package.created_at.asc())
        .first()
    )


def submit_work_email(
    db: Session,
    session: BenefitVerificationSession,
    user: User,
    work_email: str | None,
) -> tuple[BenefitStatus, str]:
    """
    Record a verification attempt and match the work email against the
    organization's approved list. Always advances to package selection.

    Returns:
        (benefit status, user-facing message)
    """
    _require_step(session, WizardStep.WORK_EMAIL)

    personal = session.personal_info or {}
    dob = personal.get("date_of_birth")

    attempt = UserBenefitVerificationAttempt(
        user_id=user.id,
        organization_id=session.sponsoring_organization_id,
        submitted_first_name=personal.get("first_name"),
        submitted_last_name=personal.get("last_name"),
        submitted_dob=datetime.strptime(dob, "%Y-%m-%d").date() if dob else None,
        submitted_phone=personal.get("phone_number"),
        submitted_work_email=work_email,
        status=VerificationStatus.PENDING.value,
    )

    try:
        db.add(attempt)
        db.flush()

        if not work_email:
            logger.info("Verification declined for user %s: no work email", user.id)
            failure_reason = EMAIL_REQUIRED_REASON
        elif organization_service.is_email_approved(db, session.sponsoring_organization_id, work_email):
            failure_reason = None
        else:
            logger.info("Verification declined for user %s: email not approved", user.id)
            failure_reason = EMAIL_NOT_APPROVED_REASON

        verified = failure_reason is None
        status = BenefitStatus.VERIFIED if verified else BenefitStatus.DECLINED
        attempt.status = (VerificationStatus.SUCCESS if verified else VerificationStatus.FAILED).value
        attempt.failure_reason = failure_reason

        session.work_email = work_email
        session.work_email_submitted = True
        session.benefit_status = status.value
        session.current_step = WizardStep.PACKAGE_SELECTION.value
        user.benefit_status = status.value

        if verified:
            base_package = _find_base_package(db, session.sponsoring_organization_id)
            if base_package:
                session.selected_package_id = base_package.id
                user.selected_package_id = base_package.id
            else:
                logger.warning("No base employer package found for verified user %s", user.id)

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Work email verification failed for user %s", user.id)
        raise UnexpectedError("An error occurred during verification. Please try again.")

    return status, VERIFIED_MESSAGE if verified else failure_reason


def list_packages(db: Session, session: BenefitVerificationSession) -> list[WizardPackage]:
    """
    Packages offered in the final step, cheapest first.

    Employer flows see their organization's packages; everyone else, or an
    organization with none, sees the default packages (linked to no
    organization).
    """
    packages: list[Package] = []
    org_id = session.sponsoring_organization_id if _is_employer_flow(session) else None

    if org_id:
        packages = (
            db.query(Package)
            .join(OrganizationPackage, OrganizationPackage.package_id == Package.id)
            .filter(OrganizationPackage.organization_id == org_id)
            .order_by(Package.monthly_cost.asc(), Package.name.asc())
            .all()
        )

    if not packages:
        linked = select(OrganizationPackage.package_id)
        packages = (
            db.query(Package)
            .filter(Package.id.not_in(linked))
            .order_by(Package.monthly_cost.asc(), Package.name.asc())
            .all()
        )

    verified = session.benefit_status == BenefitStatus.VERIFIED.value
    return [
        WizardPackage(
            id=p.id,
            name=p.name,
            tier=p.tier,
            monthly_cost=p.monthly_cost,
            description=p.description,
            key_benefits=p.key_benefits,
            is_base_employer_package=p.is_base_employer_package,
            is_employer_sponsored=verified and p.is_base_employer_package,
        )
        for p in packages
    ]


def select_package(
    db: Session,
    session: BenefitVerificationSession,
    user: User,
    package_id: UUID,
) -> Package:
    _require_step(session, WizardStep.PACKAGE_SELECTION)
    package = db.query(Package).filter(Package.id == package_id).first()
    if not package:
        raise NotFoundError("Package not found.")

    session.selected_package_id = package.id
    user.selected_package_id = package.id

    _commit(db, "select package")
    return package


def complete_setup(db: Session, session: BenefitVerificationSession, user: User) -> None:
    """
    Close the session. A verified employer flow or a selected package marks
    the user's benefit as verified.
    """
    _require_step(session, WizardStep.PACKAGE_SELECTION)
    verified = session.benefit_status == BenefitStatus.VERIFIED.value
    if not verified and not session.selected_package_id:
        raise ValidationError("Select a package before completing setup.")

    session.benefit_status = BenefitStatus.VERIFIED.value
    session.completed_at = datetime.now(timezone.utc)
    user.benefit_status = BenefitStatus.VERIFIED.value

    _commit(db, "complete benefit setup")
