"""Benefit verification wizard router.

Each wizard page first calls the step check, then persists its step. The
session id returned by POST /sessions is the opaque token for every other
call.
"""

from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from fertility_api.core.deps import get_current_user, get_db
from fertility_api.core.errors import (
    NotFoundError,
    UnexpectedError,
    ValidationError,
    format_validation_errors,
)
from fertility_api.core.rate_limit import SEARCH_LIMIT, limiter
from fertility_api.db.enums import ActivityActionType as Action, ActivityStatus, WizardStep
from fertility_api.db.models import BenefitVerificationSession, User
from fertility_api.schemas.benefit_verification import (
    BenefitSessionRead,
    BenefitSourceUpdate,
    PackageSelect,
    PersonalInformation,
    SponsoringOrganizationUpdate,
    StepCheck,
    StepResult,
    WizardPackage,
    WorkEmailResult,
    WorkEmailSubmit,
)
from fertility_api.schemas.common import ApiResponse
from fertility_api.schemas.organization import OrganizationSearchResult
from fertility_api.services import benefit_verification_service as wizard
from fertility_api.services import organization_service
from fertility_api.services.activity_log_service import log_activity

router = APIRouter(prefix="/benefit-verification", tags=["benefit-verification"])


def _log(db, request, user: User, action: Action, status: ActivityStatus,
         session_id: UUID, details=None, description=None) -> None:
    log_activity(
        db,
        action,
        user_id=user.id,
        user_email=user.email,
        target_entity_type="benefit_verification_session",
        target_entity_id=session_id,
        status=status,
        details=details,
        description=description,
        request=request,
    )


def _read(session: BenefitVerificationSession) -> BenefitSessionRead:
    return BenefitSessionRead.model_validate(session)


# =============================================================================
# Session
# =============================================================================

@router.post("/sessions", response_model=ApiResponse[BenefitSessionRead])
def start_session(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Resume the caller's open wizard session or start a new one."""
    session, created = wizard.start_session(db, user)
    if created:
        _log(db, request, user, Action.BENEFIT_SESSION_START, ActivityStatus.INFO, session.id,
             description="Benefit verification started.")
    return ApiResponse(
        data=_read(session),
        message="Session started." if created else "Session resumed.",
    )


@router.get("/sessions/{session_id}", response_model=ApiResponse[BenefitSessionRead])
def get_session(
    session_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ApiResponse(data=_read(wizard.get_session(db, user, session_id)))


@router.get("/sessions/{session_id}/steps/{step}", response_model=ApiResponse[StepCheck])
def check_step(
    session_id: UUID,
    step: WizardStep,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Precondition check a page runs on mount.

    A failed check is not an error: `redirect_to` names the earliest step
    the client should send the user back to.
    """
    session = wizard.get_session(db, user, session_id)
    return ApiResponse(data=wizard.check_step(session, step))


# =============================================================================
# Steps
# =============================================================================

@router.put("/sessions/{session_id}/benefit-source", response_model=ApiResponse[StepResult])
def update_benefit_source(
    session_id: UUID,
    payload: BenefitSourceUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    session = wizard.get_session(db, user, session_id)
    try:
        next_step = wizard.update_benefit_source(db, session, user, payload.benefit_source)
    except UnexpectedError as exc:
        _log(db, request, user, Action.BENEFIT_SOURCE_UPDATE_FAILED, ActivityStatus.FAILURE,
             session_id, {"benefit_source": payload.benefit_source.value}, exc.message)
        raise

    _log(db, request, user, Action.BENEFIT_SOURCE_UPDATE, ActivityStatus.SUCCESS, session_id,
         {"benefit_source": payload.benefit_source.value, "next_step": next_step.value})
    return ApiResponse(
        data=StepResult(session=_read(session), next_step=next_step),
        message="Benefit source updated.",
    )


@router.get(
    "/organizations/search",
    response_model=ApiResponse[list[OrganizationSearchResult]],
)
@limiter.limit(SEARCH_LIMIT)
def search_organizations(
    request: Request,
    q: str = Query("", max_length=255),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Organization picker lookup. Short queries return an empty list."""
    return ApiResponse(data=organization_service.search_organizations(db, q))


@router.put(
    "/sessions/{session_id}/sponsoring-organization",
    response_model=ApiResponse[StepResult],
)
def update_sponsoring_organization(
    session_id: UUID,
    payload: SponsoringOrganizationUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    session = wizard.get_session(db, user, session_id)
    details = {"organization_id": str(payload.organization_id)}
    try:
        org = wizard.update_sponsoring_organization(db, session, user, payload.organization_id)
    except NotFoundError as exc:
        _log(db, request, user, Action.SPONSORING_ORGANIZATION_UPDATE_NOT_FOUND,
             ActivityStatus.FAILURE, session_id, details, exc.message)
        raise
    except UnexpectedError as exc:
        _log(db, request, user, Action.SPONSORING_ORGANIZATION_UPDATE_FAILED,
             ActivityStatus.FAILURE, session_id, details, exc.message)
        raise

    _log(db, request, user, Action.SPONSORING_ORGANIZATION_UPDATE, ActivityStatus.SUCCESS,
         session_id, {**details, "organization_name": org.name})
    return ApiResponse(
        data=StepResult(session=_read(session), next_step=WizardStep.PERSONAL_INFORMATION),
        message="Sponsoring organization updated.",
    )


@router.put(
    "/sessions/{session_id}/personal-information",
    response_model=ApiResponse[StepResult],
)
def submit_personal_information(
    session_id: UUID,
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    session = wizard.get_session(db, user, session_id)
    try:
        info = PersonalInformation.model_validate(payload)
    except PydanticValidationError as exc:
        errors = format_validation_errors(exc.errors())
        _log(db, request, user, Action.PERSONAL_INFORMATION_SUBMIT_VALIDATION_FAILED,
             ActivityStatus.FAILURE, session_id, {"errors": errors})
        raise ValidationError(errors=errors)

    try:
        next_step = wizard.submit_personal_information(db, session, user, info)
    except UnexpectedError as exc:
        _log(db, request, user, Action.PERSONAL_INFORMATION_SUBMIT_FAILED,
             ActivityStatus.FAILURE, session_id, None, exc.message)
        raise

    # Personal details stay out of the audit trail
    _log(db, request, user, Action.PERSONAL_INFORMATION_SUBMIT, ActivityStatus.SUCCESS,
         session_id, {"fields": sorted(info.model_fields_set), "next_step": next_step.value})
    return ApiResponse(
        data=StepResult(session=_read(session), next_step=next_step),
        message="Personal information saved.",
    )


@router.post("/sessions/{session_id}/work-email", response_model=ApiResponse[WorkEmailResult])
def submit_work_email(
    session_id: UUID,
    request: Request,
    payload: dict | None = Body(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Optional work email. Only a malformed address blocks progress; a missing
    or unmatched one is recorded as a declined verification.
    """
    session = wizard.get_session(db, user, session_id)
    try:
        data = WorkEmailSubmit.model_validate(payload or {})
    except PydanticValidationError as exc:
        errors = format_validation_errors(exc.errors())
        _log(db, request, user, Action.BENEFIT_VERIFICATION_VALIDATION_FAILED,
             ActivityStatus.FAILURE, session_id, {"errors": errors})
        raise ValidationError("Invalid email address", errors=errors)

    try:
        status, message = wizard.submit_work_email(db, session, user, data.work_email)
    except UnexpectedError as exc:
        _log(db, request, user, Action.BENEFIT_VERIFICATION_FAILED, ActivityStatus.FAILURE,
             session_id, None, exc.message)
        raise

    _log(db, request, user, Action.BENEFIT_VERIFICATION, ActivityStatus.INFO, session_id,
         {
             "organization_id": session.sponsoring_organization_id,
             "work_email": data.work_email,
             "benefit_status": status.value,
         },
         message)
    return ApiResponse(
        data=WorkEmailResult(
            session=_read(session),
            next_step=WizardStep.PACKAGE_SELECTION,
            verification_status=status.value,
            message=message,
        ),
        message=message,
    )


@router.get("/sessions/{session_id}/packages", response_model=ApiResponse[list[WizardPackage]])
def list_packages(
    session_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Packages for the resolved organization, or the default packages."""
    session = wizard.get_session(db, user, session_id)
    return ApiResponse(data=wizard.list_packages(db, session))


@router.put("/sessions/{session_id}/package", response_model=ApiResponse[StepResult])
def select_package(
    session_id: UUID,
    payload: PackageSelect,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    session = wizard.get_session(db, user, session_id)
    details = {"package_id": str(payload.package_id)}
    try:
        package = wizard.select_package(db, session, user, payload.package_id)
    except NotFoundError as exc:
        _log(db, request, user, Action.PACKAGE_SELECT_NOT_FOUND, ActivityStatus.FAILURE,
             session_id, details, exc.message)
        raise
    except UnexpectedError as exc:
        _log(db, request, user, Action.PACKAGE_SELECT_FAILED, ActivityStatus.FAILURE,
             session_id, details, exc.message)
        raise

    _log(db, request, user, Action.PACKAGE_SELECT, ActivityStatus.SUCCESS, session_id,
         {**details, "package_name": package.name})
    return ApiResponse(
        data=StepResult(session=_read(session), next_step=None),
        message="Package selection updated.",
    )


@router.post("/sessions/{session_id}/complete", response_model=ApiResponse[BenefitSessionRead])
def complete_setup(
    session_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    session = wizard.get_session(db, user, session_id)
    try:
        wizard.complete_setup(db, session, user)
    except UnexpectedError as exc:
        _log(db, request, user, Action.BENEFIT_SETUP_COMPLETE_FAILED, ActivityStatus.FAILURE,
             session_id, None, exc.message)
        raise

    _log(db, request, user, Action.BENEFIT_SETUP_COMPLETE, ActivityStatus.SUCCESS, session_id,
         {"selected_package_id": session.selected_package_id})
    return ApiResponse(data=_read(session), message="Benefit setup complete.")
