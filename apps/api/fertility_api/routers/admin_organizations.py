"""Admin organization directory router - organizations and approved emails."""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fertility_api.core.deps import get_db, require_admin
from fertility_api.core.errors import (
    ConflictError,
    NotFoundError,
    UnexpectedError,
    ValidationError,
    format_validation_errors,
)
from fertility_api.db.enums import ActivityActionType as Action
from fertility_api.db.enums import ActivityStatus
from fertility_api.schemas.auth import Identity
from fertility_api.schemas.common import ApiResponse
from fertility_api.schemas.organization import (
    ApprovedEmailCreate,
    ApprovedEmailDelete,
    ApprovedEmailList,
    ApprovedEmailRead,
    OrganizationCreate,
    OrganizationRead,
    OrganizationUpdate,
)
from fertility_api.services import organization_service
from fertility_api.services.activity_log_service import log_activity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/organizations", tags=["admin"])


def _log(
    db: Session,
    request: Request,
    admin: Identity,
    action: Action,
    status: ActivityStatus,
    target_type: str,
    target_id: Any = None,
    details: dict | None = None,
    description: str | None = None,
) -> None:
    log_activity(
        db,
        action,
        user_id=admin.user_id,
        user_email=admin.email,
        target_entity_type=target_type,
        target_entity_id=target_id,
        status=status,
        details=details,
        description=description,
        request=request,
    )


def _unexpected(db: Session, request: Request, admin: Identity, action: Action, target_type: str,
                target_id: Any, details: dict, what: str) -> UnexpectedError:
    db.rollback()
    logger.exception("Unexpected error while trying to %s", what)
    _log(db, request, admin, action, ActivityStatus.FAILURE, target_type, target_id, details,
         f"Unexpected error while trying to {what}.")
    return UnexpectedError(f"Failed to {what}.")


# =============================================================================
# Organizations
# =============================================================================

@router.get("", response_model=ApiResponse[list[OrganizationRead]])
def list_organizations(
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """All organizations, sorted by name."""
    orgs = organization_service.list_organizations(db)
    return ApiResponse(data=[OrganizationRead.model_validate(o) for o in orgs])


@router.post("", status_code=201, response_model=ApiResponse[OrganizationRead])
def create_organization(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    try:
        data = OrganizationCreate.model_validate(payload)
    except PydanticValidationError as exc:
        errors = format_validation_errors(exc.errors())
        _log(db, request, admin, Action.ORGANIZATION_CREATE_VALIDATION_FAILED, ActivityStatus.FAILURE,
             "organization", details={"submitted": payload, "errors": errors},
             description="Organization creation rejected: invalid data.")
        raise ValidationError(errors=errors)

    try:
        org = organization_service.create_organization(db, data)
    except ConflictError as exc:
        _log(db, request, admin, Action.ORGANIZATION_CREATE_DUPLICATE, ActivityStatus.FAILURE,
             "organization", details={"submitted": data.model_dump()}, description=exc.message)
        raise
    except SQLAlchemyError:
        raise _unexpected(db, request, admin, Action.ORGANIZATION_CREATE_FAILED, "organization",
                          None, {"submitted": data.model_dump()}, "create organization")

    result = OrganizationRead.model_validate(org)
    _log(db, request, admin, Action.ORGANIZATION_CREATE, ActivityStatus.SUCCESS, "organization",
         result.id, {"organization": result.model_dump()},
         f"Organization '{result.name}' created.")
    return ApiResponse(data=result, message="Organization created successfully.")


# =============================================================================
# Approved emails
# (declared before /{org_id} so "emails" is never parsed as an id)
# =============================================================================

@router.post("/emails", status_code=201, response_model=ApiResponse[ApprovedEmailRead])
def add_approved_email(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    try:
        data = ApprovedEmailCreate.model_validate(payload)
    except PydanticValidationError as exc:
        errors = format_validation_errors(exc.errors())
        _log(db, request, admin, Action.APPROVED_EMAIL_ADD_VALIDATION_FAILED, ActivityStatus.FAILURE,
             "approved_email", details={"submitted": payload, "errors": errors},
             description="Approved email rejected: invalid data.")
        raise ValidationError(errors=errors)

    submitted = data.model_dump()
    try:
        record = organization_service.add_approved_email(db, data)
    except NotFoundError as exc:
        _log(db, request, admin, Action.APPROVED_EMAIL_ADD_NOT_FOUND, ActivityStatus.FAILURE,
             "organization", data.organization_id, {"submitted": submitted}, exc.message)
        raise
    except ConflictError as exc:
        _log(db, request, admin, Action.APPROVED_EMAIL_ADD_DUPLICATE, ActivityStatus.FAILURE,
             "approved_email", None, {"submitted": submitted}, exc.message)
        raise
    except SQLAlchemyError:
        raise _unexpected(db, request, admin, Action.APPROVED_EMAIL_ADD_FAILED, "approved_email",
                          None, {"submitted": submitted}, "add approved email")

    result = ApprovedEmailRead.model_validate(record)
    _log(db, request, admin, Action.APPROVED_EMAIL_ADD, ActivityStatus.SUCCESS, "approved_email",
         result.id, {"approved_email": result.model_dump()},
         f"Approved email {result.email} added.")
    return ApiResponse(data=result, message="Email approved successfully.")


@router.delete("/emails", response_model=ApiResponse[None])
def delete_approved_email(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Delete an approved email by its row id."""
    try:
        data = ApprovedEmailDelete.model_validate(payload)
    except PydanticValidationError as exc:
        errors = format_validation_errors(exc.errors())
        _log(db, request, admin, Action.APPROVED_EMAIL_DELETE_VALIDATION_FAILED, ActivityStatus.FAILURE,
             "approved_email", details={"submitted": payload, "errors": errors},
             description="Approved email deletion rejected: invalid data.")
        raise ValidationError(errors=errors)

    submitted = data.model_dump()
    try:
        deleted = organization_service.delete_approved_email(db, data.organization_id, data.email_id)
    except NotFoundError as exc:
        _log(db, request, admin, Action.APPROVED_EMAIL_DELETE_NOT_FOUND, ActivityStatus.FAILURE,
             "approved_email", data.email_id, {"submitted": submitted}, exc.message)
        raise
    except SQLAlchemyError:
        raise _unexpected(db, request, admin, Action.APPROVED_EMAIL_DELETE_FAILED, "approved_email",
                          data.email_id, {"submitted": submitted}, "delete approved email")

    _log(db, request, admin, Action.APPROVED_EMAIL_DELETE, ActivityStatus.SUCCESS, "approved_email",
         data.email_id, {"deleted": deleted}, f"Approved email {deleted['email']} removed.")
    return ApiResponse(message="Approved email deleted successfully.")


# =============================================================================
# Single organization
# =============================================================================

@router.get("/{org_id}", response_model=ApiResponse[OrganizationRead])
def get_organization(
    org_id: UUID,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    org = organization_service.get_organization(db, org_id)
    return ApiResponse(data=OrganizationRead.model_validate(org))


@router.get("/{org_id}/emails", response_model=ApiResponse[ApprovedEmailList])
def list_approved_emails(
    org_id: UUID,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Approved emails ordered by address. Unknown orgs get a placeholder name."""
    emails, org_name = organization_service.list_approved_emails(db, org_id)
    return ApiResponse(
        data=ApprovedEmailList(
            emails=[ApprovedEmailRead.model_validate(e) for e in emails],
            org_name=org_name,
        )
    )


@router.put("/{org_id}", response_model=ApiResponse[OrganizationRead])
def update_organization(
    org_id: UUID,
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    try:
        data = OrganizationUpdate.model_validate(payload)
    except PydanticValidationError as exc:
        errors = format_validation_errors(exc.errors())
        _log(db, request, admin, Action.ORGANIZATION_UPDATE_VALIDATION_FAILED, ActivityStatus.FAILURE,
             "organization", org_id, {"submitted": payload, "errors": errors},
             "Organization update rejected: invalid data.")
        raise ValidationError(errors=errors)

    submitted = data.model_dump(exclude_unset=True)
    try:
        org = organization_service.update_organization(db, org_id, data)
    except NotFoundError as exc:
        _log(db, request, admin, Action.ORGANIZATION_UPDATE_NOT_FOUND, ActivityStatus.FAILURE,
             "organization", org_id, {"submitted": submitted}, exc.message)
        raise
    except ConflictError as exc:
        _log(db, request, admin, Action.ORGANIZATION_UPDATE_DUPLICATE, ActivityStatus.FAILURE,
             "organization", org_id, {"submitted": submitted}, exc.message)
        raise
    except SQLAlchemyError:
        raise _unexpected(db, request, admin, Action.ORGANIZATION_UPDATE_FAILED, "organization",
                          org_id, {"submitted": submitted}, "update organization")

    result = OrganizationRead.model_validate(org)
    _log(db, request, admin, Action.ORGANIZATION_UPDATE, ActivityStatus.SUCCESS, "organization",
         org_id, {"changes": submitted}, f"Organization '{result.name}' updated.")
    return ApiResponse(data=result, message="Organization updated successfully.")


@router.delete("/{org_id}", response_model=ApiResponse[None])
def delete_organization(
    org_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    try:
        deleted = organization_service.delete_organization(db, org_id)
    except NotFoundError as exc:
        _log(db, request, admin, Action.ORGANIZATION_DELETE_NOT_FOUND, ActivityStatus.FAILURE,
             "organization", org_id, None, exc.message)
        raise
    except ConflictError as exc:
        _log(db, request, admin, Action.ORGANIZATION_DELETE_CONFLICT, ActivityStatus.FAILURE,
             "organization", org_id, None, exc.message)
        raise
    except SQLAlchemyError:
        raise _unexpected(db, request, admin, Action.ORGANIZATION_DELETE_FAILED, "organization",
                          org_id, {}, "delete organization")

    _log(db, request, admin, Action.ORGANIZATION_DELETE, ActivityStatus.SUCCESS, "organization",
         org_id, {"deleted": deleted}, f"Organization '{deleted['name']}' deleted.")
    return ApiResponse(message="Organization deleted successfully.")
