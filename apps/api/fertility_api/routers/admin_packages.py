"""Admin package management router."""

import logging
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fertility_api.core.deps import get_db, require_admin
from fertility_api.core.errors import (
    NotFoundError,
    UnexpectedError,
    ValidationError,
    format_validation_errors,
)
from fertility_api.db.enums import ActivityActionType as Action, ActivityStatus
from fertility_api.schemas.auth import Identity
from fertility_api.schemas.common import ApiResponse
from fertility_api.schemas.package import PackageCreate, PackageRead, PackageUpdate
from fertility_api.services import package_service
from fertility_api.services.activity_log_service import log_activity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/packages", tags=["admin"])


def _log(db, request, admin: Identity, action: Action, status: ActivityStatus,
         target_id=None, details=None, description=None) -> None:
    log_activity(
        db,
        action,
        user_id=admin.user_id,
        user_email=admin.email,
        target_entity_type="package",
        target_entity_id=target_id,
        status=status,
        details=details,
        description=description,
        request=request,
    )


@router.get("", response_model=ApiResponse[list[PackageRead]])
def list_packages(
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """All packages with their linked organization, ordered by name."""
    return ApiResponse(data=package_service.list_packages(db))


@router.post("", status_code=201, response_model=ApiResponse[PackageRead])
def create_package(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """
    Create a package and its organization link in one transaction.

    Setting is_base_employer_package clears the flag on the organization's
    other packages.
    """
    try:
        data = PackageCreate.model_validate(payload)
    except PydanticValidationError as exc:
        errors = format_validation_errors(exc.errors())
        _log(db, request, admin, Action.PACKAGE_CREATE_VALIDATION_FAILED, ActivityStatus.FAILURE,
             details={"submitted": payload, "errors": errors},
             description="Package creation rejected: invalid data.")
        raise ValidationError(errors=errors)

    submitted = data.model_dump()
    try:
        package = package_service.create_package(db, data)
    except NotFoundError as exc:
        _log(db, request, admin, Action.PACKAGE_CREATE_NOT_FOUND, ActivityStatus.FAILURE,
             details={"submitted": submitted}, description=exc.message)
        raise
    except UnexpectedError as exc:
        _log(db, request, admin, Action.PACKAGE_CREATE_FAILED, ActivityStatus.FAILURE,
             details={"submitted": submitted}, description=exc.message)
        raise

    _log(db, request, admin, Action.PACKAGE_CREATE, ActivityStatus.SUCCESS, package.id,
         {"package": package.model_dump()},
         f"Package '{package.name}' created for organization '{package.organization_name}'.")
    return ApiResponse(data=package, message="Package created successfully.")


@router.get("/{package_id}", response_model=ApiResponse[PackageRead])
def get_package(
    package_id: UUID,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    package = package_service.get_package(db, package_id)
    org = package_service.get_package_organization(db, package.id)
    return ApiResponse(data=package_service.to_read(package, org))


@router.put("/{package_id}", response_model=ApiResponse[PackageRead])
def update_package(
    package_id: UUID,
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    try:
        data = PackageUpdate.model_validate(payload)
    except PydanticValidationError as exc:
        errors = format_validation_errors(exc.errors())
        _log(db, request, admin, Action.PACKAGE_UPDATE_VALIDATION_FAILED, ActivityStatus.FAILURE,
             package_id, {"submitted": payload, "errors": errors},
             "Package update rejected: invalid data.")
        raise ValidationError(errors=errors)

    submitted = data.model_dump(exclude_unset=True)
    try:
        package = package_service.update_package(db, package_id, data)
    except NotFoundError as exc:
        _log(db, request, admin, Action.PACKAGE_UPDATE_NOT_FOUND, ActivityStatus.FAILURE,
             package_id, {"submitted": submitted}, exc.message)
        raise
    except UnexpectedError as exc:
        _log(db, request, admin, Action.PACKAGE_UPDATE_FAILED, ActivityStatus.FAILURE,
             package_id, {"submitted": submitted}, exc.message)
        raise

    _log(db, request, admin, Action.PACKAGE_UPDATE, ActivityStatus.SUCCESS, package_id,
         {"changes": submitted}, f"Package '{package.name}' updated.")
    return ApiResponse(data=package, message="Package updated successfully.")


@router.delete("/{package_id}", response_model=ApiResponse[None])
def delete_package(
    package_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    try:
        deleted = package_service.delete_package(db, package_id)
    except NotFoundError as exc:
        _log(db, request, admin, Action.PACKAGE_DELETE_NOT_FOUND, ActivityStatus.FAILURE,
             package_id, None, exc.message)
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Package %s deletion failed", package_id)
        _log(db, request, admin, Action.PACKAGE_DELETE_FAILED, ActivityStatus.FAILURE,
             package_id, None, "Unexpected error while deleting package.")
        raise UnexpectedError("Failed to delete package.")

    _log(db, request, admin, Action.PACKAGE_DELETE, ActivityStatus.SUCCESS, package_id,
         {"deleted": deleted}, f"Package '{deleted['name']}' deleted.")
    return ApiResponse(message="Package deleted successfully.")
