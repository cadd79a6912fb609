"""Admin user management router."""

import logging
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
from fertility_api.db.enums import ActivityActionType as Action, ActivityStatus
from fertility_api.schemas.auth import Identity
from fertility_api.schemas.common import ApiResponse
from fertility_api.schemas.user import RoleUpdate, UserCreate, UserRead, UserUpdate
from fertility_api.services import user_service
from fertility_api.services.activity_log_service import log_activity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _log(db, request, admin: Identity, action: Action, status: ActivityStatus,
         target_id=None, details=None, description=None) -> None:
    log_activity(
        db,
        action,
        user_id=admin.user_id,
        user_email=admin.email,
        target_entity_type="user",
        target_entity_id=target_id,
        status=status,
        details=details,
        description=description,
        request=request,
    )


def _validate(model, payload: dict, db, request, admin, action: Action, target_id=None):
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        errors = format_validation_errors(exc.errors())
        _log(db, request, admin, action, ActivityStatus.FAILURE, target_id,
             {"submitted": payload, "errors": errors}, "Request rejected: invalid data.")
        raise ValidationError(errors=errors)


@router.get("/users", response_model=ApiResponse[list[UserRead]])
def list_users(
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """All users, newest first."""
    users = user_service.list_users(db)
    return ApiResponse(data=[UserRead.model_validate(u) for u in users])


@router.post("/create-user", status_code=201, response_model=ApiResponse[UserRead])
def create_user(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Create a user; providers also get a provider profile."""
    data = _validate(UserCreate, payload, db, request, admin, Action.USER_CREATE_VALIDATION_FAILED)
    submitted = data.model_dump(mode="json")

    try:
        user = user_service.create_user(db, data)
    except ConflictError as exc:
        _log(db, request, admin, Action.USER_CREATE_DUPLICATE, ActivityStatus.FAILURE,
             None, {"submitted": submitted}, exc.message)
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("User creation failed")
        _log(db, request, admin, Action.USER_CREATE_FAILED, ActivityStatus.FAILURE,
             None, {"submitted": submitted}, "Unexpected error while creating user.")
        raise UnexpectedError("Failed to create user.")

    result = UserRead.model_validate(user)
    _log(db, request, admin, Action.USER_CREATE, ActivityStatus.SUCCESS, result.id,
         {"user": result.model_dump()}, f"User {result.email} created with role {result.role.value}.")
    return ApiResponse(data=result, message="User created successfully.")


@router.post("/update-role", response_model=ApiResponse[UserRead])
def update_role(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Change a user's role by email."""
    data = _validate(RoleUpdate, payload, db, request, admin, Action.ROLE_UPDATE_VALIDATION_FAILED)

    try:
        user, previous = user_service.update_role(db, data.email, data.role)
    except NotFoundError as exc:
        _log(db, request, admin, Action.ROLE_UPDATE_NOT_FOUND, ActivityStatus.FAILURE,
             None, {"submitted": data.model_dump()}, exc.message)
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Role update failed for %s", data.email)
        _log(db, request, admin, Action.ROLE_UPDATE_FAILED, ActivityStatus.FAILURE,
             None, {"submitted": data.model_dump()}, "Unexpected error while updating role.")
        raise UnexpectedError("Failed to update role.")

    result = UserRead.model_validate(user)
    _log(db, request, admin, Action.ROLE_UPDATE, ActivityStatus.SUCCESS, result.id,
         {"previous_role": previous, "new_role": result.role.value},
         f"Role for {result.email} changed from {previous} to {result.role.value}.")
    return ApiResponse(data=result, message="Role updated successfully.")


@router.put("/users/{user_id}", response_model=ApiResponse[UserRead])
def update_user(
    user_id: UUID,
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    data = _validate(UserUpdate, payload, db, request, admin,
                     Action.USER_UPDATE_VALIDATION_FAILED, user_id)

    try:
        user, changes = user_service.update_user(db, user_id, data)
    except NotFoundError as exc:
        _log(db, request, admin, Action.USER_UPDATE_NOT_FOUND, ActivityStatus.FAILURE,
             user_id, {"submitted": data.model_dump(exclude_unset=True)}, exc.message)
        raise
    except ValidationError as exc:
        _log(db, request, admin, Action.USER_UPDATE_VALIDATION_FAILED, ActivityStatus.FAILURE,
             user_id, {"submitted": payload}, exc.message)
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("User update failed for %s", user_id)
        _log(db, request, admin, Action.USER_UPDATE_FAILED, ActivityStatus.FAILURE,
             user_id, {"submitted": payload}, "Unexpected error while updating user.")
        raise UnexpectedError("Failed to update user.")

    _log(db, request, admin, Action.USER_UPDATE, ActivityStatus.SUCCESS, user_id,
         {"changes": changes}, f"User {user_id} updated by admin.")
    return ApiResponse(data=UserRead.model_validate(user), message="User updated successfully.")


@router.delete("/users/{user_id}", response_model=ApiResponse[None])
def delete_user(
    user_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    try:
        deleted = user_service.delete_user(db, user_id)
    except NotFoundError as exc:
        _log(db, request, admin, Action.USER_DELETE_NOT_FOUND, ActivityStatus.FAILURE,
             user_id, None, exc.message)
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("User deletion failed for %s", user_id)
        _log(db, request, admin, Action.USER_DELETE_FAILED, ActivityStatus.FAILURE,
             user_id, None, "Unexpected error while deleting user.")
        raise UnexpectedError("Failed to delete user.")

    _log(db, request, admin, Action.USER_DELETE, ActivityStatus.SUCCESS, user_id,
         {"deleted": deleted}, f"User {deleted['email']} deleted by admin.")
    return ApiResponse(message="User deleted successfully.")
