"""Authentication router - session identity and user mirroring.

Sign-in itself is handled by the identity provider, which sets the session
cookie. These endpoints read that cookie.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fertility_api.core.deps import COOKIE_NAME, get_current_user, get_db, resolve_identity
from fertility_api.core.errors import AuthenticationError, ConflictError
from fertility_api.db.enums import ActivityActionType, ActivityStatus, Role
from fertility_api.db.models import PatientProfile, User
from fertility_api.schemas.auth import MeResponse, SyncRequest
from fertility_api.schemas.common import ApiResponse
from fertility_api.services import user_service
from fertility_api.services.activity_log_service import log_activity

logger = logging.getLogger(__name__)

router = APIRouter()

EMAIL_TAKEN = "This email is already registered to another account. Contact an administrator."


@router.get("/me", response_model=ApiResponse[MeResponse])
def get_me(user: User = Depends(get_current_user)):
    """Current user profile."""
    return ApiResponse(data=MeResponse.model_validate(user))


@router.post("/sync", response_model=ApiResponse[MeResponse])
def sync_user(
    request: Request,
    payload: SyncRequest | None = None,
    db: Session = Depends(get_db),
):
    """
    Mirror a freshly signed-up identity into the users table.

    Idempotent: an existing row is returned unchanged. An email already held
    by a different user id is a conflict.
    """
    identity = resolve_identity(request)
    if identity is None:
        raise AuthenticationError()

    user = db.query(User).filter(User.id == identity.user_id).first()
    if user:
        return ApiResponse(data=MeResponse.model_validate(user), message="User already exists.")

    email = identity.email.lower()
    if user_service.get_user_by_email(db, email):
        logger.warning("Sign-in %s collides with an existing user email", identity.user_id)
        log_activity(
            db,
            ActivityActionType.USER_SYNC_CONFLICT,
            user_email=email,
            target_entity_type="user",
            target_entity_id=identity.user_id,
            status=ActivityStatus.FAILURE,
            description="Sign-in identity does not match the existing user with this email.",
            request=request,
        )
        raise ConflictError(EMAIL_TAKEN)

    payload = payload or SyncRequest()
    user = User(
        id=identity.user_id,
        email=email,
        role=Role.PATIENT.value,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )
    db.add(user)
    db.add(
        PatientProfile(
            user_id=identity.user_id,
            first_name=payload.first_name or "",
            last_name=payload.last_name or "",
            email=user.email,
            date_of_birth=payload.date_of_birth,
        )
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(EMAIL_TAKEN)
    db.refresh(user)
    logger.info("Mirrored new user %s", user.id)

    log_activity(
        db,
        ActivityActionType.USER_SYNC,
        user_id=user.id,
        user_email=user.email,
        target_entity_type="user",
        target_entity_id=user.id,
        status=ActivityStatus.SUCCESS,
        description="User record created on first sign-in.",
        request=request,
    )
    return ApiResponse(data=MeResponse.model_validate(user), message="User created.")


@router.post("/logout", response_model=ApiResponse[None])
def logout(response: Response):
    """Clear the session cookie."""
    response.delete_cookie(COOKIE_NAME, path="/")
    return ApiResponse(message="Logged out.")
