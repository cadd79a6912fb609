"""User administration service."""

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fertility_api.core.errors import ConflictError, NotFoundError, ValidationError
from fertility_api.db.enums import Role
from fertility_api.db.models import PatientProfile, Provider, User
from fertility_api.schemas.user import UserCreate, UserUpdate

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL = "A user with this email already exists."


def list_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.created_at.desc()).all()


def get_user(db: Session, user_id: UUID) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found.")
    return user


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(func.lower(User.email) == email.lower()).first()


def _ensure_role_profile(db: Session, user: User, specialization: str | None = None) -> None:
    """Providers need a provider profile; patients a patient profile."""
    if user.role == Role.PROVIDER.value:
        exists = db.query(Provider.id).filter(Provider.user_id == user.id).first()
        if not exists:
            db.add(
                Provider(
                    user_id=user.id,
                    first_name=user.first_name or "",
                    last_name=user.last_name or "",
                    specialization=specialization,
                )
            )
    elif user.role == Role.PATIENT.value:
        exists = db.query(PatientProfile.id).filter(PatientProfile.user_id == user.id).first()
        if not exists:
            db.add(
                PatientProfile(
                    user_id=user.id,
                    first_name=user.first_name or "",
                    last_name=user.last_name or "",
                    email=user.email,
                )
            )


def create_user(db: Session, data: UserCreate) -> User:
    """
    Create a user row and the profile its role needs.

    Raises:
        ConflictError: Email or id already registered
    """
    if get_user_by_email(db, data.email):
        raise ConflictError(DUPLICATE_EMAIL)
    if data.id and db.get(User, data.id):
        raise ConflictError("A user with this id already exists.")

    user = User(
        email=data.email,
        role=data.role.value,
        first_name=data.first_name,
        last_name=data.last_name,
    )
    if data.id:
        user.id = data.id
    db.add(user)
    try:
        db.flush()
        _ensure_role_profile(db, user, data.specialization)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(DUPLICATE_EMAIL)
    db.refresh(user)
    logger.info("User %s created with role %s", user.id, user.role)
    return user


def update_user(db: Session, user_id: UUID, data: UserUpdate) -> tuple[User, dict]:
    """
    Apply the fields present in the payload.

    Returns:
        (user, applied changes)
    """
    changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    if not changes:
        raise ValidationError("No fields provided for update.")

    user = get_user(db, user_id)
    if "role" in changes:
        changes["role"] = changes["role"].value

    for field, value in changes.items():
        setattr(user, field, value)
    db.flush()
    _ensure_role_profile(db, user)
    db.commit()
    db.refresh(user)
    return user, changes


def update_role(db: Session, email: str, role: Role) -> tuple[User, str]:
    """
    Change a user's role by email.

    Returns:
        (user, previous role)
    """
    user = get_user_by_email(db, email)
    if not user:
        raise NotFoundError("User not found.")

    previous = user.role
    user.role = role.value
    db.flush()
    _ensure_role_profile(db, user)
    db.commit()
    db.refresh(user)
    return user, previous


def delete_user(db: Session, user_id: UUID) -> dict:
    """Hard-delete a user (explicit admin action). Returns a snapshot."""
    user = get_user(db, user_id)
    snapshot = {"id": user.id, "email": user.email, "role": user.role}
    db.delete(user)
    db.commit()
    return snapshot
