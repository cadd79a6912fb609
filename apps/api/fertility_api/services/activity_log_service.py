"""Activity log writer - append-only audit trail for sensitive mutations.

Writes are best-effort: a failure is reported through the operational logger
and never reaches the caller. The writer commits its own row on the caller's
session, so callers finish (commit or roll back) their business transaction
first.

Security guidelines:
- NEVER log secrets (payment client secrets, session tokens)
- Use IDs instead of raw data where possible
"""

import logging
from typing import Any
from uuid import UUID

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fertility_api.core.config import settings
from fertility_api.db.enums import ActivityActionType, ActivityStatus
from fertility_api.db.models import ActivityLog, User

logger = logging.getLogger(__name__)


def get_client_ip(request: Request | None) -> str | None:
    """
    Extract client IP from request.

    Only trusts X-Forwarded-For when TRUST_PROXY_HEADERS=True.
    """
    if not request:
        return None

    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return None


def _resolve_email(db: Session, user_id: UUID) -> str | None:
    try:
        return db.query(User.email).filter(User.id == user_id).scalar()
    except SQLAlchemyError:
        logger.warning("Could not resolve email for activity log user %s", user_id)
        db.rollback()
        return None


def _value(item):
    return item.value if hasattr(item, "value") else item


def log_activity(
    db: Session,
    action_type: ActivityActionType | str,
    *,
    user_id: UUID | None = None,
    user_email: str | None = None,
    target_entity_type: str | None = None,
    target_entity_id: UUID | str | None = None,
    status: ActivityStatus | str | None = None,
    details: dict[str, Any] | None = None,
    description: str | None = None,
    request: Request | None = None,
) -> None:
    """
    Record one activity log entry. Never raises.

    Args:
        db: Database session (business work already committed or rolled back)
        action_type: Tag for the action, one per failure mode
        user_id: Actor; email is looked up when not supplied
        user_email: Actor email
        target_entity_type: e.g. "organization", "package"
        target_entity_id: Id of the affected row
        status: SUCCESS / FAILURE / ATTEMPT / INFO
        details: Structured payload to reconstruct the attempted change
        description: Human readable summary
        request: Inbound request, used for the client IP
    """
    try:
        if user_id and not user_email:
            user_email = _resolve_email(db, user_id)

        entry = ActivityLog(
            user_id=user_id,
            user_email=user_email,
            action_type=_value(action_type),
            target_entity_type=target_entity_type,
            target_entity_id=str(target_entity_id) if target_entity_id is not None else None,
            status=_value(status),
            details=jsonable_encoder(details) if details is not None else None,
            description=description,
            ip_address=get_client_ip(request),
        )
        db.add(entry)
        db.commit()
    except Exception:
        logger.exception("Failed to write activity log entry %s", _value(action_type))
        try:
            db.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback after activity log failure also failed")
