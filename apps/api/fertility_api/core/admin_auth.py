"""Admin authorization guard.

`authorize()` never raises: every outcome is carried in the returned
`AdminAuthorization` so callers can map it to a status code deterministically.
"""

import logging
from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fertility_api.db.enums import Role
from fertility_api.db.models import User
from fertility_api.schemas.auth import Identity

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED = "User is not authenticated."
NOT_AUTHORIZED = "User is not authorized."
AUTHORIZATION_DB_ERROR = "Database error during authorization."


@dataclass
class AdminAuthorization:
    """Outcome of an admin authorization check."""
    authorized: bool
    user: Identity | None = None
    error: str | None = None

    @property
    def status_code(self) -> int:
        if self.authorized:
            return 200
        # No identity at all is 401, anything else (role, lookup failure) is 403
        return 401 if self.user is None else 403


def authorize(request: Request, db: Session) -> AdminAuthorization:
    """Resolve the caller from the session cookie and require the admin role."""
    # Import here to avoid circular imports
    from fertility_api.core.deps import resolve_identity

    identity = resolve_identity(request)
    if identity is None:
        return AdminAuthorization(authorized=False, error=NOT_AUTHENTICATED)

    try:
        role = db.query(User.role).filter(User.id == identity.user_id).scalar()
    except SQLAlchemyError:
        logger.exception("Role lookup failed for user %s", identity.user_id)
        db.rollback()
        return AdminAuthorization(
            authorized=False, user=identity, error=AUTHORIZATION_DB_ERROR
        )

    if role != Role.ADMIN.value:
        return AdminAuthorization(authorized=False, user=identity, error=NOT_AUTHORIZED)

    return AdminAuthorization(authorized=True, user=identity)
