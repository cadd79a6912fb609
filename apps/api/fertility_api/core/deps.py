"""FastAPI dependencies for authentication, authorization, and database access."""

import logging
from typing import Generator

import jwt
from fastapi import Depends, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from fertility_api.core.config import settings
from fertility_api.core.errors import (
    AuthenticationError,
    AuthorizationError,
    UnexpectedError,
)
from fertility_api.core.security import decode_session_token
from fertility_api.db.session import SessionLocal
from fertility_api.schemas.auth import Identity, TokenPayload

logger = logging.getLogger(__name__)

COOKIE_NAME = settings.SESSION_COOKIE_NAME


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def resolve_identity(request: Request) -> Identity | None:
    """
    Resolve the caller identity from the session cookie.

    Returns None for a missing, expired or malformed token; never raises.
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        return None

    try:
        payload = TokenPayload.model_validate(decode_session_token(token))
    except (jwt.InvalidTokenError, PydanticValidationError):
        return None

    return Identity(user_id=payload.sub, email=payload.email)


def get_current_user(request: Request, db: Session = Depends(get_db)):
    """
    Get authenticated user from session cookie.

    Raises:
        AuthenticationError: No identity, or identity has no user row
    """
    # Import here to avoid circular imports
    from fertility_api.db.models import User

    identity = resolve_identity(request)
    if identity is None:
        raise AuthenticationError()

    user = db.query(User).filter(User.id == identity.user_id).first()
    if not user:
        raise AuthenticationError()

    return user


def require_admin(request: Request, db: Session = Depends(get_db)) -> Identity:
    """
    Admin-only dependency built on the admin authorization guard.

    Raises:
        AuthenticationError: No resolvable identity
        AuthorizationError: Identity resolved but not an admin
    """
    from fertility_api.core.admin_auth import authorize

    result = authorize(request, db)
    if result.authorized:
        return result.user
    if result.status_code == 401:
        raise AuthenticationError(result.error)
    raise AuthorizationError(result.error)


def require_provider(request: Request, db: Session = Depends(get_db)):
    """Provider-only dependency. Returns the provider's user row."""
    from fertility_api.db.enums import Role

    user = get_current_user(request, db)
    if user.role != Role.PROVIDER.value:
        raise AuthorizationError()
    return user


def get_payment_client(request: Request):
    """
    Payment processor client built at application start-up.

    Raises:
        UnexpectedError: Payments are not configured
    """
    client = getattr(request.app.state, "payment_client", None)
    if client is None:
        logger.error("Payment client requested but STRIPE_SECRET_KEY is not set")
        raise UnexpectedError("Payment processing is not configured.")
    return client
