"""Typed application errors.

Each error maps to exactly one HTTP status. Services raise these directly,
so routers never inspect exception messages to decide on a status code.
"""

from typing import Any


class AppError(Exception):
    """Base class for errors rendered as the failure envelope."""

    status_code = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: str | None = None, errors: Any = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "message": self.message}
        if self.errors is not None:
            payload["errors"] = self.errors
        return payload


class ValidationError(AppError):
    """Malformed or missing input."""

    status_code = 400
    default_message = "Invalid request data"


class AuthenticationError(AppError):
    """No resolvable identity."""

    status_code = 401
    default_message = "User is not authenticated."


class AuthorizationError(AppError):
    """Identity resolved but role is insufficient."""

    status_code = 403
    default_message = "User is not authorized."


class NotFoundError(AppError):
    """Referenced entity does not exist."""

    status_code = 404
    default_message = "Resource not found."


class ConflictError(AppError):
    """Uniqueness or referential conflict."""

    status_code = 409
    default_message = "Resource already exists."


class UnexpectedError(AppError):
    """Store or payment processor failure."""

    status_code = 500


def format_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, str]]:
    """Flatten pydantic error dicts into `{field, message}` pairs."""
    formatted = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        formatted.append({"field": ".".join(loc), "message": error.get("msg", "")})
    return formatted
