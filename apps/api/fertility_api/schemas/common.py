"""Response envelope shared by every JSON endpoint."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope: `{success: true, data?, message?}`."""
    success: bool = True
    data: T | None = None
    message: str | None = None
