"""Uniform response envelope returned by every endpoint."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success flag, human-readable message, and payload or error description.

    ``error`` holds internal detail and is only populated in development mode.
    """

    success: bool
    message: str
    data: T | None = None
    error: str | None = None


def ok(data: T, message: str = "OK") -> ApiResponse[T]:
    """Build a success envelope."""
    return ApiResponse(success=True, message=message, data=data)
