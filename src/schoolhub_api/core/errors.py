"""Domain error taxonomy shared by services, the guard and the HTTP layer."""

from __future__ import annotations

from typing import Any

from fastapi import status


class SchoolHubError(Exception):
    """Base class for errors that map onto a client-facing failure."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, *, meta: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.meta = meta
        super().__init__(self.message)


class AuthenticationError(SchoolHubError):
    """Raised when a request cannot be authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"
    default_message = "Authentication required"


class InvalidTokenError(AuthenticationError):
    """Raised when a bearer token fails signature, expiry or claim checks."""

    code = "invalid_token"
    default_message = "Invalid authentication token"


class PermissionDeniedError(SchoolHubError):
    """Raised when an authenticated principal may not perform an action."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_message = "You do not have permission to perform this action"

    def __init__(
        self,
        message: str | None = None,
        *,
        resource: str | None = None,
        role: str | None = None,
    ) -> None:
        self.resource = resource
        self.role = role
        meta = {key: value for key, value in (("resource", resource), ("role", role)) if value}
        super().__init__(message, meta=meta or None)


class NotFoundError(SchoolHubError):
    """Raised when a referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Resource not found"


class ConflictError(SchoolHubError):
    """Raised on uniqueness or state conflicts."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "Resource conflict"


class ValidationFailedError(SchoolHubError):
    """Raised when input is well-formed JSON but semantically invalid."""

    status_code = 422
    code = "validation_failed"
    default_message = "Invalid input"


class InternalError(SchoolHubError):
    """Raised for unexpected store or network failures."""


__all__ = [
    "AuthenticationError",
    "ConflictError",
    "InternalError",
    "InvalidTokenError",
    "NotFoundError",
    "PermissionDeniedError",
    "SchoolHubError",
    "ValidationFailedError",
]
