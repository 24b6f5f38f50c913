"""Exception hierarchy for tenantgate."""

from __future__ import annotations

NETWORK_ERROR_MESSAGE = (
    "Unable to connect to the server. Please check your internet connection."
)
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


class TenantGateError(Exception):
    """Base exception for all tenantgate errors."""


class ConfigError(TenantGateError):
    """Raised when configuration is invalid."""


class BackendError(TenantGateError):
    """An error reported by (or while talking to) the hosted backend.

    ``message`` is the backend-provided text and is safe to show to users.
    """

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthApiError(BackendError):
    """Invalid credentials, duplicate email, weak password and friends."""

    status_code = 400


class BackendConnectionError(BackendError):
    """The backend could not be reached."""

    status_code = 503


class NotFoundError(BackendError):
    """Row missing, or hidden from the caller by a row-level policy."""

    status_code = 404


class PermissionDeniedError(NotFoundError):
    """Row-level policy rejection. Reported exactly like a missing row."""


class ConflictError(BackendError):
    """A unique constraint was violated."""

    status_code = 409


class DuplicateSlugError(ConflictError):
    """A tenant with this slug already exists."""


class DuplicateMembershipError(ConflictError):
    """The user is already associated with this tenant."""


class ValidationError(BackendError):
    """A required field is missing or a value is outside its allowed set."""

    status_code = 422


class InvalidRoleError(ValidationError):
    """Role is not one of owner, admin, member."""


class AuthFailedError(TenantGateError):
    """Raised by the session provider with an already user-facing message."""


def is_network_error(exc: BaseException) -> bool:
    """Whether ``exc`` means the backend was unreachable."""
    if isinstance(exc, BackendConnectionError):
        return True
    return str(exc) == "Failed to fetch"


def user_message(exc: BaseException) -> str:
    """Translate an exception into the text shown to the user."""
    if is_network_error(exc):
        return NETWORK_ERROR_MESSAGE
    if isinstance(exc, TenantGateError):
        return str(exc)
    return UNEXPECTED_ERROR_MESSAGE
