"""
auth/errors.py -- Error taxonomy for the authentication service.

Every failure the service reports is an AuthError subclass carrying the HTTP
status and machine-readable code the API layer should use. api/main.py has a
single exception handler that turns these into the standard error envelope,
so route handlers never build error responses by hand.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all service-level failures."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailedError(AuthError):
    """Missing or malformed input. Raised before any store access."""

    status_code = 400
    code = "validation_error"
    default_message = "Request validation failed."


class ConflictError(AuthError):
    status_code = 400
    code = "conflict"
    default_message = "Email already registered."


class UnauthorizedError(AuthError):
    """Bad credentials. The message is identical for unknown email and wrong password."""

    status_code = 401
    code = "bad_credentials"
    default_message = "Invalid credentials."


class NotFoundError(AuthError):
    status_code = 404
    code = "not_found"
    default_message = "User not found."


class InvalidOrExpiredError(AuthError):
    status_code = 400
    code = "invalid_or_expired"
    default_message = "Invalid or expired code."


class DeliveryFailedError(AuthError):
    """The state transition committed but the notification was not delivered.

    result holds the success payload of the committed operation so the caller
    can tell the account/challenge exists and must not blindly retry.
    """

    status_code = 502
    code = "delivery_failed"
    default_message = "The request succeeded but the notification could not be delivered."

    def __init__(self, result: dict | None = None, message: str | None = None) -> None:
        super().__init__(message)
        self.result = result or {}


class InternalError(AuthError):
    """Unexpected store/infrastructure failure."""
