"""Error taxonomy for account and token operations.

Every ``AuthError`` is a business-rule failure: the API layer turns it into
a client response carrying only ``error_code`` and ``message``. Token
failures share a single message whatever the cause (forged, expired,
already used) so callers learn nothing about which check failed.

``MissingIdentity`` is deliberately outside the hierarchy. It signals a
broken authorization gate and is left to surface as a server error.
"""
from __future__ import annotations


class AuthError(Exception):
    """Base class for typed failures returned to callers."""

    status_code: int = 400
    error_code: str = "bad_request"
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(AuthError):
    status_code = 404
    error_code = "not_found"
    default_message = "Not found"


class UserNotFound(NotFoundError):
    default_message = "User not found"


class InvalidCredentialError(AuthError):
    status_code = 401
    error_code = "invalid_credential"
    default_message = "Invalid credentials"


class InvalidTokenError(AuthError):
    status_code = 401
    error_code = "invalid_token"
    default_message = "Invalid or expired token"


class InvalidRefreshToken(InvalidTokenError):
    default_message = "Invalid refresh token"


class InvalidRecoveryToken(InvalidTokenError):
    default_message = "Invalid recovery token"


class ConflictError(AuthError):
    status_code = 409
    error_code = "conflict"
    default_message = "Conflict"


class UserAlreadyRegistered(ConflictError):
    default_message = "User already registered"


class UserAlreadyHasRole(ConflictError):
    default_message = "User already has this role"


class UserHasNoRole(ConflictError):
    default_message = "User does not have this role"


class ForbiddenError(AuthError):
    status_code = 403
    error_code = "forbidden"
    default_message = "Insufficient permissions"


class MissingIdentity(RuntimeError):
    """Verified claims carry no subject where authorization guarantees one."""


__all__ = [
    "AuthError",
    "NotFoundError",
    "UserNotFound",
    "InvalidCredentialError",
    "InvalidTokenError",
    "InvalidRefreshToken",
    "InvalidRecoveryToken",
    "ConflictError",
    "UserAlreadyRegistered",
    "UserAlreadyHasRole",
    "UserHasNoRole",
    "ForbiddenError",
    "MissingIdentity",
]
