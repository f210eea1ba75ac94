"""
Domain errors raised by the credential store and the session/reset managers.

Each error carries the HTTP status and the stable error code the API layer
renders in its error envelope. Credential and enumeration sensitive errors
use deliberately generic messages.
"""
from __future__ import annotations

from typing import Optional


class AuthError(Exception):
    status_code: int = 400
    error_code: str = "BAD_REQUEST"
    default_message: str = "Bad request"

    def __init__(self, message: Optional[str] = None, *, details: Optional[dict] = None):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.details = details or {}


class DuplicateEmail(AuthError):
    status_code = 409
    error_code = "CONFLICT"
    default_message = "User already exists with this email"


class InvalidCredentials(AuthError):
    status_code = 401
    error_code = "INVALID_CREDENTIALS"
    default_message = "Invalid credentials"


class InvalidRefreshToken(AuthError):
    """Refresh token failed verification, was already rotated, or was revoked.

    ``clear_tokens`` tells the caller to drop any client-held tokens.
    """
    status_code = 403
    error_code = "INVALID_REFRESH_TOKEN"
    default_message = "Invalid refresh token"
    clear_tokens = True


class InvalidOrExpiredToken(AuthError):
    status_code = 400
    error_code = "INVALID_RESET_TOKEN"
    default_message = "Invalid or expired reset token"


class Unauthenticated(AuthError):
    status_code = 401
    error_code = "UNAUTHENTICATED"
    default_message = "Access token required"


class Forbidden(AuthError):
    status_code = 403
    error_code = "FORBIDDEN"
    default_message = "Invalid or expired token"


class NotFound(AuthError):
    status_code = 404
    error_code = "NOT_FOUND"
    default_message = "User not found"


class InfrastructureError(AuthError):
    """
    Store or delivery fault. The whole operation may be retried by the
    caller; it must never be resumed half way.
    """
    status_code = 503
    error_code = "SERVICE_UNAVAILABLE"
    default_message = "Service temporarily unavailable"
    retryable = True


class StoreUnavailable(InfrastructureError):
    error_code = "STORE_UNAVAILABLE"
    default_message = "Credential store unavailable"


class TransactionFailed(InfrastructureError):
    error_code = "TRANSACTION_FAILED"
    default_message = "Transaction failed"


class EmailDeliveryFailed(InfrastructureError):
    status_code = 502
    error_code = "EMAIL_DELIVERY_FAILED"
    default_message = "Could not send email"
