"""
Domain errors for the auth backend.

Every domain error carries a ``status_code`` and a stable ``code`` so the
HTTP boundary can map it to a response without knowing the class tree.
Store and transport failures are not AuthErrors; they propagate unchanged
and end up as generic server failures.
"""

from typing import Optional


class AuthError(Exception):
    """Base class for expected, client-caused failures."""

    status_code = 400
    code = "auth_error"
    default_message = "Request could not be processed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


# Validation

class ValidationError(AuthError):
    code = "validation_error"
    default_message = "Invalid request"


class InvalidPhoneError(ValidationError):
    code = "invalid_phone"
    default_message = "Invalid phone number format"


class InvalidPasswordError(ValidationError):
    code = "invalid_password"
    default_message = "Password does not meet requirements"


# Conflicts

class ConflictError(AuthError):
    """A unique field is already used by another account."""

    status_code = 409
    code = "conflict"
    default_message = "Value is already taken"
    field_name: Optional[str] = None


class PhoneTakenError(ConflictError):
    code = "phone_taken"
    default_message = "Phone number is already registered"
    field_name = "phone"


class UsernameTakenError(ConflictError):
    code = "username_taken"
    default_message = "Username is already taken"
    field_name = "username"


class EmailTakenError(ConflictError):
    code = "email_taken"
    default_message = "Email is already taken"
    field_name = "email"


CONFLICT_ERRORS = {
    cls.field_name: cls
    for cls in (PhoneTakenError, UsernameTakenError, EmailTakenError)
}


# Credentials / flow state

class UnauthorizedError(AuthError):
    """Bad credentials or an unusable token. Never says which part failed."""

    status_code = 401
    code = "unauthorized"
    default_message = "Invalid credentials"


class InvalidOldPasswordError(AuthError):
    code = "invalid_old_password"
    default_message = "Current password is incorrect"


class InvalidOrExpiredCodeError(AuthError):
    code = "invalid_or_expired_code"
    default_message = "Invalid or expired code"


class NotVerifiedError(AuthError):
    code = "not_verified"
    default_message = "Phone is not verified for password reset"


class RateLimitedError(AuthError):
    status_code = 429
    code = "rate_limited"
    default_message = "Code was already sent, try again later"

    def __init__(self, retry_after: int = 0, message: Optional[str] = None):
        super().__init__(message)
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["retry_after"] = self.retry_after
        return data


class NotFoundError(AuthError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class UserNotFoundError(NotFoundError):
    code = "user_not_found"
    default_message = "User not found"


# Internal / transient

class InvalidTokenError(Exception):
    """A JWT failed signature, expiry or claim checks."""


class TransientError(Exception):
    """I/O failure in a collaborator (store, SMS gateway)."""

    status_code = 503


class SMSDeliveryError(TransientError):
    """SMS gateway rejected or failed to accept a message."""
