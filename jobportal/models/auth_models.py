"""
Authentication Pipeline Models.

Pydantic models and enumerations for the contracts between
``SessionManager`` and the remote API gateway: wire payloads, the
domain error codes, and the per-operation status-code tables used to
classify gateway failures.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, SecretStr
from pydantic.alias_generators import to_camel

from jobportal.models.enums import UserRole
from jobportal.models.user import User


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

class AuthErrorCode(StrEnum):
    """Exhaustive enumeration of authentication error categories.

    Used by ``SessionManager`` to classify gateway failures and by the
    UI layer to decide which feedback to display.
    """

    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_DISABLED = "account_disabled"
    RATE_LIMITED = "rate_limited"
    NETWORK_UNAVAILABLE = "network_unavailable"
    SERVICE_UNAVAILABLE = "service_unavailable"
    INVALID_OR_EXPIRED_CODE = "invalid_or_expired_code"
    ACCOUNT_NOT_FOUND = "account_not_found"
    EMAIL_ALREADY_EXISTS = "email_already_exists"
    INVALID_INPUT_DATA = "invalid_input_data"
    SESSION_EXPIRED = "session_expired"
    AUTHENTICATION_REQUIRED = "authentication_required"
    UNKNOWN_ERROR = "unknown_error"


NETWORK_STATUS: int = 0
"""Transport status reserved for "no connection"."""

UNAUTHORIZED_STATUS: int = 401

_NETWORK_ENTRY: tuple[AuthErrorCode, str] = (
    AuthErrorCode.NETWORK_UNAVAILABLE,
    "Unable to connect to server. Please check your internet connection.",
)

# ---------------------------------------------------------------------------
# Status-code mappings, one per credential operation
# ---------------------------------------------------------------------------

LOGIN_ERROR_MAP: dict[int, tuple[AuthErrorCode, str]] = {
    401: (
        AuthErrorCode.INVALID_CREDENTIALS,
        "Invalid email or password. Please try again.",
    ),
    403: (
        AuthErrorCode.ACCOUNT_DISABLED,
        "Account is disabled. Please contact support.",
    ),
    429: (
        AuthErrorCode.RATE_LIMITED,
        "Too many login attempts. Please try again later.",
    ),
    NETWORK_STATUS: _NETWORK_ENTRY,
}

OTP_ERROR_MAP: dict[int, tuple[AuthErrorCode, str]] = {
    400: (
        AuthErrorCode.INVALID_OR_EXPIRED_CODE,
        "Invalid or expired OTP. Please try again.",
    ),
    404: (
        AuthErrorCode.ACCOUNT_NOT_FOUND,
        "No account found with this email address.",
    ),
    NETWORK_STATUS: _NETWORK_ENTRY,
}

OTP_REQUEST_ERROR_MAP: dict[int, tuple[AuthErrorCode, str]] = {
    404: (
        AuthErrorCode.ACCOUNT_NOT_FOUND,
        "No account found with this email address.",
    ),
    429: (
        AuthErrorCode.RATE_LIMITED,
        "Too many code requests. Please wait before trying again.",
    ),
    NETWORK_STATUS: _NETWORK_ENTRY,
}

SIGNUP_ERROR_MAP: dict[int, tuple[AuthErrorCode, str]] = {
    409: (
        AuthErrorCode.EMAIL_ALREADY_EXISTS,
        "Email already exists. Please try a different email.",
    ),
    422: (
        AuthErrorCode.INVALID_INPUT_DATA,
        "Invalid input data. Please check your information.",
    ),
    NETWORK_STATUS: _NETWORK_ENTRY,
}

# Message-based classification applies to password login only, after the
# status table found no match.
SERVICE_UNAVAILABLE_MARKER: str = "temporarily unavailable"
SERVICE_UNAVAILABLE_MESSAGE: str = (
    "Login service is temporarily unavailable. Please try registering "
    "a new account or contact support."
)

SESSION_EXPIRED_MESSAGE: str = "Your session has expired. Please log in again."


class ValidationResult(BaseModel):
    """Result of a single client-side field validation check.

    Attributes
    ----------
    is_valid:
        ``True`` when the value passes the validation rule.
    error_message:
        Human-readable description of the failure, or ``None`` on success.
    """

    is_valid: bool
    error_message: Optional[str] = None


# ---------------------------------------------------------------------------
# Wire payloads
# ---------------------------------------------------------------------------

class AuthResponse(BaseModel):
    """Body of a login or registration response.

    Either field may be missing; the session manager decides what a
    partial response means.
    """

    token: Optional[str] = None
    user: Optional[User] = None
    message: Optional[str] = None

    model_config = {"extra": "ignore"}

    @property
    def is_complete(self) -> bool:
        """``True`` when both the token and the user are present."""
        return bool(self.token) and self.user is not None


class OTPVerificationResponse(AuthResponse):
    """Body of ``POST /auth/verify-otp``."""

    success: bool = False


class OTPDispatchResponse(BaseModel):
    """Body of ``POST /auth/send-otp``."""

    success: bool = False
    message: Optional[str] = None
    email: Optional[str] = None

    model_config = {"extra": "ignore"}


class RegistrationPayload(BaseModel):
    """Request body for ``POST /auth/register``.

    The password is held as a ``SecretStr`` so the payload can be logged
    safely; :meth:`to_wire` is the only place it is revealed.
    """

    name: str
    email: str
    password: SecretStr
    role: UserRole
    phone: Optional[str] = None
    company_name: Optional[str] = None
    skills: Optional[list[str]] = None
    remember_me: Optional[bool] = None

    model_config = {"populate_by_name": True, "alias_generator": to_camel}

    def to_wire(self) -> dict[str, object]:
        """Serialise with camelCase keys and the clear-text password."""
        body: dict[str, object] = self.model_dump(
            mode="json", by_alias=True, exclude_none=True,
        )
        body["password"] = self.password.get_secret_value()
        return body
