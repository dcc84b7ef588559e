"""
Error Types.

Two layers:

- :class:`GatewayError` is what the remote API gateway raises.  It only
  knows the transport status (``0`` for "no connection") and whatever
  message and code the server sent.
- :class:`AuthError` and its subclasses are the domain taxonomy that the
  session manager raises to its callers.  Each carries a stable
  ``AuthErrorCode`` and a message fit to show to the user, so UI code
  never has to inspect transport status codes.
"""

from __future__ import annotations

from typing import Optional

from jobportal.models.auth_models import (
    NETWORK_STATUS,
    UNAUTHORIZED_STATUS,
    AuthErrorCode,
)


class GatewayError(Exception):
    """Raised by a gateway call that did not produce a usable response.

    Attributes
    ----------
    status:
        HTTP status of the failed response, or ``0`` when the server was
        never reached.
    message:
        Server-supplied message, or a synthesised one.
    code:
        Optional machine-readable error code from the response body
        (e.g. ``"TOKEN_EXPIRED"``).
    details:
        Optional structured details from the response body.
    """

    def __init__(
        self,
        status: int,
        message: str = "",
        code: Optional[str] = None,
        details: Optional[object] = None,
    ) -> None:
        super().__init__(message or f"Gateway request failed with status {status}")
        self.status: int = status
        self.message: str = message
        self.code: Optional[str] = code
        self.details: Optional[object] = details

    @property
    def is_network_error(self) -> bool:
        return self.status == NETWORK_STATUS

    @property
    def is_unauthorized(self) -> bool:
        return self.status == UNAUTHORIZED_STATUS

    def __repr__(self) -> str:
        return f"GatewayError(status={self.status}, message={self.message!r}, code={self.code!r})"


class AuthError(RuntimeError):
    """Base class of the domain-level authentication errors."""

    code: AuthErrorCode = AuthErrorCode.UNKNOWN_ERROR
    default_message: str = "An unexpected error occurred. Please try again."

    def __init__(self, user_message: Optional[str] = None) -> None:
        self.user_message: str = user_message or self.default_message
        super().__init__(self.user_message)


class InvalidCredentialsError(AuthError):
    code = AuthErrorCode.INVALID_CREDENTIALS
    default_message = "Invalid email or password. Please try again."


class AccountDisabledError(AuthError):
    code = AuthErrorCode.ACCOUNT_DISABLED
    default_message = "Account is disabled. Please contact support."


class RateLimitedError(AuthError):
    code = AuthErrorCode.RATE_LIMITED
    default_message = "Too many attempts. Please try again later."


class NetworkUnavailableError(AuthError):
    code = AuthErrorCode.NETWORK_UNAVAILABLE
    default_message = "Unable to connect to server. Please check your internet connection."


class ServiceUnavailableError(AuthError):
    code = AuthErrorCode.SERVICE_UNAVAILABLE
    default_message = "The service is temporarily unavailable. Please try again later."


class InvalidOrExpiredCodeError(AuthError):
    code = AuthErrorCode.INVALID_OR_EXPIRED_CODE
    default_message = "Invalid or expired OTP. Please try again."


class AccountNotFoundError(AuthError):
    code = AuthErrorCode.ACCOUNT_NOT_FOUND
    default_message = "No account found with this email address."


class EmailAlreadyExistsError(AuthError):
    code = AuthErrorCode.EMAIL_ALREADY_EXISTS
    default_message = "Email already exists. Please try a different email."


class InvalidInputDataError(AuthError):
    code = AuthErrorCode.INVALID_INPUT_DATA
    default_message = "Invalid input data. Please check your information."


class SessionExpiredError(AuthError):
    code = AuthErrorCode.SESSION_EXPIRED
    default_message = "Your session has expired. Please log in again."


class AuthenticationRequiredError(AuthError):
    code = AuthErrorCode.AUTHENTICATION_REQUIRED
    default_message = "Authentication required. Please log in."


class UnknownAuthError(AuthError):
    code = AuthErrorCode.UNKNOWN_ERROR


_ERROR_CLASSES: dict[AuthErrorCode, type[AuthError]] = {
    cls.code: cls
    for cls in (
        InvalidCredentialsError,
        AccountDisabledError,
        RateLimitedError,
        NetworkUnavailableError,
        ServiceUnavailableError,
        InvalidOrExpiredCodeError,
        AccountNotFoundError,
        EmailAlreadyExistsError,
        InvalidInputDataError,
        SessionExpiredError,
        AuthenticationRequiredError,
        UnknownAuthError,
    )
}


def auth_error_for(code: AuthErrorCode, user_message: Optional[str] = None) -> AuthError:
    """Instantiate the ``AuthError`` subclass registered for *code*."""
    return _ERROR_CLASSES[code](user_message)
