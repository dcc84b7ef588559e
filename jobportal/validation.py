"""
Client-Side Input Validation.

Field checks run by ``SessionManager`` before any credential reaches the
network.  Each helper returns a ``ValidationResult`` so callers can show
the message next to the offending field; the session manager turns the
first failure into an ``InvalidInputDataError``.
"""

from __future__ import annotations

import re
from typing import Optional

from jobportal.models.auth_models import ValidationResult
from jobportal.models.enums import UserRole

_EMAIL_RE: re.Pattern[str] = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

_MIN_NAME_LENGTH: int = 3
_MIN_PASSWORD_LENGTH: int = 8

SELF_REGISTRATION_ROLES: frozenset[UserRole] = frozenset(
    {UserRole.EMPLOYEE, UserRole.EMPLOYER}
)

_OK = ValidationResult(is_valid=True)


def _fail(message: str) -> ValidationResult:
    return ValidationResult(is_valid=False, error_message=message)


def normalize_email(email: str) -> str:
    """Normalise an email address: strip whitespace and lowercase."""
    return email.strip().lower()


def validate_email(email: str) -> ValidationResult:
    """Validate an email address against a simplified RFC 5322 regex."""
    if not email or not email.strip():
        return _fail("Email is required.")
    if not _EMAIL_RE.match(email.strip()):
        return _fail("Enter a valid email address.")
    return _OK


def validate_login_password(password: str) -> ValidationResult:
    if not password:
        return _fail("Password is required.")
    return _OK


def validate_signup_password(password: str) -> ValidationResult:
    """Enforce the registration password policy.

    Policy: minimum 8 characters with at least one uppercase letter, one
    lowercase letter, one digit and one non-alphanumeric character.
    """
    if not password:
        return _fail("Password is required.")
    if len(password) < _MIN_PASSWORD_LENGTH:
        return _fail("Password must be at least 8 characters.")
    if not (
        re.search(r"[a-z]", password)
        and re.search(r"[A-Z]", password)
        and re.search(r"\d", password)
        and re.search(r"[^A-Za-z0-9]", password)
    ):
        return _fail(
            "Must include uppercase, lowercase, number, and special character."
        )
    return _OK


def validate_name(name: str) -> ValidationResult:
    stripped = name.strip() if name else ""
    if not stripped:
        return _fail("Full name is required.")
    if len(stripped) < _MIN_NAME_LENGTH:
        return _fail("Full name must be at least 3 characters.")
    return _OK


def validate_signup_role(role: str) -> ValidationResult:
    """Only job seekers and employers may create their own accounts."""
    try:
        parsed = UserRole(role)
    except ValueError:
        return _fail("Please select a role.")
    if parsed not in SELF_REGISTRATION_ROLES:
        return _fail("Please select a role.")
    return _OK


def validate_company_name(role: str, company_name: Optional[str]) -> ValidationResult:
    if role == UserRole.EMPLOYER and not (company_name and company_name.strip()):
        return _fail("Company name is required.")
    return _OK


def first_failure(*results: ValidationResult) -> Optional[str]:
    """Return the message of the first failed check, or ``None``."""
    for result in results:
        if not result.is_valid:
            return result.error_message
    return None
