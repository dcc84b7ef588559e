"""
Shared Enumerations for the Session Models.

All string enumerations for type-safe field constraints.
StrEnum values compare equal to their string equivalents,
so wire payloads like ``{"role": "employer"}`` validate directly.
"""

from __future__ import annotations
from enum import StrEnum


class UserRole(StrEnum):
    """Closed set of account roles on the marketplace.

    ``ADMIN`` accounts are provisioned server-side; they can sign in but
    cannot self-register.
    """

    EMPLOYEE = "employee"
    EMPLOYER = "employer"
    ADMIN = "admin"


class SessionState(StrEnum):
    """Lifecycle states of a :class:`~jobportal.auth.SessionManager`.

    ``UNINITIALIZED`` and ``VALIDATING`` are the only loading states; no
    access decision is made while either holds.
    """

    UNINITIALIZED = "uninitialized"
    VALIDATING = "validating"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"
    SESSION_EXPIRED = "session_expired"


class RepairOutcome(StrEnum):
    """What a company-name repair pass did to the user record."""

    APPLIED = "applied"
    CACHED_FALLBACK = "cached_fallback"
    SKIPPED = "skipped"


class RepairSource(StrEnum):
    """Where the repaired company name came from."""

    RESPONSE = "response"
    HEURISTIC = "heuristic"
    CACHE = "cache"
    NONE = "none"


class GuardAction(StrEnum):
    """Outcome of a route-guard evaluation."""

    LOADING = "loading"
    REDIRECT = "redirect"
    RENDER = "render"
