from __future__ import annotations

"""
Data Models Package.

Re-exports all Pydantic models for short imports:
    from jobportal.models import User, UserRole, SessionState
    from jobportal.models import SessionSnapshot, RepairRecord, GuardDecision
"""

from jobportal.models.enums import (
    GuardAction,
    RepairOutcome,
    RepairSource,
    SessionState,
    UserRole,
)
from jobportal.models.user import User
from jobportal.models.auth_models import (
    AuthErrorCode,
    AuthResponse,
    OTPDispatchResponse,
    OTPVerificationResponse,
    RegistrationPayload,
    ValidationResult,
)
from jobportal.models.session_models import (
    GuardDecision,
    RepairRecord,
    SessionSnapshot,
    StoredSession,
)

__all__ = [
    "AuthErrorCode",
    "AuthResponse",
    "GuardAction",
    "GuardDecision",
    "OTPDispatchResponse",
    "OTPVerificationResponse",
    "RegistrationPayload",
    "RepairOutcome",
    "RepairRecord",
    "RepairSource",
    "SessionSnapshot",
    "SessionState",
    "StoredSession",
    "User",
    "UserRole",
    "ValidationResult",
]
