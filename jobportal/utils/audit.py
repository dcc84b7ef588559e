"""
Structured Audit Logging Utility.

Every session transition (sign-in, sign-out, restore, expiry, profile
repair) is written as one structured JSON audit line.  Provides a
Pydantic-validated model and a single function for consistent entries.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional, Union

from pydantic import BaseModel, Field

from jobportal.logger import StructuredLogger

__all__ = ["AuditAction", "AuditEvent", "log_audit_event"]

# Flat scalars only; nested structures do not belong in the audit trail.
DetailValue = Union[str, int, float, bool, None]


class AuditAction(StrEnum):
    """Session transitions that produce an audit line."""

    LOGIN = "LOGIN"
    OTP_LOGIN = "OTP_LOGIN"
    SIGNUP = "SIGNUP"
    LOGOUT = "LOGOUT"
    SESSION_RESTORED = "SESSION_RESTORED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    COMPANY_NAME_REPAIRED = "COMPANY_NAME_REPAIRED"


class AuditEvent(BaseModel):
    """Schema-validated representation of a single audit trail entry."""

    timestamp: str
    action: AuditAction
    entity_type: str
    entity_id: str
    user_id: str
    details: dict[str, DetailValue] = Field(default_factory=dict)


def log_audit_event(
    logger: StructuredLogger,
    action: AuditAction,
    user_id: str,
    entity_type: str = "Session",
    entity_id: Optional[str] = None,
    details: Optional[dict[str, DetailValue]] = None,
) -> AuditEvent:
    """Emit a structured JSON audit event through *logger*.

    Args:
        logger: The logger instance to write to.
        action: Which transition happened.
        user_id: ID of the account concerned (``"unknown"`` when the
            session had no user).
        entity_type: Type of entity affected (``"Session"`` or ``"User"``).
        entity_id: Primary key of the affected entity; defaults to
            *user_id*.
        details: Optional additional context (e.g. role, repair source).

    Returns:
        The validated event, for callers that want to inspect it.
    """
    event = AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id or user_id,
        user_id=user_id,
        details=details or {},
    )
    logger.info(
        "AUDIT: %s",
        json.dumps(event.model_dump(mode="json"), default=str),
        extra={"event": str(action), "user_id": user_id},
    )
    return event
