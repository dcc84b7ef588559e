"""Shared utilities for the jobportal session client.

Convenience re-exports so consumers can write
``from jobportal.utils import log_audit_event``.
"""

from jobportal.utils.audit import AuditAction, AuditEvent, log_audit_event

__all__ = [
    "AuditAction",
    "AuditEvent",
    "log_audit_event",
]
