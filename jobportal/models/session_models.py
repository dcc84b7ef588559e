"""
Session Lifecycle Models.

Immutable value objects that the session manager hands to the rest of
the application: the persisted credential pair, the published session
snapshot, the result of a company-name repair pass, and the decision of
the route guard.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from jobportal.models.enums import (
    GuardAction,
    RepairOutcome,
    RepairSource,
    SessionState,
)
from jobportal.models.user import User


class StoredSession(BaseModel):
    """Token and user record as read back from the credential store."""

    token: str
    user: User

    model_config = {"frozen": True}


class SessionSnapshot(BaseModel):
    """Read-only view of a session manager after a transition.

    Attributes
    ----------
    state:
        The lifecycle state in force.
    user:
        The authenticated user, ``None`` outside ``AUTHENTICATED``.
    session_expired:
        Banner flag; set when the session ended because the API rejected
        the token, cleared by logout, a new login, or acknowledgement.
    """

    state: SessionState
    user: Optional[User] = None
    session_expired: bool = False

    model_config = {"frozen": True}

    @property
    def is_loading(self) -> bool:
        """``True`` while no access decision can be made yet."""
        return self.state in (SessionState.UNINITIALIZED, SessionState.VALIDATING)


class RepairRecord(BaseModel):
    """Result of one company-name repair pass.

    Attributes
    ----------
    outcome:
        ``APPLIED`` when the remote profile was updated,
        ``CACHED_FALLBACK`` when a locally cached name was used instead,
        ``SKIPPED`` when nothing was changed.
    source:
        Provenance of ``company_name``.
    company_name:
        The name to show for the employer, or ``None``.
    error:
        Text of the failure that forced a fallback, if any.
    unauthorized:
        ``True`` when the server rejected the session token while the
        profile was being updated.
    """

    outcome: RepairOutcome
    source: RepairSource
    company_name: Optional[str] = None
    error: Optional[str] = None
    unauthorized: bool = False

    model_config = {"frozen": True}


class GuardDecision(BaseModel):
    """What a protected view should do for the current navigation.

    ``redirect_to`` is set only for ``REDIRECT``.  ``return_to`` carries
    the attempted path on redirects to the sign-in view so the caller can
    send the user back after a successful login.
    """

    action: GuardAction
    redirect_to: Optional[str] = None
    return_to: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def allowed(self) -> bool:
        return self.action is GuardAction.RENDER
