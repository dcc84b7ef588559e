"""
Employer Profile Repair.

Some employer accounts come back from the API without a company name
(older registrations, or a signup whose profile write was lost).  Views
that assume one break, so after every sign-in or session restore the
session manager asks this service to fill the gap.

Resolution order:

1. non-employers and employers that already have a name are left alone;
2. a name derived from the email domain is written to the remote
   profile, and the server's echo (or the derived name) is adopted;
3. if that write fails, a name cached locally for the same account is
   used instead;
4. otherwise nothing changes and the failure is recorded.

``repair()`` never raises.  The outcome is returned as an explicit
:class:`~jobportal.models.session_models.RepairRecord` so the caller can
decide what to persist.
"""

from __future__ import annotations

from typing import Optional

from jobportal.errors import GatewayError
from jobportal.logger import StructuredLogger
from jobportal.models.enums import RepairOutcome, RepairSource, UserRole
from jobportal.models.session_models import RepairRecord
from jobportal.models.user import User
from jobportal.services.auth_gateway import RemoteAuthGateway
from jobportal.services.credential_store import CredentialStore

DEFAULT_COMPANY_NAME: str = "My Company"
COMPANY_NAME_SUFFIX: str = " Solutions"


class ProfileRepairService:
    """Fills in a missing employer company name.

    Parameters
    ----------
    gateway:
        Remote API used to persist the repaired profile.
    store:
        Credential store holding the per-account company-name cache.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        gateway: RemoteAuthGateway,
        store: CredentialStore,
        logger: StructuredLogger,
    ) -> None:
        self._gateway: RemoteAuthGateway = gateway
        self._store: CredentialStore = store
        self._logger: StructuredLogger = logger

    @staticmethod
    def derive_company_name(email: str) -> str:
        """Guess a company name from the domain of *email*.

        ``alice@acmecorp.io`` -> ``"Acmecorp Solutions"``.  Returns
        ``"My Company"`` when there is no ``@`` or no usable label.
        """
        if "@" not in email:
            return DEFAULT_COMPANY_NAME
        domain: str = email.split("@", 1)[1].strip()
        label: str = domain.split(".", 1)[0]
        if not label:
            return DEFAULT_COMPANY_NAME
        return label[:1].upper() + label[1:].lower() + COMPANY_NAME_SUFFIX

    async def repair(self, user: User) -> RepairRecord:
        """Decide the company name *user* should carry.

        Returns
        -------
        RepairRecord
            Never raises; gateway and storage failures are logged and
            folded into the record.
        """
        if user.role is not UserRole.EMPLOYER:
            return RepairRecord(outcome=RepairOutcome.SKIPPED, source=RepairSource.NONE)
        if user.has_company_name:
            return RepairRecord(
                outcome=RepairOutcome.SKIPPED,
                source=RepairSource.RESPONSE,
                company_name=user.company_name,
            )

        derived: str = self.derive_company_name(user.email)
        try:
            updated = await self._gateway.update_profile({"companyName": derived})
        except GatewayError as exc:
            if exc.is_unauthorized:
                self._logger.warning(
                    "Token rejected while repairing company name for %s.", user.id,
                    extra={"event": "COMPANY_NAME_REPAIR_UNAUTHORIZED"},
                )
                return RepairRecord(
                    outcome=RepairOutcome.SKIPPED,
                    source=RepairSource.NONE,
                    error=exc.message or str(exc),
                    unauthorized=True,
                )
            return self._fallback(user, exc.message or str(exc))
        except Exception as exc:
            self._logger.error(
                "Unexpected error while repairing company name for %s: %s",
                user.id, exc,
                exc_info=True,
            )
            return self._fallback(user, str(exc))

        name: str = updated.company_name if updated.has_company_name else derived
        self._store.cache_company_name(name, user.id)
        self._logger.debug("Company name persisted for employer %s: %s", user.id, name)
        return RepairRecord(
            outcome=RepairOutcome.APPLIED,
            source=RepairSource.HEURISTIC,
            company_name=name,
        )

    @staticmethod
    def apply(user: User, record: RepairRecord) -> User:
        """Return a copy of *user* carrying the repaired name, if any."""
        if record.outcome is RepairOutcome.SKIPPED or not record.company_name:
            return user
        return user.model_copy(update={"company_name": record.company_name})

    def _fallback(self, user: User, error: str) -> RepairRecord:
        self._logger.warning(
            "Could not persist company name for employer %s: %s", user.id, error,
            extra={"event": "COMPANY_NAME_REPAIR_FAILED"},
        )
        cached: Optional[str] = self._store.read_cached_company_name(user.id)
        if cached:
            return RepairRecord(
                outcome=RepairOutcome.CACHED_FALLBACK,
                source=RepairSource.CACHE,
                company_name=cached,
                error=error,
            )
        return RepairRecord(
            outcome=RepairOutcome.SKIPPED,
            source=RepairSource.NONE,
            error=error,
        )
