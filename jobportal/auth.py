"""
Authentication & Session State.

Provides an injectable ``SessionManager`` that owns the session lifecycle
of the job portal client: restoring a persisted session on start-up,
password and one-time-code sign-in, registration, sign-out and forced
expiry.  It is the only writer of the credential store.

Usage::

    from jobportal.auth import SessionManager

    session = SessionManager(gateway=gateway, store=store,
                             repair=repair, logger=logger)
    await session.initialize()
    if not session.is_authenticated:
        await session.login("alice@acmecorp.io", "Secret123!")
    user = session.get_current_user()

State machine::

    uninitialized --initialize--> validating --ok------> authenticated
          |                           |--401---------> session_expired
          |                           '--other error-> unauthenticated
          '--initialize (nothing stored)-------------> unauthenticated

    unauthenticated / session_expired --login / otp / signup--> authenticated
    authenticated --logout--> unauthenticated
    any --handle_session_expired--> session_expired
    validating / sign-in --401 during profile repair--> session_expired

All work happens on one event loop.  Every transition that ends or
replaces a session bumps an epoch counter; an operation that suspended
on the gateway compares the epoch it started with before committing, so
a result that arrives after a sign-out or expiry is discarded.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Callable, Mapping, Optional

from pydantic import ValidationError

from jobportal.errors import (
    AuthError,
    AuthenticationRequiredError,
    GatewayError,
    InvalidInputDataError,
    UnknownAuthError,
    auth_error_for,
)
from jobportal.logger import StructuredLogger
from jobportal.models.auth_models import (
    LOGIN_ERROR_MAP,
    OTP_ERROR_MAP,
    OTP_REQUEST_ERROR_MAP,
    SERVICE_UNAVAILABLE_MARKER,
    SERVICE_UNAVAILABLE_MESSAGE,
    SIGNUP_ERROR_MAP,
    AuthErrorCode,
    RegistrationPayload,
    ValidationResult,
)
from jobportal.models.enums import RepairOutcome, SessionState, UserRole
from jobportal.models.session_models import SessionSnapshot
from jobportal.models.user import User
from jobportal.services.auth_gateway import RemoteAuthGateway
from jobportal.services.credential_store import CredentialStore
from jobportal.services.profile_repair import ProfileRepairService
from jobportal.utils.audit import AuditAction, log_audit_event
from jobportal.validation import (
    first_failure,
    normalize_email,
    validate_company_name,
    validate_email,
    validate_login_password,
    validate_name,
    validate_signup_password,
    validate_signup_role,
)

SessionListener = Callable[[SessionSnapshot], None]
ErrorTable = Mapping[int, tuple[AuthErrorCode, str]]

_LOGIN_FALLBACK: str = "Login failed. Please try again."
_OTP_FALLBACK: str = "OTP verification failed. Please try again."
_OTP_REQUEST_FALLBACK: str = "Failed to send OTP. Please try again."
_SIGNUP_FALLBACK: str = "Registration failed. Please try again."


class SessionManager:
    """Injectable owner of the client session.

    Parameters
    ----------
    gateway:
        Remote authentication API.
    store:
        Encrypted credential store; written only by this class.
    repair:
        Employer company-name repair service.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        gateway: RemoteAuthGateway,
        store: CredentialStore,
        repair: ProfileRepairService,
        logger: StructuredLogger,
    ) -> None:
        self._gateway: RemoteAuthGateway = gateway
        self._store: CredentialStore = store
        self._repair: ProfileRepairService = repair
        self._ref: str = uuid.uuid4().hex[:8]
        self._logger: StructuredLogger = logger.bind(session_ref=self._ref)

        self._state: SessionState = SessionState.UNINITIALIZED
        self._user: Optional[User] = None
        self._token: Optional[str] = None
        self._session_expired: bool = False

        self._epoch: int = 0
        self._init_task: Optional[asyncio.Task[None]] = None
        self._listeners: list[SessionListener] = []

    # ==================================================================
    # Read-only view
    # ==================================================================

    @property
    def session_ref(self) -> str:
        """Short id bound to every log line this manager writes."""
        return self._ref

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def token(self) -> Optional[str]:
        """Bearer token of the current session, ``None`` when signed out."""
        return self._token

    @property
    def is_loading(self) -> bool:
        return self._state in (SessionState.UNINITIALIZED, SessionState.VALIDATING)

    @property
    def is_authenticated(self) -> bool:
        return self._state is SessionState.AUTHENTICATED and self._user is not None

    @property
    def session_expired(self) -> bool:
        return self._session_expired

    @property
    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            user=self._user,
            session_expired=self._session_expired,
        )

    def get_current_user(self) -> User:
        """Return the authenticated user.

        Raises:
            AuthenticationRequiredError: If no user is signed in.  It is
                a ``RuntimeError`` subclass.
        """
        if self._user is None:
            raise AuthenticationRequiredError(
                "No user is currently authenticated. Login required."
            )
        return self._user

    def has_role(self, role: UserRole | str) -> bool:
        return self._user is not None and self._user.role == role

    def is_employee(self) -> bool:
        return self.has_role(UserRole.EMPLOYEE)

    def is_employer(self) -> bool:
        return self.has_role(UserRole.EMPLOYER)

    def is_admin(self) -> bool:
        return self.has_role(UserRole.ADMIN)

    # ==================================================================
    # Listeners
    # ==================================================================

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Call *listener* with a fresh snapshot after every transition.

        Returns
        -------
        Callable[[], None]
            Unsubscribe function; calling it twice is harmless.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                self._logger.error(
                    "Session listener raised; continuing.", exc_info=True,
                )

    def _set_state(
        self,
        state: SessionState,
        user: Optional[User] = None,
        token: Optional[str] = None,
    ) -> None:
        self._state = state
        self._user = user
        self._token = token
        self._notify()

    # ==================================================================
    # Start-up
    # ==================================================================

    async def initialize(self) -> None:
        """Restore a persisted session, validating it against the API.

        Idempotent: the first call starts a single validation task and
        every call (concurrent or later) awaits that same task.  Never
        raises.
        """
        if self._init_task is None:
            self._init_task = asyncio.get_running_loop().create_task(self._restore())
        await asyncio.shield(self._init_task)

    async def _restore(self) -> None:
        if self._state is not SessionState.UNINITIALIZED:
            return

        stored = self._store.read()
        if stored is None:
            if self._store.has_partial_session():
                self._logger.warning(
                    "Stored session is incomplete; clearing it.",
                    extra={"event": "SESSION_INCONSISTENT"},
                )
                self._store.clear()
            self._set_state(SessionState.UNAUTHENTICATED)
            return

        epoch = self._epoch
        self._set_state(SessionState.VALIDATING)
        try:
            user = await self._gateway.get_current_user()
        except GatewayError as exc:
            if self._is_stale(epoch, "session validation"):
                return
            self._store.clear()
            if exc.is_unauthorized:
                self._expire(stored.user.id)
            else:
                self._logger.warning(
                    "Stored session could not be validated: %s", exc,
                    extra={"event": "SESSION_VALIDATION_FAILED", "status": exc.status},
                )
                self._set_state(SessionState.UNAUTHENTICATED)
            return
        except Exception:
            if self._is_stale(epoch, "session validation"):
                return
            self._logger.error(
                "Unexpected error while validating stored session.", exc_info=True,
            )
            self._store.clear()
            self._set_state(SessionState.UNAUTHENTICATED)
            return

        if self._is_stale(epoch, "session validation"):
            return
        repaired = await self._repair_user(user)
        if self._is_stale(epoch, "session validation"):
            return
        if repaired is None:
            self._store.clear()
            self._expire(user.id)
            return
        self._adopt(stored.token, repaired, AuditAction.SESSION_RESTORED)

    # ==================================================================
    # Sign-in flows
    # ==================================================================

    async def login(self, email: str, password: str, remember_me: bool = False) -> bool:
        """Sign in with email and password.

        Returns
        -------
        bool
            ``True`` once the session is established.  ``False`` when the
            server answered without a token or user, or when the session
            was ended while the request was in flight; the state is left
            unchanged in both cases.  Also ``False`` when the server
            rejects the new token while an employer profile is being
            repaired; the session then moves to ``session_expired``.

        Raises
        ------
        AuthError
            ``InvalidCredentialsError`` (401), ``AccountDisabledError``
            (403), ``RateLimitedError`` (429), ``NetworkUnavailableError``
            (no connection), ``ServiceUnavailableError`` (service reports
            itself temporarily unavailable), ``InvalidInputDataError``
            (rejected before sending) or ``UnknownAuthError``.
        """
        email = normalize_email(email)
        self._check(validate_email(email), validate_login_password(password))

        epoch = self._epoch
        try:
            response = await self._gateway.login(email, password, remember_me)
        except GatewayError as exc:
            raise self._classify(
                exc, LOGIN_ERROR_MAP, _LOGIN_FALLBACK, "LOGIN", service_marker=True,
            ) from exc
        except Exception as exc:
            raise self._unexpected(exc, "LOGIN", _LOGIN_FALLBACK) from exc

        if not response.is_complete:
            self._logger.warning(
                "Login response for %s is missing token or user.", email,
                extra={"event": "LOGIN_INCOMPLETE_RESPONSE"},
            )
            return False
        return await self._complete_sign_in(
            response.token, response.user, epoch, AuditAction.LOGIN,
        )

    async def request_otp(self, email: str) -> bool:
        """Ask the server to email a one-time sign-in code.

        Raises
        ------
        AuthError
            ``AccountNotFoundError`` (404), ``RateLimitedError`` (429),
            ``NetworkUnavailableError``, ``InvalidInputDataError`` or
            ``UnknownAuthError``.
        """
        email = normalize_email(email)
        self._check(validate_email(email))
        try:
            response = await self._gateway.send_otp(email)
        except GatewayError as exc:
            raise self._classify(
                exc, OTP_REQUEST_ERROR_MAP, _OTP_REQUEST_FALLBACK, "OTP_REQUEST",
            ) from exc
        except Exception as exc:
            raise self._unexpected(exc, "OTP_REQUEST", _OTP_REQUEST_FALLBACK) from exc

        self._logger.info(
            "One-time code requested for %s.", email,
            extra={"event": "OTP_REQUESTED", "success": response.success},
        )
        return response.success

    async def login_with_otp(self, email: str, code: str) -> bool:
        """Sign in with a one-time code.

        ``True`` only when the server reports success and returns both a
        token and a user.

        Raises
        ------
        AuthError
            ``InvalidOrExpiredCodeError`` (400), ``AccountNotFoundError``
            (404), ``NetworkUnavailableError``, ``InvalidInputDataError``
            or ``UnknownAuthError``.
        """
        email = normalize_email(email)
        code = code.strip() if code else ""
        self._check(
            validate_email(email),
            ValidationResult(is_valid=bool(code), error_message="Code is required."),
        )

        epoch = self._epoch
        try:
            response = await self._gateway.verify_otp(email, code)
        except GatewayError as exc:
            raise self._classify(exc, OTP_ERROR_MAP, _OTP_FALLBACK, "OTP_LOGIN") from exc
        except Exception as exc:
            raise self._unexpected(exc, "OTP_LOGIN", _OTP_FALLBACK) from exc

        if not (response.success and response.is_complete):
            self._logger.warning(
                "OTP verification for %s did not produce a session.", email,
                extra={"event": "OTP_LOGIN_INCOMPLETE_RESPONSE"},
            )
            return False
        return await self._complete_sign_in(
            response.token, response.user, epoch, AuditAction.OTP_LOGIN,
        )

    async def signup(
        self,
        name: str,
        email: str,
        password: str,
        role: UserRole | str,
        additional_data: Optional[Mapping[str, Any]] = None,
        remember_me: bool = False,
    ) -> bool:
        """Register a new account and sign it in.

        Parameters
        ----------
        additional_data:
            Optional ``phone``, ``companyName`` (required for employers)
            and ``skills`` (list or comma-separated string).

        Raises
        ------
        AuthError
            ``EmailAlreadyExistsError`` (409), ``InvalidInputDataError``
            (422 or rejected before sending), ``NetworkUnavailableError``
            or ``UnknownAuthError``.
        """
        extra: dict[str, Any] = dict(additional_data or {})
        company_name: Optional[str] = self._optional_text(
            extra.get("companyName") or extra.get("company_name"),
        )
        email = normalize_email(email)
        role_value: str = str(role)
        self._check(
            validate_name(name),
            validate_email(email),
            validate_signup_password(password),
            validate_signup_role(role_value),
            validate_company_name(role_value, company_name),
        )

        user_role = UserRole(role_value)
        if user_role is not UserRole.EMPLOYER:
            company_name = None

        try:
            payload = RegistrationPayload(
                name=name.strip(),
                email=email,
                password=password,
                role=user_role,
                phone=self._optional_text(extra.get("phone")),
                company_name=company_name,
                skills=self._parse_skills(extra.get("skills")),
                remember_me=remember_me or None,
            )
        except ValidationError as exc:
            self._logger.warning(
                "Registration data for %s rejected: %s", email, exc,
                extra={"event": "SIGNUP_INVALID_INPUT"},
            )
            raise InvalidInputDataError() from exc

        epoch = self._epoch
        try:
            response = await self._gateway.register(payload)
        except GatewayError as exc:
            raise self._classify(exc, SIGNUP_ERROR_MAP, _SIGNUP_FALLBACK, "SIGNUP") from exc
        except Exception as exc:
            raise self._unexpected(exc, "SIGNUP", _SIGNUP_FALLBACK) from exc

        if not response.is_complete:
            self._logger.warning(
                "Registration response for %s is missing token or user.", email,
                extra={"event": "SIGNUP_INCOMPLETE_RESPONSE"},
            )
            return False

        user: User = response.user
        if company_name:
            if not user.has_company_name:
                user = user.model_copy(update={"company_name": company_name})
            self._store.cache_company_name(company_name, user.id)
        return await self._complete_sign_in(response.token, user, epoch, AuditAction.SIGNUP)

    # ==================================================================
    # Sign-out & expiry
    # ==================================================================

    async def logout(self) -> None:
        """End the session.  Never raises; safe to call repeatedly.

        The server is told on a best-effort basis; local state is cleared
        whatever the outcome.
        """
        user_id: str = self._user.id if self._user else "unknown"
        self._epoch += 1

        if self._store.read_token():
            try:
                await self._gateway.logout()
            except GatewayError as exc:
                self._logger.warning(
                    "Server-side logout failed for %s: %s", user_id, exc,
                )
            except Exception as exc:
                self._logger.warning(
                    "Unexpected error during server-side logout for %s: %s",
                    user_id, exc,
                )

        self._store.clear()
        self._session_expired = False
        self._set_state(SessionState.UNAUTHENTICATED)
        log_audit_event(self._logger, AuditAction.LOGOUT, user_id)

    def handle_session_expired(self) -> None:
        """Force the session into ``session_expired``.

        Called when any API call elsewhere in the application is rejected
        with 401.  Clears the store and raises the banner flag.
        """
        user_id: str = self._user.id if self._user else "unknown"
        self._store.clear()
        self._expire(user_id)

    def acknowledge_session_expired(self) -> None:
        """Dismiss the expiry banner without changing the state."""
        if self._session_expired:
            self._session_expired = False
            self._notify()

    async def dispose(self) -> None:
        """Cancel pending start-up work, close the gateway, drop listeners."""
        if self._init_task is not None and not self._init_task.done():
            self._init_task.cancel()
            try:
                await self._init_task
            except asyncio.CancelledError:
                pass
        await self._gateway.aclose()
        self._listeners.clear()

    # ==================================================================
    # Internals
    # ==================================================================

    def _expire(self, user_id: str) -> None:
        self._epoch += 1
        self._session_expired = True
        self._set_state(SessionState.SESSION_EXPIRED)
        log_audit_event(self._logger, AuditAction.SESSION_EXPIRED, user_id)

    async def _complete_sign_in(
        self,
        token: str,
        user: User,
        epoch: int,
        action: AuditAction,
    ) -> bool:
        if self._is_stale(epoch, action.lower()):
            return False
        if user.role is UserRole.EMPLOYER and not user.has_company_name:
            # The repair writes to the profile with this token.
            self._store.write(token, user)
        repaired = await self._repair_user(user)
        if self._is_stale(epoch, action.lower()):
            return False
        if repaired is None:
            self._store.clear()
            self._expire(user.id)
            return False
        self._adopt(token, repaired, action)
        return True

    async def _repair_user(self, user: User) -> Optional[User]:
        """Return *user* with its company name repaired.

        ``None`` means the server rejected the token during the repair.
        """
        record = await self._repair.repair(user)
        if record.unauthorized:
            return None
        if record.outcome is not RepairOutcome.SKIPPED:
            log_audit_event(
                self._logger,
                AuditAction.COMPANY_NAME_REPAIRED,
                user.id,
                entity_type="User",
                details={
                    "outcome": str(record.outcome),
                    "source": str(record.source),
                    "company_name": record.company_name,
                },
            )
        return self._repair.apply(user, record)

    def _adopt(self, token: str, user: User, action: AuditAction) -> None:
        if not self._store.write(token, user):
            self._logger.warning(
                "Session for %s is active but could not be persisted.", user.id,
            )
        self._epoch += 1
        self._session_expired = False
        self._set_state(SessionState.AUTHENTICATED, user=user, token=token)
        log_audit_event(
            self._logger, action, user.id, details={"role": str(user.role)},
        )

    def _is_stale(self, epoch: int, operation: str) -> bool:
        if epoch == self._epoch:
            return False
        self._logger.info(
            "Discarding %s result; the session changed while it was pending.",
            operation,
            extra={"event": "STALE_RESULT_DISCARDED"},
        )
        return True

    def _check(self, *results: ValidationResult) -> None:
        message = first_failure(*results)
        if message is not None:
            raise InvalidInputDataError(message)

    def _classify(
        self,
        exc: GatewayError,
        table: ErrorTable,
        fallback_message: str,
        event_prefix: str,
        service_marker: bool = False,
    ) -> AuthError:
        """Map a gateway failure to the domain error for one operation."""
        entry = table.get(exc.status)
        if entry is not None:
            code, message = entry
        elif service_marker and SERVICE_UNAVAILABLE_MARKER in exc.message.lower():
            code, message = AuthErrorCode.SERVICE_UNAVAILABLE, SERVICE_UNAVAILABLE_MESSAGE
        else:
            code, message = AuthErrorCode.UNKNOWN_ERROR, exc.message or fallback_message

        self._logger.warning(
            "%s failed (%s): %s", event_prefix.lower(), code, exc.message,
            extra={
                "event": f"{event_prefix}_FAILED",
                "error_code": str(code),
                "status": exc.status,
            },
        )
        return auth_error_for(code, message)

    def _unexpected(self, exc: Exception, event_prefix: str, fallback: str) -> AuthError:
        self._logger.error(
            "Unexpected %s error: %s", event_prefix.lower(), exc,
            exc_info=True,
            extra={"event": f"{event_prefix}_FAILED", "error_code": "unknown"},
        )
        return UnknownAuthError(fallback)

    @staticmethod
    def _optional_text(raw: object) -> Optional[str]:
        if raw is None:
            return None
        text = str(raw).strip()
        return text or None

    @staticmethod
    def _parse_skills(raw: object) -> Optional[list[str]]:
        if raw is None:
            return None
        if isinstance(raw, str):
            items = raw.split(",")
        elif isinstance(raw, (list, tuple)):
            items = [str(item) for item in raw]
        else:
            return None
        skills = [item.strip() for item in items if item.strip()]
        return skills or None
