"""Tests for the session guard decorators."""

import pytest
from conftest import FakeGateway, make_user

from jobportal.auth import SessionManager
from jobportal.errors import AuthenticationRequiredError, GatewayError, SessionExpiredError
from jobportal.jwt_auth import expire_on_unauthorized, require_auth
from jobportal.models.auth_models import AuthResponse
from jobportal.models.enums import SessionState
from jobportal.services.credential_store import CredentialStore


async def _sign_in(session: SessionManager, gateway: FakeGateway) -> None:
    gateway.responses["login"] = AuthResponse(token="t", user=make_user())
    await session.initialize()
    await session.login("jane@example.com", "Secret123!")


class TestRequireAuth:
    """Calls are refused without a session."""

    def test_sync_call_without_session_is_refused(self, session: SessionManager):
        @require_auth(session)
        def action() -> str:
            return "done"

        with pytest.raises(AuthenticationRequiredError):
            action()

    @pytest.mark.asyncio
    async def test_async_call_without_session_is_refused(self, session: SessionManager):
        @require_auth(session)
        async def action() -> str:
            return "done"

        with pytest.raises(AuthenticationRequiredError):
            await action()

    @pytest.mark.asyncio
    async def test_calls_pass_when_signed_in(self, session: SessionManager, gateway: FakeGateway):
        guard = require_auth(session)

        @guard
        def sync_action(value: int) -> int:
            return value * 2

        @guard
        async def async_action(value: int) -> int:
            return value + 1

        await _sign_in(session, gateway)

        assert sync_action(2) == 4
        assert await async_action(2) == 3
        assert sync_action.__name__ == "sync_action"


class TestExpireOnUnauthorized:
    """A 401 anywhere ends the session."""

    @pytest.mark.asyncio
    async def test_unauthorized_expires_session(
        self, session: SessionManager, gateway: FakeGateway, store: CredentialStore,
    ):
        await _sign_in(session, gateway)

        @expire_on_unauthorized(session)
        async def list_jobs() -> list:
            raise GatewayError(401, "Token expired", code="TOKEN_EXPIRED")

        with pytest.raises(SessionExpiredError) as exc_info:
            await list_jobs()

        assert isinstance(exc_info.value.__cause__, GatewayError)
        assert session.state is SessionState.SESSION_EXPIRED
        assert session.session_expired is True
        assert store.read() is None

    @pytest.mark.asyncio
    async def test_other_errors_pass_through(self, session: SessionManager, gateway: FakeGateway):
        await _sign_in(session, gateway)

        @expire_on_unauthorized(session)
        async def list_jobs() -> list:
            raise GatewayError(500, "boom")

        with pytest.raises(GatewayError):
            await list_jobs()

        assert session.state is SessionState.AUTHENTICATED

    @pytest.mark.asyncio
    async def test_success_returns_value(self, session: SessionManager):
        @expire_on_unauthorized(session)
        async def list_jobs() -> list:
            return ["job-1"]

        assert await list_jobs() == ["job-1"]
