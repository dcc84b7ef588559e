"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Iterator, Optional

import pytest

from jobportal.auth import SessionManager
from jobportal.database import LocalDatabase
from jobportal.logger import StructuredLogger
from jobportal.models.enums import UserRole
from jobportal.models.user import User
from jobportal.schema import initialize_schema
from jobportal.services.credential_store import CredentialStore
from jobportal.services.profile_repair import ProfileRepairService

# Low iteration count keeps key derivation fast in tests.
TEST_KDF_ITERATIONS: int = 1_000


def make_user(**overrides: Any) -> User:
    """Build a user record; keyword arguments override the defaults."""
    data: dict[str, Any] = {
        "id": "u-1",
        "email": "jane@example.com",
        "name": "Jane Doe",
        "role": UserRole.EMPLOYEE,
    }
    data.update(overrides)
    return User.model_validate(data)


class FakeGateway:
    """In-memory ``RemoteAuthGateway``.

    ``responses[name]`` is returned as-is, raised when it is an
    exception, or called with the method arguments when it is a plain
    function.  ``blockers[name]`` holds a call until the event is set.
    """

    def __init__(self) -> None:
        self.responses: dict[str, Any] = {}
        self.blockers: dict[str, asyncio.Event] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.closed: bool = False

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    def last_args(self, name: str) -> tuple[Any, ...]:
        return [args for call, args in self.calls if call == name][-1]

    async def _respond(self, name: str, *args: Any) -> Any:
        self.calls.append((name, args))
        blocker: Optional[asyncio.Event] = self.blockers.get(name)
        if blocker is not None:
            await blocker.wait()
        result = self.responses.get(name)
        if isinstance(result, BaseException):
            raise result
        if callable(result) and not hasattr(result, "model_dump"):
            return result(*args)
        return result

    async def login(self, email: str, password: str, remember_me: bool = False) -> Any:
        return await self._respond("login", email, password, remember_me)

    async def verify_otp(self, email: str, code: str) -> Any:
        return await self._respond("verify_otp", email, code)

    async def send_otp(self, email: str) -> Any:
        return await self._respond("send_otp", email)

    async def register(self, payload: Any) -> Any:
        return await self._respond("register", payload)

    async def get_current_user(self) -> Any:
        return await self._respond("get_current_user")

    async def update_profile(self, partial: dict[str, Any]) -> Any:
        return await self._respond("update_profile", partial)

    async def logout(self) -> None:
        await self._respond("logout")

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def logger() -> StructuredLogger:
    return StructuredLogger(
        name="jobportal.tests", level=logging.DEBUG, enable_file=False,
    )


@pytest.fixture
def salt_path(tmp_path: Path) -> Path:
    return tmp_path / "session.salt"


@pytest.fixture
def db(tmp_path: Path, logger: StructuredLogger) -> Iterator[LocalDatabase]:
    database = LocalDatabase(sqlite_path=tmp_path / "session.db", logger=logger)
    initialize_schema(database.sqlite, logger)
    yield database
    database.close()


@pytest.fixture
def store(db: LocalDatabase, logger: StructuredLogger, salt_path: Path) -> CredentialStore:
    return CredentialStore(
        db=db,
        logger=logger,
        salt_path=salt_path,
        kdf_iterations=TEST_KDF_ITERATIONS,
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def repair(
    gateway: FakeGateway, store: CredentialStore, logger: StructuredLogger,
) -> ProfileRepairService:
    return ProfileRepairService(gateway=gateway, store=store, logger=logger)


@pytest.fixture
def session(
    gateway: FakeGateway,
    store: CredentialStore,
    repair: ProfileRepairService,
    logger: StructuredLogger,
) -> SessionManager:
    return SessionManager(gateway=gateway, store=store, repair=repair, logger=logger)
