"""Tests for the route guard and route registry."""

import pytest
from conftest import FakeGateway, make_user

from jobportal.auth import SessionManager
from jobportal.logger import StructuredLogger
from jobportal.models.auth_models import AuthResponse
from jobportal.models.enums import GuardAction, SessionState, UserRole
from jobportal.routing import (
    LOGIN_PATH,
    RouteGuard,
    RouteRegistry,
    default_registry,
    evaluate_route,
    home_path_for,
)


class TestEvaluateRoute:
    """The pure access decision."""

    @pytest.mark.parametrize("state", [SessionState.UNINITIALIZED, SessionState.VALIDATING])
    def test_loading_states_wait(self, state: SessionState):
        decision = evaluate_route(state, None, UserRole.EMPLOYER, "/employer/jobs")

        assert decision.action is GuardAction.LOADING
        assert decision.redirect_to is None
        assert decision.allowed is False

    @pytest.mark.parametrize(
        "state", [SessionState.UNAUTHENTICATED, SessionState.SESSION_EXPIRED],
    )
    def test_signed_out_redirects_to_login_with_return_path(self, state: SessionState):
        decision = evaluate_route(state, None, UserRole.EMPLOYEE, "/dashboard/saved")

        assert decision.action is GuardAction.REDIRECT
        assert decision.redirect_to == LOGIN_PATH
        assert decision.return_to == "/dashboard/saved"

    def test_employee_on_employer_view_gets_role_home_not_login(self):
        """The redirect target is a home path from the role table: the
        employee home, since the employer home would be refused by the
        same check."""
        employee = make_user(role=UserRole.EMPLOYEE)

        decision = evaluate_route(
            SessionState.AUTHENTICATED, employee, UserRole.EMPLOYER, "/employer/jobs",
        )

        assert decision.action is GuardAction.REDIRECT
        assert decision.redirect_to == "/dashboard"
        assert decision.redirect_to in {home_path_for(role) for role in UserRole}
        assert decision.redirect_to != LOGIN_PATH
        assert decision.return_to is None

    @pytest.mark.parametrize(
        "role, required, expected",
        [
            (UserRole.EMPLOYER, UserRole.EMPLOYEE, "/employer/dashboard"),
            (UserRole.ADMIN, UserRole.EMPLOYER, "/admin/notifications"),
            (UserRole.EMPLOYEE, UserRole.ADMIN, "/dashboard"),
        ],
    )
    def test_role_mismatch_redirects_to_own_home(
        self, role: UserRole, required: UserRole, expected: str,
    ):
        decision = evaluate_route(
            SessionState.AUTHENTICATED, make_user(role=role), required, "/somewhere",
        )

        assert decision.redirect_to == expected

    def test_matching_role_renders(self):
        decision = evaluate_route(
            SessionState.AUTHENTICATED,
            make_user(role=UserRole.EMPLOYER),
            UserRole.EMPLOYER,
            "/employer/jobs",
        )

        assert decision.action is GuardAction.RENDER
        assert decision.allowed is True

    def test_no_required_role_admits_any_signed_in_user(self):
        decision = evaluate_route(
            SessionState.AUTHENTICATED, make_user(role=UserRole.ADMIN), None, "/settings",
        )

        assert decision.action is GuardAction.RENDER

    def test_home_paths_are_distinct_and_never_login(self):
        homes = {home_path_for(role) for role in UserRole}

        assert len(homes) == len(UserRole)
        assert LOGIN_PATH not in homes


class TestRouteRegistry:
    """Static path rules."""

    def test_longest_prefix_wins(self, logger: StructuredLogger):
        registry = RouteRegistry(logger=logger)
        registry.register("/employer", UserRole.EMPLOYER)
        registry.register("/employer/register", public=True)

        protected = registry.lookup("/employer/jobs/42")
        public = registry.lookup("/employer/register")

        assert protected is not None and protected.required_role is UserRole.EMPLOYER
        assert public is not None and public.public is True

    def test_root_matches_only_itself(self, logger: StructuredLogger):
        registry = RouteRegistry(logger=logger)
        registry.register("/", public=True)

        assert registry.lookup("/") is not None
        assert registry.lookup("/dashboard") is None

    def test_prefix_respects_segment_boundary(self, logger: StructuredLogger):
        registry = RouteRegistry(logger=logger)
        registry.register("/admin", UserRole.ADMIN)

        assert registry.lookup("/administrator") is None
        assert registry.lookup("/admin/") is not None

    def test_paths_for_role(self, logger: StructuredLogger):
        registry = default_registry(logger)

        assert registry.paths_for_role(UserRole.EMPLOYEE) == ["/dashboard", "/apply"]
        assert registry.paths_for_role(UserRole.ADMIN) == ["/admin"]


class TestRouteGuard:
    """Guard bound to a live session."""

    @pytest.fixture
    def guard(self, session: SessionManager, logger: StructuredLogger) -> RouteGuard:
        return RouteGuard(session=session, registry=default_registry(logger))

    def test_uninitialized_session_is_loading(self, guard: RouteGuard):
        assert guard.check("/dashboard").action is GuardAction.LOADING

    def test_public_and_unknown_paths_render(self, guard: RouteGuard):
        assert guard.check("/jobs").action is GuardAction.RENDER
        assert guard.check("/login").action is GuardAction.RENDER
        assert guard.check("/some/unlisted/page").action is GuardAction.RENDER

    @pytest.mark.asyncio
    async def test_signed_out_user_is_sent_to_login(self, guard: RouteGuard, session: SessionManager):
        await session.initialize()

        decision = guard.check("/employer/post-job")

        assert decision.redirect_to == LOGIN_PATH
        assert decision.return_to == "/employer/post-job"

    @pytest.mark.asyncio
    async def test_employee_sent_home_from_employer_area(
        self, guard: RouteGuard, session: SessionManager, gateway: FakeGateway,
    ):
        gateway.responses["login"] = AuthResponse(token="t", user=make_user())
        await session.initialize()
        await session.login("jane@example.com", "Secret123!")

        assert guard.check("/employer/dashboard").redirect_to == "/dashboard"
        assert guard.check("/dashboard/profile").action is GuardAction.RENDER
