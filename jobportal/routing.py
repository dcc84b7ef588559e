"""
Route Guard & Route Registry.

Decides, for every navigation, whether a protected view may render.

- :func:`evaluate_route` is the pure decision over a session state, the
  signed-in user and the role a view requires.
- :class:`RouteRegistry` is the static table of which paths need which
  role.  Adding a protected view = one ``register()`` call.
- :class:`RouteGuard` binds a registry to a live
  :class:`~jobportal.auth.SessionManager`.

A signed-in user who opens another role's view is sent to their own
home view, never to the sign-in page.
"""

from __future__ import annotations

from typing import Optional, assert_never

from jobportal.auth import SessionManager
from jobportal.logger import StructuredLogger
from jobportal.models.enums import GuardAction, SessionState, UserRole
from jobportal.models.session_models import GuardDecision
from jobportal.models.user import User

LOGIN_PATH: str = "/login"


def home_path_for(role: UserRole) -> str:
    """Return the landing view of *role*."""
    match role:
        case UserRole.EMPLOYEE:
            return "/dashboard"
        case UserRole.EMPLOYER:
            return "/employer/dashboard"
        case UserRole.ADMIN:
            return "/admin/notifications"
        case _:
            assert_never(role)


def evaluate_route(
    state: SessionState,
    user: Optional[User],
    required_role: Optional[UserRole],
    current_path: str,
) -> GuardDecision:
    """Decide what a protected view at *current_path* should do.

    Parameters
    ----------
    state:
        Session state in force.
    user:
        Signed-in user, if any.
    required_role:
        Role the view is reserved for; ``None`` admits any signed-in
        user.
    current_path:
        The path being opened, returned as ``return_to`` on redirects to
        the sign-in view.

    Returns
    -------
    GuardDecision
        ``LOADING`` while the session is still being resolved,
        ``REDIRECT`` to ``/login`` without a session, ``REDIRECT`` to the
        user's home on a role mismatch, otherwise ``RENDER``.
    """
    if state in (SessionState.UNINITIALIZED, SessionState.VALIDATING):
        return GuardDecision(action=GuardAction.LOADING)

    if state is not SessionState.AUTHENTICATED or user is None:
        return GuardDecision(
            action=GuardAction.REDIRECT,
            redirect_to=LOGIN_PATH,
            return_to=current_path,
        )

    if required_role is not None and user.role != required_role:
        # A role mismatch never lands on /login.  The target is the home of
        # the role the user holds; the home of required_role would be
        # guarded by this same check and loop.
        return GuardDecision(
            action=GuardAction.REDIRECT,
            redirect_to=home_path_for(user.role),
        )

    return GuardDecision(action=GuardAction.RENDER)


class RouteEntry:
    """Access rule for one path and everything below it.

    Attributes
    ----------
    path:
        Registered path (``"/employer"`` also covers ``"/employer/jobs"``;
        ``"/"`` covers only itself).
    required_role:
        Role the view is reserved for, or ``None`` for any signed-in user.
    public:
        ``True`` when the view renders without a session.
    """

    __slots__ = ("path", "required_role", "public")

    def __init__(
        self,
        path: str,
        required_role: Optional[UserRole],
        public: bool,
    ) -> None:
        self.path = path
        self.required_role = required_role
        self.public = public

    def matches(self, path: str) -> bool:
        if self.path == "/":
            return path == "/"
        return path == self.path or path.startswith(self.path + "/")


class RouteRegistry:
    """Static table of path access rules.

    The most specific (longest) matching entry wins.  Paths that match no
    entry are unrestricted.

    Parameters
    ----------
    logger:
        Structured logger for registration events.
    """

    def __init__(self, logger: StructuredLogger) -> None:
        self._entries: dict[str, RouteEntry] = {}
        self._logger = logger

    def register(
        self,
        path: str,
        required_role: Optional[UserRole] = None,
        *,
        public: bool = False,
    ) -> None:
        """Register the access rule for *path*.

        Parameters
        ----------
        path:
            Absolute path; a trailing slash is ignored.
        required_role:
            Role the view is reserved for.  Ignored for public entries.
        public:
            If ``True``, the view renders without a session.
        """
        normalized: str = path.rstrip("/") or "/"
        if normalized in self._entries:
            self._logger.warning(
                "Route '%s' already registered; overwriting.", normalized,
            )
        self._entries[normalized] = RouteEntry(
            path=normalized,
            required_role=None if public else required_role,
            public=public,
        )
        self._logger.debug("Route registered: %s (%s)", normalized, required_role)

    def lookup(self, path: str) -> Optional[RouteEntry]:
        """Return the most specific entry covering *path*, or ``None``."""
        candidates = [entry for entry in self._entries.values() if entry.matches(path)]
        if not candidates:
            return None
        return max(candidates, key=lambda entry: len(entry.path))

    def paths_for_role(self, role: UserRole) -> list[str]:
        """Return the registered paths reserved for *role*, in registration order."""
        return [
            entry.path
            for entry in self._entries.values()
            if entry.required_role == role
        ]


def default_registry(logger: StructuredLogger) -> RouteRegistry:
    """Build the registry for the marketplace's standard views."""
    registry = RouteRegistry(logger=logger)
    for public_path in ("/", "/about", "/contact", LOGIN_PATH, "/signup", "/jobs",
                        "/register", "/employer/register"):
        registry.register(public_path, public=True)
    registry.register("/dashboard", UserRole.EMPLOYEE)
    registry.register("/apply", UserRole.EMPLOYEE)
    registry.register("/employer", UserRole.EMPLOYER)
    registry.register("/admin", UserRole.ADMIN)
    return registry


class RouteGuard:
    """Evaluates navigations against a live session.

    Parameters
    ----------
    session:
        The session manager whose snapshot is consulted on every check.
    registry:
        Access rules per path.
    """

    def __init__(self, session: SessionManager, registry: RouteRegistry) -> None:
        self._session = session
        self._registry = registry

    def check(self, path: str) -> GuardDecision:
        entry = self._registry.lookup(path)
        if entry is None or entry.public:
            return GuardDecision(action=GuardAction.RENDER)
        snapshot = self._session.snapshot
        return evaluate_route(snapshot.state, snapshot.user, entry.required_role, path)
