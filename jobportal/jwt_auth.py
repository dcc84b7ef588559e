"""
Session Guard Decorators.

Factories that produce decorators for gating application calls behind
the session owned by a :class:`~jobportal.auth.SessionManager`.

Usage::

    from jobportal.jwt_auth import expire_on_unauthorized, require_auth

    auth_guard = require_auth(session)
    expiry_guard = expire_on_unauthorized(session)

    @auth_guard
    @expiry_guard
    async def list_my_jobs() -> list[dict]:
        return await jobs_api.list_mine()

``require_auth`` refuses the call when nobody is signed in.
``expire_on_unauthorized`` turns a 401 from the API into a forced
session expiry, so the UI can show the "session expired" banner.
"""

from __future__ import annotations

import inspect
from functools import wraps
from typing import Any, Awaitable, Callable, ParamSpec, TypeVar

from jobportal.auth import SessionManager
from jobportal.errors import AuthenticationRequiredError, GatewayError, SessionExpiredError

P = ParamSpec("P")
R = TypeVar("R")


def require_auth(session: SessionManager) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Return a decorator that enforces authentication via *session*.

    Works for plain functions and coroutine functions alike.  The check
    runs on every call; for coroutine functions it runs when the call is
    awaited.

    Args:
        session: The injectable ``SessionManager`` that owns the session.

    Returns:
        A decorator raising :class:`AuthenticationRequiredError` when no
        user is signed in.
    """

    def _ensure() -> None:
        if not session.is_authenticated:
            raise AuthenticationRequiredError(
                "Authentication required. Please log in before "
                "performing this action."
            )

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
                _ensure()
                return await func(*args, **kwargs)

            return async_wrapper  # type: ignore[return-value]

        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            _ensure()
            return func(*args, **kwargs)

        return wrapper

    return decorator


def expire_on_unauthorized(
    session: SessionManager,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Return a decorator that expires *session* when the API answers 401.

    The wrapped coroutine's :class:`GatewayError` with status 401 triggers
    :meth:`SessionManager.handle_session_expired` and is re-raised as
    :class:`SessionExpiredError`.  Every other exception passes through
    untouched.
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return await func(*args, **kwargs)
            except GatewayError as exc:
                if not exc.is_unauthorized:
                    raise
                session.handle_session_expired()
                raise SessionExpiredError() from exc

        return wrapper

    return decorator
