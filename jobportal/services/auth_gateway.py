"""
Remote Authentication Gateway.

The session manager talks to the marketplace API only through the
:class:`RemoteAuthGateway` protocol.  :class:`HttpAuthGateway` is the
production implementation on top of ``httpx.AsyncClient``; tests swap in
an in-memory fake or an ``httpx.MockTransport``.

Every failure leaves this module as a :class:`~jobportal.errors.GatewayError`:

- transport failures (DNS, refused connection, timeout) carry status ``0``;
- error responses carry their HTTP status plus the server's ``message``,
  ``code`` and ``details`` when the body is JSON, or
  ``"HTTP <status>: <reason>"`` when it is not;
- a 2xx response whose body cannot be understood carries the response
  status and ``"Invalid response format from server"``.

The API wraps payloads inconsistently, so responses shaped as
``{token, user}``, ``{data: {token, user}}``, ``{user}``,
``{data: {user}}`` or a bare user object are all accepted.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, TypeVar, runtime_checkable

import httpx
from pydantic import BaseModel, ValidationError

from jobportal.config import AppConfig
from jobportal.errors import GatewayError
from jobportal.logger import StructuredLogger
from jobportal.models.auth_models import (
    NETWORK_STATUS,
    AuthResponse,
    OTPDispatchResponse,
    OTPVerificationResponse,
    RegistrationPayload,
)
from jobportal.models.user import User

TokenProvider = Callable[[], Optional[str]]
M = TypeVar("M", bound=BaseModel)

INVALID_FORMAT_MESSAGE: str = "Invalid response format from server"
NETWORK_ERROR_MESSAGE: str = (
    "Unable to connect to server. Please check your internet connection."
)


@runtime_checkable
class RemoteAuthGateway(Protocol):
    """Async contract of the remote authentication API."""

    async def login(
        self, email: str, password: str, remember_me: bool = False,
    ) -> AuthResponse: ...

    async def verify_otp(self, email: str, code: str) -> OTPVerificationResponse: ...

    async def send_otp(self, email: str) -> OTPDispatchResponse: ...

    async def register(self, payload: RegistrationPayload) -> AuthResponse: ...

    async def get_current_user(self) -> User: ...

    async def update_profile(self, partial: dict[str, Any]) -> User: ...

    async def logout(self) -> None: ...

    async def aclose(self) -> None: ...


class HttpAuthGateway:
    """``RemoteAuthGateway`` backed by ``httpx.AsyncClient``.

    Parameters
    ----------
    base_url:
        API root including the ``/api`` suffix (see
        :pyattr:`AppConfig.api_url`).
    token_provider:
        Zero-argument callable returning the bearer token to send, or
        ``None`` for anonymous requests.  Called once per request.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    timeout:
        Per-request timeout in seconds.
    client:
        Optional pre-built client (tests inject one with a
        ``MockTransport``).  An injected client is still closed by
        :meth:`aclose`.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        logger: StructuredLogger,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url: str = base_url.rstrip("/")
        self._token_provider: TokenProvider = token_provider
        self._logger: StructuredLogger = logger
        self._client: httpx.AsyncClient = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        token_provider: TokenProvider,
        logger: StructuredLogger,
    ) -> "HttpAuthGateway":
        return cls(
            base_url=config.api_url,
            token_provider=token_provider,
            logger=logger,
            timeout=config.API_TIMEOUT_S,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def login(
        self, email: str, password: str, remember_me: bool = False,
    ) -> AuthResponse:
        """``POST /auth/login``."""
        response = await self._request(
            "POST",
            "/auth/login",
            {"email": email, "password": password, "rememberMe": remember_me},
        )
        return self._parse(AuthResponse, self._unwrap_auth(response), response)

    async def verify_otp(self, email: str, code: str) -> OTPVerificationResponse:
        """``POST /auth/verify-otp``."""
        response = await self._request(
            "POST", "/auth/verify-otp", {"email": email, "otp": code},
        )
        return self._parse(
            OTPVerificationResponse, self._unwrap_auth(response), response,
        )

    async def send_otp(self, email: str) -> OTPDispatchResponse:
        """``POST /auth/send-otp``."""
        response = await self._request("POST", "/auth/send-otp", {"email": email})
        return self._parse(OTPDispatchResponse, self._body(response), response)

    async def register(self, payload: RegistrationPayload) -> AuthResponse:
        """``POST /auth/register``."""
        response = await self._request("POST", "/auth/register", payload.to_wire())
        return self._parse(AuthResponse, self._unwrap_auth(response), response)

    async def get_current_user(self) -> User:
        """``GET /auth/me``."""
        response = await self._request("GET", "/auth/me")
        return self._parse(User, self._unwrap_user(response), response)

    async def update_profile(self, partial: dict[str, Any]) -> User:
        """``PUT /profile`` with a partial user record."""
        response = await self._request("PUT", "/profile", partial)
        return self._parse(User, self._unwrap_user(response), response)

    async def logout(self) -> None:
        """``POST /auth/logout``; the response body is ignored."""
        await self._request("POST", "/auth/logout")

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send one request and return the successful response.

        Raises
        ------
        GatewayError
            On transport failure (status ``0``) or a non-2xx response.
        """
        headers: dict[str, str] = {"Accept": "application/json"}
        token: Optional[str] = self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        url: str = f"{self._base_url}{path}"
        try:
            response = await self._client.request(
                method, url, json=body, headers=headers,
            )
        except httpx.RequestError as exc:
            self._logger.warning(
                "API request %s %s failed: %s", method, path, exc,
                extra={"event": "API_NETWORK_ERROR", "path": path},
            )
            raise GatewayError(
                NETWORK_STATUS, NETWORK_ERROR_MESSAGE, code="NETWORK_ERROR",
            ) from exc

        if response.is_error:
            error = self._error_from_response(response)
            self._logger.warning(
                "API request %s %s returned %d: %s",
                method, path, error.status, error.message,
                extra={
                    "event": "API_ERROR",
                    "path": path,
                    "status": error.status,
                    "code": error.code,
                },
            )
            raise error

        self._logger.debug("API request %s %s -> %d", method, path, response.status_code)
        return response

    @staticmethod
    def _error_from_response(response: httpx.Response) -> GatewayError:
        try:
            payload = response.json()
        except ValueError:
            return GatewayError(
                response.status_code,
                f"HTTP {response.status_code}: {response.reason_phrase}",
            )

        if not isinstance(payload, dict):
            return GatewayError(
                response.status_code,
                f"HTTP {response.status_code}: {response.reason_phrase}",
            )

        message = payload.get("message") or payload.get("error") or ""
        code = payload.get("code")
        return GatewayError(
            response.status_code,
            str(message),
            code=str(code) if code is not None else None,
            details=payload.get("details"),
        )

    # ------------------------------------------------------------------
    # Envelope handling
    # ------------------------------------------------------------------

    @staticmethod
    def _body(response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise GatewayError(response.status_code, INVALID_FORMAT_MESSAGE) from exc
        if not isinstance(payload, dict):
            raise GatewayError(response.status_code, INVALID_FORMAT_MESSAGE)
        return payload

    @classmethod
    def _unwrap_auth(cls, response: httpx.Response) -> dict[str, Any]:
        """Return the object holding ``token``/``user`` for auth responses."""
        body = cls._body(response)
        inner = body.get("data")
        if isinstance(inner, dict) and not (body.get("token") or body.get("user")):
            merged: dict[str, Any] = dict(inner)
            for key in ("message", "success"):
                if key in body and key not in merged:
                    merged[key] = body[key]
            return merged
        return body

    @classmethod
    def _unwrap_user(cls, response: httpx.Response) -> dict[str, Any]:
        """Return the user record from any accepted envelope."""
        body = cls._body(response)
        candidates: list[object] = [body.get("user")]
        inner = body.get("data")
        if isinstance(inner, dict):
            candidates.extend([inner.get("user"), inner])
        candidates.append(body)

        for candidate in candidates:
            if isinstance(candidate, dict) and "id" in candidate:
                return candidate
        raise GatewayError(response.status_code, INVALID_FORMAT_MESSAGE)

    @staticmethod
    def _parse(model: type[M], data: dict[str, Any], response: httpx.Response) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise GatewayError(response.status_code, INVALID_FORMAT_MESSAGE) from exc
