"""
Application Configuration.

Pydantic Settings model for the job portal session client.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field, model_validator

_DEFAULT_API_BASE_URL: str = "https://mcb.instatripplan.com"


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Remote API ---
    API_BASE_URL: str = _DEFAULT_API_BASE_URL
    API_TIMEOUT_S: float = 15.0

    # --- Credential store ---
    CREDENTIAL_DB_PATH: Path = Path("jobportal_session.db")
    CREDENTIAL_SALT_PATH: Path = Field(
        default_factory=lambda: Path.home() / ".jobportal_session_salt",
    )
    CREDENTIAL_KDF_ITERATIONS: int = 600_000

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "jobportal.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when running on placeholder configuration.

        Pydantic silently falls back to defaults when ``.env`` is missing,
        so operators get a hint about which API the client is talking to.
        """
        _log = logging.getLogger("jobportal.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; all configuration loaded from "
                "environment variables or defaults."
            )

        if self.API_BASE_URL.rstrip("/") == _DEFAULT_API_BASE_URL:
            _log.info(
                "API_BASE_URL not overridden, using the public API at %s.",
                _DEFAULT_API_BASE_URL,
            )

        if self.CREDENTIAL_KDF_ITERATIONS < 100_000:
            _log.warning(
                "CREDENTIAL_KDF_ITERATIONS=%d is below the recommended "
                "minimum; only use low values in tests.",
                self.CREDENTIAL_KDF_ITERATIONS,
            )

        return self

    @property
    def api_url(self) -> str:
        """Return the API root, always ending in ``/api`` and never in ``/``."""
        base: str = self.API_BASE_URL.strip().rstrip("/") or _DEFAULT_API_BASE_URL
        if base.endswith("/api"):
            return base
        return f"{base}/api"

    @property
    def log_level(self) -> int:
        """Numeric ``logging`` level for ``LOG_LEVEL`` (defaults to INFO)."""
        level = logging.getLevelName(self.LOG_LEVEL.upper())
        return level if isinstance(level, int) else logging.INFO


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    On first call, creates an ``AppConfig`` instance (reading from ``.env``).
    Subsequent calls return the same instance.  Uses a check-lock-check
    pattern so first initialisation stays thread-safe.

    Prefer direct constructor injection of ``AppConfig`` in new code;
    this factory exists for modules such as the logger that are created
    before the composition root runs.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
