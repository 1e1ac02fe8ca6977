"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No connection logic
- No protocol constants
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import SNAPSHOT_INTERVAL_S_DEFAULT, STREAM_PATH_DASHBOARD


def _csv_env(name: str) -> tuple[str, ...]:
    raw = os.environ.get(name, "")
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the connection manager and the dev stream server.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # Stream client
    # ------------------------------------------------------------------

    base_url: str = "http://localhost:8080"
    stream_path: str = STREAM_PATH_DASHBOARD
    token: str | None = None
    origin: str | None = None

    # ------------------------------------------------------------------
    # Dev stream server
    # ------------------------------------------------------------------

    stream_tokens: tuple[str, ...] = ()
    allowed_origins: tuple[str, ...] = ()
    snapshot_interval_s: float = SNAPSHOT_INTERVAL_S_DEFAULT

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if SNAPSHOT_INTERVAL_S is not a number.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",

            base_url=os.environ.get("DASHBOARD_BASE_URL", "http://localhost:8080"),
            stream_path=os.environ.get("DASHBOARD_STREAM_PATH", STREAM_PATH_DASHBOARD),
            token=os.environ.get("DASHBOARD_TOKEN") or None,
            origin=os.environ.get("DASHBOARD_ORIGIN") or None,

            stream_tokens=_csv_env("STREAM_TOKENS"),
            allowed_origins=_csv_env("ALLOWED_ORIGINS"),
            snapshot_interval_s=float(
                os.environ.get("SNAPSHOT_INTERVAL_S", SNAPSHOT_INTERVAL_S_DEFAULT)
            ),
        )
