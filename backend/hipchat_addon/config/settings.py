"""
Add-on configuration loaded from environment variables.

Variables:
- DATABASE_URL: SQLAlchemy URL for the installation store
- HIPCHAT_TOKEN_URL: OAuth token endpoint used for client-credentials exchange
- HIPCHAT_TOKEN_SCOPES: scopes requested on exchange (space or comma separated)
- HIPCHAT_HTTP_TIMEOUT_SECONDS: timeout for outbound HipChat calls
- BACKGROUND_WORKERS: size of the post-install worker pool
- LOG_LEVEL: root log level
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./hipchat_addon.db"
DEFAULT_TOKEN_URL = "https://api.hipchat.com/v2/oauth/token"
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
DEFAULT_BACKGROUND_WORKERS = 4


def _parse_scopes(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [scope for scope in re.split(r"[\s,]+", raw.strip()) if scope]


def _parse_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(
            "Invalid float in environment, using default",
            extra={"variable": name, "default": default},
        )
        return default


def _parse_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(
            "Invalid integer in environment, using default",
            extra={"variable": name, "default": default},
        )
        return default


@dataclass
class AddonSettings:
    """Runtime configuration for the add-on."""
    database_url: str = DEFAULT_DATABASE_URL
    token_url: str = DEFAULT_TOKEN_URL
    token_scopes: list[str] = field(default_factory=list)
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    background_workers: int = DEFAULT_BACKGROUND_WORKERS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AddonSettings":
        """Load configuration from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            token_url=os.getenv("HIPCHAT_TOKEN_URL", DEFAULT_TOKEN_URL),
            token_scopes=_parse_scopes(os.getenv("HIPCHAT_TOKEN_SCOPES")),
            http_timeout_seconds=_parse_float(
                "HIPCHAT_HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT_SECONDS
            ),
            background_workers=max(
                1, _parse_int("BACKGROUND_WORKERS", DEFAULT_BACKGROUND_WORKERS)
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


_settings: Optional[AddonSettings] = None


def get_settings() -> AddonSettings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = AddonSettings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
