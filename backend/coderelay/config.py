"""CodeRelay application configuration.

Loads settings from a single YAML file:
  * coderelay.settings.yaml  (non-secret configuration)

The file location can be overridden with the ``CODERELAY_SETTINGS``
environment variable. Missing files fall back to defaults so the relay can
start with zero configuration.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("coderelay.settings.yaml")
SETTINGS_ENV_VAR = "CODERELAY_SETTINGS"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str  = "0.0.0.0"
    port:            int  = 5000
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingSettings(BaseModel):
    level: str = "info"

    @field_validator("level")
    @classmethod
    def known_level(cls, value: str) -> str:
        if value.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return value.lower()


class DatabaseSettings(BaseModel):
    """DuckDB file shared by the chat log and the workspace table."""
    path: str = "coderelay.duckdb"


class ChatSettings(BaseModel):
    delete_grace_minutes: float = Field(default=5, ge=0)
    max_message_length:   int   = Field(default=2000, ge=1)


class RoomSettings(BaseModel):
    # 0 = no limit
    max_rooms_per_connection: int = Field(default=0, ge=0)


class AppSettings(BaseModel):
    server:   ServerSettings   = Field(default_factory=ServerSettings)
    logging:  LoggingSettings  = Field(default_factory=LoggingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    chat:     ChatSettings     = Field(default_factory=ChatSettings)
    rooms:    RoomSettings     = Field(default_factory=RoomSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def _resolve_database_path(settings: AppSettings, settings_path: Path) -> None:
    """Resolve a relative database path against the settings file directory."""
    raw = settings.database.path
    if raw == ":memory:" or Path(raw).is_absolute():
        return
    settings.database.path = str(settings_path.parent.resolve() / raw)


def load_config(settings_path: Optional[Path] = None) -> AppSettings:
    """Load settings into a single *AppSettings* object."""
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV_VAR, SETTINGS_FILE))
    settings_path = Path(settings_path)

    settings_data = _load_yaml(settings_path)
    app_settings = AppSettings(**settings_data)
    _resolve_database_path(app_settings, settings_path)

    logger.info(
        "Settings loaded (server=%s:%s, database=%s, grace=%s min)",
        app_settings.server.host,
        app_settings.server.port,
        app_settings.database.path,
        app_settings.chat.delete_grace_minutes,
    )
    return app_settings


_config: Optional[AppSettings] = None


def get_config() -> AppSettings:
    """Return the process-wide settings, loading them on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[AppSettings]) -> None:
    """Replace the cached settings (``None`` forces a reload on next access)."""
    global _config
    _config = config
