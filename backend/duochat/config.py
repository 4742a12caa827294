"""Duochat application configuration.

Loads settings from a single YAML file:
  * duochat.settings.yaml: server, logging and matchmaking settings

The file location can be overridden with the ``DUOCHAT_SETTINGS``
environment variable, and ``PORT`` overrides ``server.port`` the way most
hosting platforms expect. Nothing in this file is secret; the service has no
credentials of its own.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("duochat.settings.yaml")
SETTINGS_ENV_VAR = "DUOCHAT_SETTINGS"
PORT_ENV_VAR = "PORT"


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
    host: str = "0.0.0.0"
    port: int = 3000


class LoggingSettings(BaseModel):
    level: str = "info"


class MatchSettings(BaseModel):
    """Matchmaking and bot-fallback behaviour."""
    bot_fallback_enabled:    bool  = True
    bot_fallback_seconds:    float = 15.0
    bot_reply_delay_seconds: float = 0.7
    bot_greeting:            str   = "Hi, I'm a bot while you wait. Try 'New' to find a human."
    bot_reply_template:      str   = 'Bot: I heard "{text}".'
    outbox_limit:            int   = 256

    @field_validator("bot_fallback_seconds", "bot_reply_delay_seconds")
    @classmethod
    def _positive_delay(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("delay must be positive")
        return value

    @field_validator("outbox_limit")
    @classmethod
    def _positive_limit(cls, value: int) -> int:
        if value < 1:
            raise ValueError("outbox_limit must be at least 1")
        return value

    @field_validator("bot_reply_template")
    @classmethod
    def _template_has_text(cls, value: str) -> str:
        if "{text}" not in value:
            raise ValueError("bot_reply_template must contain '{text}'")
        return value


class AppConfig(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    match:   MatchSettings   = Field(default_factory=MatchSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

_config: Optional[AppConfig] = None


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load settings from *settings_path* (or the default location)."""
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV_VAR, SETTINGS_FILE))
    data = _load_yaml(Path(settings_path))

    config = AppConfig(**data)
    port = os.environ.get(PORT_ENV_VAR)
    if port:
        config.server.port = int(port)
    logger.info(
        "Settings loaded (server=%s:%s, bot_fallback=%s after %ss)",
        config.server.host,
        config.server.port,
        config.match.bot_fallback_enabled,
        config.match.bot_fallback_seconds,
    )
    return config


def get_config() -> AppConfig:
    """Return the process-wide config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached config. Primarily used by tests."""
    global _config
    _config = None
