# src/herald/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Programmatic overrides go through Settings.with_overrides() and are type-checked.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .errors import ConfigurationError, MissingOption

ENV_PREFIX = "HERALD"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_optional(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return raw


# Option name -> (expected type, description). Drives override checks and config.example.py.
OPTION_SCHEMA: dict[str, tuple[type | tuple[type, ...], str]] = {
    "app_name": (str, "App display name (default: herald)."),
    "log_level": (str, "Logging level (default: INFO)."),
    "data_dir": (Path, "Local data directory (default: .local/herald)."),
    "console_enabled": (bool, "Enable console connector (true/false)."),
    "matrix_enabled": (bool, "Enable Matrix connector (true/false)."),
    "command_prefix": (str, "Prefix for bot commands (default: !)."),
    "allowed_rooms": (list, "Room IDs the bot may talk in (empty => all rooms)."),
    "respond_to_bots": (bool, "Whether the bot reacts to messages from other bots."),
    "bot_users": (list, "User IDs treated as bots."),
    "boot_msg": (str, "Message logged once the connector is ready."),
    "status_msg": ((str, type(None)), "Optional presence status message."),
    "timezone": (str, "IANA timezone for schedules (default: UTC)."),
    "default_rate_limit": (int, "Command uses per user per minute (0 => unlimited)."),
    "audit_backlog_minutes": (int, "Minutes of command audit history kept."),
    "matrix_homeserver": (str, "Matrix homeserver URL."),
    "matrix_user_id": (str, "Matrix user ID (bot)."),
    "matrix_password": (str, "Password for first login (session stored locally)."),
    "matrix_store_path": (Path, "Matrix session store path (default: <data_dir>/matrix_store)."),
}


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Connector flags ----
    console_enabled: bool
    matrix_enabled: bool

    # ---- Command handling ----
    command_prefix: str
    allowed_rooms: list[str]
    respond_to_bots: bool
    bot_users: list[str]
    boot_msg: str
    status_msg: str | None

    # ---- Scheduling / throttling ----
    timezone: str
    default_rate_limit: int
    audit_backlog_minutes: int

    # ---- Matrix ----
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_store_path: Path

    @staticmethod
    def from_env() -> Settings:
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/herald"))

        return Settings(
            app_name=_env(_k("APP_NAME"), "herald") or "herald",
            log_level=_env(_k("LOG_LEVEL"), "INFO"),
            data_dir=data_dir,
            console_enabled=_env_bool(_k("CONSOLE_ENABLED"), True),
            matrix_enabled=_env_bool(_k("MATRIX_ENABLED"), False),
            command_prefix=_env(_k("COMMAND_PREFIX"), "!") or "!",
            allowed_rooms=_env_list(_k("ALLOWED_ROOMS"), []),
            respond_to_bots=_env_bool(_k("RESPOND_TO_BOTS"), False),
            bot_users=_env_list(_k("BOT_USERS"), []),
            boot_msg=_env(_k("BOOT_MSG"), "Connected!"),
            status_msg=_env_optional(_k("STATUS_MSG")),
            timezone=_env(_k("TIMEZONE"), "UTC") or "UTC",
            default_rate_limit=_env_int(_k("DEFAULT_RATE_LIMIT"), 3),
            audit_backlog_minutes=_env_int(_k("AUDIT_BACKLOG_MINUTES"), 10),
            matrix_homeserver=_env(_k("MATRIX_HOMESERVER")).strip(),
            matrix_user_id=_env(_k("MATRIX_USER_ID")).strip(),
            matrix_password=_env(_k("MATRIX_PASSWORD")).strip(),
            matrix_store_path=_env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store"),
        )

    def with_overrides(self, overrides: Mapping[str, Any]) -> Settings:
        """Return a copy with selected fields replaced (unknown keys / wrong types are rejected)."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigurationError(f"unknown setting(s): {', '.join(unknown)}")

        clean: dict[str, Any] = {}
        for key, value in overrides.items():
            expected, _ = OPTION_SCHEMA[key]
            if expected is Path and isinstance(value, str):
                value = Path(value).expanduser()
            # bool is an int subclass; keep the two apart.
            if isinstance(value, bool) and expected is int:
                raise ConfigurationError(f"setting {key!r} expects int, got bool")
            if not isinstance(value, expected):
                raise ConfigurationError(f"setting {key!r} has wrong type {type(value).__name__}")
            clean[key] = list(value) if isinstance(value, list) else value

        return replace(self, **clean)

    def require_matrix(self) -> None:
        """Raise MissingOption if the Matrix connector cannot be started with these settings."""
        if not self.matrix_homeserver:
            raise MissingOption("matrix_homeserver")
        if not self.matrix_user_id:
            raise MissingOption("matrix_user_id")


def describe_options() -> list[tuple[str, str]]:
    """(env var, description) pairs for every setting."""
    return [(_k(name.upper()), desc) for name, (_, desc) in OPTION_SCHEMA.items()]


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
