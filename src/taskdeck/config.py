# src/taskdeck/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Every consumer also accepts an injected settings object (tests, embedding).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKDECK"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


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


def _env_days(name: str, default: int) -> int:
    """Day thresholds: negative or malformed values fall back to the default."""
    value = _env_int(name, default)
    return default if value < 0 else value


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Dashboard thresholds (days) ----
    due_soon_days: int
    stale_days: int

    # ---- Startup ----
    cleanup_on_startup: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskdeck") or "taskdeck"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskdeck"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "taskdeck.sqlite3")

        due_soon_days = _env_days(_k("DUE_SOON_DAYS"), 7)
        stale_days = _env_days(_k("STALE_DAYS"), 7)

        cleanup_on_startup = _env_bool(_k("CLEANUP_ON_STARTUP"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            due_soon_days=due_soon_days,
            stale_days=stale_days,
            cleanup_on_startup=cleanup_on_startup,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
