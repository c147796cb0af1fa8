# src/taskdeck/bootstrap.py

"""
Composition root.

- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite store into AppState,
- runs the orphan cleanup pass so no story/task outlives its parent.
"""

from __future__ import annotations

import logging

from .config import get_settings
from .core.state import AppState
from .logging_setup import setup_logging
from .storage.store import TrackerStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, clock=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TrackerStore(settings.db_path)
    if getattr(settings, "cleanup_on_startup", True):
        stories, tasks = store.cleanup_orphans()
        logger.info("Startup cleanup done: stories=%d tasks=%d removed", stories, tasks)

    state = AppState(settings=settings, store=store)
    if clock is not None:
        state.clock = clock
    return state


def start(*, settings=None) -> AppState:
    """Configure logging from settings, then build the state."""
    if settings is None:
        settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=getattr(settings, "data_dir", ".local/taskdeck"), console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "taskdeck"))
    return create_initial_state(settings=settings)
