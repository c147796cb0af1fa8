# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskdeck.core.state import AppState
from taskdeck.storage.store import TrackerStore

from .fakes import FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskdeck-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        db_path=tmp_path / "data" / "taskdeck.sqlite3",
        due_soon_days=7,
        stale_days=7,
        cleanup_on_startup=True,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(settings: SimpleNamespace) -> TrackerStore:
    return TrackerStore(settings.db_path)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TrackerStore, clock: FakeClock) -> AppState:
    """
    AppState wired with a fake clock.

    NOTE: We keep a real SQLite store here because its transactional
    behavior is part of what we want to test.
    """
    return AppState(settings=settings, store=store, clock=clock)
