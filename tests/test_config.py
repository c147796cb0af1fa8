# tests/test_config.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from taskdeck.config import Settings
from taskdeck.logging_setup import _ConsoleNoiseFilter, setup_logging

_VARS = (
    "APP_NAME",
    "LOG_LEVEL",
    "DATA_DIR",
    "DB_PATH",
    "DUE_SOON_DAYS",
    "STALE_DAYS",
    "CLEANUP_ON_STARTUP",
)


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _VARS:
        monkeypatch.delenv(f"TASKDECK_{name}", raising=False)
    return monkeypatch


def test_defaults(clean_env) -> None:
    s = Settings.from_env()
    assert s.app_name == "taskdeck"
    assert s.log_level == "INFO"
    assert s.data_dir == Path(".local/taskdeck")
    assert s.db_path == Path(".local/taskdeck") / "taskdeck.sqlite3"
    assert (s.due_soon_days, s.stale_days) == (7, 7)
    assert s.cleanup_on_startup is True


def test_overrides(clean_env, tmp_path: Path) -> None:
    clean_env.setenv("TASKDECK_DATA_DIR", str(tmp_path))
    clean_env.setenv("TASKDECK_DUE_SOON_DAYS", "3")
    clean_env.setenv("TASKDECK_STALE_DAYS", "14")
    clean_env.setenv("TASKDECK_CLEANUP_ON_STARTUP", "no")

    s = Settings.from_env()
    assert s.data_dir == tmp_path
    assert s.db_path == tmp_path / "taskdeck.sqlite3"
    assert (s.due_soon_days, s.stale_days) == (3, 14)
    assert s.cleanup_on_startup is False

    clean_env.setenv("TASKDECK_DB_PATH", str(tmp_path / "elsewhere.db"))
    assert Settings.from_env().db_path == tmp_path / "elsewhere.db"


@pytest.mark.parametrize("raw", ["soon", "-2", ""])
def test_bad_thresholds_fall_back(clean_env, raw: str) -> None:
    clean_env.setenv("TASKDECK_DUE_SOON_DAYS", raw)
    clean_env.setenv("TASKDECK_STALE_DAYS", raw)
    s = Settings.from_env()
    assert (s.due_soon_days, s.stale_days) == (7, 7)


def test_settings_are_frozen(clean_env) -> None:
    s = Settings.from_env()
    with pytest.raises(AttributeError):
        s.stale_days = 1  # type: ignore[misc]


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter() -> None:
    f = _ConsoleNoiseFilter()
    assert f.filter(_record("taskdeck.services", logging.INFO))
    assert not f.filter(_record("taskdeck.storage.store", logging.INFO))
    assert f.filter(_record("taskdeck.storage.store", logging.WARNING))
    assert not f.filter(_record("py.warnings", logging.WARNING))
    assert not f.filter(_record("urllib3", logging.WARNING))
    assert f.filter(_record("urllib3", logging.ERROR))


def test_setup_logging_writes_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        log_file = setup_logging(log_dir=tmp_path / "logs")
        setup_logging(log_dir=tmp_path / "logs")
        assert len(root.handlers) == 2

        logging.getLogger("taskdeck.storage.store").debug("row written")
        for h in root.handlers:
            h.flush()
        assert log_file == tmp_path / "logs" / "taskdeck.log"
        assert "row written" in log_file.read_text("utf-8")
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.captureWarnings(False)
