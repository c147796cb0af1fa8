# src/taskdeck/logging_setup.py

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

LOG_FILE_NAME = "taskdeck.log"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console policy:
    - taskdeck.storage logs every row write, so only WARNING+ reaches the console
      (the startup orphan cleanup report is a warning and still shows)
    - other taskdeck logs pass
    - captured Python warnings and third-party records only at ERROR+
    """

    def __init__(self, storage_level: int = logging.WARNING) -> None:
        super().__init__()
        self.storage_level = storage_level

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith("taskdeck.storage"):
            return record.levelno >= self.storage_level

        if name == "taskdeck" or name.startswith("taskdeck."):
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskdeck",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 2_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Install a filtered stderr handler and a rotating file handler that keeps
    everything at `file_level`. Replaces handlers already on the root logger,
    so calling it twice does not duplicate output.

    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
