# src/taskdeck/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .ports import Clock, TrackerRepo


@dataclass
class AppState:
    """
    Everything a user action needs, passed explicitly.

    `store` is the only place state lives; `clock` is sampled once per
    operation by the services layer.
    """

    # Settings (or a test stand-in with the same attributes).
    settings: Any
    store: TrackerRepo
    clock: Clock = field(default=datetime.now)

    @property
    def due_soon_days(self) -> int:
        return int(getattr(self.settings, "due_soon_days", 7))

    @property
    def stale_days(self) -> int:
        return int(getattr(self.settings, "stale_days", 7))
