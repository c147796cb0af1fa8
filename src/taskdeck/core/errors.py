# src/taskdeck/core/errors.py

"""
Error taxonomy.

- NotFoundError: a referenced id does not exist; the operation aborts before writing.
- ImportFormatError: a backup document is malformed; the store is left untouched.

Storage failures are plain sqlite3.Error and propagate unchanged.
"""

from __future__ import annotations


class TaskdeckError(Exception):
    """Base class for errors raised by taskdeck."""


class NotFoundError(TaskdeckError, LookupError):
    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class ImportFormatError(TaskdeckError, ValueError):
    pass
