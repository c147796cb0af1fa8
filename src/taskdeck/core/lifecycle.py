# src/taskdeck/core/lifecycle.py

"""
Task lifecycle engine.

Every function is a pure transform: it takes the current Task plus a captured
`now` and returns the dict of fields to write (field name -> new value).
Nothing here touches storage. `apply_updates` turns that dict into a new Task
so callers and tests can look at the result without a store.

Status side effects (applied together, in this order):
1. status and last_updated_at are always written.
2. entering ACTIVE with no start_date stamps start_date.
3. entering BLOCKED sets is_blocked/blocked_at and stamps start_date if missing.
4. leaving BLOCKED clears is_blocked, blocked_at, blocked_by, blocked_reason.
5. entering COMPLETED stamps completed_at.
6. leaving COMPLETED clears completed_at.

A set_status to the current status only refreshes last_updated_at: blocked_at
and completed_at keep the instant the task first entered that status.
set_blocked is an explicit new blocker and always restamps blocked_at.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from .errors import NotFoundError
from .models import EDITABLE_TASK_FIELDS, ActivityLogEntry, Task, TaskStatus, new_id, normalize_tags

Updates = dict[str, Any]


def set_status(task: Task, new_status: TaskStatus, now: datetime) -> Updates:
    new_status = TaskStatus(new_status)
    old_status = task.status

    updates: Updates = {"status": new_status, "last_updated_at": now}

    if new_status == TaskStatus.ACTIVE and task.start_date is None:
        updates["start_date"] = now

    if new_status == TaskStatus.BLOCKED:
        updates["is_blocked"] = True
        if old_status != TaskStatus.BLOCKED or task.blocked_at is None:
            updates["blocked_at"] = now
        if task.start_date is None:
            updates["start_date"] = now

    if old_status == TaskStatus.BLOCKED and new_status != TaskStatus.BLOCKED:
        updates["is_blocked"] = False
        updates["blocked_at"] = None
        updates["blocked_by"] = ""
        updates["blocked_reason"] = ""

    if new_status == TaskStatus.COMPLETED:
        if old_status != TaskStatus.COMPLETED or task.completed_at is None:
            updates["completed_at"] = now

    if old_status == TaskStatus.COMPLETED and new_status != TaskStatus.COMPLETED:
        updates["completed_at"] = None

    return updates


def set_blocked(task: Task, blocked_by: str, blocked_reason: str, now: datetime) -> Updates:
    """
    Force the task into BLOCKED and record who/why.

    blocked_by and blocked_reason are stored as given; requiring them to be
    non-empty is the input form's job.
    """
    updates = set_status(task, TaskStatus.BLOCKED, now)
    updates["blocked_at"] = now
    updates["blocked_by"] = blocked_by
    updates["blocked_reason"] = blocked_reason
    return updates


def clear_blocked(task: Task, now: datetime) -> Updates:
    """Unblocking always lands in ACTIVE, never back in NEW."""
    return set_status(task, TaskStatus.ACTIVE, now)


def edit_fields(task: Task, changes: Mapping[str, Any], now: datetime) -> Updates:
    """
    Generic field edit.

    A `status` key goes through set_status so the same side effects apply as
    on a drag between columns. An explicit `last_updated_at` overrides `now`
    for that field only.
    """
    changes = dict(changes)
    explicit_updated_at = changes.pop("last_updated_at", None)
    new_status = changes.pop("status", None)

    unknown = set(changes) - EDITABLE_TASK_FIELDS
    if unknown:
        raise ValueError(f"fields not editable: {', '.join(sorted(unknown))}")

    updates: Updates = dict(changes)
    if "tags" in updates:
        updates["tags"] = normalize_tags(updates["tags"])

    if new_status is not None:
        updates.update(set_status(task, TaskStatus(new_status), now))

    updates["last_updated_at"] = explicit_updated_at or now
    return updates


# ---- activity log ----


def _sorted_log(entries) -> list[ActivityLogEntry]:
    return sorted(entries, key=lambda e: e.date, reverse=True)


def _require_entry(task: Task, entry_id: str) -> None:
    if not any(e.id == entry_id for e in task.activity_log):
        raise NotFoundError("activity log entry", entry_id)


def add_entry(
    task: Task,
    note: str,
    now: datetime,
    *,
    date: datetime | None = None,
    entry_id: str | None = None,
) -> Updates:
    """Add a note; the task counts as updated at the entry's date."""
    entry_date = date or now
    entry = ActivityLogEntry(id=entry_id or new_id(), date=entry_date, note=note, created_at=now)
    return {
        "activity_log": _sorted_log([*task.activity_log, entry]),
        "last_updated_at": entry_date,
    }


def update_entry(
    task: Task,
    entry_id: str,
    now: datetime,
    *,
    note: str | None = None,
    date: datetime | None = None,
) -> Updates:
    _require_entry(task, entry_id)

    log: list[ActivityLogEntry] = []
    for entry in task.activity_log:
        if entry.id == entry_id:
            entry = dataclasses.replace(
                entry,
                note=entry.note if note is None else note,
                date=entry.date if date is None else date,
            )
        log.append(entry)

    return {"activity_log": _sorted_log(log), "last_updated_at": now}


def delete_entry(task: Task, entry_id: str, now: datetime) -> Updates:
    _require_entry(task, entry_id)
    log = [e for e in task.activity_log if e.id != entry_id]
    return {"activity_log": _sorted_log(log), "last_updated_at": now}


def apply_updates(task: Task, updates: Mapping[str, Any]) -> Task:
    return dataclasses.replace(task, **updates)
