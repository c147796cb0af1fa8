# src/taskdeck/storage/serialization.py

"""
JSON-safe codec for entities and the backup document.

Backup document layout (camelCase keys, ISO-8601 datetimes):

    {
        "version": "1.0",
        "exportedAt": "2024-03-01T10:00:00",
        "data": {"projects": [...], "userStories": [...], "tasks": [...]}
    }

Datetimes keep microseconds so a dump -> load cycle is exact. Values with a UTC
offset are read back as naive local time.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from ..core.errors import ImportFormatError
from ..core.models import ActivityLogEntry, Project, Task, TaskStatus, UserStory, normalize_tags

BACKUP_VERSION = "1.0"


def dt_to_str(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def str_to_dt(raw: Any) -> datetime | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        value = raw
    else:
        try:
            value = datetime.fromisoformat(str(raw))
        except ValueError as e:
            raise ImportFormatError(f"invalid datetime: {raw!r}") from e
    # Stored values are naive local time; backups written by other tools
    # carry an offset ("...Z").
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


def _required_dt(raw: Any, name: str) -> datetime:
    value = str_to_dt(raw)
    if value is None:
        raise ImportFormatError(f"missing datetime field: {name}")
    return value


def _required_str(raw: Mapping[str, Any], name: str) -> str:
    value = raw.get(name)
    if not isinstance(value, str) or not value:
        raise ImportFormatError(f"missing or invalid field: {name}")
    return value


# ---- activity log ----


def entry_to_dict(entry: ActivityLogEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "date": dt_to_str(entry.date),
        "note": entry.note,
        "createdAt": dt_to_str(entry.created_at),
    }


def entry_from_dict(raw: Mapping[str, Any]) -> ActivityLogEntry:
    return ActivityLogEntry(
        id=_required_str(raw, "id"),
        date=_required_dt(raw.get("date"), "date"),
        note=str(raw.get("note") or ""),
        created_at=_required_dt(raw.get("createdAt"), "createdAt"),
    )


def entries_to_list(entries: Iterable[ActivityLogEntry]) -> list[dict[str, Any]]:
    return [entry_to_dict(e) for e in entries]


def entries_from_list(raw: Any) -> list[ActivityLogEntry]:
    if not raw:
        return []
    if not isinstance(raw, list):
        raise ImportFormatError("activityLog must be a list")
    entries = [entry_from_dict(e) for e in raw]
    entries.sort(key=lambda e: e.date, reverse=True)
    return entries


# ---- entities ----


def project_to_dict(project: Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "title": project.title,
        "description": project.description,
        "tags": list(project.tags),
        "createdAt": dt_to_str(project.created_at),
        "isArchived": project.is_archived,
        "sortOrder": project.sort_order,
    }


def project_from_dict(raw: Mapping[str, Any]) -> Project:
    return Project(
        id=_required_str(raw, "id"),
        title=str(raw.get("title") or ""),
        description=str(raw.get("description") or ""),
        tags=normalize_tags(raw.get("tags")),
        created_at=_required_dt(raw.get("createdAt"), "createdAt"),
        is_archived=bool(raw.get("isArchived", False)),
        sort_order=int(raw.get("sortOrder") or 0),
    )


def user_story_to_dict(story: UserStory) -> dict[str, Any]:
    return {
        "id": story.id,
        "projectId": story.project_id,
        "title": story.title,
        "description": story.description,
        "tags": list(story.tags),
        "createdAt": dt_to_str(story.created_at),
        "isArchived": story.is_archived,
        "sortOrder": story.sort_order,
    }


def user_story_from_dict(raw: Mapping[str, Any]) -> UserStory:
    return UserStory(
        id=_required_str(raw, "id"),
        project_id=_required_str(raw, "projectId"),
        title=str(raw.get("title") or ""),
        description=str(raw.get("description") or ""),
        tags=normalize_tags(raw.get("tags")),
        created_at=_required_dt(raw.get("createdAt"), "createdAt"),
        is_archived=bool(raw.get("isArchived", False)),
        sort_order=int(raw.get("sortOrder") or 0),
    )


def task_to_dict(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "userStoryId": task.user_story_id,
        "title": task.title,
        "description": task.description,
        "tags": list(task.tags),
        "status": task.status.value,
        "createdAt": dt_to_str(task.created_at),
        "startDate": dt_to_str(task.start_date),
        "dueDate": dt_to_str(task.due_date),
        "lastUpdatedAt": dt_to_str(task.last_updated_at),
        "completedAt": dt_to_str(task.completed_at),
        "isBlocked": task.is_blocked,
        "blockedAt": dt_to_str(task.blocked_at),
        "blockedBy": task.blocked_by,
        "blockedReason": task.blocked_reason,
        "activityLog": entries_to_list(task.activity_log),
        "isArchived": task.is_archived,
    }


def task_from_dict(raw: Mapping[str, Any]) -> Task:
    status_raw = raw.get("status")
    try:
        status = TaskStatus(status_raw)
    except ValueError as e:
        raise ImportFormatError(f"invalid task status: {status_raw!r}") from e

    return Task(
        id=_required_str(raw, "id"),
        user_story_id=_required_str(raw, "userStoryId"),
        title=str(raw.get("title") or ""),
        description=str(raw.get("description") or ""),
        tags=normalize_tags(raw.get("tags")),
        status=status,
        created_at=_required_dt(raw.get("createdAt"), "createdAt"),
        start_date=str_to_dt(raw.get("startDate")),
        due_date=str_to_dt(raw.get("dueDate")),
        last_updated_at=_required_dt(raw.get("lastUpdatedAt"), "lastUpdatedAt"),
        completed_at=str_to_dt(raw.get("completedAt")),
        is_blocked=bool(raw.get("isBlocked", False)),
        blocked_at=str_to_dt(raw.get("blockedAt")),
        blocked_by=str(raw.get("blockedBy") or ""),
        blocked_reason=str(raw.get("blockedReason") or ""),
        activity_log=entries_from_list(raw.get("activityLog")),
        is_archived=bool(raw.get("isArchived", False)),
    )


# ---- backup document ----


def build_backup(
    projects: Iterable[Project],
    stories: Iterable[UserStory],
    tasks: Iterable[Task],
    exported_at: datetime,
) -> dict[str, Any]:
    return {
        "version": BACKUP_VERSION,
        "exportedAt": dt_to_str(exported_at),
        "data": {
            "projects": [project_to_dict(p) for p in projects],
            "userStories": [user_story_to_dict(s) for s in stories],
            "tasks": [task_to_dict(t) for t in tasks],
        },
    }


def parse_backup(doc: Any) -> tuple[list[Project], list[UserStory], list[Task]]:
    """Validate and decode a backup document. Raises ImportFormatError."""
    if not isinstance(doc, Mapping):
        raise ImportFormatError("Invalid backup file format")
    if not doc.get("version") or not isinstance(doc.get("data"), Mapping):
        raise ImportFormatError("Invalid backup file format")

    data = doc["data"]
    collections = []
    for key in ("projects", "userStories", "tasks"):
        items = data.get(key)
        if not isinstance(items, list):
            raise ImportFormatError("Backup file is missing required data")
        collections.append(items)

    raw_projects, raw_stories, raw_tasks = collections
    try:
        projects = [project_from_dict(r) for r in raw_projects]
        stories = [user_story_from_dict(r) for r in raw_stories]
        tasks = [task_from_dict(r) for r in raw_tasks]
    except ImportFormatError:
        raise
    except (AttributeError, TypeError, ValueError) as e:
        raise ImportFormatError(f"malformed record: {e}") from e
    return projects, stories, tasks
