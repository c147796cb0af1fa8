# src/taskdeck/services.py

"""
User actions against AppState.

Each function:
- samples state.clock() exactly once and threads that `now` through every
  derived field,
- resolves ids up front and raises NotFoundError before writing anything,
- leaves the rules to core.* and the writing to state.store.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from .core import lifecycle, projector, report
from .core.dashboard import Dashboard, FilterState, TimeFilter, build_dashboard, filter_completed
from .core.errors import ImportFormatError, NotFoundError
from .core.lifecycle import Updates
from .core.models import (
    Project,
    ProjectWithCounts,
    QuarterlyReport,
    Task,
    TaskStatus,
    TaskViewModel,
    UserStory,
    UserStoryWithCounts,
    normalize_tags,
)
from .core.state import AppState
from .storage import serialization

logger = logging.getLogger(__name__)


# ---- lookups ----


def get_project(state: AppState, project_id: str) -> Project:
    project = state.store.get_project(project_id)
    if project is None:
        raise NotFoundError("project", project_id)
    return project


def get_user_story(state: AppState, story_id: str) -> UserStory:
    story = state.store.get_user_story(story_id)
    if story is None:
        raise NotFoundError("user story", story_id)
    return story


def get_task(state: AppState, task_id: str) -> Task:
    task = state.store.get_task(task_id)
    if task is None:
        raise NotFoundError("task", task_id)
    return task


# ---- projects ----


def create_project(
    state: AppState,
    *,
    title: str,
    description: str = "",
    tags: Iterable[str] | None = None,
) -> Project:
    project = state.store.add_project(
        title=title, description=description, tags=tags, created_at=state.clock()
    )
    logger.info("Created project id=%s", project.id)
    return project


def update_project(
    state: AppState,
    project_id: str,
    *,
    title: str | None = None,
    description: str | None = None,
    tags: Iterable[str] | None = None,
) -> Project:
    get_project(state, project_id)
    fields: dict[str, Any] = {}
    if title is not None:
        fields["title"] = title
    if description is not None:
        fields["description"] = description
    if tags is not None:
        fields["tags"] = normalize_tags(tags)
    state.store.update_project_fields(project_id, fields)
    return get_project(state, project_id)


def archive_project(state: AppState, project_id: str) -> None:
    if not state.store.set_project_archived(project_id, True):
        raise NotFoundError("project", project_id)


def unarchive_project(state: AppState, project_id: str) -> None:
    if not state.store.set_project_archived(project_id, False):
        raise NotFoundError("project", project_id)


def delete_project(state: AppState, project_id: str) -> tuple[int, int]:
    """Delete a project and everything under it. Returns (stories, tasks) removed."""
    get_project(state, project_id)
    return state.store.delete_project(project_id)


def reorder_projects(state: AppState, project_ids: list[str]) -> None:
    state.store.reorder_projects(project_ids)


def list_projects(state: AppState, *, include_archived: bool = False) -> list[Project]:
    return state.store.list_projects(include_archived=include_archived)


def list_projects_with_counts(
    state: AppState, *, include_archived: bool = False
) -> list[ProjectWithCounts]:
    projects = state.store.list_projects(include_archived=include_archived)
    stories = state.store.list_user_stories()
    tasks = state.store.list_tasks()
    return [projector.count_project(p, stories, tasks) for p in projects]


# ---- user stories ----


def create_user_story(
    state: AppState,
    *,
    project_id: str,
    title: str,
    description: str = "",
    tags: Iterable[str] | None = None,
) -> UserStory:
    get_project(state, project_id)
    story = state.store.add_user_story(
        project_id=project_id,
        title=title,
        description=description,
        tags=tags,
        created_at=state.clock(),
    )
    logger.info("Created user story id=%s project=%s", story.id, project_id)
    return story


def update_user_story(
    state: AppState,
    story_id: str,
    *,
    title: str | None = None,
    description: str | None = None,
    tags: Iterable[str] | None = None,
    project_id: str | None = None,
) -> UserStory:
    story = get_user_story(state, story_id)
    if project_id == story.project_id:
        project_id = None
    if project_id is not None:
        get_project(state, project_id)

    fields: dict[str, Any] = {}
    if title is not None:
        fields["title"] = title
    if description is not None:
        fields["description"] = description
    if tags is not None:
        fields["tags"] = normalize_tags(tags)
    if fields or project_id is not None:
        state.store.update_user_story_fields(story_id, fields, project_id=project_id)
    return get_user_story(state, story_id)


def move_user_story(state: AppState, story_id: str, project_id: str) -> UserStory:
    """Move a story to another project; it lands at the end of that project's order."""
    return update_user_story(state, story_id, project_id=project_id)


def reorder_user_stories(state: AppState, project_id: str, story_ids: list[str]) -> None:
    get_project(state, project_id)
    state.store.reorder_user_stories(project_id, story_ids)


def move_user_story_to_position(state: AppState, story_id: str, position: int) -> list[UserStory]:
    """
    Drag-and-drop helper: put one story at `position` among its non-archived
    siblings and shift the others. Returns the siblings in their new order.
    """
    story = get_user_story(state, story_id)
    siblings = [s.id for s in state.store.list_user_stories(story.project_id)]
    if story_id in siblings:
        siblings.remove(story_id)
    position = max(0, min(int(position), len(siblings)))
    siblings.insert(position, story_id)
    state.store.reorder_user_stories(story.project_id, siblings)
    return state.store.list_user_stories(story.project_id)


def archive_user_story(state: AppState, story_id: str) -> None:
    if not state.store.set_user_story_archived(story_id, True):
        raise NotFoundError("user story", story_id)


def unarchive_user_story(state: AppState, story_id: str) -> None:
    if not state.store.set_user_story_archived(story_id, False):
        raise NotFoundError("user story", story_id)


def delete_user_story(state: AppState, story_id: str) -> int:
    get_user_story(state, story_id)
    return state.store.delete_user_story(story_id)


def list_user_stories(
    state: AppState, project_id: str, *, include_archived: bool = False
) -> list[UserStory]:
    return state.store.list_user_stories(project_id, include_archived=include_archived)


def list_user_stories_with_counts(
    state: AppState, project_id: str, *, include_archived: bool = False
) -> list[UserStoryWithCounts]:
    stories = state.store.list_user_stories(project_id, include_archived=include_archived)
    tasks = state.store.list_tasks(user_story_ids=[s.id for s in stories])
    return [projector.count_user_story(s, tasks) for s in stories]


# ---- tasks ----


def create_task(
    state: AppState,
    *,
    user_story_id: str,
    title: str,
    description: str = "",
    tags: Iterable[str] | None = None,
    due_date: datetime | None = None,
    start_date: datetime | None = None,
    last_updated_at: datetime | None = None,
) -> Task:
    get_user_story(state, user_story_id)
    now = state.clock()
    task = state.store.add_task(
        user_story_id=user_story_id,
        title=title,
        description=description,
        tags=tags,
        due_date=due_date,
        start_date=start_date,
        created_at=now,
        last_updated_at=last_updated_at or now,
    )
    logger.info("Created task id=%s story=%s", task.id, user_story_id)
    return task


def _mutate_task(
    state: AppState,
    task_id: str,
    compute: Callable[[Task, datetime], Updates],
) -> Task:
    now = state.clock()
    task = get_task(state, task_id)
    updates = compute(task, now)
    if not state.store.update_task_fields(task_id, updates):
        raise NotFoundError("task", task_id)
    return lifecycle.apply_updates(task, updates)


def update_task(state: AppState, task_id: str, **changes: Any) -> Task:
    """
    Edit task fields. A `status` change goes through the lifecycle rules;
    moving to another story requires that story to exist.
    """
    new_story = changes.get("user_story_id")
    if new_story is not None:
        get_user_story(state, new_story)
    return _mutate_task(state, task_id, lambda task, now: lifecycle.edit_fields(task, changes, now))


def update_task_status(state: AppState, task_id: str, status: TaskStatus | str) -> Task:
    new_status = TaskStatus(status)
    task = _mutate_task(state, task_id, lambda t, now: lifecycle.set_status(t, new_status, now))
    logger.info("Task %s -> %s", task_id, new_status.value)
    return task


def set_task_blocked(state: AppState, task_id: str, blocked_by: str, blocked_reason: str) -> Task:
    task = _mutate_task(
        state,
        task_id,
        lambda t, now: lifecycle.set_blocked(t, blocked_by, blocked_reason, now),
    )
    logger.info("Task %s blocked by=%r", task_id, blocked_by)
    return task


def clear_task_blocked(state: AppState, task_id: str) -> Task:
    task = _mutate_task(state, task_id, lifecycle.clear_blocked)
    logger.info("Task %s unblocked", task_id)
    return task


def archive_task(state: AppState, task_id: str) -> None:
    if not state.store.set_task_archived(task_id, True):
        raise NotFoundError("task", task_id)


def unarchive_task(state: AppState, task_id: str) -> None:
    if not state.store.set_task_archived(task_id, False):
        raise NotFoundError("task", task_id)


def delete_task(state: AppState, task_id: str) -> None:
    if not state.store.delete_task(task_id):
        raise NotFoundError("task", task_id)


# ---- activity log ----


def add_activity_log(
    state: AppState, task_id: str, note: str, *, date: datetime | None = None
) -> Task:
    return _mutate_task(
        state, task_id, lambda t, now: lifecycle.add_entry(t, note, now, date=date)
    )


def update_activity_log_entry(
    state: AppState,
    task_id: str,
    entry_id: str,
    *,
    note: str | None = None,
    date: datetime | None = None,
) -> Task:
    return _mutate_task(
        state,
        task_id,
        lambda t, now: lifecycle.update_entry(t, entry_id, now, note=note, date=date),
    )


def delete_activity_log_entry(state: AppState, task_id: str, entry_id: str) -> Task:
    return _mutate_task(state, task_id, lambda t, now: lifecycle.delete_entry(t, entry_id, now))


# ---- read side ----


def to_view_models(state: AppState, tasks: Iterable[Task], now: datetime) -> list[TaskViewModel]:
    stories = {s.id: s for s in state.store.list_user_stories(include_archived=True)}
    projects = {p.id: p for p in state.store.list_projects(include_archived=True)}
    return projector.project_tasks(
        tasks,
        stories,
        projects,
        now,
        due_soon_days=state.due_soon_days,
        stale_days=state.stale_days,
    )


def list_task_view_models(
    state: AppState,
    *,
    project_id: str | None = None,
    user_story_id: str | None = None,
) -> list[TaskViewModel]:
    """
    Task list for the current selection:
    - a story: its non-archived tasks (any status)
    - a project: non-archived tasks of its non-archived stories
    - nothing selected: every open (non-completed, non-archived) task
    """
    now = state.clock()
    if user_story_id is not None:
        tasks = state.store.list_tasks(user_story_ids=[user_story_id])
    elif project_id is not None:
        story_ids = [s.id for s in state.store.list_user_stories(project_id)]
        tasks = state.store.list_tasks(user_story_ids=story_ids)
    else:
        tasks = state.store.list_active_tasks()
    return to_view_models(state, tasks, now)


def list_blocked_task_view_models(state: AppState) -> list[TaskViewModel]:
    now = state.clock()
    return to_view_models(state, state.store.list_blocked_tasks(), now)


def load_dashboard(state: AppState, filters: FilterState | None = None) -> Dashboard:
    now = state.clock()
    view_models = to_view_models(state, state.store.list_active_tasks(), now)
    return build_dashboard(view_models, filters)


def load_completed(
    state: AppState,
    *,
    time_filter: TimeFilter | str = TimeFilter.ALL,
    search_term: str = "",
    project_id: str | None = None,
    user_story_id: str | None = None,
) -> list[TaskViewModel]:
    now = state.clock()
    view_models = to_view_models(state, state.store.list_completed_tasks(), now)
    return filter_completed(
        view_models,
        now,
        time_filter=time_filter,
        search_term=search_term,
        project_id=project_id,
        user_story_id=user_story_id,
    )


def quarterly_report(state: AppState, year: int, quarter: int) -> QuarterlyReport:
    now = state.clock()
    projects, stories, tasks = state.store.dump()
    return report.generate_quarterly_report(projects, stories, tasks, year, quarter, now)


def all_tags(state: AppState) -> list[str]:
    projects, stories, tasks = state.store.dump()
    tags: set[str] = set()
    for item in (*projects, *stories, *tasks):
        tags.update(item.tags)
    return sorted(tags, key=str.lower)


# ---- export / import ----


def export_document(state: AppState) -> dict[str, Any]:
    projects, stories, tasks = state.store.dump()
    return serialization.build_backup(projects, stories, tasks, state.clock())


def export_to_file(state: AppState, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    doc = export_document(state)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(doc, ensure_ascii=False, indent=2), "utf-8")
    os.replace(tmp, path)
    logger.info("Exported backup to %s", path)
    return path


def import_document(state: AppState, doc: Any) -> tuple[int, int, int]:
    """
    Replace the whole store with a backup document.

    The document is fully decoded before anything is written, so a malformed
    file leaves the store as it was. Returns (projects, stories, tasks) counts.
    """
    projects, stories, tasks = serialization.parse_backup(doc)
    state.store.replace_all(projects, stories, tasks)
    return len(projects), len(stories), len(tasks)


def import_from_file(state: AppState, path: str | Path) -> tuple[int, int, int]:
    path = Path(path)
    try:
        doc = json.loads(path.read_text("utf-8"))
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"not a JSON document: {path}") from e
    counts = import_document(state, doc)
    logger.info("Imported backup from %s: projects=%d stories=%d tasks=%d", path, *counts)
    return counts


def clear_all_data(state: AppState) -> None:
    state.store.clear_all()
