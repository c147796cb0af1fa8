# src/taskdeck/core/projector.py

"""
View-model projection: Task + owning UserStory + Project -> TaskViewModel.

Pure and cheap; views recompute it on every read instead of caching.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime

from . import dates
from .models import (
    Project,
    ProjectWithCounts,
    Task,
    TaskStatus,
    TaskViewModel,
    UserStory,
    UserStoryWithCounts,
)

logger = logging.getLogger(__name__)

DEFAULT_DUE_SOON_DAYS = 7
DEFAULT_STALE_DAYS = 7


def project_task(
    task: Task,
    story: UserStory,
    project: Project,
    now: datetime,
    *,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
    stale_days: int = DEFAULT_STALE_DAYS,
) -> TaskViewModel:
    days_until_due = dates.days_until(task.due_date, now) if task.due_date is not None else None

    return TaskViewModel(
        task=task,
        project_id=project.id,
        project_title=project.title,
        user_story_title=story.title,
        days_open=dates.days_open(task.start_date, task.created_at, now),
        days_blocked=dates.days_blocked(task.blocked_at, now),
        days_until_due=days_until_due,
        is_overdue=dates.is_overdue(task.due_date, now),
        is_due_soon=dates.is_due_soon(task.due_date, now, due_soon_days),
        is_stale=dates.is_stale(task.last_updated_at, now, stale_days),
        days_since_update=dates.days_ago(task.last_updated_at, now),
    )


def project_tasks(
    tasks: Iterable[Task],
    stories: Mapping[str, UserStory],
    projects: Mapping[str, Project],
    now: datetime,
    *,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
    stale_days: int = DEFAULT_STALE_DAYS,
) -> list[TaskViewModel]:
    """
    Project a list of tasks, keeping input order.

    Tasks whose story or project cannot be resolved are orphans waiting for the
    startup cleanup; they are left out rather than reported.
    """
    out: list[TaskViewModel] = []
    dropped = 0
    for task in tasks:
        story = stories.get(task.user_story_id)
        project = projects.get(story.project_id) if story is not None else None
        if story is None or project is None:
            dropped += 1
            continue
        out.append(
            project_task(
                task,
                story,
                project,
                now,
                due_soon_days=due_soon_days,
                stale_days=stale_days,
            )
        )
    if dropped:
        logger.debug("Skipped %d orphaned task(s) during projection", dropped)
    return out


def count_project(
    project: Project,
    stories: Iterable[UserStory],
    tasks: Iterable[Task],
) -> ProjectWithCounts:
    """Counts over the project's non-archived stories and their non-archived tasks."""
    story_ids = {s.id for s in stories if s.project_id == project.id and not s.is_archived}
    live = [t for t in tasks if t.user_story_id in story_ids and not t.is_archived]
    return ProjectWithCounts(
        project=project,
        user_story_count=len(story_ids),
        task_count=len(live),
        blocked_count=sum(1 for t in live if t.status == TaskStatus.BLOCKED),
        active_count=sum(1 for t in live if t.status == TaskStatus.ACTIVE),
    )


def count_user_story(story: UserStory, tasks: Iterable[Task]) -> UserStoryWithCounts:
    live = [t for t in tasks if t.user_story_id == story.id and not t.is_archived]
    return UserStoryWithCounts(
        user_story=story,
        task_count=len(live),
        completed_count=sum(1 for t in live if t.status == TaskStatus.COMPLETED),
        blocked_count=sum(1 for t in live if t.status == TaskStatus.BLOCKED),
    )
