# src/taskdeck/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the services layer.

The services depend on Protocols instead of the concrete SQLite store, so the
store stays swappable and tests can pass in fakes.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Protocol

from .models import Project, Task, TaskStatus, UserStory


class Clock(Protocol):
    """Returns "now". Called once per logical operation."""

    def __call__(self) -> datetime: ...


class TrackerRepo(Protocol):
    # Projects
    def add_project(
            self,
            *,
            title: str,
            created_at: datetime,
            description: str = "",
            tags: Iterable[str] | None = None,
    ) -> Project: ...
    def get_project(self, project_id: str) -> Project | None: ...
    def list_projects(self, *, include_archived: bool = False) -> list[Project]: ...
    def update_project_fields(self, project_id: str, fields: Mapping[str, Any]) -> bool: ...
    def set_project_archived(self, project_id: str, archived: bool) -> bool: ...
    def delete_project(self, project_id: str) -> tuple[int, int]: ...
    def reorder_projects(self, project_ids: list[str]) -> None: ...

    # User stories
    def add_user_story(
            self,
            *,
            project_id: str,
            title: str,
            created_at: datetime,
            description: str = "",
            tags: Iterable[str] | None = None,
    ) -> UserStory: ...
    def get_user_story(self, story_id: str) -> UserStory | None: ...
    def list_user_stories(
            self,
            project_id: str | None = None,
            *,
            include_archived: bool = False,
    ) -> list[UserStory]: ...
    def update_user_story_fields(
            self,
            story_id: str,
            fields: Mapping[str, Any],
            *,
            project_id: str | None = None,
    ) -> bool: ...
    def move_user_story(self, story_id: str, project_id: str) -> bool: ...
    def reorder_user_stories(self, project_id: str, story_ids: list[str]) -> None: ...
    def set_user_story_archived(self, story_id: str, archived: bool) -> bool: ...
    def delete_user_story(self, story_id: str) -> int: ...

    # Tasks
    def add_task(
            self,
            *,
            user_story_id: str,
            title: str,
            created_at: datetime,
            description: str = "",
            tags: Iterable[str] | None = None,
            start_date: datetime | None = None,
            due_date: datetime | None = None,
            last_updated_at: datetime | None = None,
    ) -> Task: ...
    def get_task(self, task_id: str) -> Task | None: ...
    def list_tasks(
            self,
            *,
            user_story_ids: Iterable[str] | None = None,
            status: TaskStatus | None = None,
            include_archived: bool = False,
    ) -> list[Task]: ...
    def list_active_tasks(self) -> list[Task]: ...
    def list_blocked_tasks(self) -> list[Task]: ...
    def list_completed_tasks(self) -> list[Task]: ...
    def update_task_fields(self, task_id: str, fields: Mapping[str, Any]) -> bool: ...
    def set_task_archived(self, task_id: str, archived: bool) -> bool: ...
    def delete_task(self, task_id: str) -> bool: ...

    # Whole-store operations
    def cleanup_orphans(self) -> tuple[int, int]: ...
    def dump(self) -> tuple[list[Project], list[UserStory], list[Task]]: ...
    def replace_all(
            self,
            projects: Iterable[Project],
            stories: Iterable[UserStory],
            tasks: Iterable[Task],
    ) -> None: ...
    def clear_all(self) -> None: ...
