# src/taskdeck/core/models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


def new_id() -> str:
    return str(uuid.uuid4())


def normalize_tags(tags) -> list[str]:
    """Strip, drop empties and duplicates; keep first-seen order."""
    out: list[str] = []
    seen: set[str] = set()
    for raw in tags or ():
        tag = str(raw).strip()
        if not tag or tag in seen:
            continue
        seen.add(tag)
        out.append(tag)
    return out


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Transitions are non-linear: any status may move to any other.
    Side effects of each move live in core.lifecycle.
    """

    NEW = "new"
    ACTIVE = "active"
    BLOCKED = "blocked"
    COMPLETED = "completed"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.NEW
        try:
            return cls(raw)
        except ValueError:
            return cls.NEW


@dataclass(slots=True)
class Project:
    id: str
    title: str
    description: str = ""
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    is_archived: bool = False
    sort_order: int = 0


@dataclass(slots=True)
class UserStory:
    id: str
    project_id: str
    title: str
    description: str = ""
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    is_archived: bool = False
    sort_order: int = 0


@dataclass(frozen=True, slots=True)
class ActivityLogEntry:
    id: str
    date: datetime
    note: str
    created_at: datetime


@dataclass(slots=True)
class Task:
    """
    A unit of work inside a user story.

    Invariants kept by core.lifecycle:
    - status == BLOCKED  <=> is_blocked  <=> blocked_at is not None
    - status == COMPLETED <=> completed_at is not None
    - activity_log is sorted newest-first by entry date
    """

    id: str
    user_story_id: str
    title: str
    description: str = ""
    tags: list[str] = field(default_factory=list)
    status: TaskStatus = TaskStatus.NEW
    created_at: datetime = field(default_factory=datetime.now)
    start_date: datetime | None = None
    due_date: datetime | None = None
    last_updated_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None
    is_blocked: bool = False
    blocked_at: datetime | None = None
    blocked_by: str = ""
    blocked_reason: str = ""
    activity_log: list[ActivityLogEntry] = field(default_factory=list)
    is_archived: bool = False


# Task fields callers may edit directly. Lifecycle-owned fields
# (completed_at, is_blocked, blocked_at) are only written through core.lifecycle.
EDITABLE_TASK_FIELDS = frozenset(
    {
        "title",
        "description",
        "tags",
        "due_date",
        "start_date",
        "blocked_by",
        "blocked_reason",
        "user_story_id",
    }
)


# ---- read-side records ----


@dataclass(frozen=True, slots=True)
class TaskViewModel:
    """A task joined with its owners plus point-in-time derived attributes."""

    task: Task
    project_id: str
    project_title: str
    user_story_title: str
    days_open: int
    days_blocked: int | None
    days_until_due: int | None
    is_overdue: bool
    is_due_soon: bool
    is_stale: bool
    days_since_update: int

    # Convenience pass-throughs used by filters and reports.
    @property
    def id(self) -> str:
        return self.task.id

    @property
    def title(self) -> str:
        return self.task.title

    @property
    def status(self) -> TaskStatus:
        return self.task.status

    @property
    def user_story_id(self) -> str:
        return self.task.user_story_id

    @property
    def is_blocked(self) -> bool:
        return self.task.is_blocked


@dataclass(frozen=True, slots=True)
class ProjectWithCounts:
    project: Project
    user_story_count: int
    task_count: int
    blocked_count: int
    active_count: int


@dataclass(frozen=True, slots=True)
class UserStoryWithCounts:
    user_story: UserStory
    task_count: int
    completed_count: int
    blocked_count: int


@dataclass(frozen=True, slots=True)
class CompletedTaskInfo:
    id: str
    title: str
    user_story_title: str
    completed_at: datetime
    days_open: int


@dataclass(frozen=True, slots=True)
class ProjectCompletedTasks:
    project_id: str
    project_title: str
    tasks: list[CompletedTaskInfo]

    @property
    def count(self) -> int:
        return len(self.tasks)


@dataclass(frozen=True, slots=True)
class BlockedTaskInfo:
    id: str
    title: str
    project_title: str
    user_story_title: str
    blocked_by: str
    blocked_reason: str
    days_blocked: int | None


@dataclass(frozen=True, slots=True)
class QuarterlyReportSummary:
    total_completed: int
    total_active: int
    total_blocked: int
    avg_days_to_complete: float


@dataclass(frozen=True, slots=True)
class QuarterlyReport:
    year: int
    quarter: int
    start_date: datetime
    end_date: datetime
    summary: QuarterlyReportSummary
    completed_by_project: list[ProjectCompletedTasks]
    blocked_tasks: list[BlockedTaskInfo]
