# src/taskdeck/core/dashboard.py

"""
Dashboard filtering and bucketing.

Filters combine with AND. Buckets are computed independently from the
filtered list, so one task may sit in several of them (an ACTIVE task that is
due soon shows up under both "Active" and "Due Soon").
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from . import dates
from .models import TaskStatus, TaskViewModel

STATUS_ALL = "all"


def matches_search(text: str | None, search_term: str) -> bool:
    """Case-insensitive substring match; a blank term matches everything."""
    if not search_term.strip():
        return True
    if not text:
        return False
    return search_term.lower() in text.lower()


def _search_hit(vm: TaskViewModel, search_term: str) -> bool:
    task = vm.task
    haystacks = (
        task.title,
        task.description,
        vm.project_title,
        vm.user_story_title,
        " ".join(task.tags),
    )
    return any(matches_search(h, search_term) for h in haystacks)


@dataclass(frozen=True, slots=True)
class FilterState:
    search_term: str = ""
    status_filter: TaskStatus | str = STATUS_ALL
    show_blocked_only: bool = False
    show_due_soon_only: bool = False
    show_stale_only: bool = False
    project_id: str | None = None
    user_story_id: str | None = None

    def has_active_filters(self) -> bool:
        return (
            self.search_term != ""
            or self.show_blocked_only
            or self.show_due_soon_only
            or self.show_stale_only
            or self.status_filter != STATUS_ALL
        )


def filter_tasks(view_models: Iterable[TaskViewModel], filters: FilterState) -> list[TaskViewModel]:
    out: list[TaskViewModel] = []
    for vm in view_models:
        if filters.project_id is not None and vm.project_id != filters.project_id:
            continue
        if filters.user_story_id is not None and vm.user_story_id != filters.user_story_id:
            continue
        if filters.search_term and not _search_hit(vm, filters.search_term):
            continue
        if filters.status_filter != STATUS_ALL and vm.status != filters.status_filter:
            continue
        if filters.show_blocked_only and not vm.is_blocked:
            continue
        if filters.show_due_soon_only and not vm.is_due_soon:
            continue
        if filters.show_stale_only and not vm.is_stale:
            continue
        out.append(vm)
    return out


@dataclass(frozen=True, slots=True)
class Dashboard:
    new: list[TaskViewModel] = field(default_factory=list)
    blocked: list[TaskViewModel] = field(default_factory=list)
    active: list[TaskViewModel] = field(default_factory=list)
    due_soon: list[TaskViewModel] = field(default_factory=list)
    stale: list[TaskViewModel] = field(default_factory=list)

    def sections(self) -> list[tuple[str, list[TaskViewModel]]]:
        """Display sections in order; empty buckets are not shown."""
        ordered = [
            ("New", self.new),
            ("Blocked", self.blocked),
            ("Active", self.active),
            ("Due Soon", self.due_soon),
            ("Stale", self.stale),
        ]
        return [(name, tasks) for name, tasks in ordered if tasks]

    def is_empty(self) -> bool:
        return not self.sections()


def partition(view_models: Iterable[TaskViewModel]) -> Dashboard:
    items = list(view_models)
    return Dashboard(
        new=[vm for vm in items if vm.status == TaskStatus.NEW],
        blocked=[vm for vm in items if vm.status == TaskStatus.BLOCKED],
        active=[vm for vm in items if vm.status == TaskStatus.ACTIVE],
        due_soon=[vm for vm in items if vm.is_due_soon and vm.status != TaskStatus.COMPLETED],
        stale=[
            vm
            for vm in items
            if vm.is_stale and vm.status not in (TaskStatus.COMPLETED, TaskStatus.BLOCKED)
        ],
    )


def build_dashboard(view_models: Iterable[TaskViewModel], filters: FilterState | None = None) -> Dashboard:
    return partition(filter_tasks(view_models, filters or FilterState()))


# ---- completed tab ----


class TimeFilter(StrEnum):
    ALL = "all"
    THIS_WEEK = "this_week"
    THIS_MONTH = "this_month"
    THIS_QUARTER = "this_quarter"
    LAST_QUARTER = "last_quarter"


def _in_time_window(when: datetime, time_filter: TimeFilter, now: datetime) -> bool:
    if time_filter == TimeFilter.THIS_WEEK:
        return when >= dates.start_of_week(now)
    if time_filter == TimeFilter.THIS_MONTH:
        return when >= dates.start_of_month(now)
    if time_filter == TimeFilter.THIS_QUARTER:
        year, quarter = dates.current_quarter(now)
        return dates.is_in_quarter(when, year, quarter)
    if time_filter == TimeFilter.LAST_QUARTER:
        year, quarter = dates.previous_quarter(*dates.current_quarter(now))
        return dates.is_in_quarter(when, year, quarter)
    return True


def filter_completed(
    view_models: Iterable[TaskViewModel],
    now: datetime,
    *,
    time_filter: TimeFilter | str = TimeFilter.ALL,
    search_term: str = "",
    project_id: str | None = None,
    user_story_id: str | None = None,
) -> list[TaskViewModel]:
    """
    Completed tasks for the history view, newest first.

    The time window is measured on last_updated_at, which for a completed task
    is normally the moment it was completed.
    """
    time_filter = TimeFilter(time_filter)
    term = search_term.strip().lower()

    out: list[TaskViewModel] = []
    for vm in view_models:
        task = vm.task
        if task.status != TaskStatus.COMPLETED:
            continue
        if project_id is not None and vm.project_id != project_id:
            continue
        if user_story_id is not None and task.user_story_id != user_story_id:
            continue
        if not _in_time_window(task.last_updated_at, time_filter, now):
            continue
        if term and not (
            term in task.title.lower()
            or term in task.description.lower()
            or term in vm.project_title.lower()
            or term in vm.user_story_title.lower()
            or any(term in tag.lower() for tag in task.tags)
        ):
            continue
        out.append(vm)

    out.sort(key=lambda vm: vm.task.last_updated_at, reverse=True)
    return out
