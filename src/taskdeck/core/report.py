# src/taskdeck/core/report.py

"""
Quarterly report over every project, archived or not.

Scoping rules:
- completed tasks are those whose completed_at falls inside the quarter (inclusive);
- active and blocked counts are "right now", not quarter-scoped.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from . import dates
from .models import (
    BlockedTaskInfo,
    CompletedTaskInfo,
    Project,
    ProjectCompletedTasks,
    QuarterlyReport,
    QuarterlyReportSummary,
    Task,
    TaskStatus,
    UserStory,
)

logger = logging.getLogger(__name__)


def generate_quarterly_report(
    projects: Iterable[Project],
    stories: Iterable[UserStory],
    tasks: Iterable[Task],
    year: int,
    quarter: int,
    now: datetime,
) -> QuarterlyReport:
    start, end = dates.quarter_range(year, quarter)

    stories_by_project: dict[str, list[UserStory]] = {}
    for story in stories:
        stories_by_project.setdefault(story.project_id, []).append(story)

    tasks_by_story: dict[str, list[Task]] = {}
    for task in tasks:
        tasks_by_story.setdefault(task.user_story_id, []).append(task)

    completed_by_project: list[ProjectCompletedTasks] = []
    blocked_tasks: list[BlockedTaskInfo] = []
    total_active = 0
    total_days_open = 0
    completed_count = 0

    for project in projects:
        project_completed: list[CompletedTaskInfo] = []

        for story in stories_by_project.get(project.id, []):
            for task in tasks_by_story.get(story.id, []):
                if task.status == TaskStatus.ACTIVE:
                    total_active += 1

                if task.status == TaskStatus.BLOCKED:
                    blocked_tasks.append(
                        BlockedTaskInfo(
                            id=task.id,
                            title=task.title,
                            project_title=project.title,
                            user_story_title=story.title,
                            blocked_by=task.blocked_by,
                            blocked_reason=task.blocked_reason,
                            days_blocked=dates.days_blocked(task.blocked_at, now),
                        )
                    )

                if task.completed_at is not None and start <= task.completed_at <= end:
                    open_days = dates.days_open(task.start_date, task.created_at, now)
                    total_days_open += open_days
                    completed_count += 1
                    project_completed.append(
                        CompletedTaskInfo(
                            id=task.id,
                            title=task.title,
                            user_story_title=story.title,
                            completed_at=task.completed_at,
                            days_open=open_days,
                        )
                    )

        if project_completed:
            completed_by_project.append(
                ProjectCompletedTasks(
                    project_id=project.id,
                    project_title=project.title,
                    tasks=project_completed,
                )
            )

    avg = total_days_open / completed_count if completed_count else 0
    summary = QuarterlyReportSummary(
        total_completed=completed_count,
        total_active=total_active,
        total_blocked=len(blocked_tasks),
        avg_days_to_complete=avg,
    )
    logger.debug(
        "Quarterly report %s: completed=%d active=%d blocked=%d",
        dates.quarter_label(year, quarter),
        summary.total_completed,
        summary.total_active,
        summary.total_blocked,
    )

    return QuarterlyReport(
        year=year,
        quarter=quarter,
        start_date=start,
        end_date=end,
        summary=summary,
        completed_by_project=completed_by_project,
        blocked_tasks=blocked_tasks,
    )
