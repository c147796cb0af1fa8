# tests/test_projector.py

from __future__ import annotations

from datetime import timedelta

from taskdeck.core import projector
from taskdeck.core.models import TaskStatus

from .fakes import NOW, make_project, make_story, make_task


def test_project_task_derived_attributes() -> None:
    task = make_task(
        status=TaskStatus.BLOCKED,
        start_date=NOW - timedelta(days=12),
        due_date=NOW + timedelta(days=3),
        last_updated_at=NOW - timedelta(days=8),
        is_blocked=True,
        blocked_at=NOW - timedelta(days=5),
    )
    vm = projector.project_task(task, make_story(), make_project(), NOW)

    assert vm.project_id == "p1"
    assert vm.project_title == "Onboarding"
    assert vm.user_story_title == "Keep the manual updated"
    assert vm.days_open == 12
    assert vm.days_blocked == 5
    assert vm.days_until_due == 3
    assert vm.is_overdue is False
    assert vm.is_due_soon is True
    assert vm.is_stale is True
    assert vm.days_since_update == 8


def test_days_open_falls_back_to_created_at() -> None:
    vm = projector.project_task(make_task(), make_story(), make_project(), NOW)
    assert vm.days_open == 10
    assert vm.days_blocked is None
    assert vm.days_until_due is None
    assert vm.is_overdue is False
    assert vm.is_due_soon is False


def test_overdue_task_has_negative_days_until_due() -> None:
    task = make_task(due_date=NOW - timedelta(days=2))
    vm = projector.project_task(task, make_story(), make_project(), NOW)
    assert vm.days_until_due == -2
    assert vm.is_overdue is True
    assert vm.is_due_soon is False


def test_thresholds_are_configurable() -> None:
    task = make_task(due_date=NOW + timedelta(days=5), last_updated_at=NOW - timedelta(days=3))
    vm = projector.project_task(task, make_story(), make_project(), NOW, due_soon_days=3, stale_days=3)
    assert vm.is_due_soon is False
    assert vm.is_stale is True


def test_orphans_are_dropped() -> None:
    stories = {"s1": make_story()}
    projects = {"p1": make_project()}
    tasks = [
        make_task(id="ok"),
        make_task(id="no-story", user_story_id="gone"),
    ]
    stories["s2"] = make_story(id="s2", project_id="gone")
    tasks.append(make_task(id="no-project", user_story_id="s2"))

    result = projector.project_tasks(tasks, stories, projects, NOW)
    assert [vm.id for vm in result] == ["ok"]


def test_counts_skip_archived() -> None:
    project = make_project()
    stories = [make_story(), make_story(id="s2", is_archived=True)]
    tasks = [
        make_task(id="a", status=TaskStatus.ACTIVE),
        make_task(id="b", status=TaskStatus.BLOCKED),
        make_task(id="c", status=TaskStatus.COMPLETED),
        make_task(id="d", status=TaskStatus.ACTIVE, is_archived=True),
        make_task(id="e", user_story_id="s2", status=TaskStatus.ACTIVE),
    ]

    counts = projector.count_project(project, stories, tasks)
    assert (counts.user_story_count, counts.task_count) == (1, 3)
    assert (counts.blocked_count, counts.active_count) == (1, 1)

    story_counts = projector.count_user_story(stories[0], tasks)
    assert (story_counts.task_count, story_counts.completed_count, story_counts.blocked_count) == (3, 1, 1)
