# tests/test_dashboard.py

from __future__ import annotations

from datetime import timedelta

from taskdeck.core import projector
from taskdeck.core.dashboard import FilterState, TimeFilter, build_dashboard, filter_completed, filter_tasks
from taskdeck.core.models import TaskStatus

from .fakes import NOW, make_project, make_story, make_task


def _vms(*tasks):
    stories = {"s1": make_story(), "s2": make_story(id="s2", project_id="p2", title="Payroll runs")}
    projects = {"p1": make_project(), "p2": make_project(id="p2", title="Finance")}
    return projector.project_tasks(tasks, stories, projects, NOW)


def test_active_due_soon_task_lands_in_two_buckets() -> None:
    vms = _vms(make_task(id="a", status=TaskStatus.ACTIVE, due_date=NOW + timedelta(days=1)))
    board = build_dashboard(vms)
    assert [vm.id for vm in board.active] == ["a"]
    assert [vm.id for vm in board.due_soon] == ["a"]
    assert [name for name, _ in board.sections()] == ["Active", "Due Soon"]


def test_stale_bucket_excludes_blocked() -> None:
    old = NOW - timedelta(days=10)
    vms = _vms(
        make_task(id="new", last_updated_at=old),
        make_task(
            id="blk",
            status=TaskStatus.BLOCKED,
            is_blocked=True,
            blocked_at=old,
            last_updated_at=old,
        ),
    )
    board = build_dashboard(vms)
    assert [vm.id for vm in board.stale] == ["new"]
    assert [vm.id for vm in board.blocked] == ["blk"]
    assert [vm.id for vm in board.new] == ["new"]


def test_empty_dashboard_has_no_sections() -> None:
    board = build_dashboard([])
    assert board.sections() == []
    assert board.is_empty()


def test_search_matches_any_text_field() -> None:
    vms = _vms(
        make_task(id="by-title", title="Renew LEASE"),
        make_task(id="by-tag", title="x", tags=["benefits"]),
        make_task(id="by-project", title="y", user_story_id="s2"),
        make_task(id="miss", title="z"),
    )
    assert [vm.id for vm in filter_tasks(vms, FilterState(search_term="lease"))] == ["by-title"]
    assert [vm.id for vm in filter_tasks(vms, FilterState(search_term="BENEF"))] == ["by-tag"]
    assert [vm.id for vm in filter_tasks(vms, FilterState(search_term="finance"))] == ["by-project"]
    assert [vm.id for vm in filter_tasks(vms, FilterState(search_term="payroll"))] == ["by-project"]


def test_filters_combine_with_and() -> None:
    old = NOW - timedelta(days=9)
    vms = _vms(
        make_task(id="both", status=TaskStatus.ACTIVE, due_date=NOW + timedelta(days=2), last_updated_at=old),
        make_task(id="due-only", status=TaskStatus.ACTIVE, due_date=NOW + timedelta(days=2)),
        make_task(id="stale-only", status=TaskStatus.ACTIVE, last_updated_at=old),
        make_task(id="new-both", due_date=NOW + timedelta(days=2), last_updated_at=old),
    )
    filters = FilterState(show_due_soon_only=True, show_stale_only=True, status_filter=TaskStatus.ACTIVE)
    assert [vm.id for vm in filter_tasks(vms, filters)] == ["both"]
    assert filters.has_active_filters()
    assert not FilterState().has_active_filters()


def test_blocked_only_and_scope_filters() -> None:
    vms = _vms(
        make_task(id="b1", status=TaskStatus.BLOCKED, is_blocked=True, blocked_at=NOW),
        make_task(id="b2", user_story_id="s2", status=TaskStatus.BLOCKED, is_blocked=True, blocked_at=NOW),
        make_task(id="n1"),
    )
    assert [vm.id for vm in filter_tasks(vms, FilterState(show_blocked_only=True))] == ["b1", "b2"]
    assert [vm.id for vm in filter_tasks(vms, FilterState(project_id="p2"))] == ["b2"]
    assert [vm.id for vm in filter_tasks(vms, FilterState(user_story_id="s1"))] == ["b1", "n1"]
    assert [vm.id for vm in filter_tasks(vms, FilterState(status_filter="new"))] == ["n1"]


def test_filter_completed_time_window_and_order() -> None:
    vms = _vms(
        make_task(id="today", status=TaskStatus.COMPLETED, completed_at=NOW, last_updated_at=NOW),
        make_task(
            id="feb",
            status=TaskStatus.COMPLETED,
            completed_at=NOW - timedelta(days=30),
            last_updated_at=NOW - timedelta(days=30),
        ),
        make_task(
            id="dec",
            status=TaskStatus.COMPLETED,
            completed_at=NOW - timedelta(days=100),
            last_updated_at=NOW - timedelta(days=100),
        ),
        make_task(id="open", status=TaskStatus.ACTIVE),
    )

    assert [vm.id for vm in filter_completed(vms, NOW)] == ["today", "feb", "dec"]
    assert [vm.id for vm in filter_completed(vms, NOW, time_filter=TimeFilter.THIS_WEEK)] == ["today"]
    assert [vm.id for vm in filter_completed(vms, NOW, time_filter="this_quarter")] == ["today", "feb"]
    assert [vm.id for vm in filter_completed(vms, NOW, time_filter="last_quarter")] == ["dec"]
    assert [vm.id for vm in filter_completed(vms, NOW, search_term="manual")] == ["today", "feb", "dec"]
