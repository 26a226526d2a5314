"""Tests for studyflow/daily_focus.py: goal ordering and next-task selection."""

from studyflow.checklists import load_store, toggle_section, toggle_task
from studyflow.daily_focus import (
    compute_daily_focus,
    daily_focus_message,
    find_next_task,
    sort_goals_by_priority,
)
from studyflow.goals import load_goals
from studyflow.models import Goal


def _goal(goal_id, type="daily", mode="time", created="2026-01-01", **kwargs):
    return Goal(id=goal_id, title=goal_id.title(), type=type, mode=mode, created_at=created, **kwargs)


def test_sort_by_type():
    goals = [
        _goal("custom", type="custom"),
        _goal("monthly", type="monthly"),
        _goal("daily", type="daily"),
        _goal("weekly", type="weekly"),
    ]
    assert [g.id for g in sort_goals_by_priority(goals)] == ["daily", "weekly", "monthly", "custom"]


def test_sort_custom_by_deadline():
    goals = [
        _goal("none", type="custom", created="2026-01-01"),
        _goal("late", type="custom", deadline="2026-06-01"),
        _goal("soon", type="custom", deadline="2026-03-01"),
    ]
    assert [g.id for g in sort_goals_by_priority(goals)] == ["soon", "late", "none"]


def test_sort_ties_by_creation_time():
    goals = [
        _goal("b", type="weekly", created="2026-01-02"),
        _goal("a", type="weekly", created="2026-01-01"),
        _goal("d", type="custom", created="2026-01-04"),
        _goal("c", type="custom", created="2026-01-03"),
    ]
    assert [g.id for g in sort_goals_by_priority(goals)] == ["a", "b", "c", "d"]


def test_sort_deadlines_as_dates():
    goals = [
        _goal("late", type="custom", deadline="2026-12-01"),
        _goal("early", type="custom", deadline="2026-3-5"),
    ]
    assert [g.id for g in sort_goals_by_priority(goals)] == ["early", "late"]


def test_sort_unparseable_deadline_after_dates():
    goals = [
        _goal("none", type="custom"),
        _goal("numeric", type="custom", deadline=20260101),
        _goal("words", type="custom", deadline="end of term"),
        _goal("dated", type="custom", deadline="2026-02-01"),
    ]
    ordered = [g.id for g in sort_goals_by_priority(goals)]
    assert ordered[0] == "dated"
    assert ordered[-1] == "none"
    assert set(ordered[1:3]) == {"numeric", "words"}


def test_sort_mixed_creation_timestamps():
    goals = [
        _goal("b", created="2026-01-02T08:00:00.000+00:00"),
        _goal("a", created="2026-01-01"),
        _goal("c", created="garbage"),
    ]
    assert [g.id for g in sort_goals_by_priority(goals)] == ["a", "b", "c"]


def test_no_goals():
    assert compute_daily_focus([], []) is None


def test_seeded_focus(workspace):
    store = load_store(workspace)
    focus = compute_daily_focus(load_goals(workspace), store.checklists)

    assert focus.goal.id == "goal-bio"
    assert focus.checklist.id == "cl-bio"
    assert focus.checklist_deleted is False
    assert focus.next_task.text == "Organelles"
    assert focus.next_task.task_id == "t-organelles"
    assert focus.next_task.section_id == "sec-cells"
    assert focus.next_task.section_title == "Cells"
    assert focus.next_task.time_estimate == 30
    assert daily_focus_message(focus) == "Organelles"


def test_next_task_descends_into_completed_parent(workspace):
    store = load_store(workspace)
    toggle_task(store, "cl-bio", "t-organelles", True)
    next_task = find_next_task(store.get("cl-bio"))
    assert next_task.text == "Mitochondria"
    assert next_task.task_id == "t-mito"


def test_next_task_moves_to_later_section(workspace):
    store = load_store(workspace)
    toggle_section(store, "cl-bio", "sec-cells", True)
    next_task = find_next_task(store.get("cl-bio"))
    assert next_task.task_id == "t-dna"
    assert next_task.section_title == "Genetics"


def test_finished_checklist_goal_is_skipped(workspace):
    store = load_store(workspace)
    toggle_section(store, "cl-bio", "sec-cells", True)
    toggle_section(store, "cl-bio", "sec-genetics", True)
    goals = load_goals(workspace) + [_goal("later", type="monthly")]

    focus = compute_daily_focus(goals, store.checklists)
    assert focus.goal.id == "later"
    assert daily_focus_message(focus) == "Focus on Later today"


def test_deleted_checklist_is_surfaced():
    goal = _goal("orphan", mode="check", linked_checklist_id="gone", target_count=1, completed_count=1)
    focus = compute_daily_focus([goal], [])
    assert focus.goal is goal
    assert focus.checklist is None
    assert focus.checklist_deleted is True
    assert daily_focus_message(focus) == "Linked checklist was deleted"


def test_check_goal_without_checklist_uses_counters():
    done = _goal("done", mode="check", target_count=2, completed_count=2)
    open_ = _goal("open", type="weekly", mode="check", target_count=2, completed_count=1)
    focus = compute_daily_focus([done, open_], [])
    assert focus.goal.id == "open"
    assert daily_focus_message(focus) == "Create a plan to get started"


def test_all_goals_done():
    done = _goal("done", mode="check", target_count=1, completed_count=1)
    assert compute_daily_focus([done], []) is None


def test_time_goal_always_has_work():
    focus = compute_daily_focus([_goal("read")], [])
    assert focus.goal.id == "read"
    assert focus.next_task is None


def test_empty_checklist_message(workspace):
    store = load_store(workspace)
    goal = _goal("timed", linked_checklist_id="cl-bio")
    toggle_section(store, "cl-bio", "sec-cells", True)
    toggle_section(store, "cl-bio", "sec-genetics", True)

    focus = compute_daily_focus([goal], store.checklists)
    assert focus.next_task is None
    assert daily_focus_message(focus) == "All tasks completed! \U0001f389"
