"""Tests for studyflow/execution.py: task lock and one-shot timer commands."""

import pytest

from studyflow.checklists import load_store
from studyflow.execution import (
    complete_active_task,
    load_execution,
    lock_task,
    process_pending_start,
    request_more_time,
    save_execution,
    start_pomodoro,
    unlock_task,
)
from studyflow.models import ActiveTask, ExecutionState, PomodoroSettings
from studyflow.mutations import find_item
from studyflow.timer import PomodoroTimer


def _task(text="DNA replication", **kwargs):
    return ActiveTask(goal_id="goal-bio", goal_title="Finish biology unit", task_text=text, **kwargs)


def test_lock_sets_active_task():
    state = ExecutionState()
    locked = lock_task(state, _task(), now_ms=1_000)
    assert state.is_task_locked
    assert state.active_task is locked
    assert locked.started_at == 1_000


def test_lock_keeps_given_start_time():
    state = ExecutionState()
    locked = lock_task(state, _task(started_at=42), now_ms=1_000)
    assert locked.started_at == 42


def test_lock_replaces_previous():
    state = ExecutionState()
    lock_task(state, _task("A"), now_ms=1)
    lock_task(state, _task("B"), now_ms=2)
    assert state.active_task.task_text == "B"


def test_unlock():
    state = ExecutionState()
    assert unlock_task(state) is None
    lock_task(state, _task(), now_ms=1)
    released = unlock_task(state)
    assert released.task_text == "DNA replication"
    assert state.is_task_locked is False


def test_complete_marks_checklist_item(workspace):
    store = load_store(workspace)
    state = ExecutionState()
    lock_task(state, _task(checklist_id="cl-bio", task_id="t-dna", section_id="sec-genetics"), now_ms=1)

    done = complete_active_task(state, store)

    assert done.task_id == "t-dna"
    assert state.active_task is None
    checklist = store.get("cl-bio")
    _, item = find_item(checklist.sections, "t-dna")
    assert item.completed is True
    assert checklist.total_completed == 2


def test_complete_without_checklist_reference(workspace):
    store = load_store(workspace)
    before = store.get("cl-bio")
    state = ExecutionState()
    lock_task(state, _task(), now_ms=1)

    assert complete_active_task(state, store) is not None
    assert store.get("cl-bio") is before
    assert state.is_task_locked is False


def test_complete_with_missing_item_still_unlocks(workspace):
    store = load_store(workspace)
    state = ExecutionState()
    lock_task(state, _task(checklist_id="cl-bio", task_id="gone"), now_ms=1)
    assert complete_active_task(state, store) is not None
    assert state.active_task is None
    assert store.get("cl-bio").total_completed == 1


def test_complete_when_nothing_locked(workspace):
    assert complete_active_task(ExecutionState(), load_store(workspace)) is None


def test_start_pomodoro_replaces_unconsumed_command():
    state = ExecutionState()
    start_pomodoro(state, 25, "task", now_ms=10)
    command = start_pomodoro(state, 30, now_ms=20)
    assert state.pending_start is command
    assert command.duration_seconds == 1800
    assert command.source == "manual"


def test_start_pomodoro_validates():
    state = ExecutionState()
    with pytest.raises(ValueError):
        start_pomodoro(state, 25, "alarm")
    with pytest.raises(ValueError):
        start_pomodoro(state, 0)
    assert state.pending_start is None


def test_pending_start_consumed_exactly_once(clock):
    state = ExecutionState()
    timer = PomodoroTimer(PomodoroSettings(), clock=clock)
    command = start_pomodoro(state, 10, "task", now_ms=clock.now)

    assert process_pending_start(state, timer) is True
    assert state.pending_start is None
    assert timer.is_running
    assert timer.remaining() == 600

    clock.advance(60_000)
    assert process_pending_start(state, timer) is False

    # A stale copy of the same command is dropped without restarting
    state.pending_start = command
    assert process_pending_start(state, timer) is False
    assert state.pending_start is None
    assert timer.remaining() == 540


def test_more_time_keeps_lock(clock):
    state = ExecutionState()
    timer = PomodoroTimer(clock=clock)
    lock_task(state, _task(), now_ms=clock.now)
    start_pomodoro(state, 25, "task", now_ms=clock.now)
    process_pending_start(state, timer)

    clock.advance(1_500_000)
    timer.tick()
    command = request_more_time(state, 10, now_ms=clock.now)

    assert command.source == "moreTime"
    assert state.is_task_locked
    assert process_pending_start(state, timer) is True
    assert timer.mode == "work"
    assert timer.remaining() == 600


def test_save_and_load_execution(workspace):
    state = ExecutionState()
    lock_task(state, _task(checklist_id="cl-bio", task_id="t-dna", planned_minutes=20), now_ms=5)
    start_pomodoro(state, 20, "task", now_ms=6)
    save_execution(state, workspace)

    loaded = load_execution(workspace)
    assert loaded.active_task == state.active_task
    assert loaded.pending_start == state.pending_start
    assert loaded.is_task_locked


def test_load_execution_missing(tmp_path):
    state = load_execution(tmp_path)
    assert state.active_task is None
    assert state.pending_start is None


def test_load_execution_mistyped_fields(workspace):
    (workspace / "data" / "execution.json").write_text(
        '{"activeTask": {"taskText": "DNA replication", "startedAt": "yesterday", "plannedMinutes": "20m"},'
        ' "pendingStart": {"durationSeconds": "1500s", "timestamp": null}}',
        encoding="utf-8",
    )
    state = load_execution(workspace)
    assert state.is_task_locked
    assert state.active_task.started_at == 0
    assert state.active_task.planned_minutes is None
    assert state.pending_start.duration_seconds == 0
