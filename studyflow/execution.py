"""Execution lock for StudyFlow.

At most one task is "locked" (the thing being worked on right now). The lock
also carries a one-shot pending start command that the Pomodoro consumes
exactly once, so a task can ask the timer to begin a work session without
the two modules knowing about each other.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from pathlib import Path

from studyflow.checklists import toggle_task
from studyflow.fileio import read_json, write_json_atomic
from studyflow.models import (
    ActiveTask,
    ChecklistStore,
    ExecutionState,
    PendingStart,
    START_SOURCES,
)
from studyflow.timer import PomodoroTimer
from studyflow.workspace import execution_path

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


# ── Persistence ───────────────────────────────────────────────


def load_execution(root: Path | None = None) -> ExecutionState:
    data = read_json(execution_path(root))
    return ExecutionState.from_dict(data)


def save_execution(state: ExecutionState, root: Path | None = None) -> None:
    write_json_atomic(execution_path(root), state.to_dict())


# ── Lock ──────────────────────────────────────────────────────


def lock_task(state: ExecutionState, task: ActiveTask, now_ms: int | None = None) -> ActiveTask:
    """Make *task* the active task, replacing any previous lock."""
    if not task.started_at:
        task = replace(task, started_at=_now_ms() if now_ms is None else now_ms)
    if state.active_task is not None:
        logger.debug("Replacing locked task %r with %r", state.active_task.task_text, task.task_text)
    state.active_task = task
    logger.debug("Locked task %r (goal %s)", task.task_text, task.goal_id)
    return task


def unlock_task(state: ExecutionState) -> ActiveTask | None:
    """Release the lock without touching the checklist."""
    released = state.active_task
    state.active_task = None
    if released is not None:
        logger.debug("Unlocked task %r", released.task_text)
    return released


def complete_active_task(state: ExecutionState, store: ChecklistStore) -> ActiveTask | None:
    """Mark the locked task done in its checklist and release the lock.

    The checklist is only touched when the lock references both a checklist
    and an item. Returns the task that was active, or None if nothing was
    locked.
    """
    task = state.active_task
    if task is None:
        return None
    if task.checklist_id and task.task_id:
        if not toggle_task(store, task.checklist_id, task.task_id, True):
            logger.warning(
                "Completed task %s not found in checklist %s", task.task_id, task.checklist_id
            )
    state.active_task = None
    logger.debug("Completed task %r", task.task_text)
    return task


# ── Pending start ─────────────────────────────────────────────


def start_pomodoro(
    state: ExecutionState,
    duration_minutes: int,
    source: str = "manual",
    now_ms: int | None = None,
) -> PendingStart:
    """Queue a work session for the timer. Replaces any unconsumed command."""
    if source not in START_SOURCES:
        raise ValueError(f"Unknown start source: {source!r}")
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")
    command = PendingStart(
        duration_seconds=int(duration_minutes) * 60,
        source=source,
        timestamp=_now_ms() if now_ms is None else now_ms,
    )
    state.pending_start = command
    return command


def request_more_time(
    state: ExecutionState, minutes: int, now_ms: int | None = None
) -> PendingStart:
    """Extend work on the locked task by another session; the lock is kept."""
    return start_pomodoro(state, minutes, "moreTime", now_ms)


def process_pending_start(
    state: ExecutionState, timer: PomodoroTimer, now_ms: int | None = None
) -> bool:
    """Hand the queued command to the timer; clears the slot once consumed.

    A command the timer has already seen is dropped as well, so a stale slot
    never lingers.
    """
    command = state.pending_start
    if command is None:
        return False
    applied = timer.consume(command, now_ms)
    state.pending_start = None
    return applied
