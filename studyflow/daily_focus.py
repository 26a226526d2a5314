"""Daily focus: which goal, and which task in it, to work on right now.

Pure derived logic over goals and checklists; nothing here mutates state.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

from studyflow.models import Checklist, DailyFocus, Goal, NextTask
from studyflow.mutations import first_uncompleted

_TYPE_ORDER = {"daily": 0, "weekly": 1, "monthly": 2, "custom": 3}
_LOOSE_DATE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})$")
_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def _parse_when(value: Any) -> datetime | None:
    """ISO timestamp or date, also accepting unpadded dates like 2026-3-5."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        m = _LOOSE_DATE.match(text)
        if not m:
            return None
        try:
            parsed = datetime(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _when_key(value: Any) -> tuple[int, datetime]:
    # Parsed values first, then unparseable ones, then missing ones.
    if not value:
        return (2, _EPOCH)
    parsed = _parse_when(value)
    return (0, parsed) if parsed is not None else (1, _EPOCH)


def _priority_key(goal: Goal) -> tuple:
    type_rank = _TYPE_ORDER.get(goal.type, len(_TYPE_ORDER))
    deadline_key = _when_key(goal.deadline) if goal.type == "custom" else (0, _EPOCH)
    return (type_rank, deadline_key, _when_key(goal.created_at))


def sort_goals_by_priority(goals: list[Goal]) -> list[Goal]:
    """daily < weekly < monthly < custom, then deadline, then creation time."""
    return sorted(goals, key=_priority_key)


def has_remaining_progress(goal: Goal, checklist: Checklist | None) -> bool:
    if goal.mode == "time":
        return True
    if checklist is not None:
        return checklist.total_completed < checklist.total_items
    completed = goal.completed_count or 0
    target = goal.target_count or 1
    return completed < target


def find_next_task(checklist: Checklist) -> NextTask | None:
    """First open item across sections, depth-first pre-order."""
    for section in checklist.sections:
        item = first_uncompleted(section.items)
        if item is not None:
            return NextTask(
                text=item.text,
                section_title=section.title,
                time_estimate=item.time_estimate,
                task_id=item.id,
                section_id=section.id,
            )
    return None


def compute_daily_focus(goals: list[Goal], checklists: list[Checklist]) -> DailyFocus | None:
    """Pick the highest-priority goal that still has work left.

    A goal whose linked checklist no longer exists is always returned, with
    checklist_deleted set, so the broken link is shown to the user.
    """
    if not goals:
        return None

    by_id = {c.id: c for c in checklists}
    for goal in sort_goals_by_priority(goals):
        checklist = by_id.get(goal.linked_checklist_id) if goal.linked_checklist_id else None
        deleted = bool(goal.linked_checklist_id) and checklist is None

        if not deleted and not has_remaining_progress(goal, checklist):
            continue

        return DailyFocus(
            goal=goal,
            checklist=checklist,
            next_task=find_next_task(checklist) if checklist is not None else None,
            checklist_deleted=deleted,
        )
    return None


def daily_focus_message(focus: DailyFocus) -> str:
    if focus.next_task is not None:
        return focus.next_task.text
    if focus.checklist is not None:
        return "All tasks completed! \U0001f389"
    if focus.checklist_deleted:
        return "Linked checklist was deleted"
    if focus.goal.mode == "time":
        return f"Focus on {focus.goal.title} today"
    return "Create a plan to get started"
