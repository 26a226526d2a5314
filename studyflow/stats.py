"""Study statistics: total time, completed tasks, streaks, 7-day history."""

from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path

from studyflow.checklist_parser import generate_id
from studyflow.fileio import read_json, write_json_atomic
from studyflow.models import DayTotals, StudySession, StudyStats
from studyflow.workspace import stats_path, today_str

HISTORY_LIMIT = 100


def week_dates(today: str) -> list[str]:
    """The seven ISO dates ending at *today*, oldest first."""
    end = date.fromisoformat(today)
    return [(end - timedelta(days=i)).isoformat() for i in range(6, -1, -1)]


def calculate_streak(last_study_date: str, current_streak: int, today: str) -> int:
    """Keep the streak if the last study day was today or yesterday, else 0."""
    if not last_study_date:
        return 0
    try:
        last = date.fromisoformat(last_study_date[:10])
    except ValueError:
        return 0
    gap = (date.fromisoformat(today) - last).days
    if gap in (0, 1):
        return current_streak
    return 0


def _bump_today(stats: StudyStats, today: str, minutes: int = 0, tasks: int = 0) -> None:
    """Rebuild weekly_data over the last 7 days, adding to today's row."""
    existing = {d.date: d for d in stats.weekly_data}
    rows = []
    for day in week_dates(today):
        row = existing.get(day) or DayTotals(date=day)
        if day == today:
            row = DayTotals(
                date=day,
                minutes=row.minutes + minutes,
                tasks=max(0, row.tasks + tasks),
            )
        rows.append(row)
    stats.weekly_data = rows


def add_study_time(stats: StudyStats, seconds: int, today: str) -> StudyStats:
    """Record finished study time; the first record of a new day extends the streak."""
    if stats.last_study_date != today:
        stats.current_streak += 1
    stats.longest_streak = max(stats.longest_streak, stats.current_streak)
    stats.total_study_time += seconds
    stats.last_study_date = today
    _bump_today(stats, today, minutes=seconds // 60)
    return stats


def add_completed_task(stats: StudyStats, today: str) -> StudyStats:
    stats.total_tasks_completed += 1
    _bump_today(stats, today, tasks=1)
    return stats


def remove_completed_task(stats: StudyStats, today: str) -> StudyStats:
    """Undo a completion (task unchecked). Counters never go below zero."""
    stats.total_tasks_completed = max(0, stats.total_tasks_completed - 1)
    _bump_today(stats, today, tasks=-1)
    return stats


def add_session(
    stats: StudyStats,
    duration: int,
    tasks_completed: int = 0,
    section_id: str | None = None,
    when: str = "",
) -> StudySession:
    """Append a session to the history, keeping the most recent 100."""
    session = StudySession(
        id=generate_id(),
        date=when,
        duration=duration,
        tasks_completed=tasks_completed,
        section_id=section_id,
    )
    stats.sessions_history = stats.sessions_history[-(HISTORY_LIMIT - 1):] + [session]
    return session


def today_study_seconds(stats: StudyStats, today: str) -> int:
    for row in stats.weekly_data:
        if row.date == today:
            return row.minutes * 60
    return 0


def today_tasks(stats: StudyStats, today: str) -> int:
    for row in stats.weekly_data:
        if row.date == today:
            return row.tasks
    return 0


# ── Persistence ───────────────────────────────────────────────


def load_stats(root: Path | None = None, today: str | None = None) -> StudyStats:
    """Load stats.json and drop a streak that lapsed while the app was closed."""
    stats = StudyStats.from_dict(read_json(stats_path(root)))
    if today is None:
        today = today_str(root)
    stats.current_streak = calculate_streak(stats.last_study_date, stats.current_streak, today)
    return stats


def save_stats(stats: StudyStats, root: Path | None = None) -> None:
    write_json_atomic(stats_path(root), stats.to_dict())
