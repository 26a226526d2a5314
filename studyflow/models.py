"""Typed dataclasses for StudyFlow data model.

All persisted models use from_dict/to_dict for JSON/YAML serialization.
camelCase in JSON is mapped to snake_case in Python.
Unknown keys are ignored; missing keys use defaults.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any


PRIORITIES = ("low", "medium", "high")
RECURRENCES = ("daily", "weekly", "monthly")
CHECKLIST_TYPES = ("markdown", "quick")
TIMER_MODES = ("work", "shortBreak", "longBreak")
START_SOURCES = ("manual", "task", "moreTime")
GOAL_TYPES = ("daily", "weekly", "monthly", "custom")
GOAL_MODES = ("time", "check")


def _is_count(value: Any) -> bool:
    """True for a finite, non-boolean number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _opt_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _int(value: Any, default: int) -> int:
    """Stored integer field; anything unparseable reads as *default*."""
    result = _opt_int(value)
    return default if result is None else result


def _dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


def _strs(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


# ── Checklists ────────────────────────────────────────────────


@dataclass
class Link:
    label: str = ""
    url: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Link:
        return cls(label=str(d.get("label", "")), url=str(d.get("url", "")))

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "url": self.url}


@dataclass
class TodoItem:
    """A single checklist entry; children form an owned sub-tree."""

    id: str = ""
    text: str = ""
    completed: bool = False
    level: int = 0
    children: list[TodoItem] = field(default_factory=list)
    time_estimate: int | None = None  # minutes
    priority: str | None = None  # low, medium, high
    due_date: str | None = None  # ISO date
    tags: list[str] = field(default_factory=list)
    recurring: str | None = None  # daily, weekly, monthly
    last_completed: str | None = None
    links: list[Link] = field(default_factory=list)

    def counts(self) -> tuple[int, int]:
        """(total, completed) for this item and all descendants."""
        total = 1
        completed = 1 if self.completed else 0
        for child in self.children:
            t, c = child.counts()
            total += t
            completed += c
        return total, completed

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TodoItem:
        if not isinstance(d, dict):
            return cls()
        priority = d.get("priority")
        return cls(
            id=str(d.get("id", "")),
            text=str(d.get("text", "")),
            completed=bool(d.get("completed", False)),
            level=_int(d.get("level"), 0),
            children=[cls.from_dict(c) for c in _dicts(d.get("children"))],
            time_estimate=_opt_int(d.get("timeEstimate")),
            priority=priority if priority in PRIORITIES else None,
            due_date=d.get("dueDate"),
            tags=_strs(d.get("tags")),
            recurring=d.get("recurring"),
            last_completed=d.get("lastCompleted"),
            links=[Link.from_dict(link) for link in _dicts(d.get("links"))],
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "level": self.level,
            "children": [c.to_dict() for c in self.children],
        }
        if self.time_estimate is not None:
            d["timeEstimate"] = self.time_estimate
        if self.priority:
            d["priority"] = self.priority
        if self.due_date:
            d["dueDate"] = self.due_date
        if self.tags:
            d["tags"] = list(self.tags)
        if self.recurring:
            d["recurring"] = self.recurring
        if self.last_completed:
            d["lastCompleted"] = self.last_completed
        if self.links:
            d["links"] = [link.to_dict() for link in self.links]
        return d


@dataclass
class TodoSection:
    id: str = ""
    title: str = ""
    emoji: str | None = None
    description: str | None = None
    items: list[TodoItem] = field(default_factory=list)
    completed_count: int = 0
    total_count: int = 0
    total_time_estimate: int | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TodoSection:
        """Load a section; counters that are not finite numbers are rebuilt from the tree."""
        if not isinstance(d, dict):
            return cls()
        items = [TodoItem.from_dict(i) for i in _dicts(d.get("items"))]
        total = completed = 0
        for item in items:
            t, c = item.counts()
            total += t
            completed += c
        raw_completed = d.get("completedCount")
        raw_total = d.get("totalCount")
        return cls(
            id=str(d.get("id", "")),
            title=str(d.get("title", "")),
            emoji=d.get("emoji"),
            description=d.get("description"),
            items=items,
            completed_count=int(raw_completed) if _is_count(raw_completed) else completed,
            total_count=int(raw_total) if _is_count(raw_total) else total,
            total_time_estimate=_opt_int(d.get("totalTimeEstimate")),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "items": [i.to_dict() for i in self.items],
            "completedCount": self.completed_count,
            "totalCount": self.total_count,
        }
        if self.emoji:
            d["emoji"] = self.emoji
        if self.description:
            d["description"] = self.description
        if self.total_time_estimate is not None:
            d["totalTimeEstimate"] = self.total_time_estimate
        return d


@dataclass
class ParsedChecklist:
    title: str = "Untitled Checklist"
    emoji: str | None = None
    sections: list[TodoSection] = field(default_factory=list)
    total_completed: int = 0
    total_items: int = 0
    total_time_estimate: int | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "title": self.title,
            "sections": [s.to_dict() for s in self.sections],
            "totalCompleted": self.total_completed,
            "totalItems": self.total_items,
        }
        if self.emoji:
            d["emoji"] = self.emoji
        if self.total_time_estimate is not None:
            d["totalTimeEstimate"] = self.total_time_estimate
        return d


@dataclass
class Checklist:
    id: str = ""
    title: str = ""
    emoji: str | None = None
    created_at: str = ""
    updated_at: str = ""
    type: str = "quick"  # markdown, quick
    markdown: str | None = None
    source_urls: list[str] = field(default_factory=list)
    sections: list[TodoSection] = field(default_factory=list)
    total_completed: int = 0
    total_items: int = 0

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Checklist:
        if not isinstance(d, dict):
            return cls()
        sections = [TodoSection.from_dict(s) for s in _dicts(d.get("sections"))]
        raw_completed = d.get("totalCompleted")
        raw_items = d.get("totalItems")
        ctype = d.get("type", "quick")
        return cls(
            id=str(d.get("id") or d.get("_id") or ""),
            title=str(d.get("title", "")),
            emoji=d.get("emoji"),
            created_at=str(d.get("createdAt", "")),
            updated_at=str(d.get("updatedAt", "")),
            type=ctype if ctype in CHECKLIST_TYPES else "quick",
            markdown=d.get("markdown"),
            source_urls=_strs(d.get("sourceUrls") or d.get("youtubeUrls")),
            sections=sections,
            total_completed=(
                int(raw_completed) if _is_count(raw_completed)
                else sum(s.completed_count for s in sections)
            ),
            total_items=(
                int(raw_items) if _is_count(raw_items)
                else sum(s.total_count for s in sections)
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "type": self.type,
            "sections": [s.to_dict() for s in self.sections],
            "totalCompleted": self.total_completed,
            "totalItems": self.total_items,
        }
        if self.emoji:
            d["emoji"] = self.emoji
        if self.markdown is not None:
            d["markdown"] = self.markdown
        if self.source_urls:
            d["sourceUrls"] = list(self.source_urls)
        return d


@dataclass
class ChecklistStore:
    checklists: list[Checklist] = field(default_factory=list)
    active_checklist_id: str | None = None

    @property
    def active_checklist(self) -> Checklist | None:
        if self.active_checklist_id is None:
            return None
        for c in self.checklists:
            if c.id == self.active_checklist_id:
                return c
        return None

    def get(self, checklist_id: str) -> Checklist | None:
        for c in self.checklists:
            if c.id == checklist_id:
                return c
        return None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ChecklistStore:
        if not d or not isinstance(d, dict):
            return cls()
        checklists = [Checklist.from_dict(c) for c in _dicts(d.get("checklists"))]
        active = d.get("activeChecklistId")
        return cls(
            checklists=checklists,
            active_checklist_id=str(active) if active else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "checklists": [c.to_dict() for c in self.checklists],
            "activeChecklistId": self.active_checklist_id,
        }


# ── Execution lock ────────────────────────────────────────────


@dataclass
class ActiveTask:
    goal_id: str = ""
    goal_title: str = ""
    task_text: str = ""
    goal_emoji: str | None = None
    checklist_id: str | None = None
    task_id: str | None = None
    section_id: str | None = None
    started_at: int = 0  # epoch ms
    planned_minutes: int | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ActiveTask:
        return cls(
            goal_id=str(d.get("goalId", "")),
            goal_title=str(d.get("goalTitle", "")),
            task_text=str(d.get("taskText", "")),
            goal_emoji=d.get("goalEmoji"),
            checklist_id=d.get("checklistId"),
            task_id=d.get("taskId"),
            section_id=d.get("sectionId"),
            started_at=_int(d.get("startedAt"), 0),
            planned_minutes=_opt_int(d.get("plannedMinutes")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "goalId": self.goal_id,
            "goalTitle": self.goal_title,
            "goalEmoji": self.goal_emoji,
            "taskText": self.task_text,
            "checklistId": self.checklist_id,
            "taskId": self.task_id,
            "sectionId": self.section_id,
            "startedAt": self.started_at,
            "plannedMinutes": self.planned_minutes,
        }


@dataclass(frozen=True)
class PendingStart:
    """One-shot command telling the Pomodoro to begin a work session."""

    duration_seconds: int
    source: str = "manual"  # manual, task, moreTime
    timestamp: int = 0  # epoch ms

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PendingStart:
        source = d.get("source", "manual")
        return cls(
            duration_seconds=_int(d.get("durationSeconds"), 0),
            source=source if source in START_SOURCES else "manual",
            timestamp=_int(d.get("timestamp"), 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "durationSeconds": self.duration_seconds,
            "source": self.source,
            "timestamp": self.timestamp,
        }


@dataclass
class ExecutionState:
    active_task: ActiveTask | None = None
    pending_start: PendingStart | None = None

    @property
    def is_task_locked(self) -> bool:
        return self.active_task is not None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ExecutionState:
        if not d or not isinstance(d, dict):
            return cls()
        active = d.get("activeTask")
        pending = d.get("pendingStart")
        return cls(
            active_task=ActiveTask.from_dict(active) if isinstance(active, dict) else None,
            pending_start=PendingStart.from_dict(pending) if isinstance(pending, dict) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "activeTask": self.active_task.to_dict() if self.active_task else None,
            "pendingStart": self.pending_start.to_dict() if self.pending_start else None,
            "isTaskLocked": self.is_task_locked,
        }


# ── Settings ──────────────────────────────────────────────────


@dataclass
class PomodoroSettings:
    work_duration: int = 25  # minutes
    short_break_duration: int = 5
    long_break_duration: int = 15
    sessions_until_long_break: int = 4

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PomodoroSettings:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(
            work_duration=_int(d.get("work_duration"), 25),
            short_break_duration=_int(d.get("short_break_duration"), 5),
            long_break_duration=_int(d.get("long_break_duration"), 15),
            sessions_until_long_break=max(1, _int(d.get("sessions_until_long_break"), 4)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "work_duration": self.work_duration,
            "short_break_duration": self.short_break_duration,
            "long_break_duration": self.long_break_duration,
            "sessions_until_long_break": self.sessions_until_long_break,
        }

    def duration_seconds(self, mode: str) -> int:
        if mode == "shortBreak":
            return self.short_break_duration * 60
        if mode == "longBreak":
            return self.long_break_duration * 60
        return self.work_duration * 60


@dataclass
class AppSettings:
    pomodoro: PomodoroSettings = field(default_factory=PomodoroSettings)
    daily_goal: int = 120  # minutes
    weekly_goal: int = 600
    sound_enabled: bool = True
    notifications_enabled: bool = True
    timezone: str = "UTC"

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> AppSettings:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(
            pomodoro=PomodoroSettings.from_dict(d.get("pomodoro") or {}),
            daily_goal=_int(d.get("daily_goal"), 120),
            weekly_goal=_int(d.get("weekly_goal"), 600),
            sound_enabled=bool(d.get("sound_enabled", True)),
            notifications_enabled=bool(d.get("notifications_enabled", True)),
            timezone=str(d.get("timezone", "UTC")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timezone": self.timezone,
            "pomodoro": self.pomodoro.to_dict(),
            "daily_goal": self.daily_goal,
            "weekly_goal": self.weekly_goal,
            "sound_enabled": self.sound_enabled,
            "notifications_enabled": self.notifications_enabled,
        }


# ── Timers ────────────────────────────────────────────────────


@dataclass
class PomodoroState:
    mode: str = "work"  # work, shortBreak, longBreak
    time_left: int = 25 * 60  # seconds
    is_running: bool = False
    target_end_time: int | None = None  # epoch ms while running
    sessions_completed: int = 0
    last_processed_timestamp: int = 0

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PomodoroState:
        if not d or not isinstance(d, dict):
            return cls()
        mode = d.get("mode", "work")
        return cls(
            mode=mode if mode in TIMER_MODES else "work",
            time_left=max(0, _int(d.get("timeLeft"), 25 * 60)),
            is_running=bool(d.get("isRunning", False)),
            target_end_time=_opt_int(d.get("targetEndTime")),
            sessions_completed=_int(d.get("sessionsCompleted"), 0),
            last_processed_timestamp=_int(d.get("lastProcessedTimestamp"), 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "timeLeft": self.time_left,
            "isRunning": self.is_running,
            "targetEndTime": self.target_end_time,
            "sessionsCompleted": self.sessions_completed,
            "lastProcessedTimestamp": self.last_processed_timestamp,
        }


@dataclass
class Lap:
    id: int = 0
    time: int = 0  # cumulative ms
    delta: int = 0  # ms since previous lap

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Lap:
        return cls(id=_int(d.get("id"), 0), time=_int(d.get("time"), 0), delta=_int(d.get("delta"), 0))

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "time": self.time, "delta": self.delta}


@dataclass
class StopwatchState:
    accumulated: int = 0  # ms folded in from finished segments
    segment_start: int | None = None  # epoch ms while running
    is_running: bool = False
    laps: list[Lap] = field(default_factory=list)  # newest first
    last_lap_time: int = 0

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> StopwatchState:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(
            accumulated=_int(d.get("accumulated"), 0),
            segment_start=_opt_int(d.get("segmentStart")),
            is_running=bool(d.get("isRunning", False)),
            laps=[Lap.from_dict(lap) for lap in _dicts(d.get("laps"))],
            last_lap_time=_int(d.get("lastLapTime"), 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "accumulated": self.accumulated,
            "segmentStart": self.segment_start,
            "isRunning": self.is_running,
            "laps": [lap.to_dict() for lap in self.laps],
            "lastLapTime": self.last_lap_time,
        }


# ── Goals & daily focus ───────────────────────────────────────


@dataclass
class Goal:
    id: str = ""
    title: str = ""
    type: str = "daily"  # daily, weekly, monthly, custom
    mode: str = "time"  # time, check
    target_minutes: int = 0
    target_count: int | None = None
    completed_count: int | None = None
    created_at: str = ""
    deadline: str | None = None
    emoji: str | None = None
    links: list[Link] = field(default_factory=list)
    linked_checklist_id: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Goal:
        gtype = d.get("type", "daily")
        mode = d.get("mode", "time")
        return cls(
            id=str(d.get("id", "")),
            title=str(d.get("title", "")),
            type=gtype if gtype in GOAL_TYPES else "daily",
            mode=mode if mode in GOAL_MODES else "time",
            target_minutes=_int(d.get("targetMinutes"), 0),
            target_count=_opt_int(d.get("targetCount")),
            completed_count=_opt_int(d.get("completedCount")),
            created_at=str(d.get("createdAt", "")),
            deadline=str(d["deadline"]) if d.get("deadline") else None,
            emoji=d.get("emoji"),
            links=[Link.from_dict(link) for link in _dicts(d.get("links"))],
            linked_checklist_id=d.get("linkedChecklistId") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "mode": self.mode,
            "targetMinutes": self.target_minutes,
            "createdAt": self.created_at,
        }
        if self.target_count is not None:
            d["targetCount"] = self.target_count
        if self.completed_count is not None:
            d["completedCount"] = self.completed_count
        if self.deadline:
            d["deadline"] = self.deadline
        if self.emoji:
            d["emoji"] = self.emoji
        if self.links:
            d["links"] = [link.to_dict() for link in self.links]
        if self.linked_checklist_id:
            d["linkedChecklistId"] = self.linked_checklist_id
        return d


@dataclass
class ParsedGoalTask:
    text: str = ""
    completed: bool = False


@dataclass
class ParsedGoalSection:
    title: str = "Tasks"
    items: list[ParsedGoalTask] = field(default_factory=list)


@dataclass
class ParsedGoal:
    title: str = ""
    type: str = "daily"
    mode: str = "time"
    target_minutes: int = 0
    target_count: int | None = None
    emoji: str | None = None
    deadline: str | None = None
    links: list[Link] = field(default_factory=list)
    tasks: list[ParsedGoalSection] = field(default_factory=list)


@dataclass
class NextTask:
    text: str = ""
    section_title: str = ""
    time_estimate: int | None = None
    task_id: str | None = None
    section_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "sectionTitle": self.section_title,
            "timeEstimate": self.time_estimate,
            "taskId": self.task_id,
            "sectionId": self.section_id,
        }


@dataclass
class DailyFocus:
    goal: Goal
    checklist: Checklist | None = None
    next_task: NextTask | None = None
    checklist_deleted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "goal": self.goal.to_dict(),
            "checklist": self.checklist.to_dict() if self.checklist else None,
            "nextTask": self.next_task.to_dict() if self.next_task else None,
            "checklistDeleted": self.checklist_deleted,
        }


# ── Study statistics ──────────────────────────────────────────


@dataclass
class StudySession:
    id: str = ""
    date: str = ""  # ISO timestamp
    duration: int = 0  # seconds
    tasks_completed: int = 0
    section_id: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> StudySession:
        return cls(
            id=str(d.get("id", "")),
            date=str(d.get("date", "")),
            duration=_int(d.get("duration"), 0),
            tasks_completed=_int(d.get("tasksCompleted"), 0),
            section_id=d.get("sectionId"),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "date": self.date,
            "duration": self.duration,
            "tasksCompleted": self.tasks_completed,
        }
        if self.section_id:
            d["sectionId"] = self.section_id
        return d


@dataclass
class DayTotals:
    date: str = ""
    minutes: int = 0
    tasks: int = 0

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> DayTotals:
        return cls(
            date=str(d.get("date", "")),
            minutes=_int(d.get("minutes"), 0),
            tasks=_int(d.get("tasks"), 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "minutes": self.minutes, "tasks": self.tasks}


@dataclass
class StudyStats:
    total_study_time: int = 0  # seconds
    total_tasks_completed: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_study_date: str = ""
    sessions_history: list[StudySession] = field(default_factory=list)
    daily_goal: int = 120  # minutes
    weekly_data: list[DayTotals] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> StudyStats:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(
            total_study_time=_int(d.get("totalStudyTime"), 0),
            total_tasks_completed=_int(d.get("totalTasksCompleted"), 0),
            current_streak=_int(d.get("currentStreak"), 0),
            longest_streak=_int(d.get("longestStreak"), 0),
            last_study_date=str(d.get("lastStudyDate", "") or ""),
            sessions_history=[
                StudySession.from_dict(s) for s in _dicts(d.get("sessionsHistory"))
            ],
            daily_goal=_int(d.get("dailyGoal"), 120) or 120,
            weekly_data=[DayTotals.from_dict(w) for w in _dicts(d.get("weeklyData"))],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalStudyTime": self.total_study_time,
            "totalTasksCompleted": self.total_tasks_completed,
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "lastStudyDate": self.last_study_date,
            "sessionsHistory": [s.to_dict() for s in self.sessions_history],
            "dailyGoal": self.daily_goal,
            "weeklyData": [w.to_dict() for w in self.weekly_data],
        }
