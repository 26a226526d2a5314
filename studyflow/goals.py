"""Goals: markdown import, persistence and checklist linking for StudyFlow.

Goal markdown:
    ## 🎯 Learn Rust
    type: weekly
    mode: check
    target: 5
    deadline: 2026-12-01
    - https://doc.rust-lang.org/book/
    ### Basics
    - [ ] Ownership
    - [x] Borrowing

A single `#` heading closes the current goal (used for grouping only).
"""

from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path

from studyflow.checklist_parser import extract_emoji, generate_id
from studyflow.checklists import create_checklist_with_sections
from studyflow.fileio import read_json, write_json_atomic
from studyflow.models import (
    Checklist,
    ChecklistStore,
    Goal,
    Link,
    ParsedGoal,
    ParsedGoalSection,
    ParsedGoalTask,
    TodoItem,
    TodoSection,
)
from studyflow.workspace import goals_path, now_iso

logger = logging.getLogger(__name__)

DEFAULT_GOAL_EMOJI = "\U0001f3af"
DEFAULT_CHECKLIST_EMOJI = "\U0001f4cb"
DEFAULT_TIME_TARGET = 60

_GOAL_RE = re.compile(r"^##\s+(.+)$")
_TASK_SECTION_RE = re.compile(r"^###\s+(.+)$")
_GROUP_RE = re.compile(r"^#\s+(.+)$")
_LIST_RE = re.compile(r"^-\s+(.+)$")
_CHECKBOX_RE = re.compile(r"^\[([ xX])\]\s*(.+)$")
_MD_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_URL_RE = re.compile(r"(https?://\S+)")

_META = {
    "type": re.compile(r"^type:\s*(daily|weekly|monthly|custom)$", re.IGNORECASE),
    "mode": re.compile(r"^mode:\s*(time|check)$", re.IGNORECASE),
    "target": re.compile(r"^target:\s*(\d+)$", re.IGNORECASE),
    "targetMinutes": re.compile(r"^targetMinutes:\s*(\d+)$", re.IGNORECASE),
    "targetCount": re.compile(r"^targetCount:\s*(\d+)$", re.IGNORECASE),
    "hours": re.compile(r"^hours:\s*(\d+(?:\.\d+)?)$", re.IGNORECASE),
    "deadline": re.compile(r"^deadline:\s*(.+)$", re.IGNORECASE),
    "emoji": re.compile(r"^emoji:\s*(.+)$", re.IGNORECASE),
}


# ── Parsing ───────────────────────────────────────────────────


def _parse_link(text: str) -> Link | None:
    m = _MD_LINK_RE.search(text)
    if m:
        return Link(label=m.group(1), url=m.group(2))
    m = _URL_RE.search(text)
    if not m:
        return None
    url = m.group(1)
    rest = text.replace(url, "", 1).strip()
    if rest:
        return Link(label=rest, url=url)
    host = re.sub(r"^https?://", "", url).split("/", 1)[0].replace("www.", "", 1)
    return Link(label=host or "Link", url=url)


class _GoalBuilder:
    """Accumulates one goal while scanning lines."""

    def __init__(self, heading: str) -> None:
        emoji, title = extract_emoji(heading)
        self.goal = ParsedGoal(title=title, emoji=emoji)
        self.target_count: int | None = None
        self.sections: list[ParsedGoalSection] = []
        self.section: ParsedGoalSection | None = None

    def close_section(self) -> None:
        if self.section is not None and self.section.items:
            self.sections.append(self.section)
        self.section = None

    def add_task(self, text: str, completed: bool) -> None:
        if self.section is None:
            self.section = ParsedGoalSection()
        self.section.items.append(ParsedGoalTask(text=text, completed=completed))

    def apply_meta(self, line: str) -> bool:
        goal = self.goal
        for key, pattern in _META.items():
            m = pattern.match(line)
            if not m:
                continue
            value = m.group(1).strip()
            if key == "type":
                goal.type = value.lower()
            elif key == "mode":
                goal.mode = value.lower()
            elif key == "target":
                if goal.mode == "check":
                    self.target_count = int(value)
                else:
                    goal.target_minutes = int(value)
            elif key == "targetMinutes":
                goal.target_minutes = int(value)
            elif key == "targetCount":
                self.target_count = int(value)
            elif key == "hours":
                goal.target_minutes = round(float(value) * 60)
            elif key == "deadline":
                goal.deadline = value
            elif key == "emoji":
                goal.emoji = value
            return True
        return False

    def finish(self) -> ParsedGoal | None:
        self.close_section()
        goal = self.goal
        if not goal.title:
            return None
        if self.sections:
            goal.mode = "check"
        if goal.mode == "time":
            goal.target_minutes = goal.target_minutes or DEFAULT_TIME_TARGET
            goal.target_count = None
        else:
            goal.target_minutes = 0
            goal.target_count = self.target_count or 1
        goal.tasks = self.sections
        return goal


def parse_goals_markdown(markdown: str) -> list[ParsedGoal]:
    """Parse goal markdown into ParsedGoals. Unrecognised lines are skipped."""
    goals: list[ParsedGoal] = []
    builder: _GoalBuilder | None = None

    def finalize() -> None:
        if builder is not None:
            parsed = builder.finish()
            if parsed is not None:
                goals.append(parsed)

    for raw in markdown.split("\n"):
        line = raw.strip()
        if not line:
            continue

        m = _GOAL_RE.match(line)
        if m:
            finalize()
            builder = _GoalBuilder(m.group(1))
            continue

        if builder is not None:
            if builder.apply_meta(line):
                continue

            m = _TASK_SECTION_RE.match(line)
            if m:
                builder.close_section()
                _emoji, title = extract_emoji(m.group(1))
                builder.section = ParsedGoalSection(title=title or "Tasks")
                continue

            m = _LIST_RE.match(line)
            if m:
                item = m.group(1).strip()
                box = _CHECKBOX_RE.match(item)
                if box:
                    builder.add_task(box.group(2).strip(), box.group(1).lower() == "x")
                    continue
                link = _parse_link(item)
                if link is not None:
                    builder.goal.links.append(link)
                    continue
                builder.add_task(item, False)
                continue

        if _GROUP_RE.match(line):
            finalize()
            builder = None

    finalize()
    return goals


# ── Conversion ────────────────────────────────────────────────


def goal_from_parsed(parsed: ParsedGoal, linked_checklist_id: str | None = None) -> Goal:
    """Turn a ParsedGoal into a stored Goal with a fresh id."""
    check = parsed.mode == "check"
    return Goal(
        id=str(uuid.uuid4()),
        title=parsed.title,
        type=parsed.type,
        mode=parsed.mode,
        target_minutes=parsed.target_minutes,
        target_count=(parsed.target_count or 1) if check else None,
        completed_count=0 if check else None,
        created_at=now_iso(),
        deadline=parsed.deadline,
        emoji=parsed.emoji or DEFAULT_GOAL_EMOJI,
        links=list(parsed.links),
        linked_checklist_id=linked_checklist_id,
    )


def checklist_sections_from_goal(parsed: ParsedGoal) -> list[TodoSection]:
    """Flat sections for a goal's checklist; a placeholder section when it has no tasks."""
    if not parsed.tasks:
        return [
            TodoSection(
                id=generate_id(),
                title="Today's Tasks",
                items=[TodoItem(id=generate_id(), text="Work on this goal")],
                total_count=1,
            )
        ]
    return [
        TodoSection(
            id=generate_id(),
            title=section.title,
            items=[
                TodoItem(id=generate_id(), text=task.text, completed=task.completed)
                for task in section.items
            ],
            completed_count=sum(1 for task in section.items if task.completed),
            total_count=len(section.items),
        )
        for section in parsed.tasks
    ]


def import_goals(
    markdown: str, goals: list[Goal], store: ChecklistStore
) -> list[Goal]:
    """Parse *markdown*, append the goals, and create a checklist for each check goal.

    Returns the newly created goals. The active checklist is left alone.
    """
    created = []
    for parsed in parse_goals_markdown(markdown):
        linked = None
        if parsed.mode == "check" or parsed.tasks:
            checklist = create_checklist_with_sections(
                store,
                Checklist(
                    id=generate_id(),
                    title=parsed.title,
                    emoji=parsed.emoji or DEFAULT_CHECKLIST_EMOJI,
                    type="quick",
                    sections=checklist_sections_from_goal(parsed),
                ),
            )
            linked = checklist.id
        created.append(goal_from_parsed(parsed, linked))
    goals.extend(created)
    logger.debug("Imported %d goals", len(created))
    return created


# ── Persistence ───────────────────────────────────────────────


def load_goals(root: Path | None = None) -> list[Goal]:
    data = read_json(goals_path(root))
    goals = data.get("goals")
    if not isinstance(goals, list):
        return []
    return [Goal.from_dict(g) for g in goals if isinstance(g, dict)]


def save_goals(goals: list[Goal], root: Path | None = None) -> None:
    write_json_atomic(goals_path(root), {"goals": [g.to_dict() for g in goals]})


def find_goal(goals: list[Goal], goal_id: str) -> Goal | None:
    for g in goals:
        if g.id == goal_id:
            return g
    return None
