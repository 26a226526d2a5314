"""Shared test fixtures for StudyFlow tests."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
import yaml


SEED_CHECKLIST = {
    "id": "cl-bio",
    "title": "Biology",
    "emoji": "\U0001f9ec",
    "createdAt": "2026-02-01T08:00:00.000+00:00",
    "updatedAt": "2026-02-01T08:00:00.000+00:00",
    "type": "markdown",
    "markdown": "# Biology\n",
    "sections": [
        {
            "id": "sec-cells",
            "title": "Cells",
            "items": [
                {"id": "t-membrane", "text": "Cell membrane", "completed": True, "level": 0, "children": []},
                {
                    "id": "t-organelles",
                    "text": "Organelles",
                    "completed": False,
                    "level": 0,
                    "timeEstimate": 30,
                    "children": [
                        {"id": "t-mito", "text": "Mitochondria", "completed": False, "level": 1, "children": []},
                    ],
                },
            ],
            "completedCount": 1,
            "totalCount": 3,
        },
        {
            "id": "sec-genetics",
            "title": "Genetics",
            "items": [
                {"id": "t-dna", "text": "DNA replication", "completed": False, "level": 0, "children": []},
            ],
            "completedCount": 0,
            "totalCount": 1,
        },
    ],
    "totalCompleted": 1,
    "totalItems": 4,
}


SEED_GOALS = [
    {
        "id": "goal-bio",
        "title": "Finish biology unit",
        "type": "weekly",
        "mode": "check",
        "targetMinutes": 0,
        "targetCount": 1,
        "completedCount": 0,
        "createdAt": "2026-02-01T08:00:00.000+00:00",
        "emoji": "\U0001f3af",
        "linkedChecklistId": "cl-bio",
    },
]


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace with settings and seeded data files."""
    root = tmp_path / "workspace"
    (root / "data").mkdir(parents=True)

    settings = {
        "timezone": "UTC",
        "pomodoro": {
            "work_duration": 25,
            "short_break_duration": 5,
            "long_break_duration": 15,
            "sessions_until_long_break": 4,
        },
        "daily_goal": 120,
        "weekly_goal": 600,
        "sound_enabled": False,
        "notifications_enabled": True,
    }
    (root / "settings.yaml").write_text(
        yaml.dump(settings, default_flow_style=False), encoding="utf-8"
    )

    (root / "data" / "checklists.json").write_text(
        json.dumps({"checklists": [SEED_CHECKLIST], "activeChecklistId": "cl-bio"}, indent=2),
        encoding="utf-8",
    )
    (root / "data" / "goals.json").write_text(
        json.dumps({"goals": SEED_GOALS}, indent=2), encoding="utf-8"
    )

    # Set env var
    os.environ["STUDYFLOW_ROOT"] = str(root)
    yield root
    # Cleanup
    if "STUDYFLOW_ROOT" in os.environ:
        del os.environ["STUDYFLOW_ROOT"]


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
