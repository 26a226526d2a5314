"""Workspace root, timezone, path helpers for StudyFlow."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from studyflow.fileio import read_yaml


def workspace_root() -> Path:
    """Get the workspace root directory (contains settings.yaml and data/)."""
    return Path(
        os.environ.get("STUDYFLOW_ROOT", str(Path.home() / "studyflow"))
    ).expanduser().resolve()


def get_user_timezone(root: Path | None = None) -> ZoneInfo:
    """Get user's timezone from settings.yaml, defaulting to UTC."""
    if root is None:
        root = workspace_root()
    settings = read_yaml(settings_path(root))
    tz_name = settings.get("timezone") if settings else None
    if tz_name:
        try:
            return ZoneInfo(str(tz_name))
        except (ZoneInfoNotFoundError, ValueError):
            pass
    return ZoneInfo("UTC")


def today_str(root: Path | None = None) -> str:
    """Get today's date string (YYYY-MM-DD) in user's timezone."""
    tz = get_user_timezone(root)
    return datetime.now(tz).date().isoformat()


def now_iso() -> str:
    """UTC timestamp used for createdAt/updatedAt stamps."""
    return datetime.now(ZoneInfo("UTC")).isoformat(timespec="milliseconds")


# ── Path helpers ──────────────────────────────────────────────

def settings_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "settings.yaml"


def hooks_config_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "hooks.yaml"


def checklists_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "data" / "checklists.json"


def timer_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "data" / "timer.json"


def execution_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "data" / "execution.json"


def goals_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "data" / "goals.json"


def stats_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "data" / "stats.json"
