"""settings.yaml loading for StudyFlow."""

from __future__ import annotations

from pathlib import Path

from studyflow.fileio import read_yaml, write_yaml_atomic
from studyflow.models import AppSettings
from studyflow.workspace import settings_path


def load_settings(root: Path | None = None) -> AppSettings:
    """Load settings.yaml; missing or invalid values fall back to defaults."""
    try:
        return AppSettings.from_dict(read_yaml(settings_path(root)))
    except (TypeError, ValueError):
        return AppSettings()


def save_settings(settings: AppSettings, root: Path | None = None) -> None:
    write_yaml_atomic(settings_path(root), settings.to_dict())
