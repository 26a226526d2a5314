"""Atomic file I/O utilities for StudyFlow.

Readers never raise on missing or damaged files: a corrupt blob is logged
and treated as "no saved state". Writers are atomic and do raise.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


def read_text(path: Path) -> str:
    """Read a text file, returning empty string if missing or unreadable."""
    if not path.exists():
        return ""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read %s: %s", path, e)
        return ""


def read_json(path: Path) -> dict[str, Any]:
    """Read a JSON object, returning empty dict if missing or corrupt."""
    text = read_text(path)
    if not text.strip():
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Ignoring corrupt JSON in %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: expected a JSON object, got %s", path, type(data).__name__)
        return {}
    return data


def read_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML file, returning empty dict if missing, empty or invalid."""
    text = read_text(path)
    if not text.strip():
        return {}
    try:
        result = yaml.safe_load(text)
    except yaml.YAMLError as e:
        logger.warning("Ignoring invalid YAML in %s: %s", path, e)
        return {}
    return result if isinstance(result, dict) else {}


def _atomic_write(path: Path, content: str, suffix: str = ".tmp") -> None:
    """Atomic write with file locking: temp file + flock + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=suffix)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        os.rename(temp_path, path)
    except Exception:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Atomic JSON write."""
    _atomic_write(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n", suffix=".json")


def write_yaml_atomic(path: Path, data: dict[str, Any]) -> None:
    """Atomic YAML write."""
    content = yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
    _atomic_write(path, content, suffix=".yaml")
