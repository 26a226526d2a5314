"""Shell hooks for StudyFlow.

Hooks run shell commands when something happens to a task or timer.
Configured via hooks.yaml in the workspace root:

    on_task_complete:
      - notify-send "Done"
      - command: ./log.sh
        timeout: 5

Hook points:
- on_task_lock, on_task_unlock, on_task_complete
- on_pomodoro_complete
- on_checklist_import
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any

from studyflow.fileio import read_yaml
from studyflow.workspace import hooks_config_path, workspace_root

logger = logging.getLogger(__name__)

VALID_HOOK_POINTS = {
    "on_task_lock",
    "on_task_unlock",
    "on_task_complete",
    "on_pomodoro_complete",
    "on_checklist_import",
}

DEFAULT_TIMEOUT = 30
OUTPUT_LIMIT = 4096


def load_hooks_config(root: Path | None = None) -> dict[str, Any]:
    """Load hooks configuration from hooks.yaml."""
    return read_yaml(hooks_config_path(root))


def _command_of(hook: Any) -> tuple[str, float] | None:
    if isinstance(hook, str):
        return hook, DEFAULT_TIMEOUT
    if isinstance(hook, dict):
        try:
            timeout = float(hook.get("timeout", DEFAULT_TIMEOUT))
        except (TypeError, ValueError):
            timeout = DEFAULT_TIMEOUT
        return str(hook.get("command", "")), timeout
    return None


def run_hooks(
    hook_point: str,
    context: dict[str, Any],
    root: Path | None = None,
) -> list[dict[str, Any]]:
    """Run all hooks registered for a given hook point.

    Context is passed as JSON via stdin to each hook subprocess.
    Returns list of results with stdout/stderr and exit codes; a failing
    hook never raises.
    """
    if hook_point not in VALID_HOOK_POINTS:
        logger.warning("Unknown hook point %s", hook_point)
        return []

    if root is None:
        root = workspace_root()

    hooks = load_hooks_config(root).get(hook_point, [])
    if not hooks or not isinstance(hooks, list):
        return []

    results = []
    context_json = json.dumps(context, ensure_ascii=False)

    for hook in hooks:
        parsed = _command_of(hook)
        if parsed is None or not parsed[0]:
            continue
        command, timeout = parsed

        result: dict[str, Any] = {"command": command, "hook_point": hook_point}
        try:
            proc = subprocess.run(
                command,
                shell=True,
                input=context_json,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=str(root),
            )
            result["exit_code"] = proc.returncode
            result["stdout"] = proc.stdout[:OUTPUT_LIMIT]
            result["stderr"] = proc.stderr[:OUTPUT_LIMIT]
            if proc.returncode != 0:
                logger.warning("Hook %r exited with %d", command, proc.returncode)
        except subprocess.TimeoutExpired:
            result["exit_code"] = -1
            result["error"] = f"Hook timed out after {timeout:g}s"
            logger.warning("Hook %r timed out after %gs", command, timeout)
        except OSError as e:
            result["exit_code"] = -1
            result["error"] = str(e)
            logger.warning("Hook %r failed: %s", command, e)

        results.append(result)

    return results
