from __future__ import annotations

import logging
import os
import secrets
from dataclasses import asdict
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, status
from fastapi.responses import HTMLResponse, PlainTextResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from studyflow import (
    ActiveTask,
    add_completed_task,
    add_session,
    add_study_time,
    add_task_to_checklist,
    complete_active_task,
    compute_daily_focus,
    create_checklist,
    create_from_markdown,
    daily_focus_message,
    delete_checklist,
    duplicate_checklist,
    format_clock,
    import_goals,
    load_execution,
    load_goals,
    load_settings,
    load_stats,
    load_store,
    load_timers,
    lock_task,
    now_iso,
    parse_markdown_checklist,
    pull_into_store,
    process_pending_start,
    remove_completed_task,
    render_markdown_checklist,
    request_more_time,
    run_hooks,
    save_execution,
    save_goals,
    save_stats,
    save_store,
    save_timers,
    set_active_checklist,
    start_pomodoro,
    today_str,
    toggle_section,
    toggle_task,
    unlock_task,
    update_checklist,
    workspace_root,
)
from studyflow.models import CHECKLIST_TYPES, PRIORITIES, RECURRENCES, TIMER_MODES
from studyflow.mutations import find_item

logging.basicConfig(
    level=os.environ.get("STUDYFLOW_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("studyflow.ui")


# ── HTML helpers ──────────────────────────────────────────────

def _escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


# ── Auth ──────────────────────────────────────────────────────

app = FastAPI(title="StudyFlow", version="0.1.0")

security = HTTPBasic(auto_error=False)


def get_current_user(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    expected_username = os.environ.get("STUDYFLOW_USERNAME", "")
    expected_password = os.environ.get("STUDYFLOW_PASSWORD", "")

    if not expected_username or not expected_password:
        return "guest"

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    correct_username = secrets.compare_digest(credentials.username.encode("utf-8"), expected_username.encode("utf-8"))
    correct_password = secrets.compare_digest(credentials.password.encode("utf-8"), expected_password.encode("utf-8"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


def _require_text(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise HTTPException(status_code=400, detail=f"Missing {key}")
    return value


def _positive_int(value: Any, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {value!r}")
    if number <= 0:
        raise HTTPException(status_code=400, detail=f"{name} must be positive")
    return number


# ── Pages ─────────────────────────────────────────────────────

@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"ok": "true"}


@app.get("/", response_class=HTMLResponse)
def index(username: str = Depends(get_current_user)) -> HTMLResponse:
    root = workspace_root()
    store = load_store(root)
    focus = compute_daily_focus(load_goals(root), store.checklists)
    active = store.active_checklist

    rows = []
    if active is not None:
        for section in active.sections:
            rows.append(
                f'<h3>{_escape(section.title)} '
                f'<span class="muted">{section.completed_count}/{section.total_count}</span></h3>'
            )
            for item in section.items:
                mark = "x" if item.completed else " "
                rows.append(f'<div class="todo">[{mark}] {_escape(item.text)}</div>')

    focus_line = _escape(daily_focus_message(focus)) if focus else "No goals yet"
    title = _escape(active.title) if active else "(no active checklist)"
    html = f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>StudyFlow</title>
</head>
<body>
  <header>
    <h1>StudyFlow</h1>
    <div class="muted">Focus: <b>{focus_line}</b></div>
  </header>
  <section>
    <h2>{title}</h2>
    {''.join(rows) if rows else '<div class="muted">Nothing to show.</div>'}
  </section>
</body>
</html>"""
    return HTMLResponse(html)


@app.get("/raw/checklists/{checklist_id}")
def raw_checklist(checklist_id: str, username: str = Depends(get_current_user)) -> PlainTextResponse:
    """Checklist rendered back to markdown (for re-editing)."""
    checklist = load_store().get(checklist_id)
    if checklist is None:
        raise HTTPException(status_code=404, detail=f"Checklist not found: {checklist_id}")
    return PlainTextResponse(render_markdown_checklist(checklist))


# ── Checklists ────────────────────────────────────────────────

@app.get("/api/checklists")
def api_list_checklists(username: str = Depends(get_current_user)) -> dict[str, Any]:
    return load_store().to_dict()


@app.post("/api/checklists")
def api_create_checklist(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    title = _require_text(payload, "title").strip()
    ctype = payload.get("type", "quick")
    if ctype not in CHECKLIST_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid checklist type: {ctype}")
    root = workspace_root()
    store = load_store(root)
    checklist = create_checklist(store, title, ctype, payload.get("emoji"))
    save_store(store, root)
    return {"ok": True, "checklist": checklist.to_dict()}


@app.post("/api/checklists/markdown")
def api_import_markdown(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Create a checklist from markdown and make it active."""
    markdown = _require_text(payload, "markdown")
    source_urls = payload.get("sourceUrls") or []
    if not isinstance(source_urls, list):
        raise HTTPException(status_code=400, detail="sourceUrls must be a list")
    root = workspace_root()
    store = load_store(root)
    parsed = parse_markdown_checklist(markdown)
    checklist = create_from_markdown(store, markdown, parsed, [str(u) for u in source_urls])
    logger.info("Imported checklist %s with %d items", checklist.id, checklist.total_items)
    save_store(store, root)
    hooks = run_hooks(
        "on_checklist_import",
        {"checklist_id": checklist.id, "title": checklist.title, "total_items": checklist.total_items},
        root,
    )
    return {"ok": True, "checklist": checklist.to_dict(), "hooks": hooks}


@app.get("/api/checklists/{checklist_id}")
def api_get_checklist(checklist_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    checklist = load_store().get(checklist_id)
    if checklist is None:
        raise HTTPException(status_code=404, detail=f"Checklist not found: {checklist_id}")
    return checklist.to_dict()


@app.put("/api/checklists/{checklist_id}")
def api_update_checklist(checklist_id: str, payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Rename, re-emoji, or replace the content from edited markdown."""
    fields: dict[str, Any] = {}
    if "title" in payload:
        fields["title"] = _require_text(payload, "title").strip()
    if "emoji" in payload:
        fields["emoji"] = payload.get("emoji") or None
    if "markdown" in payload:
        markdown = _require_text(payload, "markdown")
        parsed = parse_markdown_checklist(markdown)
        fields.update(
            markdown=markdown,
            sections=parsed.sections,
            total_completed=parsed.total_completed,
            total_items=parsed.total_items,
        )
    if not fields:
        raise HTTPException(status_code=400, detail="Nothing to update")

    root = workspace_root()
    store = load_store(root)
    updated = update_checklist(store, checklist_id, **fields)
    if updated is None:
        raise HTTPException(status_code=404, detail=f"Checklist not found: {checklist_id}")
    save_store(store, root)
    return {"ok": True, "checklist": updated.to_dict()}


@app.delete("/api/checklists/{checklist_id}")
def api_delete_checklist(checklist_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    store = load_store(root)
    if not delete_checklist(store, checklist_id):
        raise HTTPException(status_code=404, detail=f"Checklist not found: {checklist_id}")
    save_store(store, root)
    return {"ok": True, "checklist_id": checklist_id, "activeChecklistId": store.active_checklist_id}


@app.post("/api/checklists/{checklist_id}/duplicate")
def api_duplicate_checklist(checklist_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    store = load_store(root)
    try:
        duplicated = duplicate_checklist(store, checklist_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Checklist not found: {checklist_id}")
    save_store(store, root)
    return {"ok": True, "checklist": duplicated.to_dict()}


@app.post("/api/checklists/{checklist_id}/activate")
def api_activate_checklist(checklist_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    store = load_store(root)
    if set_active_checklist(store, checklist_id) is None:
        raise HTTPException(status_code=404, detail=f"Checklist not found: {checklist_id}")
    save_store(store, root)
    return {"ok": True, "activeChecklistId": store.active_checklist_id}


@app.post("/api/checklists/{checklist_id}/tasks")
def api_add_task(checklist_id: str, payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    text = _require_text(payload, "text").strip()
    section_id = _require_text(payload, "sectionId")
    extra: dict[str, Any] = {}
    if payload.get("timeEstimate") is not None:
        extra["time_estimate"] = _positive_int(payload["timeEstimate"], "timeEstimate")
    priority = payload.get("priority")
    if priority is not None:
        if priority not in PRIORITIES:
            raise HTTPException(status_code=400, detail=f"Invalid priority: {priority}")
        extra["priority"] = priority
    if payload.get("dueDate"):
        extra["due_date"] = str(payload["dueDate"])
    tags = payload.get("tags")
    if tags is not None:
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise HTTPException(status_code=400, detail="tags must be a list of strings")
        extra["tags"] = [t.strip() for t in tags if t.strip()]
    recurring = payload.get("recurring")
    if recurring is not None:
        if recurring not in RECURRENCES:
            raise HTTPException(status_code=400, detail=f"Invalid recurring: {recurring}")
        extra["recurring"] = recurring

    root = workspace_root()
    store = load_store(root)
    item = add_task_to_checklist(store, checklist_id, section_id, text, **extra)
    if item is None:
        raise HTTPException(status_code=404, detail="Checklist or section not found")
    save_store(store, root)
    return {"ok": True, "task": item.to_dict()}


@app.post("/api/checklists/{checklist_id}/toggle")
def api_toggle(checklist_id: str, payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Toggle one task ({taskId, completed}) or a whole section ({sectionId, completed})."""
    completed = bool(payload.get("completed", True))
    root = workspace_root()
    store = load_store(root)
    checklist = store.get(checklist_id)
    if checklist is None:
        raise HTTPException(status_code=404, detail=f"Checklist not found: {checklist_id}")

    if payload.get("taskId"):
        task_id = str(payload["taskId"])
        hit = find_item(checklist.sections, task_id)
        if hit is None:
            raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
        was_completed = hit[1].completed
        toggle_task(store, checklist_id, task_id, completed)
        if was_completed != completed:
            today = today_str(root)
            stats = load_stats(root, today)
            if completed:
                add_completed_task(stats, today)
            else:
                remove_completed_task(stats, today)
            save_stats(stats, root)
    elif payload.get("sectionId"):
        if not toggle_section(store, checklist_id, str(payload["sectionId"]), completed):
            raise HTTPException(status_code=404, detail="Section not found")
    else:
        raise HTTPException(status_code=400, detail="Missing taskId or sectionId")

    save_store(store, root)
    return {"ok": True, "checklist": store.get(checklist_id).to_dict()}


@app.post("/api/parse")
def api_parse(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Preview a markdown parse without storing anything."""
    markdown = payload.get("markdown")
    if not isinstance(markdown, str):
        raise HTTPException(status_code=400, detail="Missing markdown")
    return parse_markdown_checklist(markdown).to_dict()


@app.post("/api/sync/pull")
def api_sync_pull(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Merge a remote copy ({checklists: [...]}) into the store, newest updatedAt per id wins."""
    remote = payload.get("checklists")
    if not isinstance(remote, list):
        raise HTTPException(status_code=400, detail="checklists must be a list")
    root = workspace_root()
    store = pull_into_store(load_store(root), [c for c in remote if isinstance(c, dict)])
    save_store(store, root)
    logger.info("Merged %d remote checklists", len(remote))
    return {"ok": True, **store.to_dict()}


# ── Goals & focus ─────────────────────────────────────────────

@app.get("/api/goals")
def api_list_goals(username: str = Depends(get_current_user)) -> dict[str, Any]:
    return {"goals": [g.to_dict() for g in load_goals()]}


@app.post("/api/goals/import")
def api_import_goals(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    markdown = _require_text(payload, "markdown")
    root = workspace_root()
    goals = load_goals(root)
    store = load_store(root)
    created = import_goals(markdown, goals, store)
    if not created:
        raise HTTPException(status_code=400, detail="No valid goals found. Use ## for goal titles.")
    save_store(store, root)
    save_goals(goals, root)
    return {"ok": True, "goals": [g.to_dict() for g in created]}


@app.get("/api/focus")
def api_focus(username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    focus = compute_daily_focus(load_goals(root), load_store(root).checklists)
    if focus is None:
        return {"focus": None, "message": "Create a plan to get started"}
    return {"focus": focus.to_dict(), "message": daily_focus_message(focus)}


# ── Execution lock ────────────────────────────────────────────

@app.get("/api/execution")
def api_execution(username: str = Depends(get_current_user)) -> dict[str, Any]:
    return load_execution().to_dict()


@app.post("/api/execution/lock")
def api_lock(payload: dict[str, Any] = Body(default={}), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Lock a task. An empty body locks the current daily-focus task.

    With "startTimer": true a task-sourced work session is queued, sized by
    plannedMinutes or the configured work duration.
    """
    root = workspace_root()
    planned = payload.get("plannedMinutes")
    if planned is not None:
        planned = _positive_int(planned, "plannedMinutes")
    if payload.get("taskText"):
        task = ActiveTask.from_dict(payload)
        task.started_at = 0
        task.planned_minutes = planned
    else:
        focus = compute_daily_focus(load_goals(root), load_store(root).checklists)
        if focus is None or focus.next_task is None:
            raise HTTPException(status_code=409, detail="No focus task to lock")
        task = ActiveTask(
            goal_id=focus.goal.id,
            goal_title=focus.goal.title,
            goal_emoji=focus.goal.emoji,
            task_text=focus.next_task.text,
            checklist_id=focus.checklist.id if focus.checklist else None,
            task_id=focus.next_task.task_id,
            section_id=focus.next_task.section_id,
            planned_minutes=focus.next_task.time_estimate,
        )
        if planned is not None:
            task.planned_minutes = planned

    state = load_execution(root)
    task = lock_task(state, task)
    if payload.get("startTimer"):
        minutes = task.planned_minutes or load_settings(root).pomodoro.work_duration
        start_pomodoro(state, minutes, "task")
    save_execution(state, root)
    hooks = run_hooks("on_task_lock", task.to_dict(), root)
    return {"ok": True, "execution": state.to_dict(), "hooks": hooks}


@app.post("/api/execution/unlock")
def api_unlock(username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    state = load_execution(root)
    released = unlock_task(state)
    save_execution(state, root)
    hooks = run_hooks("on_task_unlock", released.to_dict(), root) if released else []
    return {"ok": True, "released": released.to_dict() if released else None, "hooks": hooks}


@app.post("/api/execution/complete")
def api_complete(username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    state = load_execution(root)
    store = load_store(root)
    task = complete_active_task(state, store)
    if task is None:
        raise HTTPException(status_code=409, detail="No task is locked.")
    logger.info("Completed %r (%s)", task.task_text, username)
    save_store(store, root)
    save_execution(state, root)

    today = today_str(root)
    stats = load_stats(root, today)
    add_completed_task(stats, today)
    save_stats(stats, root)

    hooks = run_hooks("on_task_complete", task.to_dict(), root)
    return {"ok": True, "completed": task.to_dict(), "hooks": hooks}


@app.post("/api/execution/more-time")
def api_more_time(payload: dict[str, Any] = Body(default={}), username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    minutes = _positive_int(payload.get("minutes", 15), "minutes")
    state = load_execution(root)
    if not state.is_task_locked:
        raise HTTPException(status_code=409, detail="No task is locked.")
    command = request_more_time(state, minutes)
    save_execution(state, root)
    return {"ok": True, "pendingStart": command.to_dict()}


# ── Timer ─────────────────────────────────────────────────────

def _timer_view(pomodoro, completion=None, awaiting_outcome: bool = False) -> dict[str, Any]:
    return {
        "pomodoro": pomodoro.state.to_dict(),
        "display": format_clock(pomodoro.state.time_left),
        "progress": round(pomodoro.progress(), 1),
        "completion": asdict(completion) if completion else None,
        "awaitingOutcome": awaiting_outcome,
    }


def _advance_timer(action: str | None = None, mode: str | None = None) -> dict[str, Any]:
    """Load timers, apply queued commands and *action*, tick, record completions, save."""
    root = workspace_root()
    settings = load_settings(root)
    pomodoro, stopwatch = load_timers(settings.pomodoro, root)
    state = load_execution(root)

    if process_pending_start(state, pomodoro):
        save_execution(state, root)

    if action == "start":
        pomodoro.start()
    elif action == "pause":
        pomodoro.pause()
    elif action == "reset":
        pomodoro.reset()
    elif action == "skip":
        pomodoro.skip()
    elif action == "mode":
        pomodoro.switch_mode(mode)

    completion = pomodoro.tick()
    awaiting = False
    if completion is not None:
        if completion.finished_mode == "work":
            today = today_str(root)
            stats = load_stats(root, today)
            add_study_time(stats, completion.duration_seconds, today)
            add_session(stats, completion.duration_seconds, when=now_iso())
            save_stats(stats, root)
            awaiting = state.is_task_locked
        run_hooks("on_pomodoro_complete", {
            "finished_mode": completion.finished_mode,
            "next_mode": completion.next_mode,
            "sessions_completed": completion.sessions_completed,
        }, root)

    save_timers(pomodoro, stopwatch, root)
    return _timer_view(pomodoro, completion, awaiting)


@app.get("/api/timer")
def api_timer(username: str = Depends(get_current_user)) -> dict[str, Any]:
    return _advance_timer()


@app.post("/api/timer/{action}")
def api_timer_action(action: str, payload: dict[str, Any] = Body(default={}), username: str = Depends(get_current_user)) -> dict[str, Any]:
    if action not in {"start", "pause", "reset", "skip", "tick", "mode"}:
        raise HTTPException(status_code=404, detail=f"Unknown timer action: {action}")
    mode = payload.get("mode")
    if action == "mode" and mode not in TIMER_MODES:
        raise HTTPException(status_code=400, detail=f"Invalid mode: {mode}")
    return _advance_timer(None if action == "tick" else action, mode)


# ── Stats ─────────────────────────────────────────────────────

@app.get("/api/stats")
def api_stats(username: str = Depends(get_current_user)) -> dict[str, Any]:
    root = workspace_root()
    stats = load_stats(root)
    settings = load_settings(root)
    data = stats.to_dict()
    data["dailyGoal"] = settings.daily_goal
    data["weeklyGoal"] = settings.weekly_goal
    return data
