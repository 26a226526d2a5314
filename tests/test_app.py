"""Tests for ui/app.py: the HTTP API over a seeded workspace."""

import pytest
from fastapi.testclient import TestClient

from studyflow.checklists import load_store
from studyflow.execution import load_execution
from studyflow.mutations import find_item
from studyflow.stats import load_stats
from ui.app import app


@pytest.fixture
def client(workspace):
    return TestClient(app)


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": "true"}


def test_index_page(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert "Biology" in resp.text
    assert "Organelles" in resp.text


def test_list_checklists(client):
    data = client.get("/api/checklists").json()
    assert data["activeChecklistId"] == "cl-bio"
    assert [c["id"] for c in data["checklists"]] == ["cl-bio"]


def test_get_checklist_and_raw(client):
    assert client.get("/api/checklists/cl-bio").json()["title"] == "Biology"
    assert client.get("/api/checklists/missing").status_code == 404

    raw = client.get("/raw/checklists/cl-bio")
    assert raw.status_code == 200
    assert raw.text.startswith("# \U0001f9ec Biology")
    assert "- [x] Cell membrane" in raw.text


def test_create_checklist(client, workspace):
    resp = client.post("/api/checklists", json={"title": "Errands"})
    assert resp.status_code == 200
    checklist = resp.json()["checklist"]
    assert checklist["sections"][0]["title"] == "Tasks"
    assert load_store(workspace).active_checklist_id == checklist["id"]

    assert client.post("/api/checklists", json={"title": "  "}).status_code == 400
    assert client.post("/api/checklists", json={"title": "X", "type": "fancy"}).status_code == 400


def test_import_markdown(client, workspace):
    md = "# Physics\n## Motion\n- [ ] Kinematics (~20m)\n    - [ ] Vectors\n"
    resp = client.post("/api/checklists/markdown", json={"markdown": md, "sourceUrls": ["https://youtu.be/x"]})
    assert resp.status_code == 200
    body = resp.json()
    assert body["checklist"]["totalItems"] == 2
    assert body["checklist"]["sourceUrls"] == ["https://youtu.be/x"]
    assert body["hooks"] == []
    assert load_store(workspace).active_checklist.title == "Physics"

    assert client.post("/api/checklists/markdown", json={}).status_code == 400


def test_update_checklist(client):
    resp = client.put("/api/checklists/cl-bio", json={"title": "Bio"})
    assert resp.json()["checklist"]["title"] == "Bio"

    resp = client.put("/api/checklists/cl-bio", json={"markdown": "# Bio\n## New\n- [ ] Only task\n"})
    checklist = resp.json()["checklist"]
    assert checklist["totalItems"] == 1
    assert checklist["sections"][0]["title"] == "New"

    assert client.put("/api/checklists/cl-bio", json={}).status_code == 400
    assert client.put("/api/checklists/missing", json={"title": "x"}).status_code == 404


def test_delete_and_duplicate(client):
    dup = client.post("/api/checklists/cl-bio/duplicate").json()["checklist"]
    assert dup["title"] == "Biology (Copy)"
    assert client.post("/api/checklists/missing/duplicate").status_code == 404

    resp = client.delete("/api/checklists/cl-bio").json()
    assert resp["activeChecklistId"] is None
    assert client.delete("/api/checklists/cl-bio").status_code == 404

    assert client.post(f"/api/checklists/{dup['id']}/activate").json()["activeChecklistId"] == dup["id"]
    assert client.post("/api/checklists/missing/activate").status_code == 404


def test_add_task(client):
    resp = client.post(
        "/api/checklists/cl-bio/tasks",
        json={"sectionId": "sec-genetics", "text": "Transcription", "timeEstimate": 15, "priority": "high"},
    )
    assert resp.status_code == 200
    assert resp.json()["task"]["timeEstimate"] == 15

    bad = client.post("/api/checklists/cl-bio/tasks", json={"sectionId": "sec-genetics", "text": "x", "priority": "max"})
    assert bad.status_code == 400
    missing = client.post("/api/checklists/cl-bio/tasks", json={"sectionId": "nope", "text": "x"})
    assert missing.status_code == 404


def test_toggle_task_updates_stats(client, workspace):
    resp = client.post("/api/checklists/cl-bio/toggle", json={"taskId": "t-mito", "completed": True})
    assert resp.status_code == 200
    assert resp.json()["checklist"]["totalCompleted"] == 2
    assert load_stats(workspace).total_tasks_completed == 1

    # Same value again does not count twice
    client.post("/api/checklists/cl-bio/toggle", json={"taskId": "t-mito", "completed": True})
    assert load_stats(workspace).total_tasks_completed == 1

    client.post("/api/checklists/cl-bio/toggle", json={"taskId": "t-mito", "completed": False})
    assert load_stats(workspace).total_tasks_completed == 0


def test_toggle_section_and_errors(client):
    resp = client.post("/api/checklists/cl-bio/toggle", json={"sectionId": "sec-cells", "completed": True})
    assert resp.json()["checklist"]["totalCompleted"] == 3

    assert client.post("/api/checklists/cl-bio/toggle", json={"completed": True}).status_code == 400
    assert client.post("/api/checklists/cl-bio/toggle", json={"taskId": "nope"}).status_code == 404
    assert client.post("/api/checklists/missing/toggle", json={"taskId": "t-dna"}).status_code == 404


def test_parse_preview(client, workspace):
    resp = client.post("/api/parse", json={"markdown": "## S\n- [ ] a !!\n"})
    data = resp.json()
    assert data["title"] == "Untitled Checklist"
    assert data["sections"][0]["items"][0]["priority"] == "medium"
    assert len(load_store(workspace).checklists) == 1


def test_goals_import(client):
    resp = client.post("/api/goals/import", json={"markdown": "## Read\nhours: 2\n"})
    assert resp.status_code == 200
    assert resp.json()["goals"][0]["targetMinutes"] == 120
    assert len(client.get("/api/goals").json()["goals"]) == 2

    assert client.post("/api/goals/import", json={"markdown": "no goals here"}).status_code == 400


def test_focus(client):
    data = client.get("/api/focus").json()
    assert data["focus"]["goal"]["id"] == "goal-bio"
    assert data["focus"]["nextTask"]["taskId"] == "t-organelles"
    assert data["message"] == "Organelles"


def test_lock_focus_task_and_start_timer(client, workspace):
    resp = client.post("/api/execution/lock", json={"startTimer": True})
    assert resp.status_code == 200
    execution = resp.json()["execution"]
    assert execution["isTaskLocked"] is True
    assert execution["activeTask"]["taskId"] == "t-organelles"
    assert execution["pendingStart"]["durationSeconds"] == 1800
    assert execution["pendingStart"]["source"] == "task"

    timer = client.get("/api/timer").json()
    assert timer["pomodoro"]["isRunning"] is True
    assert timer["pomodoro"]["mode"] == "work"
    assert 1790 < timer["pomodoro"]["timeLeft"] <= 1800
    assert load_execution(workspace).pending_start is None


def test_lock_explicit_task(client):
    resp = client.post("/api/execution/lock", json={"taskText": "Read notes", "goalId": "goal-bio"})
    task = resp.json()["execution"]["activeTask"]
    assert task["taskText"] == "Read notes"
    assert task["startedAt"] > 0
    assert resp.json()["execution"]["pendingStart"] is None


def test_complete_locked_task(client, workspace):
    client.post("/api/execution/lock", json={})
    resp = client.post("/api/execution/complete")
    assert resp.status_code == 200
    assert resp.json()["completed"]["taskId"] == "t-organelles"

    checklist = load_store(workspace).get("cl-bio")
    _, item = find_item(checklist.sections, "t-organelles")
    assert item.completed is True
    assert load_stats(workspace).total_tasks_completed == 1
    assert client.get("/api/execution").json()["isTaskLocked"] is False

    # Nothing locked any more
    assert client.post("/api/execution/complete").status_code == 409


def test_unlock_and_more_time(client):
    assert client.post("/api/execution/more-time", json={}).status_code == 409

    client.post("/api/execution/lock", json={})
    resp = client.post("/api/execution/more-time", json={"minutes": 10})
    assert resp.json()["pendingStart"]["durationSeconds"] == 600
    assert resp.json()["pendingStart"]["source"] == "moreTime"
    assert client.post("/api/execution/more-time", json={"minutes": 0}).status_code == 400

    released = client.post("/api/execution/unlock").json()["released"]
    assert released["taskId"] == "t-organelles"
    assert client.post("/api/execution/unlock").json()["released"] is None


def test_timer_actions(client):
    started = client.post("/api/timer/start", json={}).json()
    assert started["pomodoro"]["isRunning"] is True

    paused = client.post("/api/timer/pause", json={}).json()
    assert paused["pomodoro"]["isRunning"] is False

    skipped = client.post("/api/timer/skip", json={}).json()
    assert skipped["pomodoro"]["mode"] == "shortBreak"
    assert skipped["display"] == "05:00"

    switched = client.post("/api/timer/mode", json={"mode": "longBreak"}).json()
    assert switched["pomodoro"]["timeLeft"] == 900

    assert client.post("/api/timer/mode", json={"mode": "nap"}).status_code == 400
    assert client.post("/api/timer/explode", json={}).status_code == 404


def test_stats(client):
    data = client.get("/api/stats").json()
    assert data["dailyGoal"] == 120
    assert data["weeklyGoal"] == 600
    assert data["totalStudyTime"] == 0


def test_basic_auth(client, monkeypatch):
    monkeypatch.setenv("STUDYFLOW_USERNAME", "ada")
    monkeypatch.setenv("STUDYFLOW_PASSWORD", "s3cret")

    assert client.get("/api/checklists").status_code == 401
    assert client.get("/api/checklists", auth=("ada", "wrong")).status_code == 401
    assert client.get("/api/checklists", auth=("ada", "s3cret")).status_code == 200
    # Health check stays open
    assert client.get("/healthz").status_code == 200


def test_add_task_tags_and_recurring(client, workspace):
    resp = client.post(
        "/api/checklists/cl-bio/tasks",
        json={"sectionId": "sec-genetics", "text": "Review flashcards", "tags": ["review", " "], "recurring": "daily"},
    )
    assert resp.status_code == 200
    task = resp.json()["task"]
    assert task["tags"] == ["review"]
    assert task["recurring"] == "daily"

    _, item = find_item(load_store(workspace).get("cl-bio").sections, task["id"])
    assert item.recurring == "daily"

    bad_tags = client.post("/api/checklists/cl-bio/tasks", json={"sectionId": "sec-genetics", "text": "x", "tags": "review"})
    assert bad_tags.status_code == 400
    bad_recurring = client.post(
        "/api/checklists/cl-bio/tasks", json={"sectionId": "sec-genetics", "text": "x", "recurring": "hourly"}
    )
    assert bad_recurring.status_code == 400


def test_lock_rejects_bad_planned_minutes(client, workspace):
    bad = client.post("/api/execution/lock", json={"taskText": "Read", "plannedMinutes": -5, "startTimer": True})
    assert bad.status_code == 400
    assert client.post("/api/execution/lock", json={"plannedMinutes": "soon"}).status_code == 400
    assert load_execution(workspace).active_task is None

    ok = client.post("/api/execution/lock", json={"taskText": "Read", "startedAt": "yesterday", "plannedMinutes": 20})
    assert ok.status_code == 200
    assert ok.json()["execution"]["activeTask"]["plannedMinutes"] == 20


def test_sync_pull_merges_newer_remote(client, workspace):
    remote = [
        {"id": "cl-bio", "title": "Biology (remote)", "updatedAt": "2026-03-01T00:00:00.000+00:00", "sections": []},
        {"id": "cl-chem", "title": "Chemistry", "updatedAt": "2026-01-15T00:00:00.000+00:00", "sections": []},
    ]
    resp = client.post("/api/sync/pull", json={"checklists": remote})
    assert resp.status_code == 200
    assert [c["id"] for c in resp.json()["checklists"]] == ["cl-bio", "cl-chem"]
    assert load_store(workspace).get("cl-bio").title == "Biology (remote)"

    stale = [{"id": "cl-bio", "title": "Stale", "updatedAt": "2025-01-01T00:00:00.000+00:00"}]
    client.post("/api/sync/pull", json={"checklists": stale})
    assert load_store(workspace).get("cl-bio").title == "Biology (remote)"

    assert client.post("/api/sync/pull", json={"checklists": {"id": "x"}}).status_code == 400
