#!/usr/bin/env python3
"""StudyFlow TUI: active checklist, daily focus and a live Pomodoro, powered by Textual."""

from __future__ import annotations

import logging
import os
import sys

from rich.markup import escape
from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.reactive import reactive
from textual.widgets import Footer, Header, Label, Static, Tree

from studyflow import (
    ActiveTask,
    Checklist,
    add_completed_task,
    add_session,
    add_study_time,
    complete_active_task,
    compute_daily_focus,
    daily_focus_message,
    format_clock,
    format_duration,
    load_execution,
    load_goals,
    load_settings,
    load_stats,
    load_store,
    load_timers,
    lock_task,
    now_iso,
    process_pending_start,
    remove_completed_task,
    request_more_time,
    run_hooks,
    save_execution,
    save_stats,
    save_store,
    save_timers,
    set_active_checklist,
    start_pomodoro,
    today_str,
    toggle_task,
    unlock_task,
    workspace_root,
)
from studyflow.mutations import find_item
from studyflow.timer import PomodoroCompletion, format_stopwatch

logger = logging.getLogger("studyflow.tui")

MORE_TIME_MINUTES = 10
MODE_LABELS = {"work": "Focus", "shortBreak": "Short break", "longBreak": "Long break"}


CSS = """
Screen {
    layout: vertical;
}

#main-layout {
    height: 1fr;
}

#left-pane {
    width: 3fr;
    padding: 0 1;
    border-right: tall $primary-background-darken-2;
}

#right-pane {
    width: 2fr;
    padding: 0 1;
}

.section-title {
    text-style: bold;
    color: $accent;
    margin: 1 0 0 0;
}

#checklist-tree {
    height: 1fr;
}

#pomodoro-clock {
    height: 3;
    content-align: center middle;
    text-style: bold;
    border: tall $primary-background-darken-2;
}

#focus-line, #lock-line, #stopwatch-line, #stats-line {
    height: auto;
    padding: 0 1;
}

#lock-line {
    color: $warning;
}

#stats-line {
    color: $text-muted;
}
"""


def _item_label(text: str, completed: bool, estimate: int | None) -> str:
    mark = "\u2714" if completed else "\u25cb"
    suffix = f"  ~{format_duration(estimate * 60)}" if estimate else ""
    return f"{mark} {escape(text)}{suffix}"


class StudyFlowApp(App):
    """StudyFlow: work through a checklist one locked task at a time."""

    TITLE = "StudyFlow"
    CSS = CSS
    AUTO_FOCUS = "#checklist-tree"

    BINDINGS = [
        Binding("space", "toggle_timer", "Start/Pause"),
        Binding("k", "skip_timer", "Skip"),
        Binding("r", "reset_timer", "Reset"),
        Binding("l", "lock_focus", "Lock focus"),
        Binding("c", "complete_task", "Complete"),
        Binding("u", "unlock_task", "Unlock"),
        Binding("m", "more_time", "More time"),
        Binding("w", "toggle_stopwatch", "Stopwatch"),
        Binding("a", "lap", "Lap"),
        Binding("n", "next_checklist", "Next list"),
        Binding("q", "quit_app", "Quit"),
    ]

    awaiting_outcome: reactive[bool] = reactive(False)

    def __init__(self) -> None:
        super().__init__()
        self._root = workspace_root()
        self._settings = load_settings(self._root)
        self._store = load_store(self._root)
        self._execution = load_execution(self._root)
        self._pomodoro, self._stopwatch = load_timers(self._settings.pomodoro, self._root)

    def compose(self) -> ComposeResult:
        yield Header()
        yield Horizontal(
            VerticalScroll(
                Label("Checklist", classes="section-title", id="checklist-title"),
                Tree("No checklist", id="checklist-tree"),
                id="left-pane",
            ),
            Vertical(
                Label("Today's focus", classes="section-title"),
                Static(id="focus-line"),
                Static(id="lock-line"),
                Label("Pomodoro", classes="section-title"),
                Static(id="pomodoro-clock"),
                Label("Stopwatch", classes="section-title"),
                Static(id="stopwatch-line"),
                Static(id="stats-line"),
                id="right-pane",
            ),
            id="main-layout",
        )
        yield Footer()

    def on_mount(self) -> None:
        self._rebuild_tree()
        self._refresh_side()
        self.set_interval(1.0, self._tick)
        self.set_interval(0.1, self._refresh_stopwatch)

    # ── Rendering ──────────────────────────────────────────────

    def _rebuild_tree(self) -> None:
        tree = self.query_one("#checklist-tree", Tree)
        tree.clear()
        checklist: Checklist | None = self._store.active_checklist
        title = self.query_one("#checklist-title", Label)
        if checklist is None:
            tree.root.set_label("No active checklist")
            title.update("Checklist")
            return

        heading = escape(f"{checklist.emoji} {checklist.title}" if checklist.emoji else checklist.title)
        title.update(f"{heading}  {checklist.total_completed}/{checklist.total_items}")
        tree.root.set_label(heading)

        def add_items(parent, items, section_id: str) -> None:
            for item in items:
                label = _item_label(item.text, item.completed, item.time_estimate)
                data = (section_id, item.id)
                if item.children:
                    node = parent.add(label, data=data, expand=True)
                    add_items(node, item.children, section_id)
                else:
                    parent.add_leaf(label, data=data)

        for section in checklist.sections:
            name = f"{section.emoji} {section.title}" if section.emoji else section.title
            name = escape(name)
            node = tree.root.add(
                f"{name}  ({section.completed_count}/{section.total_count})",
                data=(section.id, None),
                expand=True,
            )
            add_items(node, section.items, section.id)
        tree.root.expand()

    def _refresh_side(self) -> None:
        goals = load_goals(self._root)
        focus = compute_daily_focus(goals, self._store.checklists)
        if focus is None:
            self.query_one("#focus-line", Static).update("Create a plan to get started")
        else:
            emoji = f"{focus.goal.emoji} " if focus.goal.emoji else ""
            self.query_one("#focus-line", Static).update(
                f"{emoji}{escape(focus.goal.title)}\n{escape(daily_focus_message(focus))}"
            )

        task = self._execution.active_task
        lock_text = f"Locked: {escape(task.task_text)}" if task else ""
        if self.awaiting_outcome:
            lock_text += "\nSession done. c: completed  m: more time  u: unlock"
        self.query_one("#lock-line", Static).update(lock_text)

        st = self._pomodoro.state
        running = "" if st.is_running else "  (paused)"
        self.query_one("#pomodoro-clock", Static).update(
            f"{MODE_LABELS[st.mode]}  {format_clock(self._pomodoro.remaining())}{running}"
            f"  #{st.sessions_completed}"
        )

        today = today_str(self._root)
        stats = load_stats(self._root, today)
        self.query_one("#stats-line", Static).update(
            f"\U0001f525 {stats.current_streak} day streak  ·  "
            f"{stats.total_tasks_completed} tasks  ·  "
            f"{format_duration(stats.total_study_time)} studied"
        )
        self._refresh_stopwatch()

    def _refresh_stopwatch(self) -> None:
        laps = self._stopwatch.state.laps
        last = f"  lap {laps[0].id}: +{format_stopwatch(laps[0].delta)}" if laps else ""
        self.query_one("#stopwatch-line", Static).update(
            f"{format_stopwatch(self._stopwatch.elapsed_ms())}{last}"
        )

    # ── Timer loop ─────────────────────────────────────────────

    def _tick(self) -> None:
        execution = load_execution(self._root)
        if process_pending_start(execution, self._pomodoro):
            save_execution(execution, self._root)
            save_timers(self._pomodoro, self._stopwatch, self._root)
        self._execution = execution

        completion = self._pomodoro.tick()
        if completion is not None:
            save_timers(self._pomodoro, self._stopwatch, self._root)
            self._on_completion(completion)
        self._refresh_side()

    def _on_completion(self, completion: PomodoroCompletion) -> None:
        logger.info("Pomodoro %s finished (%d sessions)", completion.finished_mode, completion.sessions_completed)
        if completion.finished_mode == "work":
            today = today_str(self._root)
            stats = load_stats(self._root, today)
            add_study_time(stats, completion.duration_seconds, today)
            add_session(stats, completion.duration_seconds, when=now_iso())
            save_stats(stats, self._root)
            self.awaiting_outcome = self._execution.is_task_locked
            self.notify("Focus session complete. Time for a break.", title="Pomodoro")
        else:
            self.notify("Break over. Ready to focus?", title="Pomodoro")
        if self._settings.sound_enabled:
            self.bell()
        self._run_hooks("on_pomodoro_complete", {
            "finished_mode": completion.finished_mode,
            "next_mode": completion.next_mode,
            "sessions_completed": completion.sessions_completed,
        })

    @work(thread=True)
    def _run_hooks(self, hook_point: str, context: dict) -> None:
        for result in run_hooks(hook_point, context, self._root):
            if result.get("exit_code"):
                self.call_from_thread(
                    self.notify,
                    result.get("error") or f"{result['command']} exited {result['exit_code']}",
                    title="Hook failed",
                    severity="warning",
                )

    # ── Checklist ──────────────────────────────────────────────

    @on(Tree.NodeSelected, "#checklist-tree")
    def _on_node_selected(self, event: Tree.NodeSelected) -> None:
        data = event.node.data
        checklist = self._store.active_checklist
        if not data or data[1] is None or checklist is None:
            return
        _section_id, item_id = data
        hit = find_item(checklist.sections, item_id)
        if hit is None:
            return
        completed = not hit[1].completed
        toggle_task(self._store, checklist.id, item_id, completed)
        save_store(self._store, self._root)

        today = today_str(self._root)
        stats = load_stats(self._root, today)
        if completed:
            add_completed_task(stats, today)
        else:
            remove_completed_task(stats, today)
        save_stats(stats, self._root)

        self._rebuild_tree()
        self._refresh_side()

    def action_next_checklist(self) -> None:
        checklists = self._store.checklists
        if not checklists:
            return
        ids = [c.id for c in checklists]
        current = self._store.active_checklist_id
        index = (ids.index(current) + 1) % len(ids) if current in ids else 0
        set_active_checklist(self._store, ids[index])
        save_store(self._store, self._root)
        self._rebuild_tree()
        self._refresh_side()

    # ── Pomodoro & stopwatch ───────────────────────────────────

    def _save_timers(self) -> None:
        save_timers(self._pomodoro, self._stopwatch, self._root)
        self._refresh_side()

    def action_toggle_timer(self) -> None:
        self._pomodoro.toggle()
        self._save_timers()

    def action_skip_timer(self) -> None:
        self._pomodoro.skip()
        self._save_timers()

    def action_reset_timer(self) -> None:
        self._pomodoro.reset()
        self._save_timers()

    def action_toggle_stopwatch(self) -> None:
        self._stopwatch.toggle()
        self._save_timers()

    def action_lap(self) -> None:
        if self._stopwatch.lap() is not None:
            self._save_timers()

    # ── Execution lock ─────────────────────────────────────────

    def action_lock_focus(self) -> None:
        """Lock the daily focus task and queue a work session for it."""
        focus = compute_daily_focus(load_goals(self._root), self._store.checklists)
        if focus is None or focus.next_task is None:
            self.notify("Nothing to lock right now.", severity="warning")
            return
        task = lock_task(self._execution, ActiveTask(
            goal_id=focus.goal.id,
            goal_title=focus.goal.title,
            goal_emoji=focus.goal.emoji,
            task_text=focus.next_task.text,
            checklist_id=focus.checklist.id if focus.checklist else None,
            task_id=focus.next_task.task_id,
            section_id=focus.next_task.section_id,
            planned_minutes=focus.next_task.time_estimate,
        ))
        minutes = task.planned_minutes or self._settings.pomodoro.work_duration
        start_pomodoro(self._execution, minutes, "task")
        save_execution(self._execution, self._root)
        self._run_hooks("on_task_lock", task.to_dict())
        self._tick()

    def action_complete_task(self) -> None:
        task = complete_active_task(self._execution, self._store)
        if task is None:
            self.notify("No task is locked.", severity="warning")
            return
        self.awaiting_outcome = False
        save_store(self._store, self._root)
        save_execution(self._execution, self._root)

        today = today_str(self._root)
        stats = load_stats(self._root, today)
        add_completed_task(stats, today)
        save_stats(stats, self._root)

        self.notify(f"Completed: {task.task_text}", title="Nice work")
        self._run_hooks("on_task_complete", task.to_dict())
        self._rebuild_tree()
        self._refresh_side()

    def action_unlock_task(self) -> None:
        released = unlock_task(self._execution)
        self.awaiting_outcome = False
        save_execution(self._execution, self._root)
        if released is not None:
            self._run_hooks("on_task_unlock", released.to_dict())
        self._refresh_side()

    def action_more_time(self) -> None:
        if not self._execution.is_task_locked:
            self.notify("No task is locked.", severity="warning")
            return
        self.awaiting_outcome = False
        request_more_time(self._execution, MORE_TIME_MINUTES)
        save_execution(self._execution, self._root)
        self._tick()

    def action_quit_app(self) -> None:
        save_timers(self._pomodoro, self._stopwatch, self._root)
        self.exit()


# ── Entry point ────────────────────────────────────────────────


def main() -> None:
    logging.basicConfig(
        level=os.environ.get("STUDYFLOW_LOG_LEVEL", "WARNING").upper(),
        filename=os.environ.get("STUDYFLOW_LOG_FILE"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    root = workspace_root()
    if not root.exists():
        print(f"Workspace not found: {root}")
        print("Set STUDYFLOW_ROOT or create the directory first.")
        sys.exit(1)

    app = StudyFlowApp()
    app.run()


if __name__ == "__main__":
    main()
