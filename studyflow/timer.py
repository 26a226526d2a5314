"""Pomodoro and stopwatch engines for StudyFlow.

Both timers derive their displayed value from absolute timestamps instead of
counting ticks: the Pomodoro stores the wall-clock time at which the current
interval ends, the stopwatch stores when its current segment began. A tick
that arrives late (suspended process, busy UI loop) therefore lands on the
correct value immediately.

Timestamps are integer epoch milliseconds. Every operation accepts an
explicit ``now_ms``; when omitted the timer's clock is used.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from studyflow.fileio import read_json, write_json_atomic
from studyflow.models import (
    Lap,
    PendingStart,
    PomodoroSettings,
    PomodoroState,
    StopwatchState,
    TIMER_MODES,
)
from studyflow.workspace import timer_path

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class PomodoroCompletion:
    """Raised (returned) by tick() when an interval runs out."""

    finished_mode: str
    next_mode: str
    sessions_completed: int
    duration_seconds: int
    completed_at: int


class PomodoroTimer:
    """Work / short break / long break countdown."""

    def __init__(
        self,
        settings: PomodoroSettings | None = None,
        state: PomodoroState | None = None,
        clock: Clock = wall_clock_ms,
    ) -> None:
        self.settings = settings or PomodoroSettings()
        if state is None:
            state = PomodoroState(time_left=self.settings.duration_seconds("work"))
        self.state = state
        self.clock = clock

    def _now(self, now_ms: int | None) -> int:
        return self.clock() if now_ms is None else now_ms

    @property
    def mode(self) -> str:
        return self.state.mode

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    def duration(self, mode: str | None = None) -> int:
        """Configured length in seconds of *mode* (default: current mode)."""
        return self.settings.duration_seconds(mode or self.state.mode)

    def remaining(self, now_ms: int | None = None) -> int:
        """Seconds left, recomputed from the stored end time while running."""
        st = self.state
        if not st.is_running or st.target_end_time is None:
            return st.time_left
        return max(0, math.ceil((st.target_end_time - self._now(now_ms)) / 1000))

    def progress(self, now_ms: int | None = None) -> float:
        """Elapsed share of the current interval, 0-100."""
        total = max(self.duration(), self.state.time_left, 1)
        return min(100.0, max(0.0, (total - self.remaining(now_ms)) / total * 100))

    def start(self, now_ms: int | None = None) -> None:
        st = self.state
        if st.is_running:
            return
        if st.time_left <= 0:
            st.time_left = self.duration()
        st.target_end_time = self._now(now_ms) + st.time_left * 1000
        st.is_running = True

    def pause(self, now_ms: int | None = None) -> None:
        st = self.state
        if not st.is_running:
            return
        st.time_left = self.remaining(now_ms)
        st.is_running = False
        st.target_end_time = None

    def toggle(self, now_ms: int | None = None) -> None:
        if self.state.is_running:
            self.pause(now_ms)
        else:
            self.start(now_ms)

    def tick(self, now_ms: int | None = None) -> PomodoroCompletion | None:
        """Refresh time_left; on reaching zero move to the next mode."""
        st = self.state
        if not st.is_running:
            return None
        now = self._now(now_ms)
        st.time_left = self.remaining(now)
        if st.time_left > 0:
            return None
        return self._complete(now)

    def _complete(self, now: int) -> PomodoroCompletion:
        st = self.state
        finished = st.mode
        duration = self.duration(finished)
        if finished == "work":
            st.sessions_completed += 1
            if st.sessions_completed % self.settings.sessions_until_long_break == 0:
                next_mode = "longBreak"
            else:
                next_mode = "shortBreak"
        else:
            next_mode = "work"
        st.mode = next_mode
        st.time_left = self.duration(next_mode)
        st.is_running = False
        st.target_end_time = None
        logger.debug("Pomodoro %s finished, next %s", finished, next_mode)
        return PomodoroCompletion(
            finished_mode=finished,
            next_mode=next_mode,
            sessions_completed=st.sessions_completed,
            duration_seconds=duration,
            completed_at=now,
        )

    def skip(self) -> None:
        """Jump to the next mode without counting a session."""
        self._enter("shortBreak" if self.state.mode == "work" else "work")

    def reset(self) -> None:
        """Stop and restore the current mode's full duration."""
        self._enter(self.state.mode)

    def switch_mode(self, mode: str) -> None:
        if mode not in TIMER_MODES:
            raise ValueError(f"Unknown timer mode: {mode!r}")
        self._enter(mode)

    def _enter(self, mode: str) -> None:
        st = self.state
        st.mode = mode
        st.time_left = self.duration(mode)
        st.is_running = False
        st.target_end_time = None

    def consume(self, command: PendingStart | None, now_ms: int | None = None) -> bool:
        """Apply a pending start command once.

        Commands whose timestamp is not strictly newer than the last one
        processed are ignored. Returns True when the command was applied.
        """
        st = self.state
        if command is None or command.timestamp <= st.last_processed_timestamp:
            return False
        st.last_processed_timestamp = command.timestamp
        st.mode = "work"
        st.time_left = command.duration_seconds
        st.target_end_time = self._now(now_ms) + command.duration_seconds * 1000
        st.is_running = True
        logger.debug("Consumed %s start for %ds", command.source, command.duration_seconds)
        return True


class Stopwatch:
    """Count-up timer with laps."""

    def __init__(self, state: StopwatchState | None = None, clock: Clock = wall_clock_ms) -> None:
        self.state = state or StopwatchState()
        self.clock = clock

    def _now(self, now_ms: int | None) -> int:
        return self.clock() if now_ms is None else now_ms

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    def elapsed_ms(self, now_ms: int | None = None) -> int:
        st = self.state
        if not st.is_running or st.segment_start is None:
            return st.accumulated
        return st.accumulated + max(0, self._now(now_ms) - st.segment_start)

    def start(self, now_ms: int | None = None) -> None:
        if self.state.is_running:
            return
        self.state.segment_start = self._now(now_ms)
        self.state.is_running = True

    def pause(self, now_ms: int | None = None) -> None:
        st = self.state
        if not st.is_running:
            return
        st.accumulated = self.elapsed_ms(now_ms)
        st.segment_start = None
        st.is_running = False

    def toggle(self, now_ms: int | None = None) -> None:
        if self.state.is_running:
            self.pause(now_ms)
        else:
            self.start(now_ms)

    def lap(self, now_ms: int | None = None) -> Lap | None:
        """Record a lap (newest first). No-op before any time has elapsed."""
        st = self.state
        current = self.elapsed_ms(now_ms)
        if current == 0:
            return None
        lap = Lap(id=len(st.laps) + 1, time=current, delta=current - st.last_lap_time)
        st.laps.insert(0, lap)
        st.last_lap_time = current
        return lap

    def clear_laps(self) -> None:
        self.state.laps = []
        self.state.last_lap_time = 0

    def reset(self) -> None:
        self.state = StopwatchState()


# ── Persistence ───────────────────────────────────────────────


def load_timers(
    settings: PomodoroSettings | None = None,
    root: Path | None = None,
    clock: Clock = wall_clock_ms,
) -> tuple[PomodoroTimer, Stopwatch]:
    """Restore both timers from timer.json (defaults when missing or corrupt)."""
    data = read_json(timer_path(root))
    settings = settings or PomodoroSettings()
    pomodoro_data = data.get("pomodoro")
    pomodoro_state = PomodoroState.from_dict(pomodoro_data) if pomodoro_data else None
    pomodoro = PomodoroTimer(settings, pomodoro_state, clock)
    stopwatch = Stopwatch(StopwatchState.from_dict(data.get("stopwatch") or {}), clock)
    return pomodoro, stopwatch


def save_timers(pomodoro: PomodoroTimer, stopwatch: Stopwatch, root: Path | None = None) -> None:
    write_json_atomic(
        timer_path(root),
        {"pomodoro": pomodoro.state.to_dict(), "stopwatch": stopwatch.state.to_dict()},
    )


# ── Display ───────────────────────────────────────────────────


def format_clock(seconds: int) -> str:
    """1500 -> '25:00'."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"


def format_duration(seconds: int) -> str:
    """3900 -> '1h 5m', 303 -> '5m 3s', 7 -> '7s'."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_stopwatch(ms: int) -> str:
    """Elapsed milliseconds as [HH:]MM:SS.cc."""
    ms = max(0, int(ms))
    hours, rest = divmod(ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, rest = divmod(rest, 1000)
    centis = rest // 10
    if hours:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}.{centis:02d}"
    return f"{minutes:02d}:{secs:02d}.{centis:02d}"
