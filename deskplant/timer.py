"""
DeskPlant - Pomodoro Timer Engine

Focus/break state machine. The engine does no I/O and never sleeps: a
ticker collaborator calls tick() once per second while a phase is active,
and the engine starts/stops that ticker as it enters and leaves active
phases.

State transitions:
IDLE -> WORKING (start_work) or BREAK (start_break)
WORKING/BREAK -> PAUSED (pause)
PAUSED -> the phase that was paused (resume), or IDLE when nothing remains
WORKING/BREAK -> IDLE (countdown reaches zero, or skip)
Any -> IDLE (stop)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Protocol

from deskplant.config import (
    LONG_BREAK_MINUTES_RANGE,
    SHORT_BREAK_MINUTES_RANGE,
    WORK_MINUTES_RANGE,
    validate_minutes,
)
from deskplant.events import Event
from deskplant.exceptions import StateTransitionError
from deskplant.logging import TimerLogEntry, now_iso, timer_logger

logger = logging.getLogger(__name__)

TICK_SECONDS = 1.0


class TimerState(Enum):
    """Possible states of the timer."""

    IDLE = auto()  # Nothing running, remaining == 0
    WORKING = auto()  # Focus phase counting down
    BREAK = auto()  # Short or long break counting down
    PAUSED = auto()  # Countdown frozen, phase remembered


VALID_TRANSITIONS: dict[TimerState, set[TimerState]] = {
    TimerState.IDLE: {TimerState.WORKING, TimerState.BREAK, TimerState.IDLE},
    TimerState.WORKING: {TimerState.IDLE, TimerState.PAUSED},
    TimerState.BREAK: {TimerState.IDLE, TimerState.PAUSED},
    TimerState.PAUSED: {TimerState.WORKING, TimerState.BREAK, TimerState.IDLE},
}

ACTIVE_STATES = (TimerState.WORKING, TimerState.BREAK)


class Ticker(Protocol):
    """Periodic driver that calls back once per TICK_SECONDS."""

    def start(self, callback: Callable[[], None]) -> None: ...

    def stop(self) -> None: ...


@dataclass(frozen=True)
class WorkCompleted:
    """Fired when a focus phase ends, either by countdown or skip."""

    skipped: bool
    sessions_completed: int
    duration_seconds: float
    completed_at: datetime = field(default_factory=datetime.now)

    @property
    def duration_minutes(self) -> int:
        return int(self.duration_seconds // 60)


@dataclass(frozen=True)
class BreakCompleted:
    """Fired when a break ends, either by countdown or skip."""

    skipped: bool
    long_break: bool
    duration_seconds: float
    completed_at: datetime = field(default_factory=datetime.now)


def format_mmss(seconds: float) -> str:
    """Render seconds as zero-padded MM:SS."""
    whole = int(seconds)
    return f"{whole // 60:02d}:{whole % 60:02d}"


class TimerEngine:
    """
    The focus/break state machine.

    Events:
        on_work_completed(WorkCompleted)
        on_break_completed(BreakCompleted)
        on_state_changed(old_state, new_state)
        on_tick(remaining_seconds)
    """

    def __init__(
        self,
        work_minutes: int = 25,
        short_break_minutes: int = 5,
        long_break_minutes: int = 15,
        long_break_every: int = 4,
        sessions_completed: int = 0,
        ticker: Ticker | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.work_duration = validate_minutes("work", work_minutes, WORK_MINUTES_RANGE) * 60.0
        self.break_duration = (
            validate_minutes("short break", short_break_minutes, SHORT_BREAK_MINUTES_RANGE) * 60.0
        )
        self.long_break_duration = (
            validate_minutes("long break", long_break_minutes, LONG_BREAK_MINUTES_RANGE) * 60.0
        )
        self.long_break_every = long_break_every
        self.sessions_completed = sessions_completed

        self._state = TimerState.IDLE
        self._remaining = 0.0
        self._phase_duration = 0.0
        self._paused_phase: TimerState | None = None
        self._break_is_long = False
        self._ticker = ticker
        self._clock = clock

        self.on_work_completed = Event("work_completed")
        self.on_break_completed = Event("break_completed")
        self.on_state_changed = Event("state_changed")
        self.on_tick = Event("tick")

    # ---- Read-only properties ----

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def remaining(self) -> float:
        return self._remaining

    @property
    def phase_duration(self) -> float:
        """Total length of the phase currently running or paused."""
        return self._phase_duration

    @property
    def paused_phase(self) -> TimerState | None:
        return self._paused_phase

    @property
    def phase(self) -> TimerState:
        """WORKING or BREAK while a phase is running or paused, else IDLE."""
        if self._state == TimerState.PAUSED and self._paused_phase is not None:
            return self._paused_phase
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state in ACTIVE_STATES

    @property
    def is_long_break(self) -> bool:
        return self.phase == TimerState.BREAK and self._break_is_long

    @property
    def next_break_is_long(self) -> bool:
        """Whether start_break() would pick the long break right now."""
        return self.sessions_completed > 0 and self.sessions_completed % self.long_break_every == 0

    @property
    def formatted_time(self) -> str:
        return format_mmss(self._remaining)

    @property
    def progress_percentage(self) -> float:
        """Fraction of the current phase elapsed, in [0, 1]; 0 while idle."""
        if self._state == TimerState.IDLE or self._phase_duration <= 0:
            return 0.0
        progress = (self._phase_duration - self._remaining) / self._phase_duration
        return max(0.0, min(1.0, progress))

    @property
    def work_minutes(self) -> int:
        return int(self.work_duration // 60)

    # ---- Configuration ----

    def set_durations(
        self,
        work: int | None = None,
        short_break: int | None = None,
        long_break: int | None = None,
    ) -> None:
        """
        Change phase lengths (minutes). Takes effect from the next phase.

        Raises:
            ConfigError: If any value is outside its bounds
        """
        # Validate everything before touching anything
        if work is not None:
            validate_minutes("work", work, WORK_MINUTES_RANGE)
        if short_break is not None:
            validate_minutes("short break", short_break, SHORT_BREAK_MINUTES_RANGE)
        if long_break is not None:
            validate_minutes("long break", long_break, LONG_BREAK_MINUTES_RANGE)

        if work is not None:
            self.work_duration = work * 60.0
        if short_break is not None:
            self.break_duration = short_break * 60.0
        if long_break is not None:
            self.long_break_duration = long_break * 60.0

    def durations_minutes(self) -> dict[str, int]:
        return {
            "work": int(self.work_duration // 60),
            "short_break": int(self.break_duration // 60),
            "long_break": int(self.long_break_duration // 60),
        }

    # ---- Commands ----

    def start_work(self) -> None:
        """
        Begin a focus phase.

        Raises:
            StateTransitionError: If the timer is not idle
        """
        self._require_idle(TimerState.WORKING)
        self._begin_phase(TimerState.WORKING, self.work_duration)
        self._log("start_work", TimerState.IDLE)

    def start_break(self) -> None:
        """
        Begin a break; the long break is chosen here, once.

        Raises:
            StateTransitionError: If the timer is not idle
        """
        self._require_idle(TimerState.BREAK)
        self._break_is_long = self.next_break_is_long
        duration = self.long_break_duration if self._break_is_long else self.break_duration
        self._begin_phase(TimerState.BREAK, duration)
        self._log("start_long_break" if self._break_is_long else "start_break", TimerState.IDLE)

    def pause(self) -> bool:
        """Freeze the countdown. Returns False if nothing is running."""
        if self._state not in ACTIVE_STATES:
            logger.warning("Cannot pause timer in state %s", self._state.name)
            return False
        previous = self._state
        self._paused_phase = previous
        self._stop_ticking()
        self._set_state(TimerState.PAUSED)
        self._log("pause", previous)
        return True

    def resume(self) -> bool:
        """Continue the paused phase. Returns False if not paused."""
        if self._state != TimerState.PAUSED:
            logger.warning("Cannot resume timer in state %s", self._state.name)
            return False

        phase = self._paused_phase
        self._paused_phase = None
        if self._remaining <= 0 or phase is None:
            self._remaining = 0.0
            self._set_state(TimerState.IDLE)
            self._log("resume_expired", TimerState.PAUSED)
            return True

        self._set_state(phase)
        self._start_ticking()
        self._log("resume", TimerState.PAUSED)
        return True

    def stop(self) -> None:
        """Abandon whatever is running. No completion event is fired."""
        previous = self._state
        self._stop_ticking()
        self._remaining = 0.0
        self._paused_phase = None
        self._set_state(TimerState.IDLE)
        if previous != TimerState.IDLE:
            self._log("stop", previous)

    def skip(self) -> bool:
        """
        End the running phase early.

        Skipped work fires WorkCompleted(skipped=True) without counting the
        session. Returns False when no phase is running.
        """
        if self._state == TimerState.WORKING:
            self._complete_work(skipped=True)
            return True
        if self._state == TimerState.BREAK:
            self._complete_break(skipped=True)
            return True
        logger.warning("Nothing to skip in state %s", self._state.name)
        return False

    def tick(self) -> None:
        """Advance the countdown by one second."""
        if self._state not in ACTIVE_STATES:
            # Late tick from a driver that was just stopped
            return

        if self._remaining > 0:
            self._remaining = max(0.0, self._remaining - TICK_SECONDS)
            self.on_tick.emit(self._remaining)

        if self._remaining <= 0:
            if self._state == TimerState.WORKING:
                self._complete_work(skipped=False)
            else:
                self._complete_break(skipped=False)

    # ---- Internals ----

    def _require_idle(self, target: TimerState) -> None:
        if self._state != TimerState.IDLE:
            valid_targets = VALID_TRANSITIONS.get(self._state, set())
            valid_names = ", ".join(sorted(s.name for s in valid_targets)) or "none"
            raise StateTransitionError(
                f"Invalid timer transition: {self._state.name} -> {target.name}. "
                f"Valid transitions from {self._state.name}: {valid_names}",
                from_state=self._state.name,
                to_state=target.name,
            )

    def _set_state(self, new_state: TimerState) -> None:
        if new_state not in VALID_TRANSITIONS[self._state]:
            raise StateTransitionError(
                f"Invalid timer transition: {self._state.name} -> {new_state.name}",
                from_state=self._state.name,
                to_state=new_state.name,
            )
        old_state = self._state
        self._state = new_state
        if old_state != new_state:
            self.on_state_changed.emit(old_state, new_state)

    def _begin_phase(self, phase: TimerState, duration: float) -> None:
        self._remaining = duration
        self._phase_duration = duration
        self._paused_phase = None
        self._set_state(phase)
        self._start_ticking()

    def _complete_work(self, skipped: bool) -> None:
        self._stop_ticking()
        if not skipped:
            self.sessions_completed += 1
        duration = self._phase_duration
        self._remaining = 0.0
        self._set_state(TimerState.IDLE)
        self._log("work_skipped" if skipped else "work_completed", TimerState.WORKING, skipped=skipped)
        self.on_work_completed.emit(
            WorkCompleted(
                skipped=skipped,
                sessions_completed=self.sessions_completed,
                duration_seconds=duration,
                completed_at=self._clock(),
            )
        )

    def _complete_break(self, skipped: bool) -> None:
        self._stop_ticking()
        duration = self._phase_duration
        self._remaining = 0.0
        self._set_state(TimerState.IDLE)
        self._log("break_skipped" if skipped else "break_completed", TimerState.BREAK, skipped=skipped)
        self.on_break_completed.emit(
            BreakCompleted(
                skipped=skipped,
                long_break=self._break_is_long,
                duration_seconds=duration,
                completed_at=self._clock(),
            )
        )

    def _start_ticking(self) -> None:
        if self._ticker is not None:
            self._ticker.stop()
            self._ticker.start(self.tick)

    def _stop_ticking(self) -> None:
        if self._ticker is not None:
            self._ticker.stop()

    def _log(self, event: str, from_state: TimerState, skipped: bool = False) -> None:
        timer_logger.info(
            TimerLogEntry(
                timestamp=now_iso(),
                event=event,
                from_state=from_state.name,
                to_state=self._state.name,
                remaining_seconds=self._remaining,
                phase_duration_seconds=self._phase_duration,
                sessions_completed=self.sessions_completed,
                skipped=skipped,
            ).to_json()
        )
