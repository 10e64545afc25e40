"""Replay controller -- steps the displayed candle window forward on a timer.

Phases are derived from the state value, never stored separately:

    Idle      start_index is None
    Prepared  start_index set, current_index None
    Running   current_index set, running
    Paused    current_index set, not running

At most one timer is live at any moment. Every change of speed or of
running-ness cancels the current timer before a new one is created.
"""

import asyncio
import dataclasses
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from replay.logging import get_logger

logger = get_logger(__name__)

#: Selectable playback speeds (bars per second at 1x = 1).
SPEEDS: tuple[int, ...] = (1, 2, 5, 10)
#: Shortest tick interval regardless of speed.
MIN_TICK_SECONDS = 0.08


class ReplayPhase(str, Enum):
    IDLE = "idle"
    PREPARED = "prepared"
    RUNNING = "running"
    PAUSED = "paused"


@dataclass(frozen=True)
class ReplayState:
    start_index: int | None = None
    current_index: int | None = None
    running: bool = False
    speed: int = 2
    auto_follow: bool = True

    @property
    def phase(self) -> ReplayPhase:
        if self.start_index is None:
            return ReplayPhase.IDLE
        if self.current_index is None:
            return ReplayPhase.PREPARED
        return ReplayPhase.RUNNING if self.running else ReplayPhase.PAUSED

    @property
    def in_progress(self) -> bool:
        """True once playback has started (Running or Paused)."""
        return self.current_index is not None


class Timer(Protocol):
    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


class AsyncioTimer:
    """Repeating timer on the running event loop, rescheduled after each fire."""

    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        self._interval = interval
        self._callback = callback
        self._loop = asyncio.get_running_loop()
        self._cancelled = False
        self._handle = self._loop.call_later(interval, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        self._handle = self._loop.call_later(self._interval, self._fire)
        self._callback()

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()


def tick_interval(speed: int) -> float:
    """Seconds between ticks: ``max(80ms, 1000ms / speed)``."""
    return max(MIN_TICK_SECONDS, (1000 // speed) / 1000)


class ReplayController:
    """Replay state machine plus its single timer.

    Args:
        last_index: Returns the index of the last loaded candle (-1 if none).
        timer_factory: ``(interval_seconds, callback) -> Timer``.
        on_change: Called with the new state after every transition and tick.
        on_follow: Called with ``(from_logical, to_logical)`` whenever the
            running cursor moves or playback starts, while auto-follow is on.
        on_pause: Called when the user pauses, so the session can leave
            drawing mode.
        on_reset: Called after a reset, so the session can clear its selection.
        speed: Initial speed, one of SPEEDS.
        follow_half_window: Bars either side of the cursor to keep visible.
    """

    def __init__(
        self,
        last_index: Callable[[], int],
        timer_factory: TimerFactory = AsyncioTimer,
        on_change: Callable[[ReplayState], None] | None = None,
        on_follow: Callable[[float, float], None] | None = None,
        on_pause: Callable[[], None] | None = None,
        on_reset: Callable[[], None] | None = None,
        speed: int = 2,
        follow_half_window: int = 70,
    ) -> None:
        if speed not in SPEEDS:
            raise ValueError(f"Unsupported replay speed: {speed}")
        self._last_index = last_index
        self._timer_factory = timer_factory
        self._on_change = on_change
        self._on_follow = on_follow
        self._on_pause = on_pause
        self._on_reset = on_reset
        self._follow_half_window = follow_half_window
        self._state = ReplayState(speed=speed)
        self._timer: Timer | None = None

    @property
    def state(self) -> ReplayState:
        return self._state

    @property
    def phase(self) -> ReplayPhase:
        return self._state.phase

    @property
    def has_timer(self) -> bool:
        return self._timer is not None

    # ──────────────────────────────────────────────
    # Transitions
    # ──────────────────────────────────────────────

    def set_start(self, index: int) -> None:
        """Choose the replay start bar. Allowed from any phase; lands in Prepared."""
        last = self._last_index()
        if not 0 <= index <= last:
            raise ValueError(f"Replay start index {index} outside 0..{last}")
        self._stop_timer()
        self._update(start_index=index, current_index=None, running=False)
        logger.debug("replay_start_set", index=index)

    def start(self) -> None:
        """Prepared or Paused -> Running. No-op from Idle or when already Running."""
        if self._state.start_index is None or self._state.running:
            return
        current = self._state.current_index
        if current is None:
            current = self._state.start_index
        self._update(current_index=current, running=True)
        self._restart_timer()
        self._follow(current)
        logger.debug("replay_started", index=current, speed=self._state.speed)

    def resume(self) -> None:
        self.start()

    def pause(self) -> None:
        """Running -> Paused. Also exits drawing mode via ``on_pause``."""
        self._stop_timer()
        if self._state.running:
            self._update(running=False)
        if self._on_pause is not None:
            self._on_pause()

    def toggle(self) -> None:
        if self._state.phase is ReplayPhase.IDLE:
            return
        if self._state.running:
            self.pause()
        else:
            self.start()

    def reset(self) -> None:
        """Any phase -> Idle."""
        self._stop_timer()
        self._update(start_index=None, current_index=None, running=False)
        if self._on_reset is not None:
            self._on_reset()

    def set_speed(self, speed: int) -> None:
        """Change speed without moving the playback position."""
        if speed not in SPEEDS:
            raise ValueError(f"Unsupported replay speed: {speed}")
        self._update(speed=speed)
        if self._state.running:
            self._restart_timer()

    def set_auto_follow(self, enabled: bool) -> None:
        """Turning follow on mid-run recenters on the cursor straight away."""
        self._update(auto_follow=enabled)
        if self._state.running and self._state.current_index is not None:
            self._follow(self._state.current_index)

    def tick(self) -> None:
        """Advance one bar, or auto-pause at the last loaded bar."""
        state = self._state
        if not state.running or state.current_index is None:
            return

        if state.current_index >= self._last_index():
            self._stop_timer()
            self._update(running=False)
            logger.debug("replay_auto_paused", index=state.current_index)
            return

        index = state.current_index + 1
        self._update(current_index=index)
        self._follow(index)

    # ──────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────

    def _follow(self, index: int) -> None:
        if self._state.auto_follow and self._on_follow is not None:
            half = self._follow_half_window
            self._on_follow(index - half, index + half)

    def _update(self, **changes) -> None:
        self._state = dataclasses.replace(self._state, **changes)
        if self._on_change is not None:
            self._on_change(self._state)

    def _restart_timer(self) -> None:
        self._stop_timer()
        self._timer = self._timer_factory(tick_interval(self._state.speed), self.tick)

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
