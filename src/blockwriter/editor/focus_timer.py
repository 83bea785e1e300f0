"""Focus timer: a countdown for distraction-free writing sprints."""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional

import structlog

from blockwriter.services.exceptions import FocusTimerError

logger = structlog.get_logger()

FOCUS_PRESETS = (15, 25, 30, 45, 60)
DEFAULT_FOCUS_MINUTES = 25


class FocusTimerState(str, Enum):
    """Focus timer states."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


class FocusTimer:
    """
    Countdown state machine: idle -> running -> completed, or running -> idle on stop.

    The timer does not keep time itself; ``tick()`` advances it by one
    second. Completion raises a one-shot flag read with
    ``consume_completion()``.
    """

    def __init__(self, presets: Iterable[int] = FOCUS_PRESETS) -> None:
        self.presets = tuple(presets)
        self.state = FocusTimerState.IDLE
        self.duration_seconds = 0
        self.remaining_seconds = 0
        self._completion_pending = False

    @property
    def running(self) -> bool:
        return self.state is FocusTimerState.RUNNING

    def start(self, duration_minutes: int) -> None:
        """Start a countdown, stopping any run in progress first.

        Raises:
            FocusTimerError: If duration_minutes is not one of the presets
        """
        if (
            isinstance(duration_minutes, bool)
            or not isinstance(duration_minutes, int)
            or duration_minutes not in self.presets
        ):
            raise FocusTimerError(
                f"Focus duration must be one of {list(self.presets)} minutes, got {duration_minutes!r}"
            )
        if self.running:
            self.stop()
        self.duration_seconds = duration_minutes * 60
        self.remaining_seconds = self.duration_seconds
        self.state = FocusTimerState.RUNNING
        self._completion_pending = False
        logger.info("focus_timer_started", duration_minutes=duration_minutes)

    def tick(self) -> bool:
        """Advance one second.

        Returns:
            True if this tick completed the countdown
        """
        if not self.running:
            return False
        self.remaining_seconds -= 1
        if self.remaining_seconds > 0:
            return False
        self.remaining_seconds = 0
        self.state = FocusTimerState.COMPLETED
        self._completion_pending = True
        logger.info("focus_timer_completed", duration_seconds=self.duration_seconds)
        return True

    def stop(self) -> bool:
        """Stop a running countdown and discard the remaining time.

        Stopping a timer that is not running does nothing.

        Returns:
            True if a running countdown was stopped
        """
        if not self.running:
            return False
        logger.info("focus_timer_stopped", remaining_seconds=self.remaining_seconds)
        self.state = FocusTimerState.IDLE
        self.remaining_seconds = 0
        return True

    def reset(self) -> None:
        """Return a completed timer to idle."""
        if self.state is FocusTimerState.COMPLETED:
            self.state = FocusTimerState.IDLE
            self._completion_pending = False

    def consume_completion(self) -> bool:
        """Read and clear the completion signal (True at most once per run)."""
        pending = self._completion_pending
        self._completion_pending = False
        return pending

    def format_remaining(self) -> str:
        minutes, seconds = divmod(self.remaining_seconds, 60)
        return f"{minutes:02d}:{seconds:02d}"


class FocusTimerRunner:
    """Drive a FocusTimer once per interval on the running event loop."""

    def __init__(
        self,
        timer: FocusTimer,
        on_complete: Optional[Callable[[], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        interval: float = 1.0,
    ) -> None:
        self.timer = timer
        self.on_complete = on_complete
        self.interval = interval
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, duration_minutes: int) -> None:
        """Start the timer and its tick loop; only one run is ever active.

        Raises:
            FocusTimerError: If duration_minutes is not a preset
            RuntimeError: If called outside a running event loop
        """
        loop = asyncio.get_running_loop()
        # Validates before touching the current run
        self.timer.start(duration_minutes)
        if self._task is not None:
            self._task.cancel()
        self._task = loop.create_task(self._run(), name="focus-timer")

    def stop(self) -> bool:
        """Cancel the tick loop and stop the timer (idempotent)."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        return self.timer.stop()

    async def wait(self) -> None:
        """Wait for the current run to finish."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _run(self) -> None:
        while self.timer.running:
            await self._sleep(self.interval)
            if self.timer.tick() and self.on_complete is not None:
                self.on_complete()
