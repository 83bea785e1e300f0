"""Debounced autosave for the chapter being edited.

Everything here runs on the caller's asyncio event loop. The only
suspension point is the call into the persistence gateway, so editing
continues while a save is in flight.
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional, Set, TYPE_CHECKING

import structlog

from blockwriter.services.exceptions import PersistenceError

if TYPE_CHECKING:
    from blockwriter.models.chapter import Chapter
    from blockwriter.services.gateway import ChapterGateway

logger = structlog.get_logger()

DEFAULT_AUTOSAVE_DELAY = 30.0

SleepFn = Callable[[float], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimerState(str, Enum):
    """States of a CancellableTimer."""

    IDLE = "idle"
    SCHEDULED = "scheduled"
    FIRING = "firing"
    CANCELLED = "cancelled"


class CancellableTimer:
    """
    Restartable one-shot timer owned by a single scheduler.

    ``schedule()`` (re)starts the delay; ``cancel()`` guarantees the
    callback will not start afterwards. A callback that is already firing
    is left to finish.

    Example:
        >>> timer = CancellableTimer(30.0, save)
        >>> timer.schedule()   # after each edit
        >>> timer.cancel()     # on teardown
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], Awaitable[None]],
        sleep: SleepFn = asyncio.sleep,
        name: str = "timer",
    ) -> None:
        self.delay = delay
        self.name = name
        self._callback = callback
        self._sleep = sleep
        self._state = TimerState.IDLE
        self._generation = 0
        self._pending: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def is_scheduled(self) -> bool:
        return self._state is TimerState.SCHEDULED

    def schedule(self) -> None:
        """Start the delay, replacing any pending run.

        Raises:
            RuntimeError: If called outside a running event loop
        """
        loop = asyncio.get_running_loop()
        self._generation += 1
        if self._pending is not None and not self._pending.done() and self._state is TimerState.SCHEDULED:
            self._pending.cancel()

        task = loop.create_task(self._run(self._generation), name=f"{self.name}-{self._generation}")
        self._pending = task
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        self._state = TimerState.SCHEDULED

    def cancel(self) -> bool:
        """Prevent the pending run from firing.

        Returns:
            True if a scheduled run was cancelled
        """
        self._generation += 1
        was_scheduled = self._state is TimerState.SCHEDULED
        if was_scheduled and self._pending is not None:
            self._pending.cancel()
        if self._state is not TimerState.IDLE:
            self._state = TimerState.CANCELLED
        return was_scheduled

    async def join(self) -> None:
        """Wait for every run started by this timer to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, generation: int) -> None:
        await self._sleep(self.delay)
        if generation != self._generation:
            return
        self._state = TimerState.FIRING
        try:
            await self._callback()
        finally:
            if generation == self._generation:
                self._state = TimerState.IDLE

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("timer_callback_failed", timer=self.name, error=str(exc))


class AutosaveScheduler:
    """
    Save a chapter after a quiet period following edits.

    The scheduler listens to the chapter's edits. Each edit restarts the
    quiet period; when it elapses, the chapter is saved provided it has a
    title and some content. Saves go through a lock so at most one save per
    chapter is in flight; a save requested meanwhile waits its turn and
    then writes the latest content.
    """

    def __init__(
        self,
        chapter: "Chapter",
        gateway: "ChapterGateway",
        delay: float = DEFAULT_AUTOSAVE_DELAY,
        enabled: bool = True,
        sleep: SleepFn = asyncio.sleep,
        on_saved: Optional[Callable[["Chapter"], None]] = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize the scheduler and start listening to chapter edits.

        Args:
            chapter: Chapter being edited
            gateway: Persistence gateway used for saves
            delay: Quiet period in seconds (default 30)
            enabled: Whether edits schedule autosaves
            sleep: Awaitable sleep used for the quiet period
            on_saved: Called with the chapter after each successful save
            now: Clock for last_saved_at
        """
        self.chapter = chapter
        self.gateway = gateway
        self.enabled = enabled
        self.last_saved_at: Optional[datetime] = None
        self.last_error: Optional[PersistenceError] = None
        self.save_count = 0
        self.closed = False
        self._on_saved = on_saved
        self._now = now
        self._save_lock = asyncio.Lock()
        self._timer = CancellableTimer(delay, self._autosave, sleep=sleep, name="autosave")
        chapter.add_listener(self._on_chapter_changed)

    @property
    def delay(self) -> float:
        return self._timer.delay

    @property
    def timer_state(self) -> TimerState:
        return self._timer.state

    @property
    def is_pending(self) -> bool:
        return self._timer.is_scheduled

    @property
    def is_saving(self) -> bool:
        return self._save_lock.locked()

    def should_autosave(self) -> bool:
        """Autosave needs both a title and at least one non-blank block."""
        return bool(self.chapter.title.strip()) and self.chapter.has_content

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        if not enabled:
            self._timer.cancel()
        logger.info("autosave_toggled", chapter_id=self.chapter.chapter_id, enabled=enabled)

    def notify_change(self) -> None:
        """Restart the quiet period after an edit."""
        if self.closed or not self.enabled:
            return
        self._timer.schedule()

    def _on_chapter_changed(self, chapter: "Chapter") -> None:
        self.notify_change()

    async def save_now(self) -> None:
        """Save immediately, bypassing and restarting the quiet period.

        Raises:
            PersistenceError: If the gateway fails; the chapter is kept
        """
        self._timer.cancel()
        if not self.closed and self.enabled:
            self._timer.schedule()
        await self._save("manual")

    async def _autosave(self) -> None:
        if not self.should_autosave():
            logger.info(
                "autosave_skipped",
                chapter_id=self.chapter.chapter_id,
                has_title=bool(self.chapter.title.strip()),
                has_content=self.chapter.has_content,
            )
            return
        try:
            await self._save("autosave")
        except PersistenceError:
            # Logged and kept in last_error by _save
            return

    async def _save(self, trigger: str) -> None:
        async with self._save_lock:
            snapshot = self.chapter.snapshot()
            logger.debug(
                "chapter_save_started",
                chapter_id=snapshot.chapter_id,
                trigger=trigger,
                word_count=snapshot.word_count,
            )
            try:
                await self.gateway.save_chapter(snapshot)
            except PersistenceError as e:
                self.last_error = e
                logger.error(
                    "chapter_save_failed",
                    chapter_id=snapshot.chapter_id,
                    trigger=trigger,
                    reason=e.reason,
                    retryable=e.retryable,
                )
                raise

            self.last_saved_at = self._now()
            self.last_error = None
            self.save_count += 1
            logger.info(
                "chapter_saved",
                chapter_id=snapshot.chapter_id,
                trigger=trigger,
                word_count=snapshot.word_count,
                block_count=len(snapshot.blocks),
            )
        if self._on_saved is not None:
            self._on_saved(self.chapter)

    def close(self) -> None:
        """Stop listening and cancel any pending autosave."""
        if self.closed:
            return
        self.closed = True
        cancelled = self._timer.cancel()
        self.chapter.remove_listener(self._on_chapter_changed)
        logger.debug("autosave_closed", chapter_id=self.chapter.chapter_id, cancelled_pending=cancelled)

    async def aclose(self) -> None:
        """Close and wait for a save that was already in flight."""
        self.close()
        await self._timer.join()
        async with self._save_lock:
            pass
