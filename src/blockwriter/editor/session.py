"""Editing session: one chapter plus its autosave, focus timer and goal.

A session owns its chapter exclusively. Edits are made directly on
``session.chapter``; the autosave scheduler hears about them through the
chapter's change listeners. Closing the session (or leaving the
``async with`` block) cancels pending timers so nothing fires against a
torn-down editor.
"""

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, Field

from blockwriter.editor.autosave import AutosaveScheduler
from blockwriter.editor.focus_timer import FocusTimer, FocusTimerRunner, FocusTimerState
from blockwriter.editor.word_count import count_characters, format_writing_time, reading_time_minutes
from blockwriter.models.chapter import Chapter, ChapterStatus
from blockwriter.models.config import EditorConfig
from blockwriter.models.goal import WritingGoal
from blockwriter.services.exceptions import ChapterValidationError, PersistenceError
from blockwriter.services.gateway import ChapterGateway
from blockwriter.services.navigation import LoggingNavigationHost, NavigationHost
from blockwriter.utils.logging import get_logger

logger = get_logger(__name__)

NEW_CHAPTER_ID = "new"


class SessionStats(BaseModel):
    """Derived figures shown alongside the editor."""

    word_count: int = Field(..., ge=0)
    character_count: int = Field(..., ge=0)
    block_count: int = Field(..., ge=1)
    goal_target: int = Field(..., gt=0)
    goal_progress: int = Field(..., ge=0, le=100)
    last_saved_at: Optional[datetime] = None
    focus_state: FocusTimerState
    focus_remaining: str = Field(..., description="MM:SS left on the focus timer")
    writing_time: str = Field(..., description="Completed focus time, e.g. '1h 15m'")
    reading_time_minutes: int = Field(..., ge=0, description="Estimated minutes to read the chapter")

    model_config = {"frozen": True}


class EditingSession:
    """Single-owner editing session for one chapter."""

    def __init__(
        self,
        chapter: Chapter,
        gateway: ChapterGateway,
        config: Optional[EditorConfig] = None,
        navigation: Optional[NavigationHost] = None,
        is_new: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the session.

        Args:
            chapter: Chapter to edit
            gateway: Persistence gateway for saves
            config: Editor settings (defaults used if None)
            navigation: Receiver of created/published/left events
            is_new: True if the chapter has never been saved
            sleep: Awaitable sleep used by autosave and focus timers
        """
        self.config = config or EditorConfig()
        self.chapter = chapter
        self.gateway = gateway
        self.navigation = navigation or LoggingNavigationHost()
        self.is_new = is_new
        self.closed = False
        self.goal = WritingGoal(target_word_count=self.config.default_goal)
        self.focus_timer = FocusTimer(presets=self.config.focus_presets)
        self.focus_minutes_completed = 0
        self.autosave = AutosaveScheduler(
            chapter,
            gateway,
            delay=self.config.autosave_delay_seconds,
            enabled=self.config.autosave_enabled,
            sleep=sleep,
            on_saved=self._on_saved,
        )
        self._focus_runner = FocusTimerRunner(
            self.focus_timer,
            on_complete=self._on_focus_complete,
            sleep=sleep,
        )
        if chapter.selected_block_id is None:
            chapter.selected_block_id = chapter.blocks[0].id

        logger.info(
            "editing_session_opened",
            chapter_id=chapter.chapter_id,
            is_new=is_new,
            block_count=len(chapter.blocks),
        )

    async def __aenter__(self) -> "EditingSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _ensure_open(self) -> None:
        if self.closed:
            raise RuntimeError(f"Editing session for chapter {self.chapter.chapter_id} is closed")

    @property
    def last_saved_at(self) -> Optional[datetime]:
        return self.autosave.last_saved_at

    @property
    def needs_save_prompt(self) -> bool:
        """Whether leaving should ask about unsaved changes."""
        return self.chapter.has_content

    @property
    def goal_progress(self) -> int:
        return self.goal.progress(self.chapter.word_count)

    # Saving and publishing

    async def save(self) -> None:
        """Save now, regardless of the autosave timer.

        Raises:
            ChapterValidationError: If the title is blank (nothing is saved)
            PersistenceError: If the gateway fails; the chapter stays in memory
        """
        self._ensure_open()
        if not self.chapter.title.strip():
            raise ChapterValidationError("Please enter a title for your chapter")
        await self.autosave.save_now()

    async def publish(self) -> bool:
        """Publish and save the chapter.

        Returns:
            True if the chapter became published, False if it already was

        Raises:
            ChapterValidationError: If title or content is missing
            PersistenceError: If saving fails; the chapter reverts to draft
        """
        self._ensure_open()
        if not self.chapter.publish():
            return False
        try:
            await self.autosave.save_now()
        except PersistenceError:
            self.chapter.status = ChapterStatus.DRAFT
            logger.warning("chapter_publish_reverted", chapter_id=self.chapter.chapter_id)
            raise
        self.navigation.chapter_published(self.chapter)
        return True

    def _on_saved(self, chapter: Chapter) -> None:
        if self.is_new:
            self.is_new = False
            self.navigation.chapter_created(chapter)

    # Goal

    def set_goal(self, value: Any) -> int:
        """Set the word count goal.

        Raises:
            GoalValidationError: If value is not a positive integer; the
                previous goal is kept
        """
        target = self.goal.set_target(value)
        logger.info("writing_goal_set", chapter_id=self.chapter.chapter_id, target_word_count=target)
        return target

    # Focus timer

    def start_focus_timer(self, duration_minutes: Optional[int] = None) -> None:
        """Start a focus countdown, replacing any running one.

        Raises:
            FocusTimerError: If the duration is not a configured preset
        """
        self._ensure_open()
        if duration_minutes is None:
            duration_minutes = self.config.default_focus_minutes
        self._focus_runner.start(duration_minutes)

    def stop_focus_timer(self) -> bool:
        return self._focus_runner.stop()

    def consume_focus_completion(self) -> bool:
        """True once after a focus countdown completes."""
        return self.focus_timer.consume_completion()

    def _on_focus_complete(self) -> None:
        self.focus_minutes_completed += self.focus_timer.duration_seconds // 60

    # Stats

    def stats(self) -> SessionStats:
        return SessionStats(
            word_count=self.chapter.word_count,
            character_count=count_characters(self.chapter.blocks),
            block_count=len(self.chapter.blocks),
            goal_target=self.goal.target_word_count,
            goal_progress=self.goal_progress,
            last_saved_at=self.autosave.last_saved_at,
            focus_state=self.focus_timer.state,
            focus_remaining=self.focus_timer.format_remaining(),
            writing_time=format_writing_time(self.focus_minutes_completed),
            reading_time_minutes=reading_time_minutes(self.chapter.word_count),
        )

    # Teardown

    def close(self) -> None:
        """End the session: cancel timers and notify the navigation host."""
        if self.closed:
            return
        self.closed = True
        self.autosave.close()
        self._focus_runner.stop()
        logger.info("editing_session_closed", chapter_id=self.chapter.chapter_id)
        self.navigation.session_left(self.chapter)

    async def aclose(self) -> None:
        """Close and wait for a save that was already in flight."""
        self.close()
        await self.autosave.aclose()
        await self._focus_runner.wait()

    async def leave(self, save: bool = False) -> None:
        """Leave the editor, optionally saving first.

        If the save fails the session stays open so the work can be retried.
        """
        if save:
            await self.save()
        await self.aclose()


async def open_session(
    gateway: ChapterGateway,
    chapter_id: str,
    project_id: Optional[str] = None,
    config: Optional[EditorConfig] = None,
    navigation: Optional[NavigationHost] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> EditingSession:
    """Open an editing session for an existing chapter or a new one.

    Args:
        gateway: Persistence gateway
        chapter_id: Chapter to load, or "new" to start a fresh chapter
        project_id: Owning project (required for new chapters)
        config: Editor settings
        navigation: Navigation host
        sleep: Awaitable sleep for timers

    Raises:
        ValueError: If chapter_id is "new" and no project_id is given
        ChapterNotFoundError: If the chapter does not exist
    """
    if chapter_id == NEW_CHAPTER_ID:
        if not project_id:
            raise ValueError("A project id is required to create a chapter")
        chapter = Chapter.new(project_id)
        is_new = True
    else:
        chapter = await gateway.load_chapter(chapter_id)
        is_new = False

    return EditingSession(
        chapter,
        gateway,
        config=config,
        navigation=navigation,
        is_new=is_new,
        sleep=sleep,
    )
