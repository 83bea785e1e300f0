"""Unit tests for the cancellable timer and autosave scheduler."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from blockwriter.editor.autosave import AutosaveScheduler, CancellableTimer, TimerState
from blockwriter.models.chapter import Chapter
from blockwriter.services.exceptions import PersistenceError


@pytest.fixture
def chapter():
    """Titled chapter with one paragraph of text."""
    chapter = Chapter.new("p1", title="Draft One", chapter_id="ch1")
    chapter.update_content(chapter.blocks[0].id, "Once upon a time")
    return chapter


@pytest.fixture
def mock_gateway():
    gateway = AsyncMock()
    gateway.save_chapter = AsyncMock(return_value=None)
    return gateway


class TestCancellableTimer:
    """Test CancellableTimer."""

    @pytest.mark.asyncio
    async def test_fires_after_delay(self, clock):
        fired = []

        async def callback():
            fired.append(clock.now)

        timer = CancellableTimer(30, callback, sleep=clock.sleep)
        timer.schedule()
        assert timer.state is TimerState.SCHEDULED

        await clock.advance(29)
        assert fired == []

        await clock.advance(1)
        assert fired == [30]
        assert timer.state is TimerState.IDLE

    @pytest.mark.asyncio
    async def test_reschedule_restarts_delay(self, clock):
        fired = []

        async def callback():
            fired.append(clock.now)

        timer = CancellableTimer(30, callback, sleep=clock.sleep)
        timer.schedule()
        await clock.advance(10)
        timer.schedule()
        await clock.advance(29)
        assert fired == []

        await clock.advance(1)
        assert fired == [40]

    @pytest.mark.asyncio
    async def test_cancel_prevents_firing(self, clock):
        callback = AsyncMock()
        timer = CancellableTimer(30, callback, sleep=clock.sleep)
        timer.schedule()
        await clock.advance(5)

        assert timer.cancel() is True
        assert timer.state is TimerState.CANCELLED
        await clock.advance(100)

        callback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_when_idle(self, clock):
        timer = CancellableTimer(30, AsyncMock(), sleep=clock.sleep)
        assert timer.cancel() is False
        assert timer.state is TimerState.IDLE

    @pytest.mark.asyncio
    async def test_firing_callback_finishes_after_cancel(self, clock):
        started = asyncio.Event()
        release = asyncio.Event()
        finished = []

        async def callback():
            started.set()
            await release.wait()
            finished.append(True)

        timer = CancellableTimer(1, callback, sleep=clock.sleep)
        timer.schedule()
        await clock.advance(1)
        assert started.is_set()
        assert timer.state is TimerState.FIRING

        timer.cancel()
        release.set()
        await timer.join()

        assert finished == [True]

    def test_schedule_requires_running_loop(self):
        timer = CancellableTimer(1, AsyncMock())
        with pytest.raises(RuntimeError):
            timer.schedule()


class TestAutosaveScheduler:
    """Test AutosaveScheduler."""

    @pytest.mark.asyncio
    async def test_no_save_before_quiet_period_after_last_edit(self, chapter, mock_gateway, clock):
        """Edits at t=0 and t=10 with a 30s window: nothing before t=40."""
        scheduler = AutosaveScheduler(chapter, mock_gateway, delay=30, sleep=clock.sleep)
        block_id = chapter.blocks[0].id

        chapter.update_content(block_id, "Once upon a time there")
        await clock.advance(10)
        chapter.update_content(block_id, "Once upon a time there was")

        await clock.advance(29)
        mock_gateway.save_chapter.assert_not_awaited()

        await clock.advance(1)
        mock_gateway.save_chapter.assert_awaited_once()
        assert scheduler.last_saved_at is not None
        assert scheduler.save_count == 1

    @pytest.mark.asyncio
    async def test_manual_save_runs_immediately_and_restarts_window(self, chapter, mock_gateway, clock):
        """Manual save at t=5 saves at once; the next autosave check is at t=35."""
        scheduler = AutosaveScheduler(chapter, mock_gateway, delay=30, sleep=clock.sleep)
        chapter.update_content(chapter.blocks[0].id, "A new opening line")

        await clock.advance(5)
        await scheduler.save_now()
        assert mock_gateway.save_chapter.await_count == 1

        await clock.advance(29)
        assert mock_gateway.save_chapter.await_count == 1

        await clock.advance(1)
        assert mock_gateway.save_chapter.await_count == 2

    @pytest.mark.asyncio
    async def test_saves_a_snapshot(self, chapter, mock_gateway, clock):
        scheduler = AutosaveScheduler(chapter, mock_gateway, delay=30, sleep=clock.sleep)
        await scheduler.save_now()

        saved = mock_gateway.save_chapter.await_args.args[0]
        assert saved is not chapter
        assert saved.model_dump() == chapter.model_dump()

    @pytest.mark.asyncio
    async def test_skips_without_title(self, chapter, mock_gateway, clock):
        AutosaveScheduler(chapter, mock_gateway, delay=30, sleep=clock.sleep)
        chapter.set_title("")

        await clock.advance(60)
        mock_gateway.save_chapter.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_skips_titled_chapter_without_content(self, mock_gateway, clock):
        chapter = Chapter.new("p1", title="Only a title")
        AutosaveScheduler(chapter, mock_gateway, delay=30, sleep=clock.sleep)
        chapter.set_title("Still only a title")

        await clock.advance(60)
        mock_gateway.save_chapter.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close_cancels_pending_save(self, chapter, mock_gateway, clock):
        scheduler = AutosaveScheduler(chapter, mock_gateway, delay=30, sleep=clock.sleep)
        chapter.set_title("Renamed")
        assert scheduler.is_pending

        scheduler.close()
        await clock.advance(120)

        mock_gateway.save_chapter.assert_not_awaited()
        assert scheduler.timer_state is TimerState.CANCELLED

    @pytest.mark.asyncio
    async def test_edits_after_close_do_not_schedule(self, chapter, mock_gateway, clock):
        scheduler = AutosaveScheduler(chapter, mock_gateway, delay=30, sleep=clock.sleep)
        scheduler.close()
        chapter.set_title("After teardown")

        assert not scheduler.is_pending
        await clock.advance(120)
        mock_gateway.save_chapter.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_disabled_scheduler_does_not_autosave(self, chapter, mock_gateway, clock):
        scheduler = AutosaveScheduler(chapter, mock_gateway, delay=30, enabled=False, sleep=clock.sleep)
        chapter.set_title("Edited")
        await clock.advance(60)
        mock_gateway.save_chapter.assert_not_awaited()

        scheduler.set_enabled(True)
        chapter.set_title("Edited again")
        await clock.advance(30)
        mock_gateway.save_chapter.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_disabling_cancels_pending(self, chapter, mock_gateway, clock):
        scheduler = AutosaveScheduler(chapter, mock_gateway, delay=30, sleep=clock.sleep)
        chapter.set_title("Edited")
        scheduler.set_enabled(False)

        await clock.advance(60)
        mock_gateway.save_chapter.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_autosave_failure_is_recorded_not_raised(self, chapter, mock_gateway, clock):
        mock_gateway.save_chapter.side_effect = PersistenceError("ch1", "HTTP 503")
        scheduler = AutosaveScheduler(chapter, mock_gateway, delay=30, sleep=clock.sleep)
        chapter.set_title("Edited")

        await clock.advance(30)

        assert scheduler.last_error is not None
        assert scheduler.last_error.reason == "HTTP 503"
        assert scheduler.last_saved_at is None
        assert chapter.title == "Edited"

    @pytest.mark.asyncio
    async def test_manual_save_failure_raises(self, chapter, mock_gateway, clock):
        mock_gateway.save_chapter.side_effect = PersistenceError("ch1", "HTTP 500")
        scheduler = AutosaveScheduler(chapter, mock_gateway, delay=30, sleep=clock.sleep)

        with pytest.raises(PersistenceError):
            await scheduler.save_now()
        assert scheduler.save_count == 0
        assert chapter.has_content

    @pytest.mark.asyncio
    async def test_successful_save_clears_last_error(self, chapter, mock_gateway, clock):
        mock_gateway.save_chapter.side_effect = [PersistenceError("ch1", "timeout"), None]
        scheduler = AutosaveScheduler(chapter, mock_gateway, delay=30, sleep=clock.sleep)

        with pytest.raises(PersistenceError):
            await scheduler.save_now()
        await scheduler.save_now()

        assert scheduler.last_error is None
        assert scheduler.save_count == 1

    @pytest.mark.asyncio
    async def test_at_most_one_save_in_flight(self, chapter, clock):
        """A manual save during an autosave waits, then writes the latest content."""
        in_flight = 0
        max_in_flight = 0
        release = asyncio.Event()
        saved_titles = []

        class SlowGateway:
            async def save_chapter(self, snapshot):
                nonlocal in_flight, max_in_flight
                in_flight += 1
                max_in_flight = max(max_in_flight, in_flight)
                await release.wait()
                saved_titles.append(snapshot.title)
                in_flight -= 1

        scheduler = AutosaveScheduler(chapter, SlowGateway(), delay=30, sleep=clock.sleep)
        chapter.set_title("First")
        await clock.advance(30)
        assert scheduler.is_saving

        chapter.set_title("Second")
        manual = asyncio.create_task(scheduler.save_now())
        await clock.settle()
        assert in_flight == 1

        release.set()
        await manual

        assert max_in_flight == 1
        assert saved_titles == ["First", "Second"]
        await scheduler.aclose()

    @pytest.mark.asyncio
    async def test_on_saved_callback(self, chapter, mock_gateway, clock):
        saved = []
        scheduler = AutosaveScheduler(
            chapter, mock_gateway, delay=30, sleep=clock.sleep, on_saved=saved.append
        )
        await scheduler.save_now()
        assert saved == [chapter]
