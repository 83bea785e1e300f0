"""Unit tests for the in-memory and local JSON chapter gateways."""

import asyncio
import json

import pytest

from blockwriter.models.chapter import Chapter, ChapterStatus
from blockwriter.services.exceptions import ChapterNotFoundError, PersistenceError
from blockwriter.services.local_store import LocalChapterGateway, atomic_write


class TestAtomicWrite:
    """Test atomic_write."""

    def test_writes_content(self, tmp_path):
        path = tmp_path / "chapter.json"
        atomic_write(path, "hello")
        assert path.read_text() == "hello"

    def test_replaces_existing_file(self, tmp_path):
        path = tmp_path / "chapter.json"
        path.write_text("old")
        atomic_write(path, "new")

        assert path.read_text() == "new"
        assert [p.name for p in tmp_path.iterdir()] == ["chapter.json"]

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(OSError):
            atomic_write(tmp_path / "nope" / "chapter.json", "x")


class TestInMemoryChapterGateway:
    """Test InMemoryChapterGateway."""

    @pytest.mark.asyncio
    async def test_round_trip_is_a_copy(self, gateway, sample_chapter):
        await gateway.save_chapter(sample_chapter)
        sample_chapter.update_content("b2", "Changed after saving.")

        loaded = await gateway.load_chapter("ch1")

        assert "ch1" in gateway
        assert len(gateway) == 1
        assert loaded.find_block("b2").content == "I found it in the basement."

    @pytest.mark.asyncio
    async def test_missing_chapter(self, gateway):
        with pytest.raises(ChapterNotFoundError) as exc_info:
            await gateway.load_chapter("nope")
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_list_by_project(self, gateway, sample_chapter):
        await gateway.save_chapter(sample_chapter)
        await gateway.save_chapter(Chapter.new("other", chapter_id="ch2"))

        chapters = await gateway.list_chapters("p1")

        assert [c.chapter_id for c in chapters] == ["ch1"]


class TestLocalChapterGateway:
    """Test LocalChapterGateway."""

    @pytest.mark.asyncio
    async def test_save_and_load(self, tmp_path, sample_chapter):
        sample_chapter.publish()
        gateway = LocalChapterGateway(tmp_path / "chapters")

        await gateway.save_chapter(sample_chapter)
        loaded = await gateway.load_chapter("ch1")

        assert loaded.title == "The Discovery"
        assert loaded.status is ChapterStatus.PUBLISHED
        assert [b.id for b in loaded.blocks] == ["b1", "b2", "b3", "b4"]
        assert loaded.blocks[3].checked is True
        assert loaded.word_count == sample_chapter.word_count
        assert loaded.last_edited == sample_chapter.last_edited

    @pytest.mark.asyncio
    async def test_file_format(self, tmp_path, sample_chapter):
        gateway = LocalChapterGateway(tmp_path)
        await gateway.save_chapter(sample_chapter)

        data = json.loads((tmp_path / "ch1.json").read_text())

        assert data["project_id"] == "p1"
        assert data["status"] == "Draft"
        assert data["blocks"][0] == {
            "id": "b1",
            "kind": "heading-1",
            "content": "The Discovery",
            "checked": None,
        }
        assert "selected_block_id" not in data

    @pytest.mark.asyncio
    async def test_save_replaces_previous_version(self, tmp_path, sample_chapter):
        gateway = LocalChapterGateway(tmp_path)
        await gateway.save_chapter(sample_chapter)
        sample_chapter.delete_block("b3")
        await gateway.save_chapter(sample_chapter)

        loaded = await gateway.load_chapter("ch1")

        assert [b.id for b in loaded.blocks] == ["b1", "b2", "b4"]

    @pytest.mark.asyncio
    async def test_missing_chapter(self, tmp_path):
        with pytest.raises(ChapterNotFoundError):
            await LocalChapterGateway(tmp_path).load_chapter("nope")

    @pytest.mark.asyncio
    async def test_corrupt_file_is_not_retryable(self, tmp_path):
        (tmp_path / "bad.json").write_text("{not json")

        with pytest.raises(PersistenceError) as exc_info:
            await LocalChapterGateway(tmp_path).load_chapter("bad")

        assert exc_info.value.retryable is False
        assert "unreadable" in exc_info.value.reason

    @pytest.mark.asyncio
    @pytest.mark.parametrize("chapter_id", ["", "../escape", ".hidden", "a/b"])
    async def test_rejects_unsafe_ids(self, tmp_path, chapter_id):
        with pytest.raises(PersistenceError):
            await LocalChapterGateway(tmp_path).load_chapter(chapter_id)

    @pytest.mark.asyncio
    async def test_write_failure_is_retryable(self, tmp_path, sample_chapter):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        gateway = LocalChapterGateway(blocker / "chapters")

        with pytest.raises(PersistenceError) as exc_info:
            await gateway.save_chapter(sample_chapter)

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_list_chapters(self, tmp_path, sample_chapter):
        gateway = LocalChapterGateway(tmp_path / "chapters")
        assert await gateway.list_chapters("p1") == []

        await gateway.save_chapter(sample_chapter)
        await gateway.save_chapter(Chapter.new("p2", chapter_id="other"))

        chapters = await gateway.list_chapters("p1")
        assert [c.chapter_id for c in chapters] == ["ch1"]

    @pytest.mark.asyncio
    async def test_list_chapters_skips_unreadable_files(self, tmp_path, sample_chapter):
        """One corrupt chapter file does not hide the others."""
        gateway = LocalChapterGateway(tmp_path)
        await gateway.save_chapter(sample_chapter)
        (tmp_path / "aaa-corrupt.json").write_text("{not json")
        (tmp_path / "zzz-invalid.json").write_text(json.dumps({"project_id": "p1", "blocks": []}))

        chapters = await gateway.list_chapters("p1")

        assert [c.chapter_id for c in chapters] == ["ch1"]

    @pytest.mark.asyncio
    async def test_file_io_runs_in_executor(self, tmp_path, sample_chapter, monkeypatch):
        """Reads and writes are handed to the loop's default executor."""
        loop = asyncio.get_running_loop()
        calls = []
        original = loop.run_in_executor

        def recording_run_in_executor(executor, func, *args):
            calls.append(func.__name__)
            return original(executor, func, *args)

        monkeypatch.setattr(loop, "run_in_executor", recording_run_in_executor)
        gateway = LocalChapterGateway(tmp_path)

        await gateway.save_chapter(sample_chapter)
        await gateway.load_chapter("ch1")

        assert calls == ["_write", "_read"]
