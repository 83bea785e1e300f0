"""Device-local chapter storage: one JSON document per chapter.

Writes use the temp-file-rename pattern so a chapter file is always either
the previous version or the new one, never a partial write.
"""

import asyncio
import json
import os
from pathlib import Path
from typing import List

import structlog
from pydantic import ValidationError

from blockwriter.models.chapter import Chapter
from blockwriter.services.exceptions import ChapterNotFoundError, PersistenceError
from blockwriter.services.gateway import ChapterGateway

logger = structlog.get_logger()


def atomic_write(path: Path, content: str) -> None:
    """
    Atomically write content to file with temp-file-rename pattern.

    Args:
        path: Target file path
        content: Content to write

    Raises:
        OSError: On file I/O errors
    """
    # Temporary file in the same directory keeps the rename on one filesystem
    temp_path = path.parent / f".{path.name}.tmp.{os.getpid()}"

    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        # On POSIX systems, this is atomic even if target exists
        temp_path.replace(path)

        logger.debug("atomic_write_success", path=str(path), size=len(content))

    except Exception as e:
        if temp_path.exists():
            temp_path.unlink()
        logger.error("atomic_write_failed", path=str(path), error=str(e))
        raise


class LocalChapterGateway(ChapterGateway):
    """
    Chapter gateway backed by a directory of JSON files.

    Example:
        >>> gateway = LocalChapterGateway(Path("~/.local/share/blockwriter/chapters"))
        >>> await gateway.save_chapter(chapter)
        >>> loaded = await gateway.load_chapter(chapter.chapter_id)
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root).expanduser()

    def _path_for(self, chapter_id: str) -> Path:
        if not chapter_id or "/" in chapter_id or "\\" in chapter_id or chapter_id.startswith("."):
            raise PersistenceError(chapter_id, "invalid chapter id for local storage", retryable=False)
        return self.root / f"{chapter_id}.json"

    def _read(self, chapter_id: str) -> Chapter:
        path = self._path_for(chapter_id)
        if not path.exists():
            raise ChapterNotFoundError(chapter_id)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return Chapter.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.error("local_chapter_load_failed", chapter_id=chapter_id, error=str(e))
            raise PersistenceError(chapter_id, f"unreadable chapter file: {e}", retryable=False) from e

    def _write(self, path: Path, payload: str) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        atomic_write(path, payload)

    async def load_chapter(self, chapter_id: str) -> Chapter:
        loop = asyncio.get_running_loop()
        chapter = await loop.run_in_executor(None, self._read, chapter_id)

        logger.debug("local_chapter_loaded", chapter_id=chapter_id, block_count=len(chapter.blocks))
        return chapter

    async def save_chapter(self, chapter: Chapter) -> None:
        path = self._path_for(chapter.chapter_id)
        payload = json.dumps(chapter.model_dump(mode="json"), indent=2, ensure_ascii=False)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._write, path, payload)
        except OSError as e:
            raise PersistenceError(chapter.chapter_id, str(e)) from e

        logger.info("local_chapter_saved", chapter_id=chapter.chapter_id, path=str(path))

    async def list_chapters(self, project_id: str) -> List[Chapter]:
        """Chapters of a project; unreadable files are skipped with a warning."""
        if not self.root.exists():
            return []
        chapters = []
        for path in sorted(self.root.glob("*.json")):
            try:
                chapter = await self.load_chapter(path.stem)
            except PersistenceError as e:
                logger.warning("local_chapter_skipped", path=str(path), reason=e.reason)
                continue
            if chapter.project_id == project_id:
                chapters.append(chapter)
        return chapters
