"""Persistence gateway contract for chapters."""

from abc import ABC, abstractmethod
from typing import Dict, List

import structlog

from blockwriter.models.chapter import Chapter
from blockwriter.services.exceptions import ChapterNotFoundError

logger = structlog.get_logger()


class ChapterGateway(ABC):
    """Abstract interface to the store that holds chapters.

    Implementations must save all-or-nothing: title, status, word count and
    the complete ordered block list are written together, or nothing is.
    """

    @abstractmethod
    async def load_chapter(self, chapter_id: str) -> Chapter:
        """
        Fetch a chapter with its ordered blocks.

        Args:
            chapter_id: Chapter identifier

        Returns:
            Loaded chapter

        Raises:
            ChapterNotFoundError: If no such chapter exists
            PersistenceError: On any other storage failure
        """
        pass

    @abstractmethod
    async def save_chapter(self, chapter: Chapter) -> None:
        """
        Upsert a chapter and replace its block list.

        Args:
            chapter: Chapter to write (a snapshot; not mutated)

        Raises:
            PersistenceError: If the write fails; nothing is partially written
        """
        pass

    async def list_chapters(self, project_id: str) -> List[Chapter]:
        """List chapters of a project. Optional for implementations."""
        raise NotImplementedError(f"{type(self).__name__} does not support listing chapters")


class InMemoryChapterGateway(ChapterGateway):
    """Gateway keeping chapter copies in a dict, for tests and previews."""

    def __init__(self) -> None:
        self._chapters: Dict[str, Chapter] = {}

    async def load_chapter(self, chapter_id: str) -> Chapter:
        stored = self._chapters.get(chapter_id)
        if stored is None:
            raise ChapterNotFoundError(chapter_id)
        return stored.snapshot()

    async def save_chapter(self, chapter: Chapter) -> None:
        self._chapters[chapter.chapter_id] = chapter.snapshot()
        logger.debug("memory_chapter_saved", chapter_id=chapter.chapter_id)

    async def list_chapters(self, project_id: str) -> List[Chapter]:
        return [c.snapshot() for c in self._chapters.values() if c.project_id == project_id]

    def __contains__(self, chapter_id: str) -> bool:
        return chapter_id in self._chapters

    def __len__(self) -> int:
        return len(self._chapters)
