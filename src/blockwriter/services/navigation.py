"""Navigation host boundary.

The editor reports what happened; the host decides which screen comes next.
"""

from typing import Protocol, TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from blockwriter.models.chapter import Chapter

logger = structlog.get_logger()


class NavigationHost(Protocol):
    """Receiver of editing session events."""

    def chapter_created(self, chapter: "Chapter") -> None:
        """A new chapter was saved for the first time."""
        ...

    def chapter_published(self, chapter: "Chapter") -> None:
        """A chapter was published."""
        ...

    def session_left(self, chapter: "Chapter") -> None:
        """The editing session ended."""
        ...


class LoggingNavigationHost:
    """Navigation host that only records events in the log."""

    def chapter_created(self, chapter: "Chapter") -> None:
        logger.info("navigation_chapter_created", chapter_id=chapter.chapter_id, project_id=chapter.project_id)

    def chapter_published(self, chapter: "Chapter") -> None:
        logger.info("navigation_chapter_published", chapter_id=chapter.chapter_id)

    def session_left(self, chapter: "Chapter") -> None:
        logger.info("navigation_session_left", chapter_id=chapter.chapter_id)
