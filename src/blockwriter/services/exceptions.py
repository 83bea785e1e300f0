"""Custom exceptions for Blockwriter."""


class BlockwriterError(Exception):
    """Base class for all Blockwriter errors."""


class EditorValidationError(BlockwriterError, ValueError):
    """Raised when user input is rejected before any mutation happens.

    Validation errors are recovered locally: the operation is refused, the
    caller is informed synchronously, and the document is left untouched.
    """


class ChapterValidationError(EditorValidationError):
    """Raised when a chapter cannot be saved or published as it stands."""


class GoalValidationError(EditorValidationError):
    """Raised when a word count goal is not a positive integer.

    Attributes:
        value: The rejected input
    """

    def __init__(self, value, message: str = "Please enter a valid number greater than 0"):
        self.value = value
        self.message = message
        super().__init__(f"{message}: {value!r}")


class UnknownBlockKindError(EditorValidationError):
    """Raised when a block kind is not one of the supported kinds.

    Attributes:
        kind: The unrecognized kind value
    """

    def __init__(self, kind):
        self.kind = kind
        super().__init__(f"Unknown block kind: {kind!r}")


class FocusTimerError(EditorValidationError):
    """Raised when a focus timer is started with an unsupported duration."""


class PersistenceError(BlockwriterError):
    """Raised when the persistence gateway fails to load or save a chapter.

    The in-memory chapter is never discarded on a failed save, so callers
    can offer a retry.

    Attributes:
        chapter_id: Chapter the operation was for
        reason: Human-readable failure reason
        retryable: Whether retrying the same operation may succeed
    """

    def __init__(self, chapter_id: str, reason: str, retryable: bool = True):
        """Initialize PersistenceError.

        Args:
            chapter_id: Chapter the operation was for
            reason: Human-readable failure reason
            retryable: Whether retrying may succeed (default True)
        """
        self.chapter_id = chapter_id
        self.reason = reason
        self.retryable = retryable
        super().__init__(f"Storage error for chapter {chapter_id}: {reason}")


class ChapterNotFoundError(PersistenceError):
    """Raised when a chapter does not exist in the backing store."""

    def __init__(self, chapter_id: str):
        super().__init__(chapter_id, "chapter not found", retryable=False)
