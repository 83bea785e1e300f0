"""Word and character statistics derived from chapter blocks."""

import math
from typing import Iterable, TYPE_CHECKING

if TYPE_CHECKING:
    from blockwriter.models.block import Block


def count_words(blocks: Iterable["Block"]) -> int:
    """Count words across all blocks.

    Block contents are joined with a single space and split on whitespace.
    A chapter whose blocks are all empty has zero words.

    Args:
        blocks: Blocks in chapter order

    Returns:
        Number of non-empty whitespace-separated tokens
    """
    text = " ".join(block.content for block in blocks)
    return len(text.split())


def count_characters(blocks: Iterable["Block"], include_spaces: bool = True) -> int:
    """Count characters across all block contents.

    Args:
        blocks: Blocks in chapter order
        include_spaces: Whether whitespace counts (default True)

    Returns:
        Character count
    """
    total = 0
    for block in blocks:
        if include_spaces:
            total += len(block.content)
        else:
            total += sum(1 for ch in block.content if not ch.isspace())
    return total


DEFAULT_WORDS_PER_MINUTE = 200


def reading_time_minutes(word_count: int, wpm: int = DEFAULT_WORDS_PER_MINUTE) -> int:
    """Estimate reading time, rounded up to whole minutes.

    Args:
        word_count: Words in the chapter
        wpm: Reading speed in words per minute

    Returns:
        Minutes needed to read; 0 for an empty chapter

    Raises:
        ValueError: If wpm is not positive or word_count is negative
    """
    if wpm <= 0:
        raise ValueError(f"Reading speed must be positive, got {wpm}")
    if word_count < 0:
        raise ValueError(f"Word count cannot be negative, got {word_count}")
    return math.ceil(word_count / wpm)


def format_writing_time(minutes: int) -> str:
    """Format minutes as "Xh Ym" (e.g. 95 -> "1h 35m")."""
    return f"{minutes // 60}h {minutes % 60}m"
