"""Pydantic data models for Blockwriter."""

from blockwriter.models.block import Block, BlockKind
from blockwriter.models.chapter import Chapter, ChapterStatus
from blockwriter.models.goal import WritingGoal, goal_progress

__all__ = [
    "Block",
    "BlockKind",
    "Chapter",
    "ChapterStatus",
    "WritingGoal",
    "goal_progress",
]
