"""Chapter model: the ordered block document being edited."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, List, Optional

import structlog
from pydantic import BaseModel, Field, PrivateAttr, computed_field, field_validator

from blockwriter.editor.word_count import count_words
from blockwriter.models.block import Block, BlockKind
from blockwriter.services.exceptions import ChapterValidationError
from blockwriter.utils.ids import generate_chapter_id

logger = structlog.get_logger()

DEFAULT_CHAPTER_TITLE = "Untitled Chapter"

ChangeListener = Callable[["Chapter"], None]


class ChapterStatus(str, Enum):
    """Publication status. Publishing is one-way from the editor's side."""

    DRAFT = "Draft"
    PUBLISHED = "Published"


class Chapter(BaseModel):
    """A chapter document: title, status and an ordered list of blocks.

    All edits go through the methods below. Each one keeps the chapter
    non-empty, recomputes the word count, stamps ``last_edited`` and
    notifies change listeners. Operations given an unknown block id log a
    warning and return a falsy value instead of raising.
    """

    chapter_id: str = Field(
        default_factory=generate_chapter_id,
        description="Chapter identifier"
    )

    project_id: str = Field(
        ...,
        description="Owning writing project"
    )

    title: str = Field(
        default="",
        description="Chapter title"
    )

    blocks: List[Block] = Field(
        ...,
        min_length=1,
        description="Blocks in reading order"
    )

    status: ChapterStatus = Field(
        default=ChapterStatus.DRAFT,
        description="Draft or published"
    )

    last_edited: Optional[datetime] = Field(
        default=None,
        description="Time of the most recent edit"
    )

    selected_block_id: Optional[str] = Field(
        default=None,
        exclude=True,
        description="Block currently selected in the editor (not persisted)"
    )

    _word_count: int = PrivateAttr(default=0)
    _listeners: List[ChangeListener] = PrivateAttr(default_factory=list)

    @field_validator("blocks")
    @classmethod
    def validate_unique_ids(cls, v: List[Block]) -> List[Block]:
        """Block ids must be unique within a chapter."""
        seen = set()
        for block in v:
            if block.id in seen:
                raise ChapterValidationError(f"Duplicate block id: {block.id}")
            seen.add(block.id)
        return v

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v: Any) -> Any:
        """Stored rows may use any letter case ("draft", "Published")."""
        if isinstance(v, str):
            for status in ChapterStatus:
                if status.value.lower() == v.lower():
                    return status
        return v

    def model_post_init(self, __context: Any) -> None:
        self._word_count = count_words(self.blocks)

    @computed_field
    @property
    def word_count(self) -> int:
        """Word count, recomputed after every edit."""
        return self._word_count

    @classmethod
    def new(
        cls,
        project_id: str,
        title: str = DEFAULT_CHAPTER_TITLE,
        chapter_id: Optional[str] = None,
    ) -> "Chapter":
        """Create a draft chapter holding a single empty paragraph."""
        first = Block.new(BlockKind.PARAGRAPH)
        kwargs = {"project_id": project_id, "title": title, "blocks": [first]}
        if chapter_id is not None:
            kwargs["chapter_id"] = chapter_id
        chapter = cls(**kwargs)
        chapter.selected_block_id = first.id
        return chapter

    # Listeners

    def add_listener(self, listener: ChangeListener) -> None:
        """Register a callback invoked after every edit."""
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _changed(self, event: str, **fields: Any) -> None:
        self._word_count = count_words(self.blocks)
        self.last_edited = datetime.now(timezone.utc)
        logger.debug(
            event,
            chapter_id=self.chapter_id,
            block_count=len(self.blocks),
            word_count=self._word_count,
            **fields,
        )
        for listener in list(self._listeners):
            listener(self)

    # Lookup

    def index_of(self, block_id: str) -> Optional[int]:
        for i, block in enumerate(self.blocks):
            if block.id == block_id:
                return i
        return None

    def find_block(self, block_id: str) -> Optional[Block]:
        index = self.index_of(block_id)
        return None if index is None else self.blocks[index]

    def _require(self, block_id: str, operation: str) -> Optional[int]:
        index = self.index_of(block_id)
        if index is None:
            logger.warning(
                "block_not_found",
                chapter_id=self.chapter_id,
                block_id=block_id,
                operation=operation,
            )
        return index

    @property
    def selected_block(self) -> Optional[Block]:
        if self.selected_block_id is None:
            return None
        return self.find_block(self.selected_block_id)

    @property
    def has_content(self) -> bool:
        """True if at least one block has non-blank content."""
        return any(not block.is_blank for block in self.blocks)

    @property
    def is_publishable(self) -> bool:
        return bool(self.title.strip()) and self.has_content

    @property
    def is_published(self) -> bool:
        return self.status is ChapterStatus.PUBLISHED

    # Edits

    def select(self, block_id: str) -> bool:
        if self._require(block_id, "select") is None:
            return False
        self.selected_block_id = block_id
        return True

    def set_title(self, title: str) -> None:
        self.title = title
        self._changed("chapter_title_changed")

    def insert_block(self, kind: Any, after_index: int) -> str:
        """Insert an empty block after ``after_index`` and select it.

        Args:
            kind: Block kind (member, stored value or camelCase name)
            after_index: Index of the block to insert after; negative
                inserts at the start

        Returns:
            Id of the new block

        Raises:
            UnknownBlockKindError: If kind is not supported (nothing changes)
        """
        block = Block.new(kind)
        position = 0 if after_index < 0 else min(after_index + 1, len(self.blocks))
        self.blocks.insert(position, block)
        self.selected_block_id = block.id
        self._changed("block_inserted", block_id=block.id, kind=block.kind.value, position=position)
        return block.id

    def delete_block(self, block_id: str) -> bool:
        """Remove a block unless it is the only one left.

        Selection falls back to the previous block, if any.

        Returns:
            True if the block was removed
        """
        index = self._require(block_id, "delete_block")
        if index is None:
            return False
        if len(self.blocks) <= 1:
            logger.debug("delete_last_block_ignored", chapter_id=self.chapter_id, block_id=block_id)
            return False

        del self.blocks[index]
        self.selected_block_id = self.blocks[index - 1].id if index > 0 else None
        self._changed("block_deleted", block_id=block_id, position=index)
        return True

    def update_content(self, block_id: str, text: str) -> bool:
        index = self._require(block_id, "update_content")
        if index is None:
            return False
        self.blocks[index].content = text
        self._changed("block_content_updated", block_id=block_id)
        return True

    def change_kind(self, block_id: str, new_kind: Any) -> bool:
        """Convert a block to another kind, keeping its content.

        Raises:
            UnknownBlockKindError: If new_kind is not supported (nothing changes)
        """
        kind = BlockKind.parse(new_kind)
        index = self._require(block_id, "change_kind")
        if index is None:
            return False
        block = self.blocks[index]
        block.kind = kind
        if kind is BlockKind.TODO and block.checked is None:
            block.checked = False
        self._changed("block_kind_changed", block_id=block_id, kind=kind.value)
        return True

    def toggle_checked(self, block_id: str) -> bool:
        index = self._require(block_id, "toggle_checked")
        if index is None:
            return False
        block = self.blocks[index]
        if block.kind is not BlockKind.TODO:
            logger.debug("toggle_checked_ignored", block_id=block_id, kind=block.kind.value)
            return False
        block.checked = not block.checked
        self._changed("block_checked_toggled", block_id=block_id, checked=block.checked)
        return True

    def move_up(self, block_id: str) -> bool:
        index = self._require(block_id, "move_up")
        if index is None or index == 0:
            return False
        return self._swap(index, index - 1)

    def move_down(self, block_id: str) -> bool:
        index = self._require(block_id, "move_down")
        if index is None or index >= len(self.blocks) - 1:
            return False
        return self._swap(index, index + 1)

    def _swap(self, i: int, j: int) -> bool:
        self.blocks[i], self.blocks[j] = self.blocks[j], self.blocks[i]
        self._changed("block_moved", block_id=self.blocks[j].id, from_position=i, to_position=j)
        return True

    def press_enter(self, block_id: str) -> Optional[str]:
        """Start a new paragraph right after the given block.

        Returns:
            Id of the new paragraph, or None if block_id is unknown
        """
        index = self._require(block_id, "press_enter")
        if index is None:
            return None
        return self.insert_block(BlockKind.PARAGRAPH, index)

    def press_delete_at_start(self, block_id: str) -> bool:
        """Delete an empty block when there is another block to fall back to."""
        index = self._require(block_id, "press_delete_at_start")
        if index is None:
            return False
        if self.blocks[index].content != "" or len(self.blocks) <= 1:
            return False
        return self.delete_block(block_id)

    def publish(self) -> bool:
        """Mark the chapter as published.

        Returns:
            True if the status changed, False if already published

        Raises:
            ChapterValidationError: If title or content is missing
        """
        if not self.is_publishable:
            raise ChapterValidationError(
                "Please make sure your chapter has both a title and content before publishing."
            )
        if self.is_published:
            return False
        self.status = ChapterStatus.PUBLISHED
        self._changed("chapter_published")
        return True

    def snapshot(self) -> "Chapter":
        """Copy of the chapter for saving while editing continues."""
        snap = self.model_copy(update={"blocks": [block.model_copy() for block in self.blocks]})
        snap._listeners = []
        return snap

    model_config = {"frozen": False}  # Mutated in place by the editing session
