"""Block model: one typed unit of chapter content."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from blockwriter.services.exceptions import UnknownBlockKindError
from blockwriter.utils.ids import generate_block_id


class BlockKind(str, Enum):
    """Closed set of block kinds.

    Values match the ``type`` column of stored block rows.
    """

    PARAGRAPH = "paragraph"
    HEADING_1 = "heading-1"
    HEADING_2 = "heading-2"
    HEADING_3 = "heading-3"
    BULLETED_LIST_ITEM = "bulleted-list"
    NUMBERED_LIST_ITEM = "numbered-list"
    QUOTE = "quote"
    CODE = "code"
    IMAGE = "image"
    TODO = "todo"

    @classmethod
    def parse(cls, value: Any) -> "BlockKind":
        """Resolve a block kind from its stored value or camelCase name.

        Args:
            value: BlockKind member, stored value ("heading-1") or
                camelCase name ("heading1", "bulletedListItem")

        Returns:
            Matching BlockKind

        Raises:
            UnknownBlockKindError: If value names no supported kind
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                pass
            alias = _KIND_ALIASES.get(value)
            if alias is not None:
                return alias
        raise UnknownBlockKindError(value)


_KIND_ALIASES = {
    "heading1": BlockKind.HEADING_1,
    "heading2": BlockKind.HEADING_2,
    "heading3": BlockKind.HEADING_3,
    "bulletedListItem": BlockKind.BULLETED_LIST_ITEM,
    "numberedListItem": BlockKind.NUMBERED_LIST_ITEM,
}


class Block(BaseModel):
    """A single content block within a chapter."""

    id: str = Field(
        default_factory=generate_block_id,
        description="Opaque identifier, unique within its chapter and stable for the block's lifetime"
    )

    kind: BlockKind = Field(
        ...,
        description="Block kind (no default: an unknown kind is rejected)"
    )

    content: str = Field(
        default="",
        description="Text payload (image URL for image blocks)"
    )

    checked: Optional[bool] = Field(
        default=None,
        description="Completion flag, meaningful only for todo blocks"
    )

    @field_validator("kind", mode="before")
    @classmethod
    def parse_kind(cls, v: Any) -> BlockKind:
        """Accept stored values and camelCase aliases, reject everything else."""
        return BlockKind.parse(v)

    @model_validator(mode="after")
    def init_todo_checked(self) -> "Block":
        """Todo blocks always carry a checked flag."""
        if self.kind is BlockKind.TODO and self.checked is None:
            self.checked = False
        return self

    @classmethod
    def new(cls, kind: Any) -> "Block":
        """Create an empty block of the given kind with a fresh id.

        Raises:
            UnknownBlockKindError: If kind is not supported
        """
        return cls(kind=BlockKind.parse(kind))

    @property
    def is_blank(self) -> bool:
        return not self.content.strip()

    model_config = {"frozen": False}  # Content changes through Chapter operations
