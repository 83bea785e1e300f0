"""Chapter preview rendering.

Each block kind has exactly one renderer in ``_MARKDOWN_RENDERERS``. The
table is checked against ``BlockKind`` at import time, so adding a kind
without a renderer fails immediately rather than falling through to a
default.
"""

from typing import Callable, Dict, List

from blockwriter.models.block import Block, BlockKind
from blockwriter.models.chapter import Chapter

Renderer = Callable[[Block, int], str]


def _render_paragraph(block: Block, number: int) -> str:
    return block.content


def _render_heading_1(block: Block, number: int) -> str:
    return f"# {block.content}"


def _render_heading_2(block: Block, number: int) -> str:
    return f"## {block.content}"


def _render_heading_3(block: Block, number: int) -> str:
    return f"### {block.content}"


def _render_bulleted(block: Block, number: int) -> str:
    return f"- {block.content}"


def _render_numbered(block: Block, number: int) -> str:
    return f"{number}. {block.content}"


def _render_quote(block: Block, number: int) -> str:
    lines = block.content.splitlines() or [""]
    return "\n".join(f"> {line}" if line else ">" for line in lines)


def _render_code(block: Block, number: int) -> str:
    return f"```\n{block.content}\n```"


def _render_image(block: Block, number: int) -> str:
    return f"![]({block.content})"


def _render_todo(block: Block, number: int) -> str:
    mark = "x" if block.checked else " "
    return f"- [{mark}] {block.content}"


_MARKDOWN_RENDERERS: Dict[BlockKind, Renderer] = {
    BlockKind.PARAGRAPH: _render_paragraph,
    BlockKind.HEADING_1: _render_heading_1,
    BlockKind.HEADING_2: _render_heading_2,
    BlockKind.HEADING_3: _render_heading_3,
    BlockKind.BULLETED_LIST_ITEM: _render_bulleted,
    BlockKind.NUMBERED_LIST_ITEM: _render_numbered,
    BlockKind.QUOTE: _render_quote,
    BlockKind.CODE: _render_code,
    BlockKind.IMAGE: _render_image,
    BlockKind.TODO: _render_todo,
}

_missing = set(BlockKind) - set(_MARKDOWN_RENDERERS)
if _missing:
    raise RuntimeError(f"No markdown renderer for block kinds: {sorted(k.value for k in _missing)}")

_LIST_KINDS = (BlockKind.BULLETED_LIST_ITEM, BlockKind.NUMBERED_LIST_ITEM, BlockKind.TODO)


def render_block(block: Block, number: int = 1) -> str:
    """Render one block as Markdown.

    Args:
        block: Block to render
        number: Position within a run of numbered items (1-based)
    """
    return _MARKDOWN_RENDERERS[block.kind](block, number)


def render_markdown(chapter: Chapter, include_title: bool = True) -> str:
    """Render a chapter as Markdown for previewing or export.

    Consecutive list items are kept together; other blocks are separated
    by blank lines. Numbered items restart at 1 after any other block.

    Args:
        chapter: Chapter to render
        include_title: Whether to start with the chapter title as a heading

    Returns:
        Markdown text ending with a newline
    """
    parts: List[str] = []
    if include_title and chapter.title.strip():
        parts.append(f"# {chapter.title}")

    number = 0
    previous_kind = None
    for block in chapter.blocks:
        if block.kind is BlockKind.NUMBERED_LIST_ITEM:
            number = number + 1 if previous_kind is BlockKind.NUMBERED_LIST_ITEM else 1
        rendered = render_block(block, number)
        if parts and block.kind in _LIST_KINDS and block.kind is previous_kind:
            parts[-1] = f"{parts[-1]}\n{rendered}"
        else:
            parts.append(rendered)
        previous_kind = block.kind

    return "\n\n".join(parts) + "\n"


def render_plain_text(chapter: Chapter) -> str:
    """Render a chapter as reading text: the title then each non-blank block."""
    lines = [chapter.title] if chapter.title.strip() else []
    for block in chapter.blocks:
        if block.is_blank:
            continue
        if block.kind is BlockKind.TODO:
            mark = "☑" if block.checked else "☐"
            lines.append(f"{mark} {block.content}")
        elif block.kind is BlockKind.BULLETED_LIST_ITEM:
            lines.append(f"• {block.content}")
        else:
            lines.append(block.content)
    return "\n\n".join(lines)
