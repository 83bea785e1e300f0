"""Identifier generation utilities for Blockwriter."""

import uuid


def generate_block_id() -> str:
    """
    Generate a random block identifier.

    Block ids only need to be unique within a chapter and stable for the
    block's lifetime; they carry no meaning.

    Returns:
        Identifier of the form "b" followed by 12 hex characters

    Example:
        >>> generate_block_id()
        "b3f9a1c07d2e4"
    """
    return "b" + uuid.uuid4().hex[:12]


def generate_chapter_id() -> str:
    """
    Generate a random chapter identifier (UUID v4).

    Returns:
        UUID string in standard format
    """
    return str(uuid.uuid4())
