"""Status messages for CLI operations."""

import click


def show_saved(chapter_id: str, word_count: int) -> None:
    """Show a successful save.

    Args:
        chapter_id: Saved chapter
        word_count: Word count at save time
    """
    click.echo(f"✓ Saved chapter {chapter_id} ({word_count} words)")


def show_published(chapter_id: str) -> None:
    click.echo(f"✓ Published chapter {chapter_id}")


def show_error(message: str) -> None:
    """Show error message.

    Args:
        message: Error message to display
    """
    click.echo(f"Error: {message}", err=True)


def show_warning(message: str) -> None:
    """Show warning message.

    Args:
        message: Warning message to display
    """
    click.echo(f"Warning: {message}", err=True)
