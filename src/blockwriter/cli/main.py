#!/usr/bin/env python3
"""Blockwriter CLI - create, edit and preview block-based chapters.

This is the main entry point for the blockwriter command-line tool.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click

from blockwriter import __version__
from blockwriter.cli import progress
from blockwriter.config.loader import load_config
from blockwriter.editor.session import EditingSession, NEW_CHAPTER_ID, open_session
from blockwriter.editor.word_count import count_characters, reading_time_minutes
from blockwriter.models.block import BlockKind
from blockwriter.models.config import Config
from blockwriter.models.goal import WritingGoal
from blockwriter.render.markdown import render_markdown, render_plain_text
from blockwriter.services.exceptions import BlockwriterError, EditorValidationError, PersistenceError
from blockwriter.services.gateway import ChapterGateway
from blockwriter.services.local_store import LocalChapterGateway
from blockwriter.services.supabase_gateway import SupabaseChapterGateway
from blockwriter.utils.logging import configure_logging


def build_gateway(config: Config) -> ChapterGateway:
    """Create the chapter gateway selected by storage.backend."""
    if config.storage.backend == "supabase":
        return SupabaseChapterGateway(config.supabase)
    return LocalChapterGateway(config.storage.local_dir)


def _run(ctx: click.Context, coro):
    """Run a coroutine, turning Blockwriter errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except EditorValidationError as e:
        progress.show_error(str(e))
        ctx.exit(2)
    except PersistenceError as e:
        progress.show_error(str(e))
        if e.retryable:
            progress.show_warning("The operation can be retried.")
        ctx.exit(1)
    except BlockwriterError as e:
        progress.show_error(str(e))
        ctx.exit(1)


@click.group(invoke_without_command=True)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (default: ~/.config/blockwriter/config.yaml)",
)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], version: bool):
    """Blockwriter - write chapters as ordered blocks of content."""
    if version:
        click.echo(f"Blockwriter v{__version__}")
        ctx.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)

    configure_logging()

    try:
        config = load_config(config_path)
    except (PermissionError, ValueError) as e:
        progress.show_error(str(e))
        ctx.exit(1)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["gateway"] = build_gateway(config)


@cli.command()
@click.option("--project", "project_id", required=True, help="Owning project id")
@click.option("--title", default="Untitled Chapter", show_default=True, help="Chapter title")
@click.pass_context
def new(ctx: click.Context, project_id: str, title: str):
    """Create a new draft chapter and print its id."""
    config: Config = ctx.obj["config"]

    async def _create() -> str:
        async with await open_session(
            ctx.obj["gateway"], NEW_CHAPTER_ID, project_id=project_id, config=config.editor
        ) as session:
            session.chapter.set_title(title)
            await session.save()
            return session.chapter.chapter_id

    chapter_id = _run(ctx, _create())
    click.echo(chapter_id)


@cli.command()
@click.argument("chapter_id")
@click.option("--plain", is_flag=True, help="Render as reading text instead of Markdown")
@click.pass_context
def show(ctx: click.Context, chapter_id: str, plain: bool):
    """Preview a chapter."""
    chapter = _run(ctx, ctx.obj["gateway"].load_chapter(chapter_id))
    if plain:
        click.echo(render_plain_text(chapter))
    else:
        click.echo(render_markdown(chapter), nl=False)


@cli.command()
@click.argument("chapter_id")
@click.option("--goal", "goal_value", help="Word count goal to measure progress against")
@click.pass_context
def stats(ctx: click.Context, chapter_id: str, goal_value: Optional[str]):
    """Show word count and goal progress for a chapter."""
    config: Config = ctx.obj["config"]
    goal = WritingGoal(target_word_count=config.editor.default_goal)
    if goal_value is not None:
        try:
            goal.set_target(goal_value)
        except EditorValidationError as e:
            progress.show_error(str(e))
            ctx.exit(2)

    chapter = _run(ctx, ctx.obj["gateway"].load_chapter(chapter_id))
    words = chapter.word_count
    click.echo(f"Title:      {chapter.title}")
    click.echo(f"Status:     {chapter.status.value}")
    click.echo(f"Blocks:     {len(chapter.blocks)}")
    click.echo(f"Words:      {words}")
    click.echo(f"Characters: {count_characters(chapter.blocks)}")
    click.echo(f"Reading:    {reading_time_minutes(words)} min")
    click.echo(
        f"Goal:       {words}/{goal.target_word_count} words "
        f"({goal.progress(words)}%, {goal.remaining(words)} to go)"
    )


@cli.command()
@click.argument("chapter_id")
@click.argument("text")
@click.option(
    "--kind",
    default=BlockKind.PARAGRAPH.value,
    show_default=True,
    help="Block kind: " + ", ".join(kind.value for kind in BlockKind),
)
@click.option("--after", "after_index", type=int, help="Insert after this block index (default: at the end)")
@click.pass_context
def add(ctx: click.Context, chapter_id: str, text: str, kind: str, after_index: Optional[int]):
    """Add a block to a chapter and save it.

    An empty leading paragraph (as in a fresh chapter) is filled in place.
    """
    config: Config = ctx.obj["config"]

    async def _add() -> EditingSession:
        async with await open_session(ctx.obj["gateway"], chapter_id, config=config.editor) as session:
            chapter = session.chapter
            only = chapter.blocks[0]
            if len(chapter.blocks) == 1 and only.content == "" and after_index is None:
                chapter.change_kind(only.id, kind)
                chapter.update_content(only.id, text)
            else:
                index = len(chapter.blocks) - 1 if after_index is None else after_index
                block_id = chapter.insert_block(kind, index)
                chapter.update_content(block_id, text)
            await session.save()
            return session

    session = _run(ctx, _add())
    progress.show_saved(session.chapter.chapter_id, session.chapter.word_count)


@cli.command()
@click.argument("chapter_id")
@click.pass_context
def publish(ctx: click.Context, chapter_id: str):
    """Publish a chapter (cannot be undone from the editor)."""
    config: Config = ctx.obj["config"]

    async def _publish() -> bool:
        async with await open_session(ctx.obj["gateway"], chapter_id, config=config.editor) as session:
            return await session.publish()

    if _run(ctx, _publish()):
        progress.show_published(chapter_id)
    else:
        progress.show_warning(f"Chapter {chapter_id} is already published")


@cli.command(name="list")
@click.option("--project", "project_id", required=True, help="Project id")
@click.pass_context
def list_chapters(ctx: click.Context, project_id: str):
    """List the chapters of a project."""
    chapters = _run(ctx, ctx.obj["gateway"].list_chapters(project_id))
    if not chapters:
        progress.show_warning(f"No chapters found for project {project_id}")
        return
    for chapter in chapters:
        click.echo(f"{chapter.chapter_id}  {chapter.status.value:<9}  {chapter.word_count:>6} words  {chapter.title}")


def main():
    """Entry point for the blockwriter command."""
    cli(obj={})


if __name__ == "__main__":
    sys.exit(main())
