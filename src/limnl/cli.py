"""CLI entry point for Limnl."""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from limnl.config import load_config
from limnl.llm.client import generate_title, optimize_description
from limnl.llm.exceptions import LLMError
from limnl.models.config import AppConfig
from limnl.models.records import DreamInput, MindDumpInput
from limnl.services.analysis import MindDumpAnalyzer
from limnl.services.deck import load_deck
from limnl.services.dreams import analyze_dream, generate_dream_creative_prompts
from limnl.services.exceptions import RecordNotFoundError
from limnl.services.record_store import Database
from limnl.utils.logging import configure_logging, get_logger


logger = get_logger(__name__)
console = Console()


def _validation_message(e: ValidationError) -> str:
    return "; ".join(error["msg"].removeprefix("Value error, ") for error in e.errors())


def _get_config(ctx: click.Context) -> AppConfig:
    """
    Load configuration once per invocation.

    Raises:
        click.ClickException: If the file has unsafe permissions or is invalid
    """
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = load_config(ctx.obj.get("config_path"))
        except (PermissionError, ValueError) as e:
            raise click.ClickException(str(e))
    return ctx.obj["config"]


def _open_database(config: AppConfig) -> Database:
    return Database(config.database.path)


def _run_llm(coro):
    """Run an LLM coroutine, turning its errors into a CLI error."""
    try:
        return asyncio.run(coro)
    except LLMError as e:
        logger.error("cli_llm_error", error=str(e), error_type=type(e).__name__)
        raise click.ClickException(str(e))
    except RecordNotFoundError as e:
        raise click.ClickException(str(e))


@click.group()
@click.version_option(version="0.3.0", prog_name="limnl")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    help="Path to configuration file (default: ~/.config/limnl/config.yaml)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path]):
    """Limnl: a dream and mind-dump journal with optional LLM enrichment."""
    configure_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.argument("source", type=click.File("r"), default="-")
@click.pass_context
def title(ctx: click.Context, source):
    """Suggest a title for the dream text in SOURCE (default: stdin)."""
    config = _get_config(ctx)
    console.print(_run_llm(generate_title(source.read(), config.llm)))


@cli.command()
@click.argument("source", type=click.File("r"), default="-")
@click.pass_context
def optimize(ctx: click.Context, source):
    """Rewrite the dream description in SOURCE (default: stdin)."""
    config = _get_config(ctx)
    console.print(_run_llm(optimize_description(source.read(), config.llm)))


@cli.command()
def cards():
    """List the card deck."""
    table = Table(title="Card Deck")
    table.add_column("#", justify="right")
    table.add_column("Card")
    table.add_column("Meaning")
    table.add_column("Tags")
    for card in load_deck():
        table.add_row(str(card.id), card.name, card.core_meaning, ", ".join(card.tags))
    console.print(table)


@cli.command()
@click.argument("destination", type=click.Path(path_type=Path), required=False)
@click.pass_context
def backup(ctx: click.Context, destination: Optional[Path]):
    """Copy the database to DESTINATION (default: timestamped file next to it)."""
    config = _get_config(ctx)
    if destination is None:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        source = config.database.path
        destination = source.with_name(f"{source.stem}.backup-{stamp}{source.suffix}")
    with _open_database(config) as db:
        written = db.backup(destination)
    console.print(f"Backup written to {written}")


# Mind dumps

@cli.group()
def dump():
    """Write and review mind dumps."""


@dump.command("add")
@click.argument("content")
@click.option("--title", "dump_title", help="Optional title")
@click.pass_context
def dump_add(ctx: click.Context, content: str, dump_title: Optional[str]):
    """Save a mind dump and analyze it in the background."""
    config = _get_config(ctx)
    try:
        data = MindDumpInput(title=dump_title, content=content, character_count=len(content))
    except ValidationError as e:
        raise click.ClickException(_validation_message(e))

    db_path = config.database.path

    async def save_and_analyze():
        analyzer = MindDumpAnalyzer(lambda: Database(db_path))
        with Database(db_path) as db:
            mind_dump = await analyzer.create_mind_dump(db, data, config.llm)
            console.print(f"Saved mind dump #{mind_dump.id}")
            if analyzer.pending_count:
                console.print("Analyzing...")
            await analyzer.wait_for_pending()
        return mind_dump.id

    mind_dump_id = asyncio.run(save_and_analyze())
    with _open_database(config) as db:
        _print_mind_dump(db, mind_dump_id)


def _print_mind_dump(db: Database, mind_dump_id: int) -> None:
    mind_dump = db.get_mind_dump(mind_dump_id)
    if mind_dump is None:
        raise click.ClickException(f"Mind dump {mind_dump_id} not found")

    header = f"[bold]#{mind_dump.id}[/bold]"
    if mind_dump.title:
        header += f" {mind_dump.title}"
    console.print(header)
    console.print(mind_dump.content)
    if mind_dump.mood_tags:
        console.print(f"Mood: {', '.join(mind_dump.mood_tags)}")

    analysis = db.get_mind_dump_analysis(mind_dump_id)
    if analysis is None:
        return
    for card in analysis.cards:
        console.print(f"[cyan]{card.card_name}[/cyan]: {card.relevance_note or ''}")
    for task in analysis.tasks:
        line = f"- [ ] {task.title}"
        if task.description:
            line += f" ({task.description})"
        console.print(line, markup=False)
    if analysis.blocker_patterns:
        console.print(f"Blocker patterns: {', '.join(analysis.blocker_patterns)}")


@dump.command("show")
@click.argument("mind_dump_id", type=int)
@click.pass_context
def dump_show(ctx: click.Context, mind_dump_id: int):
    """Show a mind dump and its analysis."""
    with _open_database(_get_config(ctx)) as db:
        _print_mind_dump(db, mind_dump_id)


@dump.command("list")
@click.option("--search", "query", help="Only show mind dumps containing this text")
@click.option("--limit", type=int, default=20, show_default=True)
@click.pass_context
def dump_list(ctx: click.Context, query: Optional[str], limit: int):
    """List recent mind dumps."""
    with _open_database(_get_config(ctx)) as db:
        dumps = db.search_mind_dumps(query) if query else db.list_mind_dumps(limit=limit)

    table = Table()
    table.add_column("#", justify="right")
    table.add_column("Created")
    table.add_column("Title")
    table.add_column("Mood")
    for mind_dump in dumps:
        table.add_row(
            str(mind_dump.id),
            mind_dump.created_at.strftime("%Y-%m-%d %H:%M"),
            mind_dump.title or mind_dump.content[:40],
            ", ".join(mind_dump.mood_tags),
        )
    console.print(table)


@dump.command("delete")
@click.argument("mind_dump_id", type=int)
@click.pass_context
def dump_delete(ctx: click.Context, mind_dump_id: int):
    """Delete a mind dump and its analysis."""
    with _open_database(_get_config(ctx)) as db:
        if not db.delete_mind_dump(mind_dump_id):
            raise click.ClickException(f"Mind dump {mind_dump_id} not found")
    console.print(f"Deleted mind dump #{mind_dump_id}")


# Dreams

@cli.group()
def dream():
    """Record and analyze dreams."""


@dream.command("add")
@click.argument("content")
@click.option("--title", "dream_title", help="Title (generated when omitted and an LLM is configured)")
@click.option("--sleep-quality", type=click.IntRange(1, 5), help="Sleep quality from 1 to 5")
@click.pass_context
def dream_add(ctx: click.Context, content: str, dream_title: Optional[str], sleep_quality: Optional[int]):
    """Record a dream."""
    config = _get_config(ctx)
    if not dream_title:
        try:
            dream_title = asyncio.run(generate_title(content, config.llm))
        except LLMError as e:
            logger.info("dream_title_generation_skipped", error=str(e))
            dream_title = "Untitled dream"

    try:
        data = DreamInput(title=dream_title, content=content, sleep_quality=sleep_quality)
    except ValidationError as e:
        raise click.ClickException(_validation_message(e))

    with _open_database(config) as db:
        created = db.create_dream(data)
    console.print(f"Saved dream #{created.id}: {created.title}")


@dream.command("analyze")
@click.argument("dream_id", type=int)
@click.pass_context
def dream_analyze(ctx: click.Context, dream_id: int):
    """Analyze a dream and link matching cards."""
    config = _get_config(ctx)
    with _open_database(config) as db:
        analysis = _run_llm(analyze_dream(db, dream_id, config.llm))

    console.print("[bold]Themes & Patterns[/bold]")
    console.print(analysis.themes_patterns)
    console.print("[bold]Emotional Analysis[/bold]")
    console.print(analysis.emotional_analysis)
    console.print("[bold]Narrative Summary[/bold]")
    console.print(analysis.narrative_summary)
    for card in analysis.cards:
        console.print(f"[cyan]{card.card_name}[/cyan]: {card.relevance_note or ''}")


@dream.command("prompts")
@click.argument("dream_id", type=int)
@click.pass_context
def dream_prompts(ctx: click.Context, dream_id: int):
    """Generate image, music and story prompts from a dream's analysis."""
    config = _get_config(ctx)
    with _open_database(config) as db:
        prompts = _run_llm(generate_dream_creative_prompts(db, dream_id, config.llm))

    for heading, items in (
        ("Image", prompts.image_prompts),
        ("Music", prompts.music_prompts),
        ("Story", prompts.story_prompts),
    ):
        console.print(f"[bold]{heading}[/bold]")
        for item in items:
            console.print(f"- {item}", markup=False)


def main():
    """Main entry point for the console script."""
    cli()


if __name__ == "__main__":
    main()
