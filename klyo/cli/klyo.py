#!/usr/bin/env python3
"""
Command line for the Klyo schedule assistant.

Usage:
    klyo ask "question" --schedule schedule.yaml   - Ask about your schedule
    klyo rank "question" --schedule schedule.yaml  - Show retrieval ranking (offline)
    klyo config init [PATH]                        - Write a default config file
"""

import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
import yaml
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ..assistant.config import Config
from ..assistant.models import AssistantReply, ScheduleEvent, ScheduleTask
from ..assistant.normalizer import normalize
from ..assistant.pipeline import SchedulePipeline
from ..assistant.ranker import HybridRanker
from ..assistant.temporal import coarse_filter, detect_intent, strict_filter

console = Console()


def load_schedule(path: Path) -> Tuple[list, list]:
    """Read ``events`` and ``tasks`` lists from a YAML or JSON file."""
    with open(path, 'r') as f:
        data: Dict[str, Any] = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise click.BadParameter("schedule file must contain a mapping", param_hint="--schedule")

    events = [ScheduleEvent.model_validate(e) for e in data.get("events") or []]
    tasks = [ScheduleTask.model_validate(t) for t in data.get("tasks") or []]
    return events, tasks


def parse_now(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"not an ISO-8601 timestamp: {value}", param_hint="--now")


def load_config(path: Optional[str]) -> Config:
    try:
        return Config.load(Path(path) if path else None)
    except (FileNotFoundError, ValidationError) as e:
        raise click.ClickException(f"Configuration error: {e}")


@click.group()
@click.option("--log-level", default="WARNING",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Log verbosity on stderr")
def cli(log_level: str):
    """Klyo - ask questions about your calendar and tasks."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=log_level.upper()
    )


@cli.command()
@click.argument("question")
@click.option("--schedule", "-s", required=True, type=click.Path(exists=True, dir_okay=False),
              help="YAML/JSON file with events and tasks")
@click.option("--config", "-c", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="Config file path")
@click.option("--now", help="Override the current instant (ISO-8601)")
@click.option("--verbose", "-v", is_flag=True, help="Show the retrieved context")
def ask(question: str, schedule: str, config_path: Optional[str], now: Optional[str], verbose: bool):
    """Ask a question about your schedule."""
    config = load_config(config_path)
    try:
        events, tasks = load_schedule(Path(schedule))
    except ValidationError as e:
        raise click.ClickException(f"Invalid schedule: {e}")

    pipeline = SchedulePipeline(config)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=console
    ) as progress:
        progress.add_task(description="Thinking...", total=None)
        reply = asyncio.run(pipeline.answer(question, events, tasks, parse_now(now)))

    display_reply(reply, verbose)
    if reply.failed:
        sys.exit(1)


def display_reply(reply: AssistantReply, verbose: bool = False):
    """Print the answer, with the context table when verbose."""
    style = "red" if reply.failed else "green"
    console.print(Panel(reply.answer, title=reply.persona or "Klyo", border_style=style))

    if not verbose:
        return

    if reply.queries:
        console.print("[bold]Queries:[/bold]")
        for q in reply.queries:
            console.print(f"  • {q}")

    if reply.total_found is not None:
        console.print(f"\n[bold]Matching items:[/bold] {reply.total_found}")

    if reply.context:
        table = Table(title="Context")
        table.add_column("#", justify="right")
        table.add_column("Item", no_wrap=False)
        for i, text in enumerate(reply.context, 1):
            table.add_row(str(i), text)
        console.print(table)

    if reply.reflected:
        console.print("[dim]Answer was rewritten after self-review[/dim]")


@cli.command()
@click.argument("question")
@click.option("--schedule", "-s", required=True, type=click.Path(exists=True, dir_okay=False),
              help="YAML/JSON file with events and tasks")
@click.option("--config", "-c", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="Config file path")
@click.option("--now", help="Override the current instant (ISO-8601)")
@click.option("--limit", "-l", default=15, help="Max rows")
def rank(question: str, schedule: str, config_path: Optional[str], now: Optional[str], limit: int):
    """Show how items rank for a question, without calling the model."""
    config = load_config(config_path)
    try:
        events, tasks = load_schedule(Path(schedule))
    except ValidationError as e:
        raise click.ClickException(f"Invalid schedule: {e}")

    moment = parse_now(now) or datetime.now()
    try:
        items = normalize(events, tasks, moment)
    except ValueError as e:
        raise click.ClickException(f"Invalid schedule: {e}")
    if not items:
        console.print("[yellow]Schedule is empty[/yellow]")
        return

    intent = detect_intent(question)
    ranked = coarse_filter(HybridRanker(config.retrieval).rank([question], items, intent, moment), intent)
    kept = {item.id for item in strict_filter([c.item for c in ranked], question, moment)}

    table = Table(title=f"Ranking (intent: {intent.value}, {len(kept)} pass date filter)")
    table.add_column("Title", style="cyan", no_wrap=False)
    table.add_column("Tag", style="magenta")
    table.add_column("Vector", justify="right")
    table.add_column("Lexical", justify="right")
    table.add_column("Recency", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Kept", justify="center")

    for c in ranked[:limit]:
        table.add_row(
            c.item.title,
            c.item.tag.value,
            f"{c.vector_score:.2f}",
            f"{c.lexical_score:.1f}",
            f"{c.recency_score:+.1f}",
            f"{c.score:.2f}",
            "✓" if c.item.id in kept else "",
        )

    console.print(table)


@cli.group()
def config():
    """Manage configuration."""
    pass


@config.command()
@click.argument("path", required=False, type=click.Path(dir_okay=False))
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def init(path: Optional[str], force: bool):
    """Write a default config file."""
    target = Path(path) if path else Path.home() / ".config" / "klyo" / "config.yaml"
    if target.exists() and not force:
        console.print(f"[yellow]{target} already exists[/yellow] (use --force to overwrite)")
        return
    Config().save(target)
    console.print(f"[green]✓[/green] Wrote {target}")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
