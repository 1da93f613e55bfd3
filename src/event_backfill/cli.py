"""Typer CLI for event backfills."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from event_backfill.backfill.cleanup import BackfillCleaner
from event_backfill.backfill.orchestrator import BackfillOrchestrator
from event_backfill.brokers.factory import create_broker
from event_backfill.config.loader import load_platform_config
from event_backfill.config.models import PlatformConfig
from event_backfill.observability.logs import configure_logging

console = Console(stderr=True)
app = typer.Typer(name="event-backfill", help="Backfill events into broker topics")


def _load(platform_config: str | None) -> PlatformConfig:
    try:
        platform = load_platform_config(
            Path(platform_config) if platform_config else None
        )
    except (FileNotFoundError, TypeError, ValueError) as exc:
        console.print(f"[red]Invalid platform config:[/red] {exc}")
        raise typer.Exit(1) from exc
    configure_logging(platform.logging)
    return platform


@app.command()
def validate(
    platform_config: str | None = typer.Option(
        None, "--platform-config", help="Platform YAML"
    ),
) -> None:
    """Validate the platform configuration and print the effective settings."""
    platform = _load(platform_config)
    console.print(f"[green]Valid[/green] — broker={platform.broker}")
    if platform.kafka is not None:
        console.print(f"  kafka:  {platform.kafka.bootstrap_servers}")
    if platform.pubsub is not None:
        console.print(f"  pubsub: {platform.pubsub.project_id}")
    console.print(f"  batch size: {platform.backfill.batch_size}")
    default_source = platform.backfill.default_source or "(none)"
    console.print(f"  default source: {default_source}")


@app.command()
def backfill(
    event_topic: str = typer.Argument(
        ..., help="The full event topic name (e.g. `my-domain.my-event.v1`)."
    ),
    create_temporary_topic: bool = typer.Option(
        False,
        "--create-temporary-topic",
        "-c",
        help="Publish to a temporary topic instead of the existing one.",
    ),
    trigger: list[str] | None = typer.Option(
        None,
        "--trigger",
        "-t",
        help="A temporary trigger to create for the backfill. Can be repeated.",
    ),
    source: str | None = typer.Option(
        None,
        "--source",
        "-s",
        help="The source for events, e.g. 'json://archive/*.jsonl'.",
    ),
    filter: str | None = typer.Option(
        None,
        "--filter",
        "-f",
        help="A filter for source events, if the source type supports it.",
    ),
    output: str | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Where to write the list of temporary resources to clean up.",
    ),
    platform_config: str | None = typer.Option(
        None, "--platform-config", help="Platform YAML"
    ),
) -> None:
    """Backfill events for an event topic and print the manifest path."""
    platform = _load(platform_config)
    broker = create_broker(platform)
    orchestrator = BackfillOrchestrator(
        broker,
        event_topic,
        create_temporary_topic=create_temporary_topic,
        triggers=trigger,
        source=source,
        filter=filter,
        output=output,
        output_dir=platform.backfill.output_dir,
        platform_config=platform_config,
    )

    async def _run() -> str:
        try:
            return await orchestrator.run()
        finally:
            await broker.close()

    try:
        manifest_path = asyncio.run(_run())
    except Exception as exc:
        console.print(f"[red]Backfill failed:[/red] {exc}")
        if orchestrator.output_path is not None:
            console.print(
                "[yellow]Temporary resources are listed in:[/yellow] "
                f"{orchestrator.output_path}"
            )
        raise typer.Exit(1) from exc

    typer.echo(manifest_path)


@app.command("clean-backfill")
def clean_backfill(
    file: str = typer.Argument(..., help="The path printed by the `backfill` command."),
    platform_config: str | None = typer.Option(
        None, "--platform-config", help="Platform YAML"
    ),
) -> None:
    """Delete the temporary topic and triggers created for a backfill."""
    if not Path(file).exists():
        console.print(f"[red]Backfill file not found: {file}[/red]")
        raise typer.Exit(1)

    platform = _load(platform_config)
    broker = create_broker(platform)
    cleaner = BackfillCleaner(broker)

    async def _run() -> None:
        try:
            await cleaner.run(file)
        finally:
            await broker.close()

    try:
        asyncio.run(_run())
    except Exception as exc:
        console.print(f"[red]Cleanup failed:[/red] {exc}")
        raise typer.Exit(1) from exc

    console.print("[green]Temporary backfill resources removed[/green]")
