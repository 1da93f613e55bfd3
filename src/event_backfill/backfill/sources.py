"""Lookup of event sources from a source string."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from event_backfill.backfill.json_files import JsonFilesEventSource
from event_backfill.backfill.source import BackfillEventsSource
from event_backfill.config.models import BackfillConfig

SourceFactory = Callable[
    [str, str | None, BackfillConfig], Awaitable[BackfillEventsSource | None]
]


async def _json_files_source(
    source: str, filter: str | None, config: BackfillConfig
) -> BackfillEventsSource | None:
    return await JsonFilesEventSource.from_source_and_filter(
        source,
        filter,
        batch_size=config.batch_size,
        read_chunk_bytes=config.read_chunk_bytes,
    )


# Tried in order; each returns None when the source string is not its kind.
SOURCE_FACTORIES: list[SourceFactory] = [_json_files_source]


def resolve_source(source: str | None, event_topic: str, config: BackfillConfig) -> str:
    """Return *source*, or the configured default source for *event_topic*."""
    if source:
        return source
    if config.default_source is None:
        msg = (
            f"No source was given for event topic '{event_topic}' "
            "and no default source is configured."
        )
        raise ValueError(msg)
    return config.default_source.format(event_topic=event_topic)


async def create_events_source(
    source: str,
    filter: str | None,
    config: BackfillConfig,
) -> BackfillEventsSource:
    """Create the events source matching *source*."""
    for factory in SOURCE_FACTORIES:
        events_source = await factory(source, filter, config)
        if events_source is not None:
            return events_source

    msg = f"Unsupported events source: '{source}'"
    raise ValueError(msg)
