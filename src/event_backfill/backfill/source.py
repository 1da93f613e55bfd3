"""Pull-based event source protocol."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from event_backfill.backfill.event import BackfillEvent


@runtime_checkable
class BackfillEventsSource(Protocol):
    """A source that hands out events to publish in batches."""

    async def get_batch(self) -> list[BackfillEvent] | None:
        """Return the next batch of events, or ``None`` once exhausted.

        An empty list means the source is still open but had nothing ready;
        callers should keep polling.  Once ``None`` is returned, every later
        call returns ``None`` too.
        """
        ...

    async def dispose(self) -> None:
        """Release underlying resources.  Safe to call more than once."""
        ...
