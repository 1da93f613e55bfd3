"""BackfillEventPublisher — drains an events source into a broker."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable

import structlog

from event_backfill.backfill.event import BackfillEvent
from event_backfill.backfill.source import BackfillEventsSource

logger = structlog.get_logger()


class PublishError(Exception):
    """Raised when some events could not be delivered to the broker."""

    def __init__(self, message: str, failed_count: int) -> None:
        super().__init__(message)
        self.failed_count = failed_count


class BackfillEventPublisher(ABC):
    """Publishes events fetched in batches from a ``BackfillEventsSource``.

    Subclasses implement the broker-specific ``publish_event`` and ``flush``.
    Events are submitted one at a time; when ``publish_event`` returns an
    awaitable, the next event is only submitted once it completes.
    """

    @abstractmethod
    def publish_event(self, event: BackfillEvent) -> Awaitable[None] | None:
        """Submit *event* to the broker.

        Returns ``None`` if more events can be submitted immediately, or an
        awaitable that completes once the publisher has caught up.
        """

    @abstractmethod
    async def flush(self) -> None:
        """Wait for all submitted events to be published."""

    async def publish_from_source(self, source: BackfillEventsSource) -> int:
        """Publish every event from *source* and return the number submitted.

        The source is always disposed.  ``flush()`` is only awaited when the
        source was fully drained without error.
        """
        logger.info("publisher.publishing")

        num_events = 0
        try:
            while True:
                logger.debug("publisher.batch_requested")
                events = await source.get_batch()
                if events is None:
                    logger.debug("publisher.source_exhausted")
                    break
                logger.debug("publisher.batch_fetched", count=len(events))

                for event in events:
                    num_events += 1
                    wait = self.publish_event(event)
                    if wait is not None:
                        logger.debug("publisher.waiting_for_broker")
                        await wait
        finally:
            await source.dispose()

        await self.flush()

        logger.info("publisher.published", count=num_events)
        return num_events
