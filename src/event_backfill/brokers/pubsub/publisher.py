"""PubSubBackfillPublisher — publishes backfill events to a Pub/Sub topic."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any

import structlog

from event_backfill.backfill.event import BackfillEvent
from event_backfill.backfill.publisher import BackfillEventPublisher, PublishError
from event_backfill.config.models import PubSubConfig

logger = structlog.get_logger()

# Keyword arguments of PublisherClient.publish besides message attributes.
RESERVED_ATTRIBUTE_NAMES = frozenset({"ordering_key", "retry", "timeout"})


class PubSubBackfillPublisher(BackfillEventPublisher):
    """Publishes events through a ``pubsub_v1.PublisherClient``.

    Publishes are non-blocking; each returned future is tracked until it
    settles.  Once ``max_outstanding_messages`` publishes are in flight,
    ``publish_event`` hands back an awaitable so the driver waits for one of
    them to settle before submitting more.

    Events with an attribute named like a ``publish`` keyword argument
    (``RESERVED_ATTRIBUTE_NAMES``) cannot be sent intact.  They are logged,
    skipped and counted as failed, so ``flush()`` raises ``PublishError``.
    """

    def __init__(self, config: PubSubConfig, topic_id: str, client: Any = None) -> None:
        self._config = config
        self._topic_id = topic_id
        self._client = client
        self._pending: set[asyncio.Future[Any]] = set()
        self._failures = 0

    def _get_client(self):  # noqa: ANN202
        if self._client is None:
            from google.cloud import pubsub_v1

            if self._config.ordering_enabled:
                from google.cloud.pubsub_v1 import types

                publisher_options = types.PublisherOptions(
                    enable_message_ordering=True,
                )
                self._client = pubsub_v1.PublisherClient(
                    publisher_options=publisher_options,
                )
            else:
                self._client = pubsub_v1.PublisherClient()
        return self._client

    def _on_settled(self, future: asyncio.Future[Any], ordering_key: str) -> None:
        self._pending.discard(future)
        if future.cancelled():
            self._failures += 1
            return
        exc = future.exception()
        if exc is None:
            return
        self._failures += 1
        logger.error(
            "pubsub.publish_failed",
            topic=self._topic_id,
            ordering_key=ordering_key or None,
            error=str(exc),
        )
        if ordering_key:
            # Publishes for a key are paused after a failure until resumed.
            self._get_client().resume_publish(self._topic_id, ordering_key)

    async def _wait_for_capacity(self) -> None:
        while len(self._pending) >= self._config.max_outstanding_messages:
            await asyncio.wait(set(self._pending), return_when=asyncio.FIRST_COMPLETED)

    def publish_event(self, event: BackfillEvent) -> Awaitable[None] | None:
        attributes = event.attributes or {}
        reserved = sorted(RESERVED_ATTRIBUTE_NAMES.intersection(attributes))
        if reserved:
            # PublisherClient.publish takes attributes as keyword arguments.
            self._failures += 1
            logger.error(
                "pubsub.reserved_attribute",
                topic=self._topic_id,
                attributes=reserved,
            )
            return None

        client = self._get_client()
        ordering_key = event.key if event.key and self._config.ordering_enabled else ""
        kwargs: dict[str, Any] = {}
        if ordering_key:
            kwargs["ordering_key"] = ordering_key

        future = asyncio.wrap_future(
            client.publish(self._topic_id, event.data, **kwargs, **attributes)
        )
        self._pending.add(future)
        future.add_done_callback(lambda f: self._on_settled(f, ordering_key))

        if len(self._pending) >= self._config.max_outstanding_messages:
            return self._wait_for_capacity()
        return None

    async def flush(self) -> None:
        """Wait for every pending publish; raise if any of them failed."""
        if self._pending:
            await asyncio.wait(set(self._pending))
        if self._failures:
            failed, self._failures = self._failures, 0
            msg = f"Failed to publish {failed} event(s) to '{self._topic_id}'."
            raise PublishError(msg, failed)
        logger.debug("pubsub.flushed", topic=self._topic_id)

    async def close(self) -> None:
        """Shut down the publisher transport."""
        if self._client is not None:
            self._client.stop()
            self._client = None
        self._pending.clear()
