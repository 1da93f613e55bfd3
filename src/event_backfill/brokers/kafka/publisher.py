"""KafkaBackfillPublisher — publishes backfill events with a Kafka producer."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any

import structlog
from confluent_kafka import KafkaError, Message, Producer

from event_backfill.backfill.event import BackfillEvent
from event_backfill.backfill.publisher import BackfillEventPublisher, PublishError
from event_backfill.brokers.kafka.auth import build_client_config
from event_backfill.config.models import KafkaConfig

logger = structlog.get_logger()


def create_producer(config: KafkaConfig) -> Producer:
    """Create an idempotent producer with a bounded local queue."""
    return Producer(
        {
            **build_client_config(config),
            "enable.idempotence": config.enable_idempotence,
            "acks": config.acks,
            "linger.ms": config.linger_ms,
            "queue.buffering.max.messages": config.queue_buffering_max_messages,
        }
    )


class KafkaBackfillPublisher(BackfillEventPublisher):
    """Produces events to a Kafka topic.

    Attributes become message headers and the ordering key the message key.
    When the producer's local queue is full, ``produce`` raises ``BufferError``
    and ``publish_event`` returns an awaitable that serves delivery reports
    until the event is accepted.
    """

    def __init__(
        self, config: KafkaConfig, topic: str, producer: Producer | None = None
    ) -> None:
        self._config = config
        self._topic = topic
        self._producer = producer
        self._failures = 0

    def _get_producer(self) -> Producer:
        if self._producer is None:
            self._producer = create_producer(self._config)
        return self._producer

    def _on_delivery(self, err: KafkaError | None, msg: Message) -> None:
        if err is None:
            return
        self._failures += 1
        logger.error("kafka.delivery_failed", topic=msg.topic(), error=str(err))

    def _produce(self, event: BackfillEvent) -> None:
        headers: list[tuple[str, Any]] = [
            (name, value.encode()) for name, value in (event.attributes or {}).items()
        ]
        self._get_producer().produce(
            topic=self._topic,
            value=event.data,
            key=event.key.encode() if event.key else None,
            headers=headers,
            on_delivery=self._on_delivery,
        )

    async def _produce_when_ready(self, event: BackfillEvent) -> None:
        producer = self._get_producer()
        loop = asyncio.get_running_loop()
        while True:
            await loop.run_in_executor(
                None, producer.poll, self._config.poll_interval_seconds
            )
            try:
                self._produce(event)
            except BufferError:
                continue
            return

    def publish_event(self, event: BackfillEvent) -> Awaitable[None] | None:
        try:
            self._produce(event)
        except BufferError:
            logger.debug("kafka.local_queue_full", topic=self._topic)
            return self._produce_when_ready(event)
        # Serve delivery callbacks without blocking.
        self._get_producer().poll(0)
        return None

    async def flush(self) -> None:
        """Wait for outstanding deliveries; raise if any failed or timed out."""
        producer = self._get_producer()
        loop = asyncio.get_running_loop()
        remaining = await loop.run_in_executor(
            None, producer.flush, self._config.flush_timeout_seconds
        )
        failed = self._failures + remaining
        self._failures = 0
        if failed:
            msg = (
                f"Failed to publish {failed} event(s) to '{self._topic}' "
                f"({remaining} still pending after flush)."
            )
            raise PublishError(msg, failed)
        logger.debug("kafka.flushed", topic=self._topic)

    async def close(self) -> None:
        self._producer = None
