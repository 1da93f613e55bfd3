"""KafkaBroker — EventTopicBroker implementation for Apache Kafka."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from confluent_kafka import KafkaError, KafkaException
from confluent_kafka.admin import AdminClient, NewTopic  # type: ignore[attr-defined]

from event_backfill.backfill.sources import create_events_source, resolve_source
from event_backfill.brokers.kafka.auth import build_client_config
from event_backfill.brokers.kafka.naming import kafka_topic_name
from event_backfill.brokers.kafka.publisher import KafkaBackfillPublisher
from event_backfill.config.models import BackfillConfig, KafkaConfig

logger = structlog.get_logger()


class KafkaBroker:
    """Creates and deletes Kafka topics and produces backfill events.

    Kafka consumers subscribe to topics themselves, so there are no triggers
    to create: backfills with Kafka publish to the existing topic.
    """

    def __init__(
        self,
        config: KafkaConfig,
        backfill: BackfillConfig | None = None,
    ) -> None:
        self._config = config
        self._backfill = backfill or BackfillConfig()
        self._admin: AdminClient | None = None

    def _get_admin(self) -> AdminClient:
        if self._admin is None:
            self._admin = AdminClient(build_client_config(self._config))
        return self._admin

    def _create_topic_sync(self, topic: str) -> None:
        futures = self._get_admin().create_topics(
            [
                NewTopic(
                    topic,
                    num_partitions=self._config.topic_num_partitions,
                    replication_factor=self._config.topic_replication_factor,
                )
            ],
            operation_timeout=self._config.admin_timeout_seconds,
        )
        futures[topic].result()

    def _delete_topic_sync(self, topic: str) -> bool:
        """Delete *topic*; returns False if it did not exist."""
        futures = self._get_admin().delete_topics(
            [topic], operation_timeout=self._config.admin_timeout_seconds
        )
        try:
            futures[topic].result()
        except KafkaException as exc:
            error: Any = exc.args[0] if exc.args else None
            if isinstance(error, KafkaError) and (
                error.code() == KafkaError.UNKNOWN_TOPIC_OR_PART
            ):
                return False
            raise
        return True

    def _list_topics_sync(self) -> set[str]:
        metadata = self._get_admin().list_topics(
            timeout=self._config.admin_timeout_seconds
        )
        return set(metadata.topics.keys())

    async def create_topic(self, name: str) -> str:
        topic = kafka_topic_name(self._config.topic_prefix, name)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._create_topic_sync, topic)
        logger.info("kafka.topic_created", topic=topic)
        return topic

    async def get_topic_id(self, event_topic: str) -> str:
        topic = kafka_topic_name(self._config.topic_prefix, event_topic)
        loop = asyncio.get_running_loop()
        existing = await loop.run_in_executor(None, self._list_topics_sync)
        if topic not in existing:
            msg = f"Kafka topic '{topic}' does not exist."
            raise ValueError(msg)
        return topic

    async def delete_topic(self, topic_id: str) -> None:
        loop = asyncio.get_running_loop()
        deleted = await loop.run_in_executor(None, self._delete_topic_sync, topic_id)
        if deleted:
            logger.info("kafka.topic_deleted", topic=topic_id)
        else:
            logger.info("kafka.topic_already_deleted", topic=topic_id)

    async def create_trigger(
        self, backfill_id: str, topic_id: str, trigger: str
    ) -> list[str]:
        msg = "Temporary triggers are not supported by the Kafka broker."
        raise ValueError(msg)

    async def delete_trigger_resource(self, resource_id: str) -> None:
        msg = f"Kafka has no trigger resources, cannot delete '{resource_id}'."
        raise ValueError(msg)

    async def publish_events(
        self,
        topic_id: str,
        event_topic: str,
        source: str | None = None,
        filter: str | None = None,
    ) -> None:
        source = resolve_source(source, event_topic, self._backfill)
        events_source = await create_events_source(source, filter, self._backfill)

        publisher = KafkaBackfillPublisher(self._config, topic_id)
        try:
            await publisher.publish_from_source(events_source)
        finally:
            await publisher.close()

    async def close(self) -> None:
        self._admin = None
