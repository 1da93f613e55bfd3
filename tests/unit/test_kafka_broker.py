"""Unit tests for KafkaBroker."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from confluent_kafka import KafkaError, KafkaException

from event_backfill.backfill.json_files import JsonFilesEventSource
from event_backfill.brokers.base import EventTopicBroker
from event_backfill.brokers.kafka.broker import KafkaBroker
from event_backfill.config.models import BackfillConfig, KafkaConfig

ADMIN_CLIENT = "event_backfill.brokers.kafka.broker.AdminClient"


def _admin_with_futures(method: str, topic: str, result=None, error=None) -> MagicMock:
    admin = MagicMock()
    future = MagicMock()
    if error is not None:
        future.result.side_effect = error
    else:
        future.result.return_value = result
    getattr(admin, method).return_value = {topic: future}
    return admin


class TestKafkaBroker:
    def test_satisfies_broker_protocol(self):
        assert isinstance(KafkaBroker(KafkaConfig()), EventTopicBroker)


@pytest.mark.asyncio
class TestKafkaTopics:
    async def test_create_topic_with_prefix(self):
        config = KafkaConfig(topic_prefix="events.", topic_num_partitions=3)
        admin = _admin_with_futures("create_topics", "events.backfill-abc123")

        with patch(ADMIN_CLIENT, return_value=admin):
            topic = await KafkaBroker(config).create_topic("backfill-abc123")

        assert topic == "events.backfill-abc123"
        (new_topics,), kwargs = admin.create_topics.call_args
        assert new_topics[0].topic == "events.backfill-abc123"
        assert new_topics[0].num_partitions == 3
        assert kwargs["operation_timeout"] == config.admin_timeout_seconds

    async def test_create_topic_failure_propagates(self):
        admin = _admin_with_futures(
            "create_topics",
            "t",
            error=KafkaException(KafkaError(KafkaError.TOPIC_ALREADY_EXISTS)),
        )

        with (
            patch(ADMIN_CLIENT, return_value=admin),
            pytest.raises(KafkaException),
        ):
            await KafkaBroker(KafkaConfig()).create_topic("t")

    async def test_get_topic_id_of_existing_topic(self):
        admin = MagicMock()
        admin.list_topics.return_value.topics = {"events.orders": MagicMock()}

        with patch(ADMIN_CLIENT, return_value=admin):
            broker = KafkaBroker(KafkaConfig(topic_prefix="events."))
            assert await broker.get_topic_id("orders") == "events.orders"

    async def test_get_topic_id_of_missing_topic_raises(self):
        admin = MagicMock()
        admin.list_topics.return_value.topics = {}

        with (
            patch(ADMIN_CLIENT, return_value=admin),
            pytest.raises(ValueError, match="does not exist"),
        ):
            await KafkaBroker(KafkaConfig()).get_topic_id("orders")

    async def test_delete_topic(self):
        admin = _admin_with_futures("delete_topics", "t")

        with patch(ADMIN_CLIENT, return_value=admin):
            await KafkaBroker(KafkaConfig()).delete_topic("t")

        admin.delete_topics.assert_called_once()

    async def test_delete_missing_topic_is_not_an_error(self):
        error = KafkaException(KafkaError(KafkaError.UNKNOWN_TOPIC_OR_PART))
        admin = _admin_with_futures("delete_topics", "t", error=error)

        with patch(ADMIN_CLIENT, return_value=admin):
            await KafkaBroker(KafkaConfig()).delete_topic("t")

    async def test_delete_topic_other_errors_propagate(self):
        error = KafkaException(KafkaError(KafkaError.TOPIC_AUTHORIZATION_FAILED))
        admin = _admin_with_futures("delete_topics", "t", error=error)

        with (
            patch(ADMIN_CLIENT, return_value=admin),
            pytest.raises(KafkaException),
        ):
            await KafkaBroker(KafkaConfig()).delete_topic("t")


@pytest.mark.asyncio
class TestKafkaTriggers:
    async def test_create_trigger_unsupported(self):
        with pytest.raises(ValueError, match="not supported"):
            await KafkaBroker(KafkaConfig()).create_trigger("abc123", "t", "trigger")

    async def test_delete_trigger_resource_unsupported(self):
        with pytest.raises(ValueError):
            await KafkaBroker(KafkaConfig()).delete_trigger_resource("r")


@pytest.mark.asyncio
class TestKafkaPublishEvents:
    async def test_publishes_from_json_files(self, tmp_path: Path):
        (tmp_path / "a.json").write_text('{"data": "one"}\n')
        config = KafkaConfig()

        with patch(
            "event_backfill.brokers.kafka.broker.KafkaBackfillPublisher"
        ) as publisher_cls:
            publisher = publisher_cls.return_value
            publisher.publish_from_source = AsyncMock(return_value=1)
            publisher.close = AsyncMock()

            await KafkaBroker(config, BackfillConfig()).publish_events(
                "orders", "orders", source=f"json://{tmp_path}/*.json"
            )

        publisher_cls.assert_called_once_with(config, "orders")
        (events_source,) = publisher.publish_from_source.await_args.args
        assert isinstance(events_source, JsonFilesEventSource)
        publisher.close.assert_awaited_once()

    async def test_unsupported_source_raises(self):
        with pytest.raises(ValueError, match="Unsupported events source"):
            await KafkaBroker(KafkaConfig()).publish_events(
                "orders", "orders", source="bq://table"
            )
