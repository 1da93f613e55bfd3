"""Factory for the configured broker."""

from __future__ import annotations

from event_backfill.brokers.base import EventTopicBroker
from event_backfill.config.models import BrokerType, PlatformConfig


def create_broker(platform: PlatformConfig) -> EventTopicBroker:
    """Create an EventTopicBroker for the configured broker type."""
    if platform.broker == BrokerType.PUBSUB:
        assert platform.pubsub is not None
        from event_backfill.brokers.pubsub.broker import PubSubBroker

        return PubSubBroker(platform.pubsub, platform.backfill)

    if platform.broker == BrokerType.KAFKA:
        assert platform.kafka is not None
        from event_backfill.brokers.kafka.broker import KafkaBroker

        return KafkaBroker(platform.kafka, platform.backfill)

    msg = f"Unsupported broker: {platform.broker}"
    raise ValueError(msg)
