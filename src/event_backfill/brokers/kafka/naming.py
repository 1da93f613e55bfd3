"""Kafka topic naming for backfills."""

from __future__ import annotations


def kafka_topic_name(prefix: str, topic: str) -> str:
    """Build a Kafka topic name: ``<prefix><topic>``."""
    return f"{prefix}{topic}"
