"""Pub/Sub resource naming for backfills."""

from __future__ import annotations

import re

_SUBSCRIPTION_PATTERN = re.compile(
    r"^projects/(?P<project>[^/]+)/subscriptions/(?P<name>[^/]+)$"
)


def pubsub_topic_name(project_id: str, topic: str) -> str:
    """Build a fully-qualified Pub/Sub topic name.

    Converts dots to hyphens since Pub/Sub topic names cannot contain dots.
    """
    safe_name = topic.replace(".", "-")
    return f"projects/{project_id}/topics/{safe_name}"


def pubsub_subscription_path(project_id: str, name: str) -> str:
    """Build a fully-qualified Pub/Sub subscription name."""
    return f"projects/{project_id}/subscriptions/{name}"


def parse_subscription_path(path: str) -> tuple[str, str] | None:
    """Split ``projects/<project>/subscriptions/<name>`` into (project, name)."""
    match = _SUBSCRIPTION_PATTERN.match(path)
    if match is None:
        return None
    return match.group("project"), match.group("name")


def backfill_subscription_name(project_id: str, name: str, backfill_id: str) -> str:
    """Subscription created on the backfill topic as a copy of *name*."""
    return pubsub_subscription_path(project_id, f"{name}-backfill-{backfill_id}")


def backfill_dead_letter_topic_name(
    project_id: str, name: str, backfill_id: str
) -> str:
    """Dead-letter topic created for the backfill copy of subscription *name*."""
    return pubsub_topic_name(project_id, f"{name}-backfill-{backfill_id}-dlq")


def is_topic_path(resource_id: str) -> bool:
    return "/topics/" in resource_id


def is_subscription_path(resource_id: str) -> bool:
    return "/subscriptions/" in resource_id
