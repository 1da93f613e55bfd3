"""Broker protocol — the broker-specific operations a backfill relies on."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


class TriggerCreationError(Exception):
    """A trigger could not be created, but some of its resources might exist.

    Raised by ``EventTopicBroker.create_trigger``.  ``resource_ids`` lists the
    resources that were created before the failure and must be cleaned up.
    """

    def __init__(self, parent: BaseException | Any, resource_ids: list[str]) -> None:
        super().__init__(str(parent))
        self.parent = parent
        self.resource_ids = resource_ids


@runtime_checkable
class EventTopicBroker(Protocol):
    """Creates, resolves and deletes topics and triggers, and publishes events.

    Implementations: PubSubBroker, KafkaBroker.
    """

    async def create_topic(self, name: str) -> str:
        """Create a topic named *name* and return its broker-specific ID."""
        ...

    async def get_topic_id(self, event_topic: str) -> str:
        """Return the broker-specific ID of an existing event topic."""
        ...

    async def delete_topic(self, topic_id: str) -> None:
        """Delete a topic.  A topic that no longer exists is not an error."""
        ...

    async def create_trigger(
        self, backfill_id: str, topic_id: str, trigger: str
    ) -> list[str]:
        """Create a temporary trigger on *topic_id*.

        Returns the IDs of the resources to delete once the backfill is done.
        Raises ``TriggerCreationError`` if it fails after creating resources.
        """
        ...

    async def delete_trigger_resource(self, resource_id: str) -> None:
        """Delete a trigger resource.  A missing resource is not an error."""
        ...

    async def publish_events(
        self,
        topic_id: str,
        event_topic: str,
        source: str | None = None,
        filter: str | None = None,
    ) -> None:
        """Publish the events read from *source* to *topic_id*."""
        ...

    async def close(self) -> None:
        """Release clients held by the broker."""
        ...
