"""BackfillCleaner — deletes the temporary resources listed in a manifest."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from pathlib import Path

import structlog

from event_backfill.backfill.manifest import BackfillManifest
from event_backfill.brokers.base import EventTopicBroker

logger = structlog.get_logger()


class BackfillCleanupError(Exception):
    """Raised when at least one temporary resource could not be deleted."""


class BackfillCleaner:
    """Best-effort removal of the resources recorded by a backfill.

    Deletions run concurrently and never cancel each other.  Each failure is
    logged with its resource ID; a single ``BackfillCleanupError`` is raised
    once every deletion has settled.
    """

    def __init__(self, broker: EventTopicBroker) -> None:
        self._broker = broker

    async def _delete(self, resource_id: str, deletion: Awaitable[None]) -> bool:
        try:
            await deletion
        except Exception as exc:
            logger.error(
                "cleanup.resource_delete_failed",
                resource_id=resource_id,
                error=str(exc),
            )
            return False
        logger.info("cleanup.resource_deleted", resource_id=resource_id)
        return True

    async def run(self, file: str | Path) -> None:
        manifest = BackfillManifest.read(file)

        logger.info(
            "cleanup.removing_resources",
            file=str(file),
            topic_id=manifest.temporary_topic_id,
            trigger_resources=len(manifest.temporary_trigger_resource_ids),
        )

        deletions = [
            self._delete(resource_id, self._broker.delete_trigger_resource(resource_id))
            for resource_id in manifest.temporary_trigger_resource_ids
        ]
        if manifest.temporary_topic_id:
            deletions.append(
                self._delete(
                    manifest.temporary_topic_id,
                    self._broker.delete_topic(manifest.temporary_topic_id),
                )
            )

        results = await asyncio.gather(*deletions)

        if not all(results):
            msg = "Failed to clean some of the resources for the backfill."
            raise BackfillCleanupError(msg)

        logger.info("cleanup.completed", deleted=len(results))
