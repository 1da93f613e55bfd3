"""BackfillOrchestrator — temporary resources, publishing and the manifest."""

from __future__ import annotations

import asyncio
import secrets
from pathlib import Path

import structlog

from event_backfill.backfill.manifest import BackfillManifest
from event_backfill.brokers.base import EventTopicBroker, TriggerCreationError

logger = structlog.get_logger()


def generate_backfill_id() -> str:
    """Return a short random ID (6 hex characters) for a backfill run."""
    return secrets.token_hex(3)


def clean_command(manifest_path: str, platform_config: str | None = None) -> str:
    """The CLI command that cleans up the resources listed in *manifest_path*."""
    parts = ["event-backfill", "clean-backfill"]
    if platform_config:
        parts += ["--platform-config", f'"{platform_config}"']
    parts.append(f'"{manifest_path}"')
    return " ".join(parts)


class BackfillOrchestrator:
    """Backfills events for an event topic.

    Events are either published to the existing topic (all its existing
    triggers receive them), or to a temporary topic on which only the given
    triggers are set up.  Temporary triggers can be created in both cases.
    Every temporary resource is recorded in a ``BackfillManifest`` which is
    written to disk whatever the outcome, for ``BackfillCleaner`` to use later.
    """

    def __init__(
        self,
        broker: EventTopicBroker,
        event_topic: str,
        *,
        create_temporary_topic: bool = False,
        triggers: list[str] | None = None,
        source: str | None = None,
        filter: str | None = None,
        output: str | None = None,
        output_dir: str = ".",
        platform_config: str | None = None,
    ) -> None:
        self._broker = broker
        self._event_topic = event_topic
        self._create_temporary_topic = create_temporary_topic
        self._triggers = triggers or []
        self._source = source
        self._filter = filter
        self._output = output
        self._output_dir = output_dir
        self._platform_config = platform_config
        # Set once the run knows where its manifest goes, even if it then fails.
        self.output_path: str | None = None

    def manifest_path(self, backfill_id: str) -> str:
        """The output path, defaulting to ``backfill-<id>.json`` in the output dir."""
        if self._output:
            return self._output
        return str(Path(self._output_dir) / f"backfill-{backfill_id}.json")

    async def _set_up_topic(self, backfill_id: str) -> tuple[str, BackfillManifest]:
        """Create a temporary topic or resolve the existing one."""
        if self._create_temporary_topic:
            topic_id = await self._broker.create_topic(f"backfill-{backfill_id}")
        else:
            topic_id = await self._broker.get_topic_id(self._event_topic)

        logger.info("backfill.topic_ready", topic_id=topic_id)

        manifest = BackfillManifest(
            temporary_topic_id=topic_id if self._create_temporary_topic else None,
        )
        return topic_id, manifest

    async def _create_triggers(
        self, backfill_id: str, topic_id: str, manifest: BackfillManifest
    ) -> None:
        """Create all triggers concurrently, recording every created resource.

        All creations are allowed to settle before the first failure (in the
        order failures occurred) is raised.
        """
        if not self._triggers:
            return

        logger.info("backfill.triggers_creating", count=len(self._triggers))
        failures: list[BaseException] = []

        async def _create(trigger: str) -> None:
            try:
                resource_ids = await self._broker.create_trigger(
                    backfill_id, topic_id, trigger
                )
            except Exception as exc:
                if isinstance(exc, TriggerCreationError):
                    manifest.temporary_trigger_resource_ids.extend(exc.resource_ids)
                logger.error(
                    "backfill.trigger_create_failed", trigger=trigger, error=str(exc)
                )
                failures.append(exc)
                return
            manifest.temporary_trigger_resource_ids.extend(resource_ids)
            logger.info(
                "backfill.trigger_created", trigger=trigger, resource_ids=resource_ids
            )

        await asyncio.gather(*[_create(trigger) for trigger in self._triggers])

        if failures:
            raise failures[0]

    async def run(self) -> str:
        """Run the backfill and return the path of the written manifest."""
        if self._create_temporary_topic and not self._triggers:
            msg = (
                "At least one temporary trigger should be defined "
                "when using a temporary topic."
            )
            raise ValueError(msg)

        backfill_id = generate_backfill_id()
        log = logger.bind(backfill_id=backfill_id, event_topic=self._event_topic)
        log.info("backfill.initializing")

        topic_id, manifest = await self._set_up_topic(backfill_id)

        manifest_path = self.manifest_path(backfill_id)
        self.output_path = manifest_path
        command = clean_command(manifest_path, self._platform_config)

        try:
            await self._create_triggers(backfill_id, topic_id, manifest)

            await self._broker.publish_events(
                topic_id,
                self._event_topic,
                source=self._source,
                filter=self._filter,
            )

            log.info("backfill.published", topic_id=topic_id)
            log.info("backfill.clean_up_hint", command=command)
        except Exception:
            log.warning("backfill.failed_resources_may_remain", command=command)
            raise
        finally:
            manifest.write(manifest_path)
            log.info("backfill.manifest_written", path=manifest_path)

        return manifest_path
