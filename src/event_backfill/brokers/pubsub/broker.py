"""PubSubBroker — EventTopicBroker implementation for Google Cloud Pub/Sub."""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Callable
from typing import Any

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from event_backfill.backfill.sources import create_events_source, resolve_source
from event_backfill.brokers.base import TriggerCreationError
from event_backfill.brokers.pubsub.naming import (
    backfill_dead_letter_topic_name,
    backfill_subscription_name,
    is_subscription_path,
    is_topic_path,
    parse_subscription_path,
    pubsub_topic_name,
)
from event_backfill.brokers.pubsub.publisher import PubSubBackfillPublisher
from event_backfill.config.models import BackfillConfig, PubSubConfig

logger = structlog.get_logger()


class PubSubBroker:
    """Manages backfill topics and subscriptions in a Google Cloud project.

    A trigger is the path of an existing subscription.  Creating the trigger
    copies that subscription's delivery settings into a new subscription on
    the backfill topic, so the same consumer receives the backfilled events.
    """

    def __init__(
        self,
        config: PubSubConfig,
        backfill: BackfillConfig | None = None,
    ) -> None:
        self._config = config
        self._backfill = backfill or BackfillConfig()
        self._publisher: Any = None
        self._subscriber: Any = None

    def _get_publisher(self):  # noqa: ANN202
        if self._publisher is None:
            from google.cloud import pubsub_v1

            self._publisher = pubsub_v1.PublisherClient()
        return self._publisher

    def _get_subscriber(self):  # noqa: ANN202
        if self._subscriber is None:
            from google.cloud import pubsub_v1

            self._subscriber = pubsub_v1.SubscriberClient()
        return self._subscriber

    async def _call(self, method: Callable[..., Any], **kwargs: Any) -> Any:
        """Run a blocking admin call in the executor, retrying transient errors."""
        from google.api_core.exceptions import DeadlineExceeded, ServiceUnavailable

        loop = asyncio.get_running_loop()
        result: Any = None
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type((ServiceUnavailable, DeadlineExceeded)),
            stop=stop_after_attempt(self._config.admin_retry_max_attempts),
            wait=wait_exponential(
                multiplier=1, max=self._config.admin_retry_max_wait_seconds
            ),
            reraise=True,
        ):
            with attempt:
                result = await loop.run_in_executor(
                    None, functools.partial(method, **kwargs)
                )
        return result

    # -- Topics ----------------------------------------------------------------

    async def create_topic(self, name: str) -> str:
        topic_id = pubsub_topic_name(self._config.project_id, name)
        await self._call(self._get_publisher().create_topic, request={"name": topic_id})
        logger.info("pubsub.topic_created", topic=topic_id)
        return topic_id

    async def get_topic_id(self, event_topic: str) -> str:
        topic_id = pubsub_topic_name(self._config.project_id, event_topic)
        await self._call(self._get_publisher().get_topic, request={"topic": topic_id})
        return topic_id

    async def delete_topic(self, topic_id: str) -> None:
        from google.api_core.exceptions import NotFound

        try:
            await self._call(
                self._get_publisher().delete_topic, request={"topic": topic_id}
            )
            logger.info("pubsub.topic_deleted", topic=topic_id)
        except NotFound:
            logger.info("pubsub.topic_already_deleted", topic=topic_id)

    # -- Triggers --------------------------------------------------------------

    async def create_trigger(
        self, backfill_id: str, topic_id: str, trigger: str
    ) -> list[str]:
        parsed = parse_subscription_path(trigger)
        if parsed is None:
            msg = (
                f"Unsupported Pub/Sub trigger '{trigger}'. "
                "Expected 'projects/<project>/subscriptions/<name>'."
            )
            raise ValueError(msg)
        _, name = parsed
        project_id = self._config.project_id

        template = await self._call(
            self._get_subscriber().get_subscription,
            request={"subscription": trigger},
        )

        subscription = backfill_subscription_name(project_id, name, backfill_id)
        request: dict[str, Any] = {
            "name": subscription,
            "topic": topic_id,
            "ack_deadline_seconds": template.ack_deadline_seconds,
            "enable_message_ordering": template.enable_message_ordering,
        }
        if template.filter:
            request["filter"] = template.filter
        if template.push_config:
            request["push_config"] = template.push_config
        if template.retry_policy:
            request["retry_policy"] = template.retry_policy

        created: list[str] = []
        try:
            dead_letter = template.dead_letter_policy
            if dead_letter and dead_letter.dead_letter_topic:
                dlq_topic = backfill_dead_letter_topic_name(
                    project_id, name, backfill_id
                )
                await self._call(
                    self._get_publisher().create_topic, request={"name": dlq_topic}
                )
                created.append(dlq_topic)
                logger.info("pubsub.dlq_topic_created", topic=dlq_topic)
                request["dead_letter_policy"] = {
                    "dead_letter_topic": dlq_topic,
                    "max_delivery_attempts": dead_letter.max_delivery_attempts,
                }

            await self._call(
                self._get_subscriber().create_subscription, request=request
            )
            created.append(subscription)
            logger.info(
                "pubsub.subscription_created",
                subscription=subscription,
                copied_from=trigger,
            )
        except Exception as exc:
            if not created:
                raise
            raise TriggerCreationError(exc, created) from exc

        return created

    async def delete_trigger_resource(self, resource_id: str) -> None:
        from google.api_core.exceptions import NotFound

        if is_subscription_path(resource_id):
            try:
                await self._call(
                    self._get_subscriber().delete_subscription,
                    request={"subscription": resource_id},
                )
                logger.info("pubsub.subscription_deleted", subscription=resource_id)
            except NotFound:
                logger.info(
                    "pubsub.subscription_already_deleted", subscription=resource_id
                )
            return

        if is_topic_path(resource_id):
            await self.delete_topic(resource_id)
            return

        msg = f"Unrecognized Pub/Sub resource '{resource_id}'."
        raise ValueError(msg)

    # -- Publishing ------------------------------------------------------------

    async def publish_events(
        self,
        topic_id: str,
        event_topic: str,
        source: str | None = None,
        filter: str | None = None,
    ) -> None:
        source = resolve_source(source, event_topic, self._backfill)
        events_source = await create_events_source(source, filter, self._backfill)

        publisher = PubSubBackfillPublisher(self._config, topic_id)
        try:
            await publisher.publish_from_source(events_source)
        finally:
            await publisher.close()

    async def close(self) -> None:
        if self._publisher is not None:
            self._publisher.stop()
            self._publisher = None
        if self._subscriber is not None:
            self._subscriber.close()
            self._subscriber = None
