"""Pydantic configuration models for event backfills."""

from __future__ import annotations

from enum import StrEnum
from typing import Self

from pydantic import BaseModel, Field, SecretStr, model_validator


class BrokerType(StrEnum):
    """Supported event brokers."""

    PUBSUB = "pubsub"
    KAFKA = "kafka"


class KafkaAuthMechanism(StrEnum):
    """Kafka SASL authentication mechanisms."""

    NONE = "none"
    SASL_PLAIN = "sasl_plain"
    SASL_SCRAM_256 = "sasl_scram_256"
    SASL_SCRAM_512 = "sasl_scram_512"


class KafkaConfig(BaseModel):
    """Kafka broker, admin and producer settings."""

    bootstrap_servers: str = "localhost:9092"
    # Prepended to event topic names, e.g. "events." -> "events.my-domain.my-event.v1"
    topic_prefix: str = ""
    topic_num_partitions: int = Field(default=1, ge=1)
    topic_replication_factor: int = Field(default=1, ge=1)
    admin_timeout_seconds: float = Field(default=30.0, gt=0)
    enable_idempotence: bool = True
    acks: str = "all"
    linger_ms: int = Field(default=5, ge=0)
    # Local producer queue size; reaching it triggers backpressure.
    queue_buffering_max_messages: int = Field(default=100_000, ge=1)
    poll_interval_seconds: float = Field(default=0.1, gt=0)
    flush_timeout_seconds: float = Field(default=300.0, gt=0)
    # Auth / security
    security_protocol: str = "PLAINTEXT"
    auth_mechanism: KafkaAuthMechanism = KafkaAuthMechanism.NONE
    sasl_username: str | None = None
    sasl_password: SecretStr | None = None
    ssl_ca_location: str | None = None

    @model_validator(mode="after")
    def check_auth_requirements(self) -> Self:
        """Validate that SASL credentials are present when needed."""
        mech = self.auth_mechanism
        if mech != KafkaAuthMechanism.NONE and (
            not self.sasl_username or not self.sasl_password
        ):
            msg = (
                "sasl_username and sasl_password are required "
                f"when auth_mechanism is '{mech.value}'"
            )
            raise ValueError(msg)
        return self


class PubSubConfig(BaseModel):
    """Google Cloud Pub/Sub settings."""

    project_id: str
    ordering_enabled: bool = True
    # Publishes in flight before the publisher asks the driver to wait.
    max_outstanding_messages: int = Field(default=1000, ge=1)
    admin_retry_max_attempts: int = Field(default=5, ge=1)
    admin_retry_max_wait_seconds: float = Field(default=30.0, gt=0)


class BackfillConfig(BaseModel):
    """Event source and manifest settings."""

    # Approximate number of events held in memory per batch.
    batch_size: int = Field(default=10_000, ge=1)
    # Size hint for each chunk of lines read from a file.
    read_chunk_bytes: int = Field(default=65_536, ge=1)
    # Used when no source is passed, e.g. "json://archive/{event_topic}/*.jsonl".
    default_source: str | None = None
    output_dir: str = "."


class LoggingConfig(BaseModel):
    """Structured logging settings."""

    level: str = "INFO"
    json_output: bool = False


class PlatformConfig(BaseModel):
    """Broker, backfill and logging configuration."""

    broker: BrokerType = BrokerType.KAFKA
    kafka: KafkaConfig | None = KafkaConfig()
    pubsub: PubSubConfig | None = None
    backfill: BackfillConfig = BackfillConfig()
    logging: LoggingConfig = LoggingConfig()

    @model_validator(mode="after")
    def check_broker_requirements(self) -> Self:
        """Ensure broker-specific config is present."""
        if self.broker == BrokerType.KAFKA and self.kafka is None:
            msg = "kafka config is required when broker is 'kafka'"
            raise ValueError(msg)
        if self.broker == BrokerType.PUBSUB and self.pubsub is None:
            msg = "pubsub config is required when broker is 'pubsub'"
            raise ValueError(msg)
        return self
