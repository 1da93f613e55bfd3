"""Unit tests for the YAML config loader and env var resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from event_backfill.config.defaults import load_defaults, merge_configs
from event_backfill.config.loader import (
    CONFIG_ENV_VAR,
    load_platform_config,
    load_yaml,
    resolve_env_vars,
)
from event_backfill.config.models import BrokerType

EXAMPLES_DIR = Path(__file__).resolve().parents[2] / "examples"


class TestResolveEnvVars:
    def test_plain_string_unchanged(self):
        assert resolve_env_vars("hello") == "hello"

    def test_substitutes_env_var(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("MY_PROJECT", "prod-project")
        assert resolve_env_vars("${MY_PROJECT}") == "prod-project"

    def test_default_when_var_missing(self):
        assert resolve_env_vars("${MISSING_VAR:-fallback}") == "fallback"

    def test_env_var_overrides_default(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("MY_PORT", "9999")
        assert resolve_env_vars("${MY_PORT:-9092}") == "9999"

    def test_empty_default(self):
        assert resolve_env_vars("${MISSING_VAR:-}") == ""

    def test_missing_var_no_default_raises(self):
        with pytest.raises(ValueError, match="UNDEFINED_VAR"):
            resolve_env_vars("${UNDEFINED_VAR}")

    def test_embedded_in_string(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ARCHIVE", "/data")
        assert resolve_env_vars("json://${ARCHIVE}/*.json") == "json:///data/*.json"

    def test_recursive_structures(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("SERVERS", "kafka:29092")
        data = {
            "kafka": {"bootstrap_servers": "${SERVERS}"},
            "list": ["${SERVERS}", 3],
        }
        assert resolve_env_vars(data) == {
            "kafka": {"bootstrap_servers": "kafka:29092"},
            "list": ["kafka:29092", 3],
        }

    def test_template_braces_left_alone(self):
        assert resolve_env_vars("json://{event_topic}/*.json") == (
            "json://{event_topic}/*.json"
        )


class TestMergeConfigs:
    def test_deep_merge_does_not_mutate(self):
        base = {"kafka": {"acks": "all", "linger_ms": 5}, "broker": "kafka"}
        merged = merge_configs(base, {"kafka": {"linger_ms": 50}})
        assert merged == {"kafka": {"acks": "all", "linger_ms": 50}, "broker": "kafka"}
        assert base["kafka"]["linger_ms"] == 5

    def test_defaults_file_loads(self):
        defaults = load_defaults()
        assert defaults["broker"] == "kafka"
        assert defaults["backfill"]["batch_size"] == 10000

    def test_unknown_defaults_file_raises(self):
        with pytest.raises(FileNotFoundError):
            load_defaults("nope")


class TestLoadYaml:
    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_yaml(tmp_path / "missing.yaml")

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml(path) == {}

    def test_non_mapping_raises(self, tmp_path: Path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(TypeError, match="mapping"):
            load_yaml(path)

    def test_invalid_yaml_raises(self, tmp_path: Path):
        path = tmp_path / "bad.yaml"
        path.write_text("broker: [unclosed\n")
        with pytest.raises(ValueError, match="Failed to parse YAML"):
            load_yaml(path)


class TestLoadPlatformConfig:
    def test_defaults_only(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        config = load_platform_config()
        assert config.broker == BrokerType.KAFKA
        assert config.kafka is not None
        assert config.kafka.bootstrap_servers == "localhost:9092"

    def test_user_yaml_overrides_defaults(self, tmp_path: Path):
        path = tmp_path / "platform.yaml"
        path.write_text("kafka:\n  topic_prefix: events.\nbackfill:\n  batch_size: 5\n")
        config = load_platform_config(path)
        assert config.kafka is not None
        assert config.kafka.topic_prefix == "events."
        assert config.kafka.acks == "all"
        assert config.backfill.batch_size == 5

    def test_path_from_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        path = tmp_path / "platform.yaml"
        path.write_text("broker: pubsub\npubsub:\n  project_id: proj\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        config = load_platform_config()
        assert config.broker == BrokerType.PUBSUB
        assert config.pubsub is not None
        assert config.pubsub.project_id == "proj"

    def test_invalid_config_raises_value_error(self, tmp_path: Path):
        path = tmp_path / "platform.yaml"
        path.write_text("broker: pubsub\n")
        with pytest.raises(ValueError, match="Invalid platform config"):
            load_platform_config(path)

    def test_pubsub_example(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("GCP_PROJECT", "prod-project")
        config = load_platform_config(EXAMPLES_DIR / "pubsub-platform.yaml")
        assert config.broker == BrokerType.PUBSUB
        assert config.pubsub is not None
        assert config.pubsub.project_id == "prod-project"
        assert config.backfill.default_source == (
            "json://archive/{event_topic}/**/*.jsonl"
        )

    def test_kafka_example(self):
        config = load_platform_config(EXAMPLES_DIR / "kafka-platform.yaml")
        assert config.broker == BrokerType.KAFKA
        assert config.kafka is not None
        assert config.kafka.topic_prefix == "events."
        assert config.logging.json_output is True
