"""Unit tests for BackfillManifest."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from event_backfill.backfill.manifest import BackfillManifest


class TestBackfillManifest:
    def test_serializes_camel_case_keys(self, tmp_path: Path):
        path = tmp_path / "out.json"
        BackfillManifest(
            temporary_topic_id="topic", temporary_trigger_resource_ids=["a"]
        ).write(path)

        assert json.loads(path.read_text()) == {
            "temporaryTopicId": "topic",
            "temporaryTriggerResourceIds": ["a"],
        }

    def test_defaults(self):
        manifest = BackfillManifest()
        assert manifest.temporary_topic_id is None
        assert manifest.temporary_trigger_resource_ids == []

    def test_read_round_trip(self, tmp_path: Path):
        path = tmp_path / "out.json"
        manifest = BackfillManifest(
            temporary_topic_id=None, temporary_trigger_resource_ids=["a", "b"]
        )
        manifest.write(path)
        assert BackfillManifest.read(path) == manifest

    def test_reads_camel_case_file(self, tmp_path: Path):
        path = tmp_path / "out.json"
        path.write_text(
            '{"temporaryTopicId": "t", "temporaryTriggerResourceIds": ["x"]}'
        )
        manifest = BackfillManifest.read(path)
        assert manifest.temporary_topic_id == "t"
        assert manifest.temporary_trigger_resource_ids == ["x"]

    def test_creates_parent_directories(self, tmp_path: Path):
        path = tmp_path / "a" / "b" / "out.json"
        BackfillManifest().write(path)
        assert path.exists()

    def test_overwrites_existing_file(self, tmp_path: Path):
        path = tmp_path / "out.json"
        path.write_text("stale")
        BackfillManifest(temporary_topic_id="t").write(path)
        assert BackfillManifest.read(path).temporary_topic_id == "t"

    def test_failed_write_keeps_previous_file(self, tmp_path: Path):
        path = tmp_path / "out.json"
        path.write_text("previous")

        with (
            patch(
                "event_backfill.backfill.manifest.os.replace",
                side_effect=OSError("disk full"),
            ),
            pytest.raises(OSError, match="disk full"),
        ):
            BackfillManifest(temporary_topic_id="t").write(path)

        assert path.read_text() == "previous"
        assert list(tmp_path.iterdir()) == [path]
