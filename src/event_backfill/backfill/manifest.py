"""Recovery manifest listing the temporary resources of a backfill."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class BackfillManifest(BaseModel):
    """Temporary resources to delete once a backfill is complete.

    ``temporary_topic_id`` is ``None`` when events were published to the
    existing topic.  Serialized with camelCase keys.
    """

    model_config = ConfigDict(populate_by_name=True)

    temporary_topic_id: str | None = Field(default=None, alias="temporaryTopicId")
    temporary_trigger_resource_ids: list[str] = Field(
        default_factory=list, alias="temporaryTriggerResourceIds"
    )

    def write(self, path: str | Path) -> None:
        """Write the manifest to *path*, replacing any existing file atomically."""
        target = Path(path)
        directory = target.parent
        directory.mkdir(parents=True, exist_ok=True)
        payload = self.model_dump_json(by_alias=True)

        fd, tmp_name = tempfile.mkstemp(
            dir=directory, prefix=f".{target.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @classmethod
    def read(cls, path: str | Path) -> BackfillManifest:
        """Load a manifest written by ``write()``."""
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))
