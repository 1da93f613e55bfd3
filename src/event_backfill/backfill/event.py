"""The unit of data replayed by a backfill."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class BackfillEvent:
    """A single event to publish.

    Ownership passes to the broker publisher once the event is submitted.
    """

    data: bytes
    attributes: dict[str, str] | None = None
    key: str | None = None  # ordering key

    @classmethod
    def from_json_object(cls, obj: Any) -> BackfillEvent:
        """Build an event from a decoded JSON object.

        ``data`` may be a string (UTF-8 encoded), a list of byte values, or a
        serialized Node.js buffer ``{"type": "Buffer", "data": [...]}``.
        Raises ``ValueError`` or ``TypeError`` for any other shape.
        """
        if not isinstance(obj, dict):
            msg = f"Expected a JSON object, got {type(obj).__name__}"
            raise TypeError(msg)

        raw_data = obj.get("data")
        if (
            isinstance(raw_data, dict)
            and raw_data.get("type") == "Buffer"
            and isinstance(raw_data.get("data"), list)
        ):
            raw_data = raw_data["data"]
        if isinstance(raw_data, str):
            data = raw_data.encode("utf-8")
        elif isinstance(raw_data, list):
            data = bytes(raw_data)
        else:
            msg = "Event 'data' must be a string, a list of bytes or a Buffer"
            raise TypeError(msg)

        attributes = obj.get("attributes")
        if attributes is not None and (
            not isinstance(attributes, dict)
            or not all(isinstance(v, str) for v in attributes.values())
        ):
            msg = "Event 'attributes' must be an object of strings"
            raise TypeError(msg)

        key = obj.get("key")
        if key is not None and not isinstance(key, str):
            msg = "Event 'key' must be a string"
            raise TypeError(msg)

        return cls(data=data, attributes=attributes, key=key)
