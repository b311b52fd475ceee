"""Watch event data structures and enumerations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class EventType(StrEnum):
    """Type discriminator of a watch notification."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"
    ERROR = "ERROR"
    # Synthesised by the enforcement sweep, never sent by the API server.
    POLLED = "POLLED"


@dataclass(frozen=True)
class WatchEvent:
    """One change notification delivered to an object handler.

    ``type`` is kept as a plain string so that event types added by newer
    API servers pass through untouched.
    """

    type: str
    object: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> WatchEvent:
        """Build an event from one decoded stream value."""
        obj = raw.get("object")
        return cls(type=str(raw.get("type", "")), object=obj if isinstance(obj, dict) else {})

    @property
    def is_error(self) -> bool:
        return self.type == EventType.ERROR

    @property
    def name(self) -> str:
        metadata = self.object.get("metadata") or {}
        return str(metadata.get("name", ""))

    @property
    def namespace(self) -> str:
        metadata = self.object.get("metadata") or {}
        return str(metadata.get("namespace", ""))
