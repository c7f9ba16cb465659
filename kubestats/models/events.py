"""Change event data structures and enumerations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class WatchEventType(StrEnum):
    """Type field of a Kubernetes watch stream frame."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"
    ERROR = "ERROR"


class Verdict(StrEnum):
    """Outcome of classifying a single change event."""

    DROP = "drop"
    QUIET = "quiet"
    LOUD = "loud"


def parse_timestamp(value: object) -> datetime | None:
    """Parse a Kubernetes RFC 3339 timestamp into an aware UTC datetime."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _str(mapping: dict[str, Any], key: str) -> str:
    value = mapping.get(key)
    return value if isinstance(value, str) else ""


@dataclass(frozen=True)
class ChangeEvent:
    """A single cluster change event (core/v1 Event).

    Immutable: produced from one watch frame and consumed exactly once by the
    event classifier.
    """

    source_component: str
    reason: str
    involved_kind: str
    involved_namespace: str
    involved_name: str
    last_timestamp: datetime
    message: str = ""
    count: int = 1

    @property
    def counter_name(self) -> str:
        return f"event.{self.source_component}.{self.involved_kind}.{self.reason}"

    @classmethod
    def from_watch_event(cls, frame: object) -> ChangeEvent | None:
        """Build a ChangeEvent from a raw watch frame.

        Returns None when the frame does not carry an Event object or the
        object has no usable occurrence timestamp.
        """
        if not isinstance(frame, dict):
            return None
        obj = frame.get("object")
        if not isinstance(obj, dict):
            return None
        kind = obj.get("kind")
        if kind is not None and kind != "Event":
            return None

        last_seen = (
            parse_timestamp(obj.get("lastTimestamp"))
            or parse_timestamp(obj.get("eventTime"))
            or parse_timestamp(obj.get("firstTimestamp"))
        )
        if last_seen is None:
            return None

        source = obj.get("source") if isinstance(obj.get("source"), dict) else {}
        involved = obj.get("involvedObject") if isinstance(obj.get("involvedObject"), dict) else {}
        count = obj.get("count")
        if not isinstance(count, int) or isinstance(count, bool) or count < 1:
            count = 1

        return cls(
            source_component=_str(source, "component") or _str(obj, "reportingComponent"),
            reason=_str(obj, "reason"),
            involved_kind=_str(involved, "kind"),
            involved_namespace=_str(involved, "namespace"),
            involved_name=_str(involved, "name"),
            last_timestamp=last_seen,
            message=_str(obj, "message"),
            count=count,
        )
