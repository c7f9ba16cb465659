"""Event classifier: filters and scores individual change events.

A freshly opened watch replays a backlog of historical events. Anything whose
last occurrence is older than the freshness window is dropped, which keeps
that backlog out of the counters without a resume token.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import structlog

from kubestats.models.config import WatchConfig
from kubestats.models.events import ChangeEvent, Verdict
from kubestats.observability.metrics import MetricsSink

_log = structlog.get_logger(component="collector.classifier")

FRESHNESS_WINDOW = timedelta(seconds=5)
FAILURE_REASON = "failed"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def classify(
    event: ChangeEvent,
    now: datetime,
    *,
    freshness: timedelta = FRESHNESS_WINDOW,
    failure_reason: str = FAILURE_REASON,
) -> Verdict:
    """Decide what to do with *event* at time *now*."""
    if now - event.last_timestamp > freshness:
        return Verdict.DROP
    if event.reason == failure_reason:
        return Verdict.LOUD
    return Verdict.QUIET


class EventClassifier:
    """Applies ``classify`` to raw watch frames and performs its side effects.

    Args:
        sink:   metrics sink receiving one counter increment per kept event.
        config: freshness window and failure reason.
        clock:  returns the current aware UTC time.
    """

    def __init__(
        self,
        sink: MetricsSink,
        config: WatchConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        config = config or WatchConfig()
        self._sink = sink
        self._clock = clock
        self._freshness = timedelta(seconds=config.freshness_seconds)
        self._failure_reason = config.failure_reason

    def handle(self, frame: object) -> Verdict:
        """Classify one raw watch frame. Malformed frames are dropped."""
        event = ChangeEvent.from_watch_event(frame)
        if event is None:
            _log.debug("event_discarded_unknown_payload")
            return Verdict.DROP
        return self.handle_event(event)

    def handle_event(self, event: ChangeEvent) -> Verdict:
        verdict = classify(
            event,
            self._clock(),
            freshness=self._freshness,
            failure_reason=self._failure_reason,
        )
        fields = {
            "source": event.source_component,
            "reason": event.reason,
            "kind": event.involved_kind,
            "object": f"{event.involved_namespace}/{event.involved_name}",
            "message": event.message.strip(),
        }

        if verdict is Verdict.DROP:
            _log.debug("event_ignored_stale", last_seen=event.last_timestamp.isoformat(), **fields)
            return verdict

        if verdict is Verdict.LOUD:
            _log.warning("event_received", count=event.count, **fields)
        elif event.count > 1:
            _log.debug("event_received", count=event.count, **fields)
        else:
            _log.debug("event_received", **fields)

        self._sink.counter(event.counter_name, 1)
        return verdict
