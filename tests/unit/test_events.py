"""Tests for ChangeEvent construction from raw watch frames."""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import UTC, datetime, timedelta, timezone

import pytest

from kubestats.models.events import ChangeEvent, parse_timestamp


def _frame(**overrides: object) -> dict:
    obj: dict = {
        "kind": "Event",
        "reason": "Killing",
        "message": "Stopping container web",
        "source": {"component": "kubelet"},
        "involvedObject": {"kind": "Pod", "namespace": "shop", "name": "cart-0"},
        "count": 2,
        "lastTimestamp": "2026-03-14T09:30:00Z",
    }
    obj.update(overrides)
    return {"type": "ADDED", "object": obj}


class TestParseTimestamp:
    def test_zulu(self) -> None:
        assert parse_timestamp("2026-03-14T09:30:00Z") == datetime(2026, 3, 14, 9, 30, tzinfo=UTC)

    def test_micro_time_with_offset(self) -> None:
        parsed = parse_timestamp("2026-03-14T11:30:00.123456+02:00")
        assert parsed == datetime(2026, 3, 14, 9, 30, 0, 123456, tzinfo=UTC)
        assert parsed is not None and parsed.tzinfo == UTC

    def test_naive_assumed_utc(self) -> None:
        assert parse_timestamp("2026-03-14T09:30:00") == datetime(2026, 3, 14, 9, 30, tzinfo=UTC)

    def test_invalid_values(self) -> None:
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(1710408600) is None


class TestFromWatchEvent:
    def test_full_event(self) -> None:
        event = ChangeEvent.from_watch_event(_frame())
        assert event == ChangeEvent(
            source_component="kubelet",
            reason="Killing",
            involved_kind="Pod",
            involved_namespace="shop",
            involved_name="cart-0",
            last_timestamp=datetime(2026, 3, 14, 9, 30, tzinfo=UTC),
            message="Stopping container web",
            count=2,
        )
        assert event is not None and event.counter_name == "event.kubelet.Pod.Killing"

    def test_event_time_used_when_last_timestamp_missing(self) -> None:
        event = ChangeEvent.from_watch_event(
            _frame(lastTimestamp=None, eventTime="2026-03-14T09:31:00.000000Z", reportingComponent="kubelet")
        )
        assert event is not None
        assert event.last_timestamp == datetime(2026, 3, 14, 9, 31, tzinfo=UTC)

    def test_reporting_component_fallback(self) -> None:
        event = ChangeEvent.from_watch_event(_frame(source={}, reportingComponent="scheduler"))
        assert event is not None and event.source_component == "scheduler"

    def test_missing_or_invalid_count_defaults_to_one(self) -> None:
        for count in (None, 0, -3, "4", True):
            event = ChangeEvent.from_watch_event(_frame(count=count))
            assert event is not None and event.count == 1

    def test_no_timestamp_is_malformed(self) -> None:
        assert ChangeEvent.from_watch_event(_frame(lastTimestamp=None)) is None

    def test_non_event_objects_rejected(self) -> None:
        assert ChangeEvent.from_watch_event(_frame(kind="Status")) is None
        assert ChangeEvent.from_watch_event({"type": "ADDED", "object": ["not", "a", "dict"]}) is None
        assert ChangeEvent.from_watch_event([]) is None

    def test_is_immutable(self) -> None:
        event = ChangeEvent.from_watch_event(_frame())
        assert event is not None
        with pytest.raises(FrozenInstanceError):
            event.reason = "other"  # type: ignore[misc]

    def test_timezone_normalised(self) -> None:
        event = ChangeEvent.from_watch_event(_frame(lastTimestamp="2026-03-14T04:30:00-05:00"))
        assert event is not None
        assert event.last_timestamp.utcoffset() == timedelta(0)
        assert event.last_timestamp == datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)
