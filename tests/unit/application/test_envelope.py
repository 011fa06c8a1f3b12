"""Unit tests for StreamId, NewEvent and EventEnvelope."""

from __future__ import annotations

import dataclasses
from datetime import UTC, datetime

import pytest

from mp_eventsourcing.application.event_sourcing import EventEnvelope, NewEvent, StreamId
from mp_eventsourcing.kernel.errors import ValidationError

_NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


class TestStreamId:
    def test_str(self) -> None:
        assert str(StreamId("order", "1")) == "order-1"

    def test_equality_and_hash(self) -> None:
        assert StreamId("order", "1") == StreamId("order", "1")
        assert len({StreamId("order", "1"), StreamId("order", "1"), StreamId("order", "2")}) == 2

    def test_ordering(self) -> None:
        ids = [StreamId("order", "2"), StreamId("ledger", "z"), StreamId("order", "1")]
        assert [str(s) for s in sorted(ids)] == ["ledger-z", "order-1", "order-2"]

    @pytest.mark.parametrize("aggregate_type,aggregate_id", [("", "1"), ("order", "")])
    def test_empty_parts_rejected(self, aggregate_type: str, aggregate_id: str) -> None:
        with pytest.raises(ValidationError):
            StreamId(aggregate_type, aggregate_id)

    def test_is_frozen(self) -> None:
        stream = StreamId("order", "1")
        with pytest.raises(dataclasses.FrozenInstanceError):
            stream.aggregate_id = "2"  # type: ignore[misc]


class TestNewEvent:
    def test_defaults(self) -> None:
        event = NewEvent("OrderPlaced")
        assert event.payload == {}
        assert event.metadata == {}
        assert event.schema_version == 1

    def test_empty_event_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            NewEvent("")

    def test_schema_version_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            NewEvent("OrderPlaced", schema_version=0)


class TestEventEnvelope:
    def test_from_new_event_copies_fields(self) -> None:
        event = NewEvent("OrderPlaced", {"order_id": "1"}, schema_version=2, metadata={"correlation_id": "c"})
        envelope = EventEnvelope.from_new_event(StreamId("order", "1"), event, version=3, recorded_at=_NOW)
        assert envelope.aggregate_type == "order"
        assert envelope.aggregate_id == "1"
        assert envelope.event_type == "OrderPlaced"
        assert envelope.version == 3
        assert envelope.payload == {"order_id": "1"}
        assert envelope.schema_version == 2
        assert envelope.metadata == {"correlation_id": "c"}
        assert envelope.position is None
        assert envelope.stream_id == StreamId("order", "1")

    def test_payload_is_copied(self) -> None:
        payload = {"order_id": "1"}
        envelope = EventEnvelope.from_new_event(
            StreamId("order", "1"), NewEvent("OrderPlaced", payload), version=1, recorded_at=_NOW
        )
        payload["order_id"] = "changed"
        assert envelope.payload == {"order_id": "1"}

    def test_version_zero_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EventEnvelope("order", "1", "OrderPlaced", 0, {}, _NOW)

    def test_is_frozen(self) -> None:
        envelope = EventEnvelope("order", "1", "OrderPlaced", 1, {}, _NOW)
        with pytest.raises(dataclasses.FrozenInstanceError):
            envelope.version = 2  # type: ignore[misc]
