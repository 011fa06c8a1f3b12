"""Unit tests for AggregateType and Aggregate."""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import UTC, datetime

import pydantic
import pytest

from mp_eventsourcing.application.event_sourcing import (
    Aggregate,
    AggregateType,
    EventEnvelope,
    InMemoryEventStore,
)
from mp_eventsourcing.kernel.errors import SerializationError, ValidationError


@dataclasses.dataclass(frozen=True)
class Ledger:
    balance: int = 0
    entries: int = 0


def apply_ledger(state: Ledger, event: EventEnvelope) -> Ledger:
    amount = event.payload.get("amount", 0)
    if event.event_type == "Deposited":
        return Ledger(state.balance + amount, state.entries + 1)
    if event.event_type == "Withdrawn":
        return Ledger(state.balance - amount, state.entries + 1)
    return state


LEDGER = AggregateType("ledger", initial_state=Ledger, apply=apply_ledger)


class TestAggregateType:
    def test_fold(self) -> None:
        events = [
            EventEnvelope("ledger", "a", "Deposited", 1, {"amount": 10}, datetime.now(UTC)),
            EventEnvelope("ledger", "a", "Withdrawn", 2, {"amount": 3}, datetime.now(UTC)),
        ]
        assert LEDGER.fold(Ledger(), events) == Ledger(balance=7, entries=2)

    def test_unknown_event_type_leaves_state(self) -> None:
        event = EventEnvelope("ledger", "a", "Renamed", 1, {}, datetime.now(UTC))
        assert LEDGER.fold(Ledger(), [event]) == Ledger()

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AggregateType("", initial_state=Ledger, apply=apply_ledger)

    def test_dataclass_state_roundtrip(self) -> None:
        encoded = LEDGER.encode(Ledger(balance=5, entries=2))
        assert encoded == {"balance": 5, "entries": 2}
        assert LEDGER.decode(encoded) == Ledger(balance=5, entries=2)

    def test_pydantic_state_roundtrip(self) -> None:
        class Cart(pydantic.BaseModel):
            items: list[str] = []

        cart_type = AggregateType("cart", initial_state=Cart, apply=lambda s, e: s)
        assert cart_type.decode(cart_type.encode(Cart(items=["a"]))) == Cart(items=["a"])

    def test_dict_state_is_copied(self) -> None:
        counter = AggregateType("counter", initial_state=dict, apply=lambda s, e: s)
        state = {"n": 1}
        encoded = counter.encode(state)
        encoded["n"] = 2
        assert state == {"n": 1}

    def test_custom_codec(self) -> None:
        tally = AggregateType(
            "tally",
            initial_state=lambda: 0,
            apply=lambda s, e: s + 1,
            encode_state=lambda s: {"n": s},
            decode_state=lambda d: d["n"],
        )
        assert tally.decode(tally.encode(4)) == 4

    def test_unsupported_state_without_codec(self) -> None:
        tally = AggregateType("tally", initial_state=lambda: 0, apply=lambda s, e: s + 1)
        with pytest.raises(SerializationError):
            tally.encode(3)
        with pytest.raises(SerializationError):
            tally.decode({"n": 3})

    def test_decode_mismatched_snapshot(self) -> None:
        with pytest.raises(SerializationError):
            LEDGER.decode({"balance": "not-a-number"})


class TestAggregate:
    def test_new_aggregate(self) -> None:
        ledger = Aggregate.new(LEDGER, "a")
        assert ledger.current_version == 0
        assert ledger.expected_version == 0
        assert ledger.is_new is True
        assert ledger.state == Ledger()
        assert str(ledger.stream_id) == "ledger-a"

    def test_record_applies_immediately(self) -> None:
        ledger = Aggregate.new(LEDGER, "a")
        ledger.record("Deposited", {"amount": 10})
        ledger.record("Withdrawn", {"amount": 4})
        assert ledger.state == Ledger(balance=6, entries=2)
        assert ledger.current_version == 0
        assert [e.event_type for e in ledger.pending_events] == ["Deposited", "Withdrawn"]

    def test_mark_committed_advances_version(self) -> None:
        store = InMemoryEventStore()
        ledger = Aggregate.new(LEDGER, "a")
        ledger.record("Deposited", {"amount": 10})
        ledger.record("Deposited", {"amount": 5})

        envelopes = asyncio.run(store.append("ledger", "a", 0, list(ledger.pending_events)))
        ledger.mark_committed(envelopes)

        assert ledger.current_version == 2
        assert ledger.pending_events == ()
        assert ledger.is_new is False

    def test_mark_committed_rejects_count_mismatch(self) -> None:
        ledger = Aggregate.new(LEDGER, "a")
        ledger.record("Deposited", {"amount": 10})
        with pytest.raises(ValidationError):
            ledger.mark_committed([])

    def test_mark_committed_rejects_foreign_envelopes(self) -> None:
        ledger = Aggregate.new(LEDGER, "a")
        ledger.record("Deposited", {"amount": 10})
        foreign = EventEnvelope("ledger", "b", "Deposited", 1, {"amount": 10}, datetime.now(UTC))
        with pytest.raises(ValidationError):
            ledger.mark_committed([foreign])
        assert len(ledger.pending_events) == 1
