"""Unit tests for replay and the ReplayEngine – determinism and snapshot transparency."""

from __future__ import annotations

import asyncio
import dataclasses
import itertools
from datetime import UTC, datetime

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from structlog.testing import capture_logs

from mp_eventsourcing.application.event_sourcing import (
    AggregateType,
    EventEnvelope,
    InMemoryEventStore,
    InMemorySnapshotStore,
    NewEvent,
    ReplayEngine,
    replay,
    state_checksum,
)
from mp_eventsourcing.kernel.errors import ReplayDeterminismViolationError, UnknownStreamError
from mp_eventsourcing.testing import event_sequence_strategy


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


def _envelope(version: int, amount: int = 1, aggregate_id: str = "a") -> EventEnvelope:
    return EventEnvelope("ledger", aggregate_id, "Deposited", version, {"amount": amount}, datetime.now(UTC))


async def _seed(store: InMemoryEventStore, events: list[NewEvent], aggregate_id: str = "a") -> None:
    if events:
        await store.append("ledger", aggregate_id, 0, events)


# ---------------------------------------------------------------------------
# replay()
# ---------------------------------------------------------------------------


class TestReplayFunction:
    def test_empty(self) -> None:
        assert replay(LEDGER, []) == (Ledger(), 0)

    def test_folds_in_order(self) -> None:
        state, version = replay(LEDGER, [_envelope(1, 5), _envelope(2, 7)])
        assert state == Ledger(balance=12, entries=2)
        assert version == 2

    def test_gap_detected(self) -> None:
        with pytest.raises(ReplayDeterminismViolationError):
            replay(LEDGER, [_envelope(1), _envelope(3)])

    def test_duplicate_detected(self) -> None:
        with pytest.raises(ReplayDeterminismViolationError):
            replay(LEDGER, [_envelope(1), _envelope(1)])

    def test_foreign_stream_detected(self) -> None:
        with pytest.raises(ReplayDeterminismViolationError):
            replay(LEDGER, [_envelope(1), _envelope(2, aggregate_id="b")])

    def test_resume_from_snapshot_version(self) -> None:
        state, version = replay(LEDGER, [_envelope(4, 3)], initial=Ledger(10, 3), from_version=3)
        assert state == Ledger(13, 4)
        assert version == 4


# ---------------------------------------------------------------------------
# ReplayEngine
# ---------------------------------------------------------------------------


class TestReplayEngineLoad:
    def test_unknown_stream_is_none(self) -> None:
        engine = ReplayEngine(InMemoryEventStore())
        assert asyncio.run(engine.load(LEDGER, "missing")) is None

    def test_get_unknown_stream_raises(self) -> None:
        engine = ReplayEngine(InMemoryEventStore())
        with pytest.raises(UnknownStreamError) as exc_info:
            asyncio.run(engine.get(LEDGER, "missing"))
        assert exc_info.value.code == "unknown_stream"

    def test_load_or_create(self) -> None:
        engine = ReplayEngine(InMemoryEventStore())
        ledger = asyncio.run(engine.load_or_create(LEDGER, "new"))
        assert ledger.current_version == 0
        assert ledger.is_new

    def test_load_replays_full_stream(self) -> None:
        store = InMemoryEventStore()

        async def run():
            await _seed(store, [NewEvent("Deposited", {"amount": 5}), NewEvent("Withdrawn", {"amount": 2})])
            return await ReplayEngine(store).get(LEDGER, "a")

        ledger = asyncio.run(run())
        assert ledger.state == Ledger(balance=3, entries=2)
        assert ledger.current_version == 2
        assert ledger.is_new is False

    def test_snapshot_plus_tail(self) -> None:
        store = InMemoryEventStore()
        snapshots = InMemorySnapshotStore()

        async def run():
            await _seed(store, [NewEvent("Deposited", {"amount": 1}) for _ in range(5)])
            await snapshots.save("ledger", "a", 3, LEDGER.encode(Ledger(balance=3, entries=3)))
            return await ReplayEngine(store, snapshots).get(LEDGER, "a")

        ledger = asyncio.run(run())
        assert ledger.state == Ledger(balance=5, entries=5)
        assert ledger.current_version == 5

    def test_snapshot_with_other_schema_version_is_ignored(self) -> None:
        store = InMemoryEventStore()
        snapshots = InMemorySnapshotStore()

        async def run():
            await _seed(store, [NewEvent("Deposited", {"amount": 2}) for _ in range(2)])
            # a stale snapshot whose state would be wrong if it were used
            await snapshots.save("ledger", "a", 2, {"balance": 999, "entries": 2}, schema_version=7)
            return await ReplayEngine(store, snapshots).get(LEDGER, "a")

        assert asyncio.run(run()).state == Ledger(balance=4, entries=2)

    def test_undecodable_snapshot_falls_back_to_full_replay(self) -> None:
        store = InMemoryEventStore()
        snapshots = InMemorySnapshotStore()

        async def run():
            await _seed(store, [NewEvent("Deposited", {"amount": 3}) for _ in range(3)])
            await snapshots.save("ledger", "a", 2, {"balance": "not a number", "entries": 2})
            return await ReplayEngine(store, snapshots).get(LEDGER, "a")

        with capture_logs() as logs:
            ledger = asyncio.run(run())
        assert ledger.state == Ledger(balance=9, entries=3)
        assert ledger.current_version == 3
        (ignored,) = [e for e in logs if e["event"] == "replay.snapshot_ignored"]
        assert ignored["log_level"] == "warning"
        assert ignored["snapshot_version"] == 2


class TestDeterminism:
    def test_checksum_is_stable(self) -> None:
        store = InMemoryEventStore()

        async def run() -> str:
            await _seed(store, [NewEvent("Deposited", {"amount": 5})])
            return await ReplayEngine(store).verify_determinism(LEDGER, "a")

        checksum = asyncio.run(run())
        assert checksum == state_checksum(LEDGER, Ledger(balance=5, entries=1))

    def test_impure_apply_detected(self) -> None:
        counter = itertools.count()
        impure = AggregateType(
            "ledger",
            initial_state=Ledger,
            apply=lambda state, event: Ledger(state.balance + next(counter), state.entries + 1),
        )
        store = InMemoryEventStore()

        async def run() -> None:
            await _seed(store, [NewEvent("Deposited", {"amount": 1})])
            await ReplayEngine(store).verify_determinism(impure, "a")

        with pytest.raises(ReplayDeterminismViolationError):
            asyncio.run(run())

    @settings(max_examples=40, deadline=None)
    @given(event_sequence_strategy(min_size=1))
    def test_replaying_twice_gives_equal_state(self, events: list[NewEvent]) -> None:
        store = InMemoryEventStore()

        async def run():
            await _seed(store, events)
            engine = ReplayEngine(store)
            first = await engine.get(LEDGER, "a")
            second = await engine.get(LEDGER, "a")
            return first, second

        first, second = asyncio.run(run())
        assert first.state == second.state
        assert first.current_version == second.current_version == len(events)


class TestSnapshotTransparency:
    @settings(max_examples=40, deadline=None)
    @given(event_sequence_strategy(min_size=1), st.data())
    def test_snapshot_at_any_version_matches_full_replay(self, events: list[NewEvent], data: st.DataObject) -> None:
        snapshot_at = data.draw(st.integers(min_value=1, max_value=len(events)))
        store = InMemoryEventStore()
        snapshots = InMemorySnapshotStore()

        async def run():
            await _seed(store, events)
            envelopes = await store.load("ledger", "a")
            state_at, _ = replay(LEDGER, envelopes[:snapshot_at])
            await snapshots.save("ledger", "a", snapshot_at, LEDGER.encode(state_at))
            engine = ReplayEngine(store, snapshots)
            with_snapshot = await engine.get(LEDGER, "a")
            without = await engine.load(LEDGER, "a", use_snapshot=False)
            verified = await engine.verify_snapshot(LEDGER, "a")
            return with_snapshot, without, verified

        with_snapshot, without, verified = asyncio.run(run())
        assert without is not None
        assert with_snapshot.state == without.state
        assert with_snapshot.current_version == without.current_version
        assert verified is True

    def test_verify_snapshot_without_snapshot(self) -> None:
        store = InMemoryEventStore()

        async def run() -> bool:
            await _seed(store, [NewEvent("Deposited", {"amount": 1})])
            return await ReplayEngine(store, InMemorySnapshotStore()).verify_snapshot(LEDGER, "a")

        assert asyncio.run(run()) is False

    def test_corrupt_snapshot_detected(self) -> None:
        store = InMemoryEventStore()
        snapshots = InMemorySnapshotStore()

        async def run() -> None:
            await _seed(store, [NewEvent("Deposited", {"amount": 1}) for _ in range(3)])
            await snapshots.save("ledger", "a", 2, {"balance": 50, "entries": 2})
            await ReplayEngine(store, snapshots).verify_snapshot(LEDGER, "a")

        with pytest.raises(ReplayDeterminismViolationError):
            asyncio.run(run())

    def test_undecodable_snapshot_detected(self) -> None:
        store = InMemoryEventStore()
        snapshots = InMemorySnapshotStore()

        async def run() -> None:
            await _seed(store, [NewEvent("Deposited", {"amount": 1}) for _ in range(2)])
            await snapshots.save("ledger", "a", 1, {"balance": "not a number", "entries": 1})
            await ReplayEngine(store, snapshots).verify_snapshot(LEDGER, "a")

        with pytest.raises(ReplayDeterminismViolationError):
            asyncio.run(run())

    def test_snapshot_ahead_of_stream_detected(self) -> None:
        store = InMemoryEventStore()
        snapshots = InMemorySnapshotStore()

        async def run() -> None:
            await _seed(store, [NewEvent("Deposited", {"amount": 1})])
            await snapshots.save("ledger", "a", 5, {"balance": 5, "entries": 5})
            await ReplayEngine(store, snapshots).verify_snapshot(LEDGER, "a")

        with pytest.raises(ReplayDeterminismViolationError):
            asyncio.run(run())
