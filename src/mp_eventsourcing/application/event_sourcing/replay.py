"""Application event sourcing – ReplayEngine."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Iterable, NoReturn, TypeVar

from mp_eventsourcing.application.event_sourcing.aggregate import Aggregate, AggregateType
from mp_eventsourcing.application.event_sourcing.envelope import EventEnvelope
from mp_eventsourcing.application.event_sourcing.snapshot import Snapshot, SnapshotStore
from mp_eventsourcing.application.event_sourcing.store import EventStore
from mp_eventsourcing.kernel.errors import (
    ReplayDeterminismViolationError,
    SerializationError,
    UnknownStreamError,
)
from mp_eventsourcing.observability.logging import get_logger

S = TypeVar("S")
logger = get_logger(__name__)


def state_checksum(aggregate_type: AggregateType[Any], state: Any) -> str:
    """SHA-256 over the canonical JSON encoding of *state*."""
    encoded = json.dumps(
        aggregate_type.encode(state), sort_keys=True, separators=(",", ":"), default=str
    )
    return hashlib.sha256(encoded.encode()).hexdigest()


def replay(
    aggregate_type: AggregateType[S],
    envelopes: Iterable[EventEnvelope],
    initial: S | None = None,
    from_version: int = 0,
) -> tuple[S, int]:
    """Fold *envelopes* onto *initial* (or the empty state) and return ``(state, version)``.

    Envelopes must continue the stream exactly at ``from_version + 1`` with
    no gaps, duplicates or foreign streams.
    """
    state = aggregate_type.initial_state() if initial is None else initial
    version = from_version
    stream = None
    for envelope in envelopes:
        if stream is None:
            stream = envelope.stream_id
        if envelope.stream_id != stream or envelope.aggregate_type != aggregate_type.name:
            raise ReplayDeterminismViolationError(
                f"Envelope from stream {envelope.stream_id} mixed into replay of {stream}"
            )
        if envelope.version != version + 1:
            raise ReplayDeterminismViolationError(
                f"Stream {envelope.stream_id} jumps from version {version} to {envelope.version}",
                detail={"expected": version + 1, "found": envelope.version},
            )
        state = aggregate_type.apply(state, envelope)
        version = envelope.version
    return state, version


class ReplayEngine:
    """Rebuilds aggregates from the latest snapshot plus the events after it.

    Read-only: it promises nothing beyond "state as of the versions it
    read".  A concurrent append is caught later by the event store's
    optimistic-concurrency check when the caller saves.
    """

    def __init__(
        self,
        event_store: EventStore,
        snapshot_store: SnapshotStore | None = None,
    ) -> None:
        self._events = event_store
        self._snapshots = snapshot_store

    async def _usable_snapshot(
        self, aggregate_type: AggregateType[Any], aggregate_id: str
    ) -> Snapshot | None:
        if self._snapshots is None:
            return None
        snapshot = await self._snapshots.load_latest(aggregate_type.name, aggregate_id)
        if snapshot is None:
            return None
        if snapshot.schema_version != aggregate_type.snapshot_schema_version:
            logger.info(
                "replay.snapshot_ignored",
                aggregate_type=aggregate_type.name,
                aggregate_id=aggregate_id,
                snapshot_schema_version=snapshot.schema_version,
                expected_schema_version=aggregate_type.snapshot_schema_version,
            )
            return None
        return snapshot

    async def load(
        self,
        aggregate_type: AggregateType[S],
        aggregate_id: str,
        *,
        use_snapshot: bool = True,
    ) -> Aggregate[S] | None:
        """Return the aggregate, or ``None`` when it has neither snapshot nor events."""
        snapshot = await self._usable_snapshot(aggregate_type, aggregate_id) if use_snapshot else None
        initial = aggregate_type.initial_state()
        base_version = 0
        if snapshot is not None:
            try:
                initial = aggregate_type.decode(snapshot.state)
                base_version = snapshot.version
            except SerializationError as exc:
                logger.warning(
                    "replay.snapshot_ignored",
                    aggregate_type=aggregate_type.name,
                    aggregate_id=aggregate_id,
                    snapshot_version=snapshot.version,
                    error=repr(exc),
                )
                snapshot = None

        envelopes = await self._events.load(aggregate_type.name, aggregate_id, from_version=base_version)
        if snapshot is None and not envelopes:
            return None

        state, version = replay(aggregate_type, envelopes, initial=initial, from_version=base_version)
        logger.debug(
            "replay.loaded",
            aggregate_type=aggregate_type.name,
            aggregate_id=aggregate_id,
            snapshot_version=base_version if snapshot is not None else None,
            replayed=len(envelopes),
            version=version,
        )
        return Aggregate(aggregate_type, aggregate_id, state, version, is_new=False)

    async def get(self, aggregate_type: AggregateType[S], aggregate_id: str) -> Aggregate[S]:
        """Like :meth:`load` but raises :class:`UnknownStreamError` when not found."""
        aggregate = await self.load(aggregate_type, aggregate_id)
        if aggregate is None:
            raise UnknownStreamError(aggregate_type.name, aggregate_id)
        return aggregate

    async def load_or_create(self, aggregate_type: AggregateType[S], aggregate_id: str) -> Aggregate[S]:
        """Load the aggregate or start a fresh one at version 0."""
        aggregate = await self.load(aggregate_type, aggregate_id)
        if aggregate is None:
            return Aggregate.new(aggregate_type, aggregate_id)
        return aggregate

    async def verify_determinism(self, aggregate_type: AggregateType[Any], aggregate_id: str) -> str:
        """Replay the full stream twice and compare checksums.

        Returns the checksum.  A mismatch means ``apply`` is not a pure
        function (or the log is damaged) and raises
        :class:`ReplayDeterminismViolationError`.
        """
        envelopes = await self._events.load(aggregate_type.name, aggregate_id)
        first, _ = replay(aggregate_type, envelopes)
        second, _ = replay(aggregate_type, envelopes)
        first_sum = state_checksum(aggregate_type, first)
        second_sum = state_checksum(aggregate_type, second)
        if first_sum != second_sum:
            self._fail(aggregate_type, aggregate_id, "replay.nondeterministic", first_sum, second_sum)
        return first_sum

    async def verify_snapshot(self, aggregate_type: AggregateType[Any], aggregate_id: str) -> bool:
        """Check that snapshot-based loading matches a full replay.

        Returns ``False`` when there is no usable snapshot to check.
        """
        snapshot = await self._usable_snapshot(aggregate_type, aggregate_id)
        if snapshot is None:
            return False
        try:
            aggregate_type.decode(snapshot.state)
        except SerializationError as exc:
            self._fail(aggregate_type, aggregate_id, "replay.snapshot_undecodable", "decodable state", repr(exc))
        with_snapshot = await self.load(aggregate_type, aggregate_id, use_snapshot=True)
        without_snapshot = await self.load(aggregate_type, aggregate_id, use_snapshot=False)
        if without_snapshot is None or without_snapshot.current_version < snapshot.version:
            stream_version = 0 if without_snapshot is None else without_snapshot.current_version
            self._fail(
                aggregate_type,
                aggregate_id,
                "replay.snapshot_ahead_of_stream",
                str(snapshot.version),
                str(stream_version),
            )
        expected = state_checksum(aggregate_type, without_snapshot.state)
        actual = state_checksum(aggregate_type, with_snapshot.state)
        if expected != actual or with_snapshot.current_version != without_snapshot.current_version:
            self._fail(aggregate_type, aggregate_id, "replay.snapshot_mismatch", expected, actual)
        return True

    @staticmethod
    def _fail(
        aggregate_type: AggregateType[Any],
        aggregate_id: str,
        event: str,
        expected: str,
        actual: str,
    ) -> NoReturn:
        logger.critical(
            event,
            aggregate_type=aggregate_type.name,
            aggregate_id=aggregate_id,
            expected=expected,
            actual=actual,
        )
        raise ReplayDeterminismViolationError(
            f"Replay of {aggregate_type.name}-{aggregate_id} is inconsistent ({event})",
            detail={"expected": expected, "actual": actual},
        )


__all__ = ["ReplayEngine", "replay", "state_checksum"]
