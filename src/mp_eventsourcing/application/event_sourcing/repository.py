"""Application event sourcing – EventSourcedRepository."""

from __future__ import annotations

from typing import Any, TypeVar

from mp_eventsourcing.application.event_sourcing.aggregate import Aggregate, AggregateType
from mp_eventsourcing.application.event_sourcing.envelope import EventEnvelope
from mp_eventsourcing.application.event_sourcing.replay import ReplayEngine
from mp_eventsourcing.application.event_sourcing.snapshot import SnapshotPolicy, SnapshotStore
from mp_eventsourcing.application.event_sourcing.store import EventStore
from mp_eventsourcing.config.settings import EventSourcingSettings
from mp_eventsourcing.kernel.errors import ConflictError, SnapshotAheadOfStreamError, ValidationError
from mp_eventsourcing.observability.logging import get_logger

S = TypeVar("S")
logger = get_logger(__name__)


class EventSourcedRepository:
    """Loads aggregates through the replay engine and saves their pending events.

    Example::

        repo = EventSourcedRepository(store, snapshots, SnapshotPolicy.every(50))
        order = await repo.create(ORDER, "1")
        order.record("OrderPlaced", {"order_id": "1", "lines": []})
        await repo.save(order)
        assert order.current_version == 1
    """

    def __init__(
        self,
        event_store: EventStore,
        snapshot_store: SnapshotStore | None = None,
        snapshot_policy: SnapshotPolicy | None = None,
    ) -> None:
        self._events = event_store
        self._snapshots = snapshot_store
        self._policy = snapshot_policy or SnapshotPolicy.never()
        self._replay = ReplayEngine(event_store, snapshot_store)

    @classmethod
    def from_settings(
        cls,
        event_store: EventStore,
        settings: EventSourcingSettings,
        snapshot_store: SnapshotStore | None = None,
    ) -> "EventSourcedRepository":
        """Build a repository whose snapshot cadence is ``settings.snapshot_every`` (0 disables)."""
        if settings.snapshot_every > 0:
            policy = SnapshotPolicy.every(settings.snapshot_every)
        else:
            policy = SnapshotPolicy.never()
        return cls(event_store, snapshot_store, policy)

    @property
    def event_store(self) -> EventStore:
        return self._events

    @property
    def replay_engine(self) -> ReplayEngine:
        return self._replay

    async def load(self, aggregate_type: AggregateType[S], aggregate_id: str) -> Aggregate[S] | None:
        return await self._replay.load(aggregate_type, aggregate_id)

    async def get(self, aggregate_type: AggregateType[S], aggregate_id: str) -> Aggregate[S]:
        """Load or raise :class:`UnknownStreamError`."""
        return await self._replay.get(aggregate_type, aggregate_id)

    async def load_or_create(self, aggregate_type: AggregateType[S], aggregate_id: str) -> Aggregate[S]:
        return await self._replay.load_or_create(aggregate_type, aggregate_id)

    async def create(self, aggregate_type: AggregateType[S], aggregate_id: str) -> Aggregate[S]:
        """Start a new aggregate; raises :class:`ConflictError` if the stream exists."""
        if await self._events.current_version(aggregate_type.name, aggregate_id) > 0:
            raise ConflictError(f"Stream {aggregate_type.name}-{aggregate_id} already exists")
        return Aggregate.new(aggregate_type, aggregate_id)

    async def save(self, aggregate: Aggregate[Any]) -> list[EventEnvelope]:
        """Append the aggregate's pending events under optimistic concurrency.

        On :class:`ConcurrencyConflictError` the aggregate is left untouched
        (pending events kept, version unchanged) and the error propagates;
        the caller reloads and re-decides.
        A failing policy-driven snapshot is logged and does not fail the save.
        """
        pending = list(aggregate.pending_events)
        if not pending:
            return []
        previous = aggregate.current_version
        envelopes = await self._events.append(
            aggregate.aggregate_type.name,
            aggregate.aggregate_id,
            expected_version=previous,
            events=pending,
        )
        aggregate.mark_committed(envelopes)
        if self._snapshots is not None and self._policy.should_snapshot(previous, aggregate.current_version):
            try:
                await self.take_snapshot(aggregate)
            except Exception as exc:
                # events are already committed; snapshot errors never fail the save
                logger.warning(
                    "snapshot.failed",
                    aggregate_type=aggregate.aggregate_type.name,
                    aggregate_id=aggregate.aggregate_id,
                    version=aggregate.current_version,
                    error=repr(exc),
                )
        return envelopes

    async def take_snapshot(self, aggregate: Aggregate[Any]) -> None:
        """Snapshot the aggregate's committed state.

        Refuses aggregates with uncommitted events and versions the event
        store has not confirmed.
        """
        if self._snapshots is None:
            raise ValidationError("repository has no snapshot store")
        if aggregate.pending_events:
            raise ValidationError(
                f"Cannot snapshot {aggregate.stream_id} with {len(aggregate.pending_events)} uncommitted events"
            )
        if aggregate.current_version < 1:
            return
        name = aggregate.aggregate_type.name
        stream_version = await self._events.current_version(name, aggregate.aggregate_id)
        if aggregate.current_version > stream_version:
            raise SnapshotAheadOfStreamError(name, aggregate.aggregate_id, aggregate.current_version, stream_version)
        await self._snapshots.save(
            name,
            aggregate.aggregate_id,
            aggregate.current_version,
            aggregate.aggregate_type.encode(aggregate.state),
            schema_version=aggregate.aggregate_type.snapshot_schema_version,
        )
        logger.info(
            "snapshot.saved",
            aggregate_type=name,
            aggregate_id=aggregate.aggregate_id,
            version=aggregate.current_version,
        )


__all__ = ["EventSourcedRepository"]
