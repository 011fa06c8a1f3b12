"""Application event sourcing – Snapshot, SnapshotStore port and SnapshotPolicy."""

from __future__ import annotations

import abc
import dataclasses
from datetime import datetime
from typing import Any

from mp_eventsourcing.application.event_sourcing.envelope import StreamId
from mp_eventsourcing.kernel.errors import ValidationError
from mp_eventsourcing.kernel.time import utc_now


@dataclasses.dataclass(frozen=True)
class Snapshot:
    """Materialised aggregate state after folding events ``1..version``."""

    aggregate_type: str
    aggregate_id: str
    version: int
    state: dict[str, Any]
    schema_version: int = 1
    taken_at: datetime = dataclasses.field(default_factory=utc_now)

    @property
    def stream_id(self) -> StreamId:
        return StreamId(self.aggregate_type, self.aggregate_id)


class SnapshotStore(abc.ABC):
    """Port — store and retrieve aggregate state snapshots.

    Snapshots are a disposable cache: deleting every snapshot must never
    change the state an aggregate loads with, only how many events are
    replayed to get there.

    Never save a version beyond what the event store has confirmed as
    appended; :meth:`EventSourcedRepository.take_snapshot` enforces this.
    """

    @abc.abstractmethod
    async def save(
        self,
        aggregate_type: str,
        aggregate_id: str,
        version: int,
        state: dict[str, Any],
        schema_version: int = 1,
    ) -> None:
        """Upsert the snapshot for the stream (an older version never replaces a newer one)."""

    @abc.abstractmethod
    async def load_latest(self, aggregate_type: str, aggregate_id: str) -> Snapshot | None:
        """Return the highest-version snapshot for the stream, or ``None``."""

    @abc.abstractmethod
    async def delete(self, aggregate_type: str, aggregate_id: str) -> None:
        """Drop every snapshot of the stream."""

    @abc.abstractmethod
    async def clear(self) -> None:
        """Drop every snapshot in the store."""


class InMemorySnapshotStore(SnapshotStore):
    """In-memory :class:`SnapshotStore` for tests and local development.

    Keeps every saved snapshot per stream (see :meth:`history`); only the
    highest version is returned by :meth:`load_latest`.
    """

    def __init__(self) -> None:
        self._snapshots: dict[StreamId, list[Snapshot]] = {}

    async def save(
        self,
        aggregate_type: str,
        aggregate_id: str,
        version: int,
        state: dict[str, Any],
        schema_version: int = 1,
    ) -> None:
        if version < 1:
            raise ValidationError(f"snapshot version must be >= 1, got {version}")
        stream = StreamId(aggregate_type, aggregate_id)
        history = self._snapshots.setdefault(stream, [])
        history.append(
            Snapshot(
                aggregate_type=aggregate_type,
                aggregate_id=aggregate_id,
                version=version,
                state=dict(state),
                schema_version=schema_version,
            )
        )

    async def load_latest(self, aggregate_type: str, aggregate_id: str) -> Snapshot | None:
        history = self._snapshots.get(StreamId(aggregate_type, aggregate_id))
        if not history:
            return None
        return max(history, key=lambda s: (s.version, s.taken_at))

    async def delete(self, aggregate_type: str, aggregate_id: str) -> None:
        self._snapshots.pop(StreamId(aggregate_type, aggregate_id), None)

    async def clear(self) -> None:
        self._snapshots.clear()

    def history(self, stream: StreamId) -> list[Snapshot]:
        """Every snapshot saved for *stream*, oldest first (debugging aid)."""
        return list(self._snapshots.get(stream, []))


@dataclasses.dataclass(frozen=True)
class SnapshotPolicy:
    """Decides when a repository takes a snapshot after a successful append.

    ``every(n)`` snapshots whenever an append crosses a multiple of *n*;
    ``never()`` disables snapshots.
    """

    interval: int = 0

    @classmethod
    def every(cls, n: int) -> "SnapshotPolicy":
        if n < 1:
            raise ValidationError("snapshot interval must be >= 1")
        return cls(interval=n)

    @classmethod
    def never(cls) -> "SnapshotPolicy":
        return cls(interval=0)

    def should_snapshot(self, previous_version: int, new_version: int) -> bool:
        if self.interval <= 0 or new_version <= previous_version:
            return False
        return new_version // self.interval > previous_version // self.interval


__all__ = ["InMemorySnapshotStore", "Snapshot", "SnapshotPolicy", "SnapshotStore"]
