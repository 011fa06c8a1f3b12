"""Application event sourcing – EventStore port and InMemoryEventStore."""

from __future__ import annotations

import abc
import asyncio
import copy
from datetime import datetime
from typing import Awaitable, Callable, Iterable, Sequence

from mp_eventsourcing.application.event_sourcing.envelope import (
    EventEnvelope,
    NewEvent,
    StreamId,
    StreamInfo,
)
from mp_eventsourcing.application.event_sourcing.serialization import EventSchemaRegistry
from mp_eventsourcing.kernel.errors import ConcurrencyConflictError, ValidationError
from mp_eventsourcing.kernel.time import Clock, SystemClock, as_utc
from mp_eventsourcing.observability.logging import get_logger

logger = get_logger(__name__)

AppendListener = Callable[[list[EventEnvelope]], Awaitable[None]]


class EventStore(abc.ABC):
    """Port — durable, append-only, per-stream ordered event log.

    ``expected_version`` implements **optimistic concurrency control**:

    - Pass ``0`` when creating a new stream (no events exist yet).
    - Pass the version the caller last read when appending to an existing
      stream.
    - The store raises :class:`ConcurrencyConflictError` if the stream's
      current version differs from *expected_version*; the caller reloads
      and retries.

    An append that fails with :class:`StorageUnavailableError` (or times out)
    is indeterminate.  Never retry it blindly with the same
    *expected_version*; read :meth:`current_version` first.

    Subscribers registered with :meth:`subscribe` are awaited after every
    committed append.  They are a fast path only: polling
    :meth:`list_streams` / :meth:`read_all` is the durable way to observe
    appends across crashes.
    """

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        schemas: EventSchemaRegistry | None = None,
    ) -> None:
        self._clock: Clock = clock or SystemClock()
        self._schemas = schemas
        self._listeners: list[AppendListener] = []

    # ------------------------------------------------------------------
    # Port
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def append(
        self,
        aggregate_type: str,
        aggregate_id: str,
        expected_version: int,
        events: Sequence[NewEvent],
    ) -> list[EventEnvelope]:
        """Atomically append *events* as versions ``expected_version + 1 …``."""

    @abc.abstractmethod
    async def load(
        self,
        aggregate_type: str,
        aggregate_id: str,
        from_version: int = 0,
    ) -> list[EventEnvelope]:
        """Return envelopes with ``version > from_version`` in ascending order.

        An unknown stream loads as ``[]``.
        """

    @abc.abstractmethod
    async def current_version(self, aggregate_type: str, aggregate_id: str) -> int:
        """Return the highest appended version (``0`` for unknown streams)."""

    @abc.abstractmethod
    async def read_all(
        self,
        from_position: int = 0,
        limit: int | None = None,
        aggregate_types: Iterable[str] | None = None,
    ) -> list[EventEnvelope]:
        """Return envelopes with ``position > from_position`` in position order."""

    @abc.abstractmethod
    async def list_streams(self, aggregate_type: str | None = None) -> list[StreamInfo]:
        """Return every known stream with its current version."""

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: AppendListener) -> Callable[[], None]:
        """Await *listener* with the committed envelopes after every append.

        Returns a callable that removes the subscription.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _notify(self, envelopes: list[EventEnvelope]) -> None:
        # The append is already committed; a failing listener must not undo it.
        for listener in list(self._listeners):
            try:
                await listener(envelopes)
            except Exception:
                logger.exception(
                    "event_store.listener_failed",
                    aggregate_type=envelopes[0].aggregate_type,
                    aggregate_id=envelopes[0].aggregate_id,
                    listener=getattr(listener, "__qualname__", repr(listener)),
                )

    # ------------------------------------------------------------------
    # Helpers for implementations
    # ------------------------------------------------------------------

    def _prepare(
        self,
        aggregate_type: str,
        aggregate_id: str,
        expected_version: int,
        events: Sequence[NewEvent],
    ) -> tuple[StreamId, list[NewEvent]]:
        stream = StreamId(aggregate_type, aggregate_id)
        if expected_version < 0:
            raise ValidationError(f"expected_version must be >= 0, got {expected_version}")
        prepared = list(events)
        if self._schemas is not None:
            prepared = [self._schemas.validate(event) for event in prepared]
        return stream, prepared

    def _recorded_at(self, last_recorded_at: datetime | None) -> datetime:
        """Store-assigned timestamp, never earlier than the stream's last one."""
        now = as_utc(self._clock.now())
        if last_recorded_at is not None:
            last = as_utc(last_recorded_at)
            if now < last:
                return last
        return now

    def _upcast(self, envelopes: list[EventEnvelope]) -> list[EventEnvelope]:
        if self._schemas is None:
            return envelopes
        return [self._schemas.upcast(envelope) for envelope in envelopes]

    @staticmethod
    def _conflict(stream: StreamId, expected: int, actual: int | None) -> ConcurrencyConflictError:
        logger.warning(
            "event_store.conflict",
            aggregate_type=stream.aggregate_type,
            aggregate_id=stream.aggregate_id,
            expected_version=expected,
            actual_version=actual,
        )
        return ConcurrencyConflictError(stream.aggregate_type, stream.aggregate_id, expected, actual)

    @staticmethod
    def _log_appended(stream: StreamId, envelopes: list[EventEnvelope]) -> None:
        logger.info(
            "event_store.appended",
            aggregate_type=stream.aggregate_type,
            aggregate_id=stream.aggregate_id,
            from_version=envelopes[0].version,
            to_version=envelopes[-1].version,
            count=len(envelopes),
        )


class InMemoryEventStore(EventStore):
    """In-memory :class:`EventStore` for tests and local development.

    Each stream has its own :class:`asyncio.Lock`, so the version check and
    the append happen as one step; appends to different streams never wait
    on each other.
    Stored envelopes are never handed out; reads return deep copies.
    """

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        schemas: EventSchemaRegistry | None = None,
    ) -> None:
        super().__init__(clock=clock, schemas=schemas)
        self._streams: dict[StreamId, list[EventEnvelope]] = {}
        self._log: list[EventEnvelope] = []
        self._locks: dict[StreamId, asyncio.Lock] = {}

    def _lock_for(self, stream: StreamId) -> asyncio.Lock:
        lock = self._locks.get(stream)
        if lock is None:
            lock = self._locks[stream] = asyncio.Lock()
        return lock

    async def append(
        self,
        aggregate_type: str,
        aggregate_id: str,
        expected_version: int,
        events: Sequence[NewEvent],
    ) -> list[EventEnvelope]:
        stream, prepared = self._prepare(aggregate_type, aggregate_id, expected_version, events)

        async with self._lock_for(stream):
            existing = self._streams.get(stream, [])
            actual = len(existing)
            if actual != expected_version:
                raise self._conflict(stream, expected_version, actual)
            if not prepared:
                return []

            last_recorded = existing[-1].recorded_at if existing else None
            recorded_at = self._recorded_at(last_recorded)
            base_position = len(self._log)
            envelopes = [
                EventEnvelope.from_new_event(
                    stream,
                    event,
                    version=expected_version + offset,
                    recorded_at=recorded_at,
                    position=base_position + offset,
                )
                for offset, event in enumerate(prepared, start=1)
            ]
            stored = copy.deepcopy(envelopes)
            self._streams[stream] = existing + stored
            self._log.extend(stored)

        self._log_appended(stream, envelopes)
        await self._notify(envelopes)
        return envelopes

    async def load(
        self,
        aggregate_type: str,
        aggregate_id: str,
        from_version: int = 0,
    ) -> list[EventEnvelope]:
        stream = self._streams.get(StreamId(aggregate_type, aggregate_id), [])
        return self._upcast(copy.deepcopy([e for e in stream if e.version > from_version]))

    async def current_version(self, aggregate_type: str, aggregate_id: str) -> int:
        return len(self._streams.get(StreamId(aggregate_type, aggregate_id), []))

    async def read_all(
        self,
        from_position: int = 0,
        limit: int | None = None,
        aggregate_types: Iterable[str] | None = None,
    ) -> list[EventEnvelope]:
        types = set(aggregate_types) if aggregate_types is not None else None
        selected = [
            e
            for e in self._log[from_position:]
            if types is None or e.aggregate_type in types
        ]
        if limit is not None:
            selected = selected[:limit]
        return self._upcast(copy.deepcopy(selected))

    async def list_streams(self, aggregate_type: str | None = None) -> list[StreamInfo]:
        return [
            StreamInfo(stream_id=stream, version=len(events))
            for stream, events in sorted(self._streams.items())
            if aggregate_type is None or stream.aggregate_type == aggregate_type
        ]

    def all_events(self, stream: StreamId | None = None) -> list[EventEnvelope]:
        """Return copies of stored envelopes (test helper), optionally for one stream."""
        if stream is not None:
            return copy.deepcopy(self._streams.get(stream, []))
        return copy.deepcopy(self._log)


__all__ = ["AppendListener", "EventStore", "InMemoryEventStore"]
