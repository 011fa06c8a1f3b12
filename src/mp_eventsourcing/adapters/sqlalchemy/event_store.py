"""SQLAlchemy adapter – SQLAlchemyEventStore."""
from __future__ import annotations

import contextlib
from typing import Any, Callable, Iterable, Iterator, Sequence

from sqlalchemy import func, insert, select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mp_eventsourcing.adapters.sqlalchemy.schema import events as events_table
from mp_eventsourcing.application.event_sourcing.envelope import (
    EventEnvelope,
    NewEvent,
    StreamId,
    StreamInfo,
)
from mp_eventsourcing.application.event_sourcing.serialization import (
    EventSchemaRegistry,
    decode_payload,
    encode_payload,
)
from mp_eventsourcing.application.event_sourcing.store import EventStore
from mp_eventsourcing.kernel.errors import StorageUnavailableError
from mp_eventsourcing.kernel.time import Clock, as_utc

SessionFactory = Callable[[], AsyncSession]


@contextlib.contextmanager
def storage_errors(resource: str) -> Iterator[None]:
    """Translate driver failures into :class:`StorageUnavailableError`.

    :class:`IntegrityError` passes through untouched; callers map it to a
    domain error.
    """
    try:
        yield
    except IntegrityError:
        raise
    except (DBAPIError, OSError) as exc:
        raise StorageUnavailableError(resource, f"Storage '{resource}' failed: {exc}", cause=exc) from exc


def _stream_filter(stream: StreamId) -> Any:
    return (events_table.c.aggregate_type == stream.aggregate_type) & (
        events_table.c.aggregate_id == stream.aggregate_id
    )


def _to_envelope(row: Any) -> EventEnvelope:
    return EventEnvelope(
        aggregate_type=row.aggregate_type,
        aggregate_id=row.aggregate_id,
        event_type=row.event_type,
        version=row.version,
        payload=decode_payload(bytes(row.payload), payload_type=row.event_type),
        recorded_at=as_utc(row.recorded_at),
        schema_version=row.schema_version,
        metadata=decode_payload(row.metadata_json or "{}", payload_type=row.event_type),
        event_id=row.event_id,
        position=row.position,
    )


class SQLAlchemyEventStore(EventStore):
    """Append-only event store on a single ``events`` table.

    Every append runs in its own transaction: the version check, the inserts
    and the read-back of the assigned positions commit or roll back
    together.  The ``UNIQUE (aggregate_type, aggregate_id, version)``
    constraint catches the writer that loses a race between check and
    insert; that :class:`IntegrityError` surfaces as a
    :class:`ConcurrencyConflictError`, never as a storage failure.

    Parameters
    ----------
    session_factory:
        Zero-argument callable returning an :class:`AsyncSession`, e.g. a
        :class:`SqlAlchemySessionFactory` or an ``async_sessionmaker``.

    Create the tables first with :func:`create_schema`.
    """

    RESOURCE = "events"

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        clock: Clock | None = None,
        schemas: EventSchemaRegistry | None = None,
    ) -> None:
        super().__init__(clock=clock, schemas=schemas)
        self._session_factory = session_factory

    async def append(
        self,
        aggregate_type: str,
        aggregate_id: str,
        expected_version: int,
        events: Sequence[NewEvent],
    ) -> list[EventEnvelope]:
        stream, prepared = self._prepare(aggregate_type, aggregate_id, expected_version, events)

        try:
            with storage_errors(self.RESOURCE):
                async with self._session_factory() as session, session.begin():
                    last = (
                        await session.execute(
                            select(events_table.c.version, events_table.c.recorded_at)
                            .where(_stream_filter(stream))
                            .order_by(events_table.c.version.desc())
                            .limit(1)
                        )
                    ).first()
                    actual = last.version if last is not None else 0
                    if actual != expected_version:
                        raise self._conflict(stream, expected_version, actual)
                    if not prepared:
                        return []

                    recorded_at = self._recorded_at(last.recorded_at if last is not None else None)
                    rows = []
                    for offset, event in enumerate(prepared, start=1):
                        envelope = EventEnvelope.from_new_event(
                            stream, event, version=expected_version + offset, recorded_at=recorded_at
                        )
                        rows.append(
                            {
                                "event_id": envelope.event_id,
                                "aggregate_type": stream.aggregate_type,
                                "aggregate_id": stream.aggregate_id,
                                "version": envelope.version,
                                "event_type": envelope.event_type,
                                "schema_version": envelope.schema_version,
                                "payload": encode_payload(envelope.payload),
                                "metadata_json": encode_payload(envelope.metadata).decode(),
                                "recorded_at": recorded_at,
                            }
                        )
                    await session.execute(insert(events_table), rows)
                    result = await session.execute(
                        select(events_table)
                        .where(_stream_filter(stream) & (events_table.c.version > expected_version))
                        .order_by(events_table.c.version)
                    )
                    appended = [_to_envelope(row) for row in result]
        except IntegrityError as exc:
            actual = await self.current_version(aggregate_type, aggregate_id)
            raise self._conflict(stream, expected_version, actual) from exc

        self._log_appended(stream, appended)
        await self._notify(appended)
        return appended

    async def load(
        self,
        aggregate_type: str,
        aggregate_id: str,
        from_version: int = 0,
    ) -> list[EventEnvelope]:
        stream = StreamId(aggregate_type, aggregate_id)
        with storage_errors(self.RESOURCE):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(events_table)
                    .where(_stream_filter(stream) & (events_table.c.version > from_version))
                    .order_by(events_table.c.version)
                )
                rows = result.fetchall()
        return self._upcast([_to_envelope(row) for row in rows])

    async def current_version(self, aggregate_type: str, aggregate_id: str) -> int:
        stream = StreamId(aggregate_type, aggregate_id)
        with storage_errors(self.RESOURCE):
            async with self._session_factory() as session:
                value = (
                    await session.execute(select(func.max(events_table.c.version)).where(_stream_filter(stream)))
                ).scalar()
        return value or 0

    async def read_all(
        self,
        from_position: int = 0,
        limit: int | None = None,
        aggregate_types: Iterable[str] | None = None,
    ) -> list[EventEnvelope]:
        stmt = select(events_table).where(events_table.c.position > from_position).order_by(events_table.c.position)
        if aggregate_types is not None:
            stmt = stmt.where(events_table.c.aggregate_type.in_(list(aggregate_types)))
        if limit is not None:
            stmt = stmt.limit(limit)
        with storage_errors(self.RESOURCE):
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).fetchall()
        return self._upcast([_to_envelope(row) for row in rows])

    async def list_streams(self, aggregate_type: str | None = None) -> list[StreamInfo]:
        stmt = (
            select(events_table.c.aggregate_type, events_table.c.aggregate_id, func.max(events_table.c.version).label("version"))
            .group_by(events_table.c.aggregate_type, events_table.c.aggregate_id)
            .order_by(events_table.c.aggregate_type, events_table.c.aggregate_id)
        )
        if aggregate_type is not None:
            stmt = stmt.where(events_table.c.aggregate_type == aggregate_type)
        with storage_errors(self.RESOURCE):
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).fetchall()
        return [StreamInfo(StreamId(row.aggregate_type, row.aggregate_id), row.version) for row in rows]


__all__ = ["SQLAlchemyEventStore", "SessionFactory", "storage_errors"]
