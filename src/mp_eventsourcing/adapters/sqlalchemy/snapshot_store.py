"""SQLAlchemy adapter – SQLAlchemySnapshotStore."""
from __future__ import annotations

from typing import Any

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError

from mp_eventsourcing.adapters.sqlalchemy.event_store import SessionFactory, storage_errors
from mp_eventsourcing.adapters.sqlalchemy.schema import snapshots
from mp_eventsourcing.application.event_sourcing.serialization import decode_payload, encode_payload
from mp_eventsourcing.application.event_sourcing.snapshot import Snapshot, SnapshotStore
from mp_eventsourcing.kernel.errors import ValidationError
from mp_eventsourcing.kernel.time import as_utc, utc_now
from mp_eventsourcing.observability.logging import get_logger

logger = get_logger(__name__)


def _stream_filter(aggregate_type: str, aggregate_id: str) -> Any:
    return (snapshots.c.aggregate_type == aggregate_type) & (snapshots.c.aggregate_id == aggregate_id)


class SQLAlchemySnapshotStore(SnapshotStore):
    """Keeps the latest snapshot per stream in the ``snapshots`` table.

    A save with a lower version than the stored one is ignored.  Two
    writers racing on a brand-new stream may collide on the primary key;
    the loser's snapshot is dropped since either one is a valid cache entry.
    """

    RESOURCE = "snapshots"

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

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
        where = _stream_filter(aggregate_type, aggregate_id)
        try:
            with storage_errors(self.RESOURCE):
                async with self._session_factory() as session, session.begin():
                    current = (await session.execute(select(snapshots.c.version).where(where))).scalar()
                    if current is not None and current > version:
                        return
                    await session.execute(delete(snapshots).where(where))
                    await session.execute(
                        insert(snapshots).values(
                            aggregate_type=aggregate_type,
                            aggregate_id=aggregate_id,
                            version=version,
                            schema_version=schema_version,
                            state=encode_payload(state),
                            taken_at=utc_now(),
                        )
                    )
        except IntegrityError:
            logger.debug(
                "snapshot.save_raced",
                aggregate_type=aggregate_type,
                aggregate_id=aggregate_id,
                version=version,
            )

    async def load_latest(self, aggregate_type: str, aggregate_id: str) -> Snapshot | None:
        with storage_errors(self.RESOURCE):
            async with self._session_factory() as session:
                row = (
                    await session.execute(select(snapshots).where(_stream_filter(aggregate_type, aggregate_id)))
                ).first()
        if row is None:
            return None
        return Snapshot(
            aggregate_type=row.aggregate_type,
            aggregate_id=row.aggregate_id,
            version=row.version,
            state=decode_payload(bytes(row.state), payload_type=f"{aggregate_type} snapshot"),
            schema_version=row.schema_version,
            taken_at=as_utc(row.taken_at),
        )

    async def delete(self, aggregate_type: str, aggregate_id: str) -> None:
        with storage_errors(self.RESOURCE):
            async with self._session_factory() as session, session.begin():
                await session.execute(delete(snapshots).where(_stream_filter(aggregate_type, aggregate_id)))

    async def clear(self) -> None:
        with storage_errors(self.RESOURCE):
            async with self._session_factory() as session, session.begin():
                await session.execute(delete(snapshots))


__all__ = ["SQLAlchemySnapshotStore"]
