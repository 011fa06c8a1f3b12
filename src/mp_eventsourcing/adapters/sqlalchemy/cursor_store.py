"""SQLAlchemy adapter – SQLAlchemyCursorStore."""
from __future__ import annotations

from typing import Any

from sqlalchemy import delete, insert, select, update

from mp_eventsourcing.adapters.sqlalchemy.event_store import SessionFactory, storage_errors
from mp_eventsourcing.adapters.sqlalchemy.schema import projection_cursors
from mp_eventsourcing.application.event_sourcing.cursor import CursorStore, ProjectionCursor
from mp_eventsourcing.kernel.time import as_utc


def _key_filter(projector_name: str, aggregate_type: str, aggregate_id: str) -> Any:
    c = projection_cursors.c
    return (c.projector_name == projector_name) & (c.aggregate_type == aggregate_type) & (c.aggregate_id == aggregate_id)


def _to_cursor(row: Any) -> ProjectionCursor:
    return ProjectionCursor(
        projector_name=row.projector_name,
        aggregate_type=row.aggregate_type,
        aggregate_id=row.aggregate_id,
        last_processed_version=row.last_processed_version,
        updated_at=as_utc(row.updated_at),
    )


class SQLAlchemyCursorStore(CursorStore):
    """Durable projection cursors in the ``projection_cursors`` table.

    ``save`` only ever moves a cursor forward: the update is guarded by
    ``last_processed_version <= new value``.
    """

    RESOURCE = "projection_cursors"

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def get(
        self, projector_name: str, aggregate_type: str, aggregate_id: str
    ) -> ProjectionCursor | None:
        with storage_errors(self.RESOURCE):
            async with self._session_factory() as session:
                row = (
                    await session.execute(
                        select(projection_cursors).where(_key_filter(projector_name, aggregate_type, aggregate_id))
                    )
                ).first()
        return _to_cursor(row) if row is not None else None

    async def save(self, cursor: ProjectionCursor) -> None:
        where = _key_filter(*cursor.key)
        with storage_errors(self.RESOURCE):
            async with self._session_factory() as session, session.begin():
                current = (
                    await session.execute(select(projection_cursors.c.last_processed_version).where(where))
                ).scalar()
                if current is None:
                    await session.execute(
                        insert(projection_cursors).values(
                            projector_name=cursor.projector_name,
                            aggregate_type=cursor.aggregate_type,
                            aggregate_id=cursor.aggregate_id,
                            last_processed_version=cursor.last_processed_version,
                            updated_at=cursor.updated_at,
                        )
                    )
                elif current <= cursor.last_processed_version:
                    await session.execute(
                        update(projection_cursors)
                        .where(where & (projection_cursors.c.last_processed_version <= cursor.last_processed_version))
                        .values(
                            last_processed_version=cursor.last_processed_version,
                            updated_at=cursor.updated_at,
                        )
                    )

    async def reset(self, projector_name: str) -> None:
        with storage_errors(self.RESOURCE):
            async with self._session_factory() as session, session.begin():
                await session.execute(
                    delete(projection_cursors).where(projection_cursors.c.projector_name == projector_name)
                )

    async def list_for(self, projector_name: str) -> list[ProjectionCursor]:
        with storage_errors(self.RESOURCE):
            async with self._session_factory() as session:
                rows = (
                    await session.execute(
                        select(projection_cursors)
                        .where(projection_cursors.c.projector_name == projector_name)
                        .order_by(projection_cursors.c.aggregate_type, projection_cursors.c.aggregate_id)
                    )
                ).fetchall()
        return [_to_cursor(row) for row in rows]


__all__ = ["SQLAlchemyCursorStore"]
