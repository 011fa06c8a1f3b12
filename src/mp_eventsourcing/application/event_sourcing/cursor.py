"""Application event sourcing – ProjectionCursor and CursorStore port."""

from __future__ import annotations

import abc
import dataclasses
from datetime import datetime

from mp_eventsourcing.application.event_sourcing.envelope import StreamId
from mp_eventsourcing.kernel.time import utc_now

GLOBAL = "*"
"""Placeholder ``aggregate_type`` / ``aggregate_id`` of a global (all-streams) cursor."""


@dataclasses.dataclass(frozen=True)
class ProjectionCursor:
    """Durable pointer to the last event a projector finished with.

    For a per-stream cursor ``last_processed_version`` is a stream version;
    for a global cursor (``aggregate_id == GLOBAL``) it is a store position.
    """

    projector_name: str
    aggregate_type: str
    aggregate_id: str
    last_processed_version: int = 0
    updated_at: datetime = dataclasses.field(default_factory=utc_now)

    @classmethod
    def for_stream(cls, projector_name: str, stream: StreamId) -> "ProjectionCursor":
        return cls(projector_name, stream.aggregate_type, stream.aggregate_id)

    @classmethod
    def global_for(cls, projector_name: str) -> "ProjectionCursor":
        return cls(projector_name, GLOBAL, GLOBAL)

    @property
    def is_global(self) -> bool:
        return self.aggregate_id == GLOBAL

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.projector_name, self.aggregate_type, self.aggregate_id)

    def advanced(self, version: int) -> "ProjectionCursor":
        return dataclasses.replace(self, last_processed_version=version, updated_at=utc_now())


class CursorStore(abc.ABC):
    """Port — persists projection cursors across restarts.

    A saved cursor never moves backwards; only :meth:`reset` rewinds.
    """

    @abc.abstractmethod
    async def get(
        self, projector_name: str, aggregate_type: str, aggregate_id: str
    ) -> ProjectionCursor | None: ...

    @abc.abstractmethod
    async def save(self, cursor: ProjectionCursor) -> None: ...

    @abc.abstractmethod
    async def reset(self, projector_name: str) -> None:
        """Delete every cursor of *projector_name* (rebuild starts from zero)."""

    @abc.abstractmethod
    async def list_for(self, projector_name: str) -> list[ProjectionCursor]: ...

    async def get_or_start(
        self, projector_name: str, aggregate_type: str, aggregate_id: str
    ) -> ProjectionCursor:
        cursor = await self.get(projector_name, aggregate_type, aggregate_id)
        if cursor is None:
            return ProjectionCursor(projector_name, aggregate_type, aggregate_id)
        return cursor


class InMemoryCursorStore(CursorStore):
    """In-memory :class:`CursorStore` for tests and local development."""

    def __init__(self) -> None:
        self._cursors: dict[tuple[str, str, str], ProjectionCursor] = {}

    async def get(
        self, projector_name: str, aggregate_type: str, aggregate_id: str
    ) -> ProjectionCursor | None:
        return self._cursors.get((projector_name, aggregate_type, aggregate_id))

    async def save(self, cursor: ProjectionCursor) -> None:
        current = self._cursors.get(cursor.key)
        if current is not None and current.last_processed_version > cursor.last_processed_version:
            return
        self._cursors[cursor.key] = cursor

    async def reset(self, projector_name: str) -> None:
        for key in [k for k in self._cursors if k[0] == projector_name]:
            del self._cursors[key]

    async def list_for(self, projector_name: str) -> list[ProjectionCursor]:
        return sorted(
            (c for c in self._cursors.values() if c.projector_name == projector_name),
            key=lambda c: (c.aggregate_type, c.aggregate_id),
        )


__all__ = ["GLOBAL", "CursorStore", "InMemoryCursorStore", "ProjectionCursor"]
