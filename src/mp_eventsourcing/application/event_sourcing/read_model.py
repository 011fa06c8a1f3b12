"""Application event sourcing – ReadModel port and InMemoryReadModel."""

from __future__ import annotations

import abc
import copy
from typing import Any

from mp_eventsourcing.application.event_sourcing.envelope import StreamId


class ReadModel(abc.ABC):
    """Port — a denormalised, query-optimised view maintained by a projector.

    Besides its rows the read model remembers, per source stream, the last
    event version it applied.  Projectors use it to skip redelivered
    events, which makes at-least-once delivery safe even for handlers that
    are not naturally idempotent (counters, appends).
    """

    @abc.abstractmethod
    async def get(self, key: str) -> dict[str, Any] | None: ...

    @abc.abstractmethod
    async def upsert(self, key: str, row: dict[str, Any]) -> None: ...

    @abc.abstractmethod
    async def delete(self, key: str) -> None: ...

    @abc.abstractmethod
    async def rows(self) -> dict[str, dict[str, Any]]: ...

    @abc.abstractmethod
    async def applied_version(self, stream: StreamId) -> int:
        """Last version of *stream* applied to this read model (``0`` if none)."""

    @abc.abstractmethod
    async def mark_applied(self, stream: StreamId, version: int) -> None: ...

    @abc.abstractmethod
    async def clear(self) -> None:
        """Drop every row and every applied-version marker."""


class InMemoryReadModel(ReadModel):
    """Dict-backed :class:`ReadModel`; rows are copied in and out."""

    def __init__(self) -> None:
        self._rows: dict[str, dict[str, Any]] = {}
        self._applied: dict[StreamId, int] = {}

    async def get(self, key: str) -> dict[str, Any] | None:
        row = self._rows.get(key)
        return copy.deepcopy(row) if row is not None else None

    async def upsert(self, key: str, row: dict[str, Any]) -> None:
        self._rows[key] = copy.deepcopy(row)

    async def delete(self, key: str) -> None:
        self._rows.pop(key, None)

    async def rows(self) -> dict[str, dict[str, Any]]:
        return copy.deepcopy(self._rows)

    async def applied_version(self, stream: StreamId) -> int:
        return self._applied.get(stream, 0)

    async def mark_applied(self, stream: StreamId, version: int) -> None:
        self._applied[stream] = max(self._applied.get(stream, 0), version)

    async def clear(self) -> None:
        self._rows.clear()
        self._applied.clear()

    def __len__(self) -> int:
        return len(self._rows)


__all__ = ["InMemoryReadModel", "ReadModel"]
