"""Application event sourcing – StreamId, NewEvent and EventEnvelope."""

from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import Any
from uuid import uuid4

from mp_eventsourcing.kernel.errors import ValidationError


@dataclasses.dataclass(frozen=True, slots=True, order=True)
class StreamId:
    """Identifies one aggregate instance's event stream.

    Examples::

        StreamId("order", "1")
        str(StreamId("order", "1"))  # "order-1"
    """

    aggregate_type: str
    aggregate_id: str

    def __post_init__(self) -> None:
        if not self.aggregate_type:
            raise ValidationError("aggregate_type must not be empty")
        if not self.aggregate_id:
            raise ValidationError("aggregate_id must not be empty")

    def __str__(self) -> str:
        return f"{self.aggregate_type}-{self.aggregate_id}"


@dataclasses.dataclass(frozen=True)
class StreamInfo:
    """A stream and the highest version appended to it."""

    stream_id: StreamId
    version: int


@dataclasses.dataclass(frozen=True)
class NewEvent:
    """An event recorded by an aggregate but not yet appended to a stream."""

    event_type: str
    payload: dict[str, Any] = dataclasses.field(default_factory=dict)
    schema_version: int = 1
    metadata: dict[str, Any] = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.event_type:
            raise ValidationError("event_type must not be empty")
        if self.schema_version < 1:
            raise ValidationError("schema_version must be >= 1")


@dataclasses.dataclass(frozen=True)
class EventEnvelope:
    """An immutable fact as persisted in the event store.

    ``version`` is the envelope's 1-based position in its stream;
    ``position`` is the store-wide append order (``None`` for envelopes that
    were never persisted, e.g. the provisional ones an aggregate applies to
    itself before the append is confirmed).
    """

    aggregate_type: str
    aggregate_id: str
    event_type: str
    version: int
    payload: dict[str, Any]
    recorded_at: datetime
    schema_version: int = 1
    metadata: dict[str, Any] = dataclasses.field(default_factory=dict)
    event_id: str = dataclasses.field(default_factory=lambda: str(uuid4()))
    position: int | None = None

    def __post_init__(self) -> None:
        if self.version < 1:
            raise ValidationError(f"version must be >= 1, got {self.version}")

    @property
    def stream_id(self) -> StreamId:
        return StreamId(self.aggregate_type, self.aggregate_id)

    @classmethod
    def from_new_event(
        cls,
        stream: StreamId,
        event: NewEvent,
        version: int,
        recorded_at: datetime,
        position: int | None = None,
    ) -> "EventEnvelope":
        return cls(
            aggregate_type=stream.aggregate_type,
            aggregate_id=stream.aggregate_id,
            event_type=event.event_type,
            version=version,
            payload=dict(event.payload),
            recorded_at=recorded_at,
            schema_version=event.schema_version,
            metadata=dict(event.metadata),
            position=position,
        )


__all__ = ["EventEnvelope", "NewEvent", "StreamId", "StreamInfo"]
