"""Application event sourcing – AggregateType and Aggregate.

Aggregates are plain state values paired with a pure transition function;
there is no base class to inherit from.

Example::

    @dataclasses.dataclass(frozen=True)
    class OrderState:
        placed: bool = False
        lines: tuple[str, ...] = ()

    def apply_order(state: OrderState, event: EventEnvelope) -> OrderState:
        if event.event_type == "OrderPlaced":
            return dataclasses.replace(state, placed=True)
        if event.event_type == "LineAdded":
            return dataclasses.replace(state, lines=state.lines + (event.payload["sku"],))
        return state

    ORDER = AggregateType("order", initial_state=OrderState, apply=apply_order)

    order = Aggregate.new(ORDER, "1")
    order.record("OrderPlaced", {"order_id": "1"})
    assert order.state.placed  # applied before the append is confirmed
"""

from __future__ import annotations

import dataclasses
from typing import Any, Callable, Generic, Iterable, TypeVar

import pydantic

from mp_eventsourcing.application.event_sourcing.envelope import EventEnvelope, NewEvent, StreamId
from mp_eventsourcing.kernel.errors import SerializationError, ValidationError
from mp_eventsourcing.kernel.time import utc_now

S = TypeVar("S")


@dataclasses.dataclass(frozen=True)
class AggregateType(Generic[S]):
    """Schema family of an aggregate: its name, empty state and ``apply``.

    ``apply(state, envelope) -> state`` must be deterministic and free of
    side effects: folding the same events from the same starting state
    always yields an equal state.

    Snapshots are encoded with *encode_state* / *decode_state*.  When they
    are omitted, dataclass and pydantic states round-trip through
    :class:`pydantic.TypeAdapter` and ``dict`` states are copied.  Bump
    *snapshot_schema_version* whenever the state shape changes; snapshots
    written under another version are ignored on load.
    """

    name: str
    initial_state: Callable[[], S]
    apply: Callable[[S, EventEnvelope], S]
    snapshot_schema_version: int = 1
    encode_state: Callable[[S], dict[str, Any]] | None = None
    decode_state: Callable[[dict[str, Any]], S] | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError("aggregate type name must not be empty")

    def fold(self, state: S, envelopes: Iterable[EventEnvelope]) -> S:
        for envelope in envelopes:
            state = self.apply(state, envelope)
        return state

    def encode(self, state: S) -> dict[str, Any]:
        if self.encode_state is not None:
            return self.encode_state(state)
        if isinstance(state, dict):
            return dict(state)
        if isinstance(state, pydantic.BaseModel) or dataclasses.is_dataclass(state):
            return pydantic.TypeAdapter(type(state)).dump_python(state, mode="json")
        raise SerializationError(
            f"Cannot encode {type(state).__name__} state of {self.name!r}; supply encode_state",
            payload_type=self.name,
        )

    def decode(self, data: dict[str, Any]) -> S:
        if self.decode_state is not None:
            return self.decode_state(data)
        template = self.initial_state()
        if isinstance(template, dict):
            return dict(data)  # type: ignore[return-value]
        if isinstance(template, pydantic.BaseModel) or dataclasses.is_dataclass(template):
            try:
                return pydantic.TypeAdapter(type(template)).validate_python(data)
            except pydantic.ValidationError as exc:
                raise SerializationError(
                    f"Snapshot state does not match {self.name!r}", payload_type=self.name, cause=exc
                ) from exc
        raise SerializationError(
            f"Cannot decode {type(template).__name__} state of {self.name!r}; supply decode_state",
            payload_type=self.name,
        )


class Aggregate(Generic[S]):
    """In-memory reconstruction of one aggregate instance.

    ``current_version`` is the highest version confirmed by the event
    store.  Events recorded during the current unit of work live in
    ``pending_events`` and are already folded into ``state``; they are
    cleared only by :meth:`mark_committed`, after a successful append.
    """

    def __init__(
        self,
        aggregate_type: AggregateType[S],
        aggregate_id: str,
        state: S,
        version: int = 0,
        *,
        is_new: bool = True,
    ) -> None:
        self._type = aggregate_type
        self._stream = StreamId(aggregate_type.name, aggregate_id)
        self._state = state
        self._version = version
        self._pending: list[NewEvent] = []
        self.is_new = is_new

    @classmethod
    def new(cls, aggregate_type: AggregateType[S], aggregate_id: str) -> "Aggregate[S]":
        """A fresh aggregate at version 0 in its empty state."""
        return cls(aggregate_type, aggregate_id, aggregate_type.initial_state(), 0, is_new=True)

    def __repr__(self) -> str:
        return (
            f"Aggregate({self._stream}, version={self._version}, "
            f"pending={len(self._pending)})"
        )

    @property
    def aggregate_type(self) -> AggregateType[S]:
        return self._type

    @property
    def aggregate_id(self) -> str:
        return self._stream.aggregate_id

    @property
    def stream_id(self) -> StreamId:
        return self._stream

    @property
    def state(self) -> S:
        return self._state

    @property
    def current_version(self) -> int:
        return self._version

    @property
    def expected_version(self) -> int:
        """Version the next append must be checked against."""
        return self._version

    @property
    def pending_events(self) -> tuple[NewEvent, ...]:
        return tuple(self._pending)

    def record(
        self,
        event_type: str,
        payload: dict[str, Any] | None = None,
        *,
        schema_version: int = 1,
        metadata: dict[str, Any] | None = None,
    ) -> NewEvent:
        """Record a new event and apply it to ``state`` immediately."""
        event = NewEvent(
            event_type=event_type,
            payload=dict(payload or {}),
            schema_version=schema_version,
            metadata=dict(metadata or {}),
        )
        provisional = EventEnvelope.from_new_event(
            self._stream,
            event,
            version=self._version + len(self._pending) + 1,
            recorded_at=utc_now(),
        )
        self._state = self._type.apply(self._state, provisional)
        self._pending.append(event)
        return event

    def mark_committed(self, envelopes: list[EventEnvelope]) -> None:
        """Confirm that the pending events were appended as *envelopes*."""
        if len(envelopes) != len(self._pending):
            raise ValidationError(
                f"Expected {len(self._pending)} committed envelopes, got {len(envelopes)}"
            )
        for offset, envelope in enumerate(envelopes, start=1):
            if envelope.stream_id != self._stream or envelope.version != self._version + offset:
                raise ValidationError(
                    f"Envelope {envelope.stream_id} v{envelope.version} does not continue "
                    f"{self._stream} at v{self._version + offset}"
                )
        if envelopes:
            self._version = envelopes[-1].version
            self.is_new = False
        self._pending.clear()


__all__ = ["Aggregate", "AggregateType"]
