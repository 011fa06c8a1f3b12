"""Application — Event Sourcing."""

from mp_eventsourcing.application.event_sourcing.aggregate import Aggregate, AggregateType
from mp_eventsourcing.application.event_sourcing.cursor import (
    GLOBAL,
    CursorStore,
    InMemoryCursorStore,
    ProjectionCursor,
)
from mp_eventsourcing.application.event_sourcing.dispatcher import ProjectionDispatcher, ProjectionMode
from mp_eventsourcing.application.event_sourcing.envelope import (
    EventEnvelope,
    NewEvent,
    StreamId,
    StreamInfo,
)
from mp_eventsourcing.application.event_sourcing.projector import ProjectionHandler, Projector
from mp_eventsourcing.application.event_sourcing.read_model import InMemoryReadModel, ReadModel
from mp_eventsourcing.application.event_sourcing.replay import ReplayEngine, replay, state_checksum
from mp_eventsourcing.application.event_sourcing.repository import EventSourcedRepository
from mp_eventsourcing.application.event_sourcing.runner import (
    ProjectionReport,
    ProjectionRunner,
    ProjectorState,
)
from mp_eventsourcing.application.event_sourcing.serialization import (
    EventSchemaRegistry,
    decode_payload,
    encode_payload,
)
from mp_eventsourcing.application.event_sourcing.snapshot import (
    InMemorySnapshotStore,
    Snapshot,
    SnapshotPolicy,
    SnapshotStore,
)
from mp_eventsourcing.application.event_sourcing.store import (
    AppendListener,
    EventStore,
    InMemoryEventStore,
)

__all__ = [
    "GLOBAL",
    "Aggregate",
    "AggregateType",
    "AppendListener",
    "CursorStore",
    "EventEnvelope",
    "EventSchemaRegistry",
    "EventSourcedRepository",
    "EventStore",
    "InMemoryCursorStore",
    "InMemoryEventStore",
    "InMemoryReadModel",
    "InMemorySnapshotStore",
    "NewEvent",
    "ProjectionCursor",
    "ProjectionDispatcher",
    "ProjectionHandler",
    "ProjectionMode",
    "ProjectionReport",
    "ProjectionRunner",
    "Projector",
    "ProjectorState",
    "ReadModel",
    "ReplayEngine",
    "Snapshot",
    "SnapshotPolicy",
    "SnapshotStore",
    "StreamId",
    "StreamInfo",
    "decode_payload",
    "encode_payload",
    "replay",
    "state_checksum",
]
