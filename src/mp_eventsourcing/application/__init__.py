"""Application – event-sourcing use-case building blocks (storage-agnostic)."""

from mp_eventsourcing.application.cqrs import (
    AggregateCommandHandler,
    Command,
    CommandBus,
    CommandHandler,
    CommandResult,
    InProcessCommandBus,
    InProcessQueryBus,
    Query,
    QueryBus,
    QueryHandler,
)
from mp_eventsourcing.application.event_sourcing import (
    Aggregate,
    AggregateType,
    EventEnvelope,
    EventSourcedRepository,
    EventStore,
    InMemoryEventStore,
    NewEvent,
    ProjectionDispatcher,
    ProjectionRunner,
    Projector,
    ReplayEngine,
    SnapshotStore,
    StreamId,
)

__all__ = [
    "Aggregate",
    "AggregateCommandHandler",
    "AggregateType",
    "Command",
    "CommandBus",
    "CommandHandler",
    "CommandResult",
    "EventEnvelope",
    "EventSourcedRepository",
    "EventStore",
    "InProcessCommandBus",
    "InProcessQueryBus",
    "NewEvent",
    "ProjectionDispatcher",
    "ProjectionRunner",
    "Projector",
    "Query",
    "QueryBus",
    "QueryHandler",
    "ReplayEngine",
    "SnapshotStore",
    "StreamId",
]
