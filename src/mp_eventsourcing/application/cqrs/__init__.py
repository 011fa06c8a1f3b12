"""Application CQRS – command and query entry points."""
from mp_eventsourcing.application.cqrs.aggregate_handler import AggregateCommandHandler, CommandResult
from mp_eventsourcing.application.cqrs.commands import Command, CommandBus, CommandHandler, InProcessCommandBus
from mp_eventsourcing.application.cqrs.queries import InProcessQueryBus, Query, QueryBus, QueryHandler

__all__ = [
    "AggregateCommandHandler", "CommandResult",
    "Command", "CommandBus", "CommandHandler", "InProcessCommandBus",
    "InProcessQueryBus", "Query", "QueryBus", "QueryHandler",
]
