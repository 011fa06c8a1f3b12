"""
mp_eventsourcing – Event-sourced aggregate persistence core.

Import path convention::

    from mp_eventsourcing.kernel.errors import ConcurrencyConflictError
    from mp_eventsourcing.application.event_sourcing import (
        AggregateType, EventSourcedRepository, InMemoryEventStore, ReplayEngine,
    )
    from mp_eventsourcing.adapters.sqlalchemy import SQLAlchemyEventStore
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
