"""SQLAlchemy adapter – event, snapshot and cursor stores on one schema."""
from mp_eventsourcing.adapters.sqlalchemy.cursor_store import SQLAlchemyCursorStore
from mp_eventsourcing.adapters.sqlalchemy.event_store import SQLAlchemyEventStore, storage_errors
from mp_eventsourcing.adapters.sqlalchemy.schema import create_schema, drop_schema, metadata
from mp_eventsourcing.adapters.sqlalchemy.session import SqlAlchemySessionFactory
from mp_eventsourcing.adapters.sqlalchemy.snapshot_store import SQLAlchemySnapshotStore

__all__ = [
    "SQLAlchemyCursorStore",
    "SQLAlchemyEventStore",
    "SQLAlchemySnapshotStore",
    "SqlAlchemySessionFactory",
    "create_schema",
    "drop_schema",
    "metadata",
    "storage_errors",
]
