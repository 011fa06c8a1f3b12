"""SQLAlchemy adapter – table definitions for events, snapshots and cursors."""
from __future__ import annotations

from typing import Any

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

# ``position`` is the store-wide append order; ``(aggregate_type,
# aggregate_id, version)`` is unique so the database rejects a second writer
# racing for the same stream version.
events = Table(
    "events",
    metadata,
    Column("position", BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
    Column("event_id", String(36), nullable=False, unique=True),
    Column("aggregate_type", String(128), nullable=False),
    Column("aggregate_id", String(256), nullable=False),
    Column("version", Integer, nullable=False),
    Column("event_type", String(256), nullable=False),
    Column("schema_version", Integer, nullable=False, default=1),
    Column("payload", LargeBinary, nullable=False),
    Column("metadata_json", Text, nullable=False, default="{}"),
    Column("recorded_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("aggregate_type", "aggregate_id", "version", name="uq_events_stream_version"),
    Index("ix_events_aggregate_type", "aggregate_type"),
)

snapshots = Table(
    "snapshots",
    metadata,
    Column("aggregate_type", String(128), primary_key=True),
    Column("aggregate_id", String(256), primary_key=True),
    Column("version", Integer, nullable=False),
    Column("schema_version", Integer, nullable=False, default=1),
    Column("state", LargeBinary, nullable=False),
    Column("taken_at", DateTime(timezone=True), nullable=False),
)

projection_cursors = Table(
    "projection_cursors",
    metadata,
    Column("projector_name", String(128), primary_key=True),
    Column("aggregate_type", String(128), primary_key=True),
    Column("aggregate_id", String(256), primary_key=True),
    Column("last_processed_version", BigInteger().with_variant(Integer, "sqlite"), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)


async def create_schema(engine: Any) -> None:
    """Create every table (idempotent) on an :class:`~sqlalchemy.ext.asyncio.AsyncEngine`."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


async def drop_schema(engine: Any) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


__all__ = ["create_schema", "drop_schema", "events", "metadata", "projection_cursors", "snapshots"]
