"""SQLAlchemy adapter – SqlAlchemySessionFactory."""
from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from mp_eventsourcing.adapters.sqlalchemy.schema import create_schema
from mp_eventsourcing.config.settings import EventSourcingSettings


class SqlAlchemySessionFactory:
    """Creates async SQLAlchemy sessions from an engine URL.

    The stores open one short-lived session per operation, so a single
    factory can be shared by the event, snapshot and cursor stores.
    """

    def __init__(self, database_url: str, **engine_kwargs: Any) -> None:
        self._engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(self._engine, class_=AsyncSession, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: EventSourcingSettings, **engine_kwargs: Any) -> "SqlAlchemySessionFactory":
        return cls(settings.database_url, **engine_kwargs)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    def __call__(self) -> AsyncSession:
        return self._session_factory()

    async def create_schema(self) -> None:
        await create_schema(self._engine)

    async def dispose(self) -> None:
        await self._engine.dispose()


__all__ = ["SqlAlchemySessionFactory"]
