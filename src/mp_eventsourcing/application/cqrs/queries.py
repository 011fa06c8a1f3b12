"""Application CQRS – Query, QueryHandler, QueryBus, InProcessQueryBus.

Query handlers read projected read models only; they never load
aggregates or touch the event store.
"""
from __future__ import annotations

import abc
from typing import Any, Generic, TypeVar

from mp_eventsourcing.application.event_sourcing.read_model import ReadModel
from mp_eventsourcing.kernel.errors import NotFoundError, ValidationError

Q = TypeVar("Q", bound="Query")
R = TypeVar("R")


class Query:
    """Marker base for queries (read-only intent)."""


class QueryHandler(abc.ABC, Generic[Q, R]):
    """Answer a single query type from a read model."""

    def __init__(self, read_model: ReadModel) -> None:
        self.read_model = read_model

    @abc.abstractmethod
    async def handle(self, query: Q) -> R: ...


class QueryBus(abc.ABC):
    """Dispatches queries to their registered handlers."""

    @abc.abstractmethod
    def register(self, query_type: type[Query], handler: QueryHandler[Any, Any]) -> None: ...

    @abc.abstractmethod
    async def ask(self, query: Query) -> Any: ...


class InProcessQueryBus(QueryBus):
    """In-process query bus."""

    def __init__(self) -> None:
        self._handlers: dict[type[Query], QueryHandler[Any, Any]] = {}

    def register(self, query_type: type[Query], handler: QueryHandler[Any, Any]) -> None:
        if query_type in self._handlers:
            raise ValidationError(f"{query_type.__name__} already has a handler")
        self._handlers[query_type] = handler

    async def ask(self, query: Query) -> Any:
        handler = self._handlers.get(type(query))
        if handler is None:
            raise NotFoundError("query handler", type(query).__name__)
        return await handler.handle(query)


__all__ = ["InProcessQueryBus", "Query", "QueryBus", "QueryHandler"]
