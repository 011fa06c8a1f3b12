"""Application event sourcing – Projector."""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Iterable

from mp_eventsourcing.application.event_sourcing.envelope import EventEnvelope
from mp_eventsourcing.application.event_sourcing.read_model import InMemoryReadModel, ReadModel
from mp_eventsourcing.kernel.errors import ValidationError

ProjectionHandler = Callable[[EventEnvelope, ReadModel], Awaitable[None] | None]


class Projector:
    """Derives a read model from the event stream.

    Handlers are registered per event type and receive the envelope and the
    read model.  They may be plain functions or coroutines.

    Example::

        orders = Projector("order_summary", aggregate_types=["order"])

        @orders.handles("OrderPlaced")
        async def on_placed(event: EventEnvelope, model: ReadModel) -> None:
            await model.upsert(event.aggregate_id, {"order_id": event.aggregate_id, "placed": True})

    :meth:`project` skips any envelope whose version the read model has
    already applied for that stream, so redelivery after a crash leaves the
    read model unchanged.
    """

    def __init__(
        self,
        name: str,
        read_model: ReadModel | None = None,
        aggregate_types: Iterable[str] | None = None,
    ) -> None:
        if not name:
            raise ValidationError("projector name must not be empty")
        self.name = name
        self.read_model: ReadModel = read_model if read_model is not None else InMemoryReadModel()
        self._aggregate_types = frozenset(aggregate_types) if aggregate_types is not None else None
        self._handlers: dict[str, ProjectionHandler] = {}

    def __repr__(self) -> str:
        return f"Projector({self.name!r}, handles={sorted(self._handlers)})"

    @property
    def aggregate_types(self) -> frozenset[str] | None:
        """Aggregate types this projector consumes; ``None`` means all."""
        return self._aggregate_types

    @property
    def handled_event_types(self) -> list[str]:
        return sorted(self._handlers)

    def accepts(self, aggregate_type: str) -> bool:
        return self._aggregate_types is None or aggregate_type in self._aggregate_types

    def handles(self, event_type: str) -> Callable[[ProjectionHandler], ProjectionHandler]:
        """Decorator to register a handler for *event_type*."""

        def decorator(func: ProjectionHandler) -> ProjectionHandler:
            self.register(event_type, func)
            return func

        return decorator

    def register(self, event_type: str, handler: ProjectionHandler) -> None:
        if event_type in self._handlers:
            raise ValidationError(f"Projector {self.name!r} already handles {event_type!r}")
        self._handlers[event_type] = handler

    async def project(self, envelope: EventEnvelope) -> bool:
        """Apply *envelope* to the read model.

        Returns ``True`` when a handler ran, ``False`` when the envelope was
        already applied or has no handler.  Handler exceptions propagate and
        leave the applied-version marker untouched.
        """
        stream = envelope.stream_id
        if envelope.version <= await self.read_model.applied_version(stream):
            return False
        handler = self._handlers.get(envelope.event_type)
        handled = False
        if handler is not None:
            result: Any = handler(envelope, self.read_model)
            if inspect.isawaitable(result):
                await result
            handled = True
        await self.read_model.mark_applied(stream, envelope.version)
        return handled

    async def reset(self) -> None:
        """Clear the read model ahead of a rebuild."""
        await self.read_model.clear()


__all__ = ["ProjectionHandler", "Projector"]
