"""Application CQRS – AggregateCommandHandler and CommandResult.

The write path of an event-sourced service: load the aggregate, let the
domain decide which events to record, then append them with the version
that was read.  A :class:`ConcurrencyConflictError` means another writer
got there first, so the whole cycle (reload, decide, save) runs again.
"""
from __future__ import annotations

import abc
import dataclasses
import inspect
from typing import Any, Generic, TypeVar

from mp_eventsourcing.application.cqrs.commands import Command, CommandHandler
from mp_eventsourcing.application.event_sourcing.aggregate import Aggregate, AggregateType
from mp_eventsourcing.application.event_sourcing.envelope import EventEnvelope
from mp_eventsourcing.application.event_sourcing.repository import EventSourcedRepository
from mp_eventsourcing.config.settings import EventSourcingSettings
from mp_eventsourcing.kernel.errors import (
    BaseError,
    ConcurrencyConflictError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from mp_eventsourcing.observability.logging import get_logger
from mp_eventsourcing.resilience.retry import ExponentialBackoff, FullJitter, RetryPolicy

C = TypeVar("C", bound=Command)
S = TypeVar("S")
logger = get_logger(__name__)


@dataclasses.dataclass(frozen=True)
class CommandResult:
    """Outcome of a command: the committed version, or a typed failure."""

    ok: bool
    version: int = 0
    error: BaseError | None = None
    events: tuple[EventEnvelope, ...] = ()

    @classmethod
    def success(cls, version: int, events: list[EventEnvelope] | tuple[EventEnvelope, ...] = ()) -> "CommandResult":
        return cls(ok=True, version=version, events=tuple(events))

    @classmethod
    def failure(cls, error: BaseError) -> "CommandResult":
        return cls(ok=False, error=error)

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error is not None else None


class AggregateCommandHandler(CommandHandler[C], Generic[C, S]):
    """Base handler for commands that target one aggregate.

    Subclasses set :attr:`aggregate_type` and implement
    :meth:`aggregate_id` and :meth:`decide`::

        class PlaceOrderHandler(AggregateCommandHandler[PlaceOrder, OrderState]):
            aggregate_type = ORDER

            def aggregate_id(self, command: PlaceOrder) -> str:
                return command.order_id

            def decide(self, command: PlaceOrder, order: Aggregate[OrderState]) -> None:
                if order.state.placed:
                    raise ValidationError("order already placed")
                order.record("OrderPlaced", {"order_id": command.order_id})

    Validation, conflict and not-found failures come back as a failed
    :class:`CommandResult`; infrastructure errors propagate because the
    outcome of the append is unknown.
    """

    aggregate_type: AggregateType[S]

    def __init__(
        self,
        repository: EventSourcedRepository,
        *,
        max_conflict_retries: int = 3,
        retry: RetryPolicy | None = None,
    ) -> None:
        if max_conflict_retries < 0:
            raise ValidationError("max_conflict_retries must be >= 0")
        self._repository = repository
        self._retry = retry or RetryPolicy(
            max_attempts=max_conflict_retries + 1,
            backoff=ExponentialBackoff(base_delay=0.01, max_delay=0.5),
            jitter=FullJitter(),
            retryable_exceptions=(ConcurrencyConflictError,),
        )

    @classmethod
    def from_settings(
        cls, repository: EventSourcedRepository, settings: EventSourcingSettings
    ) -> "AggregateCommandHandler[C, S]":
        return cls(repository, max_conflict_retries=settings.command_max_retries)

    @property
    def repository(self) -> EventSourcedRepository:
        return self._repository

    @abc.abstractmethod
    def aggregate_id(self, command: C) -> str:
        """Identify the aggregate the command targets."""

    @abc.abstractmethod
    def decide(self, command: C, aggregate: Aggregate[S]) -> Any:
        """Record events on *aggregate*, or raise a domain error. May be async."""

    async def load(self, command: C) -> Aggregate[S]:
        """Load the target aggregate; the default starts a new one when absent."""
        return await self._repository.load_or_create(self.aggregate_type, self.aggregate_id(command))

    async def _attempt(self, command: C) -> tuple[Aggregate[S], list[EventEnvelope]]:
        aggregate = await self.load(command)
        result = self.decide(command, aggregate)
        if inspect.isawaitable(result):
            await result
        envelopes = await self._repository.save(aggregate)
        return aggregate, envelopes

    async def handle(self, command: C) -> CommandResult:
        name = type(command).__name__
        try:
            aggregate, envelopes = await self._retry.execute_async(lambda: self._attempt(command))
        except (ValidationError, ConflictError, NotFoundError) as exc:
            logger.info("command.rejected", command=name, code=exc.code, reason=exc.message)
            return CommandResult.failure(exc)
        logger.debug(
            "command.handled",
            command=name,
            aggregate_type=aggregate.aggregate_type.name,
            aggregate_id=aggregate.aggregate_id,
            version=aggregate.current_version,
            appended=len(envelopes),
        )
        return CommandResult.success(aggregate.current_version, envelopes)


__all__ = ["AggregateCommandHandler", "CommandResult"]
