"""Application event sourcing – ProjectionRunner.

Drives projectors over the event store with durable cursors:

* ``process_stream`` — one stream, from its cursor to the end.
* ``catch_up`` — poll every stream the projector consumes.
* ``catch_up_global`` — follow the store-wide position with a single cursor.
* ``rebuild`` — reset cursors, clear the read model, replay all history.

A cursor is saved only after the read model accepted the event, so a crash
in between leads to redelivery, which :meth:`Projector.project` absorbs.
A handler that keeps failing after its retries halts its stream: the cursor
stays put, the event is never skipped, and an alarm is raised.
"""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import inspect
from typing import Any, Awaitable, Callable

import tenacity

from mp_eventsourcing.application.event_sourcing.cursor import (
    GLOBAL,
    CursorStore,
    InMemoryCursorStore,
    ProjectionCursor,
)
from mp_eventsourcing.application.event_sourcing.envelope import EventEnvelope, StreamId
from mp_eventsourcing.application.event_sourcing.projector import Projector
from mp_eventsourcing.application.event_sourcing.store import EventStore
from mp_eventsourcing.config.settings import EventSourcingSettings
from mp_eventsourcing.kernel.errors import ProjectionHaltedError
from mp_eventsourcing.observability.logging import get_logger
from mp_eventsourcing.resilience.retry import TenacityRetryPolicy

logger = get_logger(__name__)

AlarmHook = Callable[[ProjectionHaltedError], Awaitable[None] | None]


class ProjectorState(str, enum.Enum):
    IDLE = "idle"
    PROCESSING = "processing"


@dataclasses.dataclass
class ProjectionReport:
    """Outcome of one runner pass over a projector."""

    projector: str
    processed: int = 0
    skipped: int = 0
    halted: list[StreamId] = dataclasses.field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.halted


def _log_handler_retry(retry_state: tenacity.RetryCallState) -> None:
    outcome = retry_state.outcome
    logger.warning(
        "projection.handler_retry",
        attempt=retry_state.attempt_number,
        error=repr(outcome.exception()) if outcome is not None else None,
    )


class ProjectionRunner:
    """Runs projectors against an event store, one pass at a time per projector."""

    def __init__(
        self,
        event_store: EventStore,
        cursor_store: CursorStore | None = None,
        *,
        retry: TenacityRetryPolicy | None = None,
        on_alarm: AlarmHook | None = None,
        batch_size: int = 500,
    ) -> None:
        self._events = event_store
        self._cursors: CursorStore = cursor_store if cursor_store is not None else InMemoryCursorStore()
        self._retry = retry or TenacityRetryPolicy(
            max_attempts=5, backoff_base=0.1, backoff_max=5.0, before_sleep=_log_handler_retry
        )
        self._on_alarm = on_alarm
        self._batch_size = batch_size
        self._locks: dict[str, asyncio.Lock] = {}
        self._states: dict[str, ProjectorState] = {}
        self._halted: dict[str, dict[StreamId, ProjectionHaltedError]] = {}

    @classmethod
    def from_settings(
        cls,
        event_store: EventStore,
        settings: EventSourcingSettings,
        cursor_store: CursorStore | None = None,
        *,
        on_alarm: AlarmHook | None = None,
    ) -> "ProjectionRunner":
        retry = TenacityRetryPolicy(
            max_attempts=settings.projector_max_attempts,
            backoff_base=settings.projector_backoff_base,
            backoff_max=settings.projector_backoff_max,
            before_sleep=_log_handler_retry,
        )
        return cls(event_store, cursor_store, retry=retry, on_alarm=on_alarm)

    @property
    def cursor_store(self) -> CursorStore:
        return self._cursors

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def state(self, projector: Projector) -> ProjectorState:
        return self._states.get(projector.name, ProjectorState.IDLE)

    def halted_streams(self, projector: Projector) -> dict[StreamId, ProjectionHaltedError]:
        return dict(self._halted.get(projector.name, {}))

    def resume(self, projector: Projector, stream: StreamId) -> None:
        """Clear the halt on *stream*; the next pass retries the failed event."""
        if self._halted.get(projector.name, {}).pop(stream, None) is not None:
            logger.info(
                "projection.resumed",
                projector=projector.name,
                aggregate_type=stream.aggregate_type,
                aggregate_id=stream.aggregate_id,
            )

    def _lock(self, projector: Projector) -> asyncio.Lock:
        lock = self._locks.get(projector.name)
        if lock is None:
            lock = self._locks[projector.name] = asyncio.Lock()
        return lock

    async def _run(self, projector: Projector, body: Callable[[ProjectionReport], Awaitable[None]]) -> ProjectionReport:
        report = ProjectionReport(projector=projector.name)
        async with self._lock(projector):
            self._states[projector.name] = ProjectorState.PROCESSING
            try:
                await body(report)
            finally:
                self._states[projector.name] = ProjectorState.IDLE
        return report

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    async def process_stream(self, projector: Projector, stream: StreamId) -> ProjectionReport:
        """Deliver every event of *stream* after the projector's cursor."""

        async def body(report: ProjectionReport) -> None:
            await self._process_stream(projector, stream, report)

        return await self._run(projector, body)

    async def catch_up(self, projector: Projector) -> ProjectionReport:
        """Poll all consumed streams and process those behind their cursor."""

        async def body(report: ProjectionReport) -> None:
            types = projector.aggregate_types
            streams = []
            if types is None:
                streams = await self._events.list_streams()
            else:
                for aggregate_type in sorted(types):
                    streams.extend(await self._events.list_streams(aggregate_type))
            for info in streams:
                cursor = await self._cursors.get_or_start(
                    projector.name, info.stream_id.aggregate_type, info.stream_id.aggregate_id
                )
                if info.version > cursor.last_processed_version:
                    await self._process_stream(projector, info.stream_id, report)

        return await self._run(projector, body)

    async def catch_up_global(self, projector: Projector) -> ProjectionReport:
        """Follow the store-wide position with one global cursor.

        Events are applied strictly in position order, so a failing event
        halts the whole projector at that position.
        """

        async def body(report: ProjectionReport) -> None:
            cursor = await self._cursors.get_or_start(projector.name, GLOBAL, GLOBAL)
            halted = self._halted.get(projector.name, {})
            while True:
                batch = await self._events.read_all(
                    from_position=cursor.last_processed_version,
                    limit=self._batch_size,
                    aggregate_types=projector.aggregate_types,
                )
                if not batch:
                    return
                for envelope in batch:
                    if envelope.stream_id in halted:
                        report.halted.append(envelope.stream_id)
                        return
                    if not await self._deliver(projector, envelope, report):
                        return
                    cursor = cursor.advanced(envelope.position or cursor.last_processed_version)
                    await self._cursors.save(cursor)

        return await self._run(projector, body)

    async def rebuild(self, projector: Projector) -> ProjectionReport:
        """Discard the read model and cursors, then replay the entire history."""

        async def body(report: ProjectionReport) -> None:
            await self._cursors.reset(projector.name)
            self._halted.pop(projector.name, None)
            await projector.reset()
            logger.info("projection.rebuild_started", projector=projector.name)

            position = 0
            # the global cursor stays below the first event a halted stream still owes
            held: int | None = None
            while True:
                batch = await self._events.read_all(
                    from_position=position,
                    limit=self._batch_size,
                    aggregate_types=projector.aggregate_types,
                )
                if not batch:
                    break
                advanced: dict[StreamId, int] = {}
                for envelope in batch:
                    position = envelope.position or position
                    stream = envelope.stream_id
                    if stream in self._halted.get(projector.name, {}):
                        continue
                    if await self._deliver(projector, envelope, report):
                        advanced[stream] = envelope.version
                    elif held is None:
                        held = position - 1
                for stream, version in advanced.items():
                    await self._cursors.save(
                        ProjectionCursor.for_stream(projector.name, stream).advanced(version)
                    )
                safe = position if held is None else held
                if safe > 0:
                    await self._cursors.save(ProjectionCursor.global_for(projector.name).advanced(safe))

            logger.info(
                "projection.rebuilt",
                projector=projector.name,
                processed=report.processed,
                halted=len(report.halted),
            )

        return await self._run(projector, body)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _process_stream(
        self, projector: Projector, stream: StreamId, report: ProjectionReport
    ) -> None:
        if not projector.accepts(stream.aggregate_type):
            return
        if stream in self._halted.get(projector.name, {}):
            report.halted.append(stream)
            return
        cursor = await self._cursors.get_or_start(projector.name, stream.aggregate_type, stream.aggregate_id)
        envelopes = await self._events.load(
            stream.aggregate_type, stream.aggregate_id, from_version=cursor.last_processed_version
        )
        for envelope in envelopes:
            if not await self._deliver(projector, envelope, report):
                return
            cursor = cursor.advanced(envelope.version)
            await self._cursors.save(cursor)

    async def _deliver(self, projector: Projector, envelope: EventEnvelope, report: ProjectionReport) -> bool:
        """Apply one envelope with retries; ``False`` means the stream is now halted."""
        try:
            handled = await self._retry.execute_async(lambda: projector.project(envelope))
        except Exception as exc:
            await self._halt(projector, envelope, exc)
            report.halted.append(envelope.stream_id)
            return False
        if handled:
            report.processed += 1
        else:
            report.skipped += 1
        return True

    async def _halt(self, projector: Projector, envelope: EventEnvelope, exc: Exception) -> None:
        error = ProjectionHaltedError(
            projector.name, str(envelope.stream_id), envelope.version, cause=exc
        )
        self._halted.setdefault(projector.name, {})[envelope.stream_id] = error
        logger.critical(
            "projection.halted",
            projector=projector.name,
            aggregate_type=envelope.aggregate_type,
            aggregate_id=envelope.aggregate_id,
            version=envelope.version,
            event_type=envelope.event_type,
            error=repr(exc),
        )
        if self._on_alarm is not None:
            result: Any = self._on_alarm(error)
            if inspect.isawaitable(result):
                await result


__all__ = ["AlarmHook", "ProjectionReport", "ProjectionRunner", "ProjectorState"]
