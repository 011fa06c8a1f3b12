"""Application event sourcing – ProjectionDispatcher.

Connects projectors to the event store's append notifications:

* ``SYNC`` — the stream is projected right after the append commits, inside
  the appending task.  Read-your-writes for callers of the write path.
* ``ASYNC`` — the stream is queued for a background worker; the append
  returns as soon as it is committed.

Notifications are a fast path only.  :meth:`poll_forever` runs
:meth:`ProjectionRunner.catch_up` on an interval so that appends missed
during a crash or while detached are still projected.
"""

from __future__ import annotations

import asyncio
import enum
from typing import Iterable

from mp_eventsourcing.application.event_sourcing.envelope import EventEnvelope, StreamId
from mp_eventsourcing.application.event_sourcing.projector import Projector
from mp_eventsourcing.application.event_sourcing.runner import ProjectionReport, ProjectionRunner
from mp_eventsourcing.application.event_sourcing.store import EventStore
from mp_eventsourcing.config.settings import EventSourcingSettings
from mp_eventsourcing.observability.logging import get_logger

logger = get_logger(__name__)


class ProjectionMode(str, enum.Enum):
    SYNC = "sync"
    ASYNC = "async"


class ProjectionDispatcher:
    """Fans committed appends out to every projector that consumes the stream."""

    def __init__(
        self,
        event_store: EventStore,
        runner: ProjectionRunner,
        projectors: Iterable[Projector],
        mode: ProjectionMode | str = ProjectionMode.SYNC,
        poll_interval: float = 1.0,
    ) -> None:
        self._events = event_store
        self._runner = runner
        self._projectors = list(projectors)
        self._mode = ProjectionMode(mode)
        self._poll_interval = poll_interval
        self._queue: asyncio.Queue[StreamId] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._unsubscribe = None

    @classmethod
    def from_settings(
        cls,
        event_store: EventStore,
        runner: ProjectionRunner,
        projectors: Iterable[Projector],
        settings: EventSourcingSettings,
    ) -> "ProjectionDispatcher":
        return cls(
            event_store,
            runner,
            projectors,
            mode=settings.projection_mode,
            poll_interval=settings.poll_interval,
        )

    @property
    def mode(self) -> ProjectionMode:
        return self._mode

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @property
    def projectors(self) -> list[Projector]:
        return list(self._projectors)

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    @property
    def pending(self) -> int:
        """Streams queued and not yet projected (``ASYNC`` mode)."""
        return self._queue.qsize()

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._events.subscribe(self._on_append)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _on_append(self, envelopes: list[EventEnvelope]) -> None:
        if not envelopes:
            return
        stream = envelopes[0].stream_id
        if self._mode is ProjectionMode.SYNC:
            await self._project(stream)
        else:
            self._queue.put_nowait(stream)

    async def _project(self, stream: StreamId) -> list[ProjectionReport]:
        reports = []
        for projector in self._projectors:
            if projector.accepts(stream.aggregate_type):
                reports.append(await self._runner.process_stream(projector, stream))
        return reports

    # ------------------------------------------------------------------
    # Background worker
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Attach and, in ``ASYNC`` mode, start the background worker."""
        self.attach()
        if self._mode is ProjectionMode.ASYNC and self._worker is None:
            self._worker = asyncio.create_task(self._work(), name="projection-dispatcher")
            logger.info("projection.dispatcher_started", projectors=[p.name for p in self._projectors])

    async def stop(self) -> None:
        """Detach and cancel the worker; queued streams are left for the next poll."""
        self.detach()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
            logger.info("projection.dispatcher_stopped", pending=self._queue.qsize())

    async def drain(self) -> None:
        """Wait until every queued stream has been projected."""
        if self._worker is not None:
            await self._queue.join()
            return
        while not self._queue.empty():
            stream = self._queue.get_nowait()
            try:
                await self._project(stream)
            finally:
                self._queue.task_done()

    async def _work(self) -> None:
        while True:
            stream = await self._queue.get()
            try:
                await self._project(stream)
            except Exception:
                # Storage trouble; the stream is picked up again by polling.
                logger.exception(
                    "projection.dispatch_failed",
                    aggregate_type=stream.aggregate_type,
                    aggregate_id=stream.aggregate_id,
                )
            finally:
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def poll_once(self) -> list[ProjectionReport]:
        """Catch every projector up with the store."""
        return [await self._runner.catch_up(projector) for projector in self._projectors]

    async def poll_forever(self, interval: float | None = None, stop: asyncio.Event | None = None) -> None:
        """Call :meth:`poll_once` every *interval* seconds until *stop* is set.

        *interval* defaults to the dispatcher's ``poll_interval``.
        """
        if interval is None:
            interval = self._poll_interval
        stop = stop or asyncio.Event()
        while not stop.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception("projection.poll_failed")
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass


__all__ = ["ProjectionDispatcher", "ProjectionMode"]
