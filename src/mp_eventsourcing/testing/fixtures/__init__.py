"""Testing fixtures – pytest fixtures for the in-memory stores.

Enable in ``conftest.py``::

    pytest_plugins = ["mp_eventsourcing.testing.fixtures"]
"""
from __future__ import annotations

import pytest

from mp_eventsourcing.application.event_sourcing import (
    InMemoryCursorStore,
    InMemoryEventStore,
    InMemorySnapshotStore,
)
from mp_eventsourcing.kernel.time import FrozenClock
from mp_eventsourcing.testing.fakes import FakeClock


@pytest.fixture
def fake_clock() -> FrozenClock:
    """A FakeClock pinned to 2026-01-01 12:00 UTC."""
    return FakeClock()


@pytest.fixture
def event_store(fake_clock: FrozenClock) -> InMemoryEventStore:
    return InMemoryEventStore(clock=fake_clock)


@pytest.fixture
def snapshot_store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture
def cursor_store() -> InMemoryCursorStore:
    return InMemoryCursorStore()


__all__ = ["cursor_store", "event_store", "fake_clock", "snapshot_store"]
