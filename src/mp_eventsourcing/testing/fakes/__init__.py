"""Testing fakes – doubles for the event-sourcing ports."""
from mp_eventsourcing.kernel.time import FrozenClock
from mp_eventsourcing.testing.fakes.clock import FakeClock
from mp_eventsourcing.testing.fakes.event_store import FlakyEventStore

__all__ = ["FakeClock", "FlakyEventStore", "FrozenClock"]
