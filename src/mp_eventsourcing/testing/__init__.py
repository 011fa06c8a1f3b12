"""Testing support – fakes, generators and pytest fixtures.

Import in your ``conftest.py``::

    pytest_plugins = ["mp_eventsourcing.testing.fixtures"]
"""

from mp_eventsourcing.testing.fakes import FakeClock, FlakyEventStore
from mp_eventsourcing.testing.generators import (
    StepClock,
    aggregate_id_strategy,
    append_batches_strategy,
    event_sequence_strategy,
    new_event_strategy,
)

__all__ = [
    "FakeClock",
    "FlakyEventStore",
    "StepClock",
    "aggregate_id_strategy",
    "append_batches_strategy",
    "event_sequence_strategy",
    "new_event_strategy",
]
