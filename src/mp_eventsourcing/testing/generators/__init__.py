"""Testing generators – deterministic clocks and Hypothesis strategies."""
from mp_eventsourcing.testing.generators.step_clock import StepClock
from mp_eventsourcing.testing.generators.strategies import (
    DEFAULT_EVENT_TYPES,
    aggregate_id_strategy,
    append_batches_strategy,
    event_sequence_strategy,
    new_event_strategy,
)

__all__ = [
    "DEFAULT_EVENT_TYPES",
    "StepClock",
    "aggregate_id_strategy",
    "append_batches_strategy",
    "event_sequence_strategy",
    "new_event_strategy",
]
