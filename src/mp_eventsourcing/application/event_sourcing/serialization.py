"""Application event sourcing – versioned payload schemas and JSON codec.

Each event type owns an explicit payload schema (a pydantic model) per
schema version.  Writers validate payloads against the schema for the
version they record; readers upcast older payloads to the latest version
so ``apply`` functions only ever see one shape per event type.

Example::

    class OrderPlacedV1(BaseModel):
        order_id: str

    class OrderPlacedV2(BaseModel):
        order_id: str
        currency: str

    schemas = EventSchemaRegistry()
    schemas.register("OrderPlaced", OrderPlacedV1, schema_version=1)
    schemas.register("OrderPlaced", OrderPlacedV2, schema_version=2)
    schemas.register_upcaster("OrderPlaced", 1, lambda p: {**p, "currency": "EUR"})
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any, Callable, TypeVar

import pydantic

from mp_eventsourcing.application.event_sourcing.envelope import EventEnvelope, NewEvent
from mp_eventsourcing.kernel.errors import SerializationError, ValidationError

M = TypeVar("M", bound=pydantic.BaseModel)
Upcaster = Callable[[dict[str, Any]], dict[str, Any]]


def encode_payload(payload: dict[str, Any]) -> bytes:
    """Canonical JSON: sorted keys, compact separators, UTF-8."""
    try:
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode()
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Payload is not JSON-serialisable: {exc}", cause=exc) from exc


def decode_payload(raw: bytes | str, *, payload_type: str | None = None) -> dict[str, Any]:
    try:
        value = json.loads(raw)
    except (TypeError, ValueError, UnicodeDecodeError) as exc:
        raise SerializationError(
            f"Cannot decode payload: {exc}", payload_type=payload_type, cause=exc
        ) from exc
    if not isinstance(value, dict):
        raise SerializationError("Payload must decode to a JSON object", payload_type=payload_type)
    return value


class EventSchemaRegistry:
    """Maps ``(event_type, schema_version)`` to a payload model.

    With ``strict=True`` unregistered event types are rejected; otherwise
    their payloads pass through untouched.
    """

    def __init__(self, *, strict: bool = False) -> None:
        self._strict = strict
        self._models: dict[tuple[str, int], type[pydantic.BaseModel]] = {}
        self._upcasters: dict[tuple[str, int], Upcaster] = {}
        self._latest: dict[str, int] = {}

    def register(
        self,
        event_type: str,
        model: type[M],
        schema_version: int = 1,
    ) -> type[M]:
        if schema_version < 1:
            raise ValidationError("schema_version must be >= 1")
        self._models[(event_type, schema_version)] = model
        self._latest[event_type] = max(self._latest.get(event_type, 0), schema_version)
        return model

    def schema(self, event_type: str, schema_version: int = 1) -> Callable[[type[M]], type[M]]:
        """Class decorator form of :meth:`register`."""

        def decorator(model: type[M]) -> type[M]:
            return self.register(event_type, model, schema_version)

        return decorator

    def register_upcaster(self, event_type: str, from_version: int, upcaster: Upcaster) -> None:
        """Register a function turning a ``from_version`` payload into ``from_version + 1``."""
        self._upcasters[(event_type, from_version)] = upcaster
        self._latest[event_type] = max(self._latest.get(event_type, 0), from_version + 1)

    def latest_version(self, event_type: str) -> int:
        return self._latest.get(event_type, 1)

    def is_registered(self, event_type: str) -> bool:
        return event_type in self._latest

    def validate(self, event: NewEvent) -> NewEvent:
        """Return *event* with its payload normalised through its schema model."""
        model = self._models.get((event.event_type, event.schema_version))
        if model is None:
            if self._strict:
                raise ValidationError(
                    f"No payload schema registered for {event.event_type!r} "
                    f"v{event.schema_version}"
                )
            return event
        try:
            instance = model.model_validate(event.payload)
        except pydantic.ValidationError as exc:
            raise ValidationError(
                f"Invalid payload for {event.event_type!r} v{event.schema_version}",
                errors=[dict(e) for e in exc.errors(include_url=False)],
                cause=exc,
            ) from exc
        return dataclasses.replace(event, payload=instance.model_dump(mode="json"))

    def upcast(self, envelope: EventEnvelope) -> EventEnvelope:
        """Bring *envelope* to the latest schema version of its event type."""
        target = self.latest_version(envelope.event_type)
        version = envelope.schema_version
        if version >= target:
            return envelope
        payload = dict(envelope.payload)
        while version < target:
            upcaster = self._upcasters.get((envelope.event_type, version))
            if upcaster is None:
                raise SerializationError(
                    f"No upcaster for {envelope.event_type!r} from v{version}",
                    payload_type=envelope.event_type,
                )
            payload = upcaster(payload)
            version += 1
        return dataclasses.replace(envelope, payload=payload, schema_version=version)

    def parse(self, envelope: EventEnvelope) -> pydantic.BaseModel:
        """Return the typed payload model instance for *envelope* (after upcasting)."""
        current = self.upcast(envelope)
        model = self._models.get((current.event_type, current.schema_version))
        if model is None:
            raise SerializationError(
                f"No payload schema registered for {current.event_type!r} v{current.schema_version}",
                payload_type=current.event_type,
            )
        try:
            return model.model_validate(current.payload)
        except pydantic.ValidationError as exc:
            raise SerializationError(
                f"Stored payload does not match {current.event_type!r} v{current.schema_version}",
                payload_type=current.event_type,
                cause=exc,
            ) from exc


__all__ = ["EventSchemaRegistry", "Upcaster", "decode_payload", "encode_payload"]
