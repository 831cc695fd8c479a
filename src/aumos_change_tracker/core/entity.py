"""Tracking capability for domain entities.

Entities opt into change tracking by composition: they carry a TrackingState
and implement the four TrackedEntity methods. The orchestrator checks the
capability at the boundary with isinstance(obj, TrackedEntity) instead of
requiring a common base class.

Field values are read through entity_state(), which understands pydantic
models, dataclasses, SQLAlchemy mapped instances and plain objects.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel
from sqlalchemy import inspect as sa_inspect


@runtime_checkable
class TrackedEntity(Protocol):
    """Capability set every tracked entity exposes."""

    def tracking_type_name(self) -> str:
        """Return the type identity, unique within the tracking namespace."""
        ...

    def tracking_primary_key(self) -> Any:
        """Return the primary key value."""
        ...

    def tracking_enabled(self) -> bool:
        """Return False to exclude this instance from change logging."""
        ...

    def tracking_meta(self) -> Any:
        """Return serializable metadata stored with each change log, or None."""
        ...


@dataclass
class TrackingState:
    """Per-instance enabled flag, embedded in entities by composition.

    Never part of the entity's tracked state: entity_state() drops it.
    """

    disabled: bool = False

    @property
    def enabled(self) -> bool:
        return not self.disabled

    def enable(self, value: bool = True) -> None:
        self.disabled = not value


class FieldKind(StrEnum):
    """Semantic kind selecting the equality rule for a field."""

    AUTO = "auto"
    TEMPORAL = "temporal"
    FLOAT = "float"
    SCALAR = "scalar"


@dataclass(frozen=True)
class FieldDescriptor:
    """A loggable field: its attribute name and semantic kind.

    AUTO resolves the kind from the runtime type of the compared values.
    """

    name: str
    kind: FieldKind = FieldKind.AUTO

    def read(self, instance: Any) -> Any:
        """Return the field's raw value from a live instance."""
        return getattr(instance, self.name)


def is_trackable(value: Any) -> bool:
    """Return True if value implements the TrackedEntity capability."""
    return isinstance(value, TrackedEntity)


def is_enabled(value: Any) -> bool:
    """Return True if value is trackable and tracking is switched on."""
    return is_trackable(value) and bool(value.tracking_enabled())


def resolve_identity(
    instance: Any,
    primary_key: Any = None,
    type_name: str | None = None,
) -> tuple[str, Any]:
    """Return (type_name, primary_key), preferring explicitly passed values."""
    if type_name is None:
        type_name = instance.tracking_type_name()
    if primary_key is None:
        primary_key = instance.tracking_primary_key()
    return type_name, primary_key


def entity_state(instance: Any) -> dict[str, Any]:
    """Return the live field values of an entity keyed by field name.

    The mapping references the live values; callers that keep it must copy.

    Args:
        instance: A pydantic model, dataclass, SQLAlchemy mapped instance or
            plain object. An explicit tracking_state() method wins over all
            of these.

    Returns:
        Field name to raw value, without TrackingState members.
    """
    state_fn = getattr(instance, "tracking_state", None)
    if callable(state_fn):
        values = dict(state_fn())
    elif isinstance(instance, BaseModel):
        values = {name: getattr(instance, name) for name in type(instance).model_fields}
    elif dataclasses.is_dataclass(instance) and not isinstance(instance, type):
        values = {f.name: getattr(instance, f.name) for f in dataclasses.fields(instance)}
    else:
        instance_state = sa_inspect(instance, raiseerr=False)
        mapper = getattr(instance_state, "mapper", None)
        if mapper is not None:
            values = {attr.key: getattr(instance, attr.key) for attr in mapper.column_attrs}
        else:
            values = {key: value for key, value in vars(instance).items() if not key.startswith("_")}

    return {key: value for key, value in values.items() if not isinstance(value, TrackingState)}
