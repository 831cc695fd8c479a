"""Field-level diff between a snapshot and a live entity.

Each field is compared with a rule chosen by its semantic kind:

- temporal values are equal when they denote the same instant,
- floats are equal within FLOAT_TOLERANCE (serialization round trips add noise),
- everything else uses strict structural equality.

compute_diff() returns None when there is no baseline to compare against.
That is distinct from an empty diff, which means nothing observable changed.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from typing import Any

from aumos_change_tracker.core.entity import FieldDescriptor, FieldKind, entity_state
from aumos_change_tracker.core.snapshots import Snapshot

FLOAT_TOLERANCE = 0.01


@dataclass(frozen=True)
class FieldChange:
    """Before/after pair for one field, holding raw values."""

    old: Any
    new: Any

    def as_dict(self) -> dict[str, Any]:
        return {"old": self.old, "new": self.new}


Diff = dict[str, FieldChange]


def _as_instant(value: Any) -> datetime:
    """Normalize a temporal value to an aware UTC datetime.

    Naive datetimes are treated as UTC, dates as UTC midnight and strings
    are parsed as ISO 8601.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=UTC)
    raise TypeError(f"Not a temporal value: {value!r}")


def _temporal_equal(old: Any, new: Any) -> bool:
    if old is None or new is None:
        return old is None and new is None
    try:
        return _as_instant(old) == _as_instant(new)
    except (TypeError, ValueError):
        return old == new


def _float_equal(old: Any, new: Any) -> bool:
    if old is None or new is None:
        return old is None and new is None
    delta = abs(float(old) - float(new))
    # 1.01 - 1.00 is 0.010000000000000009 in binary floating point
    return delta <= FLOAT_TOLERANCE or math.isclose(delta, FLOAT_TOLERANCE)


def _resolve_kind(kind: FieldKind, old: Any, new: Any) -> FieldKind:
    if kind is not FieldKind.AUTO:
        return kind
    sample = old if old is not None else new
    if isinstance(sample, (datetime, date)):
        return FieldKind.TEMPORAL
    # bool is an int subclass, never a float; only real floats get the tolerance
    if isinstance(sample, float):
        return FieldKind.FLOAT
    return FieldKind.SCALAR


def values_equal(old: Any, new: Any, kind: FieldKind = FieldKind.AUTO) -> bool:
    """Compare two raw field values with the rule for their kind."""
    resolved = _resolve_kind(kind, old, new)
    if resolved is FieldKind.TEMPORAL:
        return _temporal_equal(old, new)
    if resolved is FieldKind.FLOAT:
        return _float_equal(old, new)
    return bool(old == new)


def compute_diff(
    old_snapshot: Snapshot | None,
    new_instance: Any,
    fields: Iterable[FieldDescriptor],
) -> Diff | None:
    """Compare a cached snapshot with the mutated instance.

    Args:
        old_snapshot: The baseline, or None if the entity was never observed.
        new_instance: The live entity after mutation.
        fields: The loggable fields of the entity's type, in order.

    Returns:
        Field name to FieldChange for every field that differs, or None when
        old_snapshot is None (no baseline, diff unknown).
    """
    if old_snapshot is None:
        return None

    new_values = entity_state(new_instance)
    diff: Diff = {}
    for descriptor in fields:
        # a field missing from an older snapshot compares as None
        old_value = old_snapshot.values.get(descriptor.name)
        if descriptor.name in new_values:
            new_value = new_values[descriptor.name]
        else:
            new_value = descriptor.read(new_instance)
        if not values_equal(old_value, new_value, descriptor.kind):
            diff[descriptor.name] = FieldChange(old=old_value, new=new_value)
    return diff
