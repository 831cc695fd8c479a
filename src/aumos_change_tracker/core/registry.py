"""Registries consumed by the tracker.

FieldRegistry answers "which fields of this type are diffed". TypeRegistry
maps object-type names to the concrete types used when decoding stored
objects and metadata.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Any

from aumos_change_tracker.core.entity import FieldDescriptor, entity_state


def _normalize(fields: Iterable[FieldDescriptor | str]) -> tuple[FieldDescriptor, ...]:
    return tuple(f if isinstance(f, FieldDescriptor) else FieldDescriptor(f) for f in fields)


class FieldRegistry:
    """Loggable field descriptors per entity type name.

    Lookup order for an instance:
    1. descriptors registered for its type name,
    2. the class-level ``__loggable_fields__`` declaration,
    3. every field returned by entity_state(), with kind AUTO.
    """

    def __init__(self) -> None:
        self._fields: dict[str, tuple[FieldDescriptor, ...]] = {}
        self._lock = threading.Lock()

    def register(self, type_name: str, fields: Iterable[FieldDescriptor | str]) -> None:
        """Register the ordered loggable fields for a type name."""
        normalized = _normalize(fields)
        with self._lock:
            self._fields[type_name] = normalized

    def fields_for(self, instance: Any, type_name: str) -> tuple[FieldDescriptor, ...]:
        """Return the loggable fields for instance, registered under type_name."""
        with self._lock:
            registered = self._fields.get(type_name)
        if registered is not None:
            return registered

        declared = getattr(type(instance), "__loggable_fields__", None)
        if declared is not None:
            return _normalize(declared)

        return tuple(FieldDescriptor(name) for name in entity_state(instance))


class TypeRegistry:
    """Concrete object and meta types keyed by object-type name."""

    def __init__(self) -> None:
        self._object_types: dict[str, Any] = {}
        self._meta_types: dict[str, Any] = {}

    def register_object_type(self, type_name: str, type_: Any) -> None:
        self._object_types[type_name] = type_

    def register_meta_type(self, type_name: str, type_: Any) -> None:
        self._meta_types[type_name] = type_

    def object_type(self, type_name: str) -> Any | None:
        return self._object_types.get(type_name)

    def meta_type(self, type_name: str) -> Any | None:
        return self._meta_types.get(type_name)
