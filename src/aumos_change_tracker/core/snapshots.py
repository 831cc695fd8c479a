"""Process-wide snapshot cache used as the diff baseline.

The store maps (type name, primary key) to an owned deep copy of the
entity's field values as last observed. Entries are replaced on every
observation and never evicted: the cache lives exactly as long as the
SnapshotStore instance the host creates at startup.

The single lock only guards the dict. Deep copies happen outside it, both
when saving and when handing a snapshot back to a reader, so a slow copy of
a large entity never blocks other threads.
"""

from __future__ import annotations

import copy
import hashlib
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from aumos_change_tracker.core.entity import entity_state, resolve_identity
from aumos_change_tracker.errors import CopyError
from aumos_change_tracker.observability import get_logger

logger = get_logger(__name__)


def snapshot_key(type_name: str, primary_key: Any) -> str:
    """Derive the cache key for a (type name, primary key) pair.

    The type name is length-prefixed so that no pair of (type, pk) strings
    can encode to the same input.

    Args:
        type_name: The entity's type identity.
        primary_key: The primary key; its str() form is used, matching the
            object_id stored on change logs.

    Returns:
        SHA-256 hex digest.
    """
    raw = f"{len(type_name)}:{type_name}:{primary_key}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class Snapshot:
    """Field values of one entity at a point in time.

    Attributes:
        type_name: Type identity of the entity.
        primary_key: Primary key of the entity.
        values: Field name to value. Owned by whoever holds this Snapshot.
        taken_at: When the values were captured (UTC).
    """

    type_name: str
    primary_key: Any
    values: dict[str, Any]
    taken_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class SnapshotStore:
    """Thread-safe, unbounded snapshot cache keyed by snapshot_key()."""

    def __init__(self) -> None:
        self._snapshots: dict[str, Snapshot] = {}
        self._lock = threading.Lock()

    def save(self, instance: Any, primary_key: Any = None, type_name: str | None = None) -> Snapshot:
        """Deep-copy the instance's field values and store them.

        Any prior entry for the same key is replaced, not merged.

        Args:
            instance: A tracked entity.
            primary_key: Overrides instance.tracking_primary_key().
            type_name: Overrides instance.tracking_type_name().

        Returns:
            The stored Snapshot. Callers must not mutate its values.

        Raises:
            CopyError: If the field values cannot be deep-copied.
        """
        type_name, primary_key = resolve_identity(instance, primary_key, type_name)
        try:
            values = copy.deepcopy(entity_state(instance))
        except (TypeError, copy.Error, RecursionError) as exc:
            raise CopyError(f"Cannot snapshot {type_name} {primary_key}: {exc}") from exc

        snapshot = Snapshot(type_name=type_name, primary_key=primary_key, values=values)
        key = snapshot_key(type_name, primary_key)
        with self._lock:
            self._snapshots[key] = snapshot

        logger.debug("Snapshot saved", type_name=type_name, primary_key=str(primary_key))
        return snapshot

    def get(self, instance: Any, primary_key: Any = None, type_name: str | None = None) -> Snapshot | None:
        """Return a private copy of the stored snapshot, or None if absent.

        Args:
            instance: A tracked entity.
            primary_key: Overrides instance.tracking_primary_key().
            type_name: Overrides instance.tracking_type_name().

        Returns:
            A Snapshot whose values the caller may freely mutate, or None when
            the entity was never observed.
        """
        type_name, primary_key = resolve_identity(instance, primary_key, type_name)
        key = snapshot_key(type_name, primary_key)
        with self._lock:
            stored = self._snapshots.get(key)
        if stored is None:
            return None
        return Snapshot(
            type_name=stored.type_name,
            primary_key=stored.primary_key,
            values=copy.deepcopy(stored.values),
            taken_at=stored.taken_at,
        )

    def has(self, instance: Any, primary_key: Any = None, type_name: str | None = None) -> bool:
        """Return True if a baseline exists for the entity."""
        type_name, primary_key = resolve_identity(instance, primary_key, type_name)
        key = snapshot_key(type_name, primary_key)
        with self._lock:
            return key in self._snapshots

    def clear(self) -> None:
        """Drop every snapshot. Called when the host shuts down."""
        with self._lock:
            self._snapshots.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)
