"""Append-only in-memory change log store.

Stores ChangeLogRecord instances keyed by object_id, sorted by created_at.
Writes are append-only: there are no update or delete operations.

Production deployments use SqlChangeLogStore; this store keeps tests hermetic
without database infrastructure.
"""

from __future__ import annotations

import bisect
import threading
from datetime import datetime

from aumos_change_tracker.core.records import ChangeLogRecord
from aumos_change_tracker.errors import NotFoundError


class InMemoryChangeLogStore:
    """Append-only, thread-safe change log store.

    Maintains per-object record lists sorted by created_at so the most recent
    lookup is O(1) and the audit trail is already ordered.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        # { object_id: list[ChangeLogRecord] } sorted by created_at ascending
        self._records: dict[str, list[ChangeLogRecord]] = {}
        # Parallel list of created_at values for bisect operations
        self._timestamps: dict[str, list[datetime]] = {}
        self._lock = threading.Lock()

    def append(self, record: ChangeLogRecord) -> None:
        """Append a record at its sorted position by created_at.

        Records with equal timestamps keep their insertion order.

        Args:
            record: The immutable record to store.
        """
        with self._lock:
            records = self._records.setdefault(record.object_id, [])
            timestamps = self._timestamps.setdefault(record.object_id, [])
            index = bisect.bisect_right(timestamps, record.created_at)
            records.insert(index, record)
            timestamps.insert(index, record.created_at)

    def query_by_object_id(self, object_id: str) -> list[ChangeLogRecord]:
        """Return all records for an object id, oldest first."""
        with self._lock:
            return list(self._records.get(object_id, []))

    def most_recent_by_object_id(self, object_id: str) -> ChangeLogRecord:
        """Return the newest record for an object id.

        Raises:
            NotFoundError: If the object has no records.
        """
        with self._lock:
            records = self._records.get(object_id)
            if not records:
                raise NotFoundError(resource="ChangeLog", resource_id=object_id)
            return records[-1]

    def count(self, object_id: str | None = None) -> int:
        """Return the number of records for an object id, or in total."""
        with self._lock:
            if object_id is not None:
                return len(self._records.get(object_id, []))
            return sum(len(records) for records in self._records.values())

    def get_all_records(self) -> list[ChangeLogRecord]:
        """Return every record across objects, sorted by created_at."""
        with self._lock:
            merged = [record for records in self._records.values() for record in records]
        return sorted(merged, key=lambda r: r.created_at)
