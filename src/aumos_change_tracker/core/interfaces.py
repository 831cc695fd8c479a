"""Abstract interfaces (Protocol classes) for the change tracker.

The tracker depends on these protocols, never on a concrete store, so
tests can pass in-memory or mock stores.

Protocols defined:
- IChangeLogStore
"""

from typing import Protocol

from aumos_change_tracker.core.records import ChangeLogRecord


class IChangeLogStore(Protocol):
    """Append-only store contract for ChangeLogRecord persistence."""

    def append(self, record: ChangeLogRecord) -> None:
        """Persist a change log.

        Args:
            record: The immutable record to store.

        Raises:
            StoreError: If the store rejects the write.
        """
        ...

    def query_by_object_id(self, object_id: str) -> list[ChangeLogRecord]:
        """Return every change log for an object id, oldest first.

        Args:
            object_id: String form of the tracked entity's primary key.

        Returns:
            Records ordered by created_at ascending.

        Raises:
            StoreError: If the query fails.
        """
        ...

    def most_recent_by_object_id(self, object_id: str) -> ChangeLogRecord:
        """Return the newest change log for an object id.

        Args:
            object_id: String form of the tracked entity's primary key.

        Returns:
            The record with the latest created_at.

        Raises:
            NotFoundError: If the object has no change logs.
            StoreError: If the query fails.
        """
        ...
