"""AumOS Change Tracker: audit trail of entity mutations with field-level diffs.

Lifecycle hooks snapshot entities when they are read and write an immutable
change log when they are created, updated or deleted. Updates are diffed
against the last snapshot so only observable changes are logged.
"""

from aumos_change_tracker.core import (
    ChangeLogRecord,
    ChangeTracker,
    FieldDescriptor,
    FieldKind,
    FieldRegistry,
    HookOutcome,
    SnapshotStore,
    TrackedEntity,
    TrackingResult,
    TrackingState,
    TypeRegistry,
)

__all__ = [
    "ChangeLogRecord",
    "ChangeTracker",
    "FieldDescriptor",
    "FieldKind",
    "FieldRegistry",
    "HookOutcome",
    "SnapshotStore",
    "TrackedEntity",
    "TrackingResult",
    "TrackingState",
    "TypeRegistry",
]
