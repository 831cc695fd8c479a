"""Change tracking core: snapshots, diffing, change log records and policy."""

from aumos_change_tracker.core.diff import FLOAT_TOLERANCE, FieldChange, compute_diff, values_equal
from aumos_change_tracker.core.entity import FieldDescriptor, FieldKind, TrackedEntity, TrackingState, entity_state
from aumos_change_tracker.core.records import NO_DIFF, ChangeLogRecord
from aumos_change_tracker.core.registry import FieldRegistry, TypeRegistry
from aumos_change_tracker.core.snapshots import Snapshot, SnapshotStore, snapshot_key
from aumos_change_tracker.core.tracker import ChangeTracker, HookOutcome, PreparedChangeLog, TrackingResult

__all__ = [
    "FLOAT_TOLERANCE",
    "NO_DIFF",
    "ChangeLogRecord",
    "ChangeTracker",
    "FieldChange",
    "FieldDescriptor",
    "FieldKind",
    "FieldRegistry",
    "HookOutcome",
    "PreparedChangeLog",
    "Snapshot",
    "SnapshotStore",
    "TrackedEntity",
    "TrackingResult",
    "TrackingState",
    "TypeRegistry",
    "compute_diff",
    "entity_state",
    "snapshot_key",
    "values_equal",
]
