"""Tracking policy: what each lifecycle hook does once the host invokes it.

ChangeTracker is called synchronously on the host's thread after a read,
create, update or delete completes. Each call decides afresh whether to
refresh the snapshot baseline, suppress the write, or build and append a
ChangeLogRecord.

Tracking never aborts the primary operation. Every hook returns a
TrackingResult; serialization and store failures are attached to it as
errors, copy failures and lazy-update read-back failures as warnings.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from aumos_change_tracker.core.diff import compute_diff
from aumos_change_tracker.core.entity import entity_state, is_enabled, is_trackable, resolve_identity
from aumos_change_tracker.core.interfaces import IChangeLogStore
from aumos_change_tracker.core.records import (
    ACTION_CREATE,
    ACTION_DELETE,
    ACTION_UPDATE,
    ChangeAction,
    ChangeLogRecord,
    to_json,
)
from aumos_change_tracker.core.registry import FieldRegistry, TypeRegistry
from aumos_change_tracker.core.snapshots import SnapshotStore
from aumos_change_tracker.errors import (
    ChangeTrackerError,
    CopyError,
    DeserializationError,
    MissingActorError,
    NotFoundError,
    SerializationError,
    StoreError,
)
from aumos_change_tracker.observability import get_logger
from aumos_change_tracker.settings import Settings

logger = get_logger(__name__)


class HookOutcome(StrEnum):
    """Terminal outcome of a lifecycle hook."""

    PERSISTED = "persisted"
    SUPPRESSED = "suppressed"
    FAILED = "failed"
    BASELINE_UPDATED = "baseline_updated"
    SKIPPED = "skipped"


@dataclass
class TrackingResult:
    """What a hook did, plus any non-fatal problems it hit.

    Attributes:
        outcome: The terminal outcome.
        record: The change log built by the hook, if any.
        warnings: Degraded-but-handled problems (copy failures, lazy update
            read-back failures).
        errors: Failures that lost an audit entry (serialization, store).
    """

    outcome: HookOutcome
    record: ChangeLogRecord | None = None
    warnings: list[ChangeTrackerError] = field(default_factory=list)
    errors: list[ChangeTrackerError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        """Re-raise attached errors: the error itself if single, else a group."""
        if not self.errors:
            return
        if len(self.errors) == 1:
            raise self.errors[0]
        raise ExceptionGroup("change tracking failed", self.errors)


@dataclass(frozen=True)
class PreparedChangeLog:
    """A change log with its object and meta decoded to registered types.

    object and meta are None when no type is registered for the record's
    object_type.
    """

    record: ChangeLogRecord
    object: Any = None
    meta: Any = None


class ChangeTracker:
    """Lifecycle hooks and read helpers for change logging.

    Args:
        store: Append-only change log store.
        snapshots: Baseline cache. A fresh one is created if omitted.
        fields: Loggable field registry. A fresh one is created if omitted.
        types: Object and meta type registry for decoding.
        compute_diff: Diff updates against the baseline; empty diffs are
            not logged.
        lazy_update: Skip updates whose state matches the last persisted log.
        lazy_update_fields: Fields compared in lazy update mode; empty means
            every field.
        user_key: Key looked up in the actor context.
    """

    def __init__(
        self,
        store: IChangeLogStore,
        snapshots: SnapshotStore | None = None,
        fields: FieldRegistry | None = None,
        types: TypeRegistry | None = None,
        *,
        compute_diff: bool = True,
        lazy_update: bool = False,
        lazy_update_fields: Sequence[str] = (),
        user_key: str = "user",
    ) -> None:
        self._store = store
        self._snapshots = snapshots if snapshots is not None else SnapshotStore()
        self._fields = fields if fields is not None else FieldRegistry()
        self._types = types if types is not None else TypeRegistry()
        self._compute_diff = compute_diff
        self._lazy_update = lazy_update
        self._lazy_update_fields = tuple(lazy_update_fields)
        self._user_key = user_key
        self._context: Mapping[str, Any] = {user_key: ""}

    @classmethod
    def from_settings(cls, settings: Settings, store: IChangeLogStore, **kwargs: Any) -> ChangeTracker:
        """Build a tracker whose policy comes from Settings."""
        return cls(
            store,
            compute_diff=settings.compute_diff,
            lazy_update=settings.lazy_update,
            lazy_update_fields=settings.lazy_update_fields,
            user_key=settings.user_key,
            **kwargs,
        )

    @property
    def store(self) -> IChangeLogStore:
        return self._store

    @property
    def snapshots(self) -> SnapshotStore:
        return self._snapshots

    @property
    def fields(self) -> FieldRegistry:
        return self._fields

    @property
    def types(self) -> TypeRegistry:
        return self._types

    # -------------------------------------------------------------------------
    # Actor resolution
    # -------------------------------------------------------------------------

    def register_context(self, context: Mapping[str, Any]) -> None:
        """Replace the actor context.

        Args:
            context: Mapping that must hold a str under the configured user key.

        Raises:
            MissingActorError: If the user key is absent or not a string.
        """
        if not isinstance(context.get(self._user_key), str):
            raise MissingActorError(f"missing {self._user_key} on context")
        self._context = context

    def current_actor(self) -> str:
        """Return the actor name from the context, or "" when unresolvable."""
        value = self._context.get(self._user_key)
        return value if isinstance(value, str) else ""

    # -------------------------------------------------------------------------
    # Lifecycle hooks
    # -------------------------------------------------------------------------

    def on_read(self, result: Any, primary_key: Any = None, type_name: str | None = None) -> TrackingResult:
        """Refresh the baseline for every tracked entity in a query result.

        Args:
            result: A single entity or an iterable of entities. Elements that
                are not trackable are skipped.
            primary_key: Overrides the primary key of a single entity.
            type_name: Overrides the type name of every entity.

        Returns:
            BASELINE_UPDATED if at least one snapshot was saved, else SKIPPED.
        """
        single = is_trackable(result)
        instances = [result] if single else _iter_instances(result)
        tracking = TrackingResult(outcome=HookOutcome.SKIPPED)

        for instance in instances:
            if not is_trackable(instance):
                continue
            try:
                self._snapshots.save(instance, primary_key if single else None, type_name)
            except CopyError as exc:
                logger.warning("Snapshot failed, no baseline for entity", error=str(exc))
                tracking.warnings.append(exc)
                continue
            tracking.outcome = HookOutcome.BASELINE_UPDATED

        return tracking

    def on_create(self, instance: Any, primary_key: Any = None, type_name: str | None = None) -> TrackingResult:
        """Log a create, or an update if the entity already has a baseline.

        A baseline for a freshly created entity means the host notified the
        same create twice; the second notification goes through on_update.
        Once the create is persisted, the created state becomes the entity's
        baseline.
        """
        if not is_enabled(instance):
            return TrackingResult(outcome=HookOutcome.SKIPPED)
        type_name, primary_key = resolve_identity(instance, primary_key, type_name)

        if self._snapshots.has(instance, primary_key, type_name):
            logger.info(
                "Create notified for entity with a baseline, logging as update",
                object_type=type_name,
                object_id=str(primary_key),
            )
            return self.on_update(instance, primary_key, type_name)

        tracking = self._log(instance, ACTION_CREATE, primary_key, type_name)
        if tracking.outcome is not HookOutcome.PERSISTED:
            # without a create entry the next create notification must log one
            return tracking
        try:
            self._snapshots.save(instance, primary_key, type_name)
        except CopyError as exc:
            logger.warning("Snapshot failed after create", object_id=str(primary_key), error=str(exc))
            tracking.warnings.append(exc)
        return tracking

    def on_update(self, instance: Any, primary_key: Any = None, type_name: str | None = None) -> TrackingResult:
        """Log an update unless nothing significant changed.

        Lazy update mode suppresses the write when the last persisted log
        already holds the same significant state. With diff computation on,
        an empty diff against the baseline also suppresses it; a missing
        baseline never does.
        """
        if not is_enabled(instance):
            return TrackingResult(outcome=HookOutcome.SKIPPED)
        type_name, primary_key = resolve_identity(instance, primary_key, type_name)
        warnings: list[ChangeTrackerError] = []

        if self._lazy_update and self._matches_last_record(instance, primary_key, type_name, warnings):
            logger.debug("Update suppressed, state matches last change log", object_id=str(primary_key))
            return TrackingResult(outcome=HookOutcome.SUPPRESSED, warnings=warnings)

        try:
            record = ChangeLogRecord.build(
                instance, ACTION_UPDATE, self.current_actor(), primary_key=primary_key, type_name=type_name
            )
        except SerializationError as exc:
            return self._failed(exc, primary_key, warnings)

        if self._compute_diff:
            baseline = self._snapshots.get(instance, primary_key, type_name)
            diff = compute_diff(baseline, instance, self._fields.fields_for(instance, type_name))
            if diff is None:
                logger.info("No baseline for update, logging without diff", object_id=str(primary_key))
            elif not diff:
                logger.debug("Update suppressed, empty diff", object_id=str(primary_key))
                return TrackingResult(outcome=HookOutcome.SUPPRESSED, warnings=warnings)
            else:
                try:
                    record = record.with_diff(diff)
                except SerializationError as exc:
                    return self._failed(exc, primary_key, warnings)

        return self._append(record, warnings)

    def on_delete(self, instance: Any, primary_key: Any = None, type_name: str | None = None) -> TrackingResult:
        """Log a delete. The logged state is the entity's final state."""
        if not is_enabled(instance):
            return TrackingResult(outcome=HookOutcome.SKIPPED)
        type_name, primary_key = resolve_identity(instance, primary_key, type_name)
        return self._log(instance, ACTION_DELETE, primary_key, type_name)

    # -------------------------------------------------------------------------
    # Query surface
    # -------------------------------------------------------------------------

    def get_records(self, object_id: str) -> list[ChangeLogRecord]:
        """Return the audit trail for an object id, oldest first."""
        return self._store.query_by_object_id(object_id)

    def get_last_record(self, object_id: str) -> ChangeLogRecord:
        """Return the newest change log for an object id.

        Raises:
            NotFoundError: If the object has no change logs.
        """
        return self._store.most_recent_by_object_id(object_id)

    def prepare(self, record: ChangeLogRecord) -> PreparedChangeLog:
        """Decode a record's object and meta using the registered types.

        Raises:
            DeserializationError: If a stored value does not fit its type.
        """
        object_type = self._types.object_type(record.object_type)
        meta_type = self._types.meta_type(record.object_type)
        return PreparedChangeLog(
            record=record,
            object=record.parse_object_as(object_type) if object_type is not None else None,
            meta=record.parse_meta_as(meta_type) if meta_type is not None else None,
        )

    def prepare_records(self, records: Iterable[ChangeLogRecord]) -> list[PreparedChangeLog]:
        return [self.prepare(record) for record in records]

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _log(self, instance: Any, action: ChangeAction, primary_key: Any, type_name: str) -> TrackingResult:
        try:
            record = ChangeLogRecord.build(
                instance, action, self.current_actor(), primary_key=primary_key, type_name=type_name
            )
        except SerializationError as exc:
            return self._failed(exc, primary_key, [])
        return self._append(record, [])

    def _append(self, record: ChangeLogRecord, warnings: list[ChangeTrackerError]) -> TrackingResult:
        try:
            self._store.append(record)
        except StoreError as exc:
            logger.error(
                "Change log write failed",
                action=record.action,
                object_type=record.object_type,
                object_id=record.object_id,
                error=str(exc),
            )
            return TrackingResult(outcome=HookOutcome.FAILED, record=record, warnings=warnings, errors=[exc])

        logger.info(
            "Change log written",
            change_log_id=str(record.id),
            action=record.action,
            object_type=record.object_type,
            object_id=record.object_id,
            has_diff=record.has_diff,
        )
        return TrackingResult(outcome=HookOutcome.PERSISTED, record=record, warnings=warnings)

    def _failed(
        self, exc: ChangeTrackerError, primary_key: Any, warnings: list[ChangeTrackerError]
    ) -> TrackingResult:
        logger.error("Change log build failed", object_id=str(primary_key), error=str(exc))
        return TrackingResult(outcome=HookOutcome.FAILED, warnings=warnings, errors=[exc])

    def _matches_last_record(
        self,
        instance: Any,
        primary_key: Any,
        type_name: str,
        warnings: list[ChangeTrackerError],
    ) -> bool:
        """Compare the live entity with the last persisted object state.

        A failed read-back is a warning and counts as "no match", so the
        update is still logged.
        """
        try:
            last = self._store.most_recent_by_object_id(str(primary_key))
        except NotFoundError:
            return False
        except StoreError as exc:
            logger.warning("Lazy update read-back failed, logging update", object_id=str(primary_key), error=str(exc))
            warnings.append(exc)
            return False

        if last.object_type != type_name:
            return False

        try:
            stored: dict[str, Any] = last.parse_object_as(dict[str, Any])
            # round trip through JSON so both sides share one representation
            current: dict[str, Any] = json.loads(to_json(entity_state(instance)))
        except (DeserializationError, SerializationError) as exc:
            logger.warning("Lazy update comparison failed, logging update", object_id=str(primary_key), error=str(exc))
            warnings.append(exc)
            return False

        names = self._lazy_update_fields or tuple(stored.keys() | current.keys())
        return all(stored.get(name) == current.get(name) for name in names)


def _iter_instances(result: Any) -> list[Any]:
    if isinstance(result, Iterable) and not isinstance(result, (str, bytes, Mapping)):
        return list(result)
    return [result]
