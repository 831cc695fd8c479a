"""Change log record model.

Every tracked create, update or delete is captured as an immutable
ChangeLogRecord carrying the JSON of the entity state, the entity's metadata
and, for updates, the field diff. Records are frozen: attaching a diff
returns a new record.

Raw fields are decoded on demand with pydantic TypeAdapters so callers can
ask for any shape (pydantic model, dataclass, TypedDict, plain dict).
"""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic_core import to_jsonable_python
from sqlalchemy import Insert, insert
from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import Dialect
from typing_extensions import TypedDict

from aumos_change_tracker.core.diff import Diff
from aumos_change_tracker.core.entity import entity_state, resolve_identity
from aumos_change_tracker.core.models import ChangeLogRow
from aumos_change_tracker.errors import DeserializationError, SerializationError

ChangeAction = Literal["create", "update", "delete"]

ACTION_CREATE: ChangeAction = "create"
ACTION_UPDATE: ChangeAction = "update"
ACTION_DELETE: ChangeAction = "delete"

# Stored in raw_diff when no diff was computed
NO_DIFF = "null"


class FieldChangePayload(TypedDict):
    """Decoded form of one diff entry."""

    old: Any
    new: Any


_diff_adapter: TypeAdapter[dict[str, FieldChangePayload] | None] = TypeAdapter(
    dict[str, FieldChangePayload] | None
)


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


def to_json(value: Any) -> str:
    """Serialize a value to compact JSON.

    datetimes, UUIDs, Decimals, enums, dataclasses and pydantic models are
    converted through pydantic. NaN and infinity are rejected.

    Raises:
        SerializationError: If the value has no JSON representation.
    """
    try:
        return json.dumps(value, default=to_jsonable_python, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError, RecursionError) as exc:
        raise SerializationError(f"Cannot serialize {type(value).__name__}: {exc}") from exc


def serialize_diff(diff: Diff) -> str:
    """Serialize a Diff to the JSON stored in raw_diff."""
    return to_json({name: change.as_dict() for name, change in diff.items()})


class ChangeLogRecord(BaseModel):
    """Immutable audit entry for one create, update or delete.

    Attributes:
        id: UUID v4, globally unique.
        created_at: Creation time (UTC).
        user_name: Actor name, empty when none could be resolved.
        action: create | update | delete.
        object_id: String form of the entity's primary key.
        object_type: Type identity of the entity.
        raw_object: JSON of the full entity state.
        raw_meta: JSON of the entity metadata ("null" when it has none).
        raw_diff: JSON of the diff, or NO_DIFF.
        created_by: Free-form attribution.
    """

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, description="Globally unique identifier")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time (UTC)")
    user_name: str = Field(default="", description="Actor name")
    action: ChangeAction = Field(..., description="create | update | delete")
    object_id: str = Field(..., description="String form of the entity's primary key")
    object_type: str = Field(..., description="Type identity of the entity")
    raw_object: str = Field(..., description="JSON of the entity state")
    raw_meta: str = Field(default="null", description="JSON of the entity metadata")
    raw_diff: str = Field(default=NO_DIFF, description="JSON of the diff, or null")
    created_by: str = Field(default="", description="Free-form attribution")

    @classmethod
    def build(
        cls,
        instance: Any,
        action: ChangeAction,
        actor_name: str = "",
        *,
        primary_key: Any = None,
        type_name: str | None = None,
        created_by: str = "",
    ) -> ChangeLogRecord:
        """Build a record from a tracked entity.

        Args:
            instance: The tracked entity in its current state.
            action: The lifecycle action being logged.
            actor_name: Resolved actor, may be empty.
            primary_key: Overrides instance.tracking_primary_key().
            type_name: Overrides instance.tracking_type_name().
            created_by: Free-form attribution.

        Returns:
            A new record with raw_diff set to NO_DIFF.

        Raises:
            SerializationError: If the state or metadata cannot be serialized.
        """
        type_name, primary_key = resolve_identity(instance, primary_key, type_name)
        raw_object = to_json(entity_state(instance))
        raw_meta = to_json(instance.tracking_meta())
        return cls(
            user_name=actor_name,
            action=action,
            object_id=str(primary_key),
            object_type=type_name,
            raw_object=raw_object,
            raw_meta=raw_meta,
            created_by=created_by,
        )

    @property
    def has_diff(self) -> bool:
        return self.raw_diff != NO_DIFF

    def with_diff(self, diff: Diff) -> ChangeLogRecord:
        """Return a copy of this record carrying the serialized diff."""
        return self.model_copy(update={"raw_diff": serialize_diff(diff)})

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def row_values(self) -> dict[str, Any]:
        """Return column name to value for the change_logs table."""
        return {
            "id": str(self.id),
            "created_at": self.created_at,
            "user_name": self.user_name,
            "action": self.action,
            "object_id": self.object_id,
            "object_type": self.object_type,
            "raw_object": self.raw_object,
            "raw_meta": self.raw_meta,
            "raw_diff": self.raw_diff,
            "created_by": self.created_by,
        }

    def insert_statement(self) -> Insert:
        """Return an INSERT for this record with bound parameters."""
        return insert(ChangeLogRow).values(**self.row_values())

    def render_insert_statement(self, dialect: Dialect | None = None) -> str:
        """Render the INSERT as literal SQL.

        Embedded strings are quoted by the dialect's own literal processors,
        so quotes inside raw_object, raw_meta or raw_diff cannot terminate
        the literal.

        Args:
            dialect: Target dialect. Defaults to PostgreSQL.

        Returns:
            The INSERT statement text.
        """
        compiled = self.insert_statement().compile(
            dialect=dialect or postgresql.dialect(),
            compile_kwargs={"literal_binds": True},
        )
        return str(compiled)

    def to_row(self) -> ChangeLogRow:
        return ChangeLogRow(**self.row_values())

    @classmethod
    def from_row(cls, row: ChangeLogRow) -> ChangeLogRecord:
        """Rebuild a record from a persisted row.

        SQLite returns naive datetimes; those are read back as UTC.
        """
        created_at = row.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        return cls(
            id=uuid.UUID(row.id),
            created_at=created_at,
            user_name=row.user_name,
            action=row.action,  # type: ignore[arg-type]
            object_id=row.object_id,
            object_type=row.object_type,
            raw_object=row.raw_object,
            raw_meta=row.raw_meta,
            raw_diff=row.raw_diff,
            created_by=row.created_by,
        )

    # -------------------------------------------------------------------------
    # On-demand decoding
    # -------------------------------------------------------------------------

    def parse_diff(self) -> dict[str, FieldChangePayload] | None:
        """Decode raw_diff.

        Returns:
            Field name to {"old", "new"} with JSON-decoded values, or None
            when no diff was stored.

        Raises:
            DeserializationError: If raw_diff is not a valid diff document.
        """
        try:
            return _diff_adapter.validate_json(self.raw_diff)
        except ValidationError as exc:
            raise DeserializationError(f"Invalid diff on change log {self.id}: {exc}") from exc

    def parse_object_as(self, type_: Any) -> Any:
        """Decode raw_object into type_.

        Raises:
            DeserializationError: If raw_object does not fit type_.
        """
        return _decode(self.raw_object, type_, f"object on change log {self.id}")

    def parse_meta_as(self, type_: Any) -> Any:
        """Decode raw_meta into type_.

        Raises:
            DeserializationError: If raw_meta does not fit type_.
        """
        return _decode(self.raw_meta, type_, f"meta on change log {self.id}")


def _decode(raw: str, type_: Any, what: str) -> Any:
    try:
        return TypeAdapter(type_).validate_json(raw)
    except ValidationError as exc:
        raise DeserializationError(f"Invalid {what}: {exc}") from exc
