"""Response schemas for the change log API."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from aumos_change_tracker.core.records import ChangeLogRecord


class ChangeLogResponse(BaseModel):
    """A single change log as returned by the API.

    Raw fields are passed through unchanged; the diff is decoded because
    clients almost always want it structured.
    """

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    created_at: datetime
    user_name: str
    action: str
    object_id: str
    object_type: str
    raw_object: str
    raw_meta: str
    diff: dict[str, Any] | None = Field(default=None, description="Decoded diff, null when none was stored")
    created_by: str

    @classmethod
    def from_record(cls, record: ChangeLogRecord) -> ChangeLogResponse:
        return cls(
            id=record.id,
            created_at=record.created_at,
            user_name=record.user_name,
            action=record.action,
            object_id=record.object_id,
            object_type=record.object_type,
            raw_object=record.raw_object,
            raw_meta=record.raw_meta,
            diff=record.parse_diff(),  # type: ignore[arg-type]
            created_by=record.created_by,
        )


class ChangeLogListResponse(BaseModel):
    """Audit trail of one object, oldest first."""

    model_config = ConfigDict(frozen=True)

    object_id: str
    entries: list[ChangeLogResponse]
    total: int


class DiffResponse(BaseModel):
    """Diff carried by the most recent change log of an object."""

    model_config = ConfigDict(frozen=True)

    object_id: str
    change_log_id: uuid.UUID
    diff: dict[str, Any] | None
