"""SQLAlchemy ORM model for the change_logs table.

ChangeLogRow is the persisted shape of a ChangeLogRecord. It is written
ONLY by SqlChangeLogStore through ChangeLogRecord.insert_statement(); there
are no update or delete paths.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for change tracker tables."""


class ChangeLogRow(Base):
    """Immutable change log row.

    Attributes:
        id: UUID v4 string, generated when the record is built.
        created_at: When the change log was created (UTC).
        user_name: Actor resolved from the registered context. May be empty.
        action: create | update | delete.
        object_id: String form of the tracked entity's primary key.
        object_type: Type identity of the tracked entity.
        raw_object: JSON of the entity state at record time.
        raw_meta: JSON of the entity's metadata.
        raw_diff: JSON of the field diff, or the literal "null".
        created_by: Free-form attribution.
    """

    __tablename__ = "change_logs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        comment="UUID v4 string",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        comment="When the change log was created (UTC)",
    )
    user_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
        comment="Actor resolved from the registered context",
    )
    action: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="create | update | delete",
    )
    object_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="String form of the tracked entity's primary key",
    )
    object_type: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Type identity of the tracked entity",
    )
    raw_object: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="JSON of the entity state at record time",
    )
    raw_meta: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="null",
        comment="JSON of the entity metadata",
    )
    raw_diff: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="null",
        comment="JSON of the field diff, or null when none was computed",
    )
    created_by: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
        index=True,
        comment="Free-form attribution",
    )
