"""Test fixtures for aumos-change-tracker.

Provides:
- Widget: a dataclass entity implementing the TrackedEntity capability
- make_widget: builds a Widget with sensible defaults
- log_store: an empty InMemoryChangeLogStore
- snapshots: an empty SnapshotStore
- tracker: a ChangeTracker with diff computation on, backed by log_store
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import pytest
import structlog

from aumos_change_tracker.adapters.inmemory import InMemoryChangeLogStore
from aumos_change_tracker.core.entity import TrackingState
from aumos_change_tracker.core.snapshots import SnapshotStore
from aumos_change_tracker.core.tracker import ChangeTracker


@dataclass
class Widget:
    """Minimal tracked entity: tracking state by composition plus plain fields."""

    id: int
    name: str
    price: float = 0.0
    updated_at: datetime | None = None
    owner: str = ""
    tags: list[str] = field(default_factory=list)
    tracking: TrackingState = field(default_factory=TrackingState)

    def tracking_type_name(self) -> str:
        return "Widget"

    def tracking_primary_key(self) -> Any:
        return self.id

    def tracking_enabled(self) -> bool:
        return self.tracking.enabled

    def tracking_meta(self) -> Any:
        return {"owner": self.owner} if self.owner else None


def make_widget(
    widget_id: int = 1,
    name: str = "gear",
    price: float = 9.99,
    updated_at: datetime | None = None,
    owner: str = "",
    tags: list[str] | None = None,
) -> Widget:
    """Create a Widget for tests.

    Args:
        widget_id: Primary key.
        name: Widget name.
        price: Widget price.
        updated_at: Last modification time. Defaults to a fixed UTC instant.
        owner: Owner stored in the change log metadata; empty means no meta.
        tags: Free-form labels.

    Returns:
        A tracking-enabled Widget.
    """
    return Widget(
        id=widget_id,
        name=name,
        price=price,
        updated_at=updated_at or datetime(2024, 1, 1, 12, 0, tzinfo=UTC),
        owner=owner,
        tags=tags if tags is not None else ["a"],
    )


@pytest.fixture()
def log_store() -> InMemoryChangeLogStore:
    """Return an empty in-memory change log store."""
    return InMemoryChangeLogStore()


@pytest.fixture()
def snapshots() -> SnapshotStore:
    """Return an empty snapshot store."""
    return SnapshotStore()


@pytest.fixture()
def tracker(log_store: InMemoryChangeLogStore, snapshots: SnapshotStore) -> ChangeTracker:
    """Create a ChangeTracker with diff computation on.

    Args:
        log_store: Injected in-memory store fixture.
        snapshots: Injected snapshot store fixture.

    Returns:
        A tracker writing to log_store.
    """
    return ChangeTracker(log_store, snapshots, compute_diff=True)


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Keep structlog configuration made by one test (e.g. create_app) from leaking into others."""
    yield
    structlog.reset_defaults()
