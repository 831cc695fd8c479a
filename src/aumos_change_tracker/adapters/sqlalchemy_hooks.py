"""Bind a ChangeTracker to SQLAlchemy ORM lifecycle events.

register_tracker() listens on a mapped class or a declarative base (with
propagate=True, so every mapped subclass is covered):

    load, refresh  -> ChangeTracker.on_read    (baseline for later diffs)
    after_insert   -> ChangeTracker.on_create
    after_update   -> ChangeTracker.on_update
    after_delete   -> ChangeTracker.on_delete

Handlers run inside the host's flush and never raise. Errors from failed
hooks are collected on the owning Session's info dict; read them back with
tracking_errors(session) after the commit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy import event
from sqlalchemy.orm import Session, object_session

from aumos_change_tracker.core.tracker import ChangeTracker, TrackingResult
from aumos_change_tracker.errors import ChangeTrackerError
from aumos_change_tracker.observability import get_logger

logger = get_logger(__name__)

# Session.info key holding the errors of failed tracking hooks
TRACKING_ERRORS_KEY = "aumos_change_tracker.errors"


def tracking_errors(session: Session) -> list[ChangeTrackerError]:
    """Return the tracking errors collected on a session, oldest first."""
    return list(session.info.get(TRACKING_ERRORS_KEY, []))


def clear_tracking_errors(session: Session) -> None:
    """Forget the tracking errors collected on a session."""
    session.info.pop(TRACKING_ERRORS_KEY, None)


@dataclass
class TrackerBinding:
    """Listeners installed by register_tracker(), removable as a unit."""

    target: type
    tracker: ChangeTracker
    listeners: list[tuple[str, Callable[..., None]]] = field(default_factory=list)

    def remove(self) -> None:
        """Detach every listener from the target."""
        for identifier, fn in self.listeners:
            event.remove(self.target, identifier, fn)
        self.listeners.clear()
        logger.info("Change tracker detached", target=self.target.__name__)


def _collect(instance: Any, result: TrackingResult) -> None:
    if result.ok:
        return
    session = object_session(instance)
    if session is None:
        logger.warning("Tracking errors on a detached instance", errors=[str(e) for e in result.errors])
        return
    session.info.setdefault(TRACKING_ERRORS_KEY, []).extend(result.errors)


def register_tracker(target: type, tracker: ChangeTracker) -> TrackerBinding:
    """Install change tracking listeners on target and its mapped subclasses.

    Args:
        target: A mapped class or declarative base.
        tracker: The tracker receiving lifecycle notifications.

    Returns:
        A TrackerBinding that can remove the listeners again.
    """

    def on_load(instance: Any, _context: Any) -> None:
        tracker.on_read(instance)

    def on_refresh(instance: Any, _context: Any, attrs: Any) -> None:
        # partial refreshes would snapshot half-loaded state
        if attrs is None:
            tracker.on_read(instance)

    def after_insert(_mapper: Any, _connection: Any, instance: Any) -> None:
        _collect(instance, tracker.on_create(instance))

    def after_update(_mapper: Any, _connection: Any, instance: Any) -> None:
        _collect(instance, tracker.on_update(instance))

    def after_delete(_mapper: Any, _connection: Any, instance: Any) -> None:
        _collect(instance, tracker.on_delete(instance))

    binding = TrackerBinding(target=target, tracker=tracker)
    for identifier, fn in (
        ("load", on_load),
        ("refresh", on_refresh),
        ("after_insert", after_insert),
        ("after_update", after_update),
        ("after_delete", after_delete),
    ):
        event.listen(target, identifier, fn, propagate=True)
        binding.listeners.append((identifier, fn))

    logger.info("Change tracker registered", target=target.__name__)
    return binding
