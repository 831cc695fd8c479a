"""Adapters: change log stores and host integrations."""

from aumos_change_tracker.adapters.inmemory import InMemoryChangeLogStore
from aumos_change_tracker.adapters.sql_store import SqlChangeLogStore
from aumos_change_tracker.adapters.sqlalchemy_hooks import (
    TrackerBinding,
    clear_tracking_errors,
    register_tracker,
    tracking_errors,
)

__all__ = [
    "InMemoryChangeLogStore",
    "SqlChangeLogStore",
    "TrackerBinding",
    "clear_tracking_errors",
    "register_tracker",
    "tracking_errors",
]
