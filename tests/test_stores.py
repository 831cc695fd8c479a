"""Tests for the change log stores.

Covers: InMemoryChangeLogStore ordering and lookups, SqlChangeLogStore on
SQLite (append, ordered query, most recent, NotFound, StoreError), and the
module-level init/close/get lifecycle used by the API.

Run with: pytest tests/test_stores.py -v
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from aumos_change_tracker.adapters import sql_store as sql_store_module
from aumos_change_tracker.adapters.inmemory import InMemoryChangeLogStore
from aumos_change_tracker.adapters.sql_store import (
    SqlChangeLogStore,
    close_change_log_db,
    get_change_log_store,
    init_change_log_db,
)
from aumos_change_tracker.core.diff import FieldChange
from aumos_change_tracker.core.records import ACTION_CREATE, ACTION_DELETE, ACTION_UPDATE, ChangeLogRecord
from aumos_change_tracker.errors import NotFoundError, StoreError

BASE_TIME = datetime(2024, 3, 1, 8, 0, tzinfo=UTC)


def make_record(
    object_id: str = "1",
    action: str = ACTION_CREATE,
    offset_seconds: int = 0,
    raw_object: str = '{"id":1,"name":"gear"}',
) -> ChangeLogRecord:
    """Build a ChangeLogRecord with a deterministic timestamp."""
    return ChangeLogRecord(
        created_at=BASE_TIME + timedelta(seconds=offset_seconds),
        user_name="alice",
        action=action,  # type: ignore[arg-type]
        object_id=object_id,
        object_type="Widget",
        raw_object=raw_object,
    )


@pytest.fixture()
def sqlite_engine() -> Iterator[Engine]:
    """Single-connection in-memory SQLite engine shared across sessions."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    engine.dispose()


@pytest.fixture()
def sql_store(sqlite_engine: Engine) -> SqlChangeLogStore:
    store = SqlChangeLogStore(sqlite_engine)
    store.create_schema()
    return store


# ---------------------------------------------------------------------------
# InMemoryChangeLogStore
# ---------------------------------------------------------------------------


class TestInMemoryStore:
    def test_records_sorted_by_created_at(self, log_store: InMemoryChangeLogStore) -> None:
        """Out-of-order appends are still returned oldest first."""
        log_store.append(make_record(action=ACTION_DELETE, offset_seconds=20))
        log_store.append(make_record(action=ACTION_CREATE, offset_seconds=0))
        log_store.append(make_record(action=ACTION_UPDATE, offset_seconds=10))

        actions = [r.action for r in log_store.query_by_object_id("1")]

        assert actions == ["create", "update", "delete"]
        assert log_store.most_recent_by_object_id("1").action == "delete"

    def test_equal_timestamps_keep_insertion_order(self, log_store: InMemoryChangeLogStore) -> None:
        first = make_record(action=ACTION_CREATE)
        second = make_record(action=ACTION_UPDATE)
        log_store.append(first)
        log_store.append(second)

        assert log_store.query_by_object_id("1") == [first, second]

    def test_objects_are_isolated(self, log_store: InMemoryChangeLogStore) -> None:
        log_store.append(make_record(object_id="1"))
        log_store.append(make_record(object_id="2"))
        log_store.append(make_record(object_id="2", offset_seconds=5))

        assert log_store.count("1") == 1
        assert log_store.count("2") == 2
        assert log_store.count() == 3
        assert len(log_store.get_all_records()) == 3

    def test_query_returns_a_copy(self, log_store: InMemoryChangeLogStore) -> None:
        log_store.append(make_record())
        log_store.query_by_object_id("1").clear()
        assert log_store.count("1") == 1

    def test_unknown_object(self, log_store: InMemoryChangeLogStore) -> None:
        assert log_store.query_by_object_id("nope") == []
        with pytest.raises(NotFoundError) as exc_info:
            log_store.most_recent_by_object_id("nope")
        assert exc_info.value.resource_id == "nope"


# ---------------------------------------------------------------------------
# SqlChangeLogStore
# ---------------------------------------------------------------------------


class TestSqlStore:
    def test_append_and_query_round_trip(self, sql_store: SqlChangeLogStore) -> None:
        record = make_record().with_diff({"name": FieldChange(old="a", new="b")})

        sql_store.append(record)

        stored = sql_store.query_by_object_id("1")
        assert stored == [record]
        assert stored[0].created_at.tzinfo is not None
        assert stored[0].parse_diff() == {"name": {"old": "a", "new": "b"}}

    def test_query_ordered_by_created_at(self, sql_store: SqlChangeLogStore) -> None:
        sql_store.append(make_record(action=ACTION_UPDATE, offset_seconds=10))
        sql_store.append(make_record(action=ACTION_CREATE, offset_seconds=0))
        sql_store.append(make_record(object_id="2", offset_seconds=5))

        assert [r.action for r in sql_store.query_by_object_id("1")] == ["create", "update"]

    def test_most_recent(self, sql_store: SqlChangeLogStore) -> None:
        sql_store.append(make_record(action=ACTION_CREATE, offset_seconds=0))
        sql_store.append(make_record(action=ACTION_DELETE, offset_seconds=30))
        sql_store.append(make_record(action=ACTION_UPDATE, offset_seconds=15))

        assert sql_store.most_recent_by_object_id("1").action == "delete"

    def test_quotes_survive_storage(self, sql_store: SqlChangeLogStore) -> None:
        record = make_record(raw_object='{"id":1,"name":"O\'Brien"}')
        sql_store.append(record)
        assert sql_store.most_recent_by_object_id("1").raw_object == record.raw_object

    def test_unknown_object(self, sql_store: SqlChangeLogStore) -> None:
        assert sql_store.query_by_object_id("nope") == []
        with pytest.raises(NotFoundError):
            sql_store.most_recent_by_object_id("nope")

    def test_duplicate_id_raises_store_error(self, sql_store: SqlChangeLogStore) -> None:
        record = make_record()
        sql_store.append(record)
        with pytest.raises(StoreError):
            sql_store.append(record)

    def test_missing_table_raises_store_error(self, sqlite_engine: Engine) -> None:
        store = SqlChangeLogStore(sqlite_engine)

        with pytest.raises(StoreError):
            store.append(make_record())
        with pytest.raises(StoreError):
            store.query_by_object_id("1")
        with pytest.raises(StoreError) as exc_info:
            store.most_recent_by_object_id("1")
        assert not isinstance(exc_info.value, NotFoundError)


class TestStoreLifecycle:
    def test_get_before_init_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sql_store_module, "_store", None)
        with pytest.raises(RuntimeError, match="not been initialized"):
            get_change_log_store()

    def test_init_get_close(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sql_store_module, "_store", None)

        store = init_change_log_db("sqlite://")
        try:
            assert get_change_log_store() is store
            store.append(make_record())
            assert store.most_recent_by_object_id("1").user_name == "alice"
        finally:
            close_change_log_db()

        with pytest.raises(RuntimeError):
            get_change_log_store()
