"""Tests for the change log API (router layer).

Routes are exercised through httpx with the store dependency overridden by
an in-memory store, so no database is needed. The application factory is
tested separately against a temporary SQLite file.

Tests verify:
- HTTP status codes
- Response schema shapes
- Diff decoding
- Store failures mapped to 503
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from aumos_change_tracker.adapters.inmemory import InMemoryChangeLogStore
from aumos_change_tracker.adapters.sql_store import get_change_log_store
from aumos_change_tracker.api.router import router
from aumos_change_tracker.core.records import ChangeLogRecord
from aumos_change_tracker.core.tracker import ChangeTracker
from aumos_change_tracker.errors import StoreError
from aumos_change_tracker.main import create_app
from aumos_change_tracker.settings import Settings
from tests.conftest import make_widget


@pytest.fixture()
def test_app(log_store: InMemoryChangeLogStore) -> FastAPI:
    """Create a FastAPI test app reading from the in-memory store.

    Args:
        log_store: Injected in-memory store fixture.

    Returns:
        FastAPI app with the store dependency overridden.
    """
    app = FastAPI()
    app.include_router(router, prefix="/api/v1")
    app.dependency_overrides[get_change_log_store] = lambda: log_store
    return app


def record_history(tracker: ChangeTracker) -> list[ChangeLogRecord]:
    """Create, rename, re-read and reprice widget 1 through the tracker."""
    widget = make_widget(name="a", price=1.0)
    tracker.on_create(widget)
    widget.name = "b"
    tracker.on_update(widget)
    tracker.on_read(widget)
    widget.price = 2.5
    tracker.on_update(widget)
    return tracker.get_records("1")


class TestListChangeLogs:
    """Tests for GET /change-logs/{object_id}."""

    @pytest.mark.asyncio()
    async def test_returns_history_oldest_first(self, test_app: FastAPI, tracker: ChangeTracker) -> None:
        """The audit trail is returned in order with decoded diffs."""
        records = record_history(tracker)

        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            response = await client.get("/api/v1/change-logs/1")

        assert response.status_code == 200
        body = response.json()
        assert body["object_id"] == "1"
        assert body["total"] == 3
        assert [e["action"] for e in body["entries"]] == ["create", "update", "update"]
        assert [e["id"] for e in body["entries"]] == [str(r.id) for r in records]
        assert body["entries"][0]["diff"] is None
        assert body["entries"][1]["diff"] == {"name": {"old": "a", "new": "b"}}

    @pytest.mark.asyncio()
    async def test_unknown_object_returns_empty_list(self, test_app: FastAPI) -> None:
        """An object without change logs is not an error."""
        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            response = await client.get("/api/v1/change-logs/unknown")

        assert response.status_code == 200
        assert response.json() == {"object_id": "unknown", "entries": [], "total": 0}

    @pytest.mark.asyncio()
    async def test_store_failure_returns_503(self, test_app: FastAPI) -> None:
        failing = MagicMock()
        failing.query_by_object_id.side_effect = StoreError("database unavailable")
        test_app.dependency_overrides[get_change_log_store] = lambda: failing

        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            response = await client.get("/api/v1/change-logs/1")

        assert response.status_code == 503


class TestLatestChangeLog:
    """Tests for GET /change-logs/{object_id}/latest and /latest/diff."""

    @pytest.mark.asyncio()
    async def test_latest_returns_newest_record(self, test_app: FastAPI, tracker: ChangeTracker) -> None:
        records = record_history(tracker)

        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            response = await client.get("/api/v1/change-logs/1/latest")

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == str(records[-1].id)
        assert body["object_type"] == "Widget"
        assert body["diff"] == {"price": {"old": 1.0, "new": 2.5}}

    @pytest.mark.asyncio()
    async def test_latest_unknown_object_returns_404(self, test_app: FastAPI) -> None:
        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            response = await client.get("/api/v1/change-logs/unknown/latest")

        assert response.status_code == 404
        assert response.json()["detail"] == "No change logs for object unknown"

    @pytest.mark.asyncio()
    async def test_latest_diff(self, test_app: FastAPI, tracker: ChangeTracker) -> None:
        records = record_history(tracker)

        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            response = await client.get("/api/v1/change-logs/1/latest/diff")

        assert response.status_code == 200
        assert response.json() == {
            "object_id": "1",
            "change_log_id": str(records[-1].id),
            "diff": {"price": {"old": 1.0, "new": 2.5}},
        }

    @pytest.mark.asyncio()
    async def test_latest_diff_of_delete_is_null(self, test_app: FastAPI, tracker: ChangeTracker) -> None:
        tracker.on_delete(make_widget())

        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            response = await client.get("/api/v1/change-logs/1/latest/diff")

        assert response.status_code == 200
        assert response.json()["diff"] is None

    @pytest.mark.asyncio()
    async def test_corrupt_diff_returns_500(self, test_app: FastAPI, log_store: InMemoryChangeLogStore) -> None:
        log_store.append(
            ChangeLogRecord(
                action="update",
                object_id="9",
                object_type="Widget",
                raw_object="{}",
                raw_diff="[1, 2]",
            )
        )

        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            response = await client.get("/api/v1/change-logs/9/latest/diff")

        assert response.status_code == 500


class TestCreateApp:
    """Tests for the application factory and its lifespan."""

    @pytest.mark.asyncio()
    async def test_lifespan_opens_and_closes_store(self, tmp_path: Path) -> None:
        """Startup initializes the SQL store; shutdown disposes it."""
        settings = Settings(database_url=f"sqlite:///{tmp_path / 'change_logs.db'}", log_level="warning")
        app = create_app(settings)

        async with app.router.lifespan_context(app):
            get_change_log_store().append(
                ChangeLogRecord(action="create", object_id="1", object_type="Widget", raw_object='{"id":1}')
            )
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.get("/api/v1/change-logs/1")

        assert response.status_code == 200
        assert response.json()["total"] == 1
        with pytest.raises(RuntimeError):
            get_change_log_store()
