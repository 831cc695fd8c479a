"""FastAPI routes for reading the change log.

Routes:
    GET /change-logs/{object_id}              audit trail of an object
    GET /change-logs/{object_id}/latest       most recent change log
    GET /change-logs/{object_id}/latest/diff  diff of the most recent change log
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from aumos_change_tracker.adapters.sql_store import get_change_log_store
from aumos_change_tracker.api.schemas import ChangeLogListResponse, ChangeLogResponse, DiffResponse
from aumos_change_tracker.core.interfaces import IChangeLogStore
from aumos_change_tracker.core.records import ChangeLogRecord
from aumos_change_tracker.errors import DeserializationError, NotFoundError, StoreError

router = APIRouter(prefix="/change-logs", tags=["Change Logs"])

StoreDep = Annotated[IChangeLogStore, Depends(get_change_log_store)]


def _latest(store: IChangeLogStore, object_id: str) -> ChangeLogRecord:
    try:
        return store.most_recent_by_object_id(object_id)
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No change logs for object {object_id}",
        ) from exc
    except StoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


def _to_response(record: ChangeLogRecord) -> ChangeLogResponse:
    try:
        return ChangeLogResponse.from_record(record)
    except DeserializationError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


@router.get(
    "/{object_id}",
    response_model=ChangeLogListResponse,
    status_code=status.HTTP_200_OK,
    summary="List the change logs of an object",
)
def list_change_logs(object_id: str, store: StoreDep) -> ChangeLogListResponse:
    """Return every change log for an object id, oldest first.

    An object without change logs yields an empty list, not a 404.
    """
    try:
        records = store.query_by_object_id(object_id)
    except StoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    entries = [_to_response(record) for record in records]
    return ChangeLogListResponse(object_id=object_id, entries=entries, total=len(entries))


@router.get(
    "/{object_id}/latest",
    response_model=ChangeLogResponse,
    status_code=status.HTTP_200_OK,
    summary="Get the most recent change log of an object",
)
def get_latest_change_log(object_id: str, store: StoreDep) -> ChangeLogResponse:
    """Return the newest change log for an object id.

    Raises:
        HTTPException 404: If the object has no change logs.
    """
    return _to_response(_latest(store, object_id))


@router.get(
    "/{object_id}/latest/diff",
    response_model=DiffResponse,
    status_code=status.HTTP_200_OK,
    summary="Get the diff of the most recent change log",
)
def get_latest_diff(object_id: str, store: StoreDep) -> DiffResponse:
    """Return the decoded diff of the newest change log.

    diff is null for creates, deletes and updates logged without a baseline.
    """
    record = _latest(store, object_id)
    try:
        diff = record.parse_diff()
    except DeserializationError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return DiffResponse(object_id=object_id, change_log_id=record.id, diff=diff)  # type: ignore[arg-type]
