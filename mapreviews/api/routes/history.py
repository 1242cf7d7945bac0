"""History endpoints for the mapreviews API."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from mapreviews.api.dependencies import get_history_store
from mapreviews.api.models import ErrorResponse, HistoryListResponse, HistorySummary
from mapreviews.delivery.history import HistoryStore

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/history", tags=["History"])


@router.get(
    "",
    response_model=HistoryListResponse,
    summary="List past runs",
)
async def list_history(
    store: HistoryStore = Depends(get_history_store),
) -> HistoryListResponse:
    """Saved runs, newest first, without their results."""
    entries = store.list_entries()
    return HistoryListResponse(
        entries=[
            HistorySummary.model_validate(entry.model_dump(exclude={"results"}))
            for entry in entries
        ],
        total=len(entries),
    )


@router.get(
    "/{entry_id}",
    summary="Load a past run",
    responses={404: {"model": ErrorResponse, "description": "Entry not found"}},
)
async def get_history_entry(
    entry_id: str,
    store: HistoryStore = Depends(get_history_store),
) -> JSONResponse:
    entry = store.get(entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"History entry {entry_id} not found")
    return JSONResponse(content=entry.to_json_dict())


@router.delete(
    "/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a past run",
    responses={404: {"model": ErrorResponse, "description": "Entry not found"}},
)
async def delete_history_entry(
    entry_id: str,
    store: HistoryStore = Depends(get_history_store),
) -> None:
    if not store.delete(entry_id):
        raise HTTPException(status_code=404, detail=f"History entry {entry_id} not found")
    logger.info("history_entry_deleted", entry_id=entry_id)


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Clear history",
)
async def clear_history(
    store: HistoryStore = Depends(get_history_store),
) -> None:
    store.clear()
