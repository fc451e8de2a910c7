from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from api.deps import Syncer

router = APIRouter(prefix="/sync", tags=["sync"])


class SyncSummary(BaseModel):
    source_item_id: int
    movie_id: int
    matched_by: str


@router.post("/source-items/{source_item_id}", response_model=SyncSummary)
def trigger_sync(sync_service: Syncer, source_item_id: int) -> SyncSummary:
    """Synchronously sync one source item into the catalog."""
    result = sync_service.sync_source_item(source_item_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Source item not found")
    return SyncSummary(source_item_id=source_item_id, movie_id=result.movie_id, matched_by=result.matched_by)
