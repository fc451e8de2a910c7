"""
Crawl triggers: queue (default) or run inline a discovery page or a single detail fetch.
"""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from api.deps import Orchestrator
from phim_backend.ingestion.source_registry import SourceDisabledError
from phim_backend.integrations.catalog import CatalogClientError

router = APIRouter(prefix="/crawl", tags=["crawl"])


# --- Pydantic models ---

class QueuedJob(BaseModel):
    queued: bool = True
    job_id: int


class DiscoverSummary(BaseModel):
    source: str
    page: int
    total: int
    upserted: int


class DetailSummary(BaseModel):
    ok: bool
    source_item_id: int | None = None
    changed: bool = False
    error: str | None = None


# --- Endpoints ---

@router.post("/{source}/discover", response_model=QueuedJob | DiscoverSummary)
def trigger_discover(
    orchestrator: Orchestrator,
    source: str,
    page: int = Query(default=1, ge=1),
    inline: bool = Query(default=False),
) -> QueuedJob | DiscoverSummary:
    """Queue a discovery pass over one list page, or run it now with `inline=true`."""
    try:
        if not inline:
            return QueuedJob(job_id=orchestrator.enqueue_discover(source, page))
        result = orchestrator.discover(source, page)
    except SourceDisabledError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except CatalogClientError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return DiscoverSummary(source=source, page=page, total=result.total, upserted=result.upserted)


@router.post("/{source}/detail/{external_id}", response_model=QueuedJob | DetailSummary)
def trigger_detail(
    orchestrator: Orchestrator,
    source: str,
    external_id: str,
    inline: bool = Query(default=False),
) -> QueuedJob | DetailSummary:
    """Queue a detail fetch for one item, or run it now with `inline=true`."""
    try:
        if not inline:
            return QueuedJob(job_id=orchestrator.enqueue_detail(source, external_id))
        result = orchestrator.fetch_detail(source, external_id)
    except SourceDisabledError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return DetailSummary(
        ok=result.ok,
        source_item_id=result.source_item_id,
        changed=result.changed,
        error=result.error,
    )
