"""Queue name -> handler. Each handler receives the claimed job and raises to request a retry."""
from __future__ import annotations

import logging
from typing import Any, Callable

from phim_backend.ingestion.crawl_orchestrator import CrawlOrchestrator
from phim_backend.ingestion.sync_service import SyncService
from phim_backend.jobs.queue import DETAIL_QUEUE, DISCOVER_QUEUE, SYNC_QUEUE, JobRecord

logger = logging.getLogger(__name__)

JobHandler = Callable[[JobRecord], Any]


class InvalidJobPayloadError(ValueError):
    pass


def _require(payload: dict[str, Any], key: str) -> Any:
    value = payload.get(key)
    if value in (None, ""):
        raise InvalidJobPayloadError(f"Job payload is missing '{key}': {payload}")
    return value


def build_handlers(orchestrator: CrawlOrchestrator, sync_service: SyncService) -> dict[str, JobHandler]:
    def handle_discover(job: JobRecord) -> Any:
        source = str(_require(job.payload, "source"))
        page = int(job.payload.get("page") or 1)
        return orchestrator.discover(source, page)

    def handle_detail(job: JobRecord) -> Any:
        source = str(_require(job.payload, "source"))
        external_id = str(_require(job.payload, "external_id"))
        result = orchestrator.fetch_detail(source, external_id)
        if not result.ok:
            # already marked and audited; the next discovery pass re-queues the item
            logger.info(f"[CRAWL] detail job settled with error job_id={job.id} error={result.error}")
        return result

    def handle_sync(job: JobRecord) -> Any:
        source_item_id = int(_require(job.payload, "source_item_id"))
        return sync_service.sync_source_item(source_item_id)

    return {
        DISCOVER_QUEUE: handle_discover,
        DETAIL_QUEUE: handle_detail,
        SYNC_QUEUE: handle_sync,
    }
