from __future__ import annotations

import logging

from phim_backend.ingestion.crawl_orchestrator import CrawlOrchestrator
from phim_backend.jobs.queue import QUEUE_NAMES, JobQueue

logger = logging.getLogger(__name__)


def prepare_queues(queue: JobQueue, orchestrator: CrawlOrchestrator) -> list[str]:
    """
    Worker startup: hand back jobs orphaned by a crashed worker, then make sure every enabled
    source has its standing discovery job. Safe to run on every start.
    """
    for name in QUEUE_NAMES:
        queue.release_stale(name)
    keys = orchestrator.ensure_repeatable_jobs()
    logger.info(f"[JOBS] repeating discovery scheduled keys={keys}")
    return keys
