"""
Dependency injection for the pipeline services.

The pipeline (DB pool, source registry, crawlers) is built lazily on first use and shared by
every request.
"""
from __future__ import annotations

import logging
import threading
from typing import Annotated

from fastapi import Depends

from phim_backend.ingestion.crawl_orchestrator import CrawlOrchestrator
from phim_backend.ingestion.sync_service import SyncService
from phim_backend.runtime import Pipeline, build_pipeline
from phim_backend.utils.env import load_env

logger = logging.getLogger(__name__)

_pipeline: Pipeline | None = None
_pipeline_lock = threading.Lock()


def get_pipeline() -> Pipeline:
    global _pipeline
    with _pipeline_lock:
        if _pipeline is None:
            load_env()
            _pipeline = build_pipeline()
        return _pipeline


def shutdown_pipeline() -> None:
    global _pipeline
    with _pipeline_lock:
        if _pipeline is not None:
            _pipeline.close()
            _pipeline = None


def get_orchestrator() -> CrawlOrchestrator:
    return get_pipeline().orchestrator


def get_sync_service() -> SyncService:
    return get_pipeline().sync


# Type aliases for dependency injection
Orchestrator = Annotated[CrawlOrchestrator, Depends(get_orchestrator)]
Syncer = Annotated[SyncService, Depends(get_sync_service)]
