"""
Wiring for entrypoints (API app, scripts, workers).

Everything is built once per process and passed explicitly; nothing here is a module global.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from phim_backend.config import Settings, load_settings
from phim_backend.db.connection import Database
from phim_backend.db.store import PostgresStoreProvider
from phim_backend.ingestion.adapters import AdapterRegistry, default_adapter_registry
from phim_backend.ingestion.crawl_orchestrator import CrawlOrchestrator, build_crawlers
from phim_backend.ingestion.source_registry import SourceRegistry
from phim_backend.ingestion.sync_service import SyncService
from phim_backend.jobs.handlers import build_handlers
from phim_backend.jobs.queue import JobQueue
from phim_backend.jobs.worker import WorkerPool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Pipeline:
    settings: Settings
    database: Database
    stores: PostgresStoreProvider
    adapters: AdapterRegistry
    registry: SourceRegistry
    jobs: JobQueue
    orchestrator: CrawlOrchestrator
    sync: SyncService

    def worker_pool(self) -> WorkerPool:
        handlers = build_handlers(self.orchestrator, self.sync)
        return WorkerPool(self.jobs, handlers, self.settings, audit=self.stores)

    def close(self) -> None:
        self.database.close()


def build_pipeline(settings: Settings | None = None, database: Database | None = None) -> Pipeline:
    settings = settings or load_settings()
    if database is None:
        # job connections plus headroom for pollers and audit writes
        busy = sum(q.concurrency for q in (settings.discover_queue, settings.detail_queue, settings.sync_queue))
        database = Database(max_connections=busy * 2 + 4)
    stores = PostgresStoreProvider(database)
    registry = SourceRegistry.build(settings.sources, stores)
    crawlers = build_crawlers(registry, timeout_seconds=settings.http_timeout_seconds)
    jobs = JobQueue(database, settings)
    adapters = default_adapter_registry()

    enabled = [s.code for s in registry.enabled()]
    logger.info(f"[CRAWL] pipeline ready enabled_sources={enabled}")
    return Pipeline(
        settings=settings,
        database=database,
        stores=stores,
        adapters=adapters,
        registry=registry,
        jobs=jobs,
        orchestrator=CrawlOrchestrator(
            registry,
            stores,
            jobs,
            crawlers=crawlers,
            discover_interval_seconds=settings.discover_interval_seconds,
        ),
        sync=SyncService(stores, adapters, crawlers=crawlers),
    )
