"""
Crawl orchestration: list-page discovery and detail fetch with change detection.

Discovery upserts lightweight `source_items` rows and fans out one detail job per item.
Detail fetches the raw payload, fingerprints it and only queues a sync when the payload is
new or changed. Audit rows go to `crawl_logs` on an autocommit connection so they survive a
rolled-back transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from phim_backend.db.store import StoreProvider
from phim_backend.ingestion.fingerprint import fingerprint
from phim_backend.ingestion.source_registry import RegisteredSource, SourceRegistry
from phim_backend.integrations.catalog import CatalogClientError, SourceCrawler
from phim_backend.integrations.catalog.client import DEFAULT_TIMEOUT_SECONDS
from phim_backend.jobs.queue import DETAIL_QUEUE, DISCOVER_QUEUE, SYNC_QUEUE, JobEnqueuer

logger = logging.getLogger(__name__)

DISCOVER_INTERVAL_SECONDS = 600

# code -> default base URL for a fresh install
SEED_SOURCES: dict[str, str] = {
    "ophim": "https://ophim1.com",
    "kkphim": "https://phimapi.com",
}


@dataclass(frozen=True)
class DiscoverResult:
    total: int
    upserted: int


@dataclass(frozen=True)
class DetailResult:
    ok: bool
    source_item_id: int | None = None
    changed: bool = False
    error: str | None = None


def discover_job_key(source_code: str) -> str:
    return f"discover-{source_code}"


def build_crawlers(
    registry: SourceRegistry, *, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
) -> dict[str, SourceCrawler]:
    """One HTTP crawler per enabled source."""
    return {
        source.code: SourceCrawler(source.config, timeout_seconds=timeout_seconds)
        for source in registry.enabled()
    }


class CrawlOrchestrator:
    def __init__(
        self,
        registry: SourceRegistry,
        stores: StoreProvider,
        jobs: JobEnqueuer,
        *,
        crawlers: Mapping[str, SourceCrawler] | None = None,
        discover_interval_seconds: int = DISCOVER_INTERVAL_SECONDS,
    ) -> None:
        self.registry = registry
        self.stores = stores
        self.jobs = jobs
        self.discover_interval_seconds = discover_interval_seconds
        if crawlers is None:
            crawlers = build_crawlers(registry)
        self._crawlers: dict[str, SourceCrawler] = dict(crawlers)

    def _crawler(self, source: RegisteredSource) -> SourceCrawler:
        crawler = self._crawlers.get(source.code)
        if crawler is None:
            raise RuntimeError(f"Crawler not available for {source.code}")
        return crawler

    # --- trigger surface ---

    def enqueue_discover(self, source_code: str, page: int = 1) -> int:
        self.registry.require(source_code)
        return self.jobs.enqueue(DISCOVER_QUEUE, {"source": source_code, "page": int(page)})

    def enqueue_detail(self, source_code: str, external_id: str) -> int:
        self.registry.require(source_code)
        return self.jobs.enqueue(DETAIL_QUEUE, {"source": source_code, "external_id": external_id})

    def ensure_repeatable_jobs(self) -> list[str]:
        """One standing page-1 discovery per enabled source, keyed so re-registration is a no-op."""
        keys: list[str] = []
        for source in self.registry.enabled():
            key = discover_job_key(source.code)
            self.jobs.schedule_repeating(
                DISCOVER_QUEUE,
                key,
                {"source": source.code, "page": 1},
                every_seconds=self.discover_interval_seconds,
            )
            keys.append(key)
        return keys

    # --- work ---

    def discover(self, source_code: str, page: int = 1) -> DiscoverResult:
        """
        Fetch one list page and upsert every item.

        A page fetch failure raises so the job is retried; a failing item is audited and skipped.
        """
        source = self.registry.require(source_code)
        items = self._crawler(source).discover(page)

        upserted = 0
        for item in items:
            if not item.external_id:
                continue
            try:
                with self.stores.transaction() as store:
                    source_item_id = store.upsert_discovered_item(source.source_id, item)
                if source_item_id is None:
                    continue
                upserted += 1
                self.jobs.enqueue(DETAIL_QUEUE, {"source": source_code, "external_id": item.external_id})
            except Exception as exc:
                logger.warning(
                    f"[CRAWL] discover item failed source={source_code} external_id={item.external_id} error={exc}"
                )
                self._audit(
                    "error",
                    "discover item failed",
                    {"source": source_code, "external_id": item.external_id, "error": str(exc)},
                )

        logger.info(f"[CRAWL] discover source={source_code} page={page} total={len(items)} upserted={upserted}")
        return DiscoverResult(total=len(items), upserted=upserted)

    def fetch_detail(self, source_code: str, external_id: str) -> DetailResult:
        """
        Fetch one detail payload and store it if it changed.

        new -> insert (`ok`) and queue sync; changed -> update payload/hash and queue sync;
        unchanged -> touch `last_crawled_at` only. Failures never raise: the item is marked
        `error`, audited, and a failed result is returned.
        """
        source = self.registry.require(source_code)
        try:
            payload = self._crawler(source).detail(external_id)
        except CatalogClientError as exc:
            logger.warning(
                f"[CRAWL] detail fetch failed source={source_code} external_id={external_id} "
                f"status={exc.status_code} error={exc}"
            )
            self._mark_item_error(source, external_id, exc, {"status": exc.status_code, "url": exc.url})
            return DetailResult(ok=False, error=str(exc))

        content_hash = fingerprint(payload)
        try:
            with self.stores.transaction() as store:
                existing = store.get_source_item(source.source_id, external_id)
                if existing is None:
                    source_item_id = store.insert_source_item_detail(
                        source.source_id, external_id, payload, content_hash
                    )
                    changed = True
                elif existing.content_hash != content_hash:
                    source_item_id = existing.id
                    store.update_source_item_detail(existing.id, payload, content_hash)
                    changed = True
                else:
                    source_item_id = existing.id
                    store.touch_source_item(existing.id)
                    changed = False
        except Exception as exc:
            logger.exception(f"[CRAWL] detail write failed source={source_code} external_id={external_id}")
            self._mark_item_error(source, external_id, exc, {"stage": "write"})
            return DetailResult(ok=False, error=str(exc))

        if changed:
            self.jobs.enqueue(SYNC_QUEUE, {"source_item_id": source_item_id})
        logger.info(
            f"[CRAWL] detail source={source_code} external_id={external_id} "
            f"source_item_id={source_item_id} changed={changed}"
        )
        return DetailResult(ok=True, source_item_id=source_item_id, changed=changed)

    # --- audit ---

    def _mark_item_error(
        self, source: RegisteredSource, external_id: str, error: Exception, meta: Mapping[str, Any]
    ) -> None:
        source_item_id: int | None = None
        try:
            with self.stores.autocommit() as store:
                existing = store.get_source_item(source.source_id, external_id)
                if existing is not None:
                    source_item_id = existing.id
                    store.mark_source_item_error(existing.id)
        except Exception as exc:
            logger.warning(f"[CRAWL] could not mark item error source={source.code} external_id={external_id}: {exc}")
        self._audit(
            "error",
            str(error) or "crawl error",
            {"source": source.code, "external_id": external_id, **meta},
            source_item_id=source_item_id,
        )

    def _audit(
        self,
        level: str,
        message: str,
        meta: Mapping[str, Any] | None = None,
        *,
        source_item_id: int | None = None,
    ) -> None:
        try:
            with self.stores.autocommit() as store:
                store.insert_crawl_log(level=level, message=message, meta=meta, source_item_id=source_item_id)
        except Exception as exc:
            logger.warning(f"[CRAWL] audit log write failed message={message!r}: {exc}")


def seed_sources(stores: StoreProvider, seeds: Mapping[str, str] | None = None) -> list[str]:
    """Ensure a `sources` row per known source. Existing rows keep their `base_url`."""
    seeded: list[str] = []
    with stores.transaction() as store:
        for code, base_url in (seeds or SEED_SOURCES).items():
            record = store.seed_source(code, base_url)
            logger.info(f"[CRAWL] source seeded code={record.code} id={record.id} base_url={record.base_url}")
            seeded.append(record.code)
    return seeded
