"""
Sync one crawled source item into the canonical catalog.

Flow: load item -> normalize -> (transaction: match/create movie, map, merge all mapped
sources, write graph) -> commit -> best-effort search refresh.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from phim_backend.db.store import StoreProvider
from phim_backend.ingestion.adapters import AdapterRegistry
from phim_backend.ingestion.graph_writer import apply_merged, create_movie
from phim_backend.ingestion.matcher import MATCHED_BY_OTHER, find_movie_match
from phim_backend.ingestion.merger import MergeUnavailableError, build_merged_normalized
from phim_backend.integrations.catalog import CatalogClientError, SourceCrawler
from phim_backend.models.normalized import ExternalPerson
from phim_backend.models.sources import SourceItemRecord

logger = logging.getLogger(__name__)

SEARCH_REASON = "sync"


@dataclass(frozen=True)
class SyncResult:
    movie_id: int
    matched_by: str


class SyncService:
    def __init__(
        self,
        stores: StoreProvider,
        adapters: AdapterRegistry,
        *,
        crawlers: Mapping[str, SourceCrawler] | None = None,
    ) -> None:
        self.stores = stores
        self.adapters = adapters
        self.crawlers = dict(crawlers or {})

    def sync_source_item(self, source_item_id: int) -> SyncResult | None:
        """
        Returns None when the item does not exist. Adapter and write failures propagate so
        the sync job is retried.
        """
        logger.info(f"[SYNC] start source_item={source_item_id}")
        with self.stores.autocommit() as store:
            item = store.get_source_item_by_id(source_item_id)
        if item is None:
            logger.warning(f"[SYNC] source item not found source_item={source_item_id}")
            return None

        adapter = self.adapters.resolve(item.source_code)
        normalized = adapter.normalize(item.payload, item)
        external_people = self._fetch_external_people(item)
        logger.info(
            f"[SYNC] normalized source_item={source_item_id} seasons={len(normalized.seasons)} "
            f"eps={normalized.episode_count()}"
        )

        with self.stores.transaction() as store:
            match = find_movie_match(store, normalized)
            if match is not None:
                movie_id, matched_by = match.movie_id, match.matched_by
            else:
                movie_id, matched_by = create_movie(store, normalized), MATCHED_BY_OTHER
            store.upsert_movie_source_map(movie_id, item.id, matched_by)

            try:
                merged = build_merged_normalized(store, movie_id, self.adapters)
            except MergeUnavailableError as exc:
                logger.warning(f"[SYNC] merge skipped movie_id={movie_id} reason={exc}")
                merged = normalized

            apply_merged(store, movie_id, merged, external_people=external_people)

        self._enqueue_search(movie_id)
        logger.info(f"[SYNC] done source_item={source_item_id} movie_id={movie_id} matched_by={matched_by}")
        return SyncResult(movie_id=movie_id, matched_by=matched_by)

    def _fetch_external_people(self, item: SourceItemRecord) -> list[ExternalPerson]:
        crawler = self.crawlers.get(item.source_code)
        if crawler is None or not item.external_id:
            return []
        try:
            return crawler.fetch_people(item.external_id)
        except CatalogClientError as exc:
            logger.warning(f"[SYNC] people fetch failed source={item.source_code} slug={item.external_id} error={exc}")
            return []

    def _enqueue_search(self, movie_id: int) -> None:
        try:
            with self.stores.autocommit() as store:
                store.enqueue_movie_search(movie_id, SEARCH_REASON)
        except Exception as exc:
            logger.warning(f"[SYNC] enqueue_movie_search unavailable movie_id={movie_id}: {exc}")
