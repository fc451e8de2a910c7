"""
Catalog store: the repository functions bound to one cursor.

Pipeline services talk to a `CatalogStore` obtained from a `StoreProvider`, so a single
sync runs every read and write against the same transaction.
"""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Any, Iterable, Mapping, Protocol

from phim_backend.db.connection import Database
from phim_backend.models.sources import DiscoveredItem, SourceItemRecord, SourceRecord
from phim_backend.repositories import (
    crawl_logs,
    episodes,
    movies,
    people,
    seasons,
    source_items,
    sources,
    streams,
    taxonomies,
)


class CatalogStore:
    def __init__(self, cur: Any) -> None:
        self.cur = cur

    # --- sources ---

    def get_source_by_code(self, code: str) -> SourceRecord | None:
        return sources.get_source_by_code(self.cur, code)

    def fill_source_base_url(self, source_id: int, base_url: str) -> None:
        sources.fill_source_base_url(self.cur, source_id, base_url)

    def seed_source(self, code: str, base_url: str) -> SourceRecord:
        return sources.seed_source(self.cur, code, base_url)

    # --- source items ---

    def upsert_discovered_item(self, source_id: int, item: DiscoveredItem) -> int | None:
        return source_items.upsert_discovered_item(self.cur, source_id, item)

    def get_source_item(self, source_id: int, external_id: str) -> SourceItemRecord | None:
        return source_items.get_source_item(self.cur, source_id, external_id)

    def get_source_item_by_id(self, source_item_id: int) -> SourceItemRecord | None:
        return source_items.get_source_item_by_id(self.cur, source_item_id)

    def insert_source_item_detail(self, source_id: int, external_id: str, payload: Any, content_hash: str) -> int:
        return source_items.insert_source_item_detail(self.cur, source_id, external_id, payload, content_hash)

    def update_source_item_detail(self, source_item_id: int, payload: Any, content_hash: str) -> None:
        source_items.update_source_item_detail(self.cur, source_item_id, payload, content_hash)

    def touch_source_item(self, source_item_id: int) -> None:
        source_items.touch_source_item(self.cur, source_item_id)

    def mark_source_item_error(self, source_item_id: int) -> None:
        source_items.mark_source_item_error(self.cur, source_item_id)

    def list_merge_candidates(self, movie_id: int) -> list[SourceItemRecord]:
        return source_items.list_merge_candidates(self.cur, movie_id)

    # --- movies ---

    def find_movie_id_by_imdb_id(self, imdb_id: str) -> int | None:
        return movies.find_movie_id_by_imdb_id(self.cur, imdb_id)

    def find_movie_id_by_tmdb_id(self, tmdb_id: str) -> int | None:
        return movies.find_movie_id_by_tmdb_id(self.cur, tmdb_id)

    def list_movie_titles_by_year(self, year: int) -> list[dict[str, Any]]:
        return movies.list_movie_titles_by_year(self.cur, year)

    def slug_exists(self, slug: str) -> bool:
        return movies.slug_exists(self.cur, slug)

    def insert_movie(self, slug: str, values: Mapping[str, Any]) -> int:
        return movies.insert_movie(self.cur, slug, values)

    def update_movie_fields(self, movie_id: int, values: Mapping[str, Any]) -> None:
        movies.update_movie_fields(self.cur, movie_id, values)

    def touch_movie(self, movie_id: int) -> None:
        movies.touch_movie(self.cur, movie_id)

    def upsert_movie_source_map(self, movie_id: int, source_item_id: int, matched_by: str) -> None:
        movies.upsert_movie_source_map(self.cur, movie_id, source_item_id, matched_by)

    def enqueue_movie_search(self, movie_id: int, reason: str) -> None:
        movies.enqueue_movie_search(self.cur, movie_id, reason)

    # --- taxonomies ---

    def upsert_taxonomy_by_slug(self, table: str, name: str, slug: str) -> int:
        return taxonomies.upsert_taxonomy_by_slug(self.cur, table, name, slug)

    def upsert_country(self, name: str, code: str | None) -> int:
        return taxonomies.upsert_country(self.cur, name, code)

    def link_movie_taxonomy(self, link_table: str, movie_id: int, ids: Iterable[int]) -> None:
        taxonomies.link_movie_taxonomy(self.cur, link_table, movie_id, ids)

    # --- people ---

    def upsert_person(self, name: str, slug: str, *, avatar_url: str | None = None, bio: str | None = None) -> int:
        return people.upsert_person(self.cur, name, slug, avatar_url=avatar_url, bio=bio)

    def find_person_id_by_name(self, name: str) -> int | None:
        return people.find_person_id_by_name(self.cur, name)

    def fill_person_avatar(self, person_id: int, avatar_url: str) -> None:
        people.fill_person_avatar(self.cur, person_id, avatar_url)

    def link_movie_person(
        self,
        movie_id: int,
        person_id: int,
        role_type: str,
        *,
        character_name: str | None = None,
        order_index: int = 0,
    ) -> None:
        people.link_movie_person(
            self.cur,
            movie_id,
            person_id,
            role_type,
            character_name=character_name,
            order_index=order_index,
        )

    # --- seasons / episodes / streams ---

    def upsert_season(self, movie_id: int, season_number: int) -> int:
        return seasons.upsert_season(self.cur, movie_id, season_number)

    def upsert_episode(self, movie_id: int, season_id: int, episode_number: int, name: str | None) -> int:
        return episodes.upsert_episode(self.cur, movie_id, season_id, episode_number, name)

    def upsert_video_server(self, episode_id: int, name: str, *, kind: str, priority: int) -> int:
        return streams.upsert_video_server(self.cur, episode_id, name, kind=kind, priority=priority)

    def upsert_video_stream(
        self,
        server_id: int,
        *,
        checksum: str,
        label: str,
        url: str,
        headers: dict[str, str] | None,
        priority: int,
    ) -> int:
        return streams.upsert_video_stream(
            self.cur,
            server_id,
            checksum=checksum,
            label=label,
            url=url,
            headers=headers,
            priority=priority,
        )

    def deactivate_streams_except(self, server_id: int, checksums: Iterable[str]) -> int:
        return streams.deactivate_streams_except(self.cur, server_id, checksums)

    # --- audit ---

    def insert_crawl_log(
        self,
        *,
        level: str,
        message: str,
        meta: Mapping[str, Any] | None = None,
        job_id: int | None = None,
        source_item_id: int | None = None,
    ) -> None:
        crawl_logs.insert_crawl_log(
            self.cur,
            level=level,
            message=message,
            meta=meta,
            job_id=job_id,
            source_item_id=source_item_id,
        )


class StoreProvider(Protocol):
    def transaction(self) -> AbstractContextManager[CatalogStore]: ...

    def autocommit(self) -> AbstractContextManager[CatalogStore]: ...


class PostgresStoreProvider:
    """Hands out `CatalogStore`s backed by pooled psycopg2 connections."""

    def __init__(self, database: Database) -> None:
        self.database = database

    @contextmanager
    def transaction(self) -> Iterator[CatalogStore]:
        with self.database.transaction() as cur:
            yield CatalogStore(cur)

    @contextmanager
    def autocommit(self) -> Iterator[CatalogStore]:
        with self.database.autocommit() as cur:
            yield CatalogStore(cur)
