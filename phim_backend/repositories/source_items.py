from __future__ import annotations

from typing import Any

from psycopg2.extras import Json

from phim_backend.models.sources import DiscoveredItem, SourceItemRecord
from phim_backend.repositories._sql import execute, fetch_all, fetch_one, returning_id


class SourceItemRepositoryError(RuntimeError):
    pass


_SELECT_WITH_SOURCE = """
    SELECT si.*, s.code AS source_code
    FROM source_items si
    JOIN sources s ON s.id = si.source_id
"""


def upsert_discovered_item(cur: Any, source_id: int, item: DiscoveredItem) -> int | None:
    """
    Insert or refresh the lightweight fields discovery knows about.

    Payload, content hash and crawl status are left untouched on conflict; a new row starts
    as `unknown` until its detail fetch lands.
    """
    row = fetch_one(
        cur,
        """
        INSERT INTO source_items (source_id, external_id, external_url, type, title, year, crawl_status)
        VALUES (%s, %s, %s, %s, %s, %s, 'unknown')
        ON CONFLICT (source_id, external_id)
        DO UPDATE SET
            external_url = COALESCE(EXCLUDED.external_url, source_items.external_url),
            type = COALESCE(EXCLUDED.type, source_items.type),
            title = COALESCE(EXCLUDED.title, source_items.title),
            year = COALESCE(EXCLUDED.year, source_items.year)
        RETURNING id
        """,
        (source_id, item.external_id, item.external_url, item.type, item.title, item.year),
        error_cls=SourceItemRepositoryError,
        context=f"upserting discovered item {item.external_id}",
    )
    return int(row["id"]) if row and row.get("id") is not None else None


def get_source_item(cur: Any, source_id: int, external_id: str) -> SourceItemRecord | None:
    row = fetch_one(
        cur,
        _SELECT_WITH_SOURCE + " WHERE si.source_id = %s AND si.external_id = %s LIMIT 1",
        (source_id, external_id),
        error_cls=SourceItemRepositoryError,
        context=f"loading source item {external_id}",
    )
    return SourceItemRecord.from_row(row) if row else None


def get_source_item_by_id(cur: Any, source_item_id: int) -> SourceItemRecord | None:
    row = fetch_one(
        cur,
        _SELECT_WITH_SOURCE + " WHERE si.id = %s",
        (source_item_id,),
        error_cls=SourceItemRepositoryError,
        context=f"loading source_item_id={source_item_id}",
    )
    return SourceItemRecord.from_row(row) if row else None


def insert_source_item_detail(cur: Any, source_id: int, external_id: str, payload: Any, content_hash: str) -> int:
    row = fetch_one(
        cur,
        """
        INSERT INTO source_items (source_id, external_id, payload, content_hash, crawl_status, last_crawled_at)
        VALUES (%s, %s, %s, %s, 'ok', NOW())
        ON CONFLICT (source_id, external_id)
        DO UPDATE SET
            payload = EXCLUDED.payload,
            content_hash = EXCLUDED.content_hash,
            crawl_status = 'ok',
            last_crawled_at = NOW()
        RETURNING id
        """,
        (source_id, external_id, Json(payload), content_hash),
        error_cls=SourceItemRepositoryError,
        context=f"inserting source item {external_id}",
    )
    return returning_id(row, error_cls=SourceItemRepositoryError, context=f"source item {external_id}")


def update_source_item_detail(cur: Any, source_item_id: int, payload: Any, content_hash: str) -> None:
    execute(
        cur,
        """
        UPDATE source_items
        SET payload = %s,
            content_hash = %s,
            crawl_status = 'ok',
            last_crawled_at = NOW()
        WHERE id = %s
        """,
        (Json(payload), content_hash, source_item_id),
        error_cls=SourceItemRepositoryError,
        context=f"updating source_item_id={source_item_id}",
    )


def touch_source_item(cur: Any, source_item_id: int) -> None:
    execute(
        cur,
        "UPDATE source_items SET last_crawled_at = NOW() WHERE id = %s",
        (source_item_id,),
        error_cls=SourceItemRepositoryError,
        context=f"touching source_item_id={source_item_id}",
    )


def mark_source_item_error(cur: Any, source_item_id: int) -> None:
    execute(
        cur,
        "UPDATE source_items SET crawl_status = 'error' WHERE id = %s",
        (source_item_id,),
        error_cls=SourceItemRepositoryError,
        context=f"marking source_item_id={source_item_id} as error",
    )


def list_merge_candidates(cur: Any, movie_id: int) -> list[SourceItemRecord]:
    """Source items mapped to `movie_id` that finished a detail crawl with a payload."""
    rows = fetch_all(
        cur,
        """
        SELECT si.*, s.code AS source_code
        FROM movie_source_map msm
        JOIN source_items si ON si.id = msm.source_item_id
        JOIN sources s ON s.id = si.source_id
        WHERE msm.movie_id = %s
          AND si.crawl_status = 'ok'
          AND si.payload IS NOT NULL
        ORDER BY si.id
        """,
        (movie_id,),
        error_cls=SourceItemRepositoryError,
        context=f"listing merge candidates for movie_id={movie_id}",
    )
    return [SourceItemRecord.from_row(r) for r in rows]
