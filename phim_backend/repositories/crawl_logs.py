from __future__ import annotations

from typing import Any, Mapping

from psycopg2.extras import Json

from phim_backend.repositories._sql import execute


class CrawlLogRepositoryError(RuntimeError):
    pass


LOG_LEVELS = frozenset({"info", "warn", "error"})


def _truncate(value: str, *, max_length: int = 1000) -> str:
    return value[: max(1, int(max_length))]


def insert_crawl_log(
    cur: Any,
    *,
    level: str,
    message: str,
    meta: Mapping[str, Any] | None = None,
    job_id: int | None = None,
    source_item_id: int | None = None,
) -> None:
    if level not in LOG_LEVELS:
        raise CrawlLogRepositoryError(f"Unsupported crawl log level: {level}")
    execute(
        cur,
        """
        INSERT INTO crawl_logs (job_id, source_item_id, level, message, meta)
        VALUES (%s, %s, %s, %s, %s)
        """,
        (job_id, source_item_id, level, _truncate(message or ""), Json(dict(meta)) if meta else None),
        error_cls=CrawlLogRepositoryError,
        context="writing crawl log",
    )
