from __future__ import annotations

from typing import Any

from phim_backend.models.sources import SourceRecord
from phim_backend.repositories._sql import execute, fetch_one


class SourceRepositoryError(RuntimeError):
    pass


def get_source_by_code(cur: Any, code: str) -> SourceRecord | None:
    row = fetch_one(
        cur,
        "SELECT id, code, base_url, is_active FROM sources WHERE code = %s LIMIT 1",
        (code,),
        error_cls=SourceRepositoryError,
        context=f"loading source {code}",
    )
    return SourceRecord.from_row(row) if row else None


def fill_source_base_url(cur: Any, source_id: int, base_url: str) -> None:
    """Populate `base_url` only while it is still empty; a stored URL is never repointed."""
    execute(
        cur,
        """
        UPDATE sources
        SET base_url = %s
        WHERE id = %s AND (base_url IS NULL OR base_url = '')
        """,
        (base_url, source_id),
        error_cls=SourceRepositoryError,
        context=f"filling base_url for source_id={source_id}",
    )


def seed_source(cur: Any, code: str, base_url: str) -> SourceRecord:
    row = fetch_one(
        cur,
        """
        INSERT INTO sources (code, base_url, is_active)
        VALUES (%s, %s, true)
        ON CONFLICT (code)
        DO UPDATE SET is_active = true
        RETURNING id, code, base_url, is_active
        """,
        (code, base_url),
        error_cls=SourceRepositoryError,
        context=f"seeding source {code}",
    )
    if not row:
        raise SourceRepositoryError(f"Seeding source {code} returned no row.")
    return SourceRecord.from_row(row)
