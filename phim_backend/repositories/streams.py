from __future__ import annotations

from typing import Any, Iterable

from psycopg2.extras import Json

from phim_backend.repositories._sql import execute, fetch_one, returning_id


class StreamRepositoryError(RuntimeError):
    pass


def upsert_video_server(cur: Any, episode_id: int, name: str, *, kind: str, priority: int) -> int:
    row = fetch_one(
        cur,
        """
        INSERT INTO video_servers (episode_id, name, kind, priority, is_active)
        VALUES (%s, %s, %s, %s, true)
        ON CONFLICT (episode_id, name)
        DO UPDATE SET kind = EXCLUDED.kind, priority = EXCLUDED.priority, is_active = true
        RETURNING id
        """,
        (episode_id, name, kind, priority),
        error_cls=StreamRepositoryError,
        context=f"upserting server {name!r} for episode_id={episode_id}",
    )
    return returning_id(row, error_cls=StreamRepositoryError, context=f"server {name!r}")


def upsert_video_stream(
    cur: Any,
    server_id: int,
    *,
    checksum: str,
    label: str,
    url: str,
    headers: dict[str, str] | None,
    priority: int,
) -> int:
    row = fetch_one(
        cur,
        """
        INSERT INTO video_streams (server_id, label, url, headers, priority, is_active, checksum)
        VALUES (%s, %s, %s, %s, %s, true, %s)
        ON CONFLICT (server_id, checksum)
        DO UPDATE SET
            label = EXCLUDED.label,
            url = EXCLUDED.url,
            headers = EXCLUDED.headers,
            priority = EXCLUDED.priority,
            is_active = true
        RETURNING id
        """,
        (server_id, label, url, Json(headers) if headers else None, priority, checksum),
        error_cls=StreamRepositoryError,
        context=f"upserting stream for server_id={server_id}",
    )
    return returning_id(row, error_cls=StreamRepositoryError, context=f"stream server_id={server_id}")


def deactivate_streams_except(cur: Any, server_id: int, checksums: Iterable[str]) -> int:
    """
    Soft-delete every stream of `server_id` whose checksum is not in `checksums`.

    Rows are kept with `is_active = false`; nothing is removed.
    """
    keep = sorted({c for c in checksums if c})
    if keep:
        sql = """
            UPDATE video_streams
            SET is_active = false
            WHERE server_id = %s AND is_active AND NOT (checksum = ANY(%s))
        """
        params: tuple[Any, ...] = (server_id, keep)
    else:
        sql = "UPDATE video_streams SET is_active = false WHERE server_id = %s AND is_active"
        params = (server_id,)
    execute(cur, sql, params, error_cls=StreamRepositoryError, context=f"deactivating streams for server_id={server_id}")
    return int(getattr(cur, "rowcount", 0) or 0)
