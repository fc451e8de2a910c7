from __future__ import annotations

from typing import Any, Sequence

import psycopg2


def execute(cur: Any, sql: str, params: Sequence[Any] | None, *, error_cls: type[RuntimeError], context: str) -> None:
    try:
        cur.execute(sql, params)
    except psycopg2.Error as exc:
        raise error_cls(f"Database error during {context}: {exc}") from exc


def fetch_one(
    cur: Any,
    sql: str,
    params: Sequence[Any] | None,
    *,
    error_cls: type[RuntimeError],
    context: str,
) -> dict[str, Any] | None:
    execute(cur, sql, params, error_cls=error_cls, context=context)
    row = cur.fetchone()
    return dict(row) if row else None


def fetch_all(
    cur: Any,
    sql: str,
    params: Sequence[Any] | None,
    *,
    error_cls: type[RuntimeError],
    context: str,
) -> list[dict[str, Any]]:
    execute(cur, sql, params, error_cls=error_cls, context=context)
    rows = cur.fetchall() or []
    return [dict(r) for r in rows]


def returning_id(row: dict[str, Any] | None, *, error_cls: type[RuntimeError], context: str) -> int:
    if not row or row.get("id") is None:
        raise error_cls(f"Database returned no id for {context}.")
    return int(row["id"])
