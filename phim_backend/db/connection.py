"""
Unified database connection resolution and pooled transaction scopes.

Every write path in the pipeline goes through `Database.transaction()`, which commits on
normal exit and rolls back on any exception before handing the connection back to the pool.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

logger = logging.getLogger(__name__)


class DatabaseConnectionError(RuntimeError):
    """Raised when database connection cannot be established."""

    pass


def resolve_database_url() -> str:
    """
    Resolve the database URL using a prioritized lookup.

    Priority order:
    1. PHIM_DB_URL - Explicit pipeline database URL
    2. DATABASE_URL - Standard Postgres connection string

    Raises:
        DatabaseConnectionError: If no valid database URL can be resolved.
    """
    url = (os.getenv("PHIM_DB_URL") or "").strip()
    if url:
        return url

    url = (os.getenv("DATABASE_URL") or "").strip()
    if url:
        return url

    raise DatabaseConnectionError(
        "No database URL configured.\n\n"
        "Set PHIM_DB_URL (or DATABASE_URL) to a Postgres connection string.\n"
        "  Example: postgresql://phim:<password>@localhost:5432/phim\n"
    )


def mask_database_url(url: str) -> str:
    if "@" in url and ":" in url.split("@")[0]:
        parts = url.split("@")
        user_pass = parts[0].rsplit(":", 1)
        if len(user_pass) == 2:
            return f"{user_pass[0]}:****@{'@'.join(parts[1:])}"
    return url


class Database:
    """
    Thread-safe connection pool shared by the worker pools.

    Cursors are `RealDictCursor`s, so repositories always see rows as dicts.
    """

    def __init__(self, dsn: str | None = None, *, min_connections: int = 1, max_connections: int = 12) -> None:
        self.dsn = dsn or resolve_database_url()
        try:
            self._pool = ThreadedConnectionPool(
                min_connections,
                max_connections,
                self.dsn,
                cursor_factory=RealDictCursor,
            )
        except psycopg2.Error as exc:
            raise DatabaseConnectionError(
                f"Failed to connect to {mask_database_url(self.dsn)}: {exc}"
            ) from exc

    @contextmanager
    def connection(self) -> Iterator[psycopg2.extensions.connection]:
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Iterator[RealDictCursor]:
        with self.connection() as conn:
            try:
                with conn.cursor() as cur:
                    yield cur
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    @contextmanager
    def autocommit(self) -> Iterator[RealDictCursor]:
        """Cursor whose statements commit individually, outside any caller transaction."""
        with self.connection() as conn:
            conn.autocommit = True
            try:
                with conn.cursor() as cur:
                    yield cur
            finally:
                conn.autocommit = False

    def close(self) -> None:
        self._pool.closeall()
