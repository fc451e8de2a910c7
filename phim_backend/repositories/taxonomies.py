from __future__ import annotations

from typing import Any, Iterable

from phim_backend.repositories._sql import execute, fetch_one, returning_id


class TaxonomyRepositoryError(RuntimeError):
    pass


SLUG_TABLES = frozenset({"genres", "tags"})

# join table -> foreign key column
LINK_TABLES: dict[str, str] = {
    "movie_genres": "genre_id",
    "movie_tags": "tag_id",
    "movie_countries": "country_id",
}


def upsert_taxonomy_by_slug(cur: Any, table: str, name: str, slug: str) -> int:
    if table not in SLUG_TABLES:
        raise TaxonomyRepositoryError(f"Unsupported taxonomy table: {table}")
    row = fetch_one(
        cur,
        f"""
        INSERT INTO {table} (name, slug)
        VALUES (%s, %s)
        ON CONFLICT (slug)
        DO UPDATE SET name = EXCLUDED.name
        RETURNING id
        """,
        (name, slug),
        error_cls=TaxonomyRepositoryError,
        context=f"upserting {table} slug={slug}",
    )
    return returning_id(row, error_cls=TaxonomyRepositoryError, context=f"{table} slug={slug}")


def upsert_country(cur: Any, name: str, code: str | None) -> int:
    """
    Countries dedupe by code when one is known, otherwise by exact name.

    Two distinct countries reported without codes under the same name share one row.
    """
    if code:
        row = fetch_one(
            cur,
            """
            INSERT INTO countries (code, name)
            VALUES (%s, %s)
            ON CONFLICT (code)
            DO UPDATE SET name = EXCLUDED.name
            RETURNING id
            """,
            (code[:16], name),
            error_cls=TaxonomyRepositoryError,
            context=f"upserting country code={code}",
        )
        return returning_id(row, error_cls=TaxonomyRepositoryError, context=f"country code={code}")

    existing = fetch_one(
        cur,
        "SELECT id FROM countries WHERE name = %s LIMIT 1",
        (name,),
        error_cls=TaxonomyRepositoryError,
        context=f"finding country name={name}",
    )
    if existing:
        return int(existing["id"])

    row = fetch_one(
        cur,
        "INSERT INTO countries (name) VALUES (%s) RETURNING id",
        (name,),
        error_cls=TaxonomyRepositoryError,
        context=f"inserting country name={name}",
    )
    return returning_id(row, error_cls=TaxonomyRepositoryError, context=f"country name={name}")


def link_movie_taxonomy(cur: Any, link_table: str, movie_id: int, ids: Iterable[int]) -> None:
    """Insert-if-absent; existing links are never removed."""
    column = LINK_TABLES.get(link_table)
    if column is None:
        raise TaxonomyRepositoryError(f"Unsupported taxonomy link table: {link_table}")
    for taxonomy_id in ids:
        execute(
            cur,
            f"INSERT INTO {link_table} (movie_id, {column}) VALUES (%s, %s) ON CONFLICT DO NOTHING",
            (movie_id, taxonomy_id),
            error_cls=TaxonomyRepositoryError,
            context=f"linking movie_id={movie_id} in {link_table}",
        )
