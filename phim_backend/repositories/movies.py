from __future__ import annotations

from typing import Any, Mapping

from psycopg2.extras import Json

from phim_backend.repositories._sql import execute, fetch_all, fetch_one, returning_id


class MovieRepositoryError(RuntimeError):
    pass


# Columns the pipeline is allowed to write on `movies`.
MOVIE_COLUMNS: tuple[str, ...] = (
    "title",
    "original_title",
    "other_titles",
    "type",
    "year",
    "status",
    "duration_min",
    "quality",
    "subtitle",
    "plot",
    "poster_url",
    "backdrop_url",
    "trailer_url",
    "imdb_id",
    "tmdb_id",
    "view_count",
    "rating_avg",
    "rating_count",
)

_JSON_COLUMNS = frozenset({"other_titles"})


def _adapt(column: str, value: Any) -> Any:
    return Json(value) if column in _JSON_COLUMNS else value


def find_movie_id_by_imdb_id(cur: Any, imdb_id: str) -> int | None:
    row = fetch_one(
        cur,
        "SELECT id FROM movies WHERE imdb_id = %s LIMIT 1",
        (imdb_id,),
        error_cls=MovieRepositoryError,
        context="finding movie by imdb id",
    )
    return int(row["id"]) if row else None


def find_movie_id_by_tmdb_id(cur: Any, tmdb_id: str) -> int | None:
    row = fetch_one(
        cur,
        "SELECT id FROM movies WHERE tmdb_id = %s LIMIT 1",
        (tmdb_id,),
        error_cls=MovieRepositoryError,
        context="finding movie by tmdb id",
    )
    return int(row["id"]) if row else None


def list_movie_titles_by_year(cur: Any, year: int) -> list[dict[str, Any]]:
    return fetch_all(
        cur,
        "SELECT id, title FROM movies WHERE year = %s ORDER BY id",
        (year,),
        error_cls=MovieRepositoryError,
        context=f"listing movies for year={year}",
    )


def slug_exists(cur: Any, slug: str) -> bool:
    row = fetch_one(
        cur,
        "SELECT 1 AS found FROM movies WHERE slug = %s LIMIT 1",
        (slug,),
        error_cls=MovieRepositoryError,
        context=f"checking slug {slug}",
    )
    return row is not None


def insert_movie(cur: Any, slug: str, values: Mapping[str, Any]) -> int:
    columns = ["slug", *[c for c in MOVIE_COLUMNS if c in values], "is_active"]
    params: list[Any] = [slug, *[_adapt(c, values[c]) for c in MOVIE_COLUMNS if c in values], True]
    placeholders = ", ".join(["%s"] * len(columns))
    row = fetch_one(
        cur,
        f"INSERT INTO movies ({', '.join(columns)}) VALUES ({placeholders}) RETURNING id",
        params,
        error_cls=MovieRepositoryError,
        context=f"inserting movie {slug}",
    )
    return returning_id(row, error_cls=MovieRepositoryError, context=f"movie {slug}")


def update_movie_fields(cur: Any, movie_id: int, values: Mapping[str, Any]) -> None:
    """
    Overwrite only the given non-null columns; a missing or None value never clobbers data.
    """
    sets: list[str] = []
    params: list[Any] = []
    for column in MOVIE_COLUMNS:
        value = values.get(column)
        if value is None:
            continue
        sets.append(f"{column} = %s")
        params.append(_adapt(column, value))
    if not sets:
        return
    params.append(movie_id)
    execute(
        cur,
        f"UPDATE movies SET {', '.join(sets)}, updated_at = NOW() WHERE id = %s",
        params,
        error_cls=MovieRepositoryError,
        context=f"updating movie_id={movie_id}",
    )


def touch_movie(cur: Any, movie_id: int) -> None:
    execute(
        cur,
        "UPDATE movies SET updated_at = NOW() WHERE id = %s",
        (movie_id,),
        error_cls=MovieRepositoryError,
        context=f"touching movie_id={movie_id}",
    )


def upsert_movie_source_map(
    cur: Any,
    movie_id: int,
    source_item_id: int,
    matched_by: str,
    *,
    confidence: float = 0.9,
) -> None:
    execute(
        cur,
        """
        INSERT INTO movie_source_map (movie_id, source_item_id, confidence, is_primary, matched_by)
        VALUES (%s, %s, %s, true, %s)
        ON CONFLICT (source_item_id)
        DO UPDATE SET
            movie_id = EXCLUDED.movie_id,
            confidence = EXCLUDED.confidence,
            matched_by = EXCLUDED.matched_by
        """,
        (movie_id, source_item_id, confidence, matched_by),
        error_cls=MovieRepositoryError,
        context=f"mapping source_item_id={source_item_id} to movie_id={movie_id}",
    )


def enqueue_movie_search(cur: Any, movie_id: int, reason: str) -> None:
    execute(
        cur,
        "SELECT enqueue_movie_search(%s, %s)",
        (movie_id, reason),
        error_cls=MovieRepositoryError,
        context=f"enqueueing search refresh for movie_id={movie_id}",
    )
