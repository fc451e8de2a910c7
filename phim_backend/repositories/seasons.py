from __future__ import annotations

from typing import Any

from phim_backend.repositories._sql import fetch_one, returning_id


class SeasonRepositoryError(RuntimeError):
    pass


def upsert_season(cur: Any, movie_id: int, season_number: int) -> int:
    row = fetch_one(
        cur,
        """
        INSERT INTO seasons (movie_id, season_number, title)
        VALUES (%s, %s, %s)
        ON CONFLICT (movie_id, season_number)
        DO UPDATE SET title = EXCLUDED.title
        RETURNING id
        """,
        (movie_id, int(season_number), f"Season {int(season_number)}"),
        error_cls=SeasonRepositoryError,
        context=f"upserting season {season_number} for movie_id={movie_id}",
    )
    return returning_id(row, error_cls=SeasonRepositoryError, context=f"season {season_number}")
