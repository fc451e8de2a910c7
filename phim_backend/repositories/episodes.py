from __future__ import annotations

from typing import Any

from phim_backend.repositories._sql import fetch_one, returning_id


class EpisodeRepositoryError(RuntimeError):
    pass


def upsert_episode(cur: Any, movie_id: int, season_id: int, episode_number: int, name: str | None) -> int:
    """
    Upsert by (movie, season, episode_number) and force the episode active.

    An empty incoming name keeps the stored one.
    """
    row = fetch_one(
        cur,
        """
        INSERT INTO episodes (movie_id, season_id, episode_number, name, is_active)
        VALUES (%s, %s, %s, %s, true)
        ON CONFLICT (movie_id, season_id, episode_number)
        DO UPDATE SET
            name = COALESCE(NULLIF(EXCLUDED.name, ''), episodes.name),
            is_active = true
        RETURNING id
        """,
        (movie_id, season_id, int(episode_number), name or None),
        error_cls=EpisodeRepositoryError,
        context=f"upserting episode {episode_number} for movie_id={movie_id}",
    )
    return returning_id(row, error_cls=EpisodeRepositoryError, context=f"episode {episode_number}")
