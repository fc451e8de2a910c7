from __future__ import annotations

from dataclasses import dataclass

from phim_backend.db.store import CatalogStore
from phim_backend.models.normalized import MovieNormalized
from phim_backend.utils.text import normalize_title

MATCHED_BY_IMDB = "imdb"
MATCHED_BY_TMDB = "tmdb"
MATCHED_BY_TITLE_YEAR = "title_year"
MATCHED_BY_OTHER = "other"


@dataclass(frozen=True)
class MovieMatch:
    movie_id: int
    matched_by: str


def find_movie_match(store: CatalogStore, normalized: MovieNormalized) -> MovieMatch | None:
    """
    Resolve an existing movie for a normalized record.

    Priority: imdb id, then tmdb id, then same year with an equal normalized title. Title
    keys are compared in Python because diacritic folding is not expressible in plain SQL.
    """
    if normalized.imdb_id:
        movie_id = store.find_movie_id_by_imdb_id(normalized.imdb_id)
        if movie_id is not None:
            return MovieMatch(movie_id, MATCHED_BY_IMDB)

    if normalized.tmdb_id:
        movie_id = store.find_movie_id_by_tmdb_id(normalized.tmdb_id)
        if movie_id is not None:
            return MovieMatch(movie_id, MATCHED_BY_TMDB)

    title_key = normalize_title(normalized.title)
    if title_key and normalized.year:
        for row in store.list_movie_titles_by_year(normalized.year):
            if normalize_title(row.get("title") or "") == title_key:
                return MovieMatch(int(row["id"]), MATCHED_BY_TITLE_YEAR)

    return None
