"""
Repository layer for DB access patterns.

Every function takes a psycopg2 cursor first; transaction boundaries belong to the caller.
"""

from phim_backend.repositories.movies import (
    MovieRepositoryError,
    find_movie_id_by_imdb_id,
    find_movie_id_by_tmdb_id,
    insert_movie,
    update_movie_fields,
)
from phim_backend.repositories.source_items import SourceItemRepositoryError, get_source_item_by_id
from phim_backend.repositories.sources import SourceRepositoryError, get_source_by_code

__all__ = [
    "MovieRepositoryError",
    "SourceItemRepositoryError",
    "SourceRepositoryError",
    "find_movie_id_by_imdb_id",
    "find_movie_id_by_tmdb_id",
    "get_source_by_code",
    "get_source_item_by_id",
    "insert_movie",
    "update_movie_fields",
]
