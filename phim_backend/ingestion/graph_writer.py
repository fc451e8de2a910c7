"""
Projects a merged `MovieNormalized` onto `movies` and its child tables.

Every function runs against the caller's `CatalogStore`, i.e. inside the caller's
transaction. Nothing here commits, and failures propagate so the whole sync rolls back.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Iterable

from phim_backend.db.store import CatalogStore
from phim_backend.models.normalized import (
    DEFAULT_SERVER_NAME,
    DEFAULT_STREAM_PRIORITY,
    ExternalPerson,
    MovieNormalized,
    RoleType,
    StreamItem,
    TaxonomyItem,
)
from phim_backend.utils.text import sha256, slugify

logger = logging.getLogger(__name__)

RATING_MAX = 9.99
INT32_MAX = 2_147_483_647
INT64_MAX = 9_223_372_036_854_775_807

_DEPARTMENT_ROLES: dict[str, RoleType] = {
    "acting": "actor",
    "directing": "director",
    "writing": "writer",
    "production": "producer",
}


def _finite(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def clamp_rating(value: Any) -> float | None:
    number = _finite(value)
    if number is None:
        return None
    return round(min(RATING_MAX, max(0.0, number)), 2)


def clamp_int32(value: Any) -> int | None:
    number = _finite(value)
    if number is None:
        return None
    return min(INT32_MAX, max(0, math.floor(number)))


def clamp_int64(value: Any) -> int | None:
    number = _finite(value)
    if number is None:
        return None
    return min(INT64_MAX, max(0, math.floor(number)))


def role_for_department(department: str | None) -> RoleType:
    return _DEPARTMENT_ROLES.get((department or "").strip().casefold(), "other")


def movie_values(normalized: MovieNormalized) -> dict[str, Any]:
    """Column values for `movies`. None means "leave the stored value alone"."""
    return {
        "title": normalized.title,
        "original_title": normalized.original_title,
        "other_titles": list(normalized.other_titles),
        "type": normalized.type,
        "year": normalized.year,
        "status": normalized.status,
        "duration_min": clamp_int32(normalized.duration_min),
        "quality": normalized.quality,
        "subtitle": normalized.subtitle,
        "plot": normalized.plot,
        "poster_url": normalized.poster_url,
        "backdrop_url": normalized.backdrop_url,
        "trailer_url": normalized.trailer_url,
        "imdb_id": normalized.imdb_id,
        "tmdb_id": normalized.tmdb_id,
        "view_count": clamp_int64(normalized.view_count),
        "rating_avg": clamp_rating(normalized.rating_avg),
        "rating_count": clamp_int32(normalized.rating_count),
    }


def resolve_unique_slug(store: CatalogStore, slug: str, year: int | None) -> str:
    """`slug`, else `slug-<year>`, else `slug-2`, `slug-3`, ..."""
    if not store.slug_exists(slug):
        return slug
    if year:
        candidate = f"{slug}-{year}"
        if not store.slug_exists(candidate):
            return candidate
    n = 2
    while store.slug_exists(f"{slug}-{n}"):
        n += 1
    return f"{slug}-{n}"


def create_movie(store: CatalogStore, normalized: MovieNormalized) -> int:
    base = normalized.slug_suggested or slugify(normalized.title) or "movie"
    slug = resolve_unique_slug(store, base, normalized.year)
    values = {k: v for k, v in movie_values(normalized).items() if v is not None}
    values.setdefault("status", "unknown")
    values.setdefault("view_count", 0)
    values.setdefault("rating_avg", 0)
    values.setdefault("rating_count", 0)
    movie_id = store.insert_movie(slug, values)
    logger.info(f"[SYNC] movie created movie_id={movie_id} slug={slug}")
    return movie_id


def _upsert_slug_taxonomy(store: CatalogStore, table: str, items: Iterable[TaxonomyItem]) -> list[int]:
    ids: list[int] = []
    for item in items:
        slug = item.slug or slugify(item.name)
        if not slug:
            continue
        ids.append(store.upsert_taxonomy_by_slug(table, item.name, slug))
    return ids


def sync_taxonomies(store: CatalogStore, movie_id: int, merged: MovieNormalized) -> None:
    """Upsert genres/tags by slug and countries by code (name fallback); links only accumulate."""
    genre_ids = _upsert_slug_taxonomy(store, "genres", merged.genres)
    tag_ids = _upsert_slug_taxonomy(store, "tags", merged.tags)
    country_ids = [store.upsert_country(item.name, item.code) for item in merged.countries]

    store.link_movie_taxonomy("movie_genres", movie_id, genre_ids)
    store.link_movie_taxonomy("movie_tags", movie_id, tag_ids)
    store.link_movie_taxonomy("movie_countries", movie_id, country_ids)


def sync_people(store: CatalogStore, movie_id: int, merged: MovieNormalized) -> None:
    for role, people in merged.people.by_role():
        for order_index, person in enumerate(people):
            slug = person.slug or slugify(person.name)
            if not slug:
                continue
            person_id = store.upsert_person(person.name, slug, avatar_url=person.avatar_url, bio=person.bio)
            store.link_movie_person(movie_id, person_id, role, order_index=order_index)


def link_external_people(store: CatalogStore, movie_id: int, people: Iterable[ExternalPerson]) -> int:
    """
    Link credits from a source's people endpoint, in the order given.

    A person already known by (trimmed) name is reused and only gets an avatar if it has
    none; otherwise it is upserted under `slugify("<name>-<tmdb id>")`.
    """
    order_index = 0
    for person in people:
        name = person.name.strip()
        if not name:
            continue
        person_id = store.find_person_id_by_name(name)
        if person_id is not None:
            if person.profile_url:
                store.fill_person_avatar(person_id, person.profile_url)
        else:
            slug = slugify(f"{name}-{person.tmdb_people_id}" if person.tmdb_people_id else name)
            person_id = store.upsert_person(name, slug, avatar_url=person.profile_url)
        store.link_movie_person(
            movie_id,
            person_id,
            role_for_department(person.department),
            character_name=person.character,
            order_index=order_index,
        )
        order_index += 1
    return order_index


def _group_by_server(streams: Iterable[StreamItem]) -> dict[str, list[StreamItem]]:
    grouped: dict[str, list[StreamItem]] = {}
    for stream in streams:
        if not stream.url:
            continue
        grouped.setdefault(stream.server_name or DEFAULT_SERVER_NAME, []).append(stream)
    return grouped


def sync_streams(store: CatalogStore, episode_id: int, streams: Iterable[StreamItem]) -> None:
    """
    Upsert streams server by server, then deactivate whatever that server had that this
    batch did not mention.
    """
    for server_name, server_streams in _group_by_server(streams).items():
        first = server_streams[0]
        server_id = store.upsert_video_server(
            episode_id,
            server_name,
            kind=first.kind or "hls",
            priority=first.priority if first.priority is not None else DEFAULT_STREAM_PRIORITY,
        )
        checksums: list[str] = []
        for stream in server_streams:
            checksum = sha256(stream.url)
            checksums.append(checksum)
            store.upsert_video_stream(
                server_id,
                checksum=checksum,
                label=stream.label,
                url=stream.url,
                headers=stream.headers,
                priority=stream.priority if stream.priority is not None else DEFAULT_STREAM_PRIORITY,
            )
        store.deactivate_streams_except(server_id, checksums)


def sync_seasons_and_episodes(store: CatalogStore, movie_id: int, merged: MovieNormalized) -> None:
    for season in merged.seasons:
        season_id = store.upsert_season(movie_id, season.season_number)
        for episode in season.episodes:
            episode_id = store.upsert_episode(movie_id, season_id, episode.episode_number, episode.name)
            sync_streams(store, episode_id, episode.streams)


def apply_merged(
    store: CatalogStore,
    movie_id: int,
    merged: MovieNormalized,
    *,
    external_people: Iterable[ExternalPerson] = (),
) -> None:
    store.update_movie_fields(movie_id, movie_values(merged))
    sync_taxonomies(store, movie_id, merged)
    sync_people(store, movie_id, merged)
    link_external_people(store, movie_id, external_people)
    sync_seasons_and_episodes(store, movie_id, merged)
    store.touch_movie(movie_id)
    logger.info(
        f"[SYNC] graph written movie_id={movie_id} seasons={len(merged.seasons)} "
        f"episodes={merged.episode_count()} streams={merged.stream_count()}"
    )
