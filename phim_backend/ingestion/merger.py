"""
Cross-source merge of every normalized record mapped to one movie.

The richest record (by `score_normalized`) is the primary; the rest backfill gaps and
contribute to the unioned collections.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable

from phim_backend.db.store import CatalogStore
from phim_backend.ingestion.adapters import AdapterNotFoundError, AdapterRegistry
from phim_backend.models.normalized import (
    DEFAULT_SERVER_NAME,
    DEFAULT_STREAM_PRIORITY,
    EpisodeItem,
    MovieNormalized,
    PeopleBlock,
    PersonItem,
    SeasonItem,
    StreamItem,
    TaxonomyItem,
)
from phim_backend.utils.text import normalize_title, sha256

logger = logging.getLogger(__name__)

PLOT_SCORE_CAP = 500


class MergeUnavailableError(RuntimeError):
    pass


def score_normalized(normalized: MovieNormalized) -> int:
    """
    Completeness score used to pick the primary record.

    min(len(plot), 500) + 100 per external id + 30/season + 50/episode + 20/stream
    + 8/person + 6/taxonomy entry.
    """
    plot_score = min(len(normalized.plot), PLOT_SCORE_CAP) if normalized.plot else 0
    id_score = (100 if normalized.imdb_id else 0) + (100 if normalized.tmdb_id else 0)
    return (
        plot_score
        + id_score
        + 30 * len(normalized.seasons)
        + 50 * normalized.episode_count()
        + 20 * normalized.stream_count()
        + 8 * normalized.people.count()
        + 6 * normalized.taxonomy_count()
    )


def union_strings(base: Iterable[str], extra: Iterable[str]) -> list[str]:
    seen: dict[str, str] = {}
    for text in [*base, *extra]:
        value = str(text or "").strip()
        key = normalize_title(value)
        if key and key not in seen:
            seen[key] = value
    return list(seen.values())


def union_taxonomies(base: Iterable[TaxonomyItem], extra: Iterable[TaxonomyItem]) -> list[TaxonomyItem]:
    """De-duplicate by slug, else code, else normalized name. First occurrence wins."""
    seen: dict[str, TaxonomyItem] = {}
    for item in [*base, *extra]:
        name = (item.name or "").strip()
        if not name:
            continue
        slug = (item.slug or "").strip()
        code = (item.code or "").strip()
        key = slug or code or normalize_title(name)
        if not key or key in seen:
            continue
        seen[key] = TaxonomyItem(name=name, slug=slug or None, code=code or None)
    return list(seen.values())


def union_people(base: Iterable[PersonItem], extra: Iterable[PersonItem]) -> list[PersonItem]:
    seen: dict[str, PersonItem] = {}
    for person in [*base, *extra]:
        name = (person.name or "").strip()
        if not name:
            continue
        slug = (person.slug or "").strip()
        key = slug or normalize_title(name)
        if not key or key in seen:
            continue
        seen[key] = replace(person, name=name, slug=slug or None)
    return list(seen.values())


def stream_key(stream: StreamItem) -> str:
    server = (stream.server_name or "").strip() or DEFAULT_SERVER_NAME
    return f"{normalize_title(server)}|{sha256(stream.url.strip())}"


def union_streams(base: Iterable[StreamItem], extra: Iterable[StreamItem]) -> list[StreamItem]:
    seen: dict[str, StreamItem] = {}
    for stream in [*base, *extra]:
        url = (stream.url or "").strip()
        if not url:
            continue
        key = stream_key(stream)
        if key in seen:
            continue
        seen[key] = StreamItem(
            server_name=(stream.server_name or "").strip() or DEFAULT_SERVER_NAME,
            kind=stream.kind or "hls",
            label=stream.label or "Default",
            url=url,
            headers=stream.headers or None,
            priority=stream.priority if stream.priority is not None else DEFAULT_STREAM_PRIORITY,
        )
    return list(seen.values())


def merge_seasons(base: Iterable[SeasonItem], extra: Iterable[SeasonItem]) -> list[SeasonItem]:
    """Merge by (season, episode); the first non-empty episode name is kept, streams unioned."""
    seasons: dict[int, dict[int, EpisodeItem]] = {}
    for season in [*base, *extra]:
        episodes = seasons.setdefault(season.season_number, {})
        for episode in season.episodes:
            existing = episodes.get(episode.episode_number)
            if existing is None:
                episodes[episode.episode_number] = EpisodeItem(
                    episode_number=episode.episode_number,
                    name=episode.name,
                    streams=union_streams([], episode.streams),
                )
                continue
            existing.name = existing.name or episode.name
            existing.streams = union_streams(existing.streams, episode.streams)
    return [
        SeasonItem(season_number=number, episodes=[episodes[n] for n in sorted(episodes)])
        for number, episodes in sorted(seasons.items())
    ]


def merge_normalized(candidates: list[MovieNormalized]) -> MovieNormalized:
    """
    Fold candidates into one record. Raises `MergeUnavailableError` for an empty list.

    Ranking is by descending score; `sorted` is stable so on a tie the earlier candidate
    stays primary.
    """
    if not candidates:
        raise MergeUnavailableError("No normalized candidates to merge.")

    ranked = sorted(candidates, key=score_normalized, reverse=True)
    primary = ranked[0]
    merged = MovieNormalized(
        slug_suggested=primary.slug_suggested,
        title=primary.title,
        type=primary.type,
        original_title=primary.original_title,
        other_titles=union_strings(primary.other_titles, []),
        year=primary.year,
        status=primary.status or "unknown",
        duration_min=primary.duration_min,
        quality=primary.quality,
        subtitle=primary.subtitle,
        view_count=primary.view_count,
        rating_avg=primary.rating_avg,
        rating_count=primary.rating_count,
        plot=primary.plot,
        poster_url=primary.poster_url,
        backdrop_url=primary.backdrop_url,
        trailer_url=primary.trailer_url,
        imdb_id=primary.imdb_id,
        tmdb_id=primary.tmdb_id,
        genres=union_taxonomies(primary.genres, []),
        countries=union_taxonomies(primary.countries, []),
        tags=union_taxonomies(primary.tags, []),
        people=PeopleBlock(
            actors=union_people(primary.people.actors, []),
            directors=union_people(primary.people.directors, []),
            writers=union_people(primary.people.writers, []),
            producers=union_people(primary.people.producers, []),
        ),
        seasons=merge_seasons([], primary.seasons),
    )

    for candidate in ranked[1:]:
        for attr in (
            "original_title",
            "year",
            "duration_min",
            "quality",
            "subtitle",
            "plot",
            "poster_url",
            "backdrop_url",
            "trailer_url",
            "imdb_id",
            "tmdb_id",
        ):
            if not getattr(merged, attr) and getattr(candidate, attr):
                setattr(merged, attr, getattr(candidate, attr))

        if merged.status == "unknown" and candidate.status and candidate.status != "unknown":
            merged.status = candidate.status

        if candidate.view_count is not None:
            if not merged.view_count:
                merged.view_count = candidate.view_count
            else:
                merged.view_count = max(merged.view_count, candidate.view_count)

        if candidate.rating_avg is not None and (
            merged.rating_avg is None or (candidate.rating_count or 0) > (merged.rating_count or 0)
        ):
            merged.rating_avg = candidate.rating_avg
            merged.rating_count = candidate.rating_count if candidate.rating_count is not None else merged.rating_count
        elif merged.rating_count is None:
            merged.rating_count = candidate.rating_count

        if merged.type != "series" and candidate.type == "series":
            merged.type = "series"

        merged.other_titles = union_strings(merged.other_titles, candidate.other_titles)
        merged.genres = union_taxonomies(merged.genres, candidate.genres)
        merged.countries = union_taxonomies(merged.countries, candidate.countries)
        merged.tags = union_taxonomies(merged.tags, candidate.tags)
        merged.people.actors = union_people(merged.people.actors, candidate.people.actors)
        merged.people.directors = union_people(merged.people.directors, candidate.people.directors)
        merged.people.writers = union_people(merged.people.writers, candidate.people.writers)
        merged.people.producers = union_people(merged.people.producers, candidate.people.producers)
        merged.seasons = merge_seasons(merged.seasons, candidate.seasons)

    return merged


def load_merge_candidates(store: CatalogStore, movie_id: int, adapters: AdapterRegistry) -> list[MovieNormalized]:
    """Normalize every mapped source item with status `ok` and a non-empty payload."""
    candidates: list[MovieNormalized] = []
    for item in store.list_merge_candidates(movie_id):
        if not item.has_payload():
            continue
        try:
            adapter = adapters.resolve(item.source_code)
        except AdapterNotFoundError:
            logger.warning(f"[SYNC] merge candidate skipped source_item={item.id} source={item.source_code}: no adapter")
            continue
        candidates.append(adapter.normalize(item.payload, item))
    return candidates


def build_merged_normalized(store: CatalogStore, movie_id: int, adapters: AdapterRegistry) -> MovieNormalized:
    candidates = load_merge_candidates(store, movie_id, adapters)
    if not candidates:
        raise MergeUnavailableError(f"No source payload ready to merge for movie_id={movie_id}")
    return merge_normalized(candidates)
