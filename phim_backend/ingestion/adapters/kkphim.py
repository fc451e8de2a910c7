from __future__ import annotations

from typing import Any

from phim_backend.ingestion.adapters.base import (
    PayloadAdapter,
    as_external_id,
    as_float,
    as_int,
    as_mapping,
    as_str,
    as_year,
    episodes_from_server_data,
    infer_media_type,
    map_status,
    parse_duration_minutes,
    people_list,
    string_list,
    suggested_slug,
    taxonomy_list,
)
from phim_backend.models.normalized import MovieNormalized, PeopleBlock, SeasonItem
from phim_backend.models.sources import SourceItemRecord


class KkphimPayloadAdapter(PayloadAdapter):
    """
    phimapi.com detail payloads: `{"movie": {...}, "episodes": [{server_name, server_data}]}`.

    The source has no season numbers; episodes land in the TMDb season when it reports one,
    otherwise season 1.
    """

    source_code = "kkphim"

    def normalize(self, payload: Any, source_item: SourceItemRecord) -> MovieNormalized:
        root = as_mapping(payload)
        movie = as_mapping(root.get("movie"))
        tmdb = as_mapping(movie.get("tmdb"))

        episodes = episodes_from_server_data(root.get("episodes"))
        season_number = as_int(tmdb.get("season"))
        if season_number is None or season_number < 1:
            season_number = 1
        seasons = [SeasonItem(season_number=season_number, episodes=episodes)] if episodes else []

        title = as_str(movie.get("name")) or as_str(source_item.title) or "Unknown Title"
        raw_type = movie.get("type") or source_item.type
        # tmdb.type tells "tv" from "movie" when the source type is a genre bucket like "hoathinh"
        if (as_str(raw_type) or "").casefold() not in {"series", "single", "tvshows"} and as_str(tmdb.get("type")):
            raw_type = tmdb.get("type")

        return MovieNormalized(
            slug_suggested=suggested_slug(
                [movie.get("slug"), title],
                fallback=f"{self.source_code}-{source_item.external_id or source_item.id}",
            ),
            title=title,
            original_title=as_str(movie.get("origin_name")),
            other_titles=string_list(movie.get("aliases") or movie.get("other_titles")),
            type=infer_media_type(
                raw_type,
                episode_total=movie.get("episode_total"),
                episode_count=len(episodes),
            ),
            year=as_year(movie.get("year")) or source_item.year,
            status=map_status(movie.get("status")),
            duration_min=parse_duration_minutes(movie.get("time")),
            quality=as_str(movie.get("quality")),
            subtitle=as_str(movie.get("lang")),
            view_count=as_int(movie.get("view")),
            rating_avg=as_float(tmdb.get("vote_average")),
            rating_count=as_int(tmdb.get("vote_count")),
            plot=as_str(movie.get("content")),
            poster_url=as_str(movie.get("poster_url")),
            backdrop_url=as_str(movie.get("thumb_url")),
            trailer_url=as_str(movie.get("trailer_url")),
            imdb_id=as_external_id(movie.get("imdb")) or as_external_id(movie.get("imdb_id")),
            tmdb_id=as_external_id(tmdb) or as_external_id(movie.get("tmdb_id")),
            genres=taxonomy_list(movie.get("category")),
            countries=taxonomy_list(movie.get("country"), code_field=True),
            tags=taxonomy_list(movie.get("tags")),
            people=PeopleBlock(
                actors=people_list(movie.get("actor") or movie.get("actors")),
                directors=people_list(movie.get("director") or movie.get("directors")),
                writers=people_list(movie.get("writers")),
            ),
            seasons=seasons,
        )
