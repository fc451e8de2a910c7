from __future__ import annotations

from typing import Any, Mapping

from phim_backend.ingestion.adapters.base import (
    PayloadAdapter,
    as_external_id,
    as_float,
    as_int,
    as_list,
    as_mapping,
    as_str,
    as_year,
    episodes_from_server_data,
    infer_media_type,
    map_status,
    parse_duration_minutes,
    people_list,
    string_headers,
    string_list,
    suggested_slug,
    taxonomy_list,
    video_kind,
)
from phim_backend.models.normalized import (
    DEFAULT_SERVER_NAME,
    EpisodeItem,
    MovieNormalized,
    PeopleBlock,
    SeasonItem,
    StreamItem,
)
from phim_backend.models.sources import SourceItemRecord


def _movie_block(payload: Any) -> tuple[Mapping[str, Any], Any]:
    """
    Locate the movie object and its episode list.

    Supports `{"movie": ..., "episodes": [...]}` and the v1 `{"data": {"item": {..., "episodes": [...]}}}`.
    """
    root = as_mapping(payload)
    movie = as_mapping(root.get("movie"))
    episodes = root.get("episodes")
    if not movie:
        movie = as_mapping(as_mapping(root.get("data")).get("item"))
    if episodes is None:
        episodes = movie.get("episodes")
    return movie, episodes


def _is_server_layout(episodes: list[Any]) -> bool:
    return any(isinstance(e, Mapping) and "server_data" in e for e in episodes)


def _structured_seasons(episodes: list[Any]) -> list[SeasonItem]:
    """`[{season, items: [{episode, name, servers: [{name, items: [stream...]}]}]}]`"""
    seasons: dict[int, SeasonItem] = {}
    for idx, raw_season in enumerate(episodes):
        raw_season = as_mapping(raw_season)
        season_number = as_int(raw_season.get("season")) or idx + 1
        season = seasons.setdefault(season_number, SeasonItem(season_number=season_number))
        for raw_episode in as_list(raw_season.get("items")):
            raw_episode = as_mapping(raw_episode)
            number = as_int(raw_episode.get("episode")) or as_int(raw_episode.get("number")) or 1
            streams: list[StreamItem] = []
            for raw_server in as_list(raw_episode.get("servers")):
                raw_server = as_mapping(raw_server)
                server_name = as_str(raw_server.get("name")) or DEFAULT_SERVER_NAME
                for raw_stream in as_list(raw_server.get("items")):
                    raw_stream = as_mapping(raw_stream)
                    url = as_str(raw_stream.get("url"))
                    if not url:
                        continue
                    streams.append(
                        StreamItem(
                            server_name=server_name,
                            kind=video_kind(raw_stream.get("type")),
                            label=as_str(raw_stream.get("label")) or as_str(raw_stream.get("name")) or "Default",
                            url=url,
                            headers=string_headers(raw_stream.get("headers")),
                            priority=as_int(raw_stream.get("priority")),
                        )
                    )
            season.episodes.append(
                EpisodeItem(
                    episode_number=number,
                    name=as_str(raw_episode.get("name")) or f"Episode {number}",
                    streams=streams,
                )
            )
    return [seasons[n] for n in sorted(seasons)]


class OphimPayloadAdapter(PayloadAdapter):
    source_code = "ophim"

    def normalize(self, payload: Any, source_item: SourceItemRecord) -> MovieNormalized:
        movie, raw_episodes = _movie_block(payload)
        episodes = as_list(raw_episodes)

        if _is_server_layout(episodes):
            flat = episodes_from_server_data(episodes)
            seasons = [SeasonItem(season_number=1, episodes=flat)] if flat else []
        else:
            seasons = _structured_seasons(episodes)
        episode_count = sum(len(s.episodes) for s in seasons)

        title = as_str(movie.get("name")) or as_str(source_item.title) or "Unknown Title"
        tmdb = as_mapping(movie.get("tmdb"))

        return MovieNormalized(
            slug_suggested=suggested_slug(
                [movie.get("slug"), title],
                fallback=f"{self.source_code}-{source_item.external_id or source_item.id}",
            ),
            title=title,
            original_title=as_str(movie.get("origin_name")),
            other_titles=string_list(movie.get("aliases")),
            type=infer_media_type(
                movie.get("type") or source_item.type,
                episode_total=movie.get("episode_total"),
                episode_count=episode_count,
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
            imdb_id=as_external_id(movie.get("imdb_id")) or as_external_id(movie.get("imdb")),
            tmdb_id=as_external_id(movie.get("tmdb_id")) or as_external_id(tmdb),
            genres=taxonomy_list(movie.get("category")),
            countries=taxonomy_list(movie.get("country"), code_field=True),
            tags=taxonomy_list(movie.get("tags")),
            people=PeopleBlock(
                actors=people_list(movie.get("actors") or movie.get("actor")),
                directors=people_list(movie.get("directors") or movie.get("director")),
                writers=people_list(movie.get("writers")),
                producers=people_list(movie.get("producers")),
            ),
            seasons=seasons,
        )
