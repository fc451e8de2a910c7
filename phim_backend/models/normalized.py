from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

MediaType = Literal["single", "series"]
MovieStatus = Literal["ongoing", "completed", "upcoming", "unknown"]
VideoKind = Literal["embed", "hls", "mp4", "external"]
RoleType = Literal["actor", "director", "writer", "producer", "other"]

VIDEO_KINDS: tuple[str, ...] = ("embed", "hls", "mp4", "external")

DEFAULT_SERVER_NAME = "Server"
DEFAULT_STREAM_PRIORITY = 100


@dataclass(frozen=True)
class TaxonomyItem:
    """Genre, tag or country as reported by a source. Countries carry `code`, the rest `slug`."""

    name: str
    slug: str | None = None
    code: str | None = None


@dataclass(frozen=True)
class PersonItem:
    name: str
    slug: str | None = None
    avatar_url: str | None = None
    bio: str | None = None


@dataclass(frozen=True)
class StreamItem:
    server_name: str
    kind: VideoKind
    label: str
    url: str
    headers: dict[str, str] | None = None
    priority: int | None = None


@dataclass
class EpisodeItem:
    episode_number: int
    name: str
    streams: list[StreamItem] = field(default_factory=list)


@dataclass
class SeasonItem:
    season_number: int
    episodes: list[EpisodeItem] = field(default_factory=list)


@dataclass
class PeopleBlock:
    actors: list[PersonItem] = field(default_factory=list)
    directors: list[PersonItem] = field(default_factory=list)
    writers: list[PersonItem] = field(default_factory=list)
    producers: list[PersonItem] = field(default_factory=list)

    def by_role(self) -> list[tuple[RoleType, list[PersonItem]]]:
        return [
            ("actor", self.actors),
            ("director", self.directors),
            ("writer", self.writers),
            ("producer", self.producers),
        ]

    def count(self) -> int:
        return len(self.actors) + len(self.directors) + len(self.writers) + len(self.producers)


@dataclass
class MovieNormalized:
    """
    Canonical, source-agnostic view of one source item's payload.

    Adapters build one per payload; the merger folds several into a single record which
    the graph writer projects onto `movies` and its child tables.
    """

    slug_suggested: str
    title: str
    type: MediaType = "single"
    original_title: str | None = None
    other_titles: list[str] = field(default_factory=list)
    year: int | None = None
    status: MovieStatus | None = None
    duration_min: int | None = None
    quality: str | None = None
    subtitle: str | None = None
    view_count: int | None = None
    rating_avg: float | None = None
    rating_count: int | None = None
    plot: str | None = None
    poster_url: str | None = None
    backdrop_url: str | None = None
    trailer_url: str | None = None
    imdb_id: str | None = None
    tmdb_id: str | None = None
    genres: list[TaxonomyItem] = field(default_factory=list)
    countries: list[TaxonomyItem] = field(default_factory=list)
    tags: list[TaxonomyItem] = field(default_factory=list)
    people: PeopleBlock = field(default_factory=PeopleBlock)
    seasons: list[SeasonItem] = field(default_factory=list)

    def episode_count(self) -> int:
        return sum(len(season.episodes) for season in self.seasons)

    def stream_count(self) -> int:
        return sum(len(ep.streams) for season in self.seasons for ep in season.episodes)

    def taxonomy_count(self) -> int:
        return len(self.genres) + len(self.tags) + len(self.countries)


@dataclass(frozen=True)
class ExternalPerson:
    """Credit row from a source's people endpoint (TMDb-backed on both known sources)."""

    name: str
    tmdb_people_id: str | None = None
    character: str | None = None
    department: str | None = None
    profile_url: str | None = None

    @classmethod
    def from_payload(cls, raw: Any) -> "ExternalPerson | None":
        if not isinstance(raw, dict):
            return None
        name = str(raw.get("name") or raw.get("original_name") or "").strip()
        if not name:
            return None
        tmdb_id = raw.get("tmdb_people_id")
        character = raw.get("character")
        department = raw.get("known_for_department")
        profile = raw.get("profile_path")
        return cls(
            name=name,
            tmdb_people_id=str(tmdb_id).strip() if tmdb_id not in (None, "") else None,
            character=str(character).strip() if character else None,
            department=str(department).strip() if department else None,
            profile_url=str(profile).strip() if profile else None,
        )
