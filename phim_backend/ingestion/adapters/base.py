"""
Adapter contract and the coercion helpers concrete adapters share.

Adapters must be total: any payload shape, including `None`, lists or strings, maps to a
`MovieNormalized` with nulls/defaults instead of raising. A crawl is never blocked by one
source drifting its schema.
"""
from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping

from phim_backend.models.normalized import (
    DEFAULT_SERVER_NAME,
    VIDEO_KINDS,
    EpisodeItem,
    MovieNormalized,
    PersonItem,
    StreamItem,
    TaxonomyItem,
)
from phim_backend.models.sources import SourceItemRecord
from phim_backend.utils.text import normalize_title, slugify

# Relative priority per link kind: hosted HLS beats an embed page.
LINK_M3U8_PRIORITY = 100
LINK_EMBED_PRIORITY = 80

PLACEHOLDER_NAMES = frozenset({"dangcapnhat", "updating", "unknown", "na"})

_STATUS_ALIASES: dict[str, str] = {
    "ongoing": "ongoing",
    "dangcapnhat": "ongoing",
    "dangchieu": "ongoing",
    "dangphatsong": "ongoing",
    "completed": "completed",
    "complete": "completed",
    "hoantat": "completed",
    "full": "completed",
    "upcoming": "upcoming",
    "trailer": "upcoming",
    "sapchieu": "upcoming",
    "comingsoon": "upcoming",
}

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_DIGITS_RE = re.compile(r"(\d+)")
_HOURS_MINUTES_RE = re.compile(r"(\d+(?:[.,]\d+)?)\s*(?:h|hr|hrs|hours?|giờ|tiếng)\s*(?:(\d+)\s*(?:m|min|mins|minutes?|phút|phut|p)?)?", re.IGNORECASE)
_MINUTES_RE = re.compile(r"(\d+)\s*(?:m|min|mins|minutes?|phút|phut|p)\b", re.IGNORECASE)


class AdapterNotFoundError(LookupError):
    pass


class PayloadAdapter(ABC):
    """Maps one source's raw detail payload to the canonical record."""

    source_code: str

    def supports(self, source_code: str) -> bool:
        return source_code == self.source_code

    @abstractmethod
    def normalize(self, payload: Any, source_item: SourceItemRecord) -> MovieNormalized:
        raise NotImplementedError


# --- coercion helpers ---


def as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def as_str(value: Any) -> str | None:
    if value is None or isinstance(value, (Mapping, list, tuple, bool)):
        return None
    text = str(value).strip()
    return text or None


def as_float(value: Any) -> float | None:
    """Finite float or None. NaN, infinities, booleans and junk strings are discarded."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _NUMBER_RE.search(str(value).replace(",", ""))
        if not match:
            return None
        number = float(match.group(0))
    return number if math.isfinite(number) else None


def as_int(value: Any) -> int | None:
    number = as_float(value)
    return int(number) if number is not None else None


def as_year(value: Any) -> int | None:
    year = as_int(value)
    return year if year is not None and 1800 <= year <= 2200 else None


def as_external_id(value: Any) -> str | None:
    """imdb/tmdb ids arrive as strings, numbers or `{"id": ...}` objects."""
    if isinstance(value, Mapping):
        value = value.get("id")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = as_str(value)
    if not text or text in {"0", "null", "None"}:
        return None
    return text


def string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        text = value.strip()
        return [text] if text else []
    if isinstance(value, Mapping):
        value = list(value.values())
    return [text for text in (as_str(v) for v in as_list(value)) if text]


def map_status(value: Any) -> str:
    key = normalize_title(as_str(value) or "")
    if not key:
        return "unknown"
    if key in _STATUS_ALIASES:
        return _STATUS_ALIASES[key]
    # "Hoàn Tất (12/12)" and similar decorated labels
    for alias, status in _STATUS_ALIASES.items():
        if key.startswith(alias):
            return status
    return "unknown"


def parse_duration_minutes(value: Any) -> int | None:
    """
    Minutes from free text: "45 phút/tập", "1h 30m", "2 giờ", "120 min", or a bare number.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        minutes = as_int(value)
        return minutes if minutes and minutes > 0 else None
    text = as_str(value)
    if not text:
        return None

    match = _HOURS_MINUTES_RE.search(text)
    if match:
        hours = as_float(match.group(1).replace(",", "."))
        extra = int(match.group(2)) if match.group(2) else 0
        if hours is not None:
            minutes = int(round(hours * 60)) + extra
            return minutes if minutes > 0 else None

    match = _MINUTES_RE.search(text)
    if match:
        minutes = int(match.group(1))
        return minutes if minutes > 0 else None

    if text.isdigit():
        minutes = int(text)
        return minutes if minutes > 0 else None
    return None


def parse_episode_number(label: Any, default: int = 1) -> int:
    match = _DIGITS_RE.search(as_str(label) or "")
    return int(match.group(1)) if match else default


def infer_media_type(raw_type: Any, *, episode_total: Any = None, episode_count: int = 0) -> str:
    """
    Explicit type wins; otherwise more than one episode (declared or present) means series.
    """
    key = (as_str(raw_type) or "").casefold()
    if key in {"series", "tvshows", "tv"}:
        return "series"
    if key in {"single", "movie"}:
        return "single"
    total = as_int(episode_total)
    if total is not None and total > 1:
        return "series"
    if episode_count > 1:
        return "series"
    return "single"


def taxonomy_list(value: Any, *, code_field: bool = False, max_code_length: int = 10) -> list[TaxonomyItem]:
    """
    Accepts `["Action", ...]` or `[{"name": "Action", "slug": "action"}, ...]`.

    With `code_field`, a `code` (or, failing that, `slug`) longer than `max_code_length` is
    dropped and the entry becomes name-only.
    """
    items: list[TaxonomyItem] = []
    for raw in as_list(value):
        if isinstance(raw, Mapping):
            name = as_str(raw.get("name"))
            slug = as_str(raw.get("slug"))
            code = as_str(raw.get("code"))
        else:
            name, slug, code = as_str(raw), None, None
        if not name:
            continue
        if code_field:
            code = code or slug
            if code and len(code) > max_code_length:
                code = None
            items.append(TaxonomyItem(name=name, code=code))
        else:
            items.append(TaxonomyItem(name=name, slug=slug))
    return items


def people_list(value: Any) -> list[PersonItem]:
    people: list[PersonItem] = []
    for raw in as_list(value):
        if isinstance(raw, Mapping):
            name = as_str(raw.get("name"))
            slug = as_str(raw.get("slug"))
            avatar = as_str(raw.get("avatar_url") or raw.get("avatar"))
        else:
            name, slug, avatar = as_str(raw), None, None
        if not name or normalize_title(name) in PLACEHOLDER_NAMES:
            continue
        people.append(PersonItem(name=name, slug=slug, avatar_url=avatar))
    return people


def string_headers(value: Any) -> dict[str, str] | None:
    headers = {str(k): str(v) for k, v in as_mapping(value).items() if v is not None}
    return headers or None


def video_kind(value: Any, default: str = "hls") -> str:
    key = (as_str(value) or "").casefold()
    return key if key in VIDEO_KINDS else default


def episodes_from_server_data(servers: Any) -> list[EpisodeItem]:
    """
    Build episodes from the `[{server_name, server_data: [...]}]` layout.

    Episodes with the same number across servers are folded into one episode carrying every
    server's streams. Each server item yields up to two streams: the hosted m3u8 and the embed.
    """
    by_number: dict[int, EpisodeItem] = {}
    for server in as_list(servers):
        server = as_mapping(server)
        server_name = as_str(server.get("server_name")) or DEFAULT_SERVER_NAME
        for item in as_list(server.get("server_data")):
            item = as_mapping(item)
            label = as_str(item.get("name")) or as_str(item.get("filename")) or "Episode"
            number = parse_episode_number(label)
            episode = by_number.get(number)
            if episode is None:
                episode = EpisodeItem(episode_number=number, name=label)
                by_number[number] = episode

            m3u8 = as_str(item.get("link_m3u8"))
            if m3u8:
                episode.streams.append(
                    StreamItem(server_name=server_name, kind="hls", label="m3u8", url=m3u8, priority=LINK_M3U8_PRIORITY)
                )
            embed = as_str(item.get("link_embed"))
            if embed:
                episode.streams.append(
                    StreamItem(server_name=server_name, kind="embed", label="embed", url=embed, priority=LINK_EMBED_PRIORITY)
                )
    return [by_number[n] for n in sorted(by_number)]


def suggested_slug(candidates: Iterable[Any], fallback: str) -> str:
    for value in candidates:
        slug = slugify(as_str(value) or "")
        if slug:
            return slug
    return slugify(fallback) or "movie"
