"""
HTTP client for the ophim/kkphim style catalog APIs.

Both known sources expose the same three endpoints (list page, detail by slug, credits by
slug) behind configurable path templates. Requests use a fixed timeout and are never retried
here; retries happen at the job level.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Mapping
from urllib.parse import urljoin

import requests

from phim_backend.models.normalized import ExternalPerson
from phim_backend.models.sources import DiscoveredItem, SourceConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0

_PATH_PARAM_RE = re.compile(r"\{(\w+)\}")


class CatalogClientError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str | None = None,
        body_snippet: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.body_snippet = body_snippet


def build_url(base_url: str, path: str, params: Mapping[str, Any]) -> str:
    """
    Substitute `{name}` tokens in `path` and resolve it against `base_url`.

    Unknown tokens become empty strings.
    """

    def replace(match: re.Match[str]) -> str:
        value = params.get(match.group(1))
        return "" if value is None else str(value)

    replaced = _PATH_PARAM_RE.sub(replace, path)
    base = base_url if base_url.endswith("/") else f"{base_url}/"
    return urljoin(base, replaced)


def _as_year(value: Any) -> int | None:
    try:
        year = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return year if 1800 <= year <= 2200 else None


def _discovered_type(value: Any) -> str | None:
    text = str(value or "").strip().casefold()
    if text in {"series", "tvshows"}:
        return "series"
    if text == "single":
        return "single"
    return None


def parse_discovered_items(payload: Any) -> list[DiscoveredItem]:
    """
    Extract list items from a list-page response.

    Accepts both `{"items": [...]}` and `{"data": {"items": [...]}}` envelopes.
    """
    if not isinstance(payload, Mapping):
        return []
    items = payload.get("items")
    if not isinstance(items, list):
        data = payload.get("data")
        items = data.get("items") if isinstance(data, Mapping) else None
    if not isinstance(items, list):
        return []

    discovered: list[DiscoveredItem] = []
    for raw in items:
        if not isinstance(raw, Mapping):
            continue
        external_id = raw.get("slug") or raw.get("_id") or raw.get("id")
        if external_id in (None, ""):
            continue
        discovered.append(
            DiscoveredItem(
                external_id=str(external_id),
                external_url=raw.get("link") or raw.get("url") or None,
                type=_discovered_type(raw.get("type")),
                title=raw.get("name") or raw.get("title") or None,
                year=_as_year(raw.get("year")),
            )
        )
    return discovered


def parse_people_payload(payload: Any) -> list[ExternalPerson]:
    if not isinstance(payload, Mapping):
        return []
    data = payload.get("data")
    peoples = data.get("peoples") if isinstance(data, Mapping) else payload.get("peoples")
    if not isinstance(peoples, list):
        return []
    result: list[ExternalPerson] = []
    for raw in peoples:
        person = ExternalPerson.from_payload(raw)
        if person is not None:
            result.append(person)
    return result


class SourceCrawler:
    """Fetches list pages, detail payloads and credits for one configured source."""

    def __init__(
        self,
        config: SourceConfig,
        *,
        session: requests.Session | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.config = config
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds

    @property
    def code(self) -> str:
        return self.config.code

    def _request_json(self, url: str) -> Any:
        headers = {
            "accept": "application/json",
            "user-agent": "Mozilla/5.0",
        }
        try:
            resp = self.session.get(url, headers=headers, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            raise CatalogClientError(f"{self.code} request failed: {exc}", url=url) from exc

        if resp.status_code != 200:
            raise CatalogClientError(
                f"{self.code} request failed with HTTP {resp.status_code}.",
                status_code=resp.status_code,
                url=url,
                body_snippet=(resp.text or "")[:400],
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise CatalogClientError(
                f"{self.code} returned non-JSON response.",
                status_code=resp.status_code,
                url=url,
                body_snippet=(resp.text or "")[:400],
            ) from exc

    def discover(self, page: int = 1) -> list[DiscoveredItem]:
        url = build_url(self.config.base_url, self.config.list_path, {"page": int(page)})
        return parse_discovered_items(self._request_json(url))

    def detail(self, external_id: str) -> Any:
        url = build_url(
            self.config.base_url,
            self.config.detail_path,
            {"slug": external_id, "id": external_id},
        )
        payload = self._request_json(url)
        if payload is None:
            raise CatalogClientError(f"{self.code} returned an empty detail payload.", url=url)
        return payload

    def fetch_people(self, slug: str) -> list[ExternalPerson]:
        """Credits for one title; an unconfigured people path yields no credits."""
        if not self.config.people_path:
            return []
        url = build_url(self.config.base_url, self.config.people_path, {"slug": slug})
        people = parse_people_payload(self._request_json(url))
        logger.info(f"[SYNC] people fetched source={self.code} slug={slug} count={len(people)}")
        return people
