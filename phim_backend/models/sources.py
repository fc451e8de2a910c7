from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping


@dataclass(frozen=True)
class SourceConfig:
    """Configured endpoint templates for one external catalog."""

    code: str
    base_url: str
    list_path: str
    detail_path: str
    people_path: str | None = None


@dataclass(frozen=True)
class SourceRecord:
    """Row of `sources`."""

    id: int
    code: str
    base_url: str | None = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SourceRecord":
        return cls(
            id=int(row["id"]),
            code=str(row["code"]),
            base_url=(str(row["base_url"]).strip() or None) if row.get("base_url") else None,
            is_active=bool(row.get("is_active", True)),
        )


@dataclass(frozen=True)
class DiscoveredItem:
    """Lightweight item from a source list page."""

    external_id: str
    external_url: str | None = None
    type: str | None = None
    title: str | None = None
    year: int | None = None


@dataclass(frozen=True)
class SourceItemRecord:
    """
    Row of `source_items`, joined with the owning source's `code`.

    `payload` is the raw detail response; adapters treat it as opaque.
    """

    id: int
    source_id: int
    source_code: str
    external_id: str | None
    type: str | None = None
    title: str | None = None
    year: int | None = None
    payload: Any = None
    content_hash: str | None = None
    crawl_status: str = "unknown"
    external_url: str | None = None
    last_crawled_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SourceItemRecord":
        year = row.get("year")
        return cls(
            id=int(row["id"]),
            source_id=int(row["source_id"]),
            source_code=str(row.get("source_code") or ""),
            external_id=row.get("external_id"),
            type=row.get("type"),
            title=row.get("title"),
            year=int(year) if isinstance(year, int) else None,
            payload=row.get("payload"),
            content_hash=row.get("content_hash"),
            crawl_status=str(row.get("crawl_status") or "unknown"),
            external_url=row.get("external_url"),
            last_crawled_at=row.get("last_crawled_at"),
        )

    def has_payload(self) -> bool:
        if self.payload is None:
            return False
        if isinstance(self.payload, (dict, list)):
            return bool(self.payload)
        return True
