from phim_backend.integrations.catalog.client import (
    CatalogClientError,
    SourceCrawler,
    build_url,
    parse_discovered_items,
)

__all__ = [
    "CatalogClientError",
    "SourceCrawler",
    "build_url",
    "parse_discovered_items",
]
