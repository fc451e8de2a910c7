"""
Which configured sources may be crawled.

Built once at startup from the environment-derived `SourceConfig`s and the `sources` table,
then passed explicitly to the orchestrator and sync service. Never mutated afterwards.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from phim_backend.db.store import StoreProvider
from phim_backend.models.sources import SourceConfig

logger = logging.getLogger(__name__)


class SourceDisabledError(RuntimeError):
    pass


@dataclass(frozen=True)
class RegisteredSource:
    config: SourceConfig
    source_id: int | None
    enabled: bool
    reason: str | None = None

    @property
    def code(self) -> str:
        return self.config.code


class SourceRegistry:
    def __init__(self, sources: Iterable[RegisteredSource]) -> None:
        self._sources: Mapping[str, RegisteredSource] = MappingProxyType({s.code: s for s in sources})

    @classmethod
    def build(cls, configs: Iterable[SourceConfig], stores: StoreProvider) -> "SourceRegistry":
        """
        Resolve each configured source against its `sources` row.

        - no row: disabled
        - stored `base_url` differs from the configured one: disabled (never repointed)
        - stored `base_url` empty: filled from configuration, enabled
        """
        registered: list[RegisteredSource] = []
        with stores.autocommit() as store:
            for config in configs:
                record = store.get_source_by_code(config.code)
                if record is None:
                    logger.error(f"[CRAWL] source row missing code={config.code}; run scripts/seed_sources.py")
                    registered.append(RegisteredSource(config, None, False, "source row missing"))
                    continue
                if not record.is_active:
                    logger.warning(f"[CRAWL] source inactive code={config.code}")
                    registered.append(RegisteredSource(config, record.id, False, "source inactive"))
                    continue
                configured = config.base_url.strip()
                if record.base_url and record.base_url != configured:
                    logger.error(
                        f"[CRAWL] base_url mismatch code={config.code} db={record.base_url} env={configured}"
                    )
                    registered.append(RegisteredSource(config, record.id, False, "base_url mismatch"))
                    continue
                if not record.base_url:
                    store.fill_source_base_url(record.id, configured)
                registered.append(RegisteredSource(config, record.id, True))
        return cls(registered)

    def get(self, code: str) -> RegisteredSource | None:
        return self._sources.get(code)

    def require(self, code: str) -> RegisteredSource:
        source = self._sources.get(code)
        if source is None or not source.enabled or source.source_id is None:
            raise SourceDisabledError(f"Crawler disabled or misconfigured for source: {code}")
        return source

    def is_enabled(self, code: str) -> bool:
        source = self._sources.get(code)
        return bool(source and source.enabled)

    def enabled(self) -> list[RegisteredSource]:
        return [s for s in self._sources.values() if s.enabled]
