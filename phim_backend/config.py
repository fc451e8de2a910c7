"""
Runtime settings resolved from environment variables.

Entrypoints call `phim_backend.utils.env.load_env()` first so a local `.env` file is honoured.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from phim_backend.models.sources import SourceConfig
from phim_backend.utils.env import env_float, env_int

DEFAULT_PEOPLE_PATH = "/v1/api/phim/{slug}/peoples"

# code -> env var prefix
KNOWN_SOURCES: dict[str, str] = {
    "ophim": "OPHIM",
    "kkphim": "KKPHIM",
}


@dataclass(frozen=True)
class QueueSettings:
    concurrency: int
    max_attempts: int = 3
    backoff_seconds: float = 5.0


@dataclass(frozen=True)
class Settings:
    http_timeout_seconds: float = 15.0
    discover_interval_seconds: int = 600
    worker_poll_seconds: float = 2.0
    job_lease_seconds: int = 900
    discover_queue: QueueSettings = field(default_factory=lambda: QueueSettings(concurrency=2))
    detail_queue: QueueSettings = field(default_factory=lambda: QueueSettings(concurrency=5))
    sync_queue: QueueSettings = field(default_factory=lambda: QueueSettings(concurrency=3))
    sources: tuple[SourceConfig, ...] = ()


def load_source_configs(environ: Mapping[str, str] | None = None) -> list[SourceConfig]:
    """
    Read per-source endpoint templates.

    A source is configured only when its base URL, list path and detail path are all set;
    the people path is optional and defaults to the public `/peoples` endpoint.
    """

    env = os.environ if environ is None else environ
    configs: list[SourceConfig] = []
    for code, prefix in KNOWN_SOURCES.items():
        base_url = (env.get(f"{prefix}_BASE_URL") or "").strip()
        list_path = (env.get(f"{prefix}_LIST_PATH") or "").strip()
        detail_path = (env.get(f"{prefix}_DETAIL_PATH") or "").strip()
        if not (base_url and list_path and detail_path):
            continue
        people_path = (env.get(f"{prefix}_PEOPLE_PATH") or "").strip() or DEFAULT_PEOPLE_PATH
        configs.append(
            SourceConfig(
                code=code,
                base_url=base_url,
                list_path=list_path,
                detail_path=detail_path,
                people_path=people_path,
            )
        )
    return configs


def load_settings() -> Settings:
    max_attempts = max(1, env_int("PHIM_JOB_MAX_ATTEMPTS", 3))
    backoff = max(0.0, env_float("PHIM_JOB_BACKOFF_SECONDS", 5.0))

    def queue(name: str, default_concurrency: int) -> QueueSettings:
        return QueueSettings(
            concurrency=max(1, env_int(f"PHIM_{name}_CONCURRENCY", default_concurrency)),
            max_attempts=max_attempts,
            backoff_seconds=backoff,
        )

    return Settings(
        http_timeout_seconds=env_float("PHIM_HTTP_TIMEOUT_SECONDS", 15.0),
        discover_interval_seconds=max(1, env_int("PHIM_DISCOVER_INTERVAL_SECONDS", 600)),
        worker_poll_seconds=max(0.1, env_float("PHIM_WORKER_POLL_SECONDS", 2.0)),
        job_lease_seconds=max(60, env_int("PHIM_JOB_LEASE_SECONDS", 900)),
        discover_queue=queue("DISCOVER", 2),
        detail_queue=queue("DETAIL", 5),
        sync_queue=queue("SYNC", 3),
        sources=tuple(load_source_configs()),
    )
