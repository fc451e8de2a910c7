"""
Per-source payload adapters.

The registry is built once at startup and handed to the services that need it.
"""
from __future__ import annotations

from typing import Iterable

from phim_backend.ingestion.adapters.base import AdapterNotFoundError, PayloadAdapter
from phim_backend.ingestion.adapters.kkphim import KkphimPayloadAdapter
from phim_backend.ingestion.adapters.ophim import OphimPayloadAdapter


class AdapterRegistry:
    def __init__(self, adapters: Iterable[PayloadAdapter]) -> None:
        self._adapters: tuple[PayloadAdapter, ...] = tuple(adapters)

    def resolve(self, source_code: str) -> PayloadAdapter:
        for adapter in self._adapters:
            if adapter.supports(source_code):
                return adapter
        raise AdapterNotFoundError(f"No adapter registered for source '{source_code}'.")


def default_adapter_registry() -> AdapterRegistry:
    return AdapterRegistry([OphimPayloadAdapter(), KkphimPayloadAdapter()])


__all__ = [
    "AdapterNotFoundError",
    "AdapterRegistry",
    "KkphimPayloadAdapter",
    "OphimPayloadAdapter",
    "PayloadAdapter",
    "default_adapter_registry",
]
