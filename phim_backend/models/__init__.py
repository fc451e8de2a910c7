"""
Domain models shared across scripts and services.
"""

from phim_backend.models.normalized import (
    EpisodeItem,
    ExternalPerson,
    MovieNormalized,
    PeopleBlock,
    PersonItem,
    SeasonItem,
    StreamItem,
    TaxonomyItem,
)
from phim_backend.models.sources import DiscoveredItem, SourceConfig, SourceItemRecord, SourceRecord

__all__ = [
    "DiscoveredItem",
    "EpisodeItem",
    "ExternalPerson",
    "MovieNormalized",
    "PeopleBlock",
    "PersonItem",
    "SeasonItem",
    "SourceConfig",
    "SourceItemRecord",
    "SourceRecord",
    "StreamItem",
    "TaxonomyItem",
]
