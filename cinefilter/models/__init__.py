"""
Domain models shared across scripts and services.
"""

from cinefilter.models.movies import (
    DiscoverPage,
    EnrichedMovie,
    FilterCriteria,
    MovieDetails,
    OmdbResult,
    SearchState,
    SearchStats,
    StreamingProvider,
    TmdbMovie,
    VerifyStatus,
    default_filter_criteria,
)
from cinefilter.models.session import ApiKeys, AuthStep, RatedCache, TmdbSession

__all__ = [
    "ApiKeys",
    "AuthStep",
    "DiscoverPage",
    "EnrichedMovie",
    "FilterCriteria",
    "MovieDetails",
    "OmdbResult",
    "RatedCache",
    "SearchState",
    "SearchStats",
    "StreamingProvider",
    "TmdbMovie",
    "TmdbSession",
    "VerifyStatus",
    "default_filter_criteria",
]
