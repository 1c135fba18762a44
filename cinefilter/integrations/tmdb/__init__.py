"""
TMDb integration clients.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cinefilter.integrations.tmdb.client import (
        TmdbClient,
        build_discover_params,
        parse_discover_payload,
        parse_movie_details,
        resolve_api_key,
    )

__all__ = [
    "TmdbClient",
    "build_discover_params",
    "parse_discover_payload",
    "parse_movie_details",
    "resolve_api_key",
]


def __getattr__(name: str):
    if name in __all__:
        from cinefilter.integrations.tmdb import client

        return getattr(client, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
