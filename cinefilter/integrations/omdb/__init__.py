"""
OMDb integration client.
"""

from cinefilter.integrations.omdb.client import OmdbClient, parse_omdb_result, parse_rating, parse_year

__all__ = [
    "OmdbClient",
    "parse_omdb_result",
    "parse_rating",
    "parse_year",
]
