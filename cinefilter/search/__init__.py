"""
Search orchestration and the pure enrichment/categorization rules it relies on.
"""

from cinefilter.search.movie_logic import (
    Categorized,
    build_verification_result,
    categorize_movies,
    enrich_with_genre_names,
    is_year_in_range,
)
from cinefilter.search.orchestrator import MovieSearch, fetch_multiple_pages, native_page_span

__all__ = [
    "Categorized",
    "MovieSearch",
    "build_verification_result",
    "categorize_movies",
    "enrich_with_genre_names",
    "fetch_multiple_pages",
    "is_year_in_range",
    "native_page_span",
]
