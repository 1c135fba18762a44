from __future__ import annotations

import logging
import os
from typing import Any, Mapping

import requests

from cinefilter.cache import ApiCache, build_request_key
from cinefilter.cancellation import CancellationScope
from cinefilter.integrations.http import request_json
from cinefilter.models.movies import DiscoverPage, FilterCriteria, MovieDetails, StreamingProvider, TmdbMovie

logger = logging.getLogger(__name__)

TMDB_API_BASE_URL = "https://api.themoviedb.org/3"


def _require_api_key(api_key: str | None) -> str:
    resolved = (api_key or os.getenv("TMDB_API_KEY") or "").strip()
    if not resolved:
        raise RuntimeError("TMDB_API_KEY is not set.")
    return resolved


def resolve_api_key(api_key: str | None = None) -> str | None:
    """
    Best-effort API key resolution for callers that want to continue when the key is missing.
    """

    resolved = (api_key or os.getenv("TMDB_API_KEY") or "").strip()
    return resolved or None


def build_discover_params(criteria: FilterCriteria, page: int, *, language: str = "en-US") -> dict[str, Any]:
    """
    Translate filter criteria into `/discover/movie` query parameters.

    Optional lists are left out entirely when empty, and `watch_region` is only sent
    alongside a provider filter.
    """

    params: dict[str, Any] = {
        "primary_release_date.gte": f"{criteria.year_from}-01-01",
        "primary_release_date.lte": f"{criteria.year_to}-12-31",
        "vote_average.gte": criteria.min_rating,
        "vote_count.gte": criteria.min_votes,
        "sort_by": "vote_average.desc",
        "page": int(page),
        "language": language,
    }
    if criteria.excluded_genres:
        params["without_genres"] = ",".join(str(g) for g in criteria.excluded_genres)
    if criteria.excluded_languages:
        params["without_original_language"] = ",".join(criteria.excluded_languages)
    if criteria.excluded_countries:
        params["without_origin_country"] = ",".join(criteria.excluded_countries)
    if criteria.selected_providers:
        # Pipe means "any of" for TMDb provider filters.
        params["with_watch_providers"] = "|".join(str(p) for p in criteria.selected_providers)
        params["watch_region"] = criteria.watch_region
    return params


def parse_discover_payload(payload: Mapping[str, Any]) -> DiscoverPage:
    results: list[TmdbMovie] = []
    raw_results = payload.get("results")
    if isinstance(raw_results, list):
        for item in raw_results:
            if not isinstance(item, Mapping):
                continue
            movie = TmdbMovie.from_payload(item)
            if movie is not None:
                results.append(movie)

    def as_count(key: str) -> int:
        value = payload.get(key)
        return value if isinstance(value, int) and not isinstance(value, bool) and value > 0 else 0

    return DiscoverPage(
        page=as_count("page") or 1,
        total_pages=as_count("total_pages"),
        total_results=as_count("total_results"),
        results=tuple(results),
    )


def extract_imdb_id(payload: Mapping[str, Any]) -> str | None:
    external_ids = payload.get("external_ids")
    if isinstance(external_ids, Mapping):
        value = external_ids.get("imdb_id")
        if isinstance(value, str) and value.strip():
            return value.strip()
    value = payload.get("imdb_id")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def extract_flatrate_providers(payload: Mapping[str, Any]) -> dict[str, tuple[StreamingProvider, ...]]:
    """
    Pull subscription providers per region out of an appended `watch/providers` block.

    Regions without a usable `flatrate` list are omitted.
    """

    block = payload.get("watch/providers")
    if not isinstance(block, Mapping):
        return {}
    results = block.get("results")
    if not isinstance(results, Mapping):
        return {}

    by_region: dict[str, tuple[StreamingProvider, ...]] = {}
    for region, region_block in results.items():
        if not isinstance(region, str) or not isinstance(region_block, Mapping):
            continue
        flatrate = region_block.get("flatrate")
        if not isinstance(flatrate, list):
            continue
        providers: list[StreamingProvider] = []
        for item in flatrate:
            if not isinstance(item, Mapping):
                continue
            provider = StreamingProvider.from_payload(item)
            if provider is not None:
                providers.append(provider)
        by_region[region.strip().upper()] = tuple(providers)
    return by_region


def parse_movie_details(payload: Mapping[str, Any], *, movie_id: int) -> MovieDetails:
    return MovieDetails(
        id=movie_id,
        imdb_id=extract_imdb_id(payload),
        watch_providers=extract_flatrate_providers(payload),
    )


class TmdbClient:
    """
    TMDb catalog client for discovery and per-movie details.

    Responses are cached per client in an `ApiCache`, keyed by endpoint plus the sorted
    query parameters (the API key is not part of the key).
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        session: requests.Session | None = None,
        cache: ApiCache | None = None,
        timeout_seconds: float = 20.0,
        language: str = "en-US",
    ) -> None:
        self._api_key = api_key
        self._session = session or requests.Session()
        self._cache = cache if cache is not None else ApiCache()
        self._timeout_seconds = timeout_seconds
        self._language = language

    @property
    def cache(self) -> ApiCache:
        return self._cache

    @property
    def api_key(self) -> str:
        return _require_api_key(self._api_key)

    def close(self) -> None:
        self._session.close()

    def get(
        self,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
        *,
        scope: CancellationScope | None = None,
    ) -> dict[str, Any]:
        query = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
        cache_key = build_request_key("tmdb", endpoint, query)
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug("TMDb cache hit: %s", cache_key)
            return cached

        payload = request_json(
            self._session,
            f"{TMDB_API_BASE_URL}{endpoint}",
            params={"api_key": self.api_key, **query},
            scope=scope,
            timeout_seconds=self._timeout_seconds,
        )
        self._cache.set(cache_key, payload)
        return payload

    def discover_movies(
        self,
        criteria: FilterCriteria,
        page: int = 1,
        *,
        scope: CancellationScope | None = None,
    ) -> DiscoverPage:
        params = build_discover_params(criteria, page, language=self._language)
        payload = self.get("/discover/movie", params, scope=scope)
        return parse_discover_payload(payload)

    def fetch_movie_details(self, movie_id: int, *, scope: CancellationScope | None = None) -> MovieDetails:
        """Fetch external ids and watch providers for one movie in a single round trip."""

        movie_id_int = int(movie_id)
        payload = self.get(
            f"/movie/{movie_id_int}",
            {"append_to_response": "external_ids,watch/providers"},
            scope=scope,
        )
        return parse_movie_details(payload, movie_id=movie_id_int)
