from __future__ import annotations

import logging
import math
import os
import re
from typing import Any, Mapping

import requests

from cinefilter.cache import ApiCache
from cinefilter.cancellation import CancellationScope
from cinefilter.errors import ApiResponseError
from cinefilter.integrations.http import request_json
from cinefilter.models.movies import OmdbResult

logger = logging.getLogger(__name__)

OMDB_API_BASE_URL = "https://www.omdbapi.com/"
NOT_AVAILABLE = "N/A"

# OMDb reports series years as an en-dash range ("2020–2023").
_YEAR_RANGE_SEPARATOR = "\u2013"
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def _require_api_key(api_key: str | None) -> str:
    resolved = (api_key or os.getenv("OMDB_API_KEY") or "").strip()
    if not resolved:
        raise RuntimeError("OMDB_API_KEY is not set.")
    return resolved


def resolve_api_key(api_key: str | None = None) -> str | None:
    resolved = (api_key or os.getenv("OMDB_API_KEY") or "").strip()
    return resolved or None


def parse_year(value: Any) -> tuple[int | None, str | None]:
    """
    Return `(year, raw_year)` for an OMDb `Year` value.

    The raw year is the text before the first en-dash. The year is its leading integer,
    or None when there is none; arbitrary input never raises.
    """

    if not isinstance(value, str) or not value:
        return None, None
    raw_year = value.split(_YEAR_RANGE_SEPARATOR)[0].strip()
    match = _LEADING_INT_RE.match(raw_year)
    if not match:
        return None, raw_year
    return int(match.group(1)), raw_year


def parse_rating(value: Any) -> float | None:
    if not isinstance(value, str) or not value.strip() or value.strip() == NOT_AVAILABLE:
        return None
    try:
        rating = float(value.strip())
    except ValueError:
        return None
    return rating if math.isfinite(rating) else None


def _optional_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip() and value.strip() != NOT_AVAILABLE:
        return value.strip()
    return None


def parse_omdb_result(record: Mapping[str, Any]) -> OmdbResult:
    year, raw_year = parse_year(record.get("Year"))
    rating_str = record.get("imdbRating")
    return OmdbResult(
        year=year,
        rating=parse_rating(rating_str),
        rating_str=rating_str if isinstance(rating_str, str) else None,
        raw_year=raw_year,
        director=_optional_text(record.get("Director")),
        actors=_optional_text(record.get("Actors")),
    )


class OmdbClient:
    """
    OMDb lookup-by-IMDb-id client; the authoritative source for release year and rating.

    Successful lookups are cached by IMDb id alone.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        session: requests.Session | None = None,
        cache: ApiCache | None = None,
        timeout_seconds: float = 20.0,
    ) -> None:
        self._api_key = api_key
        self._session = session or requests.Session()
        self._cache = cache if cache is not None else ApiCache()
        self._timeout_seconds = timeout_seconds

    @property
    def cache(self) -> ApiCache:
        return self._cache

    @property
    def api_key(self) -> str:
        return _require_api_key(self._api_key)

    def close(self) -> None:
        self._session.close()

    def fetch_by_imdb_id(self, imdb_id: str, *, scope: CancellationScope | None = None) -> dict[str, Any]:
        imdb_id = str(imdb_id).strip()
        cache_key = ApiCache.build_key("omdb", imdb_id)
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug("OMDb cache hit: %s", cache_key)
            return cached

        payload = request_json(
            self._session,
            OMDB_API_BASE_URL,
            params={"i": imdb_id, "apikey": self.api_key},
            scope=scope,
            timeout_seconds=self._timeout_seconds,
            error_prefix="OMDb",
            include_body=False,
        )
        if payload.get("Response") == "False":
            raise ApiResponseError(f"OMDb: {payload.get('Error') or 'Unknown error'}")

        self._cache.set(cache_key, payload)
        return payload

    def lookup(self, imdb_id: str, *, scope: CancellationScope | None = None) -> OmdbResult:
        return parse_omdb_result(self.fetch_by_imdb_id(imdb_id, scope=scope))
