from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

from cinefilter.constants import (
    DEFAULT_EXCLUDED_GENRES,
    DEFAULT_MIN_RATING,
    DEFAULT_MIN_VOTES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_WATCH_REGION,
    PAGE_SIZES,
    current_year,
)

VerifyStatus = Literal["checking", "verified", "mismatch", "error"]


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        raw = value.strip()
        if raw.isdigit():
            return int(raw)
    return None


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def _as_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s or None
    return None


@dataclass(frozen=True)
class FilterCriteria:
    """
    User-chosen search parameters, immutable for the lifetime of one search.

    `min_rating`/`min_votes` are applied by TMDb itself; `imdb_cutoff` is applied
    after verification, against the OMDb rating.
    """

    year_from: int
    year_to: int
    min_rating: float = DEFAULT_MIN_RATING
    min_votes: int = DEFAULT_MIN_VOTES
    excluded_genres: tuple[int, ...] = ()
    excluded_languages: tuple[str, ...] = ()
    excluded_countries: tuple[str, ...] = ()
    selected_providers: tuple[int, ...] = ()
    watch_region: str = DEFAULT_WATCH_REGION
    page_size: int = DEFAULT_PAGE_SIZE
    imdb_cutoff: float | None = None
    hide_watched: bool = False

    def __post_init__(self) -> None:
        # Accept any iterable for the set-like fields but store tuples.
        for name in ("excluded_genres", "excluded_languages", "excluded_countries", "selected_providers"):
            object.__setattr__(self, name, tuple(getattr(self, name) or ()))
        object.__setattr__(self, "watch_region", (self.watch_region or DEFAULT_WATCH_REGION).strip().upper())

        if self.year_from > self.year_to:
            raise ValueError(f"year_from ({self.year_from}) must not be after year_to ({self.year_to}).")
        if self.page_size not in PAGE_SIZES:
            raise ValueError(f"page_size must be one of {PAGE_SIZES}, got {self.page_size!r}.")


@dataclass(frozen=True)
class TmdbMovie:
    """A raw TMDb discovery result."""

    id: int
    title: str
    overview: str = ""
    poster_path: str | None = None
    release_date: str = ""
    vote_average: float = 0.0
    vote_count: int = 0
    genre_ids: tuple[int, ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> TmdbMovie | None:
        movie_id = _as_int(payload.get("id"))
        if movie_id is None:
            return None
        genre_ids = payload.get("genre_ids")
        return cls(
            id=movie_id,
            title=_as_str(payload.get("title")) or "",
            overview=payload.get("overview") if isinstance(payload.get("overview"), str) else "",
            poster_path=_as_str(payload.get("poster_path")),
            release_date=payload.get("release_date") if isinstance(payload.get("release_date"), str) else "",
            vote_average=_as_float(payload.get("vote_average")) or 0.0,
            vote_count=_as_int(payload.get("vote_count")) or 0,
            genre_ids=tuple(g for g in (genre_ids or []) if isinstance(g, int)) if isinstance(genre_ids, list) else (),
        )


@dataclass(frozen=True)
class DiscoverPage:
    page: int
    total_pages: int
    total_results: int
    results: tuple[TmdbMovie, ...] = ()


@dataclass(frozen=True)
class StreamingProvider:
    provider_id: int
    provider_name: str
    logo_path: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> StreamingProvider | None:
        provider_id = _as_int(payload.get("provider_id"))
        provider_name = _as_str(payload.get("provider_name"))
        if provider_id is None or provider_name is None:
            return None
        return cls(provider_id=provider_id, provider_name=provider_name, logo_path=_as_str(payload.get("logo_path")))


@dataclass(frozen=True)
class MovieDetails:
    """Per-movie extended data: the IMDb id and subscription ("flatrate") providers by region."""

    id: int
    imdb_id: str | None = None
    watch_providers: Mapping[str, tuple[StreamingProvider, ...]] = field(default_factory=dict)

    def providers_for(self, region: str) -> tuple[StreamingProvider, ...]:
        return tuple(self.watch_providers.get((region or "").strip().upper(), ()))


@dataclass(frozen=True)
class OmdbResult:
    """Normalized OMDb record. `rating_str` keeps the raw display value (e.g. "N/A")."""

    year: int | None
    rating: float | None
    rating_str: str | None
    raw_year: str | None
    director: str | None = None
    actors: str | None = None


@dataclass(frozen=True)
class EnrichedMovie:
    id: int
    title: str
    overview: str
    poster_path: str | None
    release_date: str
    vote_average: float
    vote_count: int
    genre_ids: tuple[int, ...]
    tmdb_year: str
    genre_names: tuple[str, ...] = ()
    streaming_providers: tuple[StreamingProvider, ...] = ()
    imdb_id: str | None = None
    imdb_year: str | None = None
    imdb_rating: float | None = None
    imdb_rating_str: str | None = None
    director: str | None = None
    actors: str | None = None
    status: VerifyStatus | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class SearchStats:
    verified: int = 0
    mismatched: int = 0
    pending: int = 0


@dataclass(frozen=True)
class SearchState:
    """Snapshot of everything a search has published so far."""

    movies: tuple[EnrichedMovie, ...] = ()
    verification: Mapping[int, VerifyStatus] = field(default_factory=dict)
    loading: bool = False
    error: str | None = None
    page: int = 1
    total_pages: int = 0
    total_results: int = 0
    stats: SearchStats = field(default_factory=SearchStats)


def default_filter_criteria(*, year: int | None = None) -> FilterCriteria:
    """The last three years up to `year` (default: this year), family titles excluded."""

    to_year = year if year is not None else current_year()
    return FilterCriteria(
        year_from=to_year - 3,
        year_to=to_year,
        excluded_genres=DEFAULT_EXCLUDED_GENRES,
    )
