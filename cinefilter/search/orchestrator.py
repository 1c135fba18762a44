"""
Search orchestration: TMDb discovery across native pages, then sequential OMDb
verification of each movie, publishing a fresh `SearchState` after every step.

Only the most recently started search may publish. Starting a new search (or calling
`cancel()`) cancels the previous scope, and a cancelled search exits silently at its
next suspension point.
"""
from __future__ import annotations

import logging
import math
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from threading import RLock
from typing import Any, Callable, Protocol

from cinefilter.cancellation import CancellationScope, SearchCancelled, check_scope
from cinefilter.constants import TMDB_MAX_PAGES, TMDB_PAGE_SIZE
from cinefilter.models.movies import (
    DiscoverPage,
    EnrichedMovie,
    FilterCriteria,
    MovieDetails,
    OmdbResult,
    SearchState,
    SearchStats,
    TmdbMovie,
    VerifyStatus,
)
from cinefilter.search.movie_logic import build_verification_result, enrich_with_genre_names

logger = logging.getLogger(__name__)


class CatalogClient(Protocol):
    def discover_movies(
        self, criteria: FilterCriteria, page: int = 1, *, scope: CancellationScope | None = None
    ) -> DiscoverPage: ...

    def fetch_movie_details(self, movie_id: int, *, scope: CancellationScope | None = None) -> MovieDetails: ...


class VerificationClient(Protocol):
    def lookup(self, imdb_id: str, *, scope: CancellationScope | None = None) -> OmdbResult: ...


@dataclass(frozen=True)
class AggregatedPage:
    results: tuple[TmdbMovie, ...]
    total_results: int
    total_pages: int


def native_page_span(page_size: int, display_page: int) -> tuple[int, int]:
    """Return `(first_native_page, native_pages_needed)` for one display page."""

    pages_needed = math.ceil(page_size / TMDB_PAGE_SIZE)
    return (max(1, int(display_page)) - 1) * pages_needed + 1, pages_needed


def fetch_multiple_pages(
    tmdb: CatalogClient,
    criteria: FilterCriteria,
    display_page: int,
    *,
    scope: CancellationScope | None = None,
) -> AggregatedPage:
    """
    Fill one display page from TMDb's fixed 20-result pages.

    With `page_size=50`, display page 1 reads native pages 1-3 and page 2 reads 4-6;
    the combined results are trimmed to the page size. Fetching stops early once TMDb
    reports no further pages.
    """

    page_size = criteria.page_size
    start_page, pages_needed = native_page_span(page_size, display_page)

    results: list[TmdbMovie] = []
    total_results = 0
    tmdb_total_pages = 0
    for offset in range(pages_needed):
        check_scope(scope)
        native_page = start_page + offset
        data = tmdb.discover_movies(criteria, native_page, scope=scope)
        check_scope(scope)
        logger.debug("Fetched TMDb page %s (%s results)", native_page, len(data.results))

        total_results = data.total_results or 0
        tmdb_total_pages = min(data.total_pages or 0, TMDB_MAX_PAGES)
        results.extend(data.results)
        if native_page >= tmdb_total_pages:
            break

    # Display page count is derived from the capped native total, not the raw result count alone.
    total_pages = math.ceil(min(tmdb_total_pages * TMDB_PAGE_SIZE, total_results) / page_size)
    return AggregatedPage(
        results=tuple(results[:page_size]),
        total_results=total_results,
        total_pages=total_pages,
    )


class MovieSearch:
    """
    Owns the published `SearchState` and the cancellation scope of the active search.

    `search()` runs on the caller's thread; `start()` runs it on a private worker thread
    and returns a Future. Every published snapshot is passed to `on_change`.
    """

    def __init__(
        self,
        tmdb: CatalogClient,
        omdb: VerificationClient,
        *,
        on_change: Callable[[SearchState], Any] | None = None,
    ) -> None:
        self._tmdb = tmdb
        self._omdb = omdb
        self._on_change = on_change
        self._lock = RLock()
        self._scope: CancellationScope | None = None
        self._state = SearchState()
        self._request_seq = 0
        self._executor: ThreadPoolExecutor | None = None

    @property
    def state(self) -> SearchState:
        with self._lock:
            return self._state

    def __enter__(self) -> MovieSearch:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def cancel(self) -> None:
        with self._lock:
            self._request_seq += 1
            if self._scope is not None:
                self._scope.cancel()

    def close(self) -> None:
        with self._lock:
            self._request_seq += 1
            if self._scope is not None:
                self._scope.cancel()
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    def start(self, criteria: FilterCriteria, page: int = 1) -> Future:
        """Run a search in the background, cancelling whatever search is active now."""

        with self._lock:
            self._request_seq += 1
            request_seq = self._request_seq
            if self._scope is not None:
                self._scope.cancel()
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cinefilter-search")
            executor = self._executor
        return executor.submit(self._search, criteria, page, request_seq)

    def search(self, criteria: FilterCriteria, page: int = 1) -> None:
        self._search(criteria, page, None)

    def _begin(self, request_seq: int | None) -> CancellationScope | None:
        with self._lock:
            if request_seq is None:
                self._request_seq += 1
            elif request_seq != self._request_seq:
                return None
            if self._scope is not None:
                self._scope.cancel()
            self._scope = CancellationScope()
            return self._scope

    def _publish(self, scope: CancellationScope, **changes: Any) -> bool:
        with self._lock:
            if scope.cancelled or scope is not self._scope:
                return False
            self._state = replace(self._state, **changes)
            if self._on_change is not None:
                self._on_change(self._state)
            return True

    def _search(self, criteria: FilterCriteria, page: int, request_seq: int | None) -> None:
        scope = self._begin(request_seq)
        if scope is None:
            logger.debug("Skipping superseded search request for page %s", page)
            return

        logger.info(
            "Searching %s-%s, page %s (page size %s)", criteria.year_from, criteria.year_to, page, criteria.page_size
        )
        self._publish(scope, movies=(), verification={}, stats=SearchStats(), loading=True, error=None)
        try:
            self._run(scope, criteria, page)
        except SearchCancelled:
            logger.debug("Search for page %s cancelled", page)
        finally:
            self._publish(scope, loading=False)

    def _run(self, scope: CancellationScope, criteria: FilterCriteria, page: int) -> None:
        try:
            aggregated = fetch_multiple_pages(self._tmdb, criteria, page, scope=scope)
        except SearchCancelled:
            raise
        except Exception as exc:
            logger.info("Search failed: %s", exc)
            self._publish(scope, error=str(exc) or "Search failed")
            return

        enriched = [replace(enrich_with_genre_names(m), status="checking") for m in aggregated.results]
        verification: dict[int, VerifyStatus] = {m.id: "checking" for m in enriched}
        self._publish(
            scope,
            page=page,
            total_pages=aggregated.total_pages,
            total_results=aggregated.total_results,
            movies=tuple(enriched),
            verification=dict(verification),
            stats=SearchStats(pending=len(enriched)),
        )

        # One movie at a time: keeps load on OMDb bounded and progress monotonic.
        verified = 0
        mismatched = 0
        for movie in enriched:
            scope.raise_if_cancelled()
            result = self._verify_one(movie, criteria, scope)
            scope.raise_if_cancelled()

            status: VerifyStatus = result.status or "error"
            if status == "verified":
                verified += 1
            elif status == "mismatch":
                mismatched += 1
            verification[movie.id] = status
            logger.debug("Verified %s (%s): %s", movie.title, movie.id, status)

            with self._lock:
                movies = tuple(result if m.id == movie.id else m for m in self._state.movies)
                self._publish(
                    scope,
                    movies=movies,
                    verification=dict(verification),
                    stats=SearchStats(
                        verified=verified,
                        mismatched=mismatched,
                        pending=len(enriched) - verified - mismatched,
                    ),
                )

        logger.info(
            "Search complete: %s movies, %s verified, %s mismatched", len(enriched), verified, mismatched
        )

    def _verify_one(self, movie: EnrichedMovie, criteria: FilterCriteria, scope: CancellationScope) -> EnrichedMovie:
        try:
            details = self._tmdb.fetch_movie_details(movie.id, scope=scope)
            scope.raise_if_cancelled()
            providers = details.providers_for(criteria.watch_region)
            if not details.imdb_id:
                return build_verification_result(movie, None, None, providers, criteria)

            omdb_result = self._omdb.lookup(details.imdb_id, scope=scope)
            return build_verification_result(movie, omdb_result, details.imdb_id, providers, criteria)
        except SearchCancelled:
            raise
        except Exception as exc:
            logger.warning("Verification failed for %s (%s): %s", movie.title, movie.id, exc)
            return replace(
                movie,
                streaming_providers=(),
                status="error",
                error_message=str(exc) or "Verification failed",
            )
