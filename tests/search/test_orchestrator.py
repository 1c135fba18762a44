from __future__ import annotations

import threading
from typing import Any

import pytest

from cinefilter.cancellation import CancellationScope, SearchCancelled
from cinefilter.errors import ApiHttpError, ApiResponseError
from cinefilter.models.movies import (
    DiscoverPage,
    FilterCriteria,
    MovieDetails,
    OmdbResult,
    SearchState,
    SearchStats,
    StreamingProvider,
    TmdbMovie,
)
from cinefilter.search.orchestrator import MovieSearch, fetch_multiple_pages, native_page_span

_NETFLIX = StreamingProvider(provider_id=8, provider_name="Netflix")


def _movie(movie_id: int, *, release_date: str = "2022-03-01") -> TmdbMovie:
    return TmdbMovie(id=movie_id, title=f"Movie {movie_id}", release_date=release_date, genre_ids=(18,))


def _page(ids: list[int], *, page: int = 1, total_pages: int = 1, total_results: int | None = None) -> DiscoverPage:
    return DiscoverPage(
        page=page,
        total_pages=total_pages,
        total_results=total_results if total_results is not None else len(ids),
        results=tuple(_movie(i) for i in ids),
    )


def _omdb(year: int, rating: float = 7.9) -> OmdbResult:
    return OmdbResult(year=year, rating=rating, rating_str=str(rating), raw_year=str(year))


class _FakeCatalog:
    def __init__(self, pages: dict[int, Any], details: dict[int, Any] | None = None) -> None:
        self.pages = pages
        self.details = details or {}
        self.discover_calls: list[int] = []
        self.detail_calls: list[int] = []
        self.before_discover = None

    def discover_movies(self, criteria: FilterCriteria, page: int = 1, *, scope: CancellationScope | None = None):
        self.discover_calls.append(page)
        if self.before_discover is not None:
            self.before_discover(page)
        item = self.pages[page]
        if isinstance(item, Exception):
            raise item
        return item

    def fetch_movie_details(self, movie_id: int, *, scope: CancellationScope | None = None) -> MovieDetails:
        self.detail_calls.append(movie_id)
        item = self.details.get(movie_id, MovieDetails(id=movie_id))
        if isinstance(item, Exception):
            raise item
        return item


class _FakeVerifier:
    def __init__(self, records: dict[str, Any] | None = None) -> None:
        self.records = records or {}
        self.calls: list[str] = []
        self.on_lookup = None

    def lookup(self, imdb_id: str, *, scope: CancellationScope | None = None) -> OmdbResult:
        self.calls.append(imdb_id)
        if self.on_lookup is not None:
            self.on_lookup(imdb_id)
        item = self.records[imdb_id]
        if isinstance(item, Exception):
            raise item
        return item


def _criteria(**overrides: Any) -> FilterCriteria:
    values: dict[str, Any] = {"year_from": 2020, "year_to": 2023, "page_size": 20}
    values.update(overrides)
    return FilterCriteria(**values)


def _details(movie_id: int, imdb_id: str | None, providers: tuple[StreamingProvider, ...] = ()) -> MovieDetails:
    return MovieDetails(id=movie_id, imdb_id=imdb_id, watch_providers={"US": providers})


@pytest.mark.parametrize(
    ("page_size", "display_page", "expected"),
    [(10, 1, (1, 1)), (20, 3, (3, 1)), (50, 1, (1, 3)), (50, 2, (4, 3)), (100, 2, (6, 5))],
)
def test_native_page_span(page_size: int, display_page: int, expected: tuple[int, int]) -> None:
    assert native_page_span(page_size, display_page) == expected


def test_fetch_multiple_pages_reads_consecutive_native_pages_and_trims() -> None:
    pages = {
        p: _page(list(range(p * 100, p * 100 + 20)), page=p, total_pages=10, total_results=200) for p in range(1, 11)
    }
    catalog = _FakeCatalog(pages)

    aggregated = fetch_multiple_pages(catalog, _criteria(page_size=50), 2)

    assert catalog.discover_calls == [4, 5, 6]
    assert len(aggregated.results) == 50
    assert aggregated.results[0].id == 400
    assert aggregated.results[-1].id == 609
    assert aggregated.total_results == 200
    assert aggregated.total_pages == 4


def test_fetch_multiple_pages_stops_when_catalog_runs_out() -> None:
    catalog = _FakeCatalog(
        {
            1: _page(list(range(1, 21)), page=1, total_pages=2, total_results=35),
            2: _page(list(range(21, 36)), page=2, total_pages=2, total_results=35),
        }
    )

    aggregated = fetch_multiple_pages(catalog, _criteria(page_size=100), 1)

    assert catalog.discover_calls == [1, 2]
    assert len(aggregated.results) == 35
    assert aggregated.total_pages == 1


def test_fetch_multiple_pages_caps_native_total_at_500() -> None:
    catalog = _FakeCatalog({1: _page(list(range(1, 21)), total_pages=1200, total_results=24000)})

    aggregated = fetch_multiple_pages(catalog, _criteria(page_size=20), 1)

    assert aggregated.total_pages == 500
    assert aggregated.total_results == 24000


def test_fetch_multiple_pages_honors_cancelled_scope() -> None:
    catalog = _FakeCatalog({1: _page([1])})
    scope = CancellationScope()
    scope.cancel()

    with pytest.raises(SearchCancelled):
        fetch_multiple_pages(catalog, _criteria(), 1, scope=scope)
    assert catalog.discover_calls == []


def test_movie_without_imdb_id_is_verified_without_omdb_fields() -> None:
    catalog = _FakeCatalog({1: _page([1])}, {1: _details(1, None, (_NETFLIX,))})
    verifier = _FakeVerifier()
    search = MovieSearch(catalog, verifier)

    search.search(_criteria())

    state = search.state
    assert state.verification == {1: "verified"}
    movie = state.movies[0]
    assert movie.status == "verified"
    assert movie.imdb_id is None
    assert movie.imdb_year is None
    assert movie.imdb_rating is None
    assert movie.streaming_providers == (_NETFLIX,)
    assert verifier.calls == []
    assert state.loading is False


def test_year_in_range_is_verified() -> None:
    catalog = _FakeCatalog({1: _page([1])}, {1: _details(1, "tt0000001")})
    search = MovieSearch(catalog, _FakeVerifier({"tt0000001": _omdb(2021)}))

    search.search(_criteria())

    state = search.state
    assert state.verification == {1: "verified"}
    assert state.stats == SearchStats(verified=1, mismatched=0, pending=0)
    assert state.movies[0].imdb_year == "2021"
    assert state.movies[0].imdb_rating == 7.9


def test_year_out_of_range_is_mismatch() -> None:
    catalog = _FakeCatalog({1: _page([1])}, {1: _details(1, "tt0000001")})
    search = MovieSearch(catalog, _FakeVerifier({"tt0000001": _omdb(1985)}))

    search.search(_criteria())

    state = search.state
    assert state.verification == {1: "mismatch"}
    assert state.stats == SearchStats(verified=0, mismatched=1, pending=0)
    assert state.movies[0].imdb_year == "1985"


def test_failed_verification_is_isolated_to_one_movie() -> None:
    catalog = _FakeCatalog(
        {1: _page([1, 2, 3])},
        {
            1: _details(1, "tt1"),
            2: ApiHttpError("TMDB 500: Internal Server Error - oops", status_code=500),
            3: _details(3, "tt3"),
        },
    )
    search = MovieSearch(catalog, _FakeVerifier({"tt1": _omdb(2021), "tt3": _omdb(2022)}))

    search.search(_criteria())

    state = search.state
    assert state.verification == {1: "verified", 2: "error", 3: "verified"}
    failed = next(m for m in state.movies if m.id == 2)
    assert failed.status == "error"
    assert failed.error_message == "TMDB 500: Internal Server Error - oops"
    assert state.loading is False
    assert state.error is None
    assert state.stats == SearchStats(verified=2, mismatched=0, pending=1)


def test_omdb_not_found_marks_movie_error() -> None:
    catalog = _FakeCatalog({1: _page([1])}, {1: _details(1, "tt1")})
    search = MovieSearch(catalog, _FakeVerifier({"tt1": ApiResponseError("OMDb: Movie not found!")}))

    search.search(_criteria())

    assert search.state.verification == {1: "error"}
    assert search.state.movies[0].error_message == "OMDb: Movie not found!"


def test_discovery_failure_publishes_error_and_stops() -> None:
    catalog = _FakeCatalog({1: ApiHttpError("TMDB 401: Unauthorized - bad key", status_code=401)})
    search = MovieSearch(catalog, _FakeVerifier())

    search.search(_criteria())

    state = search.state
    assert state.error == "TMDB 401: Unauthorized - bad key"
    assert state.movies == ()
    assert state.loading is False
    assert catalog.detail_calls == []


def test_unexpected_detail_error_is_isolated_to_one_movie() -> None:
    catalog = _FakeCatalog({1: _page([1, 2])}, {1: KeyError("external_ids"), 2: _details(2, "tt2")})
    search = MovieSearch(catalog, _FakeVerifier({"tt2": _omdb(2022)}))

    search.search(_criteria())

    state = search.state
    assert state.verification == {1: "error", 2: "verified"}
    assert "external_ids" in state.movies[0].error_message
    assert state.error is None
    assert state.loading is False


def test_unexpected_discovery_error_becomes_search_error() -> None:
    catalog = _FakeCatalog({1: TypeError("bad payload")})
    search = MovieSearch(catalog, _FakeVerifier())

    search.search(_criteria())

    state = search.state
    assert state.error == "bad payload"
    assert state.movies == ()
    assert state.loading is False


def test_publishes_all_movies_as_checking_before_verifying() -> None:
    catalog = _FakeCatalog(
        {1: _page([1, 2, 3], total_pages=1, total_results=3)},
        {i: _details(i, f"tt{i}") for i in (1, 2, 3)},
    )
    verifier = _FakeVerifier({"tt1": _omdb(2021), "tt2": _omdb(1990), "tt3": _omdb(2022)})
    snapshots: list[SearchState] = []
    search = MovieSearch(catalog, verifier, on_change=snapshots.append)

    search.search(_criteria(), 1)

    reset, listed = snapshots[0], snapshots[1]
    assert reset.movies == ()
    assert reset.loading is True
    assert reset.error is None
    assert [m.id for m in listed.movies] == [1, 2, 3]
    assert all(m.status == "checking" for m in listed.movies)
    assert listed.verification == {1: "checking", 2: "checking", 3: "checking"}
    assert listed.stats == SearchStats(pending=3)
    assert listed.page == 1
    assert listed.total_results == 3
    assert listed.total_pages == 1

    progress = [s.stats for s in snapshots[2:5]]
    assert progress == [
        SearchStats(verified=1, mismatched=0, pending=2),
        SearchStats(verified=1, mismatched=1, pending=1),
        SearchStats(verified=2, mismatched=1, pending=0),
    ]
    assert snapshots[-1].loading is False
    assert len(snapshots) == 6
    assert verifier.calls == ["tt1", "tt2", "tt3"]


def test_cancel_before_discovery_resolves_publishes_nothing() -> None:
    catalog = _FakeCatalog({1: _page([1])}, {1: _details(1, "tt1")})
    snapshots: list[SearchState] = []
    search = MovieSearch(catalog, _FakeVerifier({"tt1": _omdb(2021)}), on_change=snapshots.append)
    catalog.before_discover = lambda _page_number: search.cancel()

    search.search(_criteria())

    state = search.state
    assert state.movies == ()
    assert state.error is None
    assert catalog.detail_calls == []
    assert len(snapshots) == 1


def test_cancel_during_verification_stops_further_publishing() -> None:
    catalog = _FakeCatalog({1: _page([1, 2])}, {1: _details(1, "tt1"), 2: _details(2, "tt2")})
    verifier = _FakeVerifier({"tt1": _omdb(2021), "tt2": _omdb(2021)})
    search = MovieSearch(catalog, verifier)
    verifier.on_lookup = lambda _imdb_id: search.cancel()

    search.search(_criteria())

    state = search.state
    assert state.verification == {1: "checking", 2: "checking"}
    assert verifier.calls == ["tt1"]
    assert catalog.detail_calls == [1]
    assert state.error is None


def test_cancel_without_search_is_safe() -> None:
    search = MovieSearch(_FakeCatalog({}), _FakeVerifier())

    search.cancel()
    search.cancel()

    assert search.state == SearchState()


def test_new_search_supersedes_running_one() -> None:
    release_first = threading.Event()
    first_started = threading.Event()
    catalog = _FakeCatalog(
        {1: _page([1]), 2: _page([2], page=2, total_pages=2, total_results=40)},
        {1: _details(1, "tt1"), 2: _details(2, "tt2")},
    )

    def _block_first(page_number: int) -> None:
        if page_number == 1:
            first_started.set()
            assert release_first.wait(timeout=5)

    catalog.before_discover = _block_first
    snapshots: list[SearchState] = []
    verifier = _FakeVerifier({"tt1": _omdb(2021), "tt2": _omdb(2022)})

    with MovieSearch(catalog, verifier, on_change=snapshots.append) as search:
        first = search.start(_criteria(), 1)
        assert first_started.wait(timeout=5)
        second = search.start(_criteria(), 2)
        release_first.set()
        first.result(timeout=5)
        second.result(timeout=5)

        state = search.state

    assert state.page == 2
    assert [m.id for m in state.movies] == [2]
    assert state.verification == {2: "verified"}
    assert state.loading is False
    assert catalog.detail_calls == [2]
    assert all(1 not in s.verification for s in snapshots)


def test_superseded_queued_request_never_runs() -> None:
    release_first = threading.Event()
    first_started = threading.Event()
    catalog = _FakeCatalog(
        {1: _page([1]), 2: _page([2]), 3: _page([3])},
        {i: _details(i, None) for i in (1, 2, 3)},
    )

    def _block_first(page_number: int) -> None:
        if page_number == 1:
            first_started.set()
            assert release_first.wait(timeout=5)

    catalog.before_discover = _block_first
    search = MovieSearch(catalog, _FakeVerifier())
    try:
        futures = [search.start(_criteria(), 1)]
        assert first_started.wait(timeout=5)
        futures.append(search.start(_criteria(), 2))
        futures.append(search.start(_criteria(), 3))
        release_first.set()
        for future in futures:
            future.result(timeout=5)
    finally:
        search.close()

    assert catalog.discover_calls == [1, 3]
    assert [m.id for m in search.state.movies] == [3]


def test_cancel_right_after_start_skips_queued_search() -> None:
    release_first = threading.Event()
    first_started = threading.Event()
    catalog = _FakeCatalog(
        {1: _page([1]), 2: _page([2])},
        {1: _details(1, "tt1"), 2: _details(2, "tt2")},
    )

    def _block_first(page_number: int) -> None:
        if page_number == 1:
            first_started.set()
            assert release_first.wait(timeout=5)

    catalog.before_discover = _block_first
    search = MovieSearch(catalog, _FakeVerifier({"tt1": _omdb(2021), "tt2": _omdb(2022)}))
    try:
        first = search.start(_criteria(), 1)
        assert first_started.wait(timeout=5)
        second = search.start(_criteria(), 2)
        search.cancel()
        release_first.set()
        first.result(timeout=5)
        second.result(timeout=5)
    finally:
        search.close()

    assert catalog.discover_calls == [1]
    assert catalog.detail_calls == []
    assert search.state.movies == ()
    assert search.state.error is None
