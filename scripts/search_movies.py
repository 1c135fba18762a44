#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import sys

import requests

from cinefilter.cache import ApiCache
from cinefilter.constants import (
    DEFAULT_EXCLUDED_GENRES,
    DEFAULT_MIN_RATING,
    DEFAULT_MIN_VOTES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_WATCH_REGION,
    GENRES,
    PAGE_SIZES,
    PROVIDERS,
    WATCH_REGIONS,
    current_year,
)
from cinefilter.errors import ApiError
from cinefilter.integrations.omdb.client import OmdbClient
from cinefilter.integrations.tmdb.client import TmdbClient
from cinefilter.models.movies import EnrichedMovie, FilterCriteria, SearchState
from cinefilter.models.session import ApiKeys
from cinefilter.search import Categorized, MovieSearch, categorize_movies
from cinefilter.session import JsonFileStore, TmdbAccountLink, clear_api_keys, save_api_keys
from cinefilter.utils.env import load_env, resolve_api_keys, resolve_cache_ttl_seconds

IMDB_TITLE_URL = "https://www.imdb.com/title/"


def _parse_args(argv: list[str]) -> argparse.Namespace:
    this_year = current_year()
    parser = argparse.ArgumentParser(
        prog="search_movies",
        description="Discover movies on TMDb and drop re-releases whose OMDb release year falls outside the range.",
    )
    parser.add_argument("--year-from", type=int, default=this_year - 3, help="First release year (inclusive).")
    parser.add_argument("--year-to", type=int, default=this_year, help="Last release year (inclusive).")
    parser.add_argument("--min-rating", type=float, default=DEFAULT_MIN_RATING, help="Minimum TMDb vote average.")
    parser.add_argument("--min-votes", type=int, default=DEFAULT_MIN_VOTES, help="Minimum TMDb vote count.")
    parser.add_argument(
        "--exclude-genre",
        type=int,
        action="append",
        default=None,
        help="TMDb genre id to exclude (repeatable). Defaults to Family.",
    )
    parser.add_argument("--exclude-language", action="append", default=[], help="ISO 639-1 code to exclude.")
    parser.add_argument("--exclude-country", action="append", default=[], help="ISO 3166-1 code to exclude.")
    parser.add_argument("--provider", type=int, action="append", default=[], help="Streaming provider id.")
    parser.add_argument(
        "--region",
        type=str.upper,
        choices=sorted(WATCH_REGIONS),
        default=DEFAULT_WATCH_REGION,
        help="Watch region for provider filtering.",
    )
    parser.add_argument("--page-size", type=int, choices=PAGE_SIZES, default=DEFAULT_PAGE_SIZE)
    parser.add_argument("--page", type=int, default=1, help="Display page (1-based).")
    parser.add_argument("--imdb-cutoff", type=float, default=None, help="Hide verified movies rated below this.")
    parser.add_argument("--hide-watched", action="store_true", help="Hide movies rated on the linked TMDb account.")
    parser.add_argument("--tmdb-key", default=None, help="TMDb API key (overrides TMDB_API_KEY).")
    parser.add_argument("--omdb-key", default=None, help="OMDb API key (overrides OMDB_API_KEY).")
    parser.add_argument("--save-keys", action="store_true", help="Persist the resolved API keys.")
    parser.add_argument("--clear-saved-keys", action="store_true", help="Forget persisted API keys and exit.")
    parser.add_argument("--list-options", action="store_true", help="Print genre, provider and region ids and exit.")
    parser.add_argument("--state-path", default=None, help="Persisted state file (overrides CINEFILTER_STATE_PATH).")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def _build_criteria(args: argparse.Namespace) -> FilterCriteria:
    excluded_genres = DEFAULT_EXCLUDED_GENRES if args.exclude_genre is None else tuple(args.exclude_genre)
    return FilterCriteria(
        year_from=args.year_from,
        year_to=args.year_to,
        min_rating=args.min_rating,
        min_votes=args.min_votes,
        excluded_genres=excluded_genres,
        excluded_languages=[s.strip() for s in args.exclude_language if s.strip()],
        excluded_countries=[s.strip().upper() for s in args.exclude_country if s.strip()],
        selected_providers=args.provider,
        watch_region=args.region,
        page_size=args.page_size,
        imdb_cutoff=args.imdb_cutoff,
        hide_watched=args.hide_watched,
    )


def _print_options() -> None:
    for label, table in (("Genres", GENRES), ("Providers", PROVIDERS), ("Regions", WATCH_REGIONS)):
        print(label)
        for key, name in table.items():
            print(f"  {key}\t{name}")


def _resolve_keys(args: argparse.Namespace, store: JsonFileStore) -> ApiKeys | None:
    resolved = resolve_api_keys(store)
    tmdb_key = (args.tmdb_key or "").strip() or (resolved.tmdb_key if resolved else "")
    omdb_key = (args.omdb_key or "").strip() or (resolved.omdb_key if resolved else "")
    if not tmdb_key or not omdb_key:
        return None
    return ApiKeys(tmdb_key=tmdb_key, omdb_key=omdb_key)


def _load_watched_ids(api_key: str, store: JsonFileStore) -> frozenset[int] | None:
    link = TmdbAccountLink(api_key, store=store)
    if link.session is None:
        print(
            "WARN --hide-watched ignored: no TMDb account linked (run link_tmdb_account.py connect).",
            file=sys.stderr,
        )
        return None
    try:
        return link.refresh_rated_movies()
    except (ApiError, requests.RequestException) as exc:
        print(f"WARN could not load rated movies: {exc}", file=sys.stderr)
        return None


class _ProgressPrinter:
    def __init__(self) -> None:
        self._last_done = -1

    def __call__(self, state: SearchState) -> None:
        total = len(state.movies)
        if not total:
            return
        done = total - state.stats.pending + sum(1 for s in state.verification.values() if s == "error")
        if done != self._last_done:
            self._last_done = done
            print(f"verifying {done}/{total}", file=sys.stderr)


def _format_movie(movie: EnrichedMovie) -> str:
    year = movie.tmdb_year
    if movie.imdb_year and movie.imdb_year != movie.tmdb_year:
        year = f"{year} -> IMDb: {movie.imdb_year}"
    parts = [f"{movie.title} ({year})"]
    if movie.imdb_rating_str:
        parts.append(f"* {movie.imdb_rating_str}")
    elif movie.vote_average > 0:
        parts.append(f"TMDB {movie.vote_average:.1f}")
    if movie.genre_names:
        parts.append("/".join(movie.genre_names))
    if movie.streaming_providers:
        parts.append("on " + ", ".join(p.provider_name for p in movie.streaming_providers))
    if movie.status == "error":
        parts.append(f"[unverified: {movie.error_message}]")
    if movie.imdb_id:
        parts.append(f"{IMDB_TITLE_URL}{movie.imdb_id}")
    return "  " + "  ".join(parts)


def _summary_line(state: SearchState, buckets: Categorized) -> str:
    line = (
        f"{state.total_results} found · {state.stats.verified} verified · "
        f"{state.stats.mismatched} re-releases filtered"
    )
    if buckets.below_cutoff:
        line += f" · {len(buckets.below_cutoff)} below IMDB cutoff"
    if buckets.watched:
        line += f" · {len(buckets.watched)} watched"
    if state.stats.pending > 0:
        line += f" · {state.stats.pending} checking"
    return line


def _print_results(state: SearchState, buckets: Categorized) -> None:
    if not state.movies:
        print("No movies matched the filters.")
        return

    print(_summary_line(state, buckets))
    print(f"page {state.page}/{state.total_pages}")
    print()
    for movie in buckets.visible:
        print(_format_movie(movie))

    sections = (
        (f"Below IMDB cutoff ({len(buckets.below_cutoff)})", buckets.below_cutoff),
        (f"Filtered out ({len(buckets.hidden)} re-releases)", buckets.hidden),
        (f"Watched ({len(buckets.watched)})", buckets.watched),
    )
    for label, movies in sections:
        if not movies:
            continue
        print()
        print(label)
        for movie in movies:
            print(_format_movie(movie))


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    load_env()

    if args.list_options:
        _print_options()
        return 0

    store = JsonFileStore(args.state_path)
    if args.clear_saved_keys:
        clear_api_keys(store)
        print(f"Cleared saved API keys from {store.path}")
        return 0

    try:
        criteria = _build_criteria(args)
    except ValueError as exc:
        print(f"Invalid filters: {exc}", file=sys.stderr)
        return 2

    keys = _resolve_keys(args, store)
    if keys is None:
        print("TMDB_API_KEY and OMDB_API_KEY are required (env, flags, or saved keys).", file=sys.stderr)
        return 2
    if args.save_keys:
        save_api_keys(store, keys)
        print(f"Saved API keys to {store.path}")

    watched_ids = _load_watched_ids(keys.tmdb_key, store) if criteria.hide_watched else None

    ttl_seconds = resolve_cache_ttl_seconds()
    tmdb = TmdbClient(keys.tmdb_key, cache=ApiCache(ttl_seconds))
    omdb = OmdbClient(keys.omdb_key, cache=ApiCache(ttl_seconds))
    try:
        with MovieSearch(tmdb, omdb, on_change=_ProgressPrinter()) as search:
            search.search(criteria, args.page)
            state = search.state
    finally:
        tmdb.close()
        omdb.close()

    if state.error:
        print(f"Search failed: {state.error}", file=sys.stderr)
        return 1

    buckets = categorize_movies(state.movies, state.verification, criteria.imdb_cutoff, watched_ids)
    _print_results(state, buckets)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
