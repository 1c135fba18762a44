#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable

import requests

from cinefilter.errors import ApiError
from cinefilter.integrations.tmdb.client import resolve_api_key
from cinefilter.session import JsonFileStore, TmdbAccountLink, load_api_keys
from cinefilter.utils.env import load_env


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="link_tmdb_account",
        description="Link a TMDb account so movies you have already rated can be hidden from searches.",
    )
    parser.add_argument("--tmdb-key", default=None, help="TMDb API key (overrides TMDB_API_KEY).")
    parser.add_argument("--state-path", default=None, help="Persisted state file (overrides CINEFILTER_STATE_PATH).")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("connect", help="Approve this app on themoviedb.org and store the session.")
    sub.add_parser("disconnect", help="Forget the stored session and rated-movie cache.")
    sub.add_parser("rated", help="Refresh the rated-movie ids and print how many there are.")
    sub.add_parser("status", help="Print the current link state.")
    return parser.parse_args(argv)


def _resolve_tmdb_key(args: argparse.Namespace, store: JsonFileStore) -> str | None:
    explicit = resolve_api_key(args.tmdb_key)
    if explicit:
        return explicit
    stored = load_api_keys(store)
    return stored.tmdb_key if stored else None


def _print_status(link: TmdbAccountLink) -> None:
    print(f"state={link.step}")
    if link.session is not None:
        print(f"account_id={link.session.account_id}")
    if link.rated_movie_ids is not None:
        print(f"rated_movies_cached={len(link.rated_movie_ids)}")
    if link.error:
        print(f"error={link.error}")


def _connect(link: TmdbAccountLink, wait_for_user: Callable[[str], str]) -> int:
    if link.step == "connected":
        print("Already connected. Run `disconnect` first to link a different account.")
        return 0

    url = link.start_auth()
    if url is None:
        print(f"Could not start TMDb authentication: {link.error}", file=sys.stderr)
        return 1
    print("Approve access in your browser (opened automatically if possible):")
    print(url)
    wait_for_user("Press Enter once you have approved access... ")

    if not link.confirm_approval():
        print(f"Could not connect TMDb account: {link.error}", file=sys.stderr)
        return 1
    print("TMDb account connected.")
    return 0


def main(argv: list[str] | None = None, *, wait_for_user: Callable[[str], str] = input) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    load_env()

    store = JsonFileStore(args.state_path)
    if args.command == "disconnect":
        link = TmdbAccountLink(None, store=store)
        link.disconnect()
        print("TMDb account disconnected.")
        return 0

    api_key = _resolve_tmdb_key(args, store)
    link = TmdbAccountLink(api_key, store=store)

    if args.command == "status":
        _print_status(link)
        return 0

    if not api_key:
        print("TMDB_API_KEY is required (env, --tmdb-key, or saved keys).", file=sys.stderr)
        return 2

    if args.command == "connect":
        rc = _connect(link, wait_for_user)
        _print_status(link)
        return rc

    if link.session is None:
        print("No TMDb account linked. Run `connect` first.", file=sys.stderr)
        return 1
    try:
        ids = link.refresh_rated_movies()
    except (ApiError, requests.RequestException) as exc:
        print(f"Could not load rated movies: {exc}", file=sys.stderr)
        return 1
    print(f"rated_movies={len(ids)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
