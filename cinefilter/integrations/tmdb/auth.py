"""
TMDb user authentication endpoints.

Linking an account is a three-step handshake:
1. `create_request_token` obtains a temporary token.
2. The user approves it in a browser at `approval_url(token)`.
3. `create_session` exchanges the approved token for a persistent session id.

With a session, `fetch_account_id` resolves the numeric account id and
`fetch_all_rated_movie_ids` walks every page of the account's rated movies.
"""
from __future__ import annotations

from typing import Any

import requests

from cinefilter.constants import TMDB_MAX_PAGES
from cinefilter.errors import ApiResponseError
from cinefilter.integrations.http import request_json
from cinefilter.integrations.tmdb.client import TMDB_API_BASE_URL, _require_api_key

TMDB_APPROVAL_BASE_URL = "https://www.themoviedb.org/authenticate"


def create_request_token(
    api_key: str | None = None,
    *,
    session: requests.Session | None = None,
    timeout_seconds: float = 20.0,
) -> str:
    api_key = _require_api_key(api_key)
    session = session or requests.Session()
    payload = request_json(
        session,
        f"{TMDB_API_BASE_URL}/authentication/token/new",
        params={"api_key": api_key},
        timeout_seconds=timeout_seconds,
        error_prefix="TMDB auth",
        include_body=False,
    )
    token = payload.get("request_token")
    if payload.get("success") is not True or not isinstance(token, str) or not token:
        raise ApiResponseError("Failed to create request token")
    return token


def approval_url(request_token: str) -> str:
    return f"{TMDB_APPROVAL_BASE_URL}/{request_token}"


def create_session(
    request_token: str,
    api_key: str | None = None,
    *,
    session: requests.Session | None = None,
    timeout_seconds: float = 20.0,
) -> str:
    api_key = _require_api_key(api_key)
    session = session or requests.Session()
    payload = request_json(
        session,
        f"{TMDB_API_BASE_URL}/authentication/session/new",
        method="POST",
        params={"api_key": api_key},
        json_body={"request_token": request_token},
        timeout_seconds=timeout_seconds,
        error_prefix="TMDB session",
        include_body=False,
    )
    session_id = payload.get("session_id")
    if payload.get("success") is not True or not isinstance(session_id, str) or not session_id:
        raise ApiResponseError("Failed to create session")
    return session_id


def fetch_account_id(
    session_id: str,
    api_key: str | None = None,
    *,
    session: requests.Session | None = None,
    timeout_seconds: float = 20.0,
) -> int:
    api_key = _require_api_key(api_key)
    session = session or requests.Session()
    payload = request_json(
        session,
        f"{TMDB_API_BASE_URL}/account",
        params={"api_key": api_key, "session_id": session_id},
        timeout_seconds=timeout_seconds,
        error_prefix="TMDB account",
        include_body=False,
    )
    account_id = payload.get("id")
    if isinstance(account_id, bool) or not isinstance(account_id, int):
        raise ApiResponseError("TMDB account response missing id.")
    return account_id


def fetch_all_rated_movie_ids(
    session_id: str,
    account_id: int,
    api_key: str | None = None,
    *,
    session: requests.Session | None = None,
    timeout_seconds: float = 20.0,
    max_pages: int = TMDB_MAX_PAGES,
) -> set[int]:
    """
    Collect the ids of every movie the account has rated.

    Pages until TMDb reports no further pages, never past `max_pages`.
    """

    api_key = _require_api_key(api_key)
    session = session or requests.Session()

    ids: set[int] = set()
    page = 1
    while True:
        payload: dict[str, Any] = request_json(
            session,
            f"{TMDB_API_BASE_URL}/account/{int(account_id)}/rated/movies",
            params={"api_key": api_key, "session_id": session_id, "page": page},
            timeout_seconds=timeout_seconds,
            error_prefix="TMDB rated movies",
            include_body=False,
        )
        results = payload.get("results")
        if isinstance(results, list):
            for item in results:
                if not isinstance(item, dict):
                    continue
                movie_id = item.get("id")
                if isinstance(movie_id, int) and not isinstance(movie_id, bool):
                    ids.add(movie_id)

        total_pages = payload.get("total_pages")
        if not isinstance(total_pages, int) or isinstance(total_pages, bool):
            break
        if page >= min(total_pages, max_pages):
            break
        page += 1

    return ids
