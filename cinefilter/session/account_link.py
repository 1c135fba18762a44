"""
Optional TMDb account link, used to hide movies the user has already rated.

States: idle -> awaiting_approval -> connecting -> connected, with `error` reachable
from awaiting_approval or connecting. A failed step is retried by calling the same
operation again; a connected account must `disconnect()` before starting over.
"""
from __future__ import annotations

import logging
import time
import webbrowser
from typing import Any, Callable

import requests

from cinefilter.errors import ApiError
from cinefilter.integrations.tmdb.auth import (
    approval_url,
    create_request_token,
    create_session,
    fetch_account_id,
    fetch_all_rated_movie_ids,
)
from cinefilter.models.session import AuthStep, RatedCache, TmdbSession
from cinefilter.session.storage import RATED_KEY, SESSION_KEY, JsonFileStore

logger = logging.getLogger(__name__)

RATED_CACHE_TTL_SECONDS = 60 * 60

_AUTH_ERRORS = (ApiError, requests.RequestException, RuntimeError)


class InvalidAuthTransition(RuntimeError):
    pass


class TmdbAccountLink:
    def __init__(
        self,
        api_key: str | None = None,
        *,
        store: JsonFileStore,
        http_session: requests.Session | None = None,
        open_url: Callable[[str], Any] = webbrowser.open_new_tab,
        clock: Callable[[], float] = time.time,
        on_change: Callable[[TmdbAccountLink], Any] | None = None,
    ) -> None:
        self._api_key = api_key
        self._store = store
        self._http = http_session or requests.Session()
        self._open_url = open_url
        self._clock = clock
        self._on_change = on_change

        self._session = TmdbSession.from_payload(store.get(SESSION_KEY))
        self._step: AuthStep = "connected" if self._session else "idle"
        self._error: str | None = None
        self._pending_token: str | None = None
        self._rated_movie_ids = self._load_cached_rated_ids()
        self._loading_rated = False

    @property
    def step(self) -> AuthStep:
        return self._step

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def session(self) -> TmdbSession | None:
        return self._session

    @property
    def pending_token(self) -> str | None:
        return self._pending_token

    @property
    def rated_movie_ids(self) -> frozenset[int] | None:
        return self._rated_movie_ids

    @property
    def loading_rated(self) -> bool:
        return self._loading_rated

    def _transition(self, step: AuthStep, *, error: str | None = None) -> None:
        if step != self._step:
            logger.info("TMDb account link: %s -> %s", self._step, step)
        self._step = step
        self._error = error
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)

    def _load_cached_rated_ids(self) -> frozenset[int] | None:
        cache = RatedCache.from_payload(self._store.get(RATED_KEY))
        if cache is None:
            return None
        if self._clock() - cache.timestamp > RATED_CACHE_TTL_SECONDS:
            return None
        return cache.ids

    def start_auth(self) -> str | None:
        """
        Request a token and open its approval page. Returns the approval URL, or None
        when the request failed (the link is then in the `error` state).
        """

        if self._step in ("connecting", "connected"):
            raise InvalidAuthTransition(f"Cannot start TMDb authentication while {self._step}.")

        self._pending_token = None
        self._transition("awaiting_approval")
        try:
            token = create_request_token(self._api_key, session=self._http)
        except _AUTH_ERRORS as exc:
            self._transition("error", error=str(exc) or "Auth failed")
            return None

        self._pending_token = token
        url = approval_url(token)
        self._open_url(url)
        self._notify()
        return url

    def confirm_approval(self) -> bool:
        """Exchange the approved token for a session. Returns True once connected."""

        if self._pending_token is None or self._step not in ("awaiting_approval", "error"):
            raise InvalidAuthTransition("No TMDb request token is awaiting approval.")

        self._transition("connecting")
        try:
            session_id = create_session(self._pending_token, self._api_key, session=self._http)
            account_id = fetch_account_id(session_id, self._api_key, session=self._http)
        except _AUTH_ERRORS as exc:
            self._transition("error", error=str(exc) or "Connection failed")
            return False

        self._session = TmdbSession(session_id=session_id, account_id=account_id)
        self._store.set(SESSION_KEY, self._session.to_payload())
        self._pending_token = None
        self._transition("connected")
        return True

    def refresh_rated_movies(self) -> frozenset[int]:
        """
        Ids of every movie the linked account has rated.

        Served from the persisted cache while it is under an hour old; empty when no
        account is linked.
        """

        if self._session is None:
            return frozenset()

        cached = self._load_cached_rated_ids()
        if cached is not None:
            self._rated_movie_ids = cached
            return cached

        self._loading_rated = True
        self._notify()
        try:
            ids = frozenset(
                fetch_all_rated_movie_ids(
                    self._session.session_id,
                    self._session.account_id,
                    self._api_key,
                    session=self._http,
                )
            )
            self._store.set(RATED_KEY, RatedCache(ids=ids, timestamp=self._clock()).to_payload())
            self._rated_movie_ids = ids
            logger.info("Loaded %s rated movies from TMDb", len(ids))
            return ids
        finally:
            self._loading_rated = False
            self._notify()

    def disconnect(self) -> None:
        self._store.remove(SESSION_KEY)
        self._store.remove(RATED_KEY)
        self._session = None
        self._rated_movie_ids = None
        self._pending_token = None
        self._transition("idle")
