from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

import cinefilter.session.account_link as mod
from cinefilter.errors import ApiHttpError, ApiResponseError
from cinefilter.session.storage import RATED_KEY, SESSION_KEY, JsonFileStore


class _FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def store(tmp_path: Path) -> JsonFileStore:
    return JsonFileStore(tmp_path / "state.json")


def _link(store: JsonFileStore, **kwargs) -> mod.TmdbAccountLink:  # noqa: ANN003
    kwargs.setdefault("open_url", MagicMock())
    kwargs.setdefault("http_session", MagicMock())
    return mod.TmdbAccountLink("tmdb-key", store=store, **kwargs)


def test_starts_idle_without_stored_session(store: JsonFileStore) -> None:
    link = _link(store)

    assert link.step == "idle"
    assert link.session is None
    assert link.rated_movie_ids is None


def test_starts_connected_with_stored_session(store: JsonFileStore) -> None:
    store.set(SESSION_KEY, {"sessionId": "sess-1", "accountId": 42})

    link = _link(store)

    assert link.step == "connected"
    assert link.session is not None
    assert link.session.account_id == 42


def test_malformed_stored_session_is_ignored(store: JsonFileStore) -> None:
    store.set(SESSION_KEY, {"sessionId": "", "accountId": "x"})

    assert _link(store).step == "idle"


def test_full_connect_flow(monkeypatch: pytest.MonkeyPatch, store: JsonFileStore) -> None:
    monkeypatch.setattr(mod, "create_request_token", MagicMock(return_value="tok-1"))
    create_session = MagicMock(return_value="sess-1")
    monkeypatch.setattr(mod, "create_session", create_session)
    monkeypatch.setattr(mod, "fetch_account_id", MagicMock(return_value=42))
    opener = MagicMock()
    steps: list[str] = []
    link = _link(store, open_url=opener, on_change=lambda current: steps.append(current.step))

    url = link.start_auth()

    assert url == "https://www.themoviedb.org/authenticate/tok-1"
    opener.assert_called_once_with(url)
    assert link.step == "awaiting_approval"
    assert link.pending_token == "tok-1"

    assert link.confirm_approval() is True

    assert link.step == "connected"
    assert link.pending_token is None
    assert link.session is not None
    assert link.session.session_id == "sess-1"
    assert store.get(SESSION_KEY) == {"sessionId": "sess-1", "accountId": 42}
    assert create_session.call_args.args[0] == "tok-1"
    assert "connecting" in steps
    assert steps[-1] == "connected"


def test_start_auth_failure_moves_to_error_and_can_retry(monkeypatch: pytest.MonkeyPatch, store: JsonFileStore) -> None:
    token = MagicMock(side_effect=[ApiHttpError("TMDB auth 401: Unauthorized", status_code=401), "tok-2"])
    monkeypatch.setattr(mod, "create_request_token", token)
    opener = MagicMock()
    link = _link(store, open_url=opener)

    assert link.start_auth() is None
    assert link.step == "error"
    assert link.error == "TMDB auth 401: Unauthorized"
    opener.assert_not_called()

    assert link.start_auth() is not None
    assert link.step == "awaiting_approval"
    assert link.error is None


def test_confirm_failure_keeps_token_for_retry(monkeypatch: pytest.MonkeyPatch, store: JsonFileStore) -> None:
    monkeypatch.setattr(mod, "create_request_token", MagicMock(return_value="tok-1"))
    monkeypatch.setattr(
        mod,
        "create_session",
        MagicMock(side_effect=[ApiResponseError("Failed to create session"), "sess-1"]),
    )
    monkeypatch.setattr(mod, "fetch_account_id", MagicMock(return_value=7))
    link = _link(store)
    link.start_auth()

    assert link.confirm_approval() is False
    assert link.step == "error"
    assert link.error == "Failed to create session"
    assert link.pending_token == "tok-1"
    assert store.get(SESSION_KEY) is None

    assert link.confirm_approval() is True
    assert link.step == "connected"


def test_failed_restart_drops_previous_token(monkeypatch: pytest.MonkeyPatch, store: JsonFileStore) -> None:
    token = MagicMock(side_effect=["tok-1", ApiHttpError("TMDB auth 503: Service Unavailable", status_code=503)])
    monkeypatch.setattr(mod, "create_request_token", token)
    create_session = MagicMock(return_value="sess-1")
    monkeypatch.setattr(mod, "create_session", create_session)
    link = _link(store)

    assert link.start_auth() is not None
    assert link.pending_token == "tok-1"

    assert link.start_auth() is None
    assert link.step == "error"
    assert link.pending_token is None
    with pytest.raises(mod.InvalidAuthTransition):
        link.confirm_approval()
    create_session.assert_not_called()


def test_confirm_without_pending_token_is_invalid(store: JsonFileStore) -> None:
    with pytest.raises(mod.InvalidAuthTransition):
        _link(store).confirm_approval()


def test_start_auth_while_connected_is_invalid(store: JsonFileStore) -> None:
    store.set(SESSION_KEY, {"sessionId": "sess-1", "accountId": 42})

    with pytest.raises(mod.InvalidAuthTransition):
        _link(store).start_auth()


def test_disconnect_clears_session_and_rated_cache(store: JsonFileStore) -> None:
    store.set(SESSION_KEY, {"sessionId": "sess-1", "accountId": 42})
    store.set(RATED_KEY, {"ids": [1, 2], "timestamp": 1_700_000_000.0})
    link = _link(store, clock=_FakeClock())

    link.disconnect()

    assert link.step == "idle"
    assert link.session is None
    assert link.rated_movie_ids is None
    assert store.get(SESSION_KEY) is None
    assert store.get(RATED_KEY) is None


def test_refresh_rated_without_session_returns_empty(monkeypatch: pytest.MonkeyPatch, store: JsonFileStore) -> None:
    fetch = MagicMock()
    monkeypatch.setattr(mod, "fetch_all_rated_movie_ids", fetch)

    assert _link(store).refresh_rated_movies() == frozenset()
    fetch.assert_not_called()


def test_refresh_rated_fetches_and_persists(monkeypatch: pytest.MonkeyPatch, store: JsonFileStore) -> None:
    store.set(SESSION_KEY, {"sessionId": "sess-1", "accountId": 42})
    fetch = MagicMock(return_value={3, 1, 2})
    monkeypatch.setattr(mod, "fetch_all_rated_movie_ids", fetch)
    clock = _FakeClock()
    loading: list[bool] = []
    link = _link(store, clock=clock, on_change=lambda current: loading.append(current.loading_rated))

    ids = link.refresh_rated_movies()

    assert ids == frozenset({1, 2, 3})
    assert link.rated_movie_ids == ids
    assert store.get(RATED_KEY) == {"ids": [1, 2, 3], "timestamp": clock.now}
    assert fetch.call_args.args[:3] == ("sess-1", 42, "tmdb-key")
    assert loading == [True, False]


def test_refresh_rated_uses_fresh_cache(monkeypatch: pytest.MonkeyPatch, store: JsonFileStore) -> None:
    clock = _FakeClock()
    store.set(SESSION_KEY, {"sessionId": "sess-1", "accountId": 42})
    store.set(RATED_KEY, {"ids": [5, 6], "timestamp": clock.now - 3000})
    fetch = MagicMock()
    monkeypatch.setattr(mod, "fetch_all_rated_movie_ids", fetch)
    link = _link(store, clock=clock)

    assert link.rated_movie_ids == frozenset({5, 6})
    assert link.refresh_rated_movies() == frozenset({5, 6})
    fetch.assert_not_called()


def test_refresh_rated_refetches_stale_cache(monkeypatch: pytest.MonkeyPatch, store: JsonFileStore) -> None:
    clock = _FakeClock()
    store.set(SESSION_KEY, {"sessionId": "sess-1", "accountId": 42})
    store.set(RATED_KEY, {"ids": [5, 6], "timestamp": clock.now - 3601})
    monkeypatch.setattr(mod, "fetch_all_rated_movie_ids", MagicMock(return_value={7}))
    link = _link(store, clock=clock)

    assert link.rated_movie_ids is None
    assert link.refresh_rated_movies() == frozenset({7})


def test_refresh_rated_failure_resets_loading(monkeypatch: pytest.MonkeyPatch, store: JsonFileStore) -> None:
    store.set(SESSION_KEY, {"sessionId": "sess-1", "accountId": 42})
    monkeypatch.setattr(
        mod, "fetch_all_rated_movie_ids", MagicMock(side_effect=ApiHttpError("TMDB rated movies 401: Unauthorized"))
    )
    link = _link(store, clock=_FakeClock())

    with pytest.raises(ApiHttpError):
        link.refresh_rated_movies()
    assert link.loading_rated is False
    assert store.get(RATED_KEY) is None
