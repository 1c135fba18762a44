from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping

AuthStep = Literal["idle", "awaiting_approval", "connecting", "connected", "error"]


@dataclass(frozen=True)
class ApiKeys:
    tmdb_key: str
    omdb_key: str

    def to_payload(self) -> dict[str, str]:
        return {"tmdbKey": self.tmdb_key, "omdbKey": self.omdb_key}

    @classmethod
    def from_payload(cls, payload: Any) -> ApiKeys | None:
        if not isinstance(payload, Mapping):
            return None
        tmdb_key = payload.get("tmdbKey")
        omdb_key = payload.get("omdbKey")
        if not isinstance(tmdb_key, str) or not isinstance(omdb_key, str):
            return None
        return cls(tmdb_key=tmdb_key, omdb_key=omdb_key)


@dataclass(frozen=True)
class TmdbSession:
    """A linked TMDb account: proof of approval (session id) plus the numeric account id."""

    session_id: str
    account_id: int

    def to_payload(self) -> dict[str, Any]:
        return {"sessionId": self.session_id, "accountId": self.account_id}

    @classmethod
    def from_payload(cls, payload: Any) -> TmdbSession | None:
        if not isinstance(payload, Mapping):
            return None
        session_id = payload.get("sessionId")
        account_id = payload.get("accountId")
        if not isinstance(session_id, str) or not session_id.strip():
            return None
        if isinstance(account_id, bool) or not isinstance(account_id, int):
            return None
        return cls(session_id=session_id, account_id=account_id)


@dataclass(frozen=True)
class RatedCache:
    """Movie ids the linked account has rated, captured at `timestamp` (epoch seconds)."""

    ids: frozenset[int]
    timestamp: float

    def to_payload(self) -> dict[str, Any]:
        return {"ids": sorted(self.ids), "timestamp": self.timestamp}

    @classmethod
    def from_payload(cls, payload: Any) -> RatedCache | None:
        if not isinstance(payload, Mapping):
            return None
        ids = payload.get("ids")
        timestamp = payload.get("timestamp")
        if not isinstance(ids, list):
            return None
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            return None
        return cls(
            ids=frozenset(i for i in ids if isinstance(i, int) and not isinstance(i, bool)),
            timestamp=float(timestamp),
        )
