"""
Ephemeral in-memory cache with a time-to-live per entry.

Each remote-service client owns its own `ApiCache` instance, so keys never collide
across services and clearing one cache never affects the other. Entries are only
evicted lazily, when a stale entry is read; there is no background sweep.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 15 * 60


@dataclass
class CacheEntry:
    value: Any
    inserted_at: float


class ApiCache:
    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._store: dict[str, CacheEntry] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None when absent or expired (expired entries are dropped)."""

        entry = self._store.get(key)
        if entry is None:
            return None
        if self._clock() - entry.inserted_at > self._ttl_seconds:
            del self._store[key]
            return None
        return entry.value

    def set(self, key: str, value: Any) -> None:
        self._store[key] = CacheEntry(value=value, inserted_at=self._clock())

    def clear(self) -> None:
        self._store.clear()

    @property
    def size(self) -> int:
        return len(self._store)

    def __len__(self) -> int:
        return len(self._store)

    @staticmethod
    def build_key(prefix: str, *parts: str | int | float) -> str:
        """Build a key like "tmdb:/discover/movie:page:1" from a prefix and ordered parts."""

        return ":".join([prefix, *(str(p) for p in parts)])


def build_request_key(prefix: str, endpoint: str, params: dict[str, Any] | None = None) -> str:
    """
    Deterministic key for a request: parameters are sorted by name and flattened, so
    identical requests hit the same entry regardless of insertion order.
    """

    flat: list[str | int | float] = []
    for name, value in sorted((params or {}).items()):
        flat.extend([name, value])
    return ApiCache.build_key(prefix, endpoint, *flat)
