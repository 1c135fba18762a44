from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from cinefilter.cache import DEFAULT_TTL_SECONDS
from cinefilter.models.session import ApiKeys
from cinefilter.session.storage import JsonFileStore, load_api_keys

logger = logging.getLogger(__name__)


def load_env(*, override: bool = False) -> Path | None:
    repo_root = Path(__file__).resolve().parents[2]
    candidates = [
        repo_root / ".env",
        Path.cwd() / ".env",
    ]
    for path in candidates:
        if path.is_file():
            load_dotenv(dotenv_path=path, override=override)
            return path
    return None


def resolve_api_keys(store: JsonFileStore | None = None) -> ApiKeys | None:
    """
    Combine keys from the environment (TMDB_API_KEY / OMDB_API_KEY) with the persisted
    pair. Environment values win; returns None unless both keys end up non-empty.
    """

    stored = load_api_keys(store) if store is not None else None
    tmdb_key = (os.getenv("TMDB_API_KEY") or "").strip() or (stored.tmdb_key if stored else "")
    omdb_key = (os.getenv("OMDB_API_KEY") or "").strip() or (stored.omdb_key if stored else "")
    if not tmdb_key or not omdb_key:
        return None
    return ApiKeys(tmdb_key=tmdb_key, omdb_key=omdb_key)


def resolve_cache_ttl_seconds() -> float:
    raw = (os.getenv("CINEFILTER_CACHE_TTL_SECONDS") or "").strip()
    if not raw:
        return DEFAULT_TTL_SECONDS
    try:
        ttl = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid CINEFILTER_CACHE_TTL_SECONDS=%r", raw)
        return DEFAULT_TTL_SECONDS
    return ttl if ttl > 0 else DEFAULT_TTL_SECONDS
