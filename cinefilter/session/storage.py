"""
Persisted key-value state (string keys, JSON values) kept in a single JSON file.

Reads are best-effort: a missing, unreadable or malformed file is treated as
"nothing stored" rather than an error.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from threading import Lock
from typing import Any

from cinefilter.models.session import ApiKeys

logger = logging.getLogger(__name__)

KEYS_KEY = "cinefilter_keys"
SESSION_KEY = "cinefilter_tmdb_session"
RATED_KEY = "cinefilter_rated_ids"

DEFAULT_STATE_PATH = Path.home() / ".cinefilter" / "state.json"


def resolve_state_path(path: str | os.PathLike[str] | None = None) -> Path:
    raw = path or os.getenv("CINEFILTER_STATE_PATH") or ""
    if isinstance(raw, str):
        raw = raw.strip()
    return Path(raw).expanduser() if raw else DEFAULT_STATE_PATH


class JsonFileStore:
    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self._path = resolve_state_path(path)
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("Could not read persisted state %s: %s", self._path, exc)
            return {}
        try:
            data = json.loads(text)
        except ValueError:
            logger.warning("Ignoring malformed persisted state in %s", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self._path)

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key not in data:
                return
            del data[key]
            self._write_all(data)


def load_api_keys(store: JsonFileStore) -> ApiKeys | None:
    return ApiKeys.from_payload(store.get(KEYS_KEY))


def save_api_keys(store: JsonFileStore, keys: ApiKeys) -> None:
    store.set(KEYS_KEY, keys.to_payload())


def clear_api_keys(store: JsonFileStore) -> None:
    store.remove(KEYS_KEY)
