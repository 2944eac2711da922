"""
Record caches used as a fallback when fetching from the backend fails.

The aggregation functions never touch a cache themselves; collaborators load
records through ``load_with_fallback`` and hand plain lists onwards.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Callable, Protocol

from mimo_finance.core import normalize_list

logger = logging.getLogger(__name__)

UNSAFE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]")


class RecordCache(Protocol):
    def get(self, key: str) -> list[Any] | None: ...

    def set(self, key: str, records: list[Any]) -> None: ...

    def invalidate(self, key: str) -> None: ...


class MemoryCache:
    def __init__(self) -> None:
        self._entries: dict[str, list[Any]] = {}

    def get(self, key: str) -> list[Any] | None:
        records = self._entries.get(key)
        return list(records) if records is not None else None

    def set(self, key: str, records: list[Any]) -> None:
        self._entries[key] = list(records)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)


class JsonFileCache:
    """One ``<key>.json`` file per cache key under ``directory``."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def path_for(self, key: str) -> Path:
        return self.directory / f"{UNSAFE_KEY_RE.sub('_', key)}.json"

    def get(self, key: str) -> list[Any] | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return normalize_list(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable cache file %s: %s", path, e)
            return None

    def set(self, key: str, records: list[Any]) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(records, indent=2, default=str), encoding="utf-8")

    def invalidate(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


def load_with_fallback(fetch: Callable[[], Any], cache: RecordCache, key: str) -> list[Any]:
    """Fetch fresh records and refresh the cache; serve cached records if fetching fails."""
    try:
        records = normalize_list(fetch())
    except Exception as e:
        logger.warning("Fetching %s failed (%s); falling back to cached records", key, e)
        cached = cache.get(key)
        return cached if cached is not None else []
    cache.set(key, records)
    return records
