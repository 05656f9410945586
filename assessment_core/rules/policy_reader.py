"""
Fetch-and-cache access to policy documents.

Each document is cached for a fixed TTL to bound load on the configuration
store. A failed fetch is treated as an absent document so the resolver falls
back to the next policy tier; failures are not cached.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from .config_store import ConfigStore

DEFAULT_TTL_SECONDS = 60.0


@dataclass(frozen=True)
class CacheEntry:
    data: dict[str, Any] | None
    expires_at: float


class TTLCache:
    """
    Per-key cache with a fixed time-to-live.

    Entries are replaced whole, never mutated, so concurrent readers always
    see either the old or the new entry.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def lookup(self, key: str) -> CacheEntry | None:
        """Return the live entry for `key`, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None or entry.expires_at <= self._clock():
            return None
        return entry

    def store(self, key: str, data: dict[str, Any] | None) -> None:
        self._entries[key] = CacheEntry(data=data, expires_at=self._clock() + self.ttl_seconds)

    def invalidate(self, key: str | None = None) -> None:
        """Drop one entry, or everything when `key` is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class PolicyReader:
    """Reads policy documents through a TTL cache, failing open."""

    def __init__(self, store: ConfigStore, cache: TTLCache | None = None):
        self.store = store
        self.cache = cache if cache is not None else TTLCache()

    @staticmethod
    def cache_key(path: str, key: str | None = None) -> str:
        return f"{path}/{key}" if key else path

    async def fetch(self, path: str, key: str) -> dict[str, Any] | None:
        """
        Fetch a document, serving from cache while fresh.

        Args:
            path: Collection path of the document
            key: Document key within the collection

        Returns:
            The document, or None when absent or the store failed
        """
        cache_key = self.cache_key(path, key)
        entry = self.cache.lookup(cache_key)
        if entry is not None:
            return entry.data

        try:
            data = await self.store.get(path, key)
        except Exception as e:
            logger.warning("PolicyReader: failed to fetch {}: {}", cache_key, e)
            return None

        self.cache.store(cache_key, data)
        return data
