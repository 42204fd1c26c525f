"""
In-process TTL cache owned by a single component.

Entries expire lazily: a lookup that finds a stale entry deletes it. There is
no background sweep.
"""

import logging
import threading
import time
from collections.abc import Callable, Hashable
from typing import Any, NamedTuple

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


class CacheKey(NamedTuple):
    """Structured key; owner and repo are never joined into one string."""

    owner: str
    repo: str
    scope: Hashable


class _Entry(NamedTuple):
    value: Any
    timestamp: float


class TTLCache:
    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[CacheKey, _Entry] = {}
        self._key_locks: dict[CacheKey, threading.Lock] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and self._fresh(entry)

    def now(self) -> float:
        return self._clock()

    def get(self, key: CacheKey) -> Any | None:
        """Return the cached value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not self._fresh(entry):
            self._entries.pop(key, None)
            return None
        return entry.value

    def set(self, key: CacheKey, value: Any) -> None:
        self._entries[key] = _Entry(value, self._clock())

    def get_or_load(self, key: CacheKey, loader: Callable[[], Any]) -> Any:
        """
        Return the cached value or call loader() and cache its result.
        Concurrent misses on the same key wait for the first load instead of
        fetching again. Exceptions from loader propagate and are not cached.
        """
        value = self.get(key)
        if value is not None:
            return value
        lock = self._lock_for(key)
        with lock:
            try:
                value = self.get(key)
                if value is not None:
                    return value
                value = loader()
                self.set(key, value)
                return value
            finally:
                self._release_lock(key, lock)

    def invalidate(self, owner: str | None = None, repo: str | None = None) -> int:
        """Drop all entries, all entries of an owner, or all entries of one repository."""
        if owner is None:
            removed = len(self._entries)
            self.clear()
            return removed
        doomed = [
            key
            for key in list(self._entries)
            if key.owner == owner and (repo is None or key.repo == repo)
        ]
        for key in doomed:
            self._entries.pop(key, None)
        if doomed:
            logger.debug("Invalidated %d cache entries for %s/%s", len(doomed), owner, repo or "*")
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()
        with self._guard:
            self._key_locks.clear()

    def _fresh(self, entry: _Entry) -> bool:
        return self._clock() - entry.timestamp < self.ttl_seconds

    def _lock_for(self, key: CacheKey) -> threading.Lock:
        with self._guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def _release_lock(self, key: CacheKey, lock: threading.Lock) -> None:
        # Locks exist only while a load for the key is in flight.
        with self._guard:
            if self._key_locks.get(key) is lock:
                del self._key_locks[key]
