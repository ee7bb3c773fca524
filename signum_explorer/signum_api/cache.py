"""
TTL cache for per-account query results.

One mapping from key to CacheEntry guarded by a read/write lock, plus a per-key
fetch lock so concurrent readers of the same stale key trigger a single refill.
Entries are overwritten on refill; sweep() optionally drops very old entries.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, TypeVar

from signum_explorer.core.exceptions import SignumExplorerError
from signum_explorer.core.rwlock import ReadWriteLock
from signum_explorer.explorer_logging import get_logger

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    fetched_at: float
    """Clock reading (monotonic seconds) when the value was stored."""


class TTLCache(Generic[K, V]):
    """
    Memoise loader results per key for ttl_sec seconds.

    get() is safe to call from many threads: readers of fresh entries only take
    the shared lock; a stale or missing key is refilled by exactly one caller
    while the others wait on that key's fetch lock and then read its result.
    """

    def __init__(
        self,
        name: str,
        ttl_sec: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_sec <= 0:
            raise ValueError("ttl_sec must be positive")
        self.name = name
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._lock = ReadWriteLock()
        self._entries: dict[K, CacheEntry[V]] = {}
        self._fetch_locks: dict[K, threading.Lock] = {}
        self._fetch_locks_guard = threading.Lock()

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._entries)

    def _is_fresh(self, entry: CacheEntry[V] | None) -> bool:
        return entry is not None and self._clock() - entry.fetched_at < self.ttl_sec

    def _fetch_lock(self, key: K) -> threading.Lock:
        with self._fetch_locks_guard:
            lock = self._fetch_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._fetch_locks[key] = lock
            return lock

    def peek(self, key: K) -> CacheEntry[V] | None:
        """Return the stored entry regardless of age, or None."""
        with self._lock.read_locked():
            return self._entries.get(key)

    def put(self, key: K, value: V) -> None:
        with self._lock.write_locked():
            self._entries[key] = CacheEntry(value=value, fetched_at=self._clock())

    def get(self, key: K, loader: Callable[[], V], *, allow_stale: bool = False) -> V:
        """
        Return the cached value for key, refilling it via loader when stale.

        If the refill fails with an explorer error and allow_stale is set, the
        previous (stale) value is returned when one exists; otherwise the error
        propagates.
        """
        entry = self.peek(key)
        if self._is_fresh(entry):
            return entry.value

        with self._fetch_lock(key):
            entry = self.peek(key)
            if self._is_fresh(entry):
                return entry.value
            try:
                value = loader()
            except SignumExplorerError as e:
                if allow_stale and entry is not None:
                    logger.warning("cache_refill_failed_serving_stale", cache=self.name, key=str(key), error=str(e))
                    return entry.value
                raise
            self.put(key, value)
            return value

    def invalidate(self, key: K) -> None:
        with self._lock.write_locked():
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock.write_locked():
            self._entries.clear()

    def sweep(self, max_age_sec: float) -> int:
        """Remove entries older than max_age_sec; return how many were removed."""
        now = self._clock()
        with self._lock.write_locked():
            expired = [k for k, e in self._entries.items() if now - e.fetched_at >= max_age_sec]
            for k in expired:
                del self._entries[k]
        if expired:
            logger.debug("cache_swept", cache=self.name, removed=len(expired))
        return len(expired)
