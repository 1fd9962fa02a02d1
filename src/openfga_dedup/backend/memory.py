"""In-process cache store with TTL expiry."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock

from ..exceptions import CacheKeyError

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: bytes
    expires_at: float


class InMemoryCacheStore:
    """Thread-safe dictionary store with per-key TTL.

    Shared by every deduplicator instance that receives it, which makes it
    a stand-in for a distributed cache in tests and single-host setups.
    Implements put-if-absent (``add``) atomically under its lock. Expired
    entries are evicted on every write.

    Attributes:
        clock: Monotonic clock used for expiry (injectable for tests)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = Lock()
        self._entries: dict[str, _Entry] = {}

    def get(self, key: str) -> bytes | None:
        """Return the value for key, or None if missing or expired."""
        with self._lock:
            entry = self._live_entry(key)
            return entry.value if entry is not None else None

    def put(self, key: str, value: bytes, ttl_seconds: float) -> None:
        """Store value under key for ttl_seconds.

        Raises:
            CacheKeyError: If key is empty
        """
        if not key:
            raise CacheKeyError("Key cannot be empty", key=key)
        with self._lock:
            self._evict_expired()
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl_seconds)

    def add(self, key: str, value: bytes, ttl_seconds: float) -> bool:
        """Store value only if key is absent or expired.

        Returns:
            True if written, False if a live entry already existed
        """
        if not key:
            raise CacheKeyError("Key cannot be empty", key=key)
        with self._lock:
            self._evict_expired()
            if self._live_entry(key) is not None:
                return False
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl_seconds)
            return True

    def has(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def forget(self, key: str) -> bool:
        """Remove key.

        Returns:
            True if a live entry was removed
        """
        with self._lock:
            existed = self._live_entry(key) is not None
            self._entries.pop(key, None)
            return existed

    def flush(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._evict_expired()
            return len(self._entries)

    def _live_entry(self, key: str) -> _Entry | None:
        """Return the entry for key, dropping it if expired. Caller holds the lock."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            logger.debug(f"Entry expired: {key}")
            del self._entries[key]
            return None
        return entry

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
