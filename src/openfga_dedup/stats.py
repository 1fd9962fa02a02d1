"""Request statistics for the deduplicator."""

from dataclasses import dataclass
from threading import Lock
from typing import Any


@dataclass
class DeduplicationStats:
    """Snapshot of the deduplicator counters.

    ``total_requests`` always equals ``cache_hits + cache_misses``;
    ``deduplicated`` is a subset of the misses.
    """

    total_requests: int = 0
    deduplicated: int = 0
    cache_hits: int = 0
    cache_misses: int = 0

    @property
    def hit_rate(self) -> float:
        """Cache hits as a percentage of requests, rounded to 2 places."""
        return _percentage(self.cache_hits, self.total_requests)

    @property
    def deduplication_rate(self) -> float:
        """Deduplicated requests as a percentage of requests, rounded to 2 places."""
        return _percentage(self.deduplicated, self.total_requests)

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "deduplicated": self.deduplicated,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "hit_rate": self.hit_rate,
            "deduplication_rate": self.deduplication_rate,
        }


def _percentage(count: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(count / total * 100, 2)


class StatsTracker:
    """Thread-safe running counters for one deduplicator instance."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._stats = DeduplicationStats()

    def record_hit(self) -> None:
        """Count a request answered from the result cache."""
        with self._lock:
            self._stats.total_requests += 1
            self._stats.cache_hits += 1

    def record_miss(self) -> None:
        """Count a request that found no cached result."""
        with self._lock:
            self._stats.total_requests += 1
            self._stats.cache_misses += 1

    def record_deduplicated(self) -> None:
        with self._lock:
            self._stats.deduplicated += 1

    def snapshot(self) -> DeduplicationStats:
        """Return a copy of the current counters."""
        with self._lock:
            return DeduplicationStats(
                total_requests=self._stats.total_requests,
                deduplicated=self._stats.deduplicated,
                cache_hits=self._stats.cache_hits,
                cache_misses=self._stats.cache_misses,
            )

    def reset(self) -> None:
        """Zero all counters."""
        with self._lock:
            self._stats = DeduplicationStats()
