"""Request deduplication and result caching (thundering herd protection)."""

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from .config import DeduplicationConfig
from .exceptions import InFlightError, InFlightRequestFailedError
from .key_builder import DefaultKeyBuilder
from .metrics import NoOpMetrics
from .protocols import CacheStore, DeduplicationMetrics, KeyBuilder, Serializer
from .registry import InFlightEntry, InFlightRegistry
from .result_cache import ResultCache
from .serializer import MsgPackSerializer
from .stats import DeduplicationStats, StatsTracker
from .waiter import InFlightWaiter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestDeduplicator:
    """Deduplicates identical remote operations across callers.

    When many callers issue the same operation with the same parameters
    within a short window, only one executes the callback. The others
    either read the cached result or wait for the execution in progress
    and share its outcome. Coordination between processes goes through
    the shared cache store only, so it is best-effort: two processes can
    still run the same callback concurrently.

    Example:
        ```python
        deduplicator = RequestDeduplicator(InMemoryCacheStore(), {"ttl": 30})

        allowed = deduplicator.execute(
            "check",
            {"user": "user:1", "relation": "viewer", "object": "doc:1"},
            lambda: client.check(...),
        )
        ```

    Thread Safety:
    - One instance can be shared by threads; local state is lock-protected
    - The callback never runs under a lock
    """

    def __init__(
        self,
        store: CacheStore,
        config: DeduplicationConfig | Mapping[str, Any] | None = None,
        *,
        serializer: Serializer | None = None,
        key_builder: KeyBuilder | None = None,
        metrics: DeduplicationMetrics | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the deduplicator.

        Args:
            store: Shared cache store for results and in-flight markers
            config: Configuration object or partial mapping of options
            serializer: Result codec (default: MsgPackSerializer)
            key_builder: Key builder (default: DefaultKeyBuilder with config prefix)
            metrics: Metric sink (default: NoOpMetrics)
            clock: Monotonic clock used for waits
            sleep: Sleep function used between polls

        Raises:
            ValidationError: If a configuration value is invalid
        """
        if config is None:
            config = DeduplicationConfig()
        elif not isinstance(config, DeduplicationConfig):
            config = DeduplicationConfig.from_mapping(config)

        self._config = config
        self._store = store
        self._key_builder = key_builder or DefaultKeyBuilder(prefix=config.prefix)
        self._metrics = metrics or NoOpMetrics()
        self._stats = StatsTracker()
        self._results = ResultCache(store, serializer or MsgPackSerializer(), config.ttl)
        self._registry = InFlightRegistry(store, config.in_flight_ttl, clock=clock)
        self._waiter = InFlightWaiter(
            self._registry,
            self._results,
            in_flight_ttl=config.in_flight_ttl,
            poll_interval=config.poll_interval,
            clock=clock,
            sleep=sleep,
        )

    @property
    def config(self) -> DeduplicationConfig:
        return self._config

    def generate_key(self, operation: str, params: Mapping[str, Any]) -> str:
        """Return the deduplication key for an operation and its parameters."""
        return self._key_builder.generate_key(operation, params)

    def execute(self, operation: str, params: Mapping[str, Any], callback: Callable[[], T]) -> T:
        """Run callback once per identical request.

        Args:
            operation: Operation name, part of the key
            params: Operation parameters, part of the key
            callback: Performs the real operation; its result must be serializable

        Returns:
            Cached result, the result of an in-flight execution, or the
            callback's own result

        Raises:
            InFlightRequestFailedError: The execution this call waited on failed
            InFlightTimeoutError: The execution this call waited on took longer than in_flight_ttl
            CacheSerializationError: The callback's result cannot be serialized
            Exception: Anything raised by callback, unchanged
        """
        if not self._config.enabled:
            return callback()

        key = self.generate_key(operation, params)

        start_time = time.perf_counter()
        cached = self._results.fetch(key)
        latency = time.perf_counter() - start_time

        if cached is not None:
            self._stats.record_hit()
            self._metrics.record_hit(key, latency)
            logger.debug(f"Cache hit: {key}")
            return self._results.decode(cached)

        self._stats.record_miss()
        self._metrics.record_miss(key, latency)
        logger.debug(f"Cache miss: {key}")

        entry = self._registry.claim(key)
        if entry is None:
            return self._wait(key)

        return self._run(key, entry, callback)

    def _wait(self, key: str) -> Any:
        self._stats.record_deduplicated()
        logger.debug(f"Waiting for in-flight request: {key}")

        start_time = time.perf_counter()
        try:
            result = self._waiter.wait(key)
        except InFlightError as e:
            self._metrics.record_error(key, e)
            raise

        self._metrics.record_wait(key, time.perf_counter() - start_time)
        return result

    def _run(self, key: str, entry: InFlightEntry, callback: Callable[[], T]) -> T:
        try:
            result = callback()
            size = self._results.store(key, result)
        except Exception as e:
            logger.debug(f"Execution failed for {key}: {e}")
            self._metrics.record_error(key, e)
            self._registry.fail(entry, e)
            raise
        except BaseException:
            # Interrupted; local waiters must still be released
            self._registry.fail(entry, InFlightRequestFailedError(key))
            raise

        self._registry.complete(entry, result)
        self._metrics.record_write(key, size)
        return result

    def is_in_flight(self, operation: str, params: Mapping[str, Any]) -> bool:
        """True if an execution for this request is in progress anywhere."""
        return self._registry.is_in_flight(self.generate_key(operation, params))

    def in_flight_count(self) -> int:
        """Number of executions started by this instance and not yet finished."""
        return self._registry.count()

    def invalidate(self, operation: str, params: Mapping[str, Any]) -> None:
        """Forget the cached result of one request."""
        key = self.generate_key(operation, params)
        self._results.forget(key)
        logger.debug(f"Invalidated cached result: {key}")

    def clear(self) -> int:
        """Empty the local in-flight map.

        Only this instance's bookkeeping is touched. Cached results and
        in-flight markers in the shared store belong to every process
        using it and are left to expire; use ``invalidate`` for results.

        Returns:
            Number of local entries dropped
        """
        count = self._registry.clear()
        logger.debug(f"Cleared {count} local in-flight entries")
        return count

    @property
    def stats(self) -> DeduplicationStats:
        """Snapshot of the counters."""
        return self._stats.snapshot()

    def get_stats(self) -> dict[str, Any]:
        """Return counters and derived rates.

        Returns:
            Dictionary with total_requests, deduplicated, cache_hits,
            cache_misses, hit_rate and deduplication_rate (percentages)
        """
        return self._stats.snapshot().as_dict()

    def reset_stats(self) -> None:
        """Zero the counters; cached results and in-flight state are kept."""
        self._stats.reset()
