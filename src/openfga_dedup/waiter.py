"""Waiting on an execution that another caller already started."""

import logging
import time
from collections.abc import Callable
from concurrent.futures import CancelledError
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any

from .exceptions import CacheError, InFlightRequestFailedError, InFlightTimeoutError
from .registry import InFlightEntry, InFlightRegistry
from .result_cache import ResultCache

logger = logging.getLogger(__name__)


class InFlightWaiter:
    """Waits for an in-flight execution and returns its result.

    Executions started by the same instance are awaited through their
    local future. Executions started elsewhere are observed by polling
    the shared store every ``poll_interval`` seconds, since the store's
    key/value interface is the only primitive shared between processes.

    Attributes:
        registry: In-flight registry of the owning deduplicator
        results: Result cache of the owning deduplicator
        in_flight_ttl: Maximum wait in seconds
        poll_interval: Seconds between polls
    """

    def __init__(
        self,
        registry: InFlightRegistry,
        results: ResultCache,
        in_flight_ttl: float,
        poll_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._registry = registry
        self._results = results
        self._in_flight_ttl = in_flight_ttl
        self._poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    def wait(self, key: str) -> Any:
        """Block until the in-flight execution for key resolves.

        Args:
            key: Deduplication key already detected as in flight

        Returns:
            Result of the original execution

        Raises:
            InFlightRequestFailedError: The execution ended without a result
            InFlightTimeoutError: Nothing resolved within in_flight_ttl
        """
        start = self._clock()

        entry = self._registry.get_local(key)
        if entry is not None:
            refused, result = self._wait_local(key, entry, start)
            if not refused:
                return result
            logger.debug(f"Local claim refused by the store, polling instead: {key}")

        while self._clock() - start < self._in_flight_ttl:
            entry = self._registry.get_local(key)
            if entry is not None and entry.completed and not entry.future.cancelled():
                return self._local_outcome(key, entry)

            found, value = self._results.lookup(key)
            if found:
                logger.debug(f"In-flight result found in cache: {key}")
                return value

            if not self._marker_present(key):
                # Marker gone and no result: the executor failed. Check once
                # more in case the result landed between the two reads.
                found, value = self._results.lookup(key)
                if found:
                    return value
                logger.debug(f"In-flight marker vanished without a result: {key}")
                raise InFlightRequestFailedError(key)

            self._sleep(self._poll_interval)

        logger.debug(f"Timed out after {self._in_flight_ttl}s waiting for: {key}")
        raise InFlightTimeoutError(key)

    def _marker_present(self, key: str) -> bool:
        """Read the shared marker; an unreadable marker counts as present."""
        try:
            return self._registry.has_marker(key)
        except CacheError as e:
            logger.warning(f"Could not read in-flight marker for {key}, assuming still in flight: {e}")
            return True

    def _wait_local(self, key: str, entry: InFlightEntry, start: float) -> tuple[bool, Any]:
        """Wait on a local entry.

        Returns:
            ``(refused, result)``; refused is True when the entry's claim was
            cancelled and the caller must poll the shared store instead
        """
        remaining = max(0.0, self._in_flight_ttl - (self._clock() - start))
        try:
            return False, entry.future.result(timeout=remaining)
        except CancelledError:
            return True, None
        except FutureTimeoutError as e:
            # The execution itself may have raised TimeoutError
            if entry.future.done():
                raise InFlightRequestFailedError(key) from e
            raise InFlightTimeoutError(key) from e
        except Exception as e:
            raise InFlightRequestFailedError(key) from e

    def _local_outcome(self, key: str, entry: InFlightEntry) -> Any:
        error = entry.future.exception()
        if error is not None:
            raise InFlightRequestFailedError(key) from error
        return entry.future.result()
