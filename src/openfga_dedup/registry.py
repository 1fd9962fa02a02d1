"""
In-flight bookkeeping.

Each execution is tracked twice: a local entry (private to one
deduplicator instance) and a marker in the shared store under
``{key}:inflight`` that other processes can see. The marker only
reduces duplicate work; two processes can still both claim the same
key when the store has no atomic put-if-absent.
"""

import logging
import time
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from threading import Lock
from typing import Any
from uuid import uuid4

from .exceptions import CacheError
from .protocols import AtomicCacheStore, CacheStore

logger = logging.getLogger(__name__)

MARKER_SUFFIX = ":inflight"


def marker_key(key: str) -> str:
    """Shared store key of the in-flight marker for key."""
    return f"{key}{MARKER_SUFFIX}"


@dataclass
class InFlightEntry:
    """Local record of an execution started by this instance.

    The future resolves with the execution's result or exception, which
    lets waiters in the same process wake up without polling.
    It is cancelled when the shared store refuses the claim.
    """

    key: str
    token: bytes
    started_at: float
    future: "Future[Any]" = field(default_factory=Future)

    @property
    def completed(self) -> bool:
        return self.future.done()

    @property
    def result(self) -> Any:
        """Result of a successful execution, None otherwise."""
        if not self.future.done() or self.future.cancelled() or self.future.exception() is not None:
            return None
        return self.future.result()


class InFlightRegistry:
    """Tracks executions in progress, locally and in the shared store.

    Attributes:
        store: Shared cache store holding the markers
        in_flight_ttl: Marker lifetime in seconds
    """

    def __init__(
        self,
        store: CacheStore,
        in_flight_ttl: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._in_flight_ttl = in_flight_ttl
        self._clock = clock
        self._atomic = isinstance(store, AtomicCacheStore)
        self._local: dict[str, InFlightEntry] = {}
        self._lock = Lock()

    def get_local(self, key: str) -> InFlightEntry | None:
        with self._lock:
            return self._local.get(key)

    def has_marker(self, key: str) -> bool:
        return self._store.has(marker_key(key))

    def is_in_flight(self, key: str) -> bool:
        """True if this instance or any other store user is executing key."""
        return self.get_local(key) is not None or self.has_marker(key)

    def claim(self, key: str) -> InFlightEntry | None:
        """Mark key as in flight for the caller.

        Reserves the local slot under the lock, then writes the shared
        marker without holding it, so a slow store does not stall claims
        on other keys. With an atomic store the write itself is the check;
        otherwise the marker is tested with ``has`` and written with ``put``.

        A reservation refused by the store is cancelled; local callers
        waiting on it go back to polling the shared store.

        Returns:
            The new entry, or None if an execution is already in flight

        Raises:
            CacheError: If the store fails while writing the marker
        """
        token = uuid4().hex.encode("ascii")
        marker = marker_key(key)

        with self._lock:
            if key in self._local:
                return None
            entry = InFlightEntry(key=key, token=token, started_at=self._clock())
            self._local[key] = entry

        try:
            if self._atomic:
                claimed = self._store.add(marker, token, self._in_flight_ttl)  # type: ignore[attr-defined]
            else:
                claimed = not self._store.has(marker)
                if claimed:
                    self._store.put(marker, token, self._in_flight_ttl)
        except Exception as e:
            self._discard(entry)
            entry.future.set_exception(e)
            raise
        except BaseException:
            self._discard(entry)
            entry.future.cancel()
            raise

        if not claimed:
            self._discard(entry)
            entry.future.cancel()
            return None

        logger.debug(f"Marked in flight: {key}")
        return entry

    def complete(self, entry: InFlightEntry, result: Any) -> None:
        """Resolve local waiters with result and drop both markers."""
        if not entry.future.done():
            entry.future.set_result(result)
        self._release(entry)

    def fail(self, entry: InFlightEntry, error: BaseException) -> None:
        """Fail local waiters with error and drop both markers."""
        if not entry.future.done():
            entry.future.set_exception(error)
        self._release(entry)

    def _discard(self, entry: InFlightEntry) -> None:
        with self._lock:
            # A newer entry may have been registered after clear()
            if self._local.get(entry.key) is entry:
                del self._local[entry.key]

    def _release(self, entry: InFlightEntry) -> None:
        self._discard(entry)

        marker = marker_key(entry.key)
        try:
            # Once expired, the marker may belong to another execution
            if self._store.get(marker) != entry.token:
                logger.debug(f"In-flight marker no longer ours, leaving it: {entry.key}")
                return
            self._store.forget(marker)
        except CacheError as e:
            logger.warning(f"Could not remove in-flight marker for {entry.key}, it expires in {self._in_flight_ttl}s: {e}")
            return
        logger.debug(f"Released in-flight marker: {entry.key}")

    def clear(self) -> int:
        """Drop every local entry; shared markers are left to expire.

        Returns:
            Number of local entries dropped
        """
        with self._lock:
            count = len(self._local)
            self._local.clear()
            return count

    def count(self) -> int:
        with self._lock:
            return len(self._local)
