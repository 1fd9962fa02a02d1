"""Serialized results of completed executions, stored under the deduplication key."""

import logging
from typing import Any

from .protocols import CacheStore, Serializer

logger = logging.getLogger(__name__)


class ResultCache:
    """Reads and writes serialized results in the shared store.

    A stored value of ``None`` is a hit like any other; absence is only
    signalled by the store returning no bytes.
    """

    def __init__(self, store: CacheStore, serializer: Serializer, ttl_seconds: int) -> None:
        self._store = store
        self._serializer = serializer
        self._ttl_seconds = ttl_seconds

    def fetch(self, key: str) -> bytes | None:
        """Return the raw stored bytes for key, or None."""
        return self._store.get(key)

    def decode(self, data: bytes) -> Any:
        return self._serializer.deserialize(data)

    def lookup(self, key: str) -> tuple[bool, Any]:
        """Return ``(found, value)`` for key.

        Raises:
            CacheSerializationError: If a stored entry cannot be decoded
        """
        data = self.fetch(key)
        if data is None:
            return False, None
        return True, self.decode(data)

    def store(self, key: str, result: Any) -> int:
        """Serialize and store a result.

        Returns:
            Serialized size in bytes

        Raises:
            CacheSerializationError: If the result cannot be serialized
        """
        data = self._serializer.serialize(result)
        self._store.put(key, data, self._ttl_seconds)
        logger.debug(f"Result cached for key: {key}, TTL: {self._ttl_seconds}s")
        return len(data)

    def forget(self, key: str) -> None:
        self._store.forget(key)
