"""Protocols for the pluggable parts of the deduplicator.

Defines the interfaces that allow custom implementations of:
- CacheStore: shared key/value store used for results and in-flight markers
- Serializer: result (de)serialization
- KeyBuilder: deduplication key generation
- DeduplicationMetrics: metric collection
"""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for the shared cache store.

    Values written by the deduplicator are opaque bytes and must be
    returned byte-for-byte. A store shared by several processes (Redis,
    Memcached, a Dapr state store, ...) is what lets separate processes
    observe each other's in-flight markers and results.

    Example:
        ```python
        class DictStore:
            def __init__(self):
                self._data = {}

            def get(self, key):
                return self._data.get(key)

            def put(self, key, value, ttl_seconds):
                self._data[key] = value

            def has(self, key):
                return key in self._data

            def forget(self, key):
                self._data.pop(key, None)
        ```
    """

    def get(self, key: str) -> bytes | None:
        """Return the stored bytes, or None when absent or expired."""
        ...

    def put(self, key: str, value: bytes, ttl_seconds: float) -> Any:
        """Store bytes under key for ttl_seconds."""
        ...

    def has(self, key: str) -> bool:
        """Return True if key is present and not expired."""
        ...

    def forget(self, key: str) -> Any:
        """Remove key if present."""
        ...


@runtime_checkable
class AtomicCacheStore(CacheStore, Protocol):
    """Cache store with an atomic put-if-absent primitive.

    When available, the deduplicator claims in-flight markers with ``add``
    instead of a separate ``has`` followed by ``put``, which narrows the
    window in which two processes can both start the same execution.
    It does not turn the marker into a lock.
    """

    def add(self, key: str, value: bytes, ttl_seconds: float) -> bool:
        """Store value only if key is absent.

        Returns:
            True if the value was written, False if key already existed
        """
        ...


class Serializer(Protocol):
    """Protocol for result codecs.

    Implementations must raise instead of silently producing bytes that
    cannot be read back.

    Example:
        ```python
        import json

        class JsonSerializer:
            def serialize(self, data: Any) -> bytes:
                return json.dumps(data).encode()

            def deserialize(self, data: bytes) -> Any:
                return json.loads(data.decode())
        ```
    """

    def serialize(self, data: Any) -> bytes:
        """Serialize a Python value to bytes.

        Raises:
            CacheSerializationError: If the value cannot be serialized
        """
        ...

    def deserialize(self, data: bytes) -> Any:
        """Deserialize bytes produced by serialize.

        Raises:
            CacheSerializationError: If the bytes cannot be decoded
        """
        ...


class KeyBuilder(Protocol):
    """Protocol for deduplication key builders."""

    def generate_key(self, operation: str, params: Mapping[str, Any]) -> str:
        """Build a deterministic key for an operation and its parameters."""
        ...


class DeduplicationMetrics(Protocol):
    """Protocol for metric sinks.

    Example:
        ```python
        class PrometheusMetrics:
            def record_hit(self, key: str, latency: float) -> None:
                dedup_hits_total.inc()
                dedup_latency.labels(outcome="hit").observe(latency)
        ```
    """

    def record_hit(self, key: str, latency: float) -> None:
        """Record a result cache hit.

        Args:
            key: Deduplication key
            latency: Lookup latency in seconds
        """
        ...

    def record_miss(self, key: str, latency: float) -> None:
        """Record a result cache miss."""
        ...

    def record_write(self, key: str, size: int) -> None:
        """Record a result written to the cache.

        Args:
            key: Deduplication key
            size: Serialized size in bytes
        """
        ...

    def record_wait(self, key: str, latency: float) -> None:
        """Record a caller that waited on another caller's execution."""
        ...

    def record_error(self, key: str, error: Exception) -> None:
        """Record a failed execution or wait."""
        ...
