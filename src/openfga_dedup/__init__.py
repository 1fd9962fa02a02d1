"""openfga-dedup: request deduplication for OpenFGA calls.

Coalesces identical authorization requests (checks, expands, list
objects, ...) issued concurrently by threads or processes, using a shared
key/value cache store as the only coordination point.

Basic usage:
    ```python
    from openfga_dedup import InMemoryCacheStore, RequestDeduplicator

    dedup = RequestDeduplicator(InMemoryCacheStore(), {"ttl": 60, "in_flight_ttl": 5})

    allowed = dedup.execute(
        "check",
        {"user": "user:1", "relation": "viewer", "object": "doc:1"},
        lambda: client.check(...),
    )
    dedup.get_stats()
    ```

Shared across processes through Dapr:
    ```python
    from openfga_dedup import DaprStateStore, RequestDeduplicator

    dedup = RequestDeduplicator(DaprStateStore("cache"))
    ```
"""

__version__ = "0.1.0"

# Cache stores
from .backend import DaprStateStore, InMemoryCacheStore

# Configuration
from .config import DeduplicationConfig

# Deduplicator
from .decorator import DeduplicatedWrapper, deduplicated
from .deduplicator import RequestDeduplicator
from .stats import DeduplicationStats

# Exceptions
from .exceptions import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    InFlightError,
    InFlightRequestFailedError,
    InFlightTimeoutError,
    ValidationError,
)

# Key generation
from .key_builder import DefaultKeyBuilder

# Metrics
from .metrics import NoOpMetrics, OpenTelemetryMetrics

# Protocols (for extensibility)
from .protocols import AtomicCacheStore, CacheStore, DeduplicationMetrics, KeyBuilder
from .protocols import Serializer as SerializerProtocol

# Serialization
from .serializer import JsonSerializer, MsgPackSerializer

__all__ = [
    # Deduplicator
    "RequestDeduplicator",
    "deduplicated",
    "DeduplicatedWrapper",
    "DeduplicationStats",
    # Configuration
    "DeduplicationConfig",
    # Cache stores
    "DaprStateStore",
    "InMemoryCacheStore",
    # Serialization
    "JsonSerializer",
    "MsgPackSerializer",
    # Key generation
    "DefaultKeyBuilder",
    "KeyBuilder",
    # Metrics
    "NoOpMetrics",
    "OpenTelemetryMetrics",
    # Exceptions
    "CacheError",
    "CacheConnectionError",
    "CacheSerializationError",
    "CacheKeyError",
    "ValidationError",
    "InFlightError",
    "InFlightRequestFailedError",
    "InFlightTimeoutError",
    # Protocols
    "AtomicCacheStore",
    "CacheStore",
    "DeduplicationMetrics",
    "SerializerProtocol",
]
