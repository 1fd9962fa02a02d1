"""
Cache store adapters.

- InMemoryCacheStore: thread-safe in-process store with TTL and put-if-absent
- DaprStateStore: Dapr state store through the sidecar HTTP API
"""

from .dapr import DaprStateStore
from .memory import InMemoryCacheStore

__all__ = [
    "DaprStateStore",
    "InMemoryCacheStore",
]
