"""Deterministic deduplication keys."""

import hashlib
import json
import logging
from collections.abc import Mapping
from typing import Any

from .config import DEFAULT_PREFIX
from .exceptions import CacheKeyError

logger = logging.getLogger(__name__)

# 32 hex chars of SHA-256 = 128 bits
DEFAULT_HASH_LENGTH = 32


class DefaultKeyBuilder:
    """Key builder using SHA-256 over canonical JSON.

    Generates keys in the format:
    {prefix}:{operation}:{hash}

    The hash covers the operation name and the parameters serialized with
    every mapping key sorted, so parameter insertion order never changes
    the key.

    Attributes:
        prefix: Namespace for all generated keys
    """

    def __init__(self, prefix: str = DEFAULT_PREFIX, hash_length: int = DEFAULT_HASH_LENGTH) -> None:
        """Initialize the key builder.

        Args:
            prefix: Key namespace (default: "openfga_dedup")
            hash_length: Number of hex characters kept from the digest

        Raises:
            ValueError: If prefix is empty or hash_length is out of range
        """
        if not prefix:
            raise ValueError("Prefix cannot be empty")
        if not 1 <= hash_length <= 64:
            raise ValueError(f"hash_length must be between 1 and 64, got {hash_length}")
        self._prefix = prefix
        self._hash_length = hash_length

    @property
    def prefix(self) -> str:
        """Key namespace."""
        return self._prefix

    def generate_key(self, operation: str, params: Mapping[str, Any]) -> str:
        """Build the deduplication key.

        Args:
            operation: Operation name (e.g. "check")
            params: Operation parameters

        Returns:
            Key in the format prefix:operation:hash

        Raises:
            CacheKeyError: If operation is empty
        """
        if not operation:
            raise CacheKeyError("Operation cannot be empty")

        serialized = self._serialize_params(params)
        digest = hashlib.sha256(f"{operation}:{serialized}".encode()).hexdigest()
        return f"{self._prefix}:{operation}:{digest[: self._hash_length]}"

    def _serialize_params(self, params: Mapping[str, Any]) -> str:
        """Serialize params canonically, falling back to an empty string."""
        try:
            return json.dumps(
                self._normalize(params),
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
            )
        except (TypeError, ValueError, RecursionError) as e:
            logger.warning(f"Could not serialize params for key generation, using empty serialization: {e}")
            return ""

    def _normalize(self, obj: Any) -> Any:
        """Normalize an object for JSON serialization."""
        if obj is None or isinstance(obj, (bool, int, float, str)):
            return obj
        if isinstance(obj, bytes):
            return obj.decode("utf-8", errors="replace")
        if isinstance(obj, (list, tuple)):
            return [self._normalize(item) for item in obj]
        if isinstance(obj, Mapping):
            if all(isinstance(k, str) for k in obj):
                return {k: self._normalize(v) for k, v in obj.items()}
            # Non-string keys keep their type: 1 and "1" stay distinct
            pairs = [[self._normalize(k), self._normalize(v)] for k, v in obj.items()]
            return sorted(pairs, key=lambda p: (type(p[0]).__name__, str(p[0]), json.dumps(p[1], sort_keys=True)))
        if isinstance(obj, (set, frozenset)):
            # Mixed-type sets cannot be sorted directly
            normalized_items = [self._normalize(item) for item in obj]
            return sorted(normalized_items, key=lambda x: (type(x).__name__, str(x)))
        return str(obj)
