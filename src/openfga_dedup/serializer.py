"""Result codecs for the result cache."""

import json
from typing import Any

import msgpack

from .exceptions import CacheSerializationError
from .protocols import Serializer


class MsgPackSerializer:
    """Serializer using MessagePack.

    Default codec. Compact binary format that round-trips the usual
    authorization results (bool, str, int, lists and dicts of those).

    Supported types:
    - None, bool, int, float, str, bytes
    - list, tuple (decoded as list), dict

    Anything else raises instead of being coerced, so an unusable value is
    never written to the cache.
    """

    def serialize(self, data: Any) -> bytes:
        """Serialize data to MessagePack bytes.

        Raises:
            CacheSerializationError: If the data contains unsupported types
        """
        try:
            result = msgpack.packb(data, use_bin_type=True)
            if result is None:
                raise CacheSerializationError("msgpack.packb returned None")
            return result
        except (TypeError, ValueError, OverflowError) as e:
            raise CacheSerializationError(f"Failed to serialize result: {e}") from e

    def deserialize(self, data: bytes) -> Any:
        """Deserialize MessagePack bytes.

        Raises:
            CacheSerializationError: If the bytes are not valid MessagePack
        """
        try:
            return msgpack.unpackb(data, raw=False, strict_map_key=False)
        except (msgpack.UnpackException, ValueError, TypeError) as e:
            raise CacheSerializationError(f"Failed to deserialize result: {e}") from e


class JsonSerializer:
    """Serializer using compact UTF-8 JSON.

    Useful when other services read the cached results. Only JSON-native
    types are accepted.
    """

    def serialize(self, data: Any) -> bytes:
        try:
            return json.dumps(data, separators=(",", ":"), ensure_ascii=False, allow_nan=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise CacheSerializationError(f"JSON serialization failed: {e}") from e

    def deserialize(self, data: bytes) -> Any:
        if not isinstance(data, bytes):
            raise CacheSerializationError(f"Expected bytes, got {type(data).__name__}")

        try:
            return json.loads(data.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise CacheSerializationError(f"Invalid UTF-8 encoding: {e}") from e
        except json.JSONDecodeError as e:
            raise CacheSerializationError(f"Invalid JSON data: {e}") from e


__all__ = ["JsonSerializer", "MsgPackSerializer", "Serializer"]
