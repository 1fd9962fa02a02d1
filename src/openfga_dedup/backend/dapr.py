"""Cache store backed by a Dapr state store through the sidecar HTTP API."""

import base64
import binascii
import logging
import math
import os
from threading import Lock
from typing import Any

import httpx

from ..exceptions import CacheConnectionError, CacheError, CacheKeyError

logger = logging.getLogger(__name__)

# Dapr sidecar configuration
DEFAULT_DAPR_HTTP_PORT = 3500
DEFAULT_TIMEOUT_SECONDS = 5.0
MIN_DAPR_TTL_SECONDS = 1


class _ReadTimeoutError(CacheError):
    """The sidecar did not answer a read in time."""


def _get_dapr_url() -> str:
    """Return the base URL of the Dapr sidecar."""
    host = os.getenv("DAPR_HTTP_HOST", "127.0.0.1")
    port = os.getenv("DAPR_HTTP_PORT", str(DEFAULT_DAPR_HTTP_PORT))
    return f"http://{host}:{port}"


class DaprStateStore:
    """Cache store for a Dapr state store component.

    Uses httpx against the sidecar's state API:
    - GET /v1.0/state/{storename}/{key} - read a value
    - POST /v1.0/state/{storename} - save value(s)
    - DELETE /v1.0/state/{storename}/{key} - delete a value

    Values are sent base64-encoded inside the JSON payload and TTLs use the
    ``ttlInSeconds`` metadata field, rounded up to whole seconds. ``add``
    saves with ``first-write`` concurrency and no ETag, which state stores
    supporting that mode treat as insert-only.

    Attributes:
        store_name: Name of the Dapr state store component
        timeout: HTTP timeout in seconds
    """

    def __init__(
        self,
        store_name: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        dapr_url: str | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            store_name: Dapr state store name
            timeout: HTTP timeout
            dapr_url: Sidecar URL (from DAPR_HTTP_HOST/DAPR_HTTP_PORT if omitted)
            client: Preconfigured httpx client (created lazily if omitted)

        Raises:
            CacheKeyError: If store_name is empty
        """
        if not store_name:
            raise CacheKeyError("store_name cannot be empty")

        self._store_name = store_name
        self._timeout = timeout
        self._base_url = dapr_url or _get_dapr_url()
        self._client = client
        self._client_lock = Lock()

    @property
    def store_name(self) -> str:
        """Name of the state store."""
        return self._store_name

    def _get_client(self) -> httpx.Client:
        """Get or create the HTTP client (double-checked locking)."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = httpx.Client(base_url=self._base_url, timeout=self._timeout)
        return self._client

    def _state_url(self, key: str | None = None) -> str:
        if key:
            return f"/v1.0/state/{self._store_name}/{key}"
        return f"/v1.0/state/{self._store_name}"

    def _encode_value(self, value: bytes) -> str:
        return base64.b64encode(value).decode("ascii")

    def _decode_value(self, response: httpx.Response) -> bytes | None:
        """Decode a stored value; the sidecar returns the JSON string we saved."""
        try:
            data: Any = response.json()
        except ValueError:
            data = response.text
        if not isinstance(data, str):
            logger.warning(f"Unexpected state value type from Dapr: {type(data).__name__}")
            return None
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            return data.encode("utf-8")

    def _save_payload(self, key: str, value: bytes, ttl_seconds: float, first_write: bool = False) -> list[dict]:
        item: dict[str, Any] = {
            "key": key,
            "value": self._encode_value(value),
            "metadata": {"ttlInSeconds": str(max(MIN_DAPR_TTL_SECONDS, math.ceil(ttl_seconds)))},
        }
        if first_write:
            item["options"] = {"concurrency": "first-write"}
        return [item]

    def get(self, key: str) -> bytes | None:
        """Read a value.

        A read that times out is treated as a miss.

        Returns:
            Stored bytes or None if not found

        Raises:
            CacheKeyError: If key is empty
            CacheConnectionError: If the sidecar cannot be reached
        """
        try:
            return self._read(key)
        except _ReadTimeoutError as e:
            logger.warning(str(e))
            return None

    def _read(self, key: str) -> bytes | None:
        if not key:
            raise CacheKeyError("Key cannot be empty", key=key)

        try:
            response = self._get_client().get(self._state_url(key))
        except httpx.ConnectError as e:
            raise CacheConnectionError(f"Could not connect to Dapr sidecar: {e}", key=key) from e
        except httpx.TimeoutException as e:
            raise _ReadTimeoutError(f"Timeout reading key {key}: {e}", key=key) from e

        if response.status_code == 204 or not response.content:
            logger.debug(f"State miss for key: {key}")
            return None

        if response.status_code == 200:
            logger.debug(f"State hit for key: {key}")
            return self._decode_value(response)

        logger.warning(f"Unexpected Dapr response for GET {key}: {response.status_code}")
        return None

    def put(self, key: str, value: bytes, ttl_seconds: float) -> bool:
        """Save a value.

        Returns:
            True if the sidecar accepted the write

        Raises:
            CacheKeyError: If key is empty
            CacheConnectionError: If the sidecar cannot be reached
        """
        if not key:
            raise CacheKeyError("Key cannot be empty", key=key)

        try:
            response = self._get_client().post(self._state_url(), json=self._save_payload(key, value, ttl_seconds))
        except httpx.ConnectError as e:
            raise CacheConnectionError(f"Could not connect to Dapr sidecar: {e}", key=key) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout saving key {key}: {e}")
            return False

        if response.status_code in (200, 201, 204):
            logger.debug(f"State saved for key: {key}, TTL: {ttl_seconds}s")
            return True

        logger.warning(f"Failed to save state for key {key}: {response.status_code}")
        return False

    def add(self, key: str, value: bytes, ttl_seconds: float) -> bool:
        """Save a value only if the key does not exist yet.

        Returns:
            True if written, False if the key already existed

        Raises:
            CacheError: If the sidecar rejects the write for another reason
            CacheConnectionError: If the sidecar cannot be reached
        """
        if not key:
            raise CacheKeyError("Key cannot be empty", key=key)

        try:
            response = self._get_client().post(
                self._state_url(),
                json=self._save_payload(key, value, ttl_seconds, first_write=True),
            )
        except httpx.ConnectError as e:
            raise CacheConnectionError(f"Could not connect to Dapr sidecar: {e}", key=key) from e
        except httpx.TimeoutException as e:
            raise CacheError(f"Timeout claiming key {key}: {e}", key=key) from e

        if response.status_code in (200, 201, 204):
            return True
        if response.status_code == 409:
            logger.debug(f"Key already present, first-write rejected: {key}")
            return False

        raise CacheError(f"Unexpected Dapr response for first-write of {key}: {response.status_code}", key=key)

    def has(self, key: str) -> bool:
        """Check whether key exists.

        Unlike ``get``, a timeout is not reported as absence.

        Raises:
            CacheError: If the read times out
        """
        return self._read(key) is not None

    def forget(self, key: str) -> bool:
        """Delete a value.

        Returns:
            True if the sidecar confirmed the delete
        """
        if not key:
            return False

        try:
            response = self._get_client().delete(self._state_url(key))
        except httpx.HTTPError as e:
            logger.warning(f"Error deleting key {key}: {e}")
            return False

        success = response.status_code in (200, 204)
        if success:
            logger.debug(f"State deleted for key: {key}")
        return success

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "DaprStateStore":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
