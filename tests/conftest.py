"""Shared fixtures."""

import threading
from typing import Any

import pytest

from openfga_dedup.backend import InMemoryCacheStore


class FakeClock:
    """Monotonic clock whose sleep advances time instead of blocking."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingStore:
    """Dictionary store without TTL or put-if-absent that records every call."""

    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}
        self.calls: list[tuple[Any, ...]] = []

    def get(self, key: str) -> bytes | None:
        self.calls.append(("get", key))
        return self.data.get(key)

    def put(self, key: str, value: bytes, ttl_seconds: float) -> None:
        self.calls.append(("put", key, value, ttl_seconds))
        self.data[key] = value

    def has(self, key: str) -> bool:
        self.calls.append(("has", key))
        return key in self.data

    def forget(self, key: str) -> None:
        self.calls.append(("forget", key))
        self.data.pop(key, None)

    def puts(self) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == "put"]


class BlockingAddStore(InMemoryCacheStore):
    """In-memory store whose add blocks for one key until released."""

    def __init__(self, blocked_key: str) -> None:
        super().__init__()
        self.blocked_key = blocked_key
        self.entered = threading.Event()
        self.release = threading.Event()

    def add(self, key: str, value: bytes, ttl_seconds: float) -> bool:
        if key == self.blocked_key:
            self.entered.set()
            self.release.wait(5)
        return super().add(key, value, ttl_seconds)


@pytest.fixture
def fake_clock() -> FakeClock:
    """Clock starting at zero."""
    return FakeClock()


@pytest.fixture
def store() -> InMemoryCacheStore:
    """In-memory store using the real clock."""
    return InMemoryCacheStore()


@pytest.fixture
def recording_store() -> RecordingStore:
    """Non-atomic store recording its calls."""
    return RecordingStore()


@pytest.fixture
def check_params() -> dict:
    """Parameters of a typical permission check."""
    return {"user": "u1", "rel": "viewer", "obj": "doc:1"}


@pytest.fixture
def make_blocking_store() -> type[BlockingAddStore]:
    """Factory for stores whose add blocks on one key."""
    return BlockingAddStore
