"""Exception hierarchy for openfga-dedup."""


class CacheError(Exception):
    """Base error for cache store and codec operations."""

    def __init__(self, message: str, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)


class CacheConnectionError(CacheError):
    """The cache store could not be reached."""

    pass


class CacheSerializationError(CacheError):
    """A value could not be serialized or deserialized."""

    pass


class CacheKeyError(CacheError):
    """Invalid cache key (empty operation, empty key, etc.)."""

    pass


class ValidationError(ValueError):
    """Invalid deduplication configuration value."""

    pass


class InFlightError(RuntimeError):
    """Base error raised while waiting on another caller's execution."""

    def __init__(self, message: str, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)


class InFlightRequestFailedError(InFlightError):
    """The in-flight execution ended without producing a cached result."""

    def __init__(self, key: str | None = None) -> None:
        super().__init__("In-flight request failed or timed out", key=key)


class InFlightTimeoutError(InFlightError):
    """The in-flight execution did not finish within ``in_flight_ttl``."""

    def __init__(self, key: str | None = None) -> None:
        super().__init__("Timeout waiting for in-flight request", key=key)
