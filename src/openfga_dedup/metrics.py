"""Metric sinks for deduplication events."""

from opentelemetry import metrics as otel_metrics

from .protocols import DeduplicationMetrics


class NoOpMetrics:
    """Metric sink that discards everything (default)."""

    def record_hit(self, key: str, latency: float) -> None:
        pass

    def record_miss(self, key: str, latency: float) -> None:
        pass

    def record_write(self, key: str, size: int) -> None:
        pass

    def record_wait(self, key: str, latency: float) -> None:
        pass

    def record_error(self, key: str, error: Exception) -> None:
        pass


class OpenTelemetryMetrics:
    """Metric sink using OpenTelemetry.

    Exported metrics:
    - dedup.cache_hits (counter): results served from the cache
    - dedup.cache_misses (counter): lookups that found no result
    - dedup.writes (counter): results written to the cache
    - dedup.waits (counter): callers that waited on an in-flight execution
    - dedup.errors (counter): failed executions or waits
    - dedup.latency (histogram): lookup and wait latency in seconds
    - dedup.size (histogram): serialized result size in bytes

    Keys are not used as attributes; they are unbounded and would explode
    metric cardinality. Only the operation segment of the key is attached.

    Example:
        ```python
        from opentelemetry import metrics
        from opentelemetry.sdk.metrics import MeterProvider

        metrics.set_meter_provider(MeterProvider())

        deduplicator = RequestDeduplicator(store, metrics=OpenTelemetryMetrics())
        ```
    """

    def __init__(self, meter_name: str = "openfga_dedup") -> None:
        """Initialize OpenTelemetry instruments.

        Args:
            meter_name: Name of the meter grouping the instruments
        """
        meter = otel_metrics.get_meter(meter_name)

        self._hits_counter = meter.create_counter(
            "dedup.cache_hits",
            description="Results served from the result cache",
            unit="1",
        )
        self._misses_counter = meter.create_counter(
            "dedup.cache_misses",
            description="Lookups that found no cached result",
            unit="1",
        )
        self._writes_counter = meter.create_counter(
            "dedup.writes",
            description="Results written to the result cache",
            unit="1",
        )
        self._waits_counter = meter.create_counter(
            "dedup.waits",
            description="Callers that waited on an in-flight execution",
            unit="1",
        )
        self._errors_counter = meter.create_counter(
            "dedup.errors",
            description="Failed executions or waits",
            unit="1",
        )
        self._latency_histogram = meter.create_histogram(
            "dedup.latency",
            description="Latency of lookups and waits",
            unit="s",
        )
        self._size_histogram = meter.create_histogram(
            "dedup.size",
            description="Serialized size of cached results",
            unit="By",
        )

    def record_hit(self, key: str, latency: float) -> None:
        attributes = {"operation": _operation_of(key)}
        self._hits_counter.add(1, attributes)
        self._latency_histogram.record(latency, {**attributes, "outcome": "hit"})

    def record_miss(self, key: str, latency: float) -> None:
        attributes = {"operation": _operation_of(key)}
        self._misses_counter.add(1, attributes)
        self._latency_histogram.record(latency, {**attributes, "outcome": "miss"})

    def record_write(self, key: str, size: int) -> None:
        attributes = {"operation": _operation_of(key)}
        self._writes_counter.add(1, attributes)
        self._size_histogram.record(size, attributes)

    def record_wait(self, key: str, latency: float) -> None:
        attributes = {"operation": _operation_of(key)}
        self._waits_counter.add(1, attributes)
        self._latency_histogram.record(latency, {**attributes, "outcome": "wait"})

    def record_error(self, key: str, error: Exception) -> None:
        self._errors_counter.add(1, {"operation": _operation_of(key), "error_type": type(error).__name__})


def _operation_of(key: str) -> str:
    """Extract the operation from a ``prefix:operation:hash`` key."""
    parts = key.split(":")
    if len(parts) < 3:
        return "unknown"
    return ":".join(parts[1:-1])


__all__ = ["DeduplicationMetrics", "NoOpMetrics", "OpenTelemetryMetrics"]
