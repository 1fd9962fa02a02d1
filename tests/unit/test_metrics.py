"""Tests for metric sinks."""

from unittest.mock import MagicMock, patch

from openfga_dedup.metrics import NoOpMetrics, OpenTelemetryMetrics, _operation_of


class TestNoOpMetrics:
    """Tests for NoOpMetrics."""

    def test_accepts_every_event(self) -> None:
        """Should accept all events without error."""
        metrics = NoOpMetrics()

        metrics.record_hit("key", 0.001)
        metrics.record_miss("key", 0.001)
        metrics.record_write("key", 10)
        metrics.record_wait("key", 0.2)
        metrics.record_error("key", Exception("test"))


class TestOperationOf:
    """Tests for _operation_of."""

    def test_extracts_operation(self) -> None:
        """Should return the middle segment."""
        assert _operation_of("openfga_dedup:check:abc123") == "check"

    def test_operation_with_colons(self) -> None:
        """Operations containing colons are kept whole."""
        assert _operation_of("openfga_dedup:list:objects:abc123") == "list:objects"

    def test_malformed_key(self) -> None:
        """Keys without the expected shape map to unknown."""
        assert _operation_of("plain") == "unknown"


class TestOpenTelemetryMetrics:
    """Tests for OpenTelemetryMetrics."""

    def _metrics(self) -> tuple[OpenTelemetryMetrics, MagicMock]:
        meter = MagicMock()
        with patch("openfga_dedup.metrics.otel_metrics.get_meter", return_value=meter) as get_meter:
            metrics = OpenTelemetryMetrics()
        get_meter.assert_called_once_with("openfga_dedup")
        return metrics, meter

    def test_creates_instruments(self) -> None:
        """Should create five counters and two histograms."""
        _, meter = self._metrics()

        counter_names = [call.args[0] for call in meter.create_counter.call_args_list]
        histogram_names = [call.args[0] for call in meter.create_histogram.call_args_list]
        assert counter_names == [
            "dedup.cache_hits",
            "dedup.cache_misses",
            "dedup.writes",
            "dedup.waits",
            "dedup.errors",
        ]
        assert histogram_names == ["dedup.latency", "dedup.size"]

    def test_record_hit(self) -> None:
        """Hits increment the counter and record latency by operation."""
        metrics, _ = self._metrics()

        metrics.record_hit("openfga_dedup:check:abc", 0.002)

        metrics._hits_counter.add.assert_called_once_with(1, {"operation": "check"})
        metrics._latency_histogram.record.assert_called_once_with(0.002, {"operation": "check", "outcome": "hit"})

    def test_record_wait(self) -> None:
        """Waits increment the counter and record latency."""
        metrics, _ = self._metrics()

        metrics.record_wait("openfga_dedup:check:abc", 0.3)

        metrics._waits_counter.add.assert_called_once_with(1, {"operation": "check"})
        metrics._latency_histogram.record.assert_called_once_with(0.3, {"operation": "check", "outcome": "wait"})

    def test_record_write(self) -> None:
        """Writes record the payload size."""
        metrics, _ = self._metrics()

        metrics.record_write("openfga_dedup:expand:abc", 128)

        metrics._writes_counter.add.assert_called_once_with(1, {"operation": "expand"})
        metrics._size_histogram.record.assert_called_once_with(128, {"operation": "expand"})

    def test_record_error(self) -> None:
        """Errors carry the exception type."""
        metrics, _ = self._metrics()

        metrics.record_error("openfga_dedup:check:abc", ValueError("boom"))

        metrics._errors_counter.add.assert_called_once_with(1, {"operation": "check", "error_type": "ValueError"})
