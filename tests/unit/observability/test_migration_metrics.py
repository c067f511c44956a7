"""
Unit tests for MigrationMetrics.

Tests cover:
- Snapshot bookkeeping with instruments disabled
- Export of OpenTelemetry instruments through an in-memory reader
- The switch timer
"""

import pytest

from shadowswap.metrics import MigrationMetrics


def _points(metric_reader, name):
    data = metric_reader.get_metrics_data()
    for resource_metrics in data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                if metric.name == name:
                    return list(metric.data.data_points)
    return []


class TestSnapshot:
    """Tests for the in-process snapshot."""

    def test_counts_without_instruments(self):
        metrics = MigrationMetrics("products", enable_metrics=False)
        metrics.record_documents_transformed(25)
        metrics.record_documents_transformed(5)
        metrics.record_documents_failed(reason="transformation")
        metrics.record_phase_duration("backup", 1.5)
        metrics.record_phase_duration("backup", 0.5)
        metrics.record_query_duration("Catalog", 12.0)
        metrics.record_index_creation("product_lookup", 3.0)

        snapshot = metrics.get_snapshot()

        assert snapshot.documents_transformed == 30
        assert snapshot.documents_failed == 1
        assert snapshot.phase_durations == {"backup": 2.0}
        assert snapshot.query_durations == {"Catalog": [12.0]}
        assert snapshot.index_creation_ms == {"product_lookup": 3.0}

    def test_snapshot_is_a_copy(self):
        metrics = MigrationMetrics("products", enable_metrics=False)
        metrics.record_query_duration("Catalog", 1.0)
        snapshot = metrics.get_snapshot()
        snapshot.query_durations["Catalog"].append(99.0)
        assert metrics.get_snapshot().query_durations == {"Catalog": [1.0]}

    def test_to_dict(self):
        metrics = MigrationMetrics("products", enable_metrics=False)
        assert metrics.get_snapshot().to_dict()["documents_transformed"] == 0


class TestSwitchTimer:
    """Tests for time_switch()."""

    def test_records_duration(self):
        metrics = MigrationMetrics("products", enable_metrics=False)
        with metrics.time_switch() as timer:
            timer.success = True

        (duration,) = metrics.get_snapshot().switch_durations
        assert duration >= 0
        assert timer.duration_ms == duration

    def test_records_on_exception(self):
        metrics = MigrationMetrics("products", enable_metrics=False)
        with pytest.raises(RuntimeError), metrics.time_switch() as timer:
            raise RuntimeError("rename failed")

        assert timer.success is False
        assert len(metrics.get_snapshot().switch_durations) == 1


class TestOpenTelemetryExport:
    """Tests for instruments exported to a MeterProvider."""

    def test_counters(self, meter_provider, metric_reader):
        metrics = MigrationMetrics("products", meter_provider=meter_provider)
        metrics.record_documents_transformed(24)
        metrics.record_documents_failed(reason="insert")

        (transformed,) = _points(metric_reader, "shadowswap.documents.transformed")
        assert transformed.value == 24
        assert transformed.attributes == {"collection": "products"}
        (failed,) = _points(metric_reader, "shadowswap.documents.failed")
        assert failed.attributes == {"collection": "products", "reason": "insert"}

    def test_switch_histogram_labels_success(self, meter_provider, metric_reader):
        metrics = MigrationMetrics("products", meter_provider=meter_provider)
        with metrics.time_switch() as timer:
            timer.success = True

        (point,) = _points(metric_reader, "shadowswap.switch.duration")
        assert point.count == 1
        assert point.attributes["success"] == "true"

    def test_phase_histogram(self, meter_provider, metric_reader):
        metrics = MigrationMetrics("products", meter_provider=meter_provider)
        metrics.record_phase_duration("data-transformation", 2.0)

        (point,) = _points(metric_reader, "shadowswap.phase.duration")
        assert point.sum == 2.0
        assert point.attributes["phase"] == "data-transformation"
