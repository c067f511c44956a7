"""
OpenTelemetry metrics for migration runs.

Tracks documents transformed and failed, phase durations, query latency
measured by the performance gate, index creation time and the duration of
the blue-green switch.

Example:
    >>> from shadowswap.metrics import MigrationMetrics
    >>>
    >>> metrics = MigrationMetrics("products")
    >>> metrics.record_documents_transformed(25)
    >>> metrics.record_phase_duration("backup", 1.2)
    >>> with metrics.time_switch() as timer:
    ...     await switch()
    ...     timer.success = True

Metrics Exposed:
    - shadowswap.documents.transformed (Counter)
    - shadowswap.documents.failed (Counter)
    - shadowswap.phase.duration (Histogram, seconds)
    - shadowswap.query.duration (Histogram, milliseconds)
    - shadowswap.index.creation.duration (Histogram, milliseconds)
    - shadowswap.switch.duration (Histogram, milliseconds)

All metrics carry the 'collection' attribute for filtering.
"""

from __future__ import annotations

import time
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from opentelemetry import metrics
from opentelemetry.metrics import MeterProvider

METER_NAME = "shadowswap"


@dataclass
class MigrationMetricSnapshot:
    """
    Point-in-time snapshot of the metrics recorded by one run.

    Attributes:
        documents_transformed: Documents inserted into the shadow collection
        documents_failed: Documents that failed transformation or insertion
        phase_durations: Phase name to total duration in seconds
        query_durations: Query name to list of measured latencies in ms
        index_creation_ms: Index name to creation time in ms
        switch_durations: Recorded switch durations in ms
    """

    documents_transformed: int = 0
    documents_failed: int = 0
    phase_durations: dict[str, float] = field(default_factory=dict)
    query_durations: dict[str, list[float]] = field(default_factory=dict)
    index_creation_ms: dict[str, float] = field(default_factory=dict)
    switch_durations: list[float] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "documents_transformed": self.documents_transformed,
            "documents_failed": self.documents_failed,
            "phase_durations": dict(self.phase_durations),
            "query_durations": {k: list(v) for k, v in self.query_durations.items()},
            "index_creation_ms": dict(self.index_creation_ms),
            "switch_durations": list(self.switch_durations),
        }


class _SwitchTimer:
    """Timer for the blue-green switch with a success flag."""

    def __init__(self) -> None:
        self._start: float = 0.0
        self._end: float = 0.0
        self.success: bool = False

    def start(self) -> None:
        self._start = time.perf_counter()

    def stop(self) -> None:
        self._end = time.perf_counter()

    @property
    def duration_ms(self) -> float:
        return (self._end - self._start) * 1000


class MigrationMetrics:
    """
    Container for migration metric instruments.

    Args:
        collection: Name of the live collection, used as metric label
        meter_provider: Meter provider to use (defaults to the global one)
        enable_metrics: Whether to create OpenTelemetry instruments
    """

    def __init__(
        self,
        collection: str,
        meter_provider: MeterProvider | None = None,
        enable_metrics: bool = True,
    ) -> None:
        self.collection = collection
        self.enable_metrics = enable_metrics
        self._snapshot = MigrationMetricSnapshot()

        if enable_metrics:
            meter = metrics.get_meter(METER_NAME, meter_provider=meter_provider)
        else:
            meter = metrics.NoOpMeter(METER_NAME)

        self._transformed_counter = meter.create_counter(
            name="shadowswap.documents.transformed",
            unit="documents",
            description="Documents written to the shadow collection",
        )
        self._failed_counter = meter.create_counter(
            name="shadowswap.documents.failed",
            unit="documents",
            description="Documents that failed transformation or insertion",
        )
        self._phase_histogram = meter.create_histogram(
            name="shadowswap.phase.duration",
            unit="s",
            description="Time spent in each migration phase in seconds",
        )
        self._query_histogram = meter.create_histogram(
            name="shadowswap.query.duration",
            unit="ms",
            description="Latency of performance gate queries in milliseconds",
        )
        self._index_histogram = meter.create_histogram(
            name="shadowswap.index.creation.duration",
            unit="ms",
            description="Index creation time in milliseconds",
        )
        self._switch_histogram = meter.create_histogram(
            name="shadowswap.switch.duration",
            unit="ms",
            description="Duration of the blue-green rename sequence in milliseconds",
        )

    def _base_attributes(self) -> dict[str, str]:
        return {"collection": self.collection}

    def record_documents_transformed(self, count: int) -> None:
        self._transformed_counter.add(count, self._base_attributes())
        self._snapshot.documents_transformed += count

    def record_documents_failed(self, count: int = 1, reason: str | None = None) -> None:
        attrs = self._base_attributes()
        if reason:
            attrs["reason"] = reason
        self._failed_counter.add(count, attrs)
        self._snapshot.documents_failed += count

    def record_phase_duration(self, phase: str, duration_seconds: float) -> None:
        """
        Record duration for a migration phase.

        Args:
            phase: Phase name (e.g., 'backup', 'data-transformation')
            duration_seconds: Duration in seconds
        """
        self._phase_histogram.record(duration_seconds, {**self._base_attributes(), "phase": phase})
        durations = self._snapshot.phase_durations
        durations[phase] = durations.get(phase, 0.0) + duration_seconds

    def record_query_duration(self, query: str, duration_ms: float) -> None:
        self._query_histogram.record(duration_ms, {**self._base_attributes(), "query": query})
        self._snapshot.query_durations.setdefault(query, []).append(duration_ms)

    def record_index_creation(self, index: str, duration_ms: float) -> None:
        self._index_histogram.record(duration_ms, {**self._base_attributes(), "index": index})
        self._snapshot.index_creation_ms[index] = duration_ms

    def record_switch_duration(self, duration_ms: float, success: bool = True) -> None:
        attrs = {**self._base_attributes(), "success": str(success).lower()}
        self._switch_histogram.record(duration_ms, attrs)
        self._snapshot.switch_durations.append(duration_ms)

    @contextmanager
    def time_switch(self) -> Generator[_SwitchTimer, None, None]:
        """
        Context manager timing the blue-green switch.

        The success flag can be set on the timer before exit.

        Yields:
            _SwitchTimer with duration_ms property and success attribute
        """
        timer = _SwitchTimer()
        timer.start()
        try:
            yield timer
        finally:
            timer.stop()
            self.record_switch_duration(timer.duration_ms, timer.success)

    def get_snapshot(self) -> MigrationMetricSnapshot:
        """
        Get a snapshot of current metric values.

        Returns:
            MigrationMetricSnapshot with current values
        """
        current = self._snapshot
        return MigrationMetricSnapshot(
            documents_transformed=current.documents_transformed,
            documents_failed=current.documents_failed,
            phase_durations=dict(current.phase_durations),
            query_durations={k: list(v) for k, v in current.query_durations.items()},
            index_creation_ms=dict(current.index_creation_ms),
            switch_durations=list(current.switch_durations),
        )


__all__ = [
    "METER_NAME",
    "MigrationMetricSnapshot",
    "MigrationMetrics",
]
