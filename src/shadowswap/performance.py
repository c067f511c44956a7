"""
Query latency gate for migrated collections.

The gate runs a fixed battery of representative queries against a
collection, repeats each one to smooth out jitter, and judges the average
latency against two independent bars:

- ``passed``: the query met its own target latency
- ``global_compliant``: the query stayed within the single global budget

Both booleans are reported per test. The gate as a whole passes only when
every critical test met its own target; non-critical misses become
recommendations.

Example:
    >>> gate = PerformanceGate(global_budget_ms=300, repetitions=5)
    >>> report = await gate.run_suite(collection, VALIDATION_QUERIES)
    >>> report.passed, report.compliance_rate
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from shadowswap.metrics import MigrationMetrics
from shadowswap.observability import (
    ATTR_QUERY_CRITICAL,
    ATTR_QUERY_NAME,
    ATTR_QUERY_TARGET_MS,
    ATTR_SOURCE_COLLECTION,
    ATTR_SUITE_NAME,
    Tracer,
    create_tracer,
)
from shadowswap.storage.interface import DocumentCollection, SortSpec

logger = logging.getLogger(__name__)

DEFAULT_GLOBAL_BUDGET_MS = 300.0
DEFAULT_REPETITIONS = 5


@dataclass(frozen=True)
class QuerySpec:
    """
    A representative query and its latency budget.

    Attributes:
        name: Human-readable test name, used as report key
        filter: Query filter
        target_ms: Per-test latency target in milliseconds
        sort: Sort order
        limit: Maximum documents returned; 0 means no limit
        critical: Whether a miss blocks the migration
        category: Grouping used in reports (core, material, advanced, ...)
    """

    name: str
    filter: Mapping[str, Any]
    target_ms: float
    sort: SortSpec = ()
    limit: int = 24
    critical: bool = False
    category: str = "general"

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("name must not be empty")
        if self.target_ms <= 0:
            raise ValueError(f"target_ms must be positive, got {self.target_ms}")
        if self.limit < 0:
            raise ValueError(f"limit must be non-negative, got {self.limit}")


@dataclass(frozen=True)
class QueryResult:
    """
    Outcome of one query spec.

    ``passed`` and ``global_compliant`` are computed independently from the
    same average: a 150ms query with a 100ms target and a 300ms budget is
    not passed but is globally compliant.
    """

    name: str
    category: str
    average_ms: float
    target_ms: float
    global_budget_ms: float
    critical: bool
    result_count: int
    measurements: tuple[float, ...] = field(default_factory=tuple)

    @property
    def passed(self) -> bool:
        return self.average_ms <= self.target_ms

    @property
    def global_compliant(self) -> bool:
        return self.average_ms <= self.global_budget_ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "avgTime": round(self.average_ms, 3),
            "target": self.target_ms,
            "passed": self.passed,
            "globalCompliant": self.global_compliant,
            "critical": self.critical,
            "category": self.category,
            "resultCount": self.result_count,
        }


@dataclass(frozen=True)
class PerformanceReport:
    """
    Aggregated results of a query suite.

    Attributes:
        collection: Collection the suite ran against
        global_budget_ms: The global latency budget applied to every test
        repetitions: Runs per query
        results: One QueryResult per spec, in suite order
    """

    collection: str
    global_budget_ms: float
    repetitions: int
    results: tuple[QueryResult, ...]

    @property
    def critical_results(self) -> list[QueryResult]:
        return [r for r in self.results if r.critical]

    @property
    def passed(self) -> bool:
        """True when every critical test met its own target."""
        return all(r.passed for r in self.critical_results)

    @property
    def failed_critical(self) -> list[str]:
        return [r.name for r in self.critical_results if not r.passed]

    @property
    def critical_success_rate(self) -> float:
        critical = self.critical_results
        if not critical:
            return 100.0
        return sum(1 for r in critical if r.passed) / len(critical) * 100

    @property
    def target_success_rate(self) -> float:
        """Percentage of tests that met their own target."""
        if not self.results:
            return 100.0
        return sum(1 for r in self.results if r.passed) / len(self.results) * 100

    @property
    def compliance_rate(self) -> float:
        """Percentage of tests within the global budget."""
        if not self.results:
            return 100.0
        return sum(1 for r in self.results if r.global_compliant) / len(self.results) * 100

    @property
    def average_ms(self) -> float:
        if not self.results:
            return 0.0
        return sum(r.average_ms for r in self.results) / len(self.results)

    @property
    def recommendations(self) -> list[str]:
        recommendations = []
        for result in self.results:
            if result.passed:
                continue
            label = "critical" if result.critical else "non-critical"
            recommendations.append(
                f"Optimize {label} query '{result.name}': {result.average_ms:.1f}ms "
                f"(target {result.target_ms:g}ms)"
            )
        return recommendations

    def result(self, name: str) -> QueryResult:
        for result in self.results:
            if result.name == name:
                return result
        raise KeyError(name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "collection": self.collection,
            "globalBudget": self.global_budget_ms,
            "repetitions": self.repetitions,
            "tests": {r.name: r.to_dict() for r in self.results},
            "summary": {
                "passed": self.passed,
                "criticalSuccessRate": round(self.critical_success_rate, 1),
                "targetSuccessRate": round(self.target_success_rate, 1),
                "complianceRate": round(self.compliance_rate, 1),
                "averageTime": round(self.average_ms, 3),
                "failedCritical": self.failed_critical,
            },
            "recommendations": self.recommendations,
        }


class PerformanceGate:
    """
    Runs query suites and judges their latency.

    Args:
        global_budget_ms: Budget every query is checked against for compliance
        repetitions: Default runs per query
        clock: Monotonic clock in seconds (injectable for tests)
        metrics: Optional metrics recorder for per-query latencies
        tracer: Optional custom Tracer
        enable_tracing: Whether to enable OpenTelemetry tracing
    """

    def __init__(
        self,
        global_budget_ms: float = DEFAULT_GLOBAL_BUDGET_MS,
        repetitions: int = DEFAULT_REPETITIONS,
        *,
        clock: Callable[[], float] | None = None,
        metrics: MigrationMetrics | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        if global_budget_ms <= 0:
            raise ValueError(f"global_budget_ms must be positive, got {global_budget_ms}")
        if repetitions < 1:
            raise ValueError(f"repetitions must be at least 1, got {repetitions}")
        self.global_budget_ms = global_budget_ms
        self.repetitions = repetitions
        self._clock = clock or time.perf_counter
        self._metrics = metrics
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    async def run_suite(
        self,
        collection: DocumentCollection,
        specs: Sequence[QuerySpec],
        repetitions: int | None = None,
        *,
        suite: str = "performance",
    ) -> PerformanceReport:
        """
        Run every spec against the collection.

        Args:
            collection: Collection to query
            specs: Query specs, run in order
            repetitions: Runs per query; defaults to the gate's setting
            suite: Suite name used for tracing and logs

        Returns:
            PerformanceReport with one result per spec
        """
        runs = repetitions or self.repetitions
        with self._tracer.span(
            "shadowswap.performance.run_suite",
            {ATTR_SUITE_NAME: suite, ATTR_SOURCE_COLLECTION: collection.name},
        ):
            results = []
            for spec in specs:
                results.append(await self.measure(collection, spec, runs))

        report = PerformanceReport(
            collection=collection.name,
            global_budget_ms=self.global_budget_ms,
            repetitions=runs,
            results=tuple(results),
        )
        logger.info(
            "Performance suite %s on %s: critical %.1f%%, compliance %.1f%%",
            suite,
            collection.name,
            report.critical_success_rate,
            report.compliance_rate,
        )
        return report

    async def measure(
        self,
        collection: DocumentCollection,
        spec: QuerySpec,
        repetitions: int | None = None,
    ) -> QueryResult:
        """Run one spec ``repetitions`` times and average its latency."""
        runs = repetitions or self.repetitions
        measurements: list[float] = []
        result_count = 0
        with self._tracer.span(
            "shadowswap.performance.measure",
            {
                ATTR_QUERY_NAME: spec.name,
                ATTR_QUERY_TARGET_MS: spec.target_ms,
                ATTR_QUERY_CRITICAL: spec.critical,
            },
        ):
            for _ in range(runs):
                started = self._clock()
                documents = await collection.find(spec.filter, sort=spec.sort, limit=spec.limit)
                elapsed_ms = (self._clock() - started) * 1000
                measurements.append(elapsed_ms)
                result_count = len(documents)
                if self._metrics is not None:
                    self._metrics.record_query_duration(spec.name, elapsed_ms)

        result = QueryResult(
            name=spec.name,
            category=spec.category,
            average_ms=sum(measurements) / len(measurements),
            target_ms=spec.target_ms,
            global_budget_ms=self.global_budget_ms,
            critical=spec.critical,
            result_count=result_count,
            measurements=tuple(measurements),
        )
        status = "ok" if result.passed else "SLOW"
        logger.debug(
            "%s %s: %.1fms (target %sms, %d results)",
            status,
            spec.name,
            result.average_ms,
            spec.target_ms,
            result_count,
        )
        return result


_BY_FEATURED_THEN_PRICE: SortSpec = (("metadata.featured", -1), ("pricing.basePrice", 1))

OPTIMIZATION_QUERIES: tuple[QuerySpec, ...] = (
    # Core application queries
    QuerySpec(
        name="Catalog Page Load",
        filter={"inventory.available": True},
        sort=_BY_FEATURED_THEN_PRICE,
        target_ms=50,
        critical=True,
        category="core",
    ),
    QuerySpec(
        name="Category Browse",
        filter={"category": "rings", "inventory.available": True},
        sort=(("metadata.featured", -1),),
        target_ms=75,
        critical=True,
        category="core",
    ),
    QuerySpec(
        name="Product Search",
        filter={"$text": {"$search": "engagement ring"}},
        sort=(("score", {"$meta": "textScore"}),),
        target_ms=150,
        critical=True,
        category="core",
    ),
    # Material filtering
    QuerySpec(
        name="Metal Type Filter",
        filter={"materialSpecs.metal.type": "14k-gold"},
        sort=(("pricing.basePrice", 1),),
        target_ms=100,
        category="material",
    ),
    QuerySpec(
        name="Stone Type Filter",
        filter={"materialSpecs.stone.type": "lab-diamond"},
        sort=(("materialSpecs.stone.carat", -1),),
        target_ms=100,
        category="material",
    ),
    QuerySpec(
        name="Combined Filter",
        filter={
            "category": "rings",
            "materialSpecs.metal.type": "14k-gold",
            "materialSpecs.stone.type": "lab-diamond",
            "inventory.available": True,
        },
        sort=(("pricing.basePrice", 1),),
        target_ms=200,
        category="material",
    ),
    # Advanced queries
    QuerySpec(
        name="Price Range + Material",
        filter={
            "pricing.basePrice": {"$gte": 500, "$lte": 2000},
            "materialSpecs.metal.type": "14k-gold",
        },
        sort=(("materialSpecs.stone.carat", -1),),
        target_ms=150,
        category="advanced",
    ),
    QuerySpec(
        name="Carat Range Filter",
        filter={"materialSpecs.stone.carat": {"$gte": 1.0, "$lte": 2.0}},
        sort=(("pricing.basePrice", 1),),
        target_ms=100,
        category="advanced",
    ),
    # Admin
    QuerySpec(
        name="Featured Products",
        filter={"metadata.featured": True},
        sort=(("metadata.bestseller", -1),),
        limit=50,
        target_ms=75,
        category="admin",
    ),
)
"""Index optimization battery, run 3 times per query."""

OPTIMIZATION_REPETITIONS = 3

VALIDATION_QUERIES: tuple[QuerySpec, ...] = (
    QuerySpec(
        name="Catalog Load Time",
        filter={"inventory.available": True},
        sort=_BY_FEATURED_THEN_PRICE,
        target_ms=50,
        critical=True,
        category="core",
    ),
    QuerySpec(
        name="Material Filter Performance",
        filter={"materialSpecs.metal.type": "14k-gold"},
        sort=(("pricing.basePrice", 1),),
        target_ms=100,
        critical=True,
        category="material",
    ),
    QuerySpec(
        name="Category + Material Query",
        filter={
            "category": "rings",
            "materialSpecs.metal.type": "14k-gold",
            "inventory.available": True,
        },
        sort=(("metadata.featured", -1),),
        target_ms=150,
        category="material",
    ),
)
"""Pre-switch validation battery, run 5 times per query."""

INTEGRITY_QUERIES: tuple[QuerySpec, ...] = (
    QuerySpec(
        name="Catalog Page Query",
        filter={"inventory.available": True},
        sort=_BY_FEATURED_THEN_PRICE,
        target_ms=300,
        category="core",
    ),
    QuerySpec(
        name="Material Filter Query",
        filter={"materialSpecs.metal.type": "14k-gold"},
        sort=(("pricing.basePrice", 1),),
        target_ms=200,
        category="material",
    ),
    QuerySpec(
        name="Category + Material Query",
        filter={
            "category": "rings",
            "materialSpecs.metal.type": "14k-gold",
            "inventory.available": True,
        },
        sort=(("metadata.featured", -1),),
        target_ms=250,
        category="material",
    ),
    QuerySpec(
        name="Price Range Query",
        filter={"pricing.basePrice": {"$gte": 100, "$lte": 1000}},
        sort=(("pricing.basePrice", 1),),
        target_ms=150,
        category="core",
    ),
    QuerySpec(
        name="Stone Type Filter",
        filter={"materialSpecs.stone.type": {"$exists": True}},
        sort=(("materialSpecs.stone.carat", -1),),
        target_ms=200,
        category="material",
    ),
)
"""Post-migration integrity battery."""

BASELINE_QUERY = QuerySpec(
    name="Basic Catalog Query",
    filter={"inventory.available": True},
    sort=(("metadata.featured", -1),),
    target_ms=DEFAULT_GLOBAL_BUDGET_MS,
    category="core",
)
"""Source-side catalog query used for the pre-flight latency baseline."""


def critical_only(specs: Sequence[QuerySpec]) -> tuple[QuerySpec, ...]:
    return tuple(spec for spec in specs if spec.critical)


__all__ = [
    "DEFAULT_GLOBAL_BUDGET_MS",
    "DEFAULT_REPETITIONS",
    "QuerySpec",
    "QueryResult",
    "PerformanceReport",
    "PerformanceGate",
    "OPTIMIZATION_QUERIES",
    "OPTIMIZATION_REPETITIONS",
    "VALIDATION_QUERIES",
    "INTEGRITY_QUERIES",
    "BASELINE_QUERY",
    "critical_only",
]
