"""
Declarative index plan for ProductListDTO collections.

Indexes are organised in two tiers:

- CORE_PERFORMANCE_INDEXES: catalog browsing, category filtering, text
  search, slug lookup and the admin dashboard
- MATERIAL_FILTERING_INDEXES: metal type, stone type, combined material
  filters, carat ranges, premium tier and sustainability flags

``IndexPlanner.ensure_indexes`` is idempotent: an index that already exists
is reported as such and never duplicated. ``IndexPlanner.optimize`` builds
both tiers and runs the optimization query battery against the result.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from shadowswap.exceptions import IndexAlreadyExistsError, IndexCreationError, StorageError
from shadowswap.metrics import MigrationMetrics
from shadowswap.observability import (
    ATTR_INDEX_COUNT,
    ATTR_INDEX_NAME,
    ATTR_SOURCE_COLLECTION,
    Tracer,
    create_tracer,
)
from shadowswap.performance import (
    OPTIMIZATION_QUERIES,
    OPTIMIZATION_REPETITIONS,
    PerformanceGate,
    PerformanceReport,
    QuerySpec,
)
from shadowswap.storage.interface import DocumentCollection, IndexInfo, IndexKey

logger = logging.getLogger(__name__)

MIN_CRITICAL_SUCCESS_RATE = 90.0
MIN_COMPLIANCE_RATE = 80.0


@dataclass(frozen=True)
class IndexSpec:
    """
    A named compound index.

    Attributes:
        name: Index name
        keys: Key pattern as (field, direction) pairs
        description: What the index serves
    """

    name: str
    keys: tuple[IndexKey, ...]
    description: str = ""

    def __post_init__(self) -> None:
        if not self.keys:
            raise ValueError(f"index {self.name!r} has no keys")

    @property
    def is_text(self) -> bool:
        return any(direction == "text" for _, direction in self.keys)

    def matches(self, keys: Sequence[IndexKey] | None) -> bool:
        """
        Whether a listed key pattern is this index.

        Text fields are compared as a set; the server lists them in weight
        order rather than creation order.
        """
        return keys is not None and _canonical(keys) == _canonical(self.keys)


def _canonical(keys: Sequence[IndexKey]) -> tuple[tuple[IndexKey, ...], frozenset[str]]:
    ordered = tuple((name, d) for name, d in keys if d != "text")
    return ordered, frozenset(name for name, d in keys if d == "text")


@dataclass(frozen=True)
class IndexOutcome:
    """
    Result of ensuring one index.

    Attributes:
        spec: The requested index
        created: False when the index already existed
        creation_ms: Wall-clock time of the create call
    """

    spec: IndexSpec
    created: bool
    creation_ms: float = 0.0

    @property
    def name(self) -> str:
        return self.spec.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.spec.name,
            "index": {name: direction for name, direction in self.spec.keys},
            "created": self.created,
            "creationTime": round(self.creation_ms, 3),
            "description": self.spec.description,
        }


CORE_PERFORMANCE_INDEXES: tuple[IndexSpec, ...] = (
    IndexSpec(
        name="catalog_primary",
        keys=(("inventory.available", 1), ("metadata.featured", -1), ("pricing.basePrice", 1)),
        description="Primary catalog query: available products with featured priority",
    ),
    IndexSpec(
        name="category_filtering",
        keys=(("category", 1), ("inventory.available", 1), ("pricing.basePrice", 1)),
        description="Category filtering with availability check",
    ),
    IndexSpec(
        name="text_search",
        keys=(("name", "text"), ("description", "text"), ("metadata.tags", "text")),
        description="Full-text search across name, description and tags",
    ),
    IndexSpec(
        name="product_lookup",
        keys=(("slug", 1),),
        description="Single product lookup by slug",
    ),
    IndexSpec(
        name="admin_management",
        keys=(
            ("metadata.featured", 1),
            ("metadata.bestseller", 1),
            ("inventory.available", 1),
        ),
        description="Admin dashboard and product management",
    ),
)

MATERIAL_FILTERING_INDEXES: tuple[IndexSpec, ...] = (
    IndexSpec(
        name="material_metal_filtering",
        keys=(
            ("materialSpecs.metal.type", 1),
            ("inventory.available", 1),
            ("pricing.basePrice", 1),
        ),
        description="Metal type filtering with availability and price sorting",
    ),
    IndexSpec(
        name="material_stone_filtering",
        keys=(("materialSpecs.stone.type", 1), ("materialSpecs.stone.carat", -1)),
        description="Stone type filtering with carat sorting (largest first)",
    ),
    IndexSpec(
        name="material_combined_filtering",
        keys=(
            ("materialSpecs.metal.type", 1),
            ("materialSpecs.stone.type", 1),
            ("category", 1),
            ("pricing.basePrice", 1),
        ),
        description="Combined metal, stone and category filtering with price sorting",
    ),
    IndexSpec(
        name="carat_range_filtering",
        keys=(("materialSpecs.stone.carat", 1), ("materialSpecs.stone.type", 1)),
        description="Carat range filtering with stone type",
    ),
    IndexSpec(
        name="premium_materials",
        keys=(
            ("materialSpecs.metal.type", 1),
            ("materialSpecs.stone.carat", -1),
            ("pricing.basePrice", -1),
        ),
        description="Premium material filtering (platinum, large stones, high prices)",
    ),
    IndexSpec(
        name="sustainability_filtering",
        keys=(
            ("materialSpecs.metal.sustainability.recycled", 1),
            ("materialSpecs.stone.sustainability.labGrown", 1),
            ("category", 1),
        ),
        description="Recycled metal and lab-grown stone filtering",
    ),
)

ALL_INDEXES: tuple[IndexSpec, ...] = CORE_PERFORMANCE_INDEXES + MATERIAL_FILTERING_INDEXES

MAINTENANCE_RECOMMENDATIONS: tuple[str, ...] = (
    "Monitor catalog page queries; they should consistently stay under 50ms",
    "Review index usage monthly and remove unused indexes",
    "Monitor material filtering performance as usage scales",
    "Consider search relevance tuning if search volume increases",
)


@dataclass(frozen=True)
class OptimizationReport:
    """
    Outcome of an index optimization run.

    Attributes:
        collection: Optimized collection
        indexes_before: Indexes present before the run
        outcomes: One entry per requested index
        indexes_after: Indexes present after the run
        performance: Optimization query battery results
    """

    collection: str
    indexes_before: tuple[IndexInfo, ...]
    outcomes: tuple[IndexOutcome, ...]
    indexes_after: tuple[IndexInfo, ...]
    performance: PerformanceReport
    recommendations: tuple[str, ...] = field(default_factory=tuple)

    @property
    def created(self) -> list[IndexOutcome]:
        return [o for o in self.outcomes if o.created]

    @property
    def passed(self) -> bool:
        return (
            self.performance.critical_success_rate >= MIN_CRITICAL_SUCCESS_RATE
            and self.performance.compliance_rate >= MIN_COMPLIANCE_RATE
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "targetCollection": self.collection,
            "success": self.passed,
            "currentIndexes": [i.to_dict() for i in self.indexes_before],
            "createdIndexes": [o.to_dict() for o in self.created],
            "existingIndexes": [o.name for o in self.outcomes if not o.created],
            "finalIndexes": [i.to_dict() for i in self.indexes_after],
            "performanceMetrics": self.performance.to_dict(),
            "recommendations": list(self.performance.recommendations) + list(self.recommendations),
        }


class IndexPlanner:
    """
    Creates planned indexes and measures their effect.

    Args:
        performance_gate: Gate used by ``optimize``; a default one is built
            when omitted
        metrics: Optional metrics recorder for index creation times
        clock: Monotonic clock in seconds
        tracer: Optional custom Tracer
        enable_tracing: Whether to enable OpenTelemetry tracing
    """

    def __init__(
        self,
        performance_gate: PerformanceGate | None = None,
        *,
        metrics: MigrationMetrics | None = None,
        clock: Callable[[], float] | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._metrics = metrics
        self._clock = clock or time.perf_counter
        self._gate = performance_gate or PerformanceGate(
            repetitions=OPTIMIZATION_REPETITIONS,
            metrics=metrics,
            tracer=self._tracer,
        )

    async def analyze(self, collection: DocumentCollection) -> list[IndexInfo]:
        """List the indexes currently defined on a collection."""
        with self._tracer.span(
            "shadowswap.indexes.analyze",
            {ATTR_SOURCE_COLLECTION: collection.name},
        ):
            indexes = await collection.list_indexes()
        for index in indexes:
            logger.debug("Existing index %s on %s", index.name, collection.name)
        return indexes

    async def ensure_indexes(
        self,
        collection: DocumentCollection,
        specs: Sequence[IndexSpec],
    ) -> list[IndexOutcome]:
        """
        Create every index in ``specs`` that does not exist yet.

        Indexes are requested as background builds.

        Args:
            collection: Collection to index
            specs: Indexes to ensure, created in order

        Returns:
            One IndexOutcome per spec; ``created`` is False for indexes that
            already existed

        Raises:
            IndexCreationError: If an index fails for any reason other than
                already existing
        """
        with self._tracer.span(
            "shadowswap.indexes.ensure_indexes",
            {ATTR_SOURCE_COLLECTION: collection.name, ATTR_INDEX_COUNT: len(specs)},
        ):
            existing = {index.name: index.keys for index in await collection.list_indexes()}
            outcomes = []
            for spec in specs:
                outcomes.append(await self._ensure_index(collection, spec, existing))
        created = sum(1 for o in outcomes if o.created)
        logger.info(
            "Ensured %d indexes on %s (%d created, %d already existed)",
            len(outcomes),
            collection.name,
            created,
            len(outcomes) - created,
        )
        return outcomes

    async def _ensure_index(
        self,
        collection: DocumentCollection,
        spec: IndexSpec,
        existing: dict[str, tuple[IndexKey, ...]],
    ) -> IndexOutcome:
        if spec.matches(existing.get(spec.name)):
            logger.info("Index %s already exists on %s", spec.name, collection.name)
            return IndexOutcome(spec=spec, created=False)

        with self._tracer.span("shadowswap.indexes.create_index", {ATTR_INDEX_NAME: spec.name}):
            started = self._clock()
            try:
                await collection.create_index(spec.keys, name=spec.name, background=True)
            except IndexAlreadyExistsError:
                logger.info("Index %s already exists on %s", spec.name, collection.name)
                return IndexOutcome(spec=spec, created=False)
            except StorageError as e:
                raise IndexCreationError(spec.name, str(e)) from e
            elapsed_ms = (self._clock() - started) * 1000

        existing[spec.name] = spec.keys
        if self._metrics is not None:
            self._metrics.record_index_creation(spec.name, elapsed_ms)
        logger.info("Created index %s on %s in %.1fms", spec.name, collection.name, elapsed_ms)
        return IndexOutcome(spec=spec, created=True, creation_ms=elapsed_ms)

    async def optimize(
        self,
        collection: DocumentCollection,
        specs: Sequence[IndexSpec] = ALL_INDEXES,
        queries: Sequence[QuerySpec] = OPTIMIZATION_QUERIES,
    ) -> OptimizationReport:
        """
        Build the index plan and run the optimization query battery.

        The caller decides what to do with ``OptimizationReport.passed``;
        this method only raises for index creation failures.
        """
        with self._tracer.span(
            "shadowswap.indexes.optimize",
            {ATTR_SOURCE_COLLECTION: collection.name},
        ):
            before = await self.analyze(collection)
            outcomes = await self.ensure_indexes(collection, specs)
            after = await self.analyze(collection)
            performance = await self._gate.run_suite(
                collection,
                queries,
                OPTIMIZATION_REPETITIONS,
                suite="index-optimization",
            )

        return OptimizationReport(
            collection=collection.name,
            indexes_before=tuple(before),
            outcomes=tuple(outcomes),
            indexes_after=tuple(after),
            performance=performance,
            recommendations=MAINTENANCE_RECOMMENDATIONS,
        )


__all__ = [
    "IndexSpec",
    "IndexOutcome",
    "OptimizationReport",
    "IndexPlanner",
    "CORE_PERFORMANCE_INDEXES",
    "MATERIAL_FILTERING_INDEXES",
    "ALL_INDEXES",
    "MAINTENANCE_RECOMMENDATIONS",
    "MIN_CRITICAL_SUCCESS_RATE",
    "MIN_COMPLIANCE_RATE",
]
