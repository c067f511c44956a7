"""
Integrity verification between a source and a migrated collection.

``IntegrityVerifier.verify`` runs five independent test suites:

1. Data completeness: document counts, core field preservation and
   ProductListDTO structure
2. Material specs accuracy: materialSpecs presence, carat accuracy and the
   metal type distribution
3. Performance compliance: a fixed query battery against the target
4. Business logic preservation: pricing, inventory flags and the category
   distribution
5. Edge case handling: image fallbacks, null critical fields and extreme
   values over the whole target collection

A suite that raises is counted as failed and recorded as a critical issue;
the remaining suites still run. ``IntegrityVerifier.check_readiness`` runs
the pre-flight checks against the source collection alone.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from shadowswap.config import IntegrityThresholds
from shadowswap.documents import METAL_TYPES, PRODUCT_CATEGORIES, REQUIRED_FIELDS
from shadowswap.observability import (
    ATTR_SHADOW_COLLECTION,
    ATTR_SOURCE_COLLECTION,
    ATTR_SUITE_NAME,
    Tracer,
    create_tracer,
)
from shadowswap.performance import (
    BASELINE_QUERY,
    INTEGRITY_QUERIES,
    PerformanceGate,
    QuerySpec,
)
from shadowswap.storage.interface import Document, DocumentCollection
from shadowswap.transformer import (
    CATEGORY_MAP,
    ProductTransformer,
    normalize_category,
    text_or_default,
)

logger = logging.getLogger(__name__)

CORE_FIELDS = ("_id", "name", "description", "category")
CRITICAL_FIELDS = ("_id", "name", "category", "pricing", "materialSpecs")
INTEGRITY_REPETITIONS = 5

SUITE_DATA_COMPLETENESS = "dataCompleteness"
SUITE_MATERIAL_SPECS = "materialSpecsAccuracy"
SUITE_PERFORMANCE = "performanceCompliance"
SUITE_BUSINESS_LOGIC = "businessLogicPreservation"
SUITE_EDGE_CASES = "edgeCaseHandling"

SUITE_NAMES = (
    SUITE_DATA_COMPLETENESS,
    SUITE_MATERIAL_SPECS,
    SUITE_PERFORMANCE,
    SUITE_BUSINESS_LOGIC,
    SUITE_EDGE_CASES,
)


@dataclass
class SuiteResult:
    """
    Counters and details of one verification suite.

    Attributes:
        name: Suite name
        passed: Number of passed checks
        failed: Number of failed checks
        details: One dict per check
    """

    name: str
    passed: int = 0
    failed: int = 0
    details: list[dict[str, Any]] = field(default_factory=list)

    def record(self, detail: dict[str, Any]) -> bool:
        if detail["passed"]:
            self.passed += 1
        else:
            self.failed += 1
        self.details.append(detail)
        return detail["passed"]

    @property
    def total(self) -> int:
        return self.passed + self.failed

    @property
    def success(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> dict[str, Any]:
        return {"passed": self.passed, "failed": self.failed, "details": self.details}


@dataclass
class VerificationReport:
    """
    Result of ``IntegrityVerifier.verify``.

    ``overall_success`` requires zero failed checks and zero critical
    issues across all suites.
    """

    source: str
    target: str
    timestamp: datetime
    suites: dict[str, SuiteResult] = field(default_factory=dict)
    critical_issues: list[str] = field(default_factory=list)

    @property
    def total_tests(self) -> int:
        return sum(s.total for s in self.suites.values())

    @property
    def passed_tests(self) -> int:
        return sum(s.passed for s in self.suites.values())

    @property
    def failed_tests(self) -> int:
        return sum(s.failed for s in self.suites.values())

    @property
    def success_rate(self) -> float:
        if self.total_tests == 0:
            return 100.0
        return self.passed_tests / self.total_tests * 100

    @property
    def overall_success(self) -> bool:
        return self.failed_tests == 0 and not self.critical_issues

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "collections": {"source": self.source, "target": self.target},
            "tests": {name: suite.to_dict() for name, suite in self.suites.items()},
            "summary": {
                "totalTests": self.total_tests,
                "passedTests": self.passed_tests,
                "failedTests": self.failed_tests,
                "successRate": round(self.success_rate, 1),
                "overallSuccess": self.overall_success,
                "criticalIssues": list(self.critical_issues),
            },
        }


@dataclass(frozen=True)
class ReadinessReport:
    """
    Result of the pre-flight readiness checks.

    Only an empty source blocks the migration. The sample is the first
    documents in storage order, so its transformation rate and the data
    quality issues are informational; the success floor is enforced over
    every document by the transformation phase.
    """

    source: str
    total_products: int
    sampled: int
    transformable: int
    min_success_rate: float
    data_quality_issues: tuple[str, ...] = ()
    transformation_failures: tuple[dict[str, Any], ...] = ()
    baseline_ms: float | None = None

    @property
    def success_rate(self) -> float:
        if self.sampled == 0:
            return 0.0
        return self.transformable / self.sampled * 100

    @property
    def migration_ready(self) -> bool:
        return self.total_products > 0

    @property
    def sample_meets_floor(self) -> bool:
        return self.sampled > 0 and self.success_rate >= self.min_success_rate

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "totalProducts": self.total_products,
            "sampled": self.sampled,
            "transformable": self.transformable,
            "successRate": round(self.success_rate, 2),
            "migrationReadiness": self.migration_ready,
            "sampleMeetsSuccessRate": self.sample_meets_floor,
            "dataQualityIssues": list(self.data_quality_issues),
            "transformationFailures": list(self.transformation_failures),
            "baselineCatalogTime": self.baseline_ms,
        }


class IntegrityVerifier:
    """
    Compares a source collection with its migrated counterpart.

    Args:
        thresholds: Numeric bars and sample sizes
        performance_gate: Gate used for the query battery and the baseline
        transformer: Transformer used by the readiness sample
        tracer: Optional custom Tracer
        enable_tracing: Whether to enable OpenTelemetry tracing
    """

    def __init__(
        self,
        thresholds: IntegrityThresholds | None = None,
        performance_gate: PerformanceGate | None = None,
        transformer: ProductTransformer | None = None,
        *,
        queries: tuple[QuerySpec, ...] = INTEGRITY_QUERIES,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self.thresholds = thresholds or IntegrityThresholds()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._gate = performance_gate or PerformanceGate(tracer=self._tracer)
        self._transformer = transformer or ProductTransformer()
        self._queries = queries

    # =========================================================================
    # Full verification
    # =========================================================================

    async def verify(
        self,
        source: DocumentCollection,
        target: DocumentCollection,
        *,
        now: datetime | None = None,
    ) -> VerificationReport:
        """
        Run all five suites.

        Args:
            source: Collection holding the legacy documents
            target: Collection holding the migrated documents
            now: Report timestamp

        Returns:
            VerificationReport; never raises for failed checks
        """
        report = VerificationReport(
            source=source.name,
            target=target.name,
            timestamp=now or datetime.now(timezone.utc),
        )
        suites: list[tuple[str, str, Callable[..., Awaitable[None]]]] = [
            (SUITE_DATA_COMPLETENESS, "Data completeness", self._verify_data_completeness),
            (SUITE_MATERIAL_SPECS, "Material specs accuracy", self._verify_material_specs),
            (SUITE_PERFORMANCE, "Performance compliance", self._verify_performance),
            (SUITE_BUSINESS_LOGIC, "Business logic preservation", self._verify_business_logic),
            (SUITE_EDGE_CASES, "Edge case handling", self._verify_edge_cases),
        ]
        with self._tracer.span(
            "shadowswap.integrity.verify",
            {ATTR_SOURCE_COLLECTION: source.name, ATTR_SHADOW_COLLECTION: target.name},
        ):
            for name, label, run in suites:
                suite = SuiteResult(name)
                report.suites[name] = suite
                with self._tracer.span("shadowswap.integrity.suite", {ATTR_SUITE_NAME: name}):
                    try:
                        await run(source, target, suite, report.critical_issues)
                    except Exception as e:
                        logger.exception("%s verification failed", label)
                        suite.failed += 1
                        report.critical_issues.append(f"{label} test failed: {e}")

        logger.info(
            "Integrity verification %s -> %s: %d/%d checks passed, %d critical issues",
            source.name,
            target.name,
            report.passed_tests,
            report.total_tests,
            len(report.critical_issues),
        )
        return report

    async def _verify_data_completeness(
        self,
        source: DocumentCollection,
        target: DocumentCollection,
        suite: SuiteResult,
        issues: list[str],
    ) -> None:
        t = self.thresholds
        source_count = await source.count_documents()
        target_count = await target.count_documents()
        count_rate = _rate(target_count, source_count)
        if not suite.record(
            {
                "name": "Document Count Matching",
                "sourceCount": source_count,
                "targetCount": target_count,
                "successRate": round(count_rate, 2),
                "passed": count_rate >= t.min_count_ratio,
            }
        ):
            issues.append(f"Low migration success rate: {count_rate:.2f}%")

        sample = await _migrated_pairs(source, target, t.core_field_sample)
        preserved = sum(
            1
            for original, migrated in sample
            if original is not None and _core_fields_match(original, migrated)
        )
        core_rate = _rate(preserved, len(sample))
        suite.record(
            {
                "name": "Core Fields Preservation",
                "tested": len(sample),
                "preserved": preserved,
                "successRate": round(core_rate, 2),
                "passed": core_rate >= t.min_core_field_match,
            }
        )

        structural = await target.find({}, limit=t.structure_sample)
        valid = sum(1 for document in structural if all(f in document for f in REQUIRED_FIELDS))
        suite.record(
            {
                "name": "ProductListDTO Structure Compliance",
                "tested": len(structural),
                "valid": valid,
                "successRate": round(_rate(valid, len(structural)), 2),
                "passed": valid == len(structural),
            }
        )

    async def _verify_material_specs(
        self,
        source: DocumentCollection,
        target: DocumentCollection,
        suite: SuiteResult,
        issues: list[str],
    ) -> None:
        t = self.thresholds
        sample = await target.find({}, limit=t.material_sample)
        with_specs = with_metal = with_stone = 0
        for document in sample:
            specs = document.get("materialSpecs")
            if not isinstance(specs, Mapping):
                continue
            with_specs += 1
            if _nested(specs, "metal", "type"):
                with_metal += 1
            if _nested(specs, "stone", "type"):
                with_stone += 1
        specs_rate = _rate(with_specs, len(sample))
        suite.record(
            {
                "name": "Material Specs Presence",
                "tested": len(sample),
                "withSpecs": with_specs,
                "withMetalSpecs": with_metal,
                "withStoneSpecs": with_stone,
                "specsSuccessRate": round(specs_rate, 2),
                "metalSuccessRate": round(_rate(with_metal, len(sample)), 2),
                "passed": specs_rate >= t.min_material_specs_presence,
            }
        )

        gem_sample = await _migrated_pairs(
            source, target, t.carat_sample, {"materialSpecs.stone": {"$exists": True}}
        )
        tested = accurate = 0
        for original, migrated in gem_sample:
            gemstones = _nested(original, "customization", "gemstones")
            if not isinstance(gemstones, list) or not gemstones:
                continue
            tested += 1
            first = gemstones[0] if isinstance(gemstones[0], Mapping) else {}
            source_carat = _as_float(first.get("carat") or 1.0)
            target_carat = _as_float(_nested(migrated, "materialSpecs", "stone", "carat"))
            if _close(source_carat, target_carat, t.value_tolerance):
                accurate += 1
        carat_rate = _rate(accurate, tested) if tested else 100.0
        suite.record(
            {
                "name": "Carat Value Transformation Accuracy",
                "tested": tested,
                "accurate": accurate,
                "successRate": round(carat_rate, 2),
                "passed": tested == 0 or carat_rate >= t.min_carat_accuracy,
            }
        )

        distribution = await _distribution(target, "$materialSpecs.metal.type")
        invalid = [row["_id"] for row in distribution if row["_id"] not in METAL_TYPES]
        suite.record(
            {
                "name": "Material Type Standardization",
                "totalTypes": len(distribution),
                "validTypes": len(distribution) - len(invalid),
                "invalidTypes": invalid,
                "distribution": distribution,
                "passed": not invalid,
            }
        )

    async def _verify_performance(
        self,
        source: DocumentCollection,
        target: DocumentCollection,
        suite: SuiteResult,
        issues: list[str],
    ) -> None:
        performance = await self._gate.run_suite(
            target,
            self._queries,
            INTEGRITY_REPETITIONS,
            suite="integrity",
        )
        for result in performance.results:
            suite.record(
                {
                    "name": result.name,
                    "averageTime": round(result.average_ms, 3),
                    "target": result.target_ms,
                    "resultCount": result.result_count,
                    "measurements": [round(m, 3) for m in result.measurements],
                    "passed": result.passed,
                }
            )
        compliance = performance.target_success_rate
        if compliance < self.thresholds.min_query_compliance:
            issues.append(f"Poor performance compliance: {compliance:.1f}%")

    async def _verify_business_logic(
        self,
        source: DocumentCollection,
        target: DocumentCollection,
        suite: SuiteResult,
        issues: list[str],
    ) -> None:
        t = self.thresholds
        sample = await _migrated_pairs(source, target, t.pricing_sample)
        accurate = 0
        for original, migrated in sample:
            if original is None:
                continue
            source_price = _as_float(
                _nested(original, "pricing", "basePrice") or original.get("basePrice") or 0
            )
            target_price = _as_float(_nested(migrated, "pricing", "basePrice") or 0)
            if _close(source_price, target_price, t.value_tolerance):
                accurate += 1
        pricing_rate = _rate(accurate, len(sample))
        suite.record(
            {
                "name": "Pricing Logic Preservation",
                "tested": len(sample),
                "accurate": accurate,
                "successRate": round(pricing_rate, 2),
                "passed": pricing_rate >= t.min_pricing_accuracy,
            }
        )

        inventory_sample = await target.find({}, limit=t.inventory_sample)
        valid = sum(
            1
            for document in inventory_sample
            if isinstance(_nested(document, "inventory", "available"), bool)
        )
        inventory_rate = _rate(valid, len(inventory_sample))
        suite.record(
            {
                "name": "Inventory Availability Logic",
                "tested": len(inventory_sample),
                "valid": valid,
                "successRate": round(inventory_rate, 2),
                "passed": inventory_rate >= t.min_inventory_validity,
            }
        )

        distribution = await _distribution(target, "$category")
        invalid = [row["_id"] for row in distribution if row["_id"] not in PRODUCT_CATEGORIES]
        suite.record(
            {
                "name": "Category Normalization Logic",
                "totalCategories": len(distribution),
                "validCategories": len(distribution) - len(invalid),
                "invalidCategories": invalid,
                "passed": not invalid,
            }
        )

    async def _verify_edge_cases(
        self,
        source: DocumentCollection,
        target: DocumentCollection,
        suite: SuiteResult,
        issues: list[str],
    ) -> None:
        documents = await target.find({})
        total = len(documents)

        with_image = sum(
            1
            for document in documents
            if isinstance(document.get("primaryImage"), str) and document["primaryImage"]
        )
        suite.record(
            {
                "name": "Missing Image Fallback Handling",
                "tested": total,
                "valid": with_image,
                "successRate": round(_rate(with_image, total), 2),
                "passed": with_image == total,
            }
        )

        complete = sum(
            1
            for document in documents
            if all(document.get(name) is not None for name in CRITICAL_FIELDS)
        )
        suite.record(
            {
                "name": "Null/Undefined Field Handling",
                "tested": total,
                "valid": complete,
                "successRate": round(_rate(complete, total), 2),
                "passed": complete == total,
            }
        )

        extremes = await self._extreme_values(target)
        extremes.setdefault("total", total)
        total_issues = (
            extremes["negativePrice"] + extremes["extremePrice"] + extremes["invalidCarat"]
        )
        suite.record(
            {
                "name": "Extreme Value Handling",
                "tested": extremes["total"],
                "negativePrice": extremes["negativePrice"],
                "zeroPrice": extremes["zeroPrice"],
                "extremePrice": extremes["extremePrice"],
                "invalidCarat": extremes["invalidCarat"],
                "totalIssues": total_issues,
                "passed": total_issues == 0,
            }
        )

    async def _extreme_values(self, target: DocumentCollection) -> dict[str, int]:
        t = self.thresholds
        price = "$pricing.basePrice"
        carat = "$materialSpecs.stone.carat"
        pipeline = [
            {
                "$project": {
                    "_id": 1,
                    "negativePrice": {"$and": [{"$isNumber": price}, {"$lt": [price, 0]}]},
                    "zeroPrice": {"$and": [{"$isNumber": price}, {"$eq": [price, 0]}]},
                    "extremePrice": {
                        "$and": [{"$isNumber": price}, {"$gt": [price, t.max_price]}]
                    },
                    # Documents without a stone have no carat to judge
                    "invalidCarat": {
                        "$and": [
                            {"$isNumber": carat},
                            {"$or": [{"$lte": [carat, 0]}, {"$gt": [carat, t.max_carat]}]},
                        ]
                    },
                }
            },
            {
                "$group": {
                    "_id": None,
                    "total": {"$sum": 1},
                    "negativePrice": {"$sum": {"$cond": ["$negativePrice", 1, 0]}},
                    "zeroPrice": {"$sum": {"$cond": ["$zeroPrice", 1, 0]}},
                    "extremePrice": {"$sum": {"$cond": ["$extremePrice", 1, 0]}},
                    "invalidCarat": {"$sum": {"$cond": ["$invalidCarat", 1, 0]}},
                }
            },
        ]
        rows = await target.aggregate(pipeline)
        if not rows:
            return {"negativePrice": 0, "zeroPrice": 0, "extremePrice": 0, "invalidCarat": 0}
        row = rows[0]
        return {
            "total": row["total"],
            "negativePrice": row["negativePrice"],
            "zeroPrice": row["zeroPrice"],
            "extremePrice": row["extremePrice"],
            "invalidCarat": row["invalidCarat"],
        }

    # =========================================================================
    # Readiness
    # =========================================================================

    async def check_readiness(
        self,
        source: DocumentCollection,
        *,
        min_success_rate: float = 95.0,
        now: datetime | None = None,
    ) -> ReadinessReport:
        """
        Check that the source collection can be migrated.

        A sample of the source is transformed and validated without writing
        anything, data quality findings are collected and a baseline catalog
        latency is measured.

        Args:
            source: The live collection
            min_success_rate: Floor the sample rate is reported against (percent)
            now: Transformation time for the sample

        Returns:
            ReadinessReport; the caller decides whether to abort
        """
        with self._tracer.span(
            "shadowswap.integrity.check_readiness",
            {ATTR_SOURCE_COLLECTION: source.name},
        ):
            total = await source.count_documents()
            sample = await source.find({}, limit=self.thresholds.readiness_sample)
            transformable = 0
            failures: list[dict[str, Any]] = []
            for document in sample:
                _, error = self._transformer.try_transform(document, now)
                if error is None:
                    transformable += 1
                else:
                    failures.append({"id": document.get("_id"), "error": str(error)})

            baseline_ms = None
            if total > 0:
                baseline = await self._gate.measure(source, BASELINE_QUERY)
                baseline_ms = baseline.average_ms

        report = ReadinessReport(
            source=source.name,
            total_products=total,
            sampled=len(sample),
            transformable=transformable,
            min_success_rate=min_success_rate,
            data_quality_issues=tuple(_data_quality_issues(sample)),
            transformation_failures=tuple(failures),
            baseline_ms=baseline_ms,
        )
        logger.info(
            "Readiness of %s: %d products, %d/%d sampled documents transformable",
            source.name,
            total,
            transformable,
            len(sample),
        )
        return report


# =============================================================================
# Helpers
# =============================================================================


def _rate(part: int, whole: int) -> float:
    if whole == 0:
        return 100.0 if part == 0 else 0.0
    return part / whole * 100


def _nested(document: Any, *path: str) -> Any:
    value = document
    for key in path:
        if not isinstance(value, Mapping):
            return None
        value = value.get(key)
    return value


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def _close(a: float | None, b: float | None, tolerance: float) -> bool:
    return a is not None and b is not None and abs(a - b) < tolerance


async def _migrated_pairs(
    source: DocumentCollection,
    target: DocumentCollection,
    limit: int,
    query: dict[str, Any] | None = None,
) -> list[tuple[Document | None, Document]]:
    # Sampled from the target: documents that failed transformation never
    # reached it and are already accounted for by the count check
    pairs = []
    for migrated in await target.find(query or {}, limit=limit):
        pairs.append((await source.find_one({"_id": migrated["_id"]}), migrated))
    return pairs


def _core_fields_match(source: Document, target: Document) -> bool:
    # Compare against the values the transformer is defined to write
    expected = {
        "_id": source.get("_id"),
        "name": text_or_default(source.get("name"), ""),
        "description": text_or_default(source.get("description"), ""),
        "category": normalize_category(source.get("category")),
    }
    return all(target.get(name) == expected[name] for name in CORE_FIELDS)


async def _distribution(collection: DocumentCollection, expression: str) -> list[dict[str, Any]]:
    return await collection.aggregate(
        [
            {"$group": {"_id": expression, "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
        ]
    )


def _data_quality_issues(sample: list[Document]) -> list[str]:
    counts = {
        "missing name": 0,
        "missing or invalid price": 0,
        "unmapped category": 0,
        "no image": 0,
    }
    for document in sample:
        if not document.get("name"):
            counts["missing name"] += 1
        price = _nested(document, "pricing", "basePrice")
        if price is None:
            price = document.get("basePrice")
        number = _as_float(price)
        if number is None or number < 0:
            counts["missing or invalid price"] += 1
        category = document.get("category")
        if not isinstance(category, str) or category.strip().lower() not in CATEGORY_MAP:
            counts["unmapped category"] += 1
        if not _nested(document, "media", "primary") and not document.get("images"):
            counts["no image"] += 1
    return [f"{count} products with {issue}" for issue, count in counts.items() if count]


__all__ = [
    "CORE_FIELDS",
    "CRITICAL_FIELDS",
    "SUITE_NAMES",
    "SuiteResult",
    "VerificationReport",
    "ReadinessReport",
    "IntegrityVerifier",
]
