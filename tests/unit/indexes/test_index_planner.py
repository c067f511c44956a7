"""
Unit tests for IndexPlanner.

Tests cover:
- Idempotent index creation
- Handling of indexes that exist under another name
- Creation failures
- The optimization run and its report
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from shadowswap.exceptions import IndexCreationError, StorageError
from shadowswap.indexes import (
    ALL_INDEXES,
    CORE_PERFORMANCE_INDEXES,
    MATERIAL_FILTERING_INDEXES,
    IndexPlanner,
    IndexSpec,
)
from shadowswap.metrics import MigrationMetrics
from shadowswap.observability import MockTracer
from shadowswap.performance import OPTIMIZATION_REPETITIONS, PerformanceGate
from shadowswap.storage.interface import IndexInfo
from shadowswap.transformer import transform_product
from tests.fixtures import FIXED_NOW, StepClock, product_set

SLUG = IndexSpec(name="product_lookup", keys=(("slug", 1),))


@pytest.fixture
def planner(step_clock):
    gate = PerformanceGate(
        repetitions=OPTIMIZATION_REPETITIONS, clock=step_clock, enable_tracing=False
    )
    return IndexPlanner(gate, clock=StepClock(step_ms=2), enable_tracing=False)


async def _seed_shadow(database, count=12):
    await database.seed("shadow", [transform_product(d, now=FIXED_NOW) for d in product_set(count)])
    return database["shadow"]


class TestIndexPlan:
    """Tests for the declared index plan."""

    def test_tiers(self):
        assert len(CORE_PERFORMANCE_INDEXES) == 5
        assert len(MATERIAL_FILTERING_INDEXES) == 6
        assert ALL_INDEXES == CORE_PERFORMANCE_INDEXES + MATERIAL_FILTERING_INDEXES

    def test_names_are_unique(self):
        names = [spec.name for spec in ALL_INDEXES]
        assert len(names) == len(set(names))

    def test_single_text_index(self):
        assert [spec.name for spec in ALL_INDEXES if spec.is_text] == ["text_search"]

    def test_spec_requires_keys(self):
        with pytest.raises(ValueError):
            IndexSpec(name="empty", keys=())


class TestEnsureIndexes:
    """Tests for ensure_indexes."""

    @pytest.mark.asyncio
    async def test_creates_missing_indexes_in_background(self, database, planner):
        collection = await _seed_shadow(database)
        outcomes = await planner.ensure_indexes(collection, ALL_INDEXES)

        assert all(o.created for o in outcomes)
        assert [o.name for o in outcomes] == [s.name for s in ALL_INDEXES]
        assert all(background for _, _, background in database.background_index_requests)
        assert outcomes[0].creation_ms == pytest.approx(2)

    @pytest.mark.asyncio
    async def test_second_run_creates_nothing(self, database, planner):
        collection = await _seed_shadow(database)
        await planner.ensure_indexes(collection, ALL_INDEXES)
        outcomes = await planner.ensure_indexes(collection, ALL_INDEXES)

        assert not any(o.created for o in outcomes)
        assert len(await collection.list_indexes()) == len(ALL_INDEXES) + 1

    @pytest.mark.asyncio
    async def test_same_keys_under_other_name_is_not_an_error(self, database, planner):
        collection = await _seed_shadow(database)
        await collection.create_index([("slug", 1)], name="slug_1")

        outcomes = await planner.ensure_indexes(collection, [SLUG])

        assert outcomes[0].created is False
        assert "product_lookup" not in [i.name for i in await collection.list_indexes()]

    @pytest.mark.asyncio
    async def test_other_failures_raise(self):
        collection = MagicMock()
        collection.name = "shadow"
        collection.list_indexes = AsyncMock(return_value=[])
        collection.create_index = AsyncMock(side_effect=StorageError("disk full", code=14031))
        planner = IndexPlanner(MagicMock(), enable_tracing=False)

        with pytest.raises(IndexCreationError) as exc_info:
            await planner.ensure_indexes(collection, [SLUG])
        assert exc_info.value.index_name == "product_lookup"
        assert isinstance(exc_info.value.__cause__, StorageError)

    @pytest.mark.asyncio
    async def test_records_creation_metrics(self, database, step_clock):
        metrics = MigrationMetrics("products", enable_metrics=False)
        planner = IndexPlanner(
            PerformanceGate(clock=step_clock, enable_tracing=False),
            metrics=metrics,
            clock=StepClock(step_ms=3),
            enable_tracing=False,
        )
        collection = await _seed_shadow(database)
        await planner.ensure_indexes(collection, [SLUG])

        assert metrics.get_snapshot().index_creation_ms == {"product_lookup": pytest.approx(3)}

    @pytest.mark.asyncio
    async def test_text_index_listed_in_weight_order_is_not_recreated(self):
        text_search = next(spec for spec in ALL_INDEXES if spec.is_text)
        collection = MagicMock()
        collection.name = "shadow"
        collection.list_indexes = AsyncMock(
            return_value=[IndexInfo("text_search", tuple(sorted(text_search.keys)))]
        )
        collection.create_index = AsyncMock()
        planner = IndexPlanner(MagicMock(), enable_tracing=False)

        outcomes = await planner.ensure_indexes(collection, [text_search])

        assert outcomes[0].created is False
        collection.create_index.assert_not_awaited()


class TestIndexSpecMatches:
    """Tests for IndexSpec.matches."""

    def test_text_fields_in_any_order(self):
        spec = IndexSpec("search", (("sku", 1), ("name", "text"), ("description", "text")))
        assert spec.matches((("sku", 1), ("description", "text"), ("name", "text")))

    def test_ordered_fields_keep_their_order(self):
        spec = IndexSpec("pair", (("a", 1), ("b", -1)))
        assert spec.matches([("a", 1), ("b", -1)])
        assert not spec.matches((("b", -1), ("a", 1)))

    def test_missing_or_different_text_fields(self):
        spec = IndexSpec("search", (("name", "text"), ("description", "text")))
        assert not spec.matches(None)
        assert not spec.matches((("name", "text"),))


class TestOptimize:
    """Tests for the full optimization run."""

    @pytest.mark.asyncio
    async def test_fast_collection_passes(self, database, planner):
        collection = await _seed_shadow(database)
        report = await planner.optimize(collection)

        assert report.passed is True
        assert [i.name for i in report.indexes_before] == ["_id_"]
        assert len(report.indexes_after) == len(ALL_INDEXES) + 1
        assert len(report.created) == len(ALL_INDEXES)
        assert report.performance.repetitions == OPTIMIZATION_REPETITIONS

    @pytest.mark.asyncio
    async def test_slow_collection_fails(self, database):
        gate = PerformanceGate(clock=StepClock(step_ms=400), enable_tracing=False)
        planner = IndexPlanner(gate, enable_tracing=False)
        collection = await _seed_shadow(database)

        report = await planner.optimize(collection)

        assert report.passed is False
        assert report.performance.compliance_rate == 0

    @pytest.mark.asyncio
    async def test_report_dict(self, database, planner):
        collection = await _seed_shadow(database)
        await planner.ensure_indexes(collection, [SLUG])

        data = (await planner.optimize(collection)).to_dict()

        assert data["targetCollection"] == "shadow"
        assert data["existingIndexes"] == ["product_lookup"]
        assert len(data["createdIndexes"]) == len(ALL_INDEXES) - 1
        assert data["createdIndexes"][0]["index"] == {
            "inventory.available": 1,
            "metadata.featured": -1,
            "pricing.basePrice": 1,
        }
        assert "Review index usage monthly and remove unused indexes" in data["recommendations"]

    @pytest.mark.asyncio
    async def test_tracing_spans(self, database, step_clock):
        tracer = MockTracer()
        planner = IndexPlanner(
            PerformanceGate(clock=step_clock, enable_tracing=False), tracer=tracer
        )
        collection = await _seed_shadow(database)
        await planner.optimize(collection, specs=[SLUG], queries=[])

        assert tracer.span_names == [
            "shadowswap.indexes.optimize",
            "shadowswap.indexes.analyze",
            "shadowswap.indexes.ensure_indexes",
            "shadowswap.indexes.create_index",
            "shadowswap.indexes.analyze",
        ]
