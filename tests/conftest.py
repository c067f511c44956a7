"""
Shared pytest fixtures for the shadowswap tests.

This module provides:
- Storage fixtures (database, seeded_database)
- Document fixtures (legacy_doc, product_factory)
- Clock fixtures (fixed_now, fixed_transformer, step_clock)
- Component fixtures wired with deterministic clocks (fast_gate, orchestrator_factory)
- OpenTelemetry metrics fixtures (metric_reader, meter_provider)
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from shadowswap.backup import BackupManager
from shadowswap.config import MigrationConfig
from shadowswap.indexes import IndexPlanner
from shadowswap.integrity import IntegrityVerifier
from shadowswap.metrics import MigrationMetrics
from shadowswap.orchestrator import MigrationOrchestrator
from shadowswap.performance import OPTIMIZATION_REPETITIONS, PerformanceGate
from shadowswap.reports import ReportWriter
from shadowswap.storage import DocumentDatabase, InMemoryDatabase
from shadowswap.transformer import ProductTransformer
from tests.fixtures import FIXED_NOW, StepClock, legacy_product, product_set, seed_products

# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for tests."""
    config.addinivalue_line("markers", "slow: end-to-end scenarios over larger collections")


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def database() -> InMemoryDatabase:
    """Provide an empty in-memory database."""
    return InMemoryDatabase("catalog")


@pytest_asyncio.fixture
async def seeded_database(database: InMemoryDatabase) -> InMemoryDatabase:
    """Database whose products collection holds 30 well-formed legacy products."""
    await seed_products(database, product_set(30))
    return database


# =============================================================================
# Document Fixtures
# =============================================================================


@pytest.fixture
def legacy_doc() -> dict[str, Any]:
    """A single well-formed legacy product."""
    return legacy_product(1)


@pytest.fixture
def product_factory() -> Callable[..., dict[str, Any]]:
    """Factory for legacy products; accepts a number and top-level overrides."""
    return legacy_product


# =============================================================================
# Clock Fixtures
# =============================================================================


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def fixed_transformer() -> ProductTransformer:
    """Transformer whose clock always returns FIXED_NOW."""
    return ProductTransformer(clock=lambda: FIXED_NOW)


@pytest.fixture
def step_clock() -> StepClock:
    """Monotonic clock measuring every timed query as 1ms."""
    return StepClock(step_ms=1.0)


@pytest.fixture
def fast_gate(step_clock: StepClock) -> PerformanceGate:
    """Performance gate whose queries always take 1ms."""
    return PerformanceGate(clock=step_clock, enable_tracing=False)


# =============================================================================
# Orchestrator Fixtures
# =============================================================================


@pytest.fixture
def orchestrator_factory(
    tmp_path: Path,
) -> Callable[..., MigrationOrchestrator]:
    """
    Factory building an orchestrator with deterministic clocks.

    Every timed query measures ``query_ms`` milliseconds. Reports and backups
    go to the test's temporary directory. Extra keyword arguments become
    MigrationConfig fields.
    """

    def factory(
        database: DocumentDatabase,
        *,
        query_ms: float = 1.0,
        **config: Any,
    ) -> MigrationOrchestrator:
        config.setdefault("report_dir", str(tmp_path / "reports"))
        config.setdefault("backup_dir", str(tmp_path / "backups"))
        migration_config = MigrationConfig(**config)
        clock = StepClock(step_ms=query_ms)
        transformer = ProductTransformer(clock=lambda: FIXED_NOW)
        metrics = MigrationMetrics(migration_config.target_collection, enable_metrics=False)
        gate = PerformanceGate(
            migration_config.performance_target_ms,
            clock=clock,
            metrics=metrics,
            enable_tracing=False,
        )
        return MigrationOrchestrator(
            database,
            migration_config,
            transformer=transformer,
            index_planner=IndexPlanner(
                PerformanceGate(
                    repetitions=OPTIMIZATION_REPETITIONS,
                    clock=clock,
                    enable_tracing=False,
                ),
                metrics=metrics,
                enable_tracing=False,
            ),
            performance_gate=gate,
            verifier=IntegrityVerifier(
                performance_gate=gate,
                transformer=transformer,
                enable_tracing=False,
            ),
            backup_manager=BackupManager(
                migration_config.backup_dir,
                clock=transformer.now,
                enable_tracing=False,
            ),
            report_writer=ReportWriter(migration_config.report_dir),
            metrics=metrics,
            enable_tracing=False,
        )

    return factory


# =============================================================================
# OpenTelemetry Metrics Fixtures
# =============================================================================


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    """Provide a fresh InMemoryMetricReader for each test."""
    return InMemoryMetricReader()


@pytest.fixture
def meter_provider(metric_reader: InMemoryMetricReader) -> MeterProvider:
    """Meter provider exporting to ``metric_reader``."""
    return MeterProvider(metric_readers=[metric_reader])
