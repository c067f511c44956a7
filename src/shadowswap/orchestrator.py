"""
MigrationOrchestrator - Runs the zero-downtime products migration.

The orchestrator sequences nine phases, strictly one after the other:

    pre-flight -> backup -> shadow-creation -> data-transformation ->
    index-optimization -> performance-validation -> blue-green-switch ->
    post-validation -> cleanup

Phases before the switch never touch the live collection, so a failure
there leaves it intact. The switch renames the live collection to a
uniquely named backup and promotes the shadow collection; if the rename
sequence fails partway, the orchestrator rolls back before failing the
phase. Any phase failure is recorded in the phase ledger and a failure
report is written before ``MigrationFailedError`` is raised.

Usage:
    >>> orchestrator = MigrationOrchestrator(database, MigrationConfig())
    >>> try:
    ...     report = await orchestrator.run()
    ... except MigrationFailedError as e:
    ...     print(e.report["failedPhase"])
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar

from shadowswap.backup import BackupArtifact, BackupManager
from shadowswap.config import MigrationConfig
from shadowswap.exceptions import (
    CriticalRollbackFailure,
    IndexOptimizationError,
    MigrationError,
    MigrationFailedError,
    PerformanceGateError,
    PhaseFailedError,
    PostValidationError,
    PreflightError,
    RollbackUnavailableError,
    SwitchError,
    TransformationThresholdError,
)
from shadowswap.indexes import IndexPlanner, OptimizationReport
from shadowswap.integrity import IntegrityVerifier, ReadinessReport, VerificationReport
from shadowswap.metrics import MigrationMetrics
from shadowswap.observability import (
    ATTR_BACKUP_COLLECTION,
    ATTR_BATCH_NUMBER,
    ATTR_BATCH_SIZE,
    ATTR_DB_NAME,
    ATTR_DB_OPERATION,
    ATTR_MIGRATION_PHASE,
    ATTR_SHADOW_COLLECTION,
    ATTR_SOURCE_COLLECTION,
    Tracer,
    create_tracer,
)
from shadowswap.performance import (
    VALIDATION_QUERIES,
    PerformanceGate,
    PerformanceReport,
    critical_only,
)
from shadowswap.phases import MigrationPhase, PhaseLedger
from shadowswap.reports import FINAL_REPORT, OPERATIONAL_RECOMMENDATIONS, ReportWriter
from shadowswap.storage.interface import Document, DocumentDatabase
from shadowswap.transformer import ProductTransformer

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class DocumentFailure:
    """
    A source document that did not reach the shadow collection.

    Attributes:
        document_id: ``_id`` of the source document
        error: Why it failed
    """

    document_id: Any
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"productId": self.document_id, "error": self.error}


@dataclass(frozen=True)
class TransformationResult:
    """
    Outcome of the data-transformation phase.

    Attributes:
        total: Source documents read
        inserted: Documents written to the shadow collection
        failures: Documents that failed transformation, validation or insert
        batches: Number of batches processed
    """

    total: int
    inserted: int
    failures: tuple[DocumentFailure, ...] = ()
    batches: int = 0

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def success_rate(self) -> float:
        if self.total == 0:
            return 100.0
        return self.inserted / self.total * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "transformedCount": self.inserted,
            "failedCount": self.failed,
            "successRate": round(self.success_rate, 1),
            "batches": self.batches,
            "errors": [f.to_dict() for f in self.failures],
        }


@dataclass(frozen=True)
class SwitchResult:
    """
    Outcome of the blue-green switch.

    Attributes:
        backup_collection: Name the previous live collection was renamed to
        duration_ms: Duration of the rename sequence
        max_downtime_ms: Budget the duration was compared against
    """

    backup_collection: str
    duration_ms: float
    max_downtime_ms: float

    @property
    def within_budget(self) -> bool:
        return self.duration_ms <= self.max_downtime_ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "switchDuration": round(self.duration_ms, 3),
            "backupCollection": self.backup_collection,
            "withinDowntimeBudget": self.within_budget,
        }


@dataclass
class MigrationResults:
    """Running totals of one migration run, merged from phase results."""

    total_products: int = 0
    migrated_products: int = 0
    failed_products: int = 0
    failures: list[DocumentFailure] = field(default_factory=list)
    backup_path: str | None = None
    backup_collection: str | None = None
    rollback_possible: bool = False
    rollback_performed: bool = False
    performance_metrics: dict[str, Any] = field(default_factory=dict)
    issues: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalProducts": self.total_products,
            "migratedProducts": self.migrated_products,
            "failedProducts": self.failed_products,
            "failures": [f.to_dict() for f in self.failures],
            "backupPath": self.backup_path,
            "backupCollection": self.backup_collection,
            "rollbackPossible": self.rollback_possible,
            "rollbackPerformed": self.rollback_performed,
            "performanceMetrics": self.performance_metrics,
            "issues": list(self.issues),
        }


class MigrationOrchestrator:
    """
    Coordinates the products migration from pre-flight to cleanup.

    Each phase is also available as a public method so operators and tests
    can run them individually; ``run()`` chains them through the ledger.

    Args:
        database: Database holding the source collection
        config: Migration configuration
        transformer: Document transformer (its clock supplies the run time)
        index_planner: Index planner for the shadow collection
        performance_gate: Gate for the pre-switch validation battery
        verifier: Integrity verifier for pre-flight and post-validation
        backup_manager: Writer of the JSON backup artifact
        report_writer: Writer of the JSON reports
        metrics: Metrics recorder
        timer: Monotonic clock in seconds used for durations
        tracer: Optional custom Tracer
        enable_tracing: Whether to enable OpenTelemetry tracing
    """

    def __init__(
        self,
        database: DocumentDatabase,
        config: MigrationConfig | None = None,
        *,
        transformer: ProductTransformer | None = None,
        index_planner: IndexPlanner | None = None,
        performance_gate: PerformanceGate | None = None,
        verifier: IntegrityVerifier | None = None,
        backup_manager: BackupManager | None = None,
        report_writer: ReportWriter | None = None,
        metrics: MigrationMetrics | None = None,
        timer: Callable[[], float] | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._database = database
        self.config = config or MigrationConfig()
        self._timer = timer or time.perf_counter
        self._metrics = metrics or MigrationMetrics(self.config.target_collection)
        self._transformer = transformer or ProductTransformer()
        self._gate = performance_gate or PerformanceGate(
            self.config.performance_target_ms,
            metrics=self._metrics,
            tracer=self._tracer,
        )
        self._planner = index_planner or IndexPlanner(
            PerformanceGate(
                self.config.performance_target_ms,
                metrics=self._metrics,
                tracer=self._tracer,
            ),
            metrics=self._metrics,
            tracer=self._tracer,
        )
        self._verifier = verifier or IntegrityVerifier(
            performance_gate=self._gate,
            transformer=self._transformer,
            tracer=self._tracer,
        )
        self._backups = backup_manager or BackupManager(
            self.config.backup_path,
            clock=self._transformer.now,
            tracer=self._tracer,
        )
        self._reports = report_writer or ReportWriter(self.config.report_path)

        self.ledger = PhaseLedger()
        self.results = MigrationResults()
        self.backup_collection: str | None = None
        self._promoted = False
        self._baseline_ms: float | None = None
        self._run_started: float | None = None

    @property
    def metrics(self) -> MigrationMetrics:
        return self._metrics

    # =========================================================================
    # Run
    # =========================================================================

    async def run(self) -> dict[str, Any]:
        """
        Run every phase in order.

        Returns:
            The final report, also written to ``migration-final-report.json``

        Raises:
            MigrationFailedError: If any phase fails; the failure report has
                been written to ``migration-failure-report.json``
        """
        self._run_started = self._timer()
        now = self._transformer.now()
        cfg = self.config
        logger.info(
            "Starting migration of %s via %s",
            cfg.source_collection,
            cfg.shadow_collection,
        )

        with self._tracer.span(
            "shadowswap.orchestrator.run",
            {
                ATTR_SOURCE_COLLECTION: cfg.source_collection,
                ATTR_SHADOW_COLLECTION: cfg.shadow_collection,
            },
        ):
            try:
                readiness = await self._run_phase(
                    MigrationPhase.PRE_FLIGHT, self.run_preflight, lambda r: r.to_dict()
                )
                self.results.total_products = readiness.total_products

                artifact = await self._run_phase(
                    MigrationPhase.BACKUP, self.create_backup, lambda a: a.to_dict()
                )
                self.results.backup_path = str(artifact.path)
                self.results.rollback_possible = True

                await self._run_phase(
                    MigrationPhase.SHADOW_CREATION,
                    self.prepare_shadow_collection,
                    lambda name: {"shadowCollection": name},
                )

                transformation = await self._run_phase(
                    MigrationPhase.DATA_TRANSFORMATION,
                    lambda: self.transform_documents(now),
                    lambda r: r.to_dict(),
                )

                optimization = await self._run_phase(
                    MigrationPhase.INDEX_OPTIMIZATION,
                    self.optimize_indexes,
                    lambda r: r.to_dict(),
                )
                self.results.performance_metrics["indexOptimization"] = (
                    optimization.performance.to_dict()["summary"]
                )

                performance = await self._run_phase(
                    MigrationPhase.PERFORMANCE_VALIDATION,
                    self.validate_performance,
                    lambda r: r.to_dict(),
                )
                self.results.performance_metrics["validation"] = performance.to_dict()["tests"]

                switch = await self._run_phase(
                    MigrationPhase.BLUE_GREEN_SWITCH,
                    self.switch_collections,
                    lambda r: r.to_dict(),
                )

                verification = await self._run_phase(
                    MigrationPhase.POST_VALIDATION,
                    self.validate_post_migration,
                    lambda r: r.to_dict()["summary"],
                )

                report = await self._run_phase(
                    MigrationPhase.CLEANUP,
                    lambda: self.finalize(transformation, switch, verification),
                    lambda r: {"reportPath": str(self._reports.path_for(FINAL_REPORT))},
                )
            except PhaseFailedError as e:
                raise self._fail(e) from e.cause

        logger.info(
            "Migration completed: %d/%d products migrated",
            self.results.migrated_products,
            self.results.total_products,
        )
        return report

    async def _run_phase(
        self,
        phase: MigrationPhase,
        action: Callable[[], Awaitable[T]],
        summarize: Callable[[T], dict[str, Any]],
    ) -> T:
        self.ledger.start(phase, datetime.now(timezone.utc))
        logger.info("Phase %s started", phase.value, extra={"phase": phase.value})
        started = self._timer()

        with self._tracer.span(
            "shadowswap.orchestrator.phase",
            {ATTR_MIGRATION_PHASE: phase.value},
        ):
            try:
                result = await action()
            except Exception as e:
                duration_ms = (self._timer() - started) * 1000
                error = e.to_dict() if isinstance(e, MigrationError) else {
                    "message": str(e),
                    "type": type(e).__name__,
                }
                self.ledger.fail(phase, duration_ms, error)
                self._metrics.record_phase_duration(phase.value, duration_ms / 1000)
                level = e.severity.log_level if isinstance(e, MigrationError) else logging.ERROR
                logger.log(
                    level,
                    "Phase %s failed after %.0fms",
                    phase.value,
                    duration_ms,
                    exc_info=True,
                    extra={"phase": phase.value},
                )
                raise PhaseFailedError(phase, e) from e

        duration_ms = (self._timer() - started) * 1000
        self.ledger.complete(phase, duration_ms, summarize(result))
        self._metrics.record_phase_duration(phase.value, duration_ms / 1000)
        logger.info(
            "Phase %s completed in %.0fms",
            phase.value,
            duration_ms,
            extra={"phase": phase.value},
        )
        return result

    def _fail(self, error: PhaseFailedError) -> MigrationFailedError:
        phase = error.phase
        cause = error.cause
        if isinstance(cause, (SwitchError, PostValidationError)):
            self.results.rollback_performed = cause.rollback_performed
        self.results.rollback_possible = self.backup_collection is not None or bool(
            self.results.backup_path
        )

        report = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "success": False,
            "failedPhase": phase.value if phase else None,
            "error": error.to_dict(),
            "phases": self.ledger.snapshot(),
            "results": self.results.to_dict(),
            "backupPath": self.results.backup_path,
            "backupCollection": self.backup_collection,
            "rollbackPossible": self.results.rollback_possible,
            "rollbackPerformed": self.results.rollback_performed,
        }
        try:
            self._reports.write_failure_report(report)
        except OSError:
            logger.exception("Failure report could not be written")
        return MigrationFailedError(
            f"Migration failed in phase {phase.value if phase else 'unknown'}: {cause}",
            report,
            phase,
        )

    # =========================================================================
    # Phases
    # =========================================================================

    async def run_preflight(self) -> ReadinessReport:
        """
        Check the source collection is ready to migrate.

        Raises:
            PreflightError: If the source collection is empty
        """
        source = self._database[self.config.source_collection]
        readiness = await self._verifier.check_readiness(
            source,
            min_success_rate=self.config.min_success_rate,
            now=self._transformer.now(),
        )
        for issue in readiness.data_quality_issues:
            logger.warning("Data quality: %s", issue)
        if not readiness.migration_ready:
            raise PreflightError(
                f"Pre-flight validation failed: source collection {source.name} is empty",
                total_products=readiness.total_products,
                data_quality_issues=list(readiness.data_quality_issues),
            )
        if not readiness.sample_meets_floor:
            logger.warning(
                "Only %.1f%% of the first %d products transform (floor %.1f%%)",
                readiness.success_rate,
                readiness.sampled,
                self.config.min_success_rate,
            )
        self._baseline_ms = readiness.baseline_ms
        return readiness

    async def create_backup(self) -> BackupArtifact:
        """Write and verify the JSON backup of the source collection."""
        return await self._backups.create_backup(
            self._database[self.config.source_collection],
            self.config,
        )

    async def prepare_shadow_collection(self) -> str:
        """Drop any stale shadow collection and create an empty one."""
        name = self.config.shadow_collection
        if await self._database.collection_exists(name):
            logger.info("Dropping stale shadow collection %s", name)
        await self._database.drop_collection(name)
        await self._database.create_collection(name)
        return name

    async def transform_documents(self, now: datetime | None = None) -> TransformationResult:
        """
        Transform every source document into the shadow collection.

        Documents are processed in batches of ``config.batch_size``. A
        document that fails transformation, validation or insertion is
        recorded and skipped; the batch carries on.

        Args:
            now: Transformation time shared by every document of the run

        Raises:
            TransformationThresholdError: If the overall success rate is
                below ``config.min_success_rate``
        """
        now = now or self._transformer.now()
        cfg = self.config
        source = self._database[cfg.source_collection]
        shadow = self._database[cfg.shadow_collection]

        total = inserted = batches = 0
        failures: list[DocumentFailure] = []

        async for batch in source.stream(batch_size=cfg.batch_size):
            batches += 1
            with self._tracer.span(
                "shadowswap.orchestrator.transform_batch",
                {ATTR_BATCH_NUMBER: batches, ATTR_BATCH_SIZE: len(batch)},
            ):
                transformed: list[Document] = []
                for document in batch:
                    total += 1
                    result, error = self._transformer.try_transform(document, now)
                    if error is not None:
                        logger.warning(
                            "Transform failed for %s: %s", document.get("_id"), error
                        )
                        failures.append(DocumentFailure(document.get("_id"), str(error)))
                        self._metrics.record_documents_failed(reason="transformation")
                        continue
                    transformed.append(result)

                if transformed:
                    written = await shadow.insert_many(transformed, ordered=False)
                    inserted += written.inserted_count
                    self._metrics.record_documents_transformed(written.inserted_count)
                    for write_error in written.write_errors:
                        logger.warning(
                            "Insert failed for %s: %s", write_error.document_id, write_error.message
                        )
                        failures.append(
                            DocumentFailure(write_error.document_id, write_error.message)
                        )
                        self._metrics.record_documents_failed(reason="insert")

            logger.debug("Batch %d processed: %d documents so far", batches, total)

        result = TransformationResult(
            total=total,
            inserted=inserted,
            failures=tuple(failures),
            batches=batches,
        )
        self.results.migrated_products = inserted
        self.results.failed_products = result.failed
        self.results.failures = list(failures)
        logger.info(
            "Transformed %d/%d products (%.1f%%)",
            inserted,
            total,
            result.success_rate,
        )

        if result.success_rate < cfg.min_success_rate:
            raise TransformationThresholdError(
                result.success_rate, cfg.min_success_rate, result.failed
            )
        return result

    async def optimize_indexes(self) -> OptimizationReport:
        """
        Build the index plan on the shadow collection.

        Raises:
            IndexOptimizationError: If the optimization battery misses its
                critical success or compliance bar
        """
        shadow = self._database[self.config.shadow_collection]
        report = await self._planner.optimize(shadow)
        self._reports.write_optimization_report(
            {"timestamp": datetime.now(timezone.utc).isoformat(), **report.to_dict()}
        )
        if not report.passed:
            raise IndexOptimizationError(
                "Index optimization failed to meet performance targets",
                critical_success_rate=round(report.performance.critical_success_rate, 1),
                compliance_rate=round(report.performance.compliance_rate, 1),
            )
        return report

    async def validate_performance(self) -> PerformanceReport:
        """
        Run the critical validation queries against the shadow collection.

        Raises:
            PerformanceGateError: If any critical query misses its target
        """
        shadow = self._database[self.config.shadow_collection]
        report = await self._gate.run_suite(
            shadow,
            critical_only(VALIDATION_QUERIES),
            suite="performance-validation",
        )
        if not report.passed:
            failed = report.failed_critical
            raise PerformanceGateError(
                f"Critical performance tests failed: "
                f"{len(report.critical_results) - len(failed)}/{len(report.critical_results)} passed",
                failed,
            )
        return report

    async def switch_collections(self) -> SwitchResult:
        """
        Promote the shadow collection with two renames.

        The live collection is renamed to ``<source>_backup_<epoch ms>``,
        then the shadow collection takes the target name. If either rename
        fails after the backup name was recorded, the previous collection is
        restored before the error propagates.

        Raises:
            SwitchError: If the rename sequence fails
            CriticalRollbackFailure: If the failure could not be rolled back
        """
        cfg = self.config
        epoch_ms = int(self._transformer.now().timestamp() * 1000)
        backup_name = f"{cfg.source_collection}_backup_{epoch_ms}"
        distinct_target = cfg.target_collection != cfg.source_collection
        if distinct_target and await self._database.collection_exists(cfg.target_collection):
            raise SwitchError(
                f"Target collection {cfg.target_collection} already exists; "
                "drop or rename it before switching"
            )

        with self._tracer.span(
            "shadowswap.orchestrator.switch",
            {
                ATTR_SOURCE_COLLECTION: cfg.source_collection,
                ATTR_BACKUP_COLLECTION: backup_name,
                ATTR_DB_NAME: self._database.name,
                ATTR_DB_OPERATION: "renameCollection",
            },
        ):
            with self._metrics.time_switch() as switch_timer:
                started = self._timer()
                try:
                    await self._database.rename_collection(cfg.source_collection, backup_name)
                    self.backup_collection = backup_name
                    self.results.backup_collection = backup_name
                    await self._database.rename_collection(
                        cfg.shadow_collection, cfg.target_collection
                    )
                    self._promoted = True
                except Exception as e:
                    switch_timer.success = False
                    logger.error("Blue-green switch failed: %s", e)
                    if self.backup_collection is None:
                        raise SwitchError(f"Blue-green switch failed: {e}") from e
                    await self.rollback()
                    raise SwitchError(
                        f"Blue-green switch failed: {e}", rollback_performed=True
                    ) from e
                duration_ms = (self._timer() - started) * 1000
                switch_timer.success = True

        result = SwitchResult(backup_name, duration_ms, cfg.max_downtime_ms)
        if not result.within_budget:
            logger.warning(
                "Switch took %.0fms (target: %.0fms)", duration_ms, cfg.max_downtime_ms
            )
            self.results.issues.append(
                f"Switch duration {duration_ms:.0f}ms exceeded {cfg.max_downtime_ms:.0f}ms"
            )
        logger.info(
            "Switched %s to the new schema; previous collection kept as %s",
            cfg.target_collection,
            backup_name,
        )
        return result

    async def validate_post_migration(self) -> VerificationReport:
        """
        Verify the now-live collection against the renamed backup.

        Raises:
            PostValidationError: If verification reports failed checks or
                critical issues
        """
        cfg = self.config
        if self.backup_collection is None:
            raise RollbackUnavailableError("No backup collection recorded; run the switch first")
        source = self._database[self.backup_collection]
        live = self._database[cfg.target_collection]

        report = await self._verifier.verify(source, live, now=datetime.now(timezone.utc))
        self._reports.write_verification_report(report.to_dict())
        await self._check_degradation()

        if not report.overall_success:
            rollback_performed = False
            if cfg.rollback_on_post_validation_failure:
                logger.warning("Post-validation failed; rolling back the switch")
                await self.rollback()
                rollback_performed = True
            raise PostValidationError(
                f"Post-migration validation failed: {report.failed_tests} test failures",
                list(report.critical_issues),
                rollback_performed=rollback_performed,
            )
        return report

    async def _check_degradation(self) -> None:
        if self._baseline_ms is None:
            return
        catalog = VALIDATION_QUERIES[0]
        live = self._database[self.config.target_collection]
        measured = await self._gate.measure(live, catalog)
        allowed = self._baseline_ms + self.config.max_performance_degradation_ms
        self.results.performance_metrics["catalogBaseline"] = {
            "before": round(self._baseline_ms, 3),
            "after": round(measured.average_ms, 3),
        }
        if measured.average_ms > allowed:
            logger.warning(
                "Catalog query degraded from %.1fms to %.1fms",
                self._baseline_ms,
                measured.average_ms,
            )
            self.results.issues.append(
                f"Catalog latency degraded from {self._baseline_ms:.1f}ms "
                f"to {measured.average_ms:.1f}ms"
            )

    async def finalize(
        self,
        transformation: TransformationResult,
        switch: SwitchResult,
        verification: VerificationReport,
    ) -> dict[str, Any]:
        """Write the final report. The backup collection is kept."""
        duration_ms = (
            (self._timer() - self._run_started) * 1000 if self._run_started is not None else 0.0
        )
        self.results.performance_metrics["switchDuration"] = round(switch.duration_ms, 3)
        self.results.performance_metrics["verificationSuccessRate"] = round(
            verification.success_rate, 1
        )
        report = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "duration": round(duration_ms, 3),
            "success": True,
            "phases": self.ledger.snapshot(),
            "results": self.results.to_dict(),
            "config": self.config.to_dict(),
            "backupInformation": {
                "backupPath": self.results.backup_path,
                "backupCollection": self.backup_collection,
                "rollbackPossible": self.results.rollback_possible,
            },
            "performanceMetrics": self.results.performance_metrics,
            "transformation": transformation.to_dict(),
            "metrics": self._metrics.get_snapshot().to_dict(),
            "issues": list(self.results.issues),
            "recommendations": list(OPERATIONAL_RECOMMENDATIONS),
        }
        self._reports.write_final_report(report)
        return report

    # =========================================================================
    # Rollback
    # =========================================================================

    async def rollback(self) -> None:
        """
        Restore the pre-switch collection.

        Drops the current live collection and renames the recorded backup
        collection back into place.

        Raises:
            RollbackUnavailableError: If no backup collection was recorded
            CriticalRollbackFailure: If the restore itself fails
        """
        cfg = self.config
        backup_name = self.backup_collection
        if backup_name is None:
            raise RollbackUnavailableError("No backup collection available for rollback")

        with self._tracer.span(
            "shadowswap.orchestrator.rollback",
            {ATTR_BACKUP_COLLECTION: backup_name, ATTR_DB_NAME: self._database.name},
        ):
            logger.warning("Rolling back: restoring %s from %s", cfg.source_collection, backup_name)
            try:
                # A distinct target is only ours once the shadow was renamed into it
                if self._promoted or cfg.target_collection == cfg.source_collection:
                    await self._database.drop_collection(cfg.target_collection)
                await self._database.rename_collection(backup_name, cfg.source_collection)
            except Exception as e:
                logger.critical(
                    "Emergency rollback failed; manual intervention required "
                    "(backup collection %s, backup file %s): %s",
                    backup_name,
                    self.results.backup_path,
                    e,
                )
                raise CriticalRollbackFailure(
                    f"Emergency rollback failed: {e}", backup_name
                ) from e

        self.backup_collection = None
        self.results.rollback_performed = True
        self._promoted = False
        logger.warning("Rollback completed: %s restored", cfg.source_collection)


async def rollback_collection(
    database: DocumentDatabase,
    backup_collection: str,
    live_collection: str,
) -> None:
    """
    Rename a backup collection back into place, dropping the live one.

    Operator entry point for restoring a switch after the orchestrator
    process has exited.
    """
    config = MigrationConfig(source_collection=live_collection, target_collection=live_collection)
    orchestrator = MigrationOrchestrator(database, config, enable_tracing=False)
    orchestrator.backup_collection = backup_collection
    await orchestrator.rollback()


__all__ = [
    "DocumentFailure",
    "TransformationResult",
    "SwitchResult",
    "MigrationResults",
    "MigrationOrchestrator",
    "rollback_collection",
]
