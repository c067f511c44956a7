"""
shadowswap - Zero-downtime migration of a MongoDB product catalog.

This library provides:
- A pure transformer from legacy product documents to ProductListDTO
- A schema validator for transformed documents
- An index planner and a latency-based performance gate
- An integrity verifier comparing source and migrated collections
- A nine-phase orchestrator with a blue-green switch and emergency rollback
- In-memory and Motor (MongoDB) storage backends
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("shadowswap")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from shadowswap.backup import BackupArtifact, BackupManager
from shadowswap.config import IntegrityThresholds, MigrationConfig
from shadowswap.exceptions import (
    BackupError,
    BackupVerificationError,
    CriticalRollbackFailure,
    ErrorClassification,
    ErrorRecoverability,
    ErrorSeverity,
    IndexCreationError,
    IndexOptimizationError,
    MigrationError,
    MigrationFailedError,
    PerformanceGateError,
    PhaseFailedError,
    PostValidationError,
    PreflightError,
    RollbackUnavailableError,
    SchemaError,
    StorageError,
    SwitchError,
    TransformationError,
    TransformationThresholdError,
)
from shadowswap.indexes import ALL_INDEXES, IndexPlanner, IndexSpec, OptimizationReport
from shadowswap.integrity import IntegrityVerifier, ReadinessReport, VerificationReport
from shadowswap.metrics import MigrationMetrics
from shadowswap.orchestrator import (
    MigrationOrchestrator,
    SwitchResult,
    TransformationResult,
    rollback_collection,
)
from shadowswap.performance import (
    PerformanceGate,
    PerformanceReport,
    QueryResult,
    QuerySpec,
)
from shadowswap.phases import MigrationPhase, PhaseLedger, PhaseStatus
from shadowswap.reports import ReportWriter
from shadowswap.schema import is_valid_product, validate_product
from shadowswap.storage import DocumentCollection, DocumentDatabase, InMemoryDatabase
from shadowswap.transformer import ProductTransformer, transform_product

__all__ = [
    "__version__",
    # Configuration
    "MigrationConfig",
    "IntegrityThresholds",
    # Transformation
    "ProductTransformer",
    "transform_product",
    "validate_product",
    "is_valid_product",
    # Indexes and performance
    "IndexSpec",
    "IndexPlanner",
    "OptimizationReport",
    "ALL_INDEXES",
    "QuerySpec",
    "QueryResult",
    "PerformanceGate",
    "PerformanceReport",
    # Verification
    "IntegrityVerifier",
    "VerificationReport",
    "ReadinessReport",
    # Orchestration
    "MigrationPhase",
    "PhaseStatus",
    "PhaseLedger",
    "MigrationOrchestrator",
    "TransformationResult",
    "SwitchResult",
    "rollback_collection",
    "BackupManager",
    "BackupArtifact",
    "ReportWriter",
    "MigrationMetrics",
    # Storage
    "DocumentDatabase",
    "DocumentCollection",
    "InMemoryDatabase",
    # Exceptions
    "ErrorSeverity",
    "ErrorRecoverability",
    "ErrorClassification",
    "MigrationError",
    "TransformationError",
    "SchemaError",
    "PreflightError",
    "BackupError",
    "BackupVerificationError",
    "TransformationThresholdError",
    "IndexCreationError",
    "IndexOptimizationError",
    "PerformanceGateError",
    "SwitchError",
    "RollbackUnavailableError",
    "CriticalRollbackFailure",
    "PostValidationError",
    "PhaseFailedError",
    "MigrationFailedError",
    "StorageError",
]
