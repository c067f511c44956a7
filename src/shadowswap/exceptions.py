"""
Exceptions for the shadowswap migration system.

This module defines all exceptions that can be raised while migrating the
product catalog, organized by the component or phase that raises them.

Exception Hierarchy:
    MigrationError (base)
    +-- InvalidPhaseTransitionError
    +-- TransformationError
    +-- SchemaError
    |   +-- MissingFieldError
    |   +-- InvalidTypeError
    +-- PreflightError
    +-- BackupError
    |   +-- BackupVerificationError
    +-- TransformationThresholdError
    +-- IndexCreationError
    +-- IndexOptimizationError
    +-- PerformanceGateError
    +-- SwitchError
    +-- RollbackUnavailableError
    +-- CriticalRollbackFailure
    +-- PostValidationError
    +-- PhaseFailedError
    +-- MigrationFailedError

    StorageError (database collaborator)
    +-- IndexAlreadyExistsError
    +-- NamespaceExistsError
    +-- NamespaceNotFoundError
    +-- DuplicateKeyError

Error Classification:
    - ErrorSeverity: CRITICAL, ERROR, WARNING, INFO levels
    - ErrorRecoverability: RECOVERABLE, TRANSIENT, FATAL categories
    - ErrorClassification: metadata attached to every MigrationError type
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from shadowswap.phases import MigrationPhase, PhaseStatus


class ErrorSeverity(Enum):
    """
    Severity level of migration errors.

    Attributes:
        CRITICAL: The live collection may be in an inconsistent state.
            Examples: rollback failure.
        ERROR: A phase failed and the migration halted.
        WARNING: A degraded condition that did not halt the run.
        INFO: Informational condition, not a failure.
    """

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def log_level(self) -> int:
        """
        Get the corresponding Python logging level.

        Returns:
            Python logging level constant.
        """
        level_map = {
            ErrorSeverity.CRITICAL: logging.CRITICAL,
            ErrorSeverity.ERROR: logging.ERROR,
            ErrorSeverity.WARNING: logging.WARNING,
            ErrorSeverity.INFO: logging.INFO,
        }
        return level_map[self]


class ErrorRecoverability(Enum):
    """
    Recoverability classification for migration errors.

    Attributes:
        RECOVERABLE: The run can be repeated after the cause is fixed.
            Examples: too many malformed documents, slow queries.
        TRANSIENT: Temporary error that may resolve on retry.
            Examples: network timeout during a rename.
        FATAL: Manual operator intervention is required.
            Examples: rollback failure.
    """

    RECOVERABLE = "recoverable"
    TRANSIENT = "transient"
    FATAL = "fatal"


@dataclass(frozen=True)
class ErrorClassification:
    """
    Metadata describing how an error should be handled and reported.

    Attributes:
        severity: The severity level of the error.
        recoverability: How the error can be recovered from.
        error_code: Unique error code for programmatic handling.
        category: Error category for grouping related errors.
        suggested_action: Human-readable guidance for operators.
    """

    severity: ErrorSeverity
    recoverability: ErrorRecoverability
    error_code: str
    category: str
    suggested_action: str

    def to_dict(self) -> dict[str, Any]:
        """Convert classification to dictionary for serialization."""
        return {
            "severity": self.severity.value,
            "recoverability": self.recoverability.value,
            "error_code": self.error_code,
            "category": self.category,
            "suggested_action": self.suggested_action,
        }


class MigrationError(Exception):
    """
    Base exception for all migration-related errors.

    All exceptions raised by the orchestrator and its components inherit
    from this class, allowing callers to catch all migration errors with a
    single handler.

    Attributes:
        message: Human-readable error description.
        phase: The migration phase that raised the error, if known.
        context: Extra key/value details included in reports.
        suggested_action: Suggested action for recovery.
    """

    _default_classification: ErrorClassification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="MIGRATION_ERROR",
        category="general",
        suggested_action="Review migration logs and the failure report",
    )

    def __init__(
        self,
        message: str,
        *,
        phase: MigrationPhase | None = None,
        suggested_action: str | None = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.phase = phase
        self.context = context
        self.suggested_action = suggested_action or self._default_classification.suggested_action
        super().__init__(message)

    def __str__(self) -> str:
        """Return formatted error string with context."""
        parts = [self.message]
        if self.phase is not None:
            parts.append(f"phase={self.phase.value}")
        for key, value in self.context.items():
            if value is not None:
                parts.append(f"{key}={value}")
        return " ".join(parts)

    @property
    def classification(self) -> ErrorClassification:
        """Get the error classification for this exception."""
        return self._default_classification

    @property
    def severity(self) -> ErrorSeverity:
        return self.classification.severity

    @property
    def recoverability(self) -> ErrorRecoverability:
        return self.classification.recoverability

    @property
    def error_code(self) -> str:
        return self.classification.error_code

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "message": self.message,
            "phase": self.phase.value if self.phase is not None else None,
            "error_code": self.error_code,
            "context": {key: _jsonable(value) for key, value in self.context.items()},
            "suggested_action": self.suggested_action,
            "classification": self.classification.to_dict(),
        }


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return str(value)


class InvalidPhaseTransitionError(MigrationError):
    """
    Raised when the phase ledger is asked for an invalid status change.

    Phases are strictly sequential and a terminal phase is never revisited.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="INVALID_PHASE_TRANSITION",
        category="state",
        suggested_action="Phases must run in order; start a new orchestrator run",
    )

    def __init__(self, phase: MigrationPhase, current: PhaseStatus, target: PhaseStatus) -> None:
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid status transition for {phase.value}: {current.value} -> {target.value}",
            phase=phase,
        )


class TransformationError(MigrationError):
    """
    Raised when a single legacy document cannot be transformed.

    The orchestrator treats this as a per-document failure: it is counted
    and logged with the document identifier, never propagated out of the
    data-transformation phase.

    Attributes:
        document_id: Identifier of the source document.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="TRANSFORMATION_ERROR",
        category="transformation",
        suggested_action="Inspect and repair the source document, then rerun the migration",
    )

    def __init__(self, message: str, document_id: Any = None) -> None:
        self.document_id = document_id
        super().__init__(message, document_id=document_id)


class SchemaError(MigrationError):
    """
    Raised when a transformed document breaks a ProductListDTO invariant.

    Attributes:
        field: Dotted path of the offending field.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="SCHEMA_ERROR",
        category="validation",
        suggested_action="Inspect the source document that produced the invalid output",
    )

    def __init__(self, message: str, field: str, document_id: Any = None) -> None:
        self.field = field
        self.document_id = document_id
        super().__init__(message, field=field, document_id=document_id)


class MissingFieldError(SchemaError):
    """Raised when a required top-level field is absent."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="SCHEMA_MISSING_FIELD",
        category="validation",
        suggested_action="Inspect the source document that produced the invalid output",
    )

    def __init__(self, field: str, document_id: Any = None) -> None:
        super().__init__(f"Missing required field: {field}", field, document_id)


class InvalidTypeError(SchemaError):
    """Raised when a checked field has the wrong type or an out-of-range value."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="SCHEMA_INVALID_TYPE",
        category="validation",
        suggested_action="Inspect the source document that produced the invalid output",
    )

    def __init__(self, field: str, expected: str, value: Any, document_id: Any = None) -> None:
        self.expected = expected
        self.value = value
        super().__init__(
            f"Invalid value for {field}: expected {expected}, got {value!r}",
            field,
            document_id,
        )


class PreflightError(MigrationError):
    """Raised when the source collection is not ready to be migrated."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="PREFLIGHT_FAILED",
        category="preflight",
        suggested_action="Fix the readiness findings in the failure report; nothing was modified",
    )


class BackupError(MigrationError):
    """Raised when the backup artifact cannot be written or read."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.TRANSIENT,
        error_code="BACKUP_FAILED",
        category="backup",
        suggested_action="Check free disk space and permissions of the backup directory",
    )


class BackupVerificationError(BackupError):
    """
    Raised when the backup artifact does not match the live collection.

    Attributes:
        expected_count: Document count of the live collection.
        actual_count: Document count found in the artifact.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.TRANSIENT,
        error_code="BACKUP_VERIFICATION_FAILED",
        category="backup",
        suggested_action="Make sure no writer is bulk-loading products, then rerun",
    )

    def __init__(self, expected_count: int, actual_count: int, path: str | None = None) -> None:
        self.expected_count = expected_count
        self.actual_count = actual_count
        super().__init__(
            f"Backup verification failed: expected {expected_count} products, "
            f"artifact holds {actual_count}",
            path=path,
        )


class TransformationThresholdError(MigrationError):
    """
    Raised when too many documents failed to transform.

    Attributes:
        success_rate: Achieved success rate in percent.
        min_success_rate: Configured floor in percent.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="TRANSFORMATION_BELOW_THRESHOLD",
        category="transformation",
        suggested_action="Review the failed documents listed in the report and repair them",
    )

    def __init__(self, success_rate: float, min_success_rate: float, failed: int) -> None:
        self.success_rate = success_rate
        self.min_success_rate = min_success_rate
        self.failed = failed
        super().__init__(
            f"Transformation success rate {success_rate:.1f}% is below "
            f"the required {min_success_rate:.1f}%",
            failed=failed,
        )


class IndexCreationError(MigrationError):
    """Raised when an index cannot be created for a reason other than it already existing."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="INDEX_CREATION_FAILED",
        category="indexes",
        suggested_action="Drop the conflicting index on the shadow collection and rerun",
    )

    def __init__(self, index_name: str, reason: str) -> None:
        self.index_name = index_name
        self.reason = reason
        super().__init__(f"Failed to create index {index_name}: {reason}", index=index_name)


class IndexOptimizationError(MigrationError):
    """Raised when optimized indexes do not bring critical queries within target."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="INDEX_OPTIMIZATION_FAILED",
        category="indexes",
        suggested_action="Review index-optimization-report.json for slow queries",
    )


class PerformanceGateError(MigrationError):
    """
    Raised when critical queries miss their latency target.

    Attributes:
        failed_tests: Names of the critical tests that failed.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="PERFORMANCE_GATE_FAILED",
        category="performance",
        suggested_action="Tune indexes for the failing queries before switching",
    )

    def __init__(self, message: str, failed_tests: list[str]) -> None:
        self.failed_tests = failed_tests
        super().__init__(message, failed_tests=failed_tests)


class SwitchError(MigrationError):
    """
    Raised when the blue-green rename sequence fails.

    Attributes:
        rollback_performed: Whether the pre-switch collection was restored.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.TRANSIENT,
        error_code="SWITCH_FAILED",
        category="switch",
        suggested_action="The original collection was restored; rerun the migration",
    )

    def __init__(self, message: str, rollback_performed: bool = False) -> None:
        self.rollback_performed = rollback_performed
        super().__init__(message, rollback_performed=rollback_performed)


class RollbackUnavailableError(MigrationError):
    """Raised when rollback is requested but no backup collection was recorded."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="ROLLBACK_UNAVAILABLE",
        category="rollback",
        suggested_action="Restore manually from the JSON backup artifact",
    )


class CriticalRollbackFailure(MigrationError):
    """
    Raised when the rollback routine itself fails.

    There is no second-level fallback: the live collection must be repaired
    by an operator using the backup collection or the backup artifact.

    Attributes:
        backup_collection: The backup collection that was being restored.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        recoverability=ErrorRecoverability.FATAL,
        error_code="ROLLBACK_FAILED",
        category="rollback",
        suggested_action=(
            "Manual intervention required: rename the backup collection into place "
            "or restore the JSON backup artifact"
        ),
    )

    def __init__(self, message: str, backup_collection: str | None) -> None:
        self.backup_collection = backup_collection
        super().__init__(message, backup_collection=backup_collection)


class PostValidationError(MigrationError):
    """
    Raised when the integrity verification of the live collection fails.

    Attributes:
        critical_issues: Issues reported by the verifier.
        rollback_performed: Whether the switch was reverted.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="POST_VALIDATION_FAILED",
        category="verification",
        suggested_action=(
            "The new collection is live; review data-integrity-verification-report.json "
            "and roll back manually if needed"
        ),
    )

    def __init__(
        self,
        message: str,
        critical_issues: list[str],
        rollback_performed: bool = False,
    ) -> None:
        self.critical_issues = critical_issues
        self.rollback_performed = rollback_performed
        super().__init__(message, critical_issues=critical_issues)


class PhaseFailedError(MigrationError):
    """
    Raised by the orchestrator when a phase fails.

    Wraps the underlying error and keeps its classification so the failure
    report reflects the real cause.
    """

    def __init__(self, phase: MigrationPhase, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Phase {phase.value} failed: {cause}", phase=phase)

    @property
    def classification(self) -> ErrorClassification:
        if isinstance(self.cause, MigrationError):
            return self.cause.classification
        return self._default_classification


class MigrationFailedError(MigrationError):
    """
    Raised when a migration run ends without success.

    Attributes:
        report: The persisted failure report.
    """

    def __init__(self, message: str, report: dict[str, Any], phase: MigrationPhase | None) -> None:
        self.report = report
        super().__init__(message, phase=phase)


class StorageError(Exception):
    """
    Error raised by a database collaborator.

    Attributes:
        code: Numeric server error code, when the backend provides one.
    """

    def __init__(self, message: str, code: int | None = None) -> None:
        self.code = code
        super().__init__(message)


class IndexAlreadyExistsError(StorageError):
    """An index with the same key pattern already exists under another name."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=85)


class NamespaceExistsError(StorageError):
    """The rename target already exists."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=48)


class NamespaceNotFoundError(StorageError):
    """The collection does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=26)


class DuplicateKeyError(StorageError):
    """A document with the same _id already exists."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=11000)


__all__ = [
    "ErrorSeverity",
    "ErrorRecoverability",
    "ErrorClassification",
    "MigrationError",
    "InvalidPhaseTransitionError",
    "TransformationError",
    "SchemaError",
    "MissingFieldError",
    "InvalidTypeError",
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
    "IndexAlreadyExistsError",
    "NamespaceExistsError",
    "NamespaceNotFoundError",
    "DuplicateKeyError",
]
