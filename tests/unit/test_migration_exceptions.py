"""
Unit tests for the migration exception hierarchy.

Tests cover:
- Classification enums
- MigrationError formatting and serialization
- Per-type classifications and PhaseFailedError delegation
- StorageError codes
"""

import logging

import pytest

from shadowswap.exceptions import (
    BackupError,
    BackupVerificationError,
    CriticalRollbackFailure,
    DuplicateKeyError,
    ErrorRecoverability,
    ErrorSeverity,
    IndexAlreadyExistsError,
    InvalidTypeError,
    MigrationError,
    MissingFieldError,
    NamespaceExistsError,
    NamespaceNotFoundError,
    PhaseFailedError,
    SchemaError,
    StorageError,
    SwitchError,
    TransformationError,
    TransformationThresholdError,
)
from shadowswap.phases import MigrationPhase


class TestClassificationEnums:
    """Tests for ErrorSeverity and ErrorRecoverability."""

    def test_severity_log_levels(self):
        assert ErrorSeverity.CRITICAL.log_level == logging.CRITICAL
        assert ErrorSeverity.WARNING.log_level == logging.WARNING

    def test_recoverability_values(self):
        assert [r.value for r in ErrorRecoverability] == ["recoverable", "transient", "fatal"]


class TestMigrationError:
    """Tests for the base exception."""

    def test_str_includes_phase_and_context(self):
        error = MigrationError("boom", phase=MigrationPhase.BACKUP, path="/tmp/x", extra=None)
        assert str(error) == "boom phase=backup path=/tmp/x"

    def test_to_dict(self):
        error = BackupError("disk full", phase=MigrationPhase.BACKUP, path="/var/backups")

        data = error.to_dict()

        assert data["message"] == "disk full"
        assert data["phase"] == "backup"
        assert data["error_code"] == "BACKUP_FAILED"
        assert data["context"] == {"path": "/var/backups"}
        assert data["classification"]["recoverability"] == "transient"

    def test_suggested_action_override(self):
        error = BackupError("disk full", suggested_action="Free some space")
        assert error.suggested_action == "Free some space"
        assert error.to_dict()["classification"]["suggested_action"] != "Free some space"

    def test_context_values_are_jsonable(self):
        error = MigrationError("boom", phase=None, names=("a", "b"), phase_enum=MigrationPhase.CLEANUP)
        assert error.to_dict()["context"] == {"names": ["a", "b"], "phase_enum": str(MigrationPhase.CLEANUP)}


class TestSpecificErrors:
    """Tests for individual exception types."""

    def test_transformation_error(self):
        error = TransformationError("no price", document_id="prod-0001")
        assert error.document_id == "prod-0001"
        assert error.severity == ErrorSeverity.WARNING

    def test_schema_errors(self):
        missing = MissingFieldError("pricing", document_id="p1")
        invalid = InvalidTypeError("pricing.price", "positive number", -1)

        assert isinstance(missing, SchemaError)
        assert missing.field == "pricing"
        assert missing.error_code == "SCHEMA_MISSING_FIELD"
        assert "expected positive number" in invalid.message

    def test_threshold_error_message(self):
        error = TransformationThresholdError(66.7, 95.0, failed=10)
        assert error.message == "Transformation success rate 66.7% is below the required 95.0%"
        assert error.context == {"failed": 10}

    def test_backup_verification_error(self):
        error = BackupVerificationError(30, 29, path="/b.json")
        assert isinstance(error, BackupError)
        assert error.expected_count == 30
        assert error.context["path"] == "/b.json"

    def test_switch_error_is_transient(self):
        error = SwitchError("rename failed", rollback_performed=True)
        assert error.rollback_performed is True
        assert error.recoverability == ErrorRecoverability.TRANSIENT

    def test_critical_rollback_failure(self):
        error = CriticalRollbackFailure("rename failed", backup_collection="products_backup_1")
        assert error.severity == ErrorSeverity.CRITICAL
        assert error.recoverability == ErrorRecoverability.FATAL
        assert error.backup_collection == "products_backup_1"


class TestPhaseFailedError:
    """Tests for PhaseFailedError classification delegation."""

    def test_delegates_to_migration_error_cause(self):
        cause = SwitchError("rename failed")
        error = PhaseFailedError(MigrationPhase.BLUE_GREEN_SWITCH, cause)

        assert error.cause is cause
        assert error.error_code == "SWITCH_FAILED"
        assert error.message == "Phase blue-green-switch failed: rename failed rollback_performed=False"

    def test_other_causes_use_default(self):
        error = PhaseFailedError(MigrationPhase.BACKUP, OSError("disk"))
        assert error.error_code == "MIGRATION_ERROR"
        assert error.phase == MigrationPhase.BACKUP


class TestStorageErrors:
    """Tests for storage error codes."""

    @pytest.mark.parametrize(
        "error_type, code",
        [
            (IndexAlreadyExistsError, 85),
            (NamespaceExistsError, 48),
            (NamespaceNotFoundError, 26),
            (DuplicateKeyError, 11000),
        ],
    )
    def test_codes(self, error_type, code):
        error = error_type("boom")
        assert isinstance(error, StorageError)
        assert error.code == code

    def test_storage_errors_are_not_migration_errors(self):
        assert not isinstance(StorageError("boom"), MigrationError)
