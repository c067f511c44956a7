"""
Unit tests for migration phase models.

Tests cover:
- MigrationPhase ordering and live-collection classification
- PhaseStatus transitions
- PhaseLedger sequencing, bookkeeping and snapshot
"""

from datetime import datetime, timezone

import pytest

from shadowswap.exceptions import InvalidPhaseTransitionError
from shadowswap.phases import MigrationPhase, PhaseLedger, PhaseStatus

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestMigrationPhase:
    """Tests for MigrationPhase."""

    def test_order(self):
        assert [p.value for p in MigrationPhase.ordered()] == [
            "pre-flight",
            "backup",
            "shadow-creation",
            "data-transformation",
            "index-optimization",
            "performance-validation",
            "blue-green-switch",
            "post-validation",
            "cleanup",
        ]

    def test_mutates_live_collection(self):
        mutating = {p for p in MigrationPhase if p.mutates_live_collection}
        assert mutating == {
            MigrationPhase.BLUE_GREEN_SWITCH,
            MigrationPhase.POST_VALIDATION,
            MigrationPhase.CLEANUP,
        }


class TestPhaseStatus:
    """Tests for PhaseStatus transitions."""

    @pytest.mark.parametrize(
        "current, target, allowed",
        [
            (PhaseStatus.PENDING, PhaseStatus.RUNNING, True),
            (PhaseStatus.PENDING, PhaseStatus.COMPLETED, False),
            (PhaseStatus.RUNNING, PhaseStatus.COMPLETED, True),
            (PhaseStatus.RUNNING, PhaseStatus.FAILED, True),
            (PhaseStatus.RUNNING, PhaseStatus.PENDING, False),
            (PhaseStatus.COMPLETED, PhaseStatus.RUNNING, False),
            (PhaseStatus.FAILED, PhaseStatus.RUNNING, False),
        ],
    )
    def test_can_transition_to(self, current, target, allowed):
        assert current.can_transition_to(target) is allowed

    def test_is_terminal(self):
        assert PhaseStatus.COMPLETED.is_terminal
        assert PhaseStatus.FAILED.is_terminal
        assert not PhaseStatus.RUNNING.is_terminal


class TestPhaseLedger:
    """Tests for PhaseLedger."""

    def test_all_phases_start_pending(self):
        ledger = PhaseLedger()
        assert all(ledger[p].status == PhaseStatus.PENDING for p in MigrationPhase)
        assert ledger.failed_phase is None
        assert not ledger.all_completed

    def test_complete_records_result(self):
        ledger = PhaseLedger()
        ledger.start(MigrationPhase.PRE_FLIGHT, NOW)
        ledger.complete(MigrationPhase.PRE_FLIGHT, 12.5, {"ready": True})

        record = ledger[MigrationPhase.PRE_FLIGHT]
        assert record.status == PhaseStatus.COMPLETED
        assert record.started_at == NOW
        assert record.duration_ms == 12.5
        assert record.result == {"ready": True}

    def test_phase_cannot_start_before_predecessor_completes(self):
        ledger = PhaseLedger()
        with pytest.raises(InvalidPhaseTransitionError) as exc_info:
            ledger.start(MigrationPhase.BACKUP, NOW)

        assert exc_info.value.phase == MigrationPhase.BACKUP
        assert exc_info.value.target == PhaseStatus.RUNNING

    def test_failed_phase_is_not_revisited(self):
        ledger = PhaseLedger()
        ledger.start(MigrationPhase.PRE_FLIGHT, NOW)
        ledger.fail(MigrationPhase.PRE_FLIGHT, 3.0, {"message": "not ready"})

        assert ledger.failed_phase == MigrationPhase.PRE_FLIGHT
        with pytest.raises(InvalidPhaseTransitionError):
            ledger.start(MigrationPhase.PRE_FLIGHT, NOW)
        with pytest.raises(InvalidPhaseTransitionError):
            ledger.start(MigrationPhase.BACKUP, NOW)

    def test_complete_requires_running(self):
        ledger = PhaseLedger()
        with pytest.raises(InvalidPhaseTransitionError):
            ledger.complete(MigrationPhase.PRE_FLIGHT, 1.0)

    def test_full_run(self):
        ledger = PhaseLedger()
        for phase in MigrationPhase.ordered():
            ledger.start(phase, NOW)
            ledger.complete(phase, 2.0)

        assert ledger.all_completed
        assert ledger.total_duration_ms == 18.0

    def test_snapshot(self):
        ledger = PhaseLedger()
        ledger.start(MigrationPhase.PRE_FLIGHT, NOW)
        ledger.fail(MigrationPhase.PRE_FLIGHT, 1.0, {"message": "boom"})

        snapshot = ledger.snapshot()

        assert list(snapshot) == [p.value for p in MigrationPhase.ordered()]
        assert snapshot["pre-flight"] == {
            "status": "failed",
            "startTime": "2024-06-01T12:00:00+00:00",
            "duration": 1.0,
            "result": None,
            "error": {"message": "boom"},
        }
        assert snapshot["backup"]["status"] == "pending"
