"""
Phase models for the migration state machine.

Models in this module:

Enums:
    - MigrationPhase: The nine sequential phases of a migration run
    - PhaseStatus: Lifecycle status of a single phase

Core Models:
    - PhaseRecord: Ledger entry for one phase
    - PhaseLedger: Ordered ledger of all phases of a run
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from shadowswap.exceptions import InvalidPhaseTransitionError


class MigrationPhase(Enum):
    """
    Migration phases, in execution order.

    Phases run strictly sequentially; no phase starts before its
    predecessor completes.

    Attributes:
        PRE_FLIGHT: Readiness checks against the source collection.
        BACKUP: Dump of the source collection to a JSON artifact.
        SHADOW_CREATION: Drop of any stale shadow collection.
        DATA_TRANSFORMATION: Batched transform of every source document.
        INDEX_OPTIMIZATION: Index build on the shadow collection.
        PERFORMANCE_VALIDATION: Critical query latency gate.
        BLUE_GREEN_SWITCH: Rename-based cutover.
        POST_VALIDATION: Integrity verification of the live collection.
        CLEANUP: Final report.
    """

    PRE_FLIGHT = "pre-flight"
    BACKUP = "backup"
    SHADOW_CREATION = "shadow-creation"
    DATA_TRANSFORMATION = "data-transformation"
    INDEX_OPTIMIZATION = "index-optimization"
    PERFORMANCE_VALIDATION = "performance-validation"
    BLUE_GREEN_SWITCH = "blue-green-switch"
    POST_VALIDATION = "post-validation"
    CLEANUP = "cleanup"

    @property
    def mutates_live_collection(self) -> bool:
        """
        Check if a failure in this phase may leave the live collection changed.

        Phases before the switch only touch the shadow collection and the
        backup artifact.

        Returns:
            True for the switch and every phase after it.
        """
        return _PHASE_ORDER.index(self) >= _PHASE_ORDER.index(MigrationPhase.BLUE_GREEN_SWITCH)

    @classmethod
    def ordered(cls) -> list[MigrationPhase]:
        """Return all phases in execution order."""
        return list(_PHASE_ORDER)


_PHASE_ORDER: tuple[MigrationPhase, ...] = (
    MigrationPhase.PRE_FLIGHT,
    MigrationPhase.BACKUP,
    MigrationPhase.SHADOW_CREATION,
    MigrationPhase.DATA_TRANSFORMATION,
    MigrationPhase.INDEX_OPTIMIZATION,
    MigrationPhase.PERFORMANCE_VALIDATION,
    MigrationPhase.BLUE_GREEN_SWITCH,
    MigrationPhase.POST_VALIDATION,
    MigrationPhase.CLEANUP,
)


class PhaseStatus(Enum):
    """
    Lifecycle status of a single phase.

    State machine transitions:
        PENDING -> RUNNING -> COMPLETED
                          \\-> FAILED
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """COMPLETED and FAILED are never revisited."""
        return self in (PhaseStatus.COMPLETED, PhaseStatus.FAILED)

    def can_transition_to(self, target: PhaseStatus) -> bool:
        """
        Check if transition to target status is valid.

        Args:
            target: The target status.

        Returns:
            True if the transition is valid.
        """
        if self.is_terminal:
            return False
        if self == PhaseStatus.PENDING:
            return target == PhaseStatus.RUNNING
        return target in (PhaseStatus.COMPLETED, PhaseStatus.FAILED)


@dataclass
class PhaseRecord:
    """
    Ledger entry for one migration phase.

    Attributes:
        phase: The phase this record tracks.
        status: Current lifecycle status.
        started_at: When the phase entered RUNNING.
        duration_ms: Wall-clock duration, set when the phase is terminal.
        result: Summary of the phase output on success.
        error: Serialized error on failure.
    """

    phase: MigrationPhase
    status: PhaseStatus = PhaseStatus.PENDING
    started_at: datetime | None = None
    duration_ms: float | None = None
    result: dict[str, Any] | None = None
    error: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "status": self.status.value,
            "startTime": self.started_at.isoformat() if self.started_at else None,
            "duration": self.duration_ms,
            "result": self.result,
            "error": self.error,
        }


@dataclass
class PhaseLedger:
    """
    Ordered ledger of every phase of one migration run.

    All records are created PENDING. The ledger belongs to a single
    orchestrator run and is exposed read-only through ``snapshot()``.
    """

    records: dict[MigrationPhase, PhaseRecord] = field(
        default_factory=lambda: {phase: PhaseRecord(phase) for phase in _PHASE_ORDER}
    )

    def __getitem__(self, phase: MigrationPhase) -> PhaseRecord:
        return self.records[phase]

    def start(self, phase: MigrationPhase, now: datetime) -> None:
        record = self._transition(phase, PhaseStatus.RUNNING)
        record.started_at = now

    def complete(
        self,
        phase: MigrationPhase,
        duration_ms: float,
        result: dict[str, Any] | None = None,
    ) -> None:
        record = self._transition(phase, PhaseStatus.COMPLETED)
        record.duration_ms = duration_ms
        record.result = result

    def fail(self, phase: MigrationPhase, duration_ms: float, error: dict[str, Any]) -> None:
        record = self._transition(phase, PhaseStatus.FAILED)
        record.duration_ms = duration_ms
        record.error = error

    def _transition(self, phase: MigrationPhase, target: PhaseStatus) -> PhaseRecord:
        record = self.records[phase]
        if not record.status.can_transition_to(target):
            raise InvalidPhaseTransitionError(phase, record.status, target)
        index = _PHASE_ORDER.index(phase)
        if target == PhaseStatus.RUNNING and index > 0:
            previous = self.records[_PHASE_ORDER[index - 1]]
            if previous.status != PhaseStatus.COMPLETED:
                raise InvalidPhaseTransitionError(phase, record.status, target)
        record.status = target
        return record

    @property
    def failed_phase(self) -> MigrationPhase | None:
        for phase, record in self.records.items():
            if record.status == PhaseStatus.FAILED:
                return phase
        return None

    @property
    def all_completed(self) -> bool:
        return all(r.status == PhaseStatus.COMPLETED for r in self.records.values())

    @property
    def total_duration_ms(self) -> float:
        return sum(r.duration_ms or 0.0 for r in self.records.values())

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Return the ledger as a dictionary keyed by phase name."""
        return {phase.value: record.to_dict() for phase, record in self.records.items()}


__all__ = [
    "MigrationPhase",
    "PhaseStatus",
    "PhaseRecord",
    "PhaseLedger",
]
