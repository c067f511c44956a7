"""
Configuration for migration runs.

Configuration:
    - MigrationConfig: Collections, batch size and safety thresholds
    - IntegrityThresholds: Numeric bars used by the integrity verifier

Values come from keyword arguments, a dictionary (``from_dict``) or the
process environment (``from_env``). The CLI loads a ``.env`` file before
calling ``from_env``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})

# Environment variable -> MigrationConfig field
ENV_VARIABLES: dict[str, str] = {
    "MONGODB_URI": "database_url",
    "MONGODB_DATABASE": "database_name",
    "MIGRATION_SOURCE_COLLECTION": "source_collection",
    "MIGRATION_SHADOW_COLLECTION": "shadow_collection",
    "MIGRATION_TARGET_COLLECTION": "target_collection",
    "MIGRATION_BATCH_SIZE": "batch_size",
    "MIGRATION_PERFORMANCE_TARGET_MS": "performance_target_ms",
    "MIGRATION_MIN_SUCCESS_RATE": "min_success_rate",
    "MIGRATION_MAX_DOWNTIME_MS": "max_downtime_ms",
    "MIGRATION_MAX_PERFORMANCE_DEGRADATION_MS": "max_performance_degradation_ms",
    "MIGRATION_BACKUP_DIR": "backup_dir",
    "MIGRATION_REPORT_DIR": "report_dir",
    "MIGRATION_ROLLBACK_ON_POST_VALIDATION_FAILURE": "rollback_on_post_validation_failure",
}


@dataclass(frozen=True)
class MigrationConfig:
    """
    Configuration for one migration run.

    Attributes:
        database_url: MongoDB connection string.
        database_name: Database to migrate; None uses the URL's default database.
        source_collection: Collection holding the legacy documents.
        shadow_collection: Collection receiving transformed documents.
        target_collection: Name the shadow collection is switched to.
        batch_size: Documents transformed and inserted per batch.
        performance_target_ms: Global latency budget applied to every query.
        min_success_rate: Minimum transformation success rate in percent.
        max_downtime_ms: Switch duration above which a warning is recorded.
        max_performance_degradation_ms: Allowed catalog latency increase over
            the pre-flight baseline before a warning issue is recorded.
        backup_dir: Directory for JSON backup artifacts.
        report_dir: Directory for JSON reports.
        rollback_on_post_validation_failure: Revert the switch when the
            live collection fails integrity verification.
    """

    database_url: str = "mongodb://localhost:27017"
    database_name: str | None = None
    source_collection: str = "products"
    shadow_collection: str = "products_v2_shadow"
    target_collection: str = "products"
    batch_size: int = 25
    performance_target_ms: float = 300.0
    min_success_rate: float = 95.0
    max_downtime_ms: float = 5000.0
    max_performance_degradation_ms: float = 50.0
    backup_dir: str = "backups"
    report_dir: str = "."
    rollback_on_post_validation_failure: bool = False

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not self.source_collection:
            raise ValueError("source_collection must not be empty")
        if not self.target_collection:
            raise ValueError("target_collection must not be empty")
        if not self.shadow_collection:
            raise ValueError("shadow_collection must not be empty")
        if self.shadow_collection in (self.source_collection, self.target_collection):
            raise ValueError(
                f"shadow_collection must differ from source and target, got {self.shadow_collection}"
            )
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.performance_target_ms <= 0:
            raise ValueError(
                f"performance_target_ms must be positive, got {self.performance_target_ms}"
            )
        if not 0.0 <= self.min_success_rate <= 100.0:
            raise ValueError(
                f"min_success_rate must be between 0 and 100, got {self.min_success_rate}"
            )
        if self.max_downtime_ms < 0:
            raise ValueError(f"max_downtime_ms must be >= 0, got {self.max_downtime_ms}")
        if self.max_performance_degradation_ms < 0:
            raise ValueError(
                "max_performance_degradation_ms must be >= 0, "
                f"got {self.max_performance_degradation_ms}"
            )

    @property
    def backup_path(self) -> Path:
        return Path(self.backup_dir)

    @property
    def report_path(self) -> Path:
        return Path(self.report_dir)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        # Credentials may be embedded in the connection string
        data.pop("database_url")
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MigrationConfig:
        """
        Create from a dictionary, coercing string values to field types.

        Unknown keys are ignored.
        """
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            if f.name in data and data[f.name] is not None:
                kwargs[f.name] = _coerce(f.name, data[f.name])
        return cls(**kwargs)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> MigrationConfig:
        """
        Create from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.
            **overrides: Values taking precedence over the environment;
                None values are ignored.

        Returns:
            MigrationConfig instance
        """
        source = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        for variable, name in ENV_VARIABLES.items():
            value = source.get(variable)
            if value is not None and value != "":
                data[name] = value
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(data)


_INT_FIELDS = frozenset({"batch_size"})
_FLOAT_FIELDS = frozenset(
    {
        "performance_target_ms",
        "min_success_rate",
        "max_downtime_ms",
        "max_performance_degradation_ms",
    }
)
_BOOL_FIELDS = frozenset({"rollback_on_post_validation_failure"})


def _coerce(name: str, value: Any) -> Any:
    if name in _INT_FIELDS:
        return int(value)
    if name in _FLOAT_FIELDS:
        return float(value)
    if name in _BOOL_FIELDS:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        raise ValueError(f"{name} must be a boolean, got {value!r}")
    return str(value)


@dataclass(frozen=True)
class IntegrityThresholds:
    """
    Numeric bars applied by the integrity verifier.

    Rates are percentages. Sample sizes bound how many documents each check
    reads.
    """

    min_count_ratio: float = 95.0
    min_core_field_match: float = 98.0
    min_material_specs_presence: float = 95.0
    min_carat_accuracy: float = 90.0
    min_pricing_accuracy: float = 98.0
    min_inventory_validity: float = 95.0
    min_query_compliance: float = 80.0
    core_field_sample: int = 50
    structure_sample: int = 20
    material_sample: int = 100
    carat_sample: int = 50
    pricing_sample: int = 50
    inventory_sample: int = 100
    readiness_sample: int = 100
    value_tolerance: float = 0.01
    max_price: float = 100_000.0
    max_carat: float = 20.0

    def __post_init__(self) -> None:
        for name in (
            "min_count_ratio",
            "min_core_field_match",
            "min_material_specs_presence",
            "min_carat_accuracy",
            "min_pricing_accuracy",
            "min_inventory_validity",
            "min_query_compliance",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 100.0:
                raise ValueError(f"{name} must be between 0 and 100, got {value}")
        for name in (
            "core_field_sample",
            "structure_sample",
            "material_sample",
            "carat_sample",
            "pricing_sample",
            "inventory_sample",
            "readiness_sample",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")


__all__ = [
    "ENV_VARIABLES",
    "MigrationConfig",
    "IntegrityThresholds",
]
