"""
JSON report files written by a migration run.

Every report has a fixed name under the report directory, so operators and
deploy tooling always know where to look. Reports are encoded with
``bson.json_util`` so document identifiers of any BSON type serialize.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from bson import json_util

logger = logging.getLogger(__name__)

FINAL_REPORT = "migration-final-report.json"
FAILURE_REPORT = "migration-failure-report.json"
VERIFICATION_REPORT = "data-integrity-verification-report.json"
OPTIMIZATION_REPORT = "index-optimization-report.json"

OPERATIONAL_RECOMMENDATIONS: tuple[str, ...] = (
    "Monitor application performance for 24 hours",
    "Run performance tests in the production environment",
    "Keep backups for at least 30 days",
    "Update documentation with the new schema",
    "Schedule monthly index maintenance",
)


class ReportWriter:
    """
    Writes report files.

    Args:
        report_dir: Directory receiving the reports; created on first write
    """

    def __init__(self, report_dir: str | Path = ".") -> None:
        self.report_dir = Path(report_dir)

    def path_for(self, name: str) -> Path:
        return self.report_dir / name

    def write(self, name: str, report: Mapping[str, Any]) -> Path:
        """
        Write one report.

        Raises:
            OSError: If the file cannot be written
        """
        path = self.path_for(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json_util.dumps(report, json_options=json_util.RELAXED_JSON_OPTIONS, indent=2),
            "utf-8",
        )
        logger.info("Report written to %s", path)
        return path

    def write_final_report(self, report: Mapping[str, Any]) -> Path:
        return self.write(FINAL_REPORT, report)

    def write_failure_report(self, report: Mapping[str, Any]) -> Path:
        return self.write(FAILURE_REPORT, report)

    def write_verification_report(self, report: Mapping[str, Any]) -> Path:
        return self.write(VERIFICATION_REPORT, report)

    def write_optimization_report(self, report: Mapping[str, Any]) -> Path:
        return self.write(OPTIMIZATION_REPORT, report)

    def read(self, name: str) -> dict[str, Any]:
        return json_util.loads(self.path_for(name).read_text("utf-8"))


__all__ = [
    "FINAL_REPORT",
    "FAILURE_REPORT",
    "VERIFICATION_REPORT",
    "OPTIMIZATION_REPORT",
    "OPERATIONAL_RECOMMENDATIONS",
    "ReportWriter",
]
