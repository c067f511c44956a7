"""
Unit tests for ReportWriter.
"""

from datetime import datetime, timezone

from bson import ObjectId

from shadowswap.reports import (
    FAILURE_REPORT,
    FINAL_REPORT,
    OPTIMIZATION_REPORT,
    VERIFICATION_REPORT,
    ReportWriter,
)


class TestReportWriter:
    """Tests for ReportWriter."""

    def test_fixed_names(self, tmp_path):
        writer = ReportWriter(tmp_path)
        assert writer.write_final_report({}) == tmp_path / FINAL_REPORT
        assert writer.write_failure_report({}) == tmp_path / FAILURE_REPORT
        assert writer.write_verification_report({}) == tmp_path / VERIFICATION_REPORT
        assert writer.write_optimization_report({}) == tmp_path / OPTIMIZATION_REPORT

    def test_creates_directory(self, tmp_path):
        writer = ReportWriter(tmp_path / "nested" / "reports")
        path = writer.write("custom.json", {"ok": True})
        assert path.exists()
        assert writer.read("custom.json") == {"ok": True}

    def test_bson_values_serialize(self, tmp_path):
        writer = ReportWriter(tmp_path)
        oid = ObjectId()
        writer.write_failure_report(
            {
                "failures": [{"productId": oid}],
                "timestamp": datetime(2024, 6, 1, tzinfo=timezone.utc),
            }
        )

        report = writer.read(FAILURE_REPORT)

        assert report["failures"][0]["productId"] == oid
        assert isinstance(report["timestamp"], datetime)

    def test_overwrites_previous_report(self, tmp_path):
        writer = ReportWriter(tmp_path)
        writer.write_final_report({"run": 1})
        writer.write_final_report({"run": 2})
        assert writer.read(FINAL_REPORT) == {"run": 2}
