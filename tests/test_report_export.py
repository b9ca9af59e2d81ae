"""
Tests for report export and local precondition checks.
"""

import json
from datetime import datetime, timezone

import pytest
from openpyxl import load_workbook

from autocapcheck.application.status_aggregator import StatusAggregator
from autocapcheck.domain.errors import PreconditionError
from autocapcheck.domain.models import CapabilityRecord, CapabilityStatus, ErrorClass, RunMode
from autocapcheck.domain.settings import RunSettings
from autocapcheck.infrastructure.prereq_check import require_prerequisites, run_checks
from autocapcheck.infrastructure.report_export import ReportExporter

STAMP = datetime(2026, 3, 1, 12, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def aggregator():
    agg = StatusAggregator()
    agg.upsert(CapabilityRecord(target="vc-a", status=CapabilityStatus.UNRESTRICTED, message="located"))
    agg.upsert(CapabilityRecord(target="vc-b", status=CapabilityStatus.FAILED, message="boom",
                                error_class=ErrorClass.TASK))
    return agg


class TestReportExporter:
    """Test JSON and workbook export."""

    def test_json_document(self, tmp_path, aggregator):
        path = ReportExporter(tmp_path, STAMP).export_json(aggregator, RunMode.DIRECT)
        assert path.name == "capability_report_20260301_123000.json"
        document = json.loads(path.read_text(encoding="utf-8"))
        assert document["mode"] == "direct"
        assert document["targets"] == [
            {"target": "vc-a", "status": "Unrestricted", "message": "located"},
            {"target": "vc-b", "status": "Failed", "message": "boom"},
        ]

    def test_xlsx_workbook(self, tmp_path, aggregator):
        path = ReportExporter(tmp_path / "out", STAMP).export_xlsx(aggregator)
        ws = load_workbook(path).active
        assert [c.value for c in ws[1]] == ["Target", "Status", "Message"]
        assert [c.value for c in ws[3]] == ["vc-b", "Failed", "boom"]
        assert ws.max_row == 3

    def test_empty_report(self, tmp_path):
        path = ReportExporter(tmp_path, STAMP).export_json(StatusAggregator(), RunMode.ORCHESTRATED)
        assert json.loads(path.read_text(encoding="utf-8"))["targets"] == []


class TestPreconditions:
    """Test the local precondition check."""

    def test_all_met(self, tmp_path):
        results = require_prerequisites(RunSettings(output_dir=str(tmp_path / "reports")))
        assert all(r.ok for r in results)
        assert (tmp_path / "reports").is_dir()

    def test_missing_ca_bundle(self, tmp_path):
        settings = RunSettings(output_dir=str(tmp_path), ca_bundle=str(tmp_path / "missing.pem"))
        failed = [r for r in run_checks(settings) if not r.ok]
        assert [r.name for r in failed] == ["CA bundle"]
        with pytest.raises(PreconditionError):
            require_prerequisites(settings)

    def test_output_dir_is_a_file(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(PreconditionError):
            require_prerequisites(RunSettings(output_dir=str(blocker)))
