"""
Report export.

Writes the structured report as JSON, and optionally as an Excel
workbook with a styled header and status-colored rows.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from autocapcheck.application.status_aggregator import HEADERS, StatusAggregator
from autocapcheck.domain.models import CapabilityStatus, RunMode

logger = logging.getLogger(__name__)

REPORT_PREFIX = "capability_report"


# ============================================================================
# Styles
# ============================================================================

class Colors:
    """Workbook palette (hex codes without #)."""
    HEADER_BG = "203764"
    HEADER_TEXT = "FFFFFF"
    PASS_BG = "C6EFCE"
    PASS_TEXT = "006100"
    FAIL_BG = "FFC7CE"
    FAIL_TEXT = "9C0006"
    WARN_BG = "FFEB9C"
    WARN_TEXT = "9C5700"
    INFO_BG = "BDD7EE"
    INFO_TEXT = "1F4E79"
    MUTED_BG = "F2F2F2"
    MUTED_TEXT = "595959"


def _fill(color: str) -> PatternFill:
    return PatternFill(start_color=color, end_color=color, fill_type="solid")


HEADER_FONT = Font(name="Segoe UI", size=11, bold=True, color=Colors.HEADER_TEXT)
HEADER_FILL = _fill(Colors.HEADER_BG)
DATA_FONT = Font(name="Segoe UI", size=10)
THIN_BORDER = Border(
    left=Side(style="thin", color="B4B4B4"),
    right=Side(style="thin", color="B4B4B4"),
    top=Side(style="thin", color="B4B4B4"),
    bottom=Side(style="thin", color="B4B4B4"),
)

# (fill color, text color) per status
STATUS_STYLES: dict[CapabilityStatus, tuple[str, str]] = {
    CapabilityStatus.UNRESTRICTED: (Colors.PASS_BG, Colors.PASS_TEXT),
    CapabilityStatus.RESTRICTED: (Colors.INFO_BG, Colors.INFO_TEXT),
    CapabilityStatus.UNSUPPORTED: (Colors.WARN_BG, Colors.WARN_TEXT),
    CapabilityStatus.FAILED: (Colors.FAIL_BG, Colors.FAIL_TEXT),
    CapabilityStatus.NOT_UPDATED: (Colors.MUTED_BG, Colors.MUTED_TEXT),
}

COLUMN_WIDTHS = (45, 16, 90)


# ============================================================================
# Export
# ============================================================================

class ReportExporter:
    """
    Writes report files into the output directory.

    Usage:
        exporter = ReportExporter(Path("output"))
        json_path = exporter.export_json(aggregator, RunMode.ORCHESTRATED)
        xlsx_path = exporter.export_xlsx(aggregator)
    """

    def __init__(self, output_dir: Path, timestamp: datetime | None = None):
        self.output_dir = Path(output_dir)
        self.timestamp = timestamp or datetime.now(timezone.utc)

    def _path(self, suffix: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        stamp = self.timestamp.strftime("%Y%m%d_%H%M%S")
        return self.output_dir / f"{REPORT_PREFIX}_{stamp}.{suffix}"

    def build_document(self, aggregator: StatusAggregator, mode: RunMode) -> dict:
        """Structured report plus run metadata."""
        document = {
            "generated_at": self.timestamp.isoformat(),
            "mode": mode.value,
        }
        document.update(aggregator.render_structured())
        return document

    def export_json(self, aggregator: StatusAggregator, mode: RunMode) -> Path:
        """Write the structured report as JSON and return its path."""
        path = self._path("json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.build_document(aggregator, mode), f, indent=2, ensure_ascii=False)
        logger.info("Report written to %s", path)
        return path

    def export_xlsx(self, aggregator: StatusAggregator) -> Path:
        """Write the report as an Excel workbook and return its path."""
        path = self._path("xlsx")
        wb = Workbook()
        ws = wb.active
        ws.title = "Capability"

        for col, header in enumerate(HEADERS, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            cell.border = THIN_BORDER
            cell.alignment = Alignment(horizontal="center", vertical="center")

        for row_idx, record in enumerate(aggregator.records, start=2):
            bg, fg = STATUS_STYLES[record.status]
            values = (record.target, record.status.value, record.message)
            for col, value in enumerate(values, start=1):
                cell = ws.cell(row=row_idx, column=col, value=value)
                cell.font = DATA_FONT
                cell.border = THIN_BORDER
                cell.alignment = Alignment(vertical="center", wrap_text=(col == 3))
            status_cell = ws.cell(row=row_idx, column=2)
            status_cell.fill = _fill(bg)
            status_cell.font = Font(name="Segoe UI", size=10, bold=True, color=fg)

        for col, width in enumerate(COLUMN_WIDTHS, start=1):
            ws.column_dimensions[get_column_letter(col)].width = width
        ws.freeze_panes = "A2"
        if aggregator.records:
            ws.auto_filter.ref = f"A1:C{len(aggregator.records) + 1}"

        wb.save(path)
        logger.info("Workbook written to %s", path)
        return path
