"""
Status aggregation for the final report.

Holds exactly one CapabilityRecord per target, in discovery order. The
header and separator rows of the printed table are produced by the
renderer and never stored, so they can not leak into the structured
export or into record lookups.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from autocapcheck.domain.models import CapabilityRecord, CapabilityStatus

logger = logging.getLogger(__name__)

HEADERS = ("Target", "Status", "Message")


class StatusAggregator:
    """
    Ordered, identity-keyed store of per-target outcomes.

    Usage:
        aggregator = StatusAggregator()
        aggregator.upsert(CapabilityRecord(target="vc01", message="Not processed."))
        aggregator.upsert(CapabilityRecord(target="vc01", status=CapabilityStatus.RESTRICTED))
        print(aggregator.render_table())
    """

    def __init__(self) -> None:
        self._records: dict[str, CapabilityRecord] = {}
        self._lock = threading.Lock()

    def upsert(self, record: CapabilityRecord) -> CapabilityRecord:
        """
        Update the record for a target in place, or append it.

        Args:
            record: Record to store

        Returns:
            The stored record
        """
        with self._lock:
            existing = record.target in self._records
            self._records[record.target] = record
        logger.debug(
            "%s report record: %s -> %s",
            "Updated" if existing else "Added",
            record.target,
            record.status.value,
        )
        return record

    def get(self, target: str) -> CapabilityRecord | None:
        """Return the record for a target, if any."""
        with self._lock:
            return self._records.get(target)

    @property
    def records(self) -> list[CapabilityRecord]:
        """Snapshot of all records in discovery order."""
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def count(self, status: CapabilityStatus) -> int:
        """Number of records with the given status."""
        return sum(1 for r in self.records if r.status is status)

    def rows(self) -> list[tuple[str, str, str]]:
        """Data rows as (target, status, message) tuples."""
        return [(r.target, r.status.value, r.message) for r in self.records]

    def render_table(self) -> str:
        """
        Render the human-readable summary table.

        Three left-aligned columns; the header row and the dashed separator
        row are always present, even with no records.
        """
        rows = self.rows()
        widths = [len(h) for h in HEADERS]
        for row in rows:
            widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

        def line(cells: tuple[str, ...]) -> str:
            return "  ".join(cell.ljust(w) for cell, w in zip(cells, widths)).rstrip()

        lines = [
            line(HEADERS),
            line(tuple("-" * len(h) for h in HEADERS)),
        ]
        lines.extend(line(row) for row in rows)
        return "\n".join(lines)

    def render_structured(self) -> dict[str, Any]:
        """Render the machine-readable report as a nested key-value document."""
        return {"targets": [r.export() for r in self.records]}
