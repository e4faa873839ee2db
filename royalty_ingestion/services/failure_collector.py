"""
FailureCollector -- thread-safe accumulator of rows that were not committed.

Rows fail in three places: parsing (caller thread), track resolution and
batch writes (worker threads).  They all land here and come out in input
order, regardless of which batch settled first.
"""

from __future__ import annotations

import csv
import io
import threading
from collections.abc import Iterable, Sequence

from royalty_batch.domain.types import RowFailure
from royalty_kernel.logging_config import get_logger

from royalty_ingestion.domain.types import FailedRow, ValidRow

logger = get_logger("ingestion.failures")

FAILURE_REASON_COLUMN = "failure_reason"


class FailureCollector:
    def __init__(self) -> None:
        self._rows: list[FailedRow] = []
        self._lock = threading.Lock()

    def add(self, row: FailedRow) -> None:
        with self._lock:
            self._rows.append(row)

    def add_write_failures(self, failures: Iterable[RowFailure]) -> None:
        """Record failures reported by the batch writer or its preparer."""
        rows = []
        for failure in failures:
            payload = failure.row.payload
            raw = payload.raw if isinstance(payload, ValidRow) else {}
            rows.append(
                FailedRow(
                    source_row=failure.row.row_index,
                    raw=raw,
                    reasons=(failure.error,),
                )
            )
        with self._lock:
            self._rows.extend(rows)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)

    def failures(self) -> tuple[FailedRow, ...]:
        """Every failed row, ordered by source row."""
        with self._lock:
            rows = list(self._rows)
        return tuple(sorted(rows, key=lambda r: r.source_row))

    def to_csv(self, headers: Sequence[str]) -> str:
        """
        Failure report: the original columns in header order, then
        ``failure_reason``.  Deterministic for a given set of failures.
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow([*headers, FAILURE_REASON_COLUMN])
        for row in self.failures():
            writer.writerow([*(row.raw.get(h, "") for h in headers), row.reason_text])
        return buffer.getvalue()

    def report(self, headers: Sequence[str]) -> tuple[str | None, str | None]:
        """
        ``(csv, warning)``.  Never raises: a serialisation problem is logged
        and returned as the warning, with no report.  No failures, no report.
        """
        if not len(self):
            return None, None
        try:
            return self.to_csv(headers), None
        except Exception as exc:
            logger.exception("failure_report_failed", extra={"failed_rows": len(self)})
            return None, f"failure report could not be written: {exc}"
