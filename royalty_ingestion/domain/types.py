"""
Ingestion domain types.

Pure DTOs for the royalty statement pipeline: frozen dataclasses with enum
status fields and tuples for immutable collections.  Each parsed row is
either a ValidRow or a FailedRow (``ParsedRow``); failures carry explicit
reason codes, never ad hoc strings.

Architecture: royalty_ingestion/domain.  ZERO I/O.  Imports only from
royalty_kernel/domain/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Union
from uuid import UUID

from royalty_kernel.domain.dtos import ValidationError
from royalty_kernel.domain.records import QuarterlySummary
from royalty_kernel.domain.values import Money, Percentage


class FailureReason(str, Enum):
    """Why a row was not committed."""

    MISSING_FIELD = "MISSING_FIELD"
    INVALID_DATE = "INVALID_DATE"
    INVALID_NUMBER = "INVALID_NUMBER"
    NEGATIVE_AMOUNT = "NEGATIVE_AMOUNT"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    MALFORMED_ROW = "MALFORMED_ROW"
    TRACK_RESOLUTION_FAILED = "TRACK_RESOLUTION_FAILED"
    BATCH_WRITE_FAILED = "BATCH_WRITE_FAILED"
    ROW_REJECTED = "ROW_REJECTED"


class PipelineState(str, Enum):
    """Run lifecycle. Transitions are strictly forward."""

    IDLE = "idle"
    DOWNLOADING = "downloading"
    PARSING = "parsing"
    WRITING = "writing"
    AGGREGATING = "aggregating"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ValidRow:
    """A statement line that passed every field check."""

    source_row: int  # 1-indexed data row
    raw: dict[str, str]
    title: str
    platform: str
    territory: str
    usage_date: date
    usage_count: int
    gross: Money
    admin_percent: Percentage
    net: Money
    checksum: str
    external_id: str | None = None
    composer: str | None = None
    # Net as printed on the statement; informational only
    stated_net: Decimal | None = None

    @property
    def is_valid(self) -> bool:
        return True


@dataclass(frozen=True)
class FailedRow:
    """A statement line that will not be committed, with every reason found."""

    source_row: int
    raw: dict[str, str]
    reasons: tuple[ValidationError, ...]

    @property
    def is_valid(self) -> bool:
        return False

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(r.code for r in self.reasons)

    @property
    def reason_text(self) -> str:
        return "; ".join(r.describe() for r in self.reasons)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_row": self.source_row,
            "reasons": [
                {"code": r.code, "message": r.message, "field": r.field}
                for r in self.reasons
            ],
        }


ParsedRow = Union[ValidRow, FailedRow]


@dataclass(frozen=True)
class ProcessingProgress:
    """Snapshot emitted after every settled batch."""

    run_id: UUID
    state: PipelineState
    rows_read: int
    rows_committed: int
    rows_failed: int
    batches_settled: int
    elapsed_ms: int


@dataclass(frozen=True)
class ProcessingResult:
    """Immutable outcome of one pipeline run.

    ``success`` is True only when no row failed and the run ran to the end.
    Committed rows stay durable either way.
    """

    success: bool
    run_id: UUID
    artist_id: UUID
    rows_read: int
    rows_committed: int
    rows_inserted: int
    rows_failed: int
    failed_rows: tuple[FailedRow, ...] = ()
    elapsed_ms: int = 0
    errors: tuple[str, ...] = ()
    tracks_created: int = 0
    tracks_existing: int = 0
    batches: int = 0
    summaries: tuple[QuarterlySummary, ...] = ()
    failure_report_csv: str | None = None
    cancelled: bool = False
    final_state: PipelineState = PipelineState.DONE

    def to_dict(self, include_rows: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "run_id": str(self.run_id),
            "artist_id": str(self.artist_id),
            "rows_read": self.rows_read,
            "rows_committed": self.rows_committed,
            "rows_inserted": self.rows_inserted,
            "rows_failed": self.rows_failed,
            "elapsed_ms": self.elapsed_ms,
            "errors": list(self.errors),
            "tracks_created": self.tracks_created,
            "tracks_existing": self.tracks_existing,
            "batches": self.batches,
            "cancelled": self.cancelled,
            "final_state": self.final_state.value,
            "summaries": [
                {
                    "period": s.period,
                    "total_gross": s.total_gross,
                    "total_net": s.total_net,
                    "total_usage": s.total_usage,
                    "record_count": s.record_count,
                    "checksum": s.checksum,
                }
                for s in self.summaries
            ],
        }
        if include_rows:
            data["failed_rows"] = [row.to_dict() for row in self.failed_rows]
        return data
