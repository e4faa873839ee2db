"""
royalty_batch.domain.types -- Pure frozen dataclasses for the batch writer.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.

Invariants enforced:
    - BatchConfig numeric fields are >= 1 (backoff durations > 0, cap >= base);
      violations raise InvalidBatchConfigError at construction.
    - BatchOutcome.committed + len(failures) == rows for every settled batch.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any
from uuid import UUID

from royalty_kernel.domain.dtos import ValidationError
from royalty_kernel.domain.records import RoyaltyRecord
from royalty_kernel.exceptions import InvalidBatchConfigError


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class BatchConfig:
    """Per-run tuning of the batch writer.

    Absent fields fall back to these defaults.
    """

    batch_size: int = 500
    max_concurrency: int = 3
    retry_attempts: int = 3  # retries after the first attempt
    backoff_base: float = 1.0  # seconds
    backoff_cap: float = 30.0  # seconds

    def __post_init__(self) -> None:
        for name in ("batch_size", "max_concurrency", "retry_attempts"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidBatchConfigError(name, value, "must be an integer")
            if value < 1:
                raise InvalidBatchConfigError(name, value, "must be >= 1")
        for name in ("backoff_base", "backoff_cap"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidBatchConfigError(name, value, "must be a number of seconds")
            if value <= 0:
                raise InvalidBatchConfigError(name, value, "must be > 0")
        if self.backoff_cap < self.backoff_base:
            raise InvalidBatchConfigError(
                "backoff_cap", self.backoff_cap, "must be >= backoff_base"
            )

    @classmethod
    def from_overrides(
        cls,
        overrides: Mapping[str, Any] | None,
        base: BatchConfig | None = None,
    ) -> BatchConfig:
        """`base` (or defaults) with the non-None entries of `overrides` applied.

        Unknown keys are rejected rather than silently ignored.
        """
        base = base or cls()
        if not overrides:
            return base
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise InvalidBatchConfigError(unknown[0], overrides[unknown[0]], "unknown field")
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(base, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# =============================================================================
# Status enums
# =============================================================================


class BatchStatus(str, Enum):
    """Settled state of one write batch."""

    COMMITTED = "committed"  # Every row durable
    PARTIAL = "partial"  # Some rows durable, some failed
    FAILED = "failed"  # No row durable


# =============================================================================
# Row / batch DTOs
# =============================================================================


@dataclass(frozen=True)
class BatchRow:
    """One row handed to the writer.

    ``payload`` is a RoyaltyRecord, or anything the writer's row preparer
    turns into one (the ingestion pipeline passes validated rows).
    """

    row_index: int  # 1-indexed source row
    payload: Any


@dataclass(frozen=True)
class PreparedRow:
    row: BatchRow
    record: RoyaltyRecord


@dataclass(frozen=True)
class RowFailure:
    """A row the writer (or its preparer) could not commit."""

    row: BatchRow
    error: ValidationError


@dataclass(frozen=True)
class WriteBatch:
    index: int  # 0-indexed, input order
    rows: tuple[BatchRow, ...]


RowPreparer = Callable[
    [Sequence[BatchRow]], tuple[list[PreparedRow], list[RowFailure]]
]


@dataclass(frozen=True)
class BatchOutcome:
    """Immutable result of settling one batch."""

    batch_index: int
    status: BatchStatus
    rows: int
    committed: int  # rows durably present (new or pre-existing)
    inserted: int  # net-new rows
    failures: tuple[RowFailure, ...] = ()
    attempts: int = 0
    duration_ms: int = 0
    errors: tuple[str, ...] = ()
    quarters: frozenset[tuple[UUID, int, int]] = frozenset()


@dataclass(frozen=True)
class WriteReport:
    """Everything the writer did for one stream of rows.

    ``outcomes`` is ordered by batch index; ``failures`` by row index.
    """

    outcomes: tuple[BatchOutcome, ...]
    cancelled: bool = False
    rows_submitted: int = 0

    @property
    def committed(self) -> int:
        return sum(o.committed for o in self.outcomes)

    @property
    def inserted(self) -> int:
        return sum(o.inserted for o in self.outcomes)

    @property
    def failures(self) -> tuple[RowFailure, ...]:
        items = [f for o in self.outcomes for f in o.failures]
        return tuple(sorted(items, key=lambda f: f.row.row_index))

    @property
    def errors(self) -> tuple[str, ...]:
        return tuple(e for o in self.outcomes for e in o.errors)

    @property
    def quarters(self) -> frozenset[tuple[UUID, int, int]]:
        result: set[tuple[UUID, int, int]] = set()
        for outcome in self.outcomes:
            result |= outcome.quarters
        return frozenset(result)
