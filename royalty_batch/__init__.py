"""
royalty_batch -- Concurrent, retried, idempotent batch commits.

Groups validated royalty rows into fixed-size batches and commits them
through the kernel's RoyaltyStore on a bounded worker pool, retrying
transient failures with capped exponential backoff and isolating rows the
store rejects.

Architecture:
    royalty_batch/ is a top-level package.  It imports royalty_kernel only;
    nothing in royalty_kernel imports from royalty_batch.
"""

from royalty_batch.domain.retry import RetryPolicy
from royalty_batch.domain.types import (
    BatchConfig,
    BatchOutcome,
    BatchRow,
    BatchStatus,
    PreparedRow,
    RowFailure,
    WriteBatch,
    WriteReport,
)
from royalty_batch.services.writer import BATCH_WRITE_FAILED, ROW_REJECTED, BatchWriter

__all__ = [
    "BATCH_WRITE_FAILED",
    "ROW_REJECTED",
    "BatchConfig",
    "BatchOutcome",
    "BatchRow",
    "BatchStatus",
    "BatchWriter",
    "PreparedRow",
    "RetryPolicy",
    "RowFailure",
    "WriteBatch",
    "WriteReport",
]
