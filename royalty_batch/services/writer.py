"""
BatchWriter -- bounded-concurrency batch commit with retry and decomposition.

Contract:
    ``write(rows)`` groups rows into batches of ``batch_size`` in input
    order and commits each batch through ``RoyaltyStore.upsert_royalties``
    on a worker pool of ``max_concurrency`` threads.  It always returns a
    WriteReport; row and batch problems are data, never exceptions.

Architecture: royalty_batch/services.  Imports from royalty_batch.domain
    and kernel services only.  Nothing in royalty_kernel imports this.

Invariants enforced:
    - At most ``max_concurrency`` batches are in flight.  The producer
      blocks on a bounded semaphore before forming the next submission,
      so an unbounded source never queues unboundedly.
    - Transient store errors retry the whole batch through RetryPolicy;
      on exhaustion every row fails with BATCH_WRITE_FAILED and sibling
      batches are unaffected.
    - Permanent store errors are never retried as a whole batch: the batch
      is decomposed into single-row writes (each with transient retry) and
      only offending rows fail, with ROW_REJECTED.
    - Each store call is one transaction keyed on the natural key, so a
      retried or re-run batch never duplicates rows.
    - Once cancelled, no new batch starts; in-flight batches finish.
"""

from __future__ import annotations

import contextvars
import threading
import time
from collections.abc import Callable, Iterable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor

from royalty_kernel.domain.dtos import ValidationError
from royalty_kernel.exceptions import PermanentStoreError, TransientStoreError
from royalty_kernel.logging_config import LogContext, get_logger
from royalty_kernel.services.royalty_store import RoyaltyStore

from royalty_batch.domain.retry import RetryPolicy
from royalty_batch.domain.types import (
    BatchConfig,
    BatchOutcome,
    BatchRow,
    BatchStatus,
    PreparedRow,
    RowFailure,
    RowPreparer,
    WriteBatch,
    WriteReport,
)

logger = get_logger("batch.writer")

BATCH_WRITE_FAILED = "BATCH_WRITE_FAILED"
ROW_REJECTED = "ROW_REJECTED"


def _records_as_prepared(rows: Sequence[BatchRow]) -> tuple[list[PreparedRow], list[RowFailure]]:
    """Default preparer: payloads are already RoyaltyRecords."""
    return [PreparedRow(row=row, record=row.payload) for row in rows], []


class BatchWriter:
    """Commits a stream of rows in concurrent, retried, atomic batches.

    Contract:
        - ``preparer`` (optional) runs inside the worker before the write
          and may fail individual rows (e.g. unresolvable tracks).
        - ``on_batch_settled`` is called from the worker thread once per
          batch; exceptions it raises are logged and do not affect writes.

    Non-goals:
        - Does NOT order commits across batches.
        - Does NOT interrupt a batch that is already writing.
    """

    def __init__(
        self,
        store: RoyaltyStore,
        config: BatchConfig | None = None,
        retry_policy: RetryPolicy | None = None,
        preparer: RowPreparer | None = None,
        on_batch_settled: Callable[[BatchOutcome], None] | None = None,
        cancel_event: threading.Event | None = None,
    ):
        self._store = store
        self._config = config or BatchConfig()
        self._retry = retry_policy or RetryPolicy.from_config(self._config)
        self._prepare = preparer or _records_as_prepared
        self._on_batch_settled = on_batch_settled
        self._cancel_event = cancel_event or threading.Event()
        self._outcomes: list[BatchOutcome] = []
        self._lock = threading.Lock()

    @property
    def config(self) -> BatchConfig:
        return self._config

    def _batches(self, rows: Iterable[BatchRow]) -> Iterator[WriteBatch]:
        buffer: list[BatchRow] = []
        index = 0
        for row in rows:
            buffer.append(row)
            if len(buffer) >= self._config.batch_size:
                yield WriteBatch(index=index, rows=tuple(buffer))
                index += 1
                buffer = []
        if buffer:
            yield WriteBatch(index=index, rows=tuple(buffer))

    def write(self, rows: Iterable[BatchRow]) -> WriteReport:
        """Commit every row of `rows`; returns once all batches settle."""
        self._outcomes = []
        semaphore = threading.BoundedSemaphore(self._config.max_concurrency)
        cancelled = False
        submitted = 0
        start = time.monotonic()

        logger.info(
            "batch_write_started",
            extra={"batch_config": self._config.to_dict()},
        )

        with ThreadPoolExecutor(
            max_workers=self._config.max_concurrency,
            thread_name_prefix="royalty-batch",
        ) as pool:
            for batch in self._batches(rows):
                semaphore.acquire()
                if self._cancel_event.is_set():
                    semaphore.release()
                    cancelled = True
                    logger.warning(
                        "batch_write_cancelled",
                        extra={"next_batch_index": batch.index},
                    )
                    break
                submitted += len(batch.rows)
                ctx = contextvars.copy_context()
                future = pool.submit(ctx.run, self._run_batch, batch)
                future.add_done_callback(lambda _f: semaphore.release())

        cancelled = cancelled or self._cancel_event.is_set()
        with self._lock:
            outcomes = tuple(sorted(self._outcomes, key=lambda o: o.batch_index))

        report = WriteReport(
            outcomes=outcomes,
            cancelled=cancelled,
            rows_submitted=submitted,
        )
        logger.info(
            "batch_write_completed",
            extra={
                "batches": len(outcomes),
                "rows_submitted": submitted,
                "committed": report.committed,
                "inserted": report.inserted,
                "failed": len(report.failures),
                "cancelled": cancelled,
                "duration_ms": int((time.monotonic() - start) * 1000),
            },
        )
        return report

    # -- worker side -------------------------------------------------------

    def _run_batch(self, batch: WriteBatch) -> BatchOutcome:
        with LogContext.bind(batch_index=str(batch.index)):
            start = time.monotonic()
            try:
                outcome = self._write_batch(batch, start)
            except Exception as exc:
                # A preparer or store bug must not take sibling batches down.
                logger.exception(
                    "batch_crashed",
                    extra={"rows": len(batch.rows)},
                )
                outcome = self._fail_all(
                    batch,
                    batch.rows,
                    f"unexpected {type(exc).__name__}: {exc}",
                    attempts=0,
                    start=start,
                )
            self._settle(outcome)
            return outcome

    def _write_batch(self, batch: WriteBatch, start: float) -> BatchOutcome:
        prepared, failures = self._prepare(batch.rows)
        errors: list[str] = []
        attempts = 0
        inserted = 0
        committed: list[PreparedRow] = []

        if prepared:
            records = [p.record for p in prepared]

            def attempt() -> int:
                nonlocal attempts
                attempts += 1
                return self._store.upsert_royalties(records)

            try:
                inserted = self._retry.run(attempt, operation=f"batch {batch.index}")
                committed = prepared
            except TransientStoreError as exc:
                message = f"write failed after {attempts} attempts: {exc}"
                errors.append(f"batch {batch.index}: {message}")
                failures.extend(
                    RowFailure(p.row, ValidationError(BATCH_WRITE_FAILED, message))
                    for p in prepared
                )
            except PermanentStoreError as exc:
                errors.append(
                    f"batch {batch.index}: rejected ({exc}); "
                    f"retried {len(prepared)} rows individually"
                )
                logger.warning(
                    "batch_decomposed",
                    extra={"rows": len(prepared), "error": str(exc)},
                )
                committed, inserted, row_failures, row_attempts = self._decompose(prepared)
                failures.extend(row_failures)
                attempts += row_attempts

        return self._outcome(batch, committed, inserted, failures, attempts, errors, start)

    def _decompose(
        self, prepared: Sequence[PreparedRow]
    ) -> tuple[list[PreparedRow], int, list[RowFailure], int]:
        committed: list[PreparedRow] = []
        failures: list[RowFailure] = []
        inserted = 0
        attempts = 0

        for item in prepared:
            def attempt(record=item.record) -> int:
                nonlocal attempts
                attempts += 1
                return self._store.upsert_royalties([record])

            try:
                inserted += self._retry.run(attempt, operation=f"row {item.row.row_index}")
                committed.append(item)
            except PermanentStoreError as exc:
                failures.append(
                    RowFailure(item.row, ValidationError(ROW_REJECTED, f"store rejected row: {exc}"))
                )
            except TransientStoreError as exc:
                failures.append(
                    RowFailure(
                        item.row,
                        ValidationError(BATCH_WRITE_FAILED, f"single-row write failed: {exc}"),
                    )
                )
        return committed, inserted, failures, attempts

    def _fail_all(
        self,
        batch: WriteBatch,
        rows: Sequence[BatchRow],
        message: str,
        attempts: int,
        start: float,
    ) -> BatchOutcome:
        failures = [RowFailure(row, ValidationError(BATCH_WRITE_FAILED, message)) for row in rows]
        return self._outcome(
            batch, [], 0, failures, attempts, [f"batch {batch.index}: {message}"], start
        )

    def _outcome(
        self,
        batch: WriteBatch,
        committed: Sequence[PreparedRow],
        inserted: int,
        failures: Sequence[RowFailure],
        attempts: int,
        errors: Sequence[str],
        start: float,
    ) -> BatchOutcome:
        if not failures:
            status = BatchStatus.COMMITTED
        elif committed:
            status = BatchStatus.PARTIAL
        else:
            status = BatchStatus.FAILED

        outcome = BatchOutcome(
            batch_index=batch.index,
            status=status,
            rows=len(batch.rows),
            committed=len(committed),
            inserted=inserted,
            failures=tuple(sorted(failures, key=lambda f: f.row.row_index)),
            attempts=attempts,
            duration_ms=int((time.monotonic() - start) * 1000),
            errors=tuple(errors),
            quarters=frozenset(
                (p.record.artist_id, *p.record.year_quarter) for p in committed
            ),
        )
        log = logger.info if status == BatchStatus.COMMITTED else logger.warning
        log(
            "batch_settled",
            extra={
                "status": status.value,
                "rows": outcome.rows,
                "committed": outcome.committed,
                "inserted": outcome.inserted,
                "failed": len(outcome.failures),
                "attempts": attempts,
                "duration_ms": outcome.duration_ms,
            },
        )
        return outcome

    def _settle(self, outcome: BatchOutcome) -> None:
        with self._lock:
            self._outcomes.append(outcome)
        if self._on_batch_settled is None:
            return
        try:
            self._on_batch_settled(outcome)
        except Exception:
            logger.warning("batch_callback_failed", exc_info=True)
