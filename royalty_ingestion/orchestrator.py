"""
RoyaltyPipeline -- one statement file in, committed records and summaries out.

Contract:
    ``process_royalties(artist_id, storage_path, ...)`` streams the object at
    `storage_path` through parse -> resolve -> batch write -> aggregate and
    returns an immutable ProcessingResult.  Row-level and batch-level
    problems are reported in the result; only run-level conditions raise.

State machine:
    IDLE -> DOWNLOADING -> PARSING -> WRITING -> AGGREGATING -> DONE
    Any non-terminal state may move to FAILED.  Transitions are strictly
    forward; anything else raises PipelineStateError.

Failure modes (raised, nothing written):
    - InvalidRequestError: blank or malformed artist_id / storage_path.
    - InvalidBatchConfigError: batch overrides out of range.
    - ArtistNotFoundError: unknown artist.
    - SourceUnreadableError: the object cannot be opened, or has no header.
    - MissingColumnsError: required columns are absent.
    The last two move the run to FAILED and write a failed ImportRun entry
    first.

Cancellation:
    Setting `cancel_event` stops the parser taking rows and the writer
    starting batches.  In-flight batches finish, committed quarters are
    summarized, and the result carries ``cancelled=True``.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterator, Mapping
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from royalty_batch.domain.retry import RetryPolicy
from royalty_batch.domain.types import BatchConfig, BatchOutcome, BatchRow, WriteReport
from royalty_batch.services.writer import BatchWriter
from royalty_config import get_active_config
from royalty_config.schema import PipelineConfig
from royalty_kernel.domain.clock import Clock, SystemClock
from royalty_kernel.domain.records import ImportRun, ImportRunStatus
from royalty_kernel.exceptions import (
    ArtistNotFoundError,
    InvalidRequestError,
    PipelineStateError,
    SourceError,
    SourceStreamError,
    StoreError,
)
from royalty_kernel.logging_config import LogContext, get_logger
from royalty_kernel.services.cache_service import CacheService
from royalty_kernel.services.royalty_store import RoyaltyStore

from royalty_ingestion.adapters.storage import ObjectStorage
from royalty_ingestion.domain.types import (
    PipelineState,
    ProcessingProgress,
    ProcessingResult,
)
from royalty_ingestion.services.failure_collector import FailureCollector
from royalty_ingestion.services.row_parser import ParsedSource, RowParser
from royalty_ingestion.services.summary_aggregator import SummaryAggregator
from royalty_ingestion.services.track_resolver import TrackResolver

logger = get_logger("ingestion.pipeline")

ProgressCallback = Callable[[ProcessingProgress], None]

_FORWARD_ORDER = (
    PipelineState.IDLE,
    PipelineState.DOWNLOADING,
    PipelineState.PARSING,
    PipelineState.WRITING,
    PipelineState.AGGREGATING,
    PipelineState.DONE,
)
_TERMINAL = frozenset({PipelineState.DONE, PipelineState.FAILED})


class PipelineRun:
    """Lifecycle of one run.  Not shared between threads."""

    def __init__(self, run_id: UUID):
        self.run_id = run_id
        self.state = PipelineState.IDLE

    def transition(self, target: PipelineState) -> None:
        current = self.state
        if current in _TERMINAL:
            raise PipelineStateError(current.value, target.value)
        if target != PipelineState.FAILED and (
            _FORWARD_ORDER.index(target) <= _FORWARD_ORDER.index(current)
        ):
            raise PipelineStateError(current.value, target.value)
        self.state = target
        logger.info(
            "pipeline_state_changed",
            extra={"from_state": current.value, "to_state": target.value},
        )


def _parse_artist_id(artist_id: UUID | str | None) -> UUID:
    if isinstance(artist_id, UUID):
        return artist_id
    if not isinstance(artist_id, str) or not artist_id.strip():
        raise InvalidRequestError("artist_id", "is required")
    try:
        return UUID(artist_id.strip())
    except ValueError as e:
        raise InvalidRequestError("artist_id", f"not a UUID: {artist_id!r}") from e


def _check_storage_path(storage_path: str | None) -> str:
    if not isinstance(storage_path, str) or not storage_path.strip():
        raise InvalidRequestError("storage_path", "is required")
    return storage_path.strip()


class RoyaltyPipeline:
    """
    Runs royalty statement ingestion for one artist at a time.

    Collaborators are injected: the store, the object storage, the
    process-wide CacheService and a Clock.  ``retry_sleep`` is the backoff
    sleep, replaceable in tests.
    """

    def __init__(
        self,
        store: RoyaltyStore,
        storage: ObjectStorage,
        config: PipelineConfig | None = None,
        cache: CacheService | None = None,
        clock: Clock | None = None,
        retry_sleep: Callable[[float], None] = time.sleep,
    ):
        self._store = store
        self._storage = storage
        self._config = config or get_active_config()
        self._cache = cache or CacheService(
            default_ttl=self._config.cache.artist_ttl_seconds,
            max_entries=self._config.cache.max_entries,
        )
        self._clock = clock or SystemClock()
        self._retry_sleep = retry_sleep
        self._parser = RowParser(self._config.ingestion)

    @property
    def config(self) -> PipelineConfig:
        return self._config

    def _resolve_batch_config(
        self, batch_config: BatchConfig | Mapping[str, Any] | None
    ) -> BatchConfig:
        if isinstance(batch_config, BatchConfig):
            return batch_config
        return BatchConfig.from_overrides(batch_config, base=self._config.batch)

    def _require_artist(self, artist_id: UUID) -> None:
        artist = self._cache.get_or_refresh(
            ("artist", artist_id),
            lambda: self._store.get_artist(artist_id),
            ttl=self._config.cache.artist_ttl_seconds,
        )
        if artist is None:
            raise ArtistNotFoundError(str(artist_id))

    def process_royalties(
        self,
        artist_id: UUID | str,
        storage_path: str,
        batch_config: BatchConfig | Mapping[str, Any] | None = None,
        cancel_event: threading.Event | None = None,
        on_progress: ProgressCallback | None = None,
        correlation_id: str | None = None,
    ) -> ProcessingResult:
        artist_uuid = _parse_artist_id(artist_id)
        storage_path = _check_storage_path(storage_path)
        config = self._resolve_batch_config(batch_config)
        self._require_artist(artist_uuid)

        run = PipelineRun(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id or str(run.run_id),
            run_id=str(run.run_id),
            artist_id=str(artist_uuid),
        ):
            return self._run(
                run,
                artist_uuid,
                storage_path,
                config,
                cancel_event or threading.Event(),
                on_progress,
            )

    def _run(
        self,
        run: PipelineRun,
        artist_id: UUID,
        storage_path: str,
        config: BatchConfig,
        cancel_event: threading.Event,
        on_progress: ProgressCallback | None,
    ) -> ProcessingResult:
        started_at = self._clock.now()
        start = time.monotonic()
        logger.info(
            "pipeline_started",
            extra={"storage_path": storage_path, "batch_config": config.to_dict()},
        )

        run.transition(PipelineState.DOWNLOADING)
        try:
            stream = self._storage.open(artist_id, storage_path)
        except SourceError as exc:
            self._fail(run, artist_id, storage_path, started_at, exc)
            raise

        with stream:
            run.transition(PipelineState.PARSING)
            try:
                source = self._parser.open(stream, storage_path)
            except SourceError as exc:
                self._fail(run, artist_id, storage_path, started_at, exc)
                raise

            errors: list[str] = []
            collector = FailureCollector()
            retry = RetryPolicy.from_config(config, sleep=self._retry_sleep)
            resolver = TrackResolver(
                self._store,
                artist_id,
                require_track=self._config.ingestion.require_track,
                retry_policy=retry,
            )
            tracker = _ProgressTracker(run, source, collector, start, on_progress)
            writer = BatchWriter(
                self._store,
                config=config,
                retry_policy=retry,
                preparer=resolver,
                on_batch_settled=tracker.batch_settled,
                cancel_event=cancel_event,
            )

            run.transition(PipelineState.WRITING)
            stream_errors: list[SourceStreamError] = []
            report = writer.write(
                self._batch_rows(source, collector, cancel_event, stream_errors)
            )
            errors.extend(
                f"source stream failed after row {e.source_row}: {e.reason}"
                for e in stream_errors
            )
            errors.extend(report.errors)

        run.transition(PipelineState.AGGREGATING)
        aggregator = SummaryAggregator(
            self._store,
            self._config.aggregation,
            currency=self._parser.currency,
        )
        summaries, warnings = aggregator.aggregate(report.quarters)
        errors.extend(warnings)

        report_csv, report_warning = collector.report(source.headers)
        if report_warning:
            errors.append(report_warning)

        failed_rows = collector.failures()
        cancelled = report.cancelled or cancel_event.is_set()
        run.transition(PipelineState.DONE)

        result = ProcessingResult(
            success=not failed_rows and not cancelled and not stream_errors,
            run_id=run.run_id,
            artist_id=artist_id,
            rows_read=source.rows_read,
            rows_committed=report.committed,
            rows_inserted=report.inserted,
            rows_failed=len(failed_rows),
            failed_rows=failed_rows,
            elapsed_ms=int((time.monotonic() - start) * 1000),
            errors=tuple(errors),
            tracks_created=resolver.tracks_created,
            tracks_existing=resolver.tracks_existing,
            batches=len(report.outcomes),
            summaries=summaries,
            failure_report_csv=report_csv,
            cancelled=cancelled,
            final_state=run.state,
        )
        self._record_run(result, storage_path, started_at, report)
        logger.info(
            "pipeline_completed",
            extra={
                "success": result.success,
                "rows_read": result.rows_read,
                "rows_committed": result.rows_committed,
                "rows_inserted": result.rows_inserted,
                "rows_failed": result.rows_failed,
                "batches": result.batches,
                "cancelled": result.cancelled,
                "elapsed_ms": result.elapsed_ms,
            },
        )
        return result

    def _batch_rows(
        self,
        source: ParsedSource,
        collector: FailureCollector,
        cancel_event: threading.Event,
        stream_errors: list[SourceStreamError],
    ) -> Iterator[BatchRow]:
        """Valid rows for the writer; failed rows go straight to the collector."""
        try:
            for parsed in source:
                if cancel_event.is_set():
                    logger.warning("parsing_cancelled", extra={"rows_read": source.rows_read})
                    return
                if parsed.is_valid:
                    yield BatchRow(row_index=parsed.source_row, payload=parsed)
                else:
                    collector.add(parsed)
        except SourceStreamError as exc:
            stream_errors.append(exc)

    def _fail(
        self,
        run: PipelineRun,
        artist_id: UUID,
        storage_path: str,
        started_at: datetime,
        exc: Exception,
    ) -> None:
        run.transition(PipelineState.FAILED)
        logger.error(
            "pipeline_failed",
            extra={"error_code": getattr(exc, "code", None), "error": str(exc)},
        )
        ledger = ImportRun(
            id=run.run_id,
            artist_id=artist_id,
            storage_path=storage_path,
            status=ImportRunStatus.FAILED,
            rows_read=0,
            rows_committed=0,
            rows_inserted=0,
            rows_failed=0,
            started_at=started_at,
            completed_at=self._clock.now(),
            error_text=str(exc),
        )
        self._save_ledger(ledger)

    def _record_run(
        self,
        result: ProcessingResult,
        storage_path: str,
        started_at: datetime,
        report: WriteReport,
    ) -> None:
        ledger = ImportRun(
            id=result.run_id,
            artist_id=result.artist_id,
            storage_path=storage_path,
            status=ImportRunStatus.DONE,
            rows_read=result.rows_read,
            rows_committed=report.committed,
            rows_inserted=report.inserted,
            rows_failed=result.rows_failed,
            started_at=started_at,
            completed_at=self._clock.now(),
            cancelled=result.cancelled,
            error_text="\n".join(result.errors) or None,
        )
        self._save_ledger(ledger)

    def _save_ledger(self, ledger: ImportRun) -> None:
        try:
            self._store.save_import_run(ledger)
        except StoreError as exc:
            logger.warning("import_run_not_saved", extra={"error": str(exc)})


class _ProgressTracker:
    """Turns settled batches into ProcessingProgress snapshots (worker threads)."""

    def __init__(
        self,
        run: PipelineRun,
        source: ParsedSource,
        collector: FailureCollector,
        start: float,
        on_progress: ProgressCallback | None,
    ):
        self._run = run
        self._source = source
        self._collector = collector
        self._start = start
        self._on_progress = on_progress
        self._lock = threading.Lock()
        self._committed = 0
        self._batches = 0

    def batch_settled(self, outcome: BatchOutcome) -> None:
        self._collector.add_write_failures(outcome.failures)
        with self._lock:
            self._committed += outcome.committed
            self._batches += 1
            snapshot = ProcessingProgress(
                run_id=self._run.run_id,
                state=self._run.state,
                rows_read=self._source.rows_read,
                rows_committed=self._committed,
                rows_failed=len(self._collector),
                batches_settled=self._batches,
                elapsed_ms=int((time.monotonic() - self._start) * 1000),
            )
        if self._on_progress is not None:
            self._on_progress(snapshot)
