"""
TrackResolver -- map statement lines to canonical tracks.

Contract:
    ``resolution_key(row)`` is ``isrc:<normalized external id>`` when the
    line carries one, else ``title:<casefolded, whitespace-collapsed
    title>``.  Keys are scoped by artist.

    The resolver doubles as the BatchWriter row preparer: called inside a
    worker with a batch of BatchRow(payload=ValidRow), it returns one
    PreparedRow per resolvable line and one RowFailure per line whose
    track could not be resolved (when ``require_track`` is set).

Invariants:
    - Each key is resolved against the store at most once per run; the
      per-run arena answers every later lookup.
    - A per-key lock serialises concurrent resolution of the same key, so
      two workers never both create it.  The store's unique
      (artist_id, resolution_key) constraint backs this up across runs.

Failure modes:
    - TrackResolutionError when the store fails (transient errors are
      retried first).  With ``require_track`` the affected rows fail with
      TRACK_RESOLUTION_FAILED; without it they commit with a null track.
"""

from __future__ import annotations

import re
import threading
from collections.abc import Sequence
from uuid import UUID

from royalty_batch.domain.retry import RetryPolicy
from royalty_batch.domain.types import BatchRow, PreparedRow, RowFailure
from royalty_kernel.domain.dtos import ValidationError
from royalty_kernel.domain.records import RoyaltyRecord, Track
from royalty_kernel.exceptions import StoreError, TrackResolutionError
from royalty_kernel.logging_config import get_logger
from royalty_kernel.services.royalty_store import RoyaltyStore
from royalty_kernel.utils.hashing import compute_natural_key

from royalty_ingestion.domain.types import FailureReason, ValidRow

logger = get_logger("ingestion.tracks")

_WHITESPACE = re.compile(r"\s+")
_ID_SEPARATORS = re.compile(r"[\s\-.]")


def normalize_external_id(external_id: str) -> str:
    return _ID_SEPARATORS.sub("", external_id).upper()


def normalize_title(title: str) -> str:
    return _WHITESPACE.sub(" ", title).strip().casefold()


def resolution_key(row: ValidRow) -> str:
    if row.external_id:
        normalized = normalize_external_id(row.external_id)
        if normalized:
            return f"isrc:{normalized}"
    return f"title:{normalize_title(row.title)}"


class TrackResolver:
    """Per-run, thread-safe track resolution and record building."""

    def __init__(
        self,
        store: RoyaltyStore,
        artist_id: UUID,
        require_track: bool = True,
        retry_policy: RetryPolicy | None = None,
    ):
        self._store = store
        self._artist_id = artist_id
        self._require_track = require_track
        self._retry = retry_policy or RetryPolicy(max_retries=0)
        self._arena: dict[str, Track] = {}
        self._key_locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self.tracks_created = 0
        self.tracks_existing = 0

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def resolve(self, row: ValidRow) -> Track:
        """
        Raises:
            TrackResolutionError: the store could not resolve or create it.
        """
        key = resolution_key(row)
        track = self._arena.get(key)
        if track is not None:
            return track

        with self._lock_for(key):
            track = self._arena.get(key)
            if track is not None:
                return track
            try:
                track, created = self._retry.run(
                    lambda: self._store.get_or_create_track(
                        self._artist_id,
                        key,
                        row.title,
                        external_id=row.external_id,
                        composer=row.composer,
                    ),
                    operation=f"track {key}",
                )
            except StoreError as exc:
                logger.warning(
                    "track_resolution_failed",
                    extra={"resolution_key": key, "error": str(exc)},
                )
                raise TrackResolutionError(key, str(exc)) from exc

            with self._guard:
                self._arena[key] = track
                if created:
                    self.tracks_created += 1
                else:
                    self.tracks_existing += 1
            logger.debug(
                "track_resolved",
                extra={"resolution_key": key, "track_id": str(track.id), "created": created},
            )
            return track

    def build_record(self, row: ValidRow, track: Track | None) -> RoyaltyRecord:
        key = resolution_key(row)
        return RoyaltyRecord(
            artist_id=self._artist_id,
            track_id=track.id if track is not None else None,
            track_title=row.title,
            platform=row.platform,
            territory=row.territory,
            usage_date=row.usage_date,
            usage_count=row.usage_count,
            gross=row.gross,
            admin_percent=row.admin_percent,
            net=row.net,
            source_checksum=row.checksum,
            natural_key=compute_natural_key(
                self._artist_id,
                key,
                row.platform,
                row.territory,
                row.usage_date,
                row.checksum,
            ),
            source_row=row.source_row,
        )

    def __call__(
        self, rows: Sequence[BatchRow]
    ) -> tuple[list[PreparedRow], list[RowFailure]]:
        prepared: list[PreparedRow] = []
        failures: list[RowFailure] = []
        for batch_row in rows:
            row: ValidRow = batch_row.payload
            try:
                track: Track | None = self.resolve(row)
            except TrackResolutionError as exc:
                if self._require_track:
                    failures.append(
                        RowFailure(
                            batch_row,
                            ValidationError(
                                code=FailureReason.TRACK_RESOLUTION_FAILED.value,
                                message=exc.reason,
                                field="title",
                            ),
                        )
                    )
                    continue
                track = None
            prepared.append(PreparedRow(row=batch_row, record=self.build_record(row, track)))
        return prepared, failures
