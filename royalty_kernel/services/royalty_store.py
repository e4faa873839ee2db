"""
RoyaltyStore -- the persistence boundary of the ingestion pipeline.

Responsibility:
    Defines the insert/upsert/RPC-style operations the pipeline needs
    (``RoyaltyStore`` protocol) and implements them on SQLAlchemy
    (``SqlRoyaltyStore``) for PostgreSQL in production and SQLite in tests.

Architecture position:
    Kernel > Services -- imperative shell around db/ and models/.

Invariants enforced:
    - Every write method is one transaction (session_scope): a batch of
      royalty lines is either fully visible or not at all.
    - Royalty lines are inserted with ON CONFLICT (natural_key) DO NOTHING;
      tracks with ON CONFLICT (artist_id, resolution_key) DO NOTHING;
      summaries with ON CONFLICT (artist_id, year, quarter) DO UPDATE.
    - Driver errors never leak: they are wrapped as TransientStoreError
      (retry may help) or PermanentStoreError (data problem) at this
      boundary.

Failure modes:
    - TransientStoreError: OperationalError, InterfaceError, pool timeout.
    - PermanentStoreError: IntegrityError, DataError, ProgrammingError,
      statement/bind errors, unsupported dialect.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import date
from typing import Protocol, runtime_checkable
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import (
    DataError,
    IntegrityError,
    InterfaceError,
    NotSupportedError,
    OperationalError,
    ProgrammingError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from royalty_kernel.db.engine import session_scope
from royalty_kernel.domain.clock import Clock, SystemClock
from royalty_kernel.domain.records import (
    Artist,
    ImportRun,
    QuarterlySummary,
    RoyaltyRecord,
    Track,
)
from royalty_kernel.exceptions import (
    PermanentStoreError,
    StoreError,
    TransientStoreError,
)
from royalty_kernel.logging_config import get_logger
from royalty_kernel.models.artist import ArtistModel
from royalty_kernel.models.import_run import ImportRunModel
from royalty_kernel.models.royalty import RoyaltyModel
from royalty_kernel.models.summary import QuarterlySummaryModel
from royalty_kernel.models.track import TrackModel
from royalty_kernel.utils.hashing import canonicalize_json

logger = get_logger("services.royalty_store")

# Rows per INSERT statement; keeps bound parameters under PostgreSQL's limit.
INSERT_CHUNK_SIZE = 1000

_PERMANENT = (IntegrityError, DataError, ProgrammingError, NotSupportedError)
_TRANSIENT = (OperationalError, InterfaceError, PoolTimeoutError)


@runtime_checkable
class RoyaltyStore(Protocol):
    """Operations the pipeline performs against durable storage."""

    def get_artist(self, artist_id: UUID) -> Artist | None: ...

    def get_or_create_track(
        self,
        artist_id: UUID,
        resolution_key: str,
        title: str,
        external_id: str | None = None,
        composer: str | None = None,
    ) -> tuple[Track, bool]: ...

    def upsert_royalties(self, records: Sequence[RoyaltyRecord]) -> int: ...

    def committed_records(
        self, artist_id: UUID, year: int, quarter: int
    ) -> list[RoyaltyRecord]: ...

    def count_royalties(self, artist_id: UUID) -> int: ...

    def save_summary(self, summary: QuarterlySummary) -> None: ...

    def get_summary(
        self, artist_id: UUID, year: int, quarter: int
    ) -> QuarterlySummary | None: ...

    def save_import_run(self, run: ImportRun) -> None: ...


def classify_store_error(operation: str, exc: Exception) -> StoreError:
    """Wrap a driver/ORM exception as transient or permanent."""
    if isinstance(exc, StoreError):
        return exc
    reason = str(getattr(exc, "orig", None) or exc)
    if isinstance(exc, _PERMANENT):
        return PermanentStoreError(operation, reason)
    if isinstance(exc, _TRANSIENT):
        return TransientStoreError(operation, reason)
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return TransientStoreError(operation, reason)
    return PermanentStoreError(operation, reason)


def quarter_bounds(year: int, quarter: int) -> tuple[date, date]:
    """[start, end) dates of a calendar quarter."""
    start = date(year, 3 * (quarter - 1) + 1, 1)
    end = date(year + 1, 1, 1) if quarter == 4 else date(year, 3 * quarter + 1, 1)
    return start, end


class SqlRoyaltyStore:
    """
    SQLAlchemy implementation of RoyaltyStore.

    Contract:
        Safe to share between worker threads: every call opens its own
        session from the factory and closes it before returning.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _insert(session: Session, model):
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(model.__table__)
        if dialect == "sqlite":
            return sqlite.insert(model.__table__)
        raise PermanentStoreError("insert", f"unsupported dialect: {dialect}")

    # -- reference data ----------------------------------------------------

    def create_artist(self, name: str, artist_id: UUID | None = None) -> Artist:
        """Register an artist (administration helper, not used by ingestion)."""
        try:
            with session_scope(self._session_factory) as session:
                model = ArtistModel(
                    id=artist_id or uuid4(),
                    name=name,
                    created_at=self._clock.now(),
                )
                session.add(model)
                session.flush()
                return model.to_dto()
        except SQLAlchemyError as exc:
            raise classify_store_error("create_artist", exc) from exc

    def get_artist(self, artist_id: UUID) -> Artist | None:
        try:
            with session_scope(self._session_factory) as session:
                model = session.get(ArtistModel, artist_id)
                return model.to_dto() if model is not None else None
        except SQLAlchemyError as exc:
            raise classify_store_error("get_artist", exc) from exc

    def get_or_create_track(
        self,
        artist_id: UUID,
        resolution_key: str,
        title: str,
        external_id: str | None = None,
        composer: str | None = None,
    ) -> tuple[Track, bool]:
        """
        Return the track for (artist, resolution_key), creating it if absent.

        Returns:
            (track, created) -- created is False when another writer (or an
            earlier run) already owned the key.
        """
        try:
            with session_scope(self._session_factory) as session:
                stmt = (
                    self._insert(session, TrackModel)
                    .values(
                        id=uuid4(),
                        artist_id=artist_id,
                        title=title,
                        resolution_key=resolution_key,
                        external_id=external_id,
                        composer=composer,
                        created_at=self._clock.now(),
                    )
                    .on_conflict_do_nothing(index_elements=["artist_id", "resolution_key"])
                )
                created = session.execute(stmt).rowcount == 1
                model = session.execute(
                    select(TrackModel).where(
                        TrackModel.artist_id == artist_id,
                        TrackModel.resolution_key == resolution_key,
                    )
                ).scalar_one()
                return model.to_dto(), created
        except SQLAlchemyError as exc:
            raise classify_store_error("get_or_create_track", exc) from exc

    # -- royalty lines -----------------------------------------------------

    def upsert_royalties(self, records: Sequence[RoyaltyRecord]) -> int:
        """
        Insert `records` in one transaction, skipping natural-key duplicates.

        Returns:
            Number of net-new rows (0 when every record already existed).
        """
        if not records:
            return 0
        now = self._clock.now()
        rows = [RoyaltyModel.values_from(record, now) for record in records]
        inserted = 0
        try:
            with session_scope(self._session_factory) as session:
                for start in range(0, len(rows), INSERT_CHUNK_SIZE):
                    chunk = rows[start:start + INSERT_CHUNK_SIZE]
                    stmt = (
                        self._insert(session, RoyaltyModel)
                        .values(chunk)
                        .on_conflict_do_nothing(index_elements=["natural_key"])
                    )
                    inserted += max(session.execute(stmt).rowcount, 0)
        except SQLAlchemyError as exc:
            raise classify_store_error("upsert_royalties", exc) from exc
        return inserted

    def committed_records(
        self, artist_id: UUID, year: int, quarter: int
    ) -> list[RoyaltyRecord]:
        """Committed lines for one artist-quarter, ordered by natural key."""
        start, end = quarter_bounds(year, quarter)
        try:
            with session_scope(self._session_factory) as session:
                models = session.execute(
                    select(RoyaltyModel)
                    .where(
                        RoyaltyModel.artist_id == artist_id,
                        RoyaltyModel.usage_date >= start,
                        RoyaltyModel.usage_date < end,
                    )
                    .order_by(RoyaltyModel.natural_key)
                ).scalars().all()
                return [model.to_dto() for model in models]
        except SQLAlchemyError as exc:
            raise classify_store_error("committed_records", exc) from exc

    def count_royalties(self, artist_id: UUID) -> int:
        try:
            with session_scope(self._session_factory) as session:
                return session.execute(
                    select(func.count())
                    .select_from(RoyaltyModel)
                    .where(RoyaltyModel.artist_id == artist_id)
                ).scalar_one()
        except SQLAlchemyError as exc:
            raise classify_store_error("count_royalties", exc) from exc

    # -- summaries -----------------------------------------------------------

    def save_summary(self, summary: QuarterlySummary) -> None:
        """Upsert `summary` on (artist, year, quarter), replacing prior values."""
        values = {
            "artist_id": summary.artist_id,
            "year": summary.year,
            "quarter": summary.quarter,
            "currency": summary.currency,
            "total_gross": summary.total_gross,
            "total_net": summary.total_net,
            "total_usage": summary.total_usage,
            "distinct_tracks": summary.distinct_tracks,
            "record_count": summary.record_count,
            "payload": canonicalize_json(summary.to_payload()),
            "checksum": summary.checksum,
            "computed_at": self._clock.now(),
        }
        try:
            with session_scope(self._session_factory) as session:
                stmt = self._insert(session, QuarterlySummaryModel).values(
                    id=uuid4(), **values
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["artist_id", "year", "quarter"],
                    set_={
                        key: stmt.excluded[key]
                        for key in values
                        if key not in ("artist_id", "year", "quarter")
                    },
                )
                session.execute(stmt)
        except SQLAlchemyError as exc:
            raise classify_store_error("save_summary", exc) from exc

    def get_summary(
        self, artist_id: UUID, year: int, quarter: int
    ) -> QuarterlySummary | None:
        try:
            with session_scope(self._session_factory) as session:
                model = session.execute(
                    select(QuarterlySummaryModel).where(
                        QuarterlySummaryModel.artist_id == artist_id,
                        QuarterlySummaryModel.year == year,
                        QuarterlySummaryModel.quarter == quarter,
                    )
                ).scalar_one_or_none()
                if model is None:
                    return None
                return QuarterlySummary.from_payload(
                    json.loads(model.payload), checksum=model.checksum
                )
        except SQLAlchemyError as exc:
            raise classify_store_error("get_summary", exc) from exc

    # -- run ledger ------------------------------------------------------------

    def save_import_run(self, run: ImportRun) -> None:
        try:
            with session_scope(self._session_factory) as session:
                session.add(ImportRunModel.from_dto(run))
        except SQLAlchemyError as exc:
            raise classify_store_error("save_import_run", exc) from exc

    def get_import_run(self, run_id: UUID) -> ImportRun | None:
        try:
            with session_scope(self._session_factory) as session:
                model = session.get(ImportRunModel, run_id)
                return model.to_dto() if model is not None else None
        except SQLAlchemyError as exc:
            raise classify_store_error("get_import_run", exc) from exc
