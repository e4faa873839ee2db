"""
SqlRoyaltyStore against SQLite: idempotent inserts, exact decimals, track
get-or-create, summary upsert, run ledger and driver error classification.
"""

from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import DataError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from royalty_kernel.db.engine import session_scope
from royalty_kernel.domain.records import (
    BreakdownEntry,
    ImportRun,
    ImportRunStatus,
    PaidStatus,
    QuarterlySummary,
    RoyaltyRecord,
    TrackSummary,
)
from royalty_kernel.domain.values import Money, Percentage
from royalty_kernel.exceptions import (
    ImmutabilityViolationError,
    PermanentStoreError,
    TransientStoreError,
)
from royalty_kernel.models.royalty import RoyaltyModel
from royalty_kernel.models.summary import QuarterlySummaryModel
from royalty_kernel.services.royalty_store import (
    RoyaltyStore,
    classify_store_error,
    quarter_bounds,
)
from royalty_kernel.utils.hashing import compute_natural_key, hash_source_row


def make_record(
    artist_id,
    source_row: int = 1,
    gross: str = "100.00",
    admin: str = "20",
    usage_date: date = date(2024, 1, 15),
    platform: str = "Spotify",
    track_id=None,
) -> RoyaltyRecord:
    checksum = hash_source_row(source_row, {"row": str(source_row)})
    gross_money = Money.of(gross, "USD")
    pct = Percentage.of(admin)
    return RoyaltyRecord(
        artist_id=artist_id,
        track_id=track_id,
        track_title="Song A",
        platform=platform,
        territory="US",
        usage_date=usage_date,
        usage_count=10,
        gross=gross_money,
        admin_percent=pct,
        net=gross_money.net_of(pct),
        source_checksum=checksum,
        natural_key=compute_natural_key(
            artist_id, "title:song a", platform, "US", usage_date, checksum
        ),
        source_row=source_row,
    )


def make_summary(artist_id, total_net: str = "80.00") -> QuarterlySummary:
    return QuarterlySummary(
        artist_id=artist_id,
        year=2024,
        quarter=1,
        currency="USD",
        total_gross=Decimal("100.00"),
        total_net=Decimal(total_net),
        total_usage=10,
        distinct_tracks=1,
        record_count=1,
        avg_net_per_use=Decimal("8.000000"),
        top_platform="Spotify",
        top_territory="US",
        checksum="c" * 64,
    )


class TestProtocol:
    def test_sql_store_satisfies_protocol(self, store):
        assert isinstance(store, RoyaltyStore)


class TestArtists:
    def test_create_and_get(self, store):
        artist = store.create_artist("Ana")
        assert store.get_artist(artist.id) == artist

    def test_unknown_artist_is_none(self, store):
        assert store.get_artist(uuid4()) is None


class TestTracks:
    def test_get_or_create_is_idempotent(self, store, artist):
        first, created = store.get_or_create_track(
            artist.id, "isrc:USRC17607839", "Song A", external_id="US-RC1-76-07839"
        )
        second, created_again = store.get_or_create_track(
            artist.id, "isrc:USRC17607839", "Different Title"
        )
        assert created is True
        assert created_again is False
        assert second.id == first.id
        assert second.title == "Song A"

    def test_same_key_for_other_artist_is_separate(self, store, artist):
        other = store.create_artist("Other")
        a, _ = store.get_or_create_track(artist.id, "title:song a", "Song A")
        b, created = store.get_or_create_track(other.id, "title:song a", "Song A")
        assert created is True
        assert a.id != b.id


class TestUpsertRoyalties:
    def test_insert_counts_new_rows(self, store, artist):
        records = [make_record(artist.id, source_row=i) for i in range(1, 4)]
        assert store.upsert_royalties(records) == 3
        assert store.count_royalties(artist.id) == 3

    def test_reinsert_is_noop(self, store, artist):
        records = [make_record(artist.id, source_row=i) for i in range(1, 4)]
        store.upsert_royalties(records)
        # Fresh ids, same natural keys
        again = [make_record(artist.id, source_row=i) for i in range(1, 4)]
        assert store.upsert_royalties(again) == 0
        assert store.count_royalties(artist.id) == 3

    def test_partial_overlap(self, store, artist):
        store.upsert_royalties([make_record(artist.id, source_row=1)])
        inserted = store.upsert_royalties(
            [make_record(artist.id, source_row=1), make_record(artist.id, source_row=2)]
        )
        assert inserted == 1

    def test_empty_is_zero(self, store):
        assert store.upsert_royalties([]) == 0

    def test_amounts_round_trip_exactly(self, store, artist):
        record = make_record(artist.id, gross="999999999.99", admin="33.33")
        store.upsert_royalties([record])
        (loaded,) = store.committed_records(artist.id, 2024, 1)
        assert loaded.gross.amount == Decimal("999999999.99")
        assert loaded.net.amount == record.net.amount
        assert loaded.admin_percent.value == Decimal("33.33")
        assert loaded.paid_status == PaidStatus.UNPAID

    def test_unknown_artist_is_permanent(self, store):
        with pytest.raises(PermanentStoreError):
            store.upsert_royalties([make_record(uuid4())])


class TestCommittedRecords:
    def test_filters_by_quarter_and_orders_by_natural_key(self, store, artist):
        records = [
            make_record(artist.id, source_row=1, usage_date=date(2024, 1, 1)),
            make_record(artist.id, source_row=2, usage_date=date(2024, 3, 31)),
            make_record(artist.id, source_row=3, usage_date=date(2024, 4, 1)),
        ]
        store.upsert_royalties(records)

        q1 = store.committed_records(artist.id, 2024, 1)
        q2 = store.committed_records(artist.id, 2024, 2)

        assert {r.source_row for r in q1} == {1, 2}
        assert [r.natural_key for r in q1] == sorted(r.natural_key for r in q1)
        assert [r.source_row for r in q2] == [3]


class TestSummaries:
    def test_save_then_get(self, store, artist):
        store.save_summary(make_summary(artist.id))
        loaded = store.get_summary(artist.id, 2024, 1)
        assert loaded == make_summary(artist.id)

    def test_save_replaces_existing(self, store, artist, session_factory):
        store.save_summary(make_summary(artist.id, total_net="80.00"))
        store.save_summary(make_summary(artist.id, total_net="75.00"))

        assert store.get_summary(artist.id, 2024, 1).total_net == Decimal("75.00")
        with session_scope(session_factory) as session:
            rows = session.execute(select(QuarterlySummaryModel)).scalars().all()
        assert len(rows) == 1

    def test_track_rollups_round_trip(self, store, artist):
        us = BreakdownEntry("US", Decimal("100.00"), Decimal("80.00"), 10, 1, Decimal("1.000000"))
        track = TrackSummary(
            key="Song A",
            title="Song A",
            gross=Decimal("100.00"),
            net=Decimal("80.00"),
            usage=10,
            record_count=1,
            avg_net_per_use=Decimal("8.000000"),
            top_platform="Spotify",
            top_territory="US",
            highest_territory_net=Decimal("80.00"),
            by_platform=(replace(us, key="Spotify"),),
            by_territory=(us,),
            by_month=(replace(us, key="2024-01"),),
        )
        summary = replace(make_summary(artist.id), tracks=(track,))

        store.save_summary(summary)

        assert store.get_summary(artist.id, 2024, 1).tracks == (track,)

    def test_missing_summary_is_none(self, store, artist):
        assert store.get_summary(artist.id, 2023, 4) is None


class TestImportRuns:
    def test_round_trip(self, store, artist):
        run = ImportRun(
            id=uuid4(),
            artist_id=artist.id,
            storage_path="2024/q1.csv",
            status=ImportRunStatus.DONE,
            rows_read=3,
            rows_committed=1,
            rows_inserted=1,
            rows_failed=2,
            started_at=datetime(2024, 7, 1, 12, 0),
            completed_at=datetime(2024, 7, 1, 12, 1),
            error_text=None,
        )
        store.save_import_run(run)
        assert store.get_import_run(run.id) == run


class TestImmutability:
    def test_committed_amount_cannot_change(self, store, artist, session_factory):
        record = make_record(artist.id)
        store.upsert_royalties([record])

        with pytest.raises(ImmutabilityViolationError):
            with session_scope(session_factory) as session:
                model = session.execute(
                    select(RoyaltyModel).where(RoyaltyModel.natural_key == record.natural_key)
                ).scalar_one()
                model.gross = Decimal("1.00")

    def test_paid_status_may_change(self, store, artist, session_factory):
        record = make_record(artist.id)
        store.upsert_royalties([record])

        with session_scope(session_factory) as session:
            model = session.execute(
                select(RoyaltyModel).where(RoyaltyModel.natural_key == record.natural_key)
            ).scalar_one()
            model.paid_status = PaidStatus.PENDING.value

        (loaded,) = store.committed_records(artist.id, 2024, 1)
        assert loaded.paid_status == PaidStatus.PENDING

    def test_summary_cannot_move_period(self, store, artist, session_factory):
        store.save_summary(make_summary(artist.id))

        with pytest.raises(ImmutabilityViolationError):
            with session_scope(session_factory) as session:
                model = session.execute(select(QuarterlySummaryModel)).scalar_one()
                model.quarter = 2


class TestErrorClassification:
    @pytest.mark.parametrize(
        "exc",
        [
            OperationalError("INSERT", {}, Exception("database is locked")),
            InterfaceError("INSERT", {}, Exception("connection closed")),
            PoolTimeoutError("pool exhausted"),
            TimeoutError("timed out"),
            ConnectionResetError("reset"),
        ],
    )
    def test_transient(self, exc):
        assert isinstance(classify_store_error("op", exc), TransientStoreError)

    @pytest.mark.parametrize(
        "exc",
        [
            IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed")),
            DataError("INSERT", {}, Exception("numeric overflow")),
            ValueError("bad bind"),
        ],
    )
    def test_permanent(self, exc):
        assert isinstance(classify_store_error("op", exc), PermanentStoreError)

    def test_store_errors_pass_through(self):
        original = TransientStoreError("op", "already wrapped")
        assert classify_store_error("other", original) is original


def test_quarter_bounds():
    assert quarter_bounds(2024, 1) == (date(2024, 1, 1), date(2024, 4, 1))
    assert quarter_bounds(2024, 4) == (date(2024, 10, 1), date(2025, 1, 1))
