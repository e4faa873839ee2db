"""
Royalty domain records.

Pure, immutable representations of what the store holds: artists, tracks,
committed royalty lines, quarterly summaries and the import-run ledger.
ORM models live in royalty_kernel.models and convert to and from these.

Invariants enforced:
    - RoyaltyRecord.net == gross.net_of(admin_percent) at construction.
    - RoyaltyRecord.usage_count >= 0 and gross >= 0.
    - QuarterlySummary quarter is 1..4.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from royalty_kernel.domain.values import Money, Percentage


class PaidStatus(str, Enum):
    """Payment lifecycle of a committed royalty line (owned by payments)."""

    UNPAID = "unpaid"
    PENDING = "pending"
    PAID = "paid"


class ImportRunStatus(str, Enum):
    DONE = "done"
    FAILED = "failed"


def quarter_of(value: date) -> tuple[int, int]:
    """(year, quarter) containing `value`."""
    return value.year, (value.month - 1) // 3 + 1


@dataclass(frozen=True)
class Artist:
    id: UUID
    name: str


@dataclass(frozen=True)
class Track:
    """A canonical track, unique per (artist_id, resolution_key)."""

    id: UUID
    artist_id: UUID
    title: str
    resolution_key: str
    external_id: str | None = None
    composer: str | None = None


@dataclass(frozen=True)
class RoyaltyRecord:
    """
    One committed usage line.

    Contract:
        gross, admin_percent and net are consistent by construction; once
        written only paid_status (and its payment linkage) may change.
    """

    artist_id: UUID
    track_id: UUID | None
    track_title: str
    platform: str
    territory: str
    usage_date: date
    usage_count: int
    gross: Money
    admin_percent: Percentage
    net: Money
    source_checksum: str
    natural_key: str
    source_row: int | None = None
    paid_status: PaidStatus = PaidStatus.UNPAID
    id: UUID = field(default_factory=uuid4)
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.usage_count < 0:
            raise ValueError(f"usage_count must be >= 0, got {self.usage_count}")
        if self.gross.is_negative:
            raise ValueError(f"gross must be >= 0, got {self.gross}")
        expected = self.gross.net_of(self.admin_percent)
        if self.net != expected:
            raise ValueError(
                f"net {self.net} does not match gross {self.gross} "
                f"less {self.admin_percent} (expected {expected})"
            )

    @property
    def year_quarter(self) -> tuple[int, int]:
        return quarter_of(self.usage_date)

    @property
    def month(self) -> str:
        return f"{self.usage_date.year:04d}-{self.usage_date.month:02d}"


@dataclass(frozen=True)
class BreakdownEntry:
    """One bucket of a summary distribution (platform, territory, month, track)."""

    key: str
    gross: Decimal
    net: Decimal
    usage: int
    record_count: int
    share: Decimal

    def to_payload(self) -> dict:
        return {
            "key": self.key,
            "gross": self.gross,
            "net": self.net,
            "usage": self.usage,
            "record_count": self.record_count,
            "share": self.share,
        }

    @classmethod
    def from_payload(cls, item: dict) -> BreakdownEntry:
        return cls(
            key=item["key"],
            gross=Decimal(item["gross"]),
            net=Decimal(item["net"]),
            usage=int(item["usage"]),
            record_count=int(item["record_count"]),
            share=Decimal(item["share"]),
        )


def _entries(items: list[dict]) -> tuple[BreakdownEntry, ...]:
    return tuple(BreakdownEntry.from_payload(item) for item in items)


@dataclass(frozen=True)
class TrackSummary:
    """
    One track's rollup within an artist-quarter.

    Distribution shares are of this track's net, not the artist's.
    `highest_territory_net` is the net earned in `top_territory`.
    """

    key: str
    title: str
    gross: Decimal
    net: Decimal
    usage: int
    record_count: int
    avg_net_per_use: Decimal
    top_platform: str | None
    top_territory: str | None
    highest_territory_net: Decimal
    by_platform: tuple[BreakdownEntry, ...] = ()
    by_territory: tuple[BreakdownEntry, ...] = ()
    by_month: tuple[BreakdownEntry, ...] = ()

    @classmethod
    def from_payload(cls, item: dict) -> TrackSummary:
        return cls(
            key=item["key"],
            title=item["title"],
            gross=Decimal(item["gross"]),
            net=Decimal(item["net"]),
            usage=int(item["usage"]),
            record_count=int(item["record_count"]),
            avg_net_per_use=Decimal(item["avg_net_per_use"]),
            top_platform=item["top_platform"],
            top_territory=item["top_territory"],
            highest_territory_net=Decimal(item["highest_territory_net"]),
            by_platform=_entries(item["by_platform"]),
            by_territory=_entries(item["by_territory"]),
            by_month=_entries(item["by_month"]),
        )

    def to_payload(self) -> dict:
        return {
            "key": self.key,
            "title": self.title,
            "gross": self.gross,
            "net": self.net,
            "usage": self.usage,
            "record_count": self.record_count,
            "avg_net_per_use": self.avg_net_per_use,
            "top_platform": self.top_platform,
            "top_territory": self.top_territory,
            "highest_territory_net": self.highest_territory_net,
            "by_platform": [e.to_payload() for e in self.by_platform],
            "by_territory": [e.to_payload() for e in self.by_territory],
            "by_month": [e.to_payload() for e in self.by_month],
        }


@dataclass(frozen=True)
class QuarterlySummary:
    """
    Per (artist, year, quarter) rollup derived from committed records.

    Never hand-edited; `checksum` is the SHA-256 of ``to_payload()``.
    """

    artist_id: UUID
    year: int
    quarter: int
    currency: str
    total_gross: Decimal
    total_net: Decimal
    total_usage: int
    distinct_tracks: int
    record_count: int
    avg_net_per_use: Decimal
    top_platform: str | None
    top_territory: str | None
    by_platform: tuple[BreakdownEntry, ...] = ()
    by_territory: tuple[BreakdownEntry, ...] = ()
    by_month: tuple[BreakdownEntry, ...] = ()
    by_track: tuple[BreakdownEntry, ...] = ()
    tracks: tuple[TrackSummary, ...] = ()
    checksum: str = ""

    def __post_init__(self) -> None:
        if self.quarter not in (1, 2, 3, 4):
            raise ValueError(f"quarter must be 1..4, got {self.quarter}")

    @property
    def period(self) -> str:
        return f"{self.year}-Q{self.quarter}"

    @classmethod
    def from_payload(cls, payload: dict, checksum: str = "") -> QuarterlySummary:
        """Rebuild a summary from its stored canonical JSON payload."""
        return cls(
            artist_id=UUID(payload["artist_id"]),
            year=int(payload["year"]),
            quarter=int(payload["quarter"]),
            currency=payload["currency"],
            total_gross=Decimal(payload["total_gross"]),
            total_net=Decimal(payload["total_net"]),
            total_usage=int(payload["total_usage"]),
            distinct_tracks=int(payload["distinct_tracks"]),
            record_count=int(payload["record_count"]),
            avg_net_per_use=Decimal(payload["avg_net_per_use"]),
            top_platform=payload["top_platform"],
            top_territory=payload["top_territory"],
            by_platform=_entries(payload["by_platform"]),
            by_territory=_entries(payload["by_territory"]),
            by_month=_entries(payload["by_month"]),
            by_track=_entries(payload["by_track"]),
            tracks=tuple(TrackSummary.from_payload(t) for t in payload["tracks"]),
            checksum=checksum,
        )

    def to_payload(self) -> dict:
        return {
            "artist_id": str(self.artist_id),
            "year": self.year,
            "quarter": self.quarter,
            "currency": self.currency,
            "total_gross": self.total_gross,
            "total_net": self.total_net,
            "total_usage": self.total_usage,
            "distinct_tracks": self.distinct_tracks,
            "record_count": self.record_count,
            "avg_net_per_use": self.avg_net_per_use,
            "top_platform": self.top_platform,
            "top_territory": self.top_territory,
            "by_platform": [e.to_payload() for e in self.by_platform],
            "by_territory": [e.to_payload() for e in self.by_territory],
            "by_month": [e.to_payload() for e in self.by_month],
            "by_track": [e.to_payload() for e in self.by_track],
            "tracks": [t.to_payload() for t in self.tracks],
        }


@dataclass(frozen=True)
class ImportRun:
    """Ledger entry written once at the end of each pipeline run."""

    id: UUID
    artist_id: UUID
    storage_path: str
    status: ImportRunStatus
    rows_read: int
    rows_committed: int
    rows_inserted: int
    rows_failed: int
    started_at: datetime
    completed_at: datetime
    cancelled: bool = False
    error_text: str | None = None
