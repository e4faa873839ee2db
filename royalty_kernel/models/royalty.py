"""
Module: royalty_kernel.models.royalty
Responsibility: ORM persistence for committed royalty lines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - natural_key is unique (uq_royalty_natural_key).  Batch writes insert
      with ON CONFLICT DO NOTHING on it, so retries and re-runs never
      duplicate a line.
    - usage_count >= 0, gross >= 0, 0 <= admin_percent <= 100 (CHECK).
    - After insert only paid_status and payment_request_id may change
      (db/immutability.py).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from royalty_kernel.db.base import TimestampedBase, UUIDString
from royalty_kernel.domain.records import PaidStatus, RoyaltyRecord
from royalty_kernel.domain.values import Money, Percentage


class RoyaltyModel(TimestampedBase):
    """One usage line of a royalty statement."""

    __tablename__ = "royalties"

    __table_args__ = (
        UniqueConstraint("natural_key", name="uq_royalty_natural_key"),
        Index("idx_royalty_artist_date", "artist_id", "usage_date"),
        Index("idx_royalty_track", "track_id"),
        CheckConstraint("usage_count >= 0", name="ck_royalty_usage_nonneg"),
        CheckConstraint("CAST(gross AS NUMERIC) >= 0", name="ck_royalty_gross_nonneg"),
        CheckConstraint(
            "CAST(admin_percent AS NUMERIC) >= 0 AND CAST(admin_percent AS NUMERIC) <= 100",
            name="ck_royalty_admin_percent_range",
        ),
        CheckConstraint(
            "paid_status IN ('unpaid', 'pending', 'paid')",
            name="ck_royalty_paid_status",
        ),
    )

    artist_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("artists.id"),
        nullable=False,
    )

    track_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("tracks.id"),
        nullable=True,
    )

    # Title as printed on the statement, kept even when the track resolves
    track_title: Mapped[str] = mapped_column(String(500), nullable=False)

    platform: Mapped[str] = mapped_column(String(200), nullable=False)

    territory: Mapped[str] = mapped_column(String(100), nullable=False)

    usage_date: Mapped[date] = mapped_column(Date, nullable=False)

    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    gross: Mapped[Decimal] = mapped_column(nullable=False)

    admin_percent: Mapped[Decimal] = mapped_column(nullable=False)

    net: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    paid_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaidStatus.UNPAID.value,
    )

    # Linkage owned by the payment subsystem
    payment_request_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    source_checksum: Mapped[str] = mapped_column(String(64), nullable=False)

    source_row: Mapped[int | None] = mapped_column(Integer, nullable=True)

    natural_key: Mapped[str] = mapped_column(String(64), nullable=False)

    @staticmethod
    def values_from(record: RoyaltyRecord, created_at: datetime) -> dict[str, Any]:
        """Column values for a Core INSERT of `record`."""
        return {
            "id": record.id,
            "artist_id": record.artist_id,
            "track_id": record.track_id,
            "track_title": record.track_title,
            "platform": record.platform,
            "territory": record.territory,
            "usage_date": record.usage_date,
            "usage_count": record.usage_count,
            "gross": record.gross.amount,
            "admin_percent": record.admin_percent.quantized(),
            "net": record.net.amount,
            "currency": record.gross.currency.code,
            "paid_status": record.paid_status.value,
            "source_checksum": record.source_checksum,
            "source_row": record.source_row,
            "natural_key": record.natural_key,
            "created_at": created_at,
        }

    def to_dto(self) -> RoyaltyRecord:
        gross = Money.of(self.gross, self.currency).round()
        return RoyaltyRecord(
            id=self.id,
            artist_id=self.artist_id,
            track_id=self.track_id,
            track_title=self.track_title,
            platform=self.platform,
            territory=self.territory,
            usage_date=self.usage_date,
            usage_count=self.usage_count,
            gross=gross,
            admin_percent=Percentage.of(
                self.admin_percent.quantize(Decimal("0.01"))
            ),
            net=Money.of(self.net, self.currency).round(),
            source_checksum=self.source_checksum,
            natural_key=self.natural_key,
            source_row=self.source_row,
            paid_status=PaidStatus(self.paid_status),
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<RoyaltyModel {self.usage_date} {self.platform} net={self.net}>"
