"""
Module: royalty_kernel.models.summary
Responsibility: ORM persistence for per-quarter royalty summaries.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (artist_id, year, quarter) is unique (uq_summary_period); summaries
      are upserted on it and fully replaced on every recomputation.
    - payload holds the canonical JSON the checksum was computed over.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from royalty_kernel.db.base import Base, UUIDString


class QuarterlySummaryModel(Base):
    """Derived rollup for one artist and quarter. Never hand-edited."""

    __tablename__ = "royalties_summary"

    __table_args__ = (
        UniqueConstraint("artist_id", "year", "quarter", name="uq_summary_period"),
    )

    artist_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("artists.id"),
        nullable=False,
    )

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    quarter: Mapped[int] = mapped_column(Integer, nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    total_gross: Mapped[Decimal] = mapped_column(nullable=False)

    total_net: Mapped[Decimal] = mapped_column(nullable=False)

    total_usage: Mapped[int] = mapped_column(Integer, nullable=False)

    distinct_tracks: Mapped[int] = mapped_column(Integer, nullable=False)

    record_count: Mapped[int] = mapped_column(Integer, nullable=False)

    # Canonical JSON of the full summary (distributions included)
    payload: Mapped[str] = mapped_column(Text, nullable=False)

    checksum: Mapped[str] = mapped_column(String(64), nullable=False)

    computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<QuarterlySummaryModel {self.artist_id} {self.year}-Q{self.quarter}>"
