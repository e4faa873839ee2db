"""
Module: royalty_kernel.models.import_run
Responsibility: ORM persistence for the upload ledger -- one row per
    pipeline run with its outcome and counts.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from royalty_kernel.db.base import Base, UUIDString
from royalty_kernel.domain.records import ImportRun, ImportRunStatus


class ImportRunModel(Base):
    """Outcome of one ingestion run (id is the run id)."""

    __tablename__ = "import_runs"

    __table_args__ = (Index("idx_import_run_artist", "artist_id", "started_at"),)

    artist_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("artists.id"),
        nullable=False,
    )

    storage_path: Mapped[str] = mapped_column(String(1000), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False)

    rows_read: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rows_committed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rows_inserted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rows_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    error_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_dto(cls, run: ImportRun) -> "ImportRunModel":
        return cls(
            id=run.id,
            artist_id=run.artist_id,
            storage_path=run.storage_path,
            status=run.status.value,
            rows_read=run.rows_read,
            rows_committed=run.rows_committed,
            rows_inserted=run.rows_inserted,
            rows_failed=run.rows_failed,
            cancelled=run.cancelled,
            error_text=run.error_text,
            started_at=run.started_at,
            completed_at=run.completed_at,
        )

    def to_dto(self) -> ImportRun:
        return ImportRun(
            id=self.id,
            artist_id=self.artist_id,
            storage_path=self.storage_path,
            status=ImportRunStatus(self.status),
            rows_read=self.rows_read,
            rows_committed=self.rows_committed,
            rows_inserted=self.rows_inserted,
            rows_failed=self.rows_failed,
            started_at=self.started_at,
            completed_at=self.completed_at,
            cancelled=self.cancelled,
            error_text=self.error_text,
        )
