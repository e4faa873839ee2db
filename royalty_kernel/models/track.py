"""
Module: royalty_kernel.models.track
Responsibility: ORM persistence for canonical tracks.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (artist_id, resolution_key) is unique (uq_track_resolution).  The
      store inserts with ON CONFLICT DO NOTHING against this constraint so
      concurrent resolution of the same key never creates two tracks.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from royalty_kernel.db.base import TimestampedBase, UUIDString
from royalty_kernel.domain.records import Track


class TrackModel(TimestampedBase):
    """A track owned by an artist, keyed by its resolution key."""

    __tablename__ = "tracks"

    __table_args__ = (
        UniqueConstraint("artist_id", "resolution_key", name="uq_track_resolution"),
        Index("idx_track_artist", "artist_id"),
    )

    artist_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("artists.id"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)

    # "isrc:<id>" or "title:<normalized title>"
    resolution_key: Mapped[str] = mapped_column(String(600), nullable=False)

    # ISRC / ISWC as printed on the statement
    external_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    composer: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def to_dto(self) -> Track:
        return Track(
            id=self.id,
            artist_id=self.artist_id,
            title=self.title,
            resolution_key=self.resolution_key,
            external_id=self.external_id,
            composer=self.composer,
        )

    def __repr__(self) -> str:
        return f"<TrackModel {self.resolution_key}>"
