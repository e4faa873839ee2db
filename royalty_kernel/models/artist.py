"""
Module: royalty_kernel.models.artist
Responsibility: ORM persistence for artists (royalty payees).
Architecture position: Kernel > Models.  May import from db/base.py only.

Artists are administered outside the pipeline; ingestion only looks them up.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from royalty_kernel.db.base import TimestampedBase
from royalty_kernel.domain.records import Artist


class ArtistModel(TimestampedBase):
    """An artist whose statements are ingested."""

    __tablename__ = "artists"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def to_dto(self) -> Artist:
        return Artist(id=self.id, name=self.name)

    def __repr__(self) -> str:
        return f"<ArtistModel {self.id}: {self.name}>"
