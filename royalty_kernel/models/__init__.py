"""ORM models for the royalty kernel."""

from royalty_kernel.models.artist import ArtistModel
from royalty_kernel.models.import_run import ImportRunModel
from royalty_kernel.models.royalty import RoyaltyModel
from royalty_kernel.models.summary import QuarterlySummaryModel
from royalty_kernel.models.track import TrackModel

__all__ = [
    "ArtistModel",
    "ImportRunModel",
    "QuarterlySummaryModel",
    "RoyaltyModel",
    "TrackModel",
]
