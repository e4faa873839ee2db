"""Royalty ingestion services (parse, resolve, collect, summarize)."""

from royalty_ingestion.services.failure_collector import FailureCollector
from royalty_ingestion.services.row_parser import ParsedSource, RowParser
from royalty_ingestion.services.summary_aggregator import SummaryAggregator, summarize
from royalty_ingestion.services.track_resolver import TrackResolver, resolution_key

__all__ = [
    "FailureCollector",
    "ParsedSource",
    "RowParser",
    "SummaryAggregator",
    "TrackResolver",
    "resolution_key",
    "summarize",
]
