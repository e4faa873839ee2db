"""
royalty_ingestion -- royalty statement ingestion.

Streams a distributor CSV through column mapping, row validation, track
resolution and concurrent batch writes, then recomputes the affected
quarterly summaries.  ``RoyaltyPipeline`` is the entry point; the
``royalty-ingest`` console script wraps it.
"""

from royalty_ingestion.domain.types import (
    FailedRow,
    PipelineState,
    ProcessingProgress,
    ProcessingResult,
    ValidRow,
)
from royalty_ingestion.orchestrator import PipelineRun, RoyaltyPipeline

__all__ = [
    "FailedRow",
    "PipelineRun",
    "PipelineState",
    "ProcessingProgress",
    "ProcessingResult",
    "RoyaltyPipeline",
    "ValidRow",
]
