"""
royalty_ingestion.domain -- Pure types, column mapping and validators.

ZERO I/O.  Imports only from royalty_kernel/domain/ and royalty_config.schema.
"""

from royalty_ingestion.domain.columns import ColumnMapping, build_column_mapping
from royalty_ingestion.domain.types import (
    FailedRow,
    FailureReason,
    ParsedRow,
    PipelineState,
    ProcessingProgress,
    ProcessingResult,
    ValidRow,
)

__all__ = [
    "ColumnMapping",
    "FailedRow",
    "FailureReason",
    "ParsedRow",
    "PipelineState",
    "ProcessingProgress",
    "ProcessingResult",
    "ValidRow",
    "build_column_mapping",
]
