"""Statement adapters (stream and object-storage I/O only, no DB)."""

from royalty_ingestion.adapters.base import SourceAdapter, SourceLine, SourceProbe, SourceReader
from royalty_ingestion.adapters.csv_adapter import CsvSourceAdapter, CsvSourceReader
from royalty_ingestion.adapters.storage import LocalObjectStorage, ObjectStorage

__all__ = [
    "CsvSourceAdapter",
    "CsvSourceReader",
    "LocalObjectStorage",
    "ObjectStorage",
    "SourceAdapter",
    "SourceLine",
    "SourceProbe",
    "SourceReader",
]
