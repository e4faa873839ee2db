"""
Source adapter protocol and DTOs.

Contract:
    SourceAdapter.read() opens a statement stream and returns a reader whose
    header is available up front and whose lines stream lazily.
    SourceAdapter.probe() returns a quick snapshot: row count, columns,
    sample rows.

Architecture: royalty_ingestion/adapters.  Stream I/O only, no DB access.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import IO, Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class SourceLine:
    """One data line of a statement.

    ``malformed`` is set when the field count differs from the header; the
    line is then reported, never committed.
    """

    source_row: int  # 1-indexed data row
    raw: dict[str, str]
    malformed: str | None = None


@runtime_checkable
class SourceReader(Protocol):
    headers: tuple[str, ...]

    def __iter__(self) -> Iterator[SourceLine]:
        ...


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for reading statement streams into raw lines."""

    def read(self, stream: IO[Any], options: dict[str, Any]) -> SourceReader:
        """Read the header and stream the rest; never buffers the whole file."""
        ...

    def probe(self, stream: IO[Any], options: dict[str, Any]) -> "SourceProbe":
        """Quick probe: row count, detected columns, sample rows."""
        ...


@dataclass(frozen=True)
class SourceProbe:
    """Result of probing a statement (row count, columns, first N rows)."""

    row_count: int
    columns: tuple[str, ...]
    sample_rows: tuple[dict[str, str], ...]  # First 5 rows; do not mutate
    encoding: str | None = None
    detected_delimiter: str | None = None
