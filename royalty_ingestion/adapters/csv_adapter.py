"""
CSV statement adapter.

Uses csv.DictReader over a text view of the (usually binary) storage stream.
Configurable: delimiter, encoding, source_name.  Handles the BOM via
utf-8-sig when encoding is utf-8.  Header cells are trimmed; blank lines and
lines with no non-blank cell are skipped.  Streams rows.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterator
from typing import IO, Any

from royalty_kernel.exceptions import SourceStreamError, SourceUnreadableError
from royalty_kernel.logging_config import get_logger

from royalty_ingestion.adapters.base import SourceLine, SourceProbe

logger = get_logger("ingestion.csv")

# DictReader key for values beyond the header width
_EXTRA_KEY = "\x00extra"


def _get_encoding(options: dict[str, Any]) -> str:
    enc = options.get("encoding", "utf-8-sig")
    if enc.lower() in ("utf-8", "utf8"):
        return "utf-8-sig"  # Strip BOM if present
    return enc


def _text_stream(stream: IO[Any], encoding: str) -> IO[str]:
    if isinstance(stream, io.TextIOBase):
        return stream
    return io.TextIOWrapper(stream, encoding=encoding, newline="")


def _is_blank(values: list[str]) -> bool:
    return all(not (v or "").strip() for v in values)


class CsvSourceReader:
    """Header plus a lazy, single-pass iterator of SourceLine."""

    def __init__(self, text: IO[str], delimiter: str, source_name: str):
        self._text = text
        self._delimiter = delimiter
        self._source_name = source_name
        self._last_row = 0
        self._consumed = False

        header_reader = csv.reader(text, delimiter=delimiter)
        try:
            header: list[str] | None = None
            for candidate in header_reader:
                if candidate and not _is_blank(candidate):
                    header = candidate
                    break
        except (UnicodeDecodeError, csv.Error) as e:
            raise SourceUnreadableError(source_name, f"header is unreadable: {e}") from e
        if header is None:
            raise SourceUnreadableError(source_name, "file is empty or has no header")
        self.headers: tuple[str, ...] = tuple(h.strip() for h in header)

    @property
    def last_row(self) -> int:
        """Source row of the last line read (0 before the first)."""
        return self._last_row

    def __iter__(self) -> Iterator[SourceLine]:
        if self._consumed:
            raise RuntimeError("CSV source can only be iterated once")
        self._consumed = True

        reader = csv.DictReader(
            self._text,
            fieldnames=list(self.headers),
            restkey=_EXTRA_KEY,
            restval=None,
            delimiter=self._delimiter,
        )
        width = len(self.headers)
        while True:
            try:
                row = next(reader)
            except StopIteration:
                return
            except (UnicodeDecodeError, csv.Error) as e:
                logger.warning(
                    "source_stream_failed",
                    extra={"source": self._source_name, "after_row": self._last_row, "error": str(e)},
                )
                raise SourceStreamError(self._last_row, str(e)) from e

            self._last_row += 1
            extra = row.pop(_EXTRA_KEY, None)
            values = [v for v in row.values() if v is not None] + list(extra or [])
            if _is_blank(values):
                continue

            raw = {k: (v if v is not None else "") for k, v in row.items()}
            malformed = None
            found = width + len(extra) if extra else sum(1 for v in row.values() if v is not None)
            if found != width:
                malformed = f"expected {width} fields, found {found}"
            yield SourceLine(source_row=self._last_row, raw=raw, malformed=malformed)


class CsvSourceAdapter:
    """Read CSV statements as one SourceLine per data row."""

    def read(self, stream: IO[Any], options: dict[str, Any]) -> CsvSourceReader:
        """
        Raises:
            SourceUnreadableError: the stream is empty or has no header.
        """
        encoding = _get_encoding(options)
        delimiter = options.get("delimiter", ",")
        source_name = str(options.get("source_name", "<stream>"))
        return CsvSourceReader(_text_stream(stream, encoding), delimiter, source_name)

    def probe(self, stream: IO[Any], options: dict[str, Any]) -> SourceProbe:
        encoding = _get_encoding(options)
        delimiter = options.get("delimiter", ",")
        sample_size = 5

        reader = self.read(stream, options)
        sample: list[dict[str, str]] = []
        count = 0
        for line in reader:
            count += 1
            if len(sample) < sample_size:
                sample.append(dict(line.raw))

        return SourceProbe(
            row_count=count,
            columns=reader.headers,
            sample_rows=tuple(sample),
            encoding=encoding,
            detected_delimiter=delimiter,
        )
