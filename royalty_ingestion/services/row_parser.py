"""
RowParser -- statement stream to ValidRow / FailedRow.

Contract:
    ``open()`` reads the header and resolves the column mapping before any
    data row is touched, so a statement missing required columns fails the
    run without side effects.  Iterating the returned ParsedSource yields
    one ParsedRow per non-blank data line, lazily and exactly once.

Invariants:
    - No row-level problem raises; every failing field on a line is
      reported on that line's FailedRow.
    - net is always derived from gross and admin percent.  A net column,
      when present, is carried as ``stated_net`` and never validated.
    - The source checksum covers the row position and its raw values, so a
      re-run of the same file reproduces it.

Failure modes:
    - SourceUnreadableError: empty stream or no header.
    - MissingColumnsError: required columns absent.
    - SourceStreamError: undecodable bytes part-way through; rows yielded
      before it stand.
"""

from __future__ import annotations

from collections.abc import Iterator
from decimal import Decimal
from typing import IO, Any

from royalty_config.schema import IngestionSettings
from royalty_kernel.domain.dtos import ValidationError
from royalty_kernel.domain.currency import CurrencyRegistry
from royalty_kernel.logging_config import get_logger
from royalty_kernel.utils.hashing import hash_source_row

from royalty_ingestion.adapters.base import SourceAdapter, SourceLine, SourceReader
from royalty_ingestion.adapters.csv_adapter import CsvSourceAdapter
from royalty_ingestion.domain.columns import ColumnMapping, build_column_mapping
from royalty_ingestion.domain.types import FailedRow, FailureReason, ParsedRow, ValidRow
from royalty_ingestion.domain.validators import (
    clean_numeric,
    optional_text,
    validate_date,
    validate_money,
    validate_percentage,
    validate_required_text,
    validate_usage_count,
)

logger = get_logger("ingestion.parser")


class ParsedSource:
    """An opened statement: header, column mapping and the row stream."""

    def __init__(self, reader: SourceReader, mapping: ColumnMapping, parser: RowParser):
        self._reader = reader
        self.mapping = mapping
        self._parser = parser
        self.rows_read = 0
        self.rows_valid = 0

    @property
    def headers(self) -> tuple[str, ...]:
        return self._reader.headers

    def __iter__(self) -> Iterator[ParsedRow]:
        for line in self._reader:
            self.rows_read += 1
            parsed = self._parser.parse_line(line, self.mapping)
            if parsed.is_valid:
                self.rows_valid += 1
            yield parsed


class RowParser:
    """Validate statement lines against the contracted columns."""

    def __init__(
        self,
        settings: IngestionSettings | None = None,
        adapter: SourceAdapter | None = None,
    ):
        self._settings = settings or IngestionSettings()
        self._adapter = adapter or CsvSourceAdapter()
        self._currency = CurrencyRegistry.validate(self._settings.currency)

    @property
    def currency(self) -> str:
        return self._currency

    def open(self, stream: IO[Any], source_name: str = "<stream>") -> ParsedSource:
        reader = self._adapter.read(
            stream,
            {
                "encoding": self._settings.encoding,
                "delimiter": self._settings.delimiter,
                "source_name": source_name,
            },
        )
        mapping = build_column_mapping(reader.headers, self._settings.column_aliases)
        logger.info(
            "columns_mapped",
            extra={
                "source": source_name,
                "headers": list(reader.headers),
                "mapping": mapping.as_dict(),
            },
        )
        return ParsedSource(reader, mapping, self)

    def parse(self, stream: IO[Any], source_name: str = "<stream>") -> Iterator[ParsedRow]:
        """Lazy, single-pass sequence of ValidRow | FailedRow."""
        yield from self.open(stream, source_name)

    def parse_line(self, line: SourceLine, mapping: ColumnMapping) -> ParsedRow:
        if line.malformed:
            return FailedRow(
                source_row=line.source_row,
                raw=line.raw,
                reasons=(
                    ValidationError(
                        code=FailureReason.MALFORMED_ROW.value,
                        message=line.malformed,
                    ),
                ),
            )

        def cell(name: str) -> str:
            return mapping.value(line.raw, name)

        errors: list[ValidationError] = []

        title, errs = validate_required_text(cell("title"), "title")
        errors.extend(errs)
        platform, errs = validate_required_text(cell("platform"), "platform")
        errors.extend(errs)
        territory, errs = validate_required_text(cell("territory"), "territory")
        errors.extend(errs)
        usage_date, errs = validate_date(cell("usage_date"), "usage_date", self._settings.date_formats)
        errors.extend(errs)
        usage_count, errs = validate_usage_count(cell("usage_count"), "usage_count")
        errors.extend(errs)
        gross, errs = validate_money(cell("gross"), "gross", self._currency)
        errors.extend(errs)
        admin_percent, errs = validate_percentage(cell("admin_percent"), "admin_percent")
        errors.extend(errs)

        if errors:
            return FailedRow(source_row=line.source_row, raw=line.raw, reasons=tuple(errors))

        try:
            net = gross.net_of(admin_percent)
        except ArithmeticError as exc:
            return FailedRow(
                source_row=line.source_row,
                raw=line.raw,
                reasons=(
                    ValidationError(
                        code=FailureReason.INVALID_NUMBER.value,
                        message=f"net could not be derived from gross {gross.amount}: {exc!r}",
                        field="gross",
                    ),
                ),
            )

        return ValidRow(
            source_row=line.source_row,
            raw=line.raw,
            title=title,
            platform=platform,
            territory=territory,
            usage_date=usage_date,
            usage_count=usage_count,
            gross=gross,
            admin_percent=admin_percent,
            net=net,
            checksum=hash_source_row(line.source_row, line.raw),
            external_id=optional_text(cell("external_id")),
            composer=optional_text(cell("composer")),
            stated_net=_stated_net(cell("net")),
        )


def _stated_net(text: str) -> Decimal | None:
    if not text:
        return None
    cleaned, parenthesized = clean_numeric(text, "".join(CurrencyRegistry.symbols()))
    try:
        value = Decimal(cleaned)
    except ArithmeticError:
        return None
    if not value.is_finite():
        return None
    return -value if parenthesized else value
