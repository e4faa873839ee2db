"""
Column mapping from statement headers to contracted fields.

Distributors label the same column differently ("Song Title", "title",
"song_title").  Each contracted field has an ordered alias list; the first
alias found verbatim in the header wins, otherwise the first alias that
matches case-insensitively (after trimming).

Architecture: royalty_ingestion/domain.  ZERO I/O.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from royalty_config.schema import CONTRACT_FIELDS, REQUIRED_FIELDS
from royalty_kernel.exceptions import MissingColumnsError


@dataclass(frozen=True)
class ColumnMapping:
    """Resolved header name for each contracted field (None if absent)."""

    headers: tuple[str, ...]
    columns: tuple[tuple[str, str | None], ...]

    def column_for(self, field_name: str) -> str | None:
        for name, column in self.columns:
            if name == field_name:
                return column
        return None

    def value(self, raw: Mapping[str, str | None], field_name: str) -> str:
        """Trimmed cell text for `field_name`, '' when the column is absent."""
        column = self.column_for(field_name)
        if column is None:
            return ""
        return (raw.get(column) or "").strip()

    def as_dict(self) -> dict[str, str | None]:
        return dict(self.columns)


def build_column_mapping(
    headers: Sequence[str],
    aliases: Mapping[str, Sequence[str]],
    required: frozenset[str] = REQUIRED_FIELDS,
) -> ColumnMapping:
    """
    Map every contracted field to a header name.

    Raises:
        MissingColumnsError: if any `required` field has no matching header.
    """
    header_list = [h.strip() for h in headers]
    lowered: dict[str, str] = {}
    for header in header_list:
        lowered.setdefault(header.lower(), header)

    resolved: list[tuple[str, str | None]] = []
    for field_name in CONTRACT_FIELDS:
        candidates = aliases.get(field_name, ())
        match = next((a for a in candidates if a in header_list), None)
        if match is None:
            match = next(
                (lowered[a.strip().lower()] for a in candidates if a.strip().lower() in lowered),
                None,
            )
        resolved.append((field_name, match))

    mapping = ColumnMapping(headers=tuple(header_list), columns=tuple(resolved))
    missing = [name for name in CONTRACT_FIELDS if name in required and mapping.column_for(name) is None]
    if missing:
        raise MissingColumnsError(missing=missing, headers=header_list)
    return mapping
