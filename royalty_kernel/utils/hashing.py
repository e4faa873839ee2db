"""
Deterministic hashing utilities.

All hashing in the royalty kernel must be deterministic and reproducible:
the same source row always yields the same checksum and natural key, and an
unchanged record set always yields the same summary checksum. Re-runs and
retried batches depend on this for idempotency.
"""

import hashlib
import json
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

_FIELD_SEPARATOR = "\x1f"


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Decimals serialize in fixed-point notation so that 80.00 stays "80.00"
    rather than "8E+1".
    """
    if isinstance(obj, Decimal):
        return format(obj, "f")
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Keys are sorted, there is no whitespace, and special types (Decimal,
    date, UUID) are handled consistently.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """Hex-encoded SHA-256 of the canonical JSON form of `payload`."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _hash_fields(fields: Sequence[str]) -> str:
    data = _FIELD_SEPARATOR.join(fields)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def hash_source_row(source_row: int, raw: Mapping[str, str | None]) -> str:
    """
    Checksum identifying one line of one source file.

    Covers the row's position and its raw values in header order, so two
    identical lines at different positions stay distinct records while a
    re-run of the same file reproduces the same checksum.
    """
    fields = [str(source_row)]
    for column, value in raw.items():
        fields.append(f"{column}={'' if value is None else value}")
    return _hash_fields(fields)


def compute_natural_key(
    artist_id: UUID | str,
    track_key: str | None,
    platform: str,
    territory: str,
    usage_date: date,
    source_checksum: str,
) -> str:
    """
    Natural key a royalty record is upserted on.

    (artist, track, platform, territory, usage date, source checksum)
    """
    return _hash_fields(
        [
            str(artist_id),
            track_key or "",
            platform,
            territory,
            usage_date.isoformat(),
            source_checksum,
        ]
    )
