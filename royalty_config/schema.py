"""
Configuration schema (``royalty_config.schema``).

Frozen dataclasses describing one pipeline configuration.  Parsed from YAML
by ``royalty_config.loader``; consumed by the ingestion orchestrator and CLI.
No I/O here.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from royalty_batch.domain.types import BatchConfig

# Contracted statement fields, in report order
CONTRACT_FIELDS: tuple[str, ...] = (
    "title",
    "external_id",
    "composer",
    "usage_date",
    "territory",
    "platform",
    "usage_count",
    "gross",
    "admin_percent",
    "net",
)

REQUIRED_FIELDS: frozenset[str] = frozenset({
    "title",
    "usage_date",
    "territory",
    "platform",
    "gross",
    "admin_percent",
})


@dataclass(frozen=True)
class IngestionSettings:
    """How statement files are read and validated."""

    delimiter: str = ","
    encoding: str = "utf-8-sig"
    currency: str = "USD"
    date_formats: tuple[str, ...] = ("%Y-%m-%d",)
    require_track: bool = True
    column_aliases: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if len(self.delimiter) != 1:
            raise ValueError(f"delimiter must be one character, got {self.delimiter!r}")
        if not self.date_formats:
            raise ValueError("at least one date format is required")
        unknown = sorted(set(self.column_aliases) - set(CONTRACT_FIELDS))
        if unknown:
            raise ValueError(f"column_aliases has unknown fields: {', '.join(unknown)}")
        missing = sorted(REQUIRED_FIELDS - set(self.column_aliases))
        if self.column_aliases and missing:
            raise ValueError(f"column_aliases lacks required fields: {', '.join(missing)}")


@dataclass(frozen=True)
class AggregationSettings:
    """Summary recomputation settings."""

    # Platforms that are bookkeeping lines rather than usage revenue
    excluded_platforms: tuple[str, ...] = ("Advance Payment",)
    share_places: int = 6


@dataclass(frozen=True)
class CacheSettings:
    artist_ttl_seconds: float = 300.0
    max_entries: int = 1024


@dataclass(frozen=True)
class PipelineConfig:
    """One complete, immutable pipeline configuration."""

    config_id: str
    version: int
    batch: BatchConfig = field(default_factory=BatchConfig)
    ingestion: IngestionSettings = field(default_factory=IngestionSettings)
    aggregation: AggregationSettings = field(default_factory=AggregationSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    checksum: str = ""
