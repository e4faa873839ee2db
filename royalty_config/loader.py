"""
Configuration Loader (``royalty_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into typed ``royalty_config.schema``
dataclass instances.  The public runtime entry point is
``royalty_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* An override file is deep-merged over the packaged defaults, so a
  partial override only needs the keys it changes.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range batch values  -> ``InvalidBatchConfigError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from royalty_batch.domain.types import BatchConfig
from royalty_config.schema import (
    AggregationSettings,
    CacheSettings,
    IngestionSettings,
    PipelineConfig,
)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursive merge; mappings merge, everything else replaces."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


def parse_batch(data: dict[str, Any]) -> BatchConfig:
    return BatchConfig.from_overrides(data)


def parse_ingestion(data: dict[str, Any]) -> IngestionSettings:
    aliases = {
        name: tuple(str(alias) for alias in values)
        for name, values in (data.get("column_aliases") or {}).items()
    }
    return IngestionSettings(
        delimiter=data.get("delimiter", ","),
        encoding=data.get("encoding", "utf-8-sig"),
        currency=str(data.get("currency", "USD")).upper(),
        date_formats=tuple(data.get("date_formats") or ("%Y-%m-%d",)),
        require_track=bool(data.get("require_track", True)),
        column_aliases=aliases,
    )


def parse_aggregation(data: dict[str, Any]) -> AggregationSettings:
    return AggregationSettings(
        excluded_platforms=tuple(data.get("excluded_platforms") or ()),
        share_places=int(data.get("share_places", 6)),
    )


def parse_cache(data: dict[str, Any]) -> CacheSettings:
    return CacheSettings(
        artist_ttl_seconds=float(data.get("artist_ttl_seconds", 300.0)),
        max_entries=int(data.get("max_entries", 1024)),
    )


def parse_pipeline_config(data: dict[str, Any]) -> PipelineConfig:
    """Build a PipelineConfig from a fully merged dict."""
    return PipelineConfig(
        config_id=data["config_id"],
        version=int(data["version"]),
        batch=parse_batch(data.get("batch") or {}),
        ingestion=parse_ingestion(data.get("ingestion") or {}),
        aggregation=parse_aggregation(data.get("aggregation") or {}),
        cache=parse_cache(data.get("cache") or {}),
        checksum=compute_checksum(data),
    )


def load_pipeline_config(override_path: Path | None = None) -> PipelineConfig:
    """Packaged defaults, optionally deep-merged with `override_path`."""
    data = load_yaml_file(DEFAULTS_PATH)
    if override_path is not None:
        data = merge_dicts(data, load_yaml_file(Path(override_path)))
    return parse_pipeline_config(data)


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
