"""
royalty_config -- single public entrypoint for pipeline configuration.

Responsibility:
    ``get_active_config()`` is the way runtime code obtains configuration.
    It loads the packaged ``defaults.yaml`` and, when the
    ``ROYALTY_PIPELINE_CONFIG`` environment variable (or an explicit path)
    names an override file, deep-merges it on top.

Architecture position:
    Sits above ``royalty_batch`` and ``royalty_kernel`` and below
    ``royalty_ingestion``.  The kernel MUST NEVER import from here.

Failure modes:
    - ``FileNotFoundError`` -- the override file does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ValueError`` / ``InvalidBatchConfigError`` -- invalid values.
"""

from __future__ import annotations

import os
from pathlib import Path

from royalty_config.loader import load_pipeline_config
from royalty_config.schema import (
    AggregationSettings,
    CacheSettings,
    IngestionSettings,
    PipelineConfig,
)
from royalty_kernel.logging_config import get_logger

CONFIG_ENV_VAR = "ROYALTY_PIPELINE_CONFIG"

_logger = get_logger("config")


def get_active_config(config_path: Path | str | None = None) -> PipelineConfig:
    """Load the active pipeline configuration.

    Args:
        config_path: Override file.  Defaults to $ROYALTY_PIPELINE_CONFIG,
            and to the packaged defaults alone when that is unset.
    """
    path = config_path or os.environ.get(CONFIG_ENV_VAR) or None
    config = load_pipeline_config(Path(path) if path else None)
    _logger.info(
        "pipeline_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "override_path": str(path) if path else None,
        },
    )
    return config


__all__ = [
    "AggregationSettings",
    "CONFIG_ENV_VAR",
    "CacheSettings",
    "IngestionSettings",
    "PipelineConfig",
    "get_active_config",
]
