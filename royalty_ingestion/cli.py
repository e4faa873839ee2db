"""
royalty-ingest: run the royalty statement pipeline for one artist.

Usage:
    royalty-ingest --artist-id <uuid> --storage-path <key> [options]

Examples:
    # Ingest a statement stored under ./uploads into a local SQLite store
    royalty-ingest --database-url sqlite:///royalty.db --create-tables \\
        --storage-root ./uploads --artist-id 6f1c... --storage-path 2024/q1.csv

    # Smaller batches, and keep the failure report
    royalty-ingest --artist-id 6f1c... --storage-path q1.csv \\
        --batch-size 100 --max-concurrency 2 --failure-report failures.csv

    # Probe the statement (row count, columns, sample) without writing
    royalty-ingest --artist-id 6f1c... --storage-path q1.csv --probe-only

Exit codes: 0 every row committed, 1 the run could not start or was
aborted, 3 the run completed with failed rows or was cancelled.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path

from royalty_kernel.exceptions import RoyaltyKernelError
from royalty_kernel.logging_config import configure_logging, get_logger

DATABASE_URL_ENV_VAR = "ROYALTY_DATABASE_URL"
DEFAULT_DATABASE_URL = "sqlite:///royalty.db"

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARTIAL = 3

logger = get_logger("ingestion.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="royalty-ingest",
        description="Ingest a royalty statement CSV: validate, commit, summarize.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--artist-id", required=True, help="Artist UUID the statement belongs to.")
    parser.add_argument(
        "--storage-path",
        required=True,
        help="Object key of the statement, relative to --storage-root.",
    )
    parser.add_argument(
        "--storage-root",
        type=Path,
        default=Path("."),
        help="Directory holding statement objects (default: current directory).",
    )
    parser.add_argument(
        "--database-url",
        default=os.environ.get(DATABASE_URL_ENV_VAR, DEFAULT_DATABASE_URL),
        help=f"Database URL (default: ${DATABASE_URL_ENV_VAR} or {DEFAULT_DATABASE_URL!r}).",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before running.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Pipeline config override YAML (default: $ROYALTY_PIPELINE_CONFIG).",
    )
    parser.add_argument("--batch-size", type=int, default=None)
    parser.add_argument("--max-concurrency", type=int, default=None)
    parser.add_argument("--retry-attempts", type=int, default=None)
    parser.add_argument("--backoff-base", type=float, default=None, help="Seconds.")
    parser.add_argument("--backoff-cap", type=float, default=None, help="Seconds.")
    parser.add_argument(
        "--failure-report",
        type=Path,
        default=None,
        help="Write the failed-rows CSV here when any row fails.",
    )
    parser.add_argument(
        "--probe-only",
        action="store_true",
        help="Print row count, columns and sample rows, then exit. No DB access.",
    )
    parser.add_argument(
        "--omit-rows",
        action="store_true",
        help="Leave per-row failures out of the printed result.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def _batch_overrides(args: argparse.Namespace) -> dict[str, int | float | None]:
    return {
        "batch_size": args.batch_size,
        "max_concurrency": args.max_concurrency,
        "retry_attempts": args.retry_attempts,
        "backoff_base": args.backoff_base,
        "backoff_cap": args.backoff_cap,
    }


def _print_json(data: dict, stream=None) -> None:
    print(json.dumps(data, indent=2, default=str), file=stream or sys.stdout)


def _probe(args: argparse.Namespace, config) -> int:
    from royalty_ingestion.adapters.csv_adapter import CsvSourceAdapter
    from royalty_ingestion.adapters.storage import LocalObjectStorage

    storage = LocalObjectStorage(args.storage_root)
    with storage.open(args.artist_id, args.storage_path) as stream:
        probe = CsvSourceAdapter().probe(
            stream,
            {
                "encoding": config.ingestion.encoding,
                "delimiter": config.ingestion.delimiter,
                "source_name": args.storage_path,
            },
        )
    _print_json(
        {
            "row_count": probe.row_count,
            "columns": list(probe.columns),
            "sample_rows": list(probe.sample_rows),
            "encoding": probe.encoding,
            "delimiter": probe.detected_delimiter,
        }
    )
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(level=getattr(logging, args.log_level), stream=sys.stderr)

    # Lazy imports so argument errors fail fast
    from royalty_config import get_active_config
    from royalty_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
    from royalty_kernel.services.royalty_store import SqlRoyaltyStore
    from royalty_ingestion.adapters.storage import LocalObjectStorage
    from royalty_ingestion.orchestrator import RoyaltyPipeline

    try:
        config = get_active_config(args.config)
    except (OSError, ValueError, RoyaltyKernelError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return EXIT_ERROR

    try:
        if args.probe_only:
            return _probe(args, config)

        init_engine_from_url(args.database_url)
        if args.create_tables:
            create_tables()

        pipeline = RoyaltyPipeline(
            SqlRoyaltyStore(get_session_factory()),
            LocalObjectStorage(args.storage_root),
            config=config,
        )
        result = pipeline.process_royalties(
            args.artist_id,
            args.storage_path,
            batch_config=_batch_overrides(args),
        )
    except RoyaltyKernelError as e:
        logger.error("cli_run_failed", extra={"error_code": e.code, "error": str(e)})
        _print_json({"success": False, "error": e.code, "message": str(e)}, sys.stderr)
        return EXIT_ERROR

    if args.failure_report is not None and result.failure_report_csv is not None:
        args.failure_report.write_text(result.failure_report_csv, encoding="utf-8")

    _print_json(result.to_dict(include_rows=not args.omit_rows))
    return EXIT_OK if result.success else EXIT_PARTIAL


if __name__ == "__main__":
    sys.exit(main())
