"""
Pytest fixtures for the royalty pipeline test suite.

Provides:
- Structured logging configured once per session, LogContext isolation
- ``captured_logs`` for asserting on emitted JSON log lines
- A SQLite-backed SqlRoyaltyStore per test (file database under tmp_path)
- Statement helpers: write a CSV into a storage root and build a pipeline

Store tests run against SQLite so the suite needs no server.  Set
DATABASE_URL to a PostgreSQL URL to run the same fixtures against it.
"""

import json
import logging
import os
from collections.abc import Callable
from datetime import datetime
from io import StringIO
from pathlib import Path
from uuid import UUID

import pytest

from royalty_config import get_active_config
from royalty_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from royalty_kernel.domain.clock import DeterministicClock
from royalty_kernel.domain.records import Artist
from royalty_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from royalty_kernel.services.cache_service import CacheService
from royalty_kernel.services.royalty_store import SqlRoyaltyStore

from royalty_ingestion.adapters.storage import LocalObjectStorage
from royalty_ingestion.orchestrator import RoyaltyPipeline

FIXED_TIME = datetime(2024, 7, 1, 12, 0, 0)

STATEMENT_HEADER = "Song Title,ISWC,Date,Territory,Source,Usage Count,Gross,Admin %,Net"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture royalty_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, pipeline):
            pipeline.process_royalties(...)
            logs = captured_logs()
            assert any(r["message"] == "pipeline_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("royalty_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Store fixtures
# =============================================================================


def get_database_url(tmp_path: Path) -> str:
    """DATABASE_URL from the environment, else a fresh SQLite file."""
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'royalty.db'}"


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(FIXED_TIME)


@pytest.fixture
def session_factory(tmp_path):
    init_engine_from_url(get_database_url(tmp_path))
    create_tables()
    yield get_session_factory()
    if os.environ.get("DATABASE_URL"):
        drop_tables()
    reset_engine()


@pytest.fixture
def store(session_factory, clock) -> SqlRoyaltyStore:
    return SqlRoyaltyStore(session_factory, clock=clock)


@pytest.fixture
def artist(store) -> Artist:
    return store.create_artist("Test Artist")


# =============================================================================
# Pipeline fixtures
# =============================================================================


@pytest.fixture
def storage_root(tmp_path) -> Path:
    root = tmp_path / "objects"
    root.mkdir()
    return root


@pytest.fixture
def write_statement(storage_root) -> Callable[..., str]:
    """
    Write a statement under the storage root and return its key.

    ``rows`` are CSV lines without the header; pass ``header=None`` to
    write the lines verbatim.
    """

    def _write(
        rows: list[str],
        name: str = "statement.csv",
        header: str | None = STATEMENT_HEADER,
        encoding: str = "utf-8",
    ) -> str:
        lines = ([header] if header is not None else []) + rows
        (storage_root / name).write_bytes(("\n".join(lines) + "\n").encode(encoding))
        return name

    return _write


@pytest.fixture
def pipeline_config():
    return get_active_config()


@pytest.fixture
def no_sleep() -> list[float]:
    """Backoff sleeps recorded instead of slept."""
    return []


@pytest.fixture
def make_pipeline(store, storage_root, pipeline_config, clock, no_sleep):
    def _make(store_override=None, config=None, cache=None) -> RoyaltyPipeline:
        return RoyaltyPipeline(
            store_override or store,
            LocalObjectStorage(storage_root),
            config=config or pipeline_config,
            cache=cache or CacheService(default_ttl=60),
            clock=clock,
            retry_sleep=no_sleep.append,
        )

    return _make


@pytest.fixture
def pipeline(make_pipeline) -> RoyaltyPipeline:
    return make_pipeline()


def statement_row(
    title: str = "Song A",
    iswc: str = "",
    usage_date: str = "2024-01-15",
    territory: str = "US",
    platform: str = "Spotify",
    usage: str = "10",
    gross: str = "100.00",
    admin: str = "20",
    net: str = "",
) -> str:
    """One CSV line matching STATEMENT_HEADER."""
    return ",".join([title, iswc, usage_date, territory, platform, usage, gross, admin, net])


@pytest.fixture
def artist_id(artist) -> UUID:
    return artist.id


@pytest.fixture
def make_row() -> Callable[..., str]:
    return statement_row
