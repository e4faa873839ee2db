"""royalty-ingest command line: exit codes, JSON output, failure report, probe."""

import json

import pytest

from royalty_ingestion.cli import EXIT_ERROR, EXIT_OK, EXIT_PARTIAL, main
from royalty_kernel.db.engine import get_engine


def error_json(err: str) -> dict:
    """The indented error object printed last on stderr."""
    lines = err.splitlines()
    start = max(i for i, line in enumerate(lines) if line == "{")
    return json.loads("\n".join(lines[start:]))


@pytest.fixture
def database_url(session_factory) -> str:
    return get_engine().url.render_as_string(hide_password=False)


@pytest.fixture
def run_cli(database_url, storage_root, capsys):
    def _run(*args: str) -> tuple[int, str, str]:
        code = main(
            ["--database-url", database_url, "--storage-root", str(storage_root), *args]
        )
        out, err = capsys.readouterr()
        return code, out, err

    return _run


def test_clean_run(run_cli, artist_id, write_statement, make_row, store):
    key = write_statement([make_row(), make_row(title="Song B")])

    code, out, _ = run_cli("--artist-id", str(artist_id), "--storage-path", key)

    assert code == EXIT_OK
    result = json.loads(out)
    assert result["success"] is True
    assert result["rows_committed"] == 2
    assert result["summaries"][0]["period"] == "2024-Q1"
    assert store.count_royalties(artist_id) == 2


def test_partial_run_writes_failure_report(run_cli, artist_id, write_statement, make_row, tmp_path):
    key = write_statement([make_row(), make_row(title="Song B", usage_date="someday")])
    report_path = tmp_path / "failures.csv"

    code, out, _ = run_cli(
        "--artist-id", str(artist_id),
        "--storage-path", key,
        "--batch-size", "1",
        "--failure-report", str(report_path),
    )

    assert code == EXIT_PARTIAL
    result = json.loads(out)
    assert result["rows_failed"] == 1
    assert result["failed_rows"][0]["reasons"][0]["code"] == "INVALID_DATE"
    lines = report_path.read_text(encoding="utf-8").splitlines()
    assert lines[0].endswith("failure_reason")
    assert lines[1].startswith("Song B,")


def test_omit_rows(run_cli, artist_id, write_statement, make_row):
    key = write_statement([make_row(gross="oops")])
    code, out, _ = run_cli("--artist-id", str(artist_id), "--storage-path", key, "--omit-rows")

    assert code == EXIT_PARTIAL
    assert "failed_rows" not in json.loads(out)


def test_unknown_artist(run_cli, session_factory, write_statement, make_row):
    key = write_statement([make_row()])
    code, out, err = run_cli(
        "--artist-id", "00000000-0000-0000-0000-000000000001", "--storage-path", key
    )

    assert code == EXIT_ERROR
    assert out == ""
    assert error_json(err)["error"] == "ARTIST_NOT_FOUND"


def test_invalid_artist_id(run_cli, session_factory):
    code, _, err = run_cli("--artist-id", "nope", "--storage-path", "q1.csv")
    assert code == EXIT_ERROR
    assert error_json(err)["error"] == "INVALID_REQUEST"


def test_invalid_batch_size(run_cli, artist_id, write_statement, make_row):
    key = write_statement([make_row()])
    code, _, err = run_cli("--artist-id", str(artist_id), "--storage-path", key, "--batch-size", "0")
    assert code == EXIT_ERROR
    assert error_json(err)["error"] == "INVALID_BATCH_CONFIG"


def test_missing_columns(run_cli, artist_id, write_statement):
    key = write_statement(["Song A"], header="Song Title")
    code, _, err = run_cli("--artist-id", str(artist_id), "--storage-path", key)
    assert code == EXIT_ERROR
    assert error_json(err)["error"] == "MISSING_COLUMNS"


def test_bad_config_path(run_cli, artist_id, tmp_path):
    code, _, err = run_cli(
        "--artist-id", str(artist_id),
        "--storage-path", "q1.csv",
        "--config", str(tmp_path / "missing.yaml"),
    )
    assert code == EXIT_ERROR
    assert "Failed to load config" in err


def test_probe_only(storage_root, write_statement, make_row, capsys):
    key = write_statement([make_row(title=f"Song {i}") for i in range(7)])

    code = main(
        [
            "--artist-id", "00000000-0000-0000-0000-000000000001",
            "--storage-path", key,
            "--storage-root", str(storage_root),
            "--probe-only",
        ]
    )

    assert code == EXIT_OK
    probe = json.loads(capsys.readouterr().out)
    assert probe["row_count"] == 7
    assert probe["columns"][0] == "Song Title"
    assert len(probe["sample_rows"]) == 5


def test_required_arguments(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["--storage-path", "q1.csv"])
    assert exc_info.value.code == 2
