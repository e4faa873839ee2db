"""Header-to-field mapping through the configured alias lists."""

import pytest

from royalty_config.loader import load_pipeline_config
from royalty_ingestion.domain.columns import build_column_mapping
from royalty_kernel.exceptions import MissingColumnsError

STANDARD = ["Song Title", "ISWC", "Date", "Territory", "Source", "Usage Count", "Gross", "Admin %", "Net"]


@pytest.fixture(scope="module")
def aliases():
    return load_pipeline_config().ingestion.column_aliases


def test_standard_headers(aliases):
    mapping = build_column_mapping(STANDARD, aliases)
    assert mapping.as_dict() == {
        "title": "Song Title",
        "external_id": "ISWC",
        "composer": None,
        "usage_date": "Date",
        "territory": "Territory",
        "platform": "Source",
        "usage_count": "Usage Count",
        "gross": "Gross",
        "admin_percent": "Admin %",
        "net": "Net",
    }


def test_alternative_labels(aliases):
    headers = ["title", "Broadcast Date", "Country", "Platform", "Gross Amount", "AdminPercent"]
    mapping = build_column_mapping(headers, aliases)
    assert mapping.column_for("title") == "title"
    assert mapping.column_for("usage_date") == "Broadcast Date"
    assert mapping.column_for("territory") == "Country"
    assert mapping.column_for("gross") == "Gross Amount"
    assert mapping.column_for("usage_count") is None


def test_case_insensitive_fallback(aliases):
    headers = ["SONG TITLE", "DATE", "TERRITORY", "SOURCE", "GROSS", "ADMIN %"]
    mapping = build_column_mapping(headers, aliases)
    assert mapping.column_for("title") == "SONG TITLE"
    assert mapping.column_for("admin_percent") == "ADMIN %"


def test_exact_match_preferred_over_case_insensitive():
    aliases = {"title": ["Title", "Song Title"], "gross": ["Gross"]}
    mapping = build_column_mapping(["song title", "Title", "Gross"], aliases, required=frozenset())
    assert mapping.column_for("title") == "Title"


def test_missing_required_columns(aliases):
    with pytest.raises(MissingColumnsError) as exc_info:
        build_column_mapping(["Song Title", "Date", "Source"], aliases)

    err = exc_info.value
    assert err.missing == ["territory", "gross", "admin_percent"]
    assert err.headers == ["Song Title", "Date", "Source"]
    assert "territory" in str(err)


def test_value_trims_and_defaults(aliases):
    mapping = build_column_mapping(STANDARD[:-1], aliases)
    raw = {"Song Title": "  Song A  ", "Gross": None}
    assert mapping.value(raw, "title") == "Song A"
    assert mapping.value(raw, "gross") == ""
    assert mapping.value(raw, "net") == ""
