"""Field validators: every problem is a ValidationError value, never a raise."""

from datetime import date
from decimal import Decimal

import pytest

from royalty_ingestion.domain.validators import (
    clean_numeric,
    validate_date,
    validate_money,
    validate_percentage,
    validate_required_text,
    validate_usage_count,
)

FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%d-%b-%Y")


def codes(errors):
    return [e.code for e in errors]


class TestCleanNumeric:
    def test_strips_symbols_separators_and_spaces(self):
        assert clean_numeric(" $1,234.50 ", "$") == ("1234.50", False)

    def test_parentheses(self):
        assert clean_numeric("(12.50)") == ("12.50", True)

    def test_lone_paren_untouched(self):
        assert clean_numeric("(") == ("(", False)


class TestMoney:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("100.00", Decimal("100.00")),
            ("$1,234.50", Decimal("1234.50")),
            ("0", Decimal("0")),
            ("7", Decimal("7")),
            ("9" * 29 + ".99", Decimal("9" * 29 + ".99")),
        ],
    )
    def test_valid(self, text, expected):
        money, errors = validate_money(text, "gross", "USD")
        assert errors == []
        assert money.amount == expected
        assert money.currency.code == "USD"

    @pytest.mark.parametrize(
        "text, code",
        [
            ("", "MISSING_FIELD"),
            ("abc", "INVALID_NUMBER"),
            ("NaN", "INVALID_NUMBER"),
            ("Infinity", "INVALID_NUMBER"),
            ("-5.00", "NEGATIVE_AMOUNT"),
            ("(12.50)", "NEGATIVE_AMOUNT"),
            ("1.005", "INVALID_NUMBER"),
            ("1e60", "INVALID_NUMBER"),
            ("1" + "0" * 55, "INVALID_NUMBER"),
            ("1" + "0" * 29, "INVALID_NUMBER"),
        ],
    )
    def test_invalid(self, text, code):
        money, errors = validate_money(text, "gross", "USD")
        assert money is None
        assert codes(errors) == [code]
        assert errors[0].field == "gross"

    def test_zero_decimal_currency(self):
        _, errors = validate_money("100.5", "gross", "JPY")
        assert codes(errors) == ["INVALID_NUMBER"]
        money, errors = validate_money("¥1,000", "gross", "JPY")
        assert errors == []
        assert money.amount == Decimal("1000")

    def test_invalid_value_kept_in_details(self):
        _, errors = validate_money("12,x", "gross", "USD")
        assert errors[0].details == {"value": "12,x"}


class TestPercentage:
    @pytest.mark.parametrize(
        "text, expected",
        [("20", "20"), ("20%", "20"), ("12.5 %", "12.5"), ("0", "0"), ("100", "100"), ("33.33", "33.33")],
    )
    def test_valid(self, text, expected):
        pct, errors = validate_percentage(text, "admin_percent")
        assert errors == []
        assert pct.value == Decimal(expected)

    @pytest.mark.parametrize(
        "text, code",
        [
            ("", "MISSING_FIELD"),
            ("twenty", "INVALID_NUMBER"),
            ("100.01", "OUT_OF_RANGE"),
            ("-1", "OUT_OF_RANGE"),
            ("(5)", "OUT_OF_RANGE"),
            ("12.345", "INVALID_NUMBER"),
        ],
    )
    def test_invalid(self, text, code):
        pct, errors = validate_percentage(text, "admin_percent")
        assert pct is None
        assert codes(errors) == [code]


class TestUsageCount:
    @pytest.mark.parametrize(
        "text, expected", [("", 0), ("10", 10), ("1,000", 1000), ("2.0", 2)]
    )
    def test_valid(self, text, expected):
        assert validate_usage_count(text, "usage_count") == (expected, [])

    @pytest.mark.parametrize(
        "text, code",
        [
            ("2.5", "INVALID_NUMBER"),
            ("many", "INVALID_NUMBER"),
            ("-3", "NEGATIVE_AMOUNT"),
            ("2147483648", "OUT_OF_RANGE"),
            ("1e999999999", "OUT_OF_RANGE"),
        ],
    )
    def test_invalid(self, text, code):
        value, errors = validate_usage_count(text, "usage_count")
        assert value is None
        assert codes(errors) == [code]


class TestDate:
    @pytest.mark.parametrize(
        "text", ["2024-01-15", "01/15/2024", "15-Jan-2024"]
    )
    def test_each_configured_format(self, text):
        assert validate_date(text, "usage_date", FORMATS) == (date(2024, 1, 15), [])

    @pytest.mark.parametrize(
        "text, code",
        [("", "MISSING_FIELD"), ("2024-02-30", "INVALID_DATE"), ("yesterday", "INVALID_DATE")],
    )
    def test_invalid(self, text, code):
        value, errors = validate_date(text, "usage_date", FORMATS)
        assert value is None
        assert codes(errors) == [code]


def test_required_text():
    assert validate_required_text("Spotify", "platform") == ("Spotify", [])
    value, errors = validate_required_text("", "platform")
    assert value is None
    assert errors[0].code == "MISSING_FIELD"
    assert errors[0].message == "platform is required"
