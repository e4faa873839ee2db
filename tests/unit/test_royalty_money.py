"""
Money / Percentage / Currency value objects.

Exactness of the net computation is checked property-style with Hypothesis
for amounts up to 10^9 and every two-decimal admin percentage.
"""

from decimal import ROUND_HALF_UP, Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from royalty_kernel.domain.currency import CurrencyRegistry
from royalty_kernel.domain.values import Currency, Money, Percentage
from royalty_kernel.exceptions import CurrencyMismatchError, InvalidCurrencyError

amounts = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("1000000000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
percentages = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("100"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


class TestMoneyConstruction:
    def test_float_amount_rejected(self):
        with pytest.raises(TypeError):
            Money.of(1.5, "USD")

    def test_bool_amount_rejected(self):
        with pytest.raises(TypeError):
            Money.of(True, "USD")

    def test_string_amount_parsed_exactly(self):
        assert Money.of("0.10", "USD").amount == Decimal("0.10")

    def test_non_numeric_string_rejected(self):
        with pytest.raises(ValueError):
            Money.of("ten", "USD")

    def test_unknown_currency_rejected(self):
        with pytest.raises(InvalidCurrencyError):
            Money.of("1.00", "XXX")

    def test_currency_code_normalized(self):
        assert Money.of("1", "usd").currency == Currency("USD")


class TestMoneyArithmetic:
    def test_addition_same_currency(self):
        total = Money.of("0.10", "USD") + Money.of("0.20", "USD")
        assert total == Money.of("0.30", "USD")

    def test_addition_mixed_currency_raises(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "USD") + Money.of("1", "EUR")

    def test_subtraction_mixed_currency_raises(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "USD") - Money.of("1", "GBP")

    def test_multiply_by_int_and_decimal(self):
        assert Money.of("2.50", "USD") * 4 == Money.of("10.00", "USD")
        assert Decimal("0.5") * Money.of("3", "USD") == Money.of("1.5", "USD")

    def test_multiply_by_float_raises(self):
        with pytest.raises(TypeError):
            Money.of("1", "USD") * 0.5

    def test_round_half_up(self):
        assert Money.of("2.345", "USD").round().amount == Decimal("2.35")
        assert Money.of("2.344", "USD").round().amount == Decimal("2.34")

    def test_round_zero_decimal_currency(self):
        assert Money.of("100.5", "JPY").round().amount == Decimal("101")

    def test_comparison_across_currencies_raises(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "USD") < Money.of("2", "EUR")


class TestNetOf:
    def test_spec_example(self):
        net = Money.of("100.00", "USD").net_of(Percentage.of("20"))
        assert net.amount == Decimal("80.00")

    def test_rounds_once_half_up(self):
        # 0.05 * 0.85 = 0.0425 -> 0.04 ; 0.15 * 0.9 = 0.135 -> 0.14
        assert Money.of("0.05", "USD").net_of(Percentage.of("15")).amount == Decimal("0.04")
        assert Money.of("0.15", "USD").net_of(Percentage.of("10")).amount == Decimal("0.14")

    def test_zero_and_full_fee(self):
        gross = Money.of("12.34", "USD")
        assert gross.net_of(Percentage.of("0")) == gross
        assert gross.net_of(Percentage.of("100")).amount == Decimal("0.00")

    def test_apply_percentage_is_fee(self):
        fee = Money.of("100.00", "USD").apply_percentage(Percentage.of("12.5"))
        assert fee.amount == Decimal("12.50")

    @settings(max_examples=300, deadline=None)
    @given(gross=amounts, pct=percentages)
    def test_net_is_exact_for_large_amounts(self, gross, pct):
        net = Money.of(gross, "USD").net_of(Percentage.of(pct))
        expected = (gross * (Decimal(100) - pct) / Decimal(100)).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
        assert net.amount == expected
        assert Decimal(0) <= net.amount <= gross


class TestPercentage:
    @pytest.mark.parametrize("value", ["-0.01", "100.01", "250"])
    def test_out_of_range_rejected(self, value):
        with pytest.raises(ValueError):
            Percentage.of(value)

    def test_more_than_two_places_rejected(self):
        with pytest.raises(ValueError):
            Percentage.of("12.345")

    def test_quantized_and_str(self):
        assert str(Percentage.of("20")) == "20.00%"

    def test_fraction(self):
        assert Percentage.of("25").fraction == Decimal("0.25")


class TestCurrencyRegistry:
    def test_statement_symbols(self):
        assert {"$", "€", "£", "¥", "₱"} <= CurrencyRegistry.symbols()

    def test_decimal_places(self):
        assert CurrencyRegistry.get_decimal_places("USD") == 2
        assert CurrencyRegistry.get_decimal_places("JPY") == 0

    def test_validate_normalizes(self):
        assert CurrencyRegistry.validate(" php ") == "PHP"

    @pytest.mark.parametrize("code", ["", "US", "ABC"])
    def test_validate_rejects(self, code):
        with pytest.raises(ValueError):
            CurrencyRegistry.validate(code)
