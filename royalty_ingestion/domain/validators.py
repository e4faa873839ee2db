"""
Field validators for royalty statement cells.

Each validator takes the trimmed cell text and returns ``(value, errors)``.
When ``errors`` is non-empty the value is None.  Validators never raise on
bad input; the row parser collects every error on a line so the failure
report names all of them at once.

Architecture: royalty_ingestion/domain.  ZERO I/O.  Imports only from
royalty_kernel/domain/.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from royalty_kernel.domain.currency import CurrencyRegistry
from royalty_kernel.domain.dtos import ValidationError
from royalty_kernel.domain.values import Money, Percentage

from royalty_ingestion.domain.types import FailureReason

_PERCENT_PLACES = 2
_HUNDRED = Decimal("100")

# Numeric(38, 9) amount columns hold 29 integer digits; usage is a 32-bit Integer.
_MAX_AMOUNT_DIGITS = 29
_MAX_USAGE_COUNT = 2**31 - 1


def _error(reason: FailureReason, message: str, field: str, value: str | None = None) -> ValidationError:
    details = {"value": value} if value is not None else None
    return ValidationError(code=reason.value, message=message, field=field, details=details)


def clean_numeric(text: str, strip_chars: str = "") -> tuple[str, bool]:
    """
    Strip currency symbols, thousands separators and whitespace.

    Returns ``(cleaned, parenthesized)``; accounting notation ``(12.50)``
    sets the flag and drops the parentheses.
    """
    cleaned = "".join(ch for ch in text if ch not in strip_chars and ch != "," and not ch.isspace())
    parenthesized = len(cleaned) >= 2 and cleaned.startswith("(") and cleaned.endswith(")")
    if parenthesized:
        cleaned = cleaned[1:-1]
    return cleaned, parenthesized


def _parse_decimal(cleaned: str) -> Decimal | None:
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def _places(value: Decimal) -> int:
    exponent = value.as_tuple().exponent
    return -exponent if isinstance(exponent, int) and exponent < 0 else 0


def validate_required_text(text: str, field: str) -> tuple[str | None, list[ValidationError]]:
    if not text:
        return None, [_error(FailureReason.MISSING_FIELD, f"{field} is required", field)]
    return text, []


def validate_money(
    text: str,
    field: str,
    currency: str,
) -> tuple[Money | None, list[ValidationError]]:
    """
    Parse a non-negative amount in `currency`.

    More decimal places than the currency allows is INVALID_NUMBER rather
    than a silent rounding.
    """
    if not text:
        return None, [_error(FailureReason.MISSING_FIELD, f"{field} is required", field)]

    symbols = "".join(CurrencyRegistry.symbols())
    cleaned, parenthesized = clean_numeric(text, symbols)
    amount = _parse_decimal(cleaned)
    if amount is None:
        return None, [
            _error(FailureReason.INVALID_NUMBER, f"{field} is not a number: {text!r}", field, text)
        ]
    if parenthesized or amount < 0:
        return None, [
            _error(FailureReason.NEGATIVE_AMOUNT, f"{field} must not be negative: {text!r}", field, text)
        ]
    if amount.adjusted() >= _MAX_AMOUNT_DIGITS:
        return None, [
            _error(FailureReason.INVALID_NUMBER, f"{field} is too large: {text!r}", field, text)
        ]
    places = CurrencyRegistry.get_decimal_places(currency)
    if _places(amount) > places:
        return None, [
            _error(
                FailureReason.INVALID_NUMBER,
                f"{field} has more than {places} decimal places: {text!r}",
                field,
                text,
            )
        ]
    return Money.of(amount, currency), []


def validate_percentage(text: str, field: str) -> tuple[Percentage | None, list[ValidationError]]:
    if not text:
        return None, [_error(FailureReason.MISSING_FIELD, f"{field} is required", field)]

    cleaned, parenthesized = clean_numeric(text.rstrip().removesuffix("%"))
    value = _parse_decimal(cleaned)
    if value is None:
        return None, [
            _error(FailureReason.INVALID_NUMBER, f"{field} is not a number: {text!r}", field, text)
        ]
    if parenthesized:
        value = -value
    if value < 0 or value > _HUNDRED:
        return None, [
            _error(FailureReason.OUT_OF_RANGE, f"{field} must be between 0 and 100: {text!r}", field, text)
        ]
    if _places(value) > _PERCENT_PLACES:
        return None, [
            _error(
                FailureReason.INVALID_NUMBER,
                f"{field} has more than {_PERCENT_PLACES} decimal places: {text!r}",
                field,
                text,
            )
        ]
    return Percentage.of(value), []


def validate_usage_count(text: str, field: str) -> tuple[int | None, list[ValidationError]]:
    """Blank usage means zero plays; anything else must be a whole number."""
    if not text:
        return 0, []

    cleaned, parenthesized = clean_numeric(text)
    value = _parse_decimal(cleaned)
    if value is None or value != value.to_integral_value():
        return None, [
            _error(FailureReason.INVALID_NUMBER, f"{field} is not a whole number: {text!r}", field, text)
        ]
    if parenthesized or value < 0:
        return None, [
            _error(FailureReason.NEGATIVE_AMOUNT, f"{field} must not be negative: {text!r}", field, text)
        ]
    if value.adjusted() >= 10 or value > _MAX_USAGE_COUNT:
        return None, [
            _error(FailureReason.OUT_OF_RANGE, f"{field} exceeds {_MAX_USAGE_COUNT}: {text!r}", field, text)
        ]
    return int(value), []


def validate_date(
    text: str,
    field: str,
    formats: Sequence[str],
) -> tuple[date | None, list[ValidationError]]:
    """Try each configured format in order; the first that parses wins."""
    if not text:
        return None, [_error(FailureReason.MISSING_FIELD, f"{field} is required", field)]
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt).date(), []
        except ValueError:
            continue
    return None, [
        _error(FailureReason.INVALID_DATE, f"{field} is not a recognised date: {text!r}", field, text)
    ]


def optional_text(text: str) -> str | None:
    return text or None
