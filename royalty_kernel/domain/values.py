"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides the value types for every royalty computation: Currency, Money
    and Percentage. These replace primitive types (Decimal, str) wherever
    monetary data appears in ingestion and aggregation logic.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    No outward dependencies except royalty_kernel.domain.currency.

Invariants enforced:
    - Money amounts are Decimal, never float (float input raises TypeError).
    - Currency codes are validated against CurrencyRegistry at construction.
    - Percentage application computes at full precision and rounds once, so
      net = round_half_up(gross * (1 - pct/100), places) holds exactly.

Failure modes:
    - TypeError on float amounts.
    - ValueError on non-numeric amounts or out-of-range percentages.
    - InvalidCurrencyError on unknown currency codes.
    - CurrencyMismatchError when arithmetic mixes currencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext

from royalty_kernel.domain.currency import CurrencyRegistry
from royalty_kernel.exceptions import CurrencyMismatchError, InvalidCurrencyError

# Intermediate percentage math runs at this precision before the single
# final rounding step. 10^9 gross * 4-digit factor fits with room to spare.
_WORKING_PRECISION = 50

_HUNDRED = Decimal("100")


def _to_decimal(value: Decimal | int | str, what: str) -> Decimal:
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"{what} must be Decimal, int or str, never {type(value).__name__}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"Invalid {what}: {value!r}") from e
    else:
        raise TypeError(f"{what} must be Decimal, int or str, got {type(value).__name__}")
    if not result.is_finite():
        raise ValueError(f"Invalid {what}: {value!r}")
    return result


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code value object.

    Contract:
        Wraps a three-letter code, normalized (uppercased) on construction.
        Unknown codes are rejected immediately.
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if isinstance(self.code, str) else ""
        if not CurrencyRegistry.is_valid(normalized):
            raise InvalidCurrencyError(str(self.code))
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@dataclass(frozen=True, slots=True)
class Percentage:
    """
    A percentage in the closed range 0..100 with at most two decimal places.

    Used for the administration fee withheld from gross royalties.
    """

    value: Decimal

    def __post_init__(self) -> None:
        value = _to_decimal(self.value, "percentage")
        if value < 0 or value > _HUNDRED:
            raise ValueError(f"Percentage must be between 0 and 100: {value}")
        if value.as_tuple().exponent < -2:
            raise ValueError(f"Percentage allows at most 2 decimal places: {value}")
        object.__setattr__(self, "value", value)

    @classmethod
    def of(cls, value: Decimal | int | str) -> Percentage:
        return cls(value=_to_decimal(value, "percentage"))

    @classmethod
    def zero(cls) -> Percentage:
        return cls(value=Decimal("0"))

    @property
    def fraction(self) -> Decimal:
        """The percentage as an exact fraction (20.00 -> 0.2000)."""
        return self.value / _HUNDRED

    def quantized(self) -> Decimal:
        """Value at the stored two-decimal scale."""
        return self.value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    def __str__(self) -> str:
        return f"{self.quantized()}%"


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Pairs a Decimal amount with its Currency -- they are NEVER separated.

    Guarantees:
        - Immutable and hashable (frozen dataclass with slots)
        - amount is always a Decimal, never float
        - Arithmetic operations enforce the same-currency constraint

    Non-goals:
        - Does NOT perform currency conversion
        - Does NOT auto-round on construction -- callers call .round()
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _to_decimal(self.amount, "amount"))

        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """
        Factory method for creating Money.

        Raises:
            TypeError: If amount is a float.
            ValueError: If amount cannot be converted.
            InvalidCurrencyError: If the currency code is unknown.
        """
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=_to_decimal(amount, "amount"), currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        """Create a zero amount in the given currency."""
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=Decimal("0"), currency=currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Round half-up to the currency's decimal places."""
        info = CurrencyRegistry.get_info(self.currency.code)
        quantum = Decimal(info.quantize_string) if info else Decimal("0.01")
        with localcontext(Context(prec=_WORKING_PRECISION)):
            rounded = self.amount.quantize(quantum, rounding=rounding)
        return Money(amount=rounded, currency=self.currency)

    def apply_percentage(self, percentage: Percentage) -> Money:
        """
        The portion of this amount represented by `percentage`, rounded once.

        100.00 at 20.00% -> 20.00
        """
        with localcontext(Context(prec=_WORKING_PRECISION)):
            raw = self.amount * percentage.value / _HUNDRED
        return Money(amount=raw, currency=self.currency).round()

    def net_of(self, percentage: Percentage) -> Money:
        """
        This amount after withholding `percentage`, rounded once at the end.

        net = round_half_up(gross * (1 - pct/100)); the fee is never rounded
        separately so there is no cent drift between gross, fee and net.
        """
        with localcontext(Context(prec=_WORKING_PRECISION)):
            raw = self.amount * (_HUNDRED - percentage.value) / _HUNDRED
        return Money(amount=raw, currency=self.currency).round()

    def _check_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency.code, other.currency.code)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        with localcontext(Context(prec=_WORKING_PRECISION)):
            return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        with localcontext(Context(prec=_WORKING_PRECISION)):
            return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def __mul__(self, factor: Decimal | int) -> Money:
        """Multiply by a scalar. Floats are rejected."""
        if isinstance(factor, float):
            raise TypeError("Money cannot be multiplied by float")
        if isinstance(factor, bool) or not isinstance(factor, (Decimal, int)):
            return NotImplemented
        with localcontext(Context(prec=_WORKING_PRECISION)):
            return Money(amount=self.amount * Decimal(factor), currency=self.currency)

    def __rmul__(self, factor: Decimal | int) -> Money:
        return self.__mul__(factor)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"
