"""Currency -- ISO 4217 registry for royalty statement currencies."""

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str
    symbol: str | None = None

    @property
    def quantize_string(self) -> str:
        """String for Decimal.quantize() to round to this currency's precision."""
        if self.decimal_places == 0:
            return "1"
        return "0." + "0" * self.decimal_places


class CurrencyRegistry:
    """Registry of ISO 4217 currencies seen on distributor statements."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "USD": CurrencyInfo("USD", 2, "US Dollar", "$"),
        "EUR": CurrencyInfo("EUR", 2, "Euro", "€"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling", "£"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen", "¥"),
        "PHP": CurrencyInfo("PHP", 2, "Philippine Peso", "₱"),
        "AUD": CurrencyInfo("AUD", 2, "Australian Dollar"),
        "BRL": CurrencyInfo("BRL", 2, "Brazilian Real"),
        "CAD": CurrencyInfo("CAD", 2, "Canadian Dollar"),
        "CHF": CurrencyInfo("CHF", 2, "Swiss Franc"),
        "CNY": CurrencyInfo("CNY", 2, "Chinese Yuan"),
        "DKK": CurrencyInfo("DKK", 2, "Danish Krone"),
        "HKD": CurrencyInfo("HKD", 2, "Hong Kong Dollar"),
        "IDR": CurrencyInfo("IDR", 2, "Indonesian Rupiah"),
        "INR": CurrencyInfo("INR", 2, "Indian Rupee"),
        "KRW": CurrencyInfo("KRW", 0, "South Korean Won"),
        "MXN": CurrencyInfo("MXN", 2, "Mexican Peso"),
        "MYR": CurrencyInfo("MYR", 2, "Malaysian Ringgit"),
        "NGN": CurrencyInfo("NGN", 2, "Nigerian Naira"),
        "NOK": CurrencyInfo("NOK", 2, "Norwegian Krone"),
        "NZD": CurrencyInfo("NZD", 2, "New Zealand Dollar"),
        "PLN": CurrencyInfo("PLN", 2, "Polish Zloty"),
        "SEK": CurrencyInfo("SEK", 2, "Swedish Krona"),
        "SGD": CurrencyInfo("SGD", 2, "Singapore Dollar"),
        "THB": CurrencyInfo("THB", 2, "Thai Baht"),
        "TWD": CurrencyInfo("TWD", 2, "New Taiwan Dollar"),
        "VND": CurrencyInfo("VND", 0, "Vietnamese Dong"),
        "ZAR": CurrencyInfo("ZAR", 2, "South African Rand"),
    }

    # Default decimal places for unknown currencies
    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a currency code is a registered ISO 4217 code."""
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        """Get currency information by code."""
        if not code or not isinstance(code, str):
            return None
        return cls._CURRENCIES.get(code.upper().strip())

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        """Get decimal places for a currency."""
        info = cls.get_info(code)
        return info.decimal_places if info else cls.DEFAULT_DECIMAL_PLACES

    @classmethod
    def symbols(cls) -> frozenset[str]:
        """Currency symbols that may prefix amounts in statement cells."""
        return frozenset(
            info.symbol for info in cls._CURRENCIES.values() if info.symbol
        )

    @classmethod
    def validate(cls, code: str) -> str:
        """Validate and normalize a currency code."""
        if not code or not isinstance(code, str):
            raise ValueError(f"Invalid currency code: {code!r}")

        normalized = code.upper().strip()

        if len(normalized) != 3:
            raise ValueError(f"Currency code must be 3 characters: {code!r}")

        if normalized not in cls._CURRENCIES:
            raise ValueError(f"Invalid ISO 4217 currency code: {code!r}")

        return normalized
