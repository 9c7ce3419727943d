"""Currency -- registry of quotable currencies and their minor units."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Minor-unit information for one ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str
    symbol: str = ""

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount (0.01 for EUR, 1 for JPY)."""
        if self.decimal_places == 0:
            return Decimal("1")
        return Decimal("0." + "0" * (self.decimal_places - 1) + "1")

    @property
    def quantize_string(self) -> str:
        """String for Decimal.quantize() to round to this currency's precision."""
        if self.decimal_places == 0:
            return "1"
        return "0." + "0" * self.decimal_places


class CurrencyRegistry:
    """Currencies an offer may be quoted in.

    Offers are issued in a single jurisdiction, so the registry only lists
    the European currencies plus the majors a catalog might be priced in.
    """

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "EUR": CurrencyInfo("EUR", 2, "Euro", "€"),
        "USD": CurrencyInfo("USD", 2, "US Dollar", "$"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling", "£"),
        "CHF": CurrencyInfo("CHF", 2, "Swiss Franc", "CHF"),
        "DKK": CurrencyInfo("DKK", 2, "Danish Krone", "kr"),
        "SEK": CurrencyInfo("SEK", 2, "Swedish Krona", "kr"),
        "NOK": CurrencyInfo("NOK", 2, "Norwegian Krone", "kr"),
        "PLN": CurrencyInfo("PLN", 2, "Polish Zloty", "zł"),
        "CZK": CurrencyInfo("CZK", 2, "Czech Koruna", "Kč"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen", "¥"),
    }

    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a currency code is registered."""
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
        info = cls.get_info(code)
        return info.decimal_places if info else cls.DEFAULT_DECIMAL_PLACES

    @classmethod
    def validate(cls, code: str) -> str:
        """Validate and normalize a currency code."""
        if not code or not isinstance(code, str):
            raise ValueError(f"Invalid currency code: {code!r}")

        normalized = code.upper().strip()
        if normalized not in cls._CURRENCIES:
            raise ValueError(f"Unsupported currency code: {code!r}")
        return normalized

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES.keys())
