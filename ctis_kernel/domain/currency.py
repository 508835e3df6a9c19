"""Currency -- ISO 4217 registry and precision-derived rounding."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def rounding_tolerance(self) -> Decimal:
        """Smallest representable unit for this currency."""
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
    """Registry of the ISO 4217 currencies the tax engine accepts."""

    # Leone (new and legacy denomination) plus the currencies that appear on
    # cross-border withholding and import declarations.
    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "SLE": CurrencyInfo("SLE", 2, "Sierra Leonean Leone"),
        "SLL": CurrencyInfo("SLL", 2, "Sierra Leonean Leone (old)"),
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        "CNY": CurrencyInfo("CNY", 2, "Chinese Yuan"),
        "NGN": CurrencyInfo("NGN", 2, "Nigerian Naira"),
        "GHS": CurrencyInfo("GHS", 2, "Ghanaian Cedi"),
        "LRD": CurrencyInfo("LRD", 2, "Liberian Dollar"),
        "GNF": CurrencyInfo("GNF", 0, "Guinean Franc"),
        "XOF": CurrencyInfo("XOF", 0, "West African CFA Franc"),
    }

    # Default decimal places for unknown currencies
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
    def get_rounding_tolerance(cls, code: str) -> Decimal:
        """Rounding tolerance derived from currency precision."""
        info = cls.get_info(code)
        if info:
            return info.rounding_tolerance
        return CurrencyInfo(code, cls.DEFAULT_DECIMAL_PLACES, code).rounding_tolerance

    @classmethod
    def validate(cls, code: str) -> str:
        """Validate and normalize a currency code."""
        if not code or not isinstance(code, str):
            raise ValueError(f"Invalid currency code: {code!r}")

        normalized = code.upper().strip()

        if len(normalized) != 3:
            raise ValueError(f"Currency code must be 3 characters: {code!r}")

        if normalized not in cls._CURRENCIES:
            raise ValueError(f"Unsupported ISO 4217 currency code: {code!r}")

        return normalized

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        """Get all valid currency codes."""
        return frozenset(cls._CURRENCIES.keys())
