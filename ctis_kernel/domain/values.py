"""
Values -- Immutable, self-validating monetary value objects.

Responsibility:
    Provides the value types every tax calculation is expressed in:
    Currency and Money. These replace primitive types (Decimal, str)
    wherever a monetary amount appears in engine logic.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every engine. No outward dependencies except
    ctis_kernel.domain.currency (CurrencyRegistry).

Invariants enforced:
    - Monetary amounts are Decimal, never float.
    - Currency codes are validated at construction time.
    - Rounding precision is derived from the currency's decimal places,
      never hardcoded.

Failure modes:
    - ValueError on construction with invalid amounts or currencies.
    - ValueError when arithmetic or comparison mixes currencies.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ctis_kernel.domain.currency import CurrencyRegistry


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code value object.

    Contract:
        Wraps a three-letter ISO 4217 code. Validated and normalized (uppercased)
        on construction. Unsupported codes are rejected immediately.

    Guarantees:
        - Immutable and hashable (frozen dataclass with slots)
        - code is always uppercase and stripped of whitespace

    Non-goals:
        - Does NOT perform currency conversion
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if self.code else ""
        if not CurrencyRegistry.is_valid(normalized):
            raise ValueError(f"Invalid ISO 4217 currency code: {self.code}")
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def rounding_tolerance(self) -> Decimal:
        """One minor unit of this currency."""
        return CurrencyRegistry.get_rounding_tolerance(self.code)

    @property
    def name(self) -> str:
        info = CurrencyRegistry.get_info(self.code)
        return info.name if info else self.code

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Pairs a Decimal amount with its Currency -- they are NEVER separated.
        Every liability, duty, penalty and threshold in the engine is a Money.

    Guarantees:
        - Immutable and hashable (frozen dataclass with slots)
        - amount is always a Decimal (never float)
        - Arithmetic and comparisons enforce the same-currency constraint

    Non-goals:
        - Does NOT auto-round -- callers must explicitly call .round()
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        if isinstance(self.amount, float):
            raise ValueError(f"Money amount must not be a float: {self.amount!r}")
        if not isinstance(self.amount, Decimal):
            try:
                object.__setattr__(self, "amount", Decimal(str(self.amount)))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid amount: {self.amount}") from e

        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """
        Factory method for creating Money.

        Args:
            amount: The monetary amount (no float allowed).
            currency: ISO 4217 currency code or Currency object.

        Raises:
            ValueError: If amount cannot be converted or currency is invalid.
        """
        if isinstance(amount, (str, int)):
            amount = Decimal(str(amount))
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=amount, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        """Create a zero amount in the given currency."""
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=Decimal("0"), currency=currency)

    @classmethod
    def sum_of(cls, values: Iterable[Money], currency: str | Currency) -> Money:
        """Sum an iterable of Money; an empty iterable yields zero."""
        total = cls.zero(currency)
        for value in values:
            total = total + value
        return total

    @property
    def is_zero(self) -> bool:
        return self.amount == Decimal("0")

    @property
    def is_positive(self) -> bool:
        return self.amount > Decimal("0")

    @property
    def is_negative(self) -> bool:
        return self.amount < Decimal("0")

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """
        Round to the currency's decimal places.

        Returns a new Money instance; the original is unchanged.
        """
        decimal_places = self.currency.decimal_places
        quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
        rounded = self.amount.quantize(Decimal(quantize_str), rounding=rounding)
        return Money(amount=rounded, currency=self.currency)

    def _check_currency(self, other: Money, operation: str) -> None:
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot {operation} Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "add")
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "subtract")
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def __abs__(self) -> Money:
        return Money(amount=abs(self.amount), currency=self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        """Multiply by a scalar."""
        if isinstance(factor, (int, str)) and not isinstance(factor, bool):
            factor = Decimal(str(factor))
        if not isinstance(factor, Decimal):
            return NotImplemented
        return Money(amount=self.amount * factor, currency=self.currency)

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __truediv__(self, divisor: Decimal | int | str) -> Money:
        """Divide by a scalar."""
        if isinstance(divisor, (int, str)):
            divisor = Decimal(str(divisor))
        if not isinstance(divisor, Decimal):
            return NotImplemented
        return Money(amount=self.amount / divisor, currency=self.currency)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"
