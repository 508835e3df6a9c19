"""
Tax rules -- immutable rate tables and the rulebook that owns them.

Responsibility:
    Defines the enums that key every rate lookup (tax type, taxpayer
    category, excise product category, withholding payment type) and the
    frozen structures that carry the rates themselves: progressive bracket
    tables, penalty rates, excise rates, the compliance rubric, and the
    TaxRulebook that bundles all of them for one jurisdiction and tax year.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
    Built by ctis_config from YAML; consumed read-only by every engine.

Invariants enforced:
    - Bracket tables are non-empty, sorted, contiguous, and only the last
      bracket is unbounded (validate_bracket_table).
    - Rates are Decimal fractions in [0, 1].
    - Lookups are enum-keyed; an unknown key raises a typed error instead
      of silently defaulting to zero.

Failure modes:
    - InvalidBracketTableError for malformed progressive tables.
    - UnknownCategoryError / UnknownWithholdingTypeError for unknown keys.
    - InvalidRulebookError when a rulebook lacks a required rate.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType

from ctis_kernel.domain.values import Currency, Money
from ctis_kernel.exceptions import (
    InvalidBracketTableError,
    InvalidRulebookError,
    UnknownCategoryError,
    UnknownWithholdingTypeError,
)


class TaxType(str, Enum):
    """Tax types that carry their own penalty rates."""

    INCOME_TAX = "IncomeTax"
    GST = "GST"
    PAYROLL_TAX = "PayrollTax"
    EXCISE_DUTY = "ExciseDuty"


class TaxpayerCategory(str, Enum):
    """Taxpayer classification; selects the income tax regime."""

    INDIVIDUAL = "Individual"
    LARGE = "Large"
    MEDIUM = "Medium"
    SMALL = "Small"
    MICRO = "Micro"

    @property
    def is_company(self) -> bool:
        return self is not TaxpayerCategory.INDIVIDUAL


class ProductCategory(str, Enum):
    """Excisable product categories."""

    TOBACCO = "Tobacco"
    ALCOHOL = "Alcohol"
    FUEL = "Fuel"


class WithholdingTaxType(str, Enum):
    """Payment types subject to withholding at source."""

    DIVIDENDS = "Dividends"
    MANAGEMENT_FEES = "ManagementFees"
    PROFESSIONAL_FEES = "ProfessionalFees"
    LOTTERY_WINNINGS = "LotteryWinnings"
    ROYALTIES = "Royalties"
    INTEREST = "Interest"
    RENT = "Rent"
    COMMISSIONS = "Commissions"


class IssueSeverity(str, Enum):
    """Severity of a compliance issue, derived from its score deduction."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


def _check_rate(name: str, rate: Decimal) -> None:
    if not isinstance(rate, Decimal):
        raise TypeError(f"{name} must be Decimal, got {type(rate).__name__}")
    if rate < Decimal("0") or rate > Decimal("1"):
        raise ValueError(f"{name} must be between 0 and 1, got {rate}")


@dataclass(frozen=True)
class TaxBracket:
    """
    One band of a progressive rate table.

    Contract:
        Covers income in (lower_bound, upper_bound]. upper_bound None
        means unbounded; only the last bracket of a table may be unbounded.

    Guarantees:
        - rate is a Decimal fraction in [0, 1]
        - lower_bound is non-negative and below upper_bound
    """

    lower_bound: Money
    upper_bound: Money | None
    rate: Decimal
    description: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.rate, Decimal) or not (
            Decimal("0") <= self.rate <= Decimal("1")
        ):
            raise InvalidBracketTableError(
                f"rate {self.rate!r} is not a fraction between 0 and 1"
            )
        if self.lower_bound.is_negative:
            raise InvalidBracketTableError(
                f"lower bound {self.lower_bound} is negative"
            )
        if self.upper_bound is not None:
            if self.upper_bound.currency != self.lower_bound.currency:
                raise InvalidBracketTableError("bracket bounds mix currencies")
            if self.upper_bound <= self.lower_bound:
                raise InvalidBracketTableError(
                    f"upper bound {self.upper_bound} is not above "
                    f"lower bound {self.lower_bound}"
                )

    @property
    def is_unbounded(self) -> bool:
        return self.upper_bound is None

    @property
    def width(self) -> Money | None:
        """Size of the band, or None for the unbounded top band."""
        if self.upper_bound is None:
            return None
        return self.upper_bound - self.lower_bound


def validate_bracket_table(brackets: Sequence[TaxBracket]) -> tuple[TaxBracket, ...]:
    """
    Check that a bracket table is usable for progressive computation.

    Returns the table as a tuple.

    Raises:
        InvalidBracketTableError: empty, unsorted, gapped or overlapping
            bands, mixed currencies, or an unbounded band that is not last,
            or a bounded last band.
    """
    table = tuple(brackets)
    if not table:
        raise InvalidBracketTableError("table is empty")

    currency = table[0].lower_bound.currency
    for index, bracket in enumerate(table):
        if bracket.lower_bound.currency != currency:
            raise InvalidBracketTableError("brackets mix currencies")
        is_last = index == len(table) - 1
        if bracket.is_unbounded and not is_last:
            raise InvalidBracketTableError(
                f"bracket {index} is unbounded but is not the last bracket"
            )
        if is_last and not bracket.is_unbounded:
            raise InvalidBracketTableError("last bracket must be unbounded")
        if index > 0:
            previous = table[index - 1]
            if bracket.lower_bound != previous.upper_bound:
                raise InvalidBracketTableError(
                    f"bracket {index} starts at {bracket.lower_bound} but "
                    f"previous bracket ends at {previous.upper_bound}"
                )
    return table


@dataclass(frozen=True)
class PenaltyRates:
    """Late filing rate (flat, on tax due) and daily interest rate."""

    late_filing_rate: Decimal
    daily_interest_rate: Decimal

    def __post_init__(self) -> None:
        _check_rate("late_filing_rate", self.late_filing_rate)
        _check_rate("daily_interest_rate", self.daily_interest_rate)


@dataclass(frozen=True)
class ExciseRate:
    """Specific duty per unit plus an ad valorem fraction of declared value."""

    specific_rate: Money
    ad_valorem_rate: Decimal
    unit_of_measure: str = "unit"

    def __post_init__(self) -> None:
        if self.specific_rate.is_negative:
            raise ValueError(f"specific_rate cannot be negative: {self.specific_rate}")
        _check_rate("ad_valorem_rate", self.ad_valorem_rate)


@dataclass(frozen=True)
class ComplianceRubric:
    """
    Deterministic compliance scoring rubric.

    Each detected condition subtracts a fixed number of points from
    start_score; the result is floored at zero. grade_boundaries lists
    (grade, minimum score) from best to worst; any score below the last
    boundary earns fallback_grade.
    """

    start_score: int = 100
    late_filing_deduction: int = 10
    late_payment_deduction: int = 10
    unregistered_gst_deduction: int = 15
    undocumented_allowance_deduction: int = 5
    grade_boundaries: tuple[tuple[str, int], ...] = (
        ("A", 90),
        ("B", 75),
        ("C", 60),
        ("D", 40),
    )
    fallback_grade: str = "F"

    def grade_for(self, score: int) -> str:
        for grade, minimum in self.grade_boundaries:
            if score >= minimum:
                return grade
        return self.fallback_grade


@dataclass(frozen=True)
class TaxRulebook:
    """
    Complete, immutable rate configuration for one jurisdiction and tax year.

    Contract:
        Every rate an engine needs is looked up here; engines hold no rates
        of their own. Built by ctis_config.get_active_rulebook() from YAML,
        or directly in tests.

    Guarantees:
        - Bracket tables are validated on construction.
        - Mapping fields are read-only views.

    Non-goals:
        - Does NOT decide which rulebook applies to a date (ctis_config does).
    """

    jurisdiction: str
    tax_year: int
    currency: Currency
    individual_brackets: tuple[TaxBracket, ...]
    paye_brackets: tuple[TaxBracket, ...]
    corporate_rate: Decimal
    minimum_tax_rates: Mapping[TaxpayerCategory, Decimal]
    gst_rate: Decimal
    gst_registration_threshold: Money
    skills_levy_rate: Decimal
    skills_levy_monthly_threshold: Money
    excise_rates: Mapping[ProductCategory, ExciseRate]
    withholding_rates: Mapping[WithholdingTaxType, Decimal]
    penalty_rates: Mapping[TaxType, PenaltyRates]
    non_resident_withholding_rates: Mapping[WithholdingTaxType, Decimal] = field(
        default_factory=dict
    )
    compliance: ComplianceRubric = field(default_factory=ComplianceRubric)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "individual_brackets", validate_bracket_table(self.individual_brackets)
        )
        object.__setattr__(
            self, "paye_brackets", validate_bracket_table(self.paye_brackets)
        )
        for name in (
            "minimum_tax_rates",
            "excise_rates",
            "withholding_rates",
            "penalty_rates",
            "non_resident_withholding_rates",
        ):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    @property
    def source(self) -> str:
        return f"{self.jurisdiction}/{self.tax_year}"

    @property
    def tax_free_threshold(self) -> Money:
        """Upper bound of the first PAYE band when that band is zero-rated."""
        first = self.paye_brackets[0]
        if first.rate == Decimal("0") and first.upper_bound is not None:
            return first.upper_bound
        return Money.zero(self.currency)

    def minimum_tax_rate(self, category: TaxpayerCategory) -> Decimal:
        try:
            return self.minimum_tax_rates[category]
        except KeyError:
            raise UnknownCategoryError(category.value) from None

    def excise_rate(self, category: ProductCategory | str) -> ExciseRate:
        """Look up the excise rate for a product category."""
        try:
            key = ProductCategory(category)
        except ValueError:
            raise UnknownCategoryError(str(category)) from None
        try:
            return self.excise_rates[key]
        except KeyError:
            raise UnknownCategoryError(key.value) from None

    def withholding_rate(
        self,
        withholding_type: WithholdingTaxType | str,
        is_resident: bool = True,
    ) -> tuple[Decimal, bool]:
        """
        Look up the withholding rate for a payment type.

        Returns (rate, non_resident_rate_applied). For non-resident payees
        the non-resident table takes precedence when it lists the type;
        otherwise the resident rate applies.
        """
        try:
            key = WithholdingTaxType(withholding_type)
        except ValueError:
            raise UnknownWithholdingTypeError(str(withholding_type)) from None
        if not is_resident and key in self.non_resident_withholding_rates:
            return self.non_resident_withholding_rates[key], True
        try:
            return self.withholding_rates[key], False
        except KeyError:
            raise UnknownWithholdingTypeError(key.value) from None

    def penalty_rates_for(self, tax_type: TaxType) -> PenaltyRates:
        try:
            return self.penalty_rates[tax_type]
        except KeyError:
            raise InvalidRulebookError(
                self.source, f"no penalty rates for {tax_type.value}"
            ) from None
