"""
Progressive bracket tax -- apply a marginal-rate table to an amount.

Used by the income tax engine (individual brackets) and the payroll
engine (PAYE brackets, per employee).

Each band's tax is rounded to the currency precision as it is produced
and the total is the sum of the rounded bands, so the breakdown always
sums exactly to the total.

A band covers amounts in (lower_bound, upper_bound]: an amount exactly on
a boundary is taxed entirely in the lower band.

Usage:
    from ctis_engines.brackets import compute_bracket_tax

    result = compute_bracket_tax(Money.of("25000000", "SLE"), rulebook.individual_brackets)
    print(result.tax)            # 3100000.00 SLE
    print(result.marginal_rate)  # 0.20
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from ctis_engines.tracer import traced_engine
from ctis_engines.validation import require_money
from ctis_kernel.domain.tax_rules import TaxBracket, validate_bracket_table
from ctis_kernel.domain.values import Money


@dataclass(frozen=True)
class BracketSlice:
    """The portion of an amount that falls inside one band, and its tax."""

    lower_bound: Money
    upper_bound: Money | None
    taxable_amount: Money
    rate: Decimal
    tax_at_bracket: Money
    description: str = ""


@dataclass(frozen=True)
class BracketTaxResult:
    """Outcome of applying a bracket table to one amount."""

    taxable_amount: Money
    tax: Money
    marginal_rate: Decimal
    breakdown: tuple[BracketSlice, ...]

    @property
    def effective_rate(self) -> Decimal:
        """Tax as a fraction of the taxed amount."""
        if not self.taxable_amount.is_positive:
            return Decimal("0")
        return self.tax.amount / self.taxable_amount.amount


@traced_engine("brackets", "1.0", fingerprint_fields=("taxable_amount", "brackets"))
def compute_bracket_tax(
    taxable_amount: Money,
    brackets: Sequence[TaxBracket],
) -> BracketTaxResult:
    """
    Apply a progressive rate table to ``taxable_amount``.

    Raises:
        InvalidBracketTableError: If the table is empty, unsorted or gapped.
        InvalidInputError: If the amount is negative or not in the
            table's currency.
    """
    table = validate_bracket_table(brackets)
    currency = table[0].lower_bound.currency

    require_money("taxable_amount", taxable_amount, currency)

    zero = Money.zero(currency)
    if taxable_amount.is_zero:
        return BracketTaxResult(
            taxable_amount=taxable_amount,
            tax=zero,
            marginal_rate=Decimal("0"),
            breakdown=(),
        )

    slices: list[BracketSlice] = []
    marginal_rate = Decimal("0")
    for bracket in table:
        if taxable_amount <= bracket.lower_bound:
            break
        top = taxable_amount
        if bracket.upper_bound is not None and bracket.upper_bound < taxable_amount:
            top = bracket.upper_bound
        portion = top - bracket.lower_bound
        slices.append(
            BracketSlice(
                lower_bound=bracket.lower_bound,
                upper_bound=bracket.upper_bound,
                taxable_amount=portion,
                rate=bracket.rate,
                tax_at_bracket=(portion * bracket.rate).round(),
                description=bracket.description,
            )
        )
        marginal_rate = bracket.rate

    return BracketTaxResult(
        taxable_amount=taxable_amount,
        tax=Money.sum_of((s.tax_at_bracket for s in slices), currency),
        marginal_rate=marginal_rate,
        breakdown=tuple(slices),
    )
