"""
Tests for progressive bracket tax.

Covers:
- Band-by-band computation and marginal rate
- Boundary amounts taxed in the lower band
- Zero and negative amounts
- Breakdown sums to the total
"""

from decimal import Decimal

import pytest

from ctis_engines.brackets import compute_bracket_tax
from ctis_kernel.domain.tax_rules import TaxBracket
from ctis_kernel.domain.values import Money
from ctis_kernel.exceptions import InvalidBracketTableError, InvalidInputError


def _sle(amount) -> Money:
    return Money.of(str(amount), "SLE")


class TestComputeBracketTax:

    def test_individual_25m(self, rulebook):
        result = compute_bracket_tax(_sle(25000000), rulebook.individual_brackets)

        assert result.tax == _sle("3100000.00")
        assert result.marginal_rate == Decimal("0.20")
        assert [s.tax_at_bracket for s in result.breakdown] == [
            _sle(0),
            _sle(2100000),
            _sle(1000000),
        ]

    def test_slices_cover_the_amount(self, rulebook):
        result = compute_bracket_tax(_sle(25000000), rulebook.individual_brackets)
        assert Money.sum_of((s.taxable_amount for s in result.breakdown), "SLE") == _sle(
            25000000
        )

    def test_within_tax_free_band(self, rulebook):
        result = compute_bracket_tax(_sle(5000000), rulebook.individual_brackets)
        assert result.tax.is_zero
        assert result.marginal_rate == Decimal("0")
        assert len(result.breakdown) == 1

    def test_boundary_amount_stays_in_lower_band(self, rulebook):
        result = compute_bracket_tax(_sle(20000000), rulebook.individual_brackets)
        assert result.tax == _sle(2100000)
        assert result.marginal_rate == Decimal("0.15")
        assert len(result.breakdown) == 2

    def test_top_band(self, rulebook):
        # 0 + 2.1M + 6M + 15M
        result = compute_bracket_tax(_sle(100000000), rulebook.individual_brackets)
        assert result.tax == _sle(23100000)
        assert result.marginal_rate == Decimal("0.30")
        assert result.breakdown[-1].upper_bound is None

    def test_zero_amount(self, rulebook):
        result = compute_bracket_tax(_sle(0), rulebook.individual_brackets)
        assert result.tax.is_zero
        assert result.breakdown == ()
        assert result.effective_rate == Decimal("0")

    def test_effective_rate(self, rulebook):
        result = compute_bracket_tax(_sle(25000000), rulebook.individual_brackets)
        assert result.effective_rate == Decimal("0.124")

    def test_per_band_rounding(self):
        table = (
            TaxBracket(lower_bound=_sle(0), upper_bound=_sle("0.05"), rate=Decimal("0.1")),
            TaxBracket(lower_bound=_sle("0.05"), upper_bound=None, rate=Decimal("0.1")),
        )
        result = compute_bracket_tax(_sle("0.10"), table)
        # each band: 0.05 * 0.1 = 0.005 -> 0.01
        assert result.tax == _sle("0.02")
        assert result.tax == Money.sum_of((s.tax_at_bracket for s in result.breakdown), "SLE")

    def test_negative_amount_rejected(self, rulebook):
        with pytest.raises(InvalidInputError) as exc_info:
            compute_bracket_tax(_sle(-1), rulebook.individual_brackets)
        assert exc_info.value.field == "taxable_amount"

    def test_currency_mismatch_rejected(self, rulebook):
        with pytest.raises(InvalidInputError):
            compute_bracket_tax(Money.of("100", "USD"), rulebook.individual_brackets)

    def test_empty_table_rejected(self):
        with pytest.raises(InvalidBracketTableError):
            compute_bracket_tax(_sle(100), ())
