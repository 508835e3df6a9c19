"""
Tests for the rulebook domain types.

Covers:
- Bracket construction and table validation
- Enum-keyed rate lookups and their typed errors
- Compliance grade boundaries
"""

from decimal import Decimal

import pytest

from ctis_kernel.domain.tax_rules import (
    ComplianceRubric,
    ExciseRate,
    PenaltyRates,
    ProductCategory,
    TaxBracket,
    TaxpayerCategory,
    TaxType,
    WithholdingTaxType,
    validate_bracket_table,
)
from ctis_kernel.domain.values import Money
from ctis_kernel.exceptions import (
    InvalidBracketTableError,
    UnknownCategoryError,
    UnknownWithholdingTypeError,
)


def _sle(amount) -> Money:
    return Money.of(str(amount), "SLE")


def _band(lower, upper, rate) -> TaxBracket:
    return TaxBracket(
        lower_bound=_sle(lower),
        upper_bound=_sle(upper) if upper is not None else None,
        rate=Decimal(rate),
    )


class TestTaxBracket:

    def test_unbounded_band(self):
        band = _band(50, None, "0.30")
        assert band.is_unbounded
        assert band.width is None

    def test_width(self):
        assert _band(6, 20, "0.15").width == _sle(14)

    def test_rate_above_one_rejected(self):
        with pytest.raises(InvalidBracketTableError):
            _band(0, 10, "1.5")

    def test_float_rate_rejected(self):
        with pytest.raises(InvalidBracketTableError):
            TaxBracket(lower_bound=_sle(0), upper_bound=_sle(10), rate=0.1)

    def test_upper_not_above_lower_rejected(self):
        with pytest.raises(InvalidBracketTableError, match="not above"):
            _band(10, 10, "0.1")

    def test_negative_lower_rejected(self):
        with pytest.raises(InvalidBracketTableError, match="negative"):
            _band(-1, 10, "0.1")


class TestValidateBracketTable:

    def test_valid_table_returned_as_tuple(self):
        table = validate_bracket_table([_band(0, 10, "0"), _band(10, None, "0.2")])
        assert isinstance(table, tuple)
        assert len(table) == 2

    def test_empty_table(self):
        with pytest.raises(InvalidBracketTableError, match="empty"):
            validate_bracket_table([])

    def test_gap_between_bands(self):
        with pytest.raises(InvalidBracketTableError, match="starts at"):
            validate_bracket_table([_band(0, 10, "0"), _band(11, None, "0.2")])

    def test_unsorted_bands(self):
        with pytest.raises(InvalidBracketTableError):
            validate_bracket_table([_band(10, None, "0.2"), _band(0, 10, "0")])

    def test_bounded_last_band(self):
        with pytest.raises(InvalidBracketTableError, match="unbounded"):
            validate_bracket_table([_band(0, 10, "0"), _band(10, 20, "0.2")])

    def test_mixed_currencies(self):
        usd_band = TaxBracket(
            lower_bound=Money.of("10", "USD"), upper_bound=None, rate=Decimal("0.2")
        )
        with pytest.raises(InvalidBracketTableError, match="mix currencies"):
            validate_bracket_table([_band(0, 10, "0"), usd_band])


class TestRateObjects:

    def test_penalty_rates_must_be_decimal(self):
        with pytest.raises(TypeError):
            PenaltyRates(late_filing_rate=0.05, daily_interest_rate=Decimal("0"))

    def test_excise_rate_rejects_negative_specific(self):
        with pytest.raises(ValueError):
            ExciseRate(specific_rate=_sle(-1), ad_valorem_rate=Decimal("0"))


class TestRulebookLookups:
    """Lookups on the shipped rulebook."""

    def test_source(self, rulebook):
        assert rulebook.source == "SL/2025"

    def test_tax_free_threshold(self, rulebook):
        assert rulebook.tax_free_threshold == _sle(6000000)

    def test_minimum_tax_rates(self, rulebook):
        assert rulebook.minimum_tax_rate(TaxpayerCategory.LARGE) == Decimal("0.005")
        assert rulebook.minimum_tax_rate(TaxpayerCategory.MICRO) == Decimal("0.0025")

    def test_excise_rate_by_string(self, rulebook):
        rate = rulebook.excise_rate("Tobacco")
        assert rate.specific_rate == _sle(150)
        assert rate.ad_valorem_rate == Decimal("0.25")

    def test_unknown_excise_category(self, rulebook):
        with pytest.raises(UnknownCategoryError) as exc_info:
            rulebook.excise_rate("Sugar")
        assert exc_info.value.category == "Sugar"
        assert exc_info.value.code == "UNKNOWN_CATEGORY"

    def test_withholding_rate_resident(self, rulebook):
        rate, non_resident = rulebook.withholding_rate(WithholdingTaxType.RENT)
        assert rate == Decimal("0.10")
        assert non_resident is False

    def test_withholding_rate_non_resident_table(self, rulebook):
        rate, non_resident = rulebook.withholding_rate("Dividends", is_resident=False)
        assert rate == Decimal("0.15")
        assert non_resident is True

    def test_withholding_non_resident_falls_back_to_resident(self, rulebook):
        rate, non_resident = rulebook.withholding_rate("Rent", is_resident=False)
        assert rate == Decimal("0.10")
        assert non_resident is False

    def test_unknown_withholding_type(self, rulebook):
        with pytest.raises(UnknownWithholdingTypeError):
            rulebook.withholding_rate("Pension")

    def test_penalty_rates_for_every_tax_type(self, rulebook):
        for tax_type in TaxType:
            assert rulebook.penalty_rates_for(tax_type) is not None

    def test_mappings_are_read_only(self, rulebook):
        with pytest.raises(TypeError):
            rulebook.excise_rates[ProductCategory.FUEL] = None


class TestComplianceRubric:

    @pytest.mark.parametrize(
        "score,grade",
        [(100, "A"), (90, "A"), (89, "B"), (75, "B"), (60, "C"), (40, "D"), (39, "F"), (0, "F")],
    )
    def test_grade_boundaries(self, score, grade):
        assert ComplianceRubric().grade_for(score) == grade

    def test_company_categories(self):
        assert TaxpayerCategory.LARGE.is_company
        assert not TaxpayerCategory.INDIVIDUAL.is_company
