"""Tests for Withholding Tax Engine."""

from decimal import Decimal

import pytest

from ctis_engines.withholding import (
    WithholdingTaxCalculator,
    WithholdingTaxRequest,
    calculate_withholding_tax,
)
from ctis_kernel.domain.tax_rules import WithholdingTaxType
from ctis_kernel.domain.values import Money
from ctis_kernel.exceptions import InvalidInputError, UnknownWithholdingTypeError


def _sle(amount) -> Money:
    return Money.of(str(amount), "SLE")


class TestWithholdingTax:

    def test_rent(self, rulebook):
        result = WithholdingTaxCalculator(rulebook).calculate(
            WithholdingTaxRequest(_sle(1000000), WithholdingTaxType.RENT)
        )
        assert result.rate == Decimal("0.10")
        assert result.withholding_tax_amount == _sle("100000.00")
        assert result.net_amount == _sle("900000.00")
        assert not result.non_resident_rate_applied

    @pytest.mark.parametrize(
        "wht_type,expected",
        [
            ("Dividends", "150000"),
            ("ManagementFees", "150000"),
            ("ProfessionalFees", "150000"),
            ("LotteryWinnings", "150000"),
            ("Royalties", "150000"),
            ("Interest", "150000"),
            ("Rent", "100000"),
            ("Commissions", "50000"),
        ],
    )
    def test_resident_rate_table(self, rulebook, wht_type, expected):
        result = calculate_withholding_tax(
            WithholdingTaxRequest(_sle(1000000), wht_type), rulebook
        )
        assert result.withholding_tax_amount == _sle(expected)
        assert result.withholding_tax_type is WithholdingTaxType(wht_type)

    def test_non_resident_uses_non_resident_table(self, rulebook):
        result = calculate_withholding_tax(
            WithholdingTaxRequest(_sle(1000000), "Royalties", is_resident=False),
            rulebook,
        )
        assert result.non_resident_rate_applied
        assert result.withholding_tax_amount == _sle(150000)

    def test_rounding(self, rulebook):
        result = calculate_withholding_tax(
            WithholdingTaxRequest(_sle("333.33"), "Commissions"), rulebook
        )
        # 16.6665 -> 16.67
        assert result.withholding_tax_amount == _sle("16.67")
        assert result.net_amount == _sle("316.66")

    def test_unknown_type(self, rulebook):
        with pytest.raises(UnknownWithholdingTypeError) as exc_info:
            calculate_withholding_tax(WithholdingTaxRequest(_sle(1), "Pension"), rulebook)
        assert exc_info.value.withholding_type == "Pension"

    def test_negative_amount(self, rulebook):
        with pytest.raises(InvalidInputError):
            calculate_withholding_tax(WithholdingTaxRequest(_sle(-1), "Rent"), rulebook)

    def test_unknown_type_logged(self, rulebook, captured_logs):
        with pytest.raises(UnknownWithholdingTypeError):
            calculate_withholding_tax(WithholdingTaxRequest(_sle(1), "Pension"), rulebook)
        errors = [r for r in captured_logs() if r["message"] == "unknown_withholding_type"]
        assert errors[0]["level"] == "ERROR"
        assert errors[0]["withholding_tax_type"] == "Pension"
