"""
Tests for GST Engine.

Covers:
- Output tax less input tax
- Refund position (never a negative liability)
- Exports and import reverse charge
- Registration threshold
- Late filing penalty on the net liability
"""

from datetime import date
from decimal import Decimal

import pytest

from ctis_engines.gst import GstCalculator, GstRequest, calculate_gst
from ctis_kernel.domain.values import Money
from ctis_kernel.exceptions import InvalidInputError


def _sle(amount) -> Money:
    return Money.of(str(amount), "SLE")


def _request(**overrides) -> GstRequest:
    fields = dict(
        tax_year=2025,
        gross_sales=_sle(10000000),
        taxable_supplies=_sle(10000000),
        input_tax=_sle(800000),
    )
    fields.update(overrides)
    return GstRequest(**fields)


class TestGstCalculation:

    def test_net_liability(self, rulebook):
        result = GstCalculator(rulebook).calculate(_request())

        assert result.gst_rate == Decimal("0.15")
        assert result.output_gst == _sle("1500000.00")
        assert result.net_gst_liability == _sle("700000.00")
        assert result.refund_due.is_zero
        assert not result.is_refund_position
        assert result.reverse_charge_gst.is_zero

    def test_refund_position(self, rulebook):
        result = calculate_gst(_request(input_tax=_sle(2000000)), rulebook)

        assert result.net_gst_liability.is_zero
        assert result.refund_due == _sle(500000)
        assert result.is_refund_position

    def test_balanced_position(self, rulebook):
        result = calculate_gst(_request(input_tax=_sle(1500000)), rulebook)
        assert result.net_gst_liability.is_zero
        assert result.refund_due.is_zero
        assert not result.refund_due.is_negative

    def test_export_is_zero_rated(self, rulebook):
        result = calculate_gst(_request(is_export=True, input_tax=_sle(100000)), rulebook)

        assert result.gst_rate == Decimal("0")
        assert result.output_gst.is_zero
        assert result.refund_due == _sle(100000)

    def test_import_reverse_charge(self, rulebook):
        result = calculate_gst(
            _request(is_import=True, import_value=_sle(2000000)), rulebook
        )
        assert result.reverse_charge_gst == _sle(300000)
        assert result.net_gst_liability == _sle(1000000)

    def test_import_without_value_rejected(self, rulebook):
        with pytest.raises(InvalidInputError) as exc_info:
            calculate_gst(_request(is_import=True), rulebook)
        assert exc_info.value.field == "import_value"

    def test_optional_supplies_default_to_zero(self, rulebook):
        result = calculate_gst(_request(), rulebook)
        assert result.exempt_supplies.is_zero
        assert result.zero_rated_supplies.is_zero

    def test_negative_input_tax_rejected(self, rulebook):
        with pytest.raises(InvalidInputError):
            calculate_gst(_request(input_tax=_sle(-1)), rulebook)


class TestGstRegistration:

    def test_below_threshold(self, rulebook):
        assert not calculate_gst(_request(), rulebook).registration_required

    def test_at_threshold_not_required(self, rulebook):
        result = calculate_gst(_request(gross_sales=_sle(500000000)), rulebook)
        assert not result.registration_required

    def test_above_threshold(self, rulebook):
        result = calculate_gst(_request(gross_sales=_sle("500000000.01")), rulebook)
        assert result.registration_required


class TestGstPenalty:

    def test_late_filing(self, rulebook):
        result = calculate_gst(
            _request(due_date=date(2025, 7, 15), filing_date=date(2025, 7, 25)),
            rulebook,
        )
        # 700,000 x 10% = 70,000; 700,000 x 0.001 x 10 / 365 = 19.18
        assert result.penalties.days_late == 10
        assert result.penalties.late_filing_penalty == _sle(70000)
        assert result.penalties.late_payment_interest == _sle("19.18")
        assert result.total_amount_due == _sle("770019.18")

    def test_late_refund_has_zero_penalty(self, rulebook):
        result = calculate_gst(
            _request(
                input_tax=_sle(2000000),
                due_date=date(2025, 7, 15),
                filing_date=date(2025, 7, 25),
            ),
            rulebook,
        )
        assert result.penalties.is_late
        assert result.total_penalty.is_zero
