"""
Tests for Penalty Engine.

Covers:
- Timeliness classification (OnTime / Late)
- Late filing penalty and daily interest per tax type
- Early and on-time filings
- Input validation
"""

from datetime import date
from decimal import Decimal

import pytest

from ctis_engines.penalty import (
    Late,
    OnTime,
    PenaltyItemType,
    assess_timeliness,
    calculate_penalty,
    penalty_for,
)
from ctis_kernel.domain.tax_rules import TaxType
from ctis_kernel.domain.values import Money
from ctis_kernel.exceptions import InvalidInputError


def _sle(amount) -> Money:
    return Money.of(str(amount), "SLE")


class TestAssessTimeliness:

    def test_late(self):
        timeliness = assess_timeliness(date(2025, 3, 31), date(2025, 4, 15))
        assert timeliness == Late(days_late=15)
        assert timeliness.is_late

    def test_on_due_date(self):
        assert assess_timeliness(date(2025, 3, 31), date(2025, 3, 31)) == OnTime()

    def test_early(self):
        timeliness = assess_timeliness(date(2025, 3, 31), date(2025, 1, 1))
        assert isinstance(timeliness, OnTime)
        assert timeliness.days_late == 0

    def test_missing_dates_are_on_time(self):
        assert assess_timeliness(None, date(2025, 1, 1)) == OnTime()
        assert assess_timeliness(date(2025, 1, 1), None) == OnTime()

    def test_non_date_rejected(self):
        with pytest.raises(InvalidInputError):
            assess_timeliness("2025-03-31", date(2025, 4, 1))

    def test_late_requires_positive_days(self):
        with pytest.raises(ValueError):
            Late(days_late=0)


class TestCalculatePenalty:

    def test_income_tax_fifteen_days(self, rulebook):
        result = calculate_penalty(
            tax_amount=_sle(5000000),
            tax_type=TaxType.INCOME_TAX,
            due_date=date(2025, 3, 31),
            actual_date=date(2025, 4, 15),
            rulebook=rulebook,
        )

        assert result.days_late == 15
        assert result.late_filing_penalty == _sle("250000.00")
        assert result.late_payment_interest == _sle("102.74")
        assert result.total_penalty == _sle("250102.74")
        assert result.total_amount_due == _sle("5250102.74")

    def test_breakdown_sums_to_total(self, rulebook):
        result = calculate_penalty(
            _sle(5000000), TaxType.INCOME_TAX, date(2025, 3, 31), date(2025, 4, 15), rulebook
        )
        assert [item.penalty_type for item in result.breakdown] == [
            PenaltyItemType.LATE_FILING,
            PenaltyItemType.LATE_PAYMENT_INTEREST,
        ]
        assert Money.sum_of((i.amount for i in result.breakdown), "SLE") == result.total_penalty
        assert "5%" in result.breakdown[0].description

    @pytest.mark.parametrize(
        "tax_type,filing,interest",
        [
            (TaxType.GST, "100000.00", "27.40"),
            (TaxType.PAYROLL_TAX, "150000.00", "41.10"),
            (TaxType.EXCISE_DUTY, "200000.00", "54.79"),
        ],
    )
    def test_rates_per_tax_type(self, rulebook, tax_type, filing, interest):
        result = calculate_penalty(
            _sle(1000000), tax_type, date(2025, 1, 1), date(2025, 1, 11), rulebook
        )
        assert result.late_filing_penalty == _sle(filing)
        assert result.late_payment_interest == _sle(interest)

    def test_tax_type_as_string(self, rulebook):
        result = calculate_penalty(
            _sle(1000000), "GST", date(2025, 1, 1), date(2025, 1, 2), rulebook
        )
        assert result.tax_type is TaxType.GST

    def test_on_time_is_zero(self, rulebook):
        result = calculate_penalty(
            _sle(5000000), TaxType.INCOME_TAX, date(2025, 3, 31), date(2025, 3, 31), rulebook
        )
        assert result.total_penalty.is_zero
        assert not result.is_late
        assert result.breakdown == ()

    def test_early_filing_is_zero(self, rulebook):
        result = calculate_penalty(
            _sle(5000000), TaxType.INCOME_TAX, date(2025, 3, 31), date(2025, 2, 1), rulebook
        )
        assert result.total_penalty.is_zero

    def test_zero_tax_late(self, rulebook):
        result = calculate_penalty(
            _sle(0), TaxType.INCOME_TAX, date(2025, 3, 31), date(2025, 6, 1), rulebook
        )
        assert result.is_late
        assert result.total_penalty.is_zero

    def test_negative_amount_rejected(self, rulebook):
        with pytest.raises(InvalidInputError):
            calculate_penalty(
                _sle(-1), TaxType.GST, date(2025, 1, 1), date(2025, 1, 5), rulebook
            )

    def test_missing_date_rejected(self, rulebook):
        with pytest.raises(InvalidInputError) as exc_info:
            calculate_penalty(_sle(1), TaxType.GST, None, date(2025, 1, 5), rulebook)
        assert exc_info.value.field == "due_date"

    def test_unknown_tax_type_rejected(self, rulebook, captured_logs):
        with pytest.raises(InvalidInputError) as exc_info:
            calculate_penalty(
                _sle(1), "StampDuty", date(2025, 1, 1), date(2025, 1, 5), rulebook
            )
        assert exc_info.value.field == "tax_type"
        errors = [r for r in captured_logs() if r["message"] == "invalid_input"]
        assert errors[0]["field"] == "tax_type"

    def test_negative_amount_logged(self, rulebook, captured_logs):
        with pytest.raises(InvalidInputError):
            penalty_for(Late(days_late=3), _sle(-1), TaxType.GST, rulebook)
        errors = [r for r in captured_logs() if r["message"] == "invalid_input"]
        assert errors[0]["field"] == "tax_amount"
        assert errors[0]["reason"] == "cannot be negative"

    @pytest.mark.parametrize("amount", ["NaN", "Infinity"])
    def test_non_finite_amount_rejected(self, rulebook, amount):
        with pytest.raises(InvalidInputError) as exc_info:
            calculate_penalty(
                _sle(amount), TaxType.GST, date(2025, 1, 1), date(2025, 1, 5), rulebook
            )
        assert exc_info.value.reason == "must be a finite number"


class TestPenaltyFor:

    def test_one_year_late_interest(self, rulebook):
        result = penalty_for(Late(365), _sle(1000000), TaxType.INCOME_TAX, rulebook)
        assert result.late_payment_interest == _sle(500)
        assert result.late_payment_interest.amount == Decimal("500.00")
