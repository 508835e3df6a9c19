"""
Income Tax Engine - personal and corporate income tax.

Individuals are taxed on a progressive bracket table. Companies (Large,
Medium, Small, Micro) pay the greater of the corporate rate on taxable
income and the minimum tax on gross turnover.

    taxable_income = max(0, gross_income - deductions - sum(allowances))

    Individual:  payable_tax = bracket_tax(taxable_income)
    Company:     standard_tax = taxable_income * corporate_rate
                 minimum_tax  = gross_income * minimum_tax_rate(category)
                 payable_tax  = max(standard_tax, minimum_tax)

A penalty is attached when the payment date is after the due date.

Usage:
    from ctis_engines.income_tax import IncomeTaxCalculator, IncomeTaxRequest

    calculator = IncomeTaxCalculator(rulebook)
    result = calculator.calculate(
        IncomeTaxRequest(
            taxpayer_category=TaxpayerCategory.INDIVIDUAL,
            tax_year=2025,
            gross_income=Money.of("25000000", "SLE"),
        )
    )
    print(result.payable_tax)  # 3100000.00 SLE
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ctis_engines.brackets import BracketSlice, compute_bracket_tax
from ctis_engines.penalty import PenaltyCalculation, assess_timeliness, penalty_for
from ctis_engines.tracer import traced_engine
from ctis_engines.validation import coerce_enum, require_money
from ctis_kernel.domain.tax_rules import TaxpayerCategory, TaxRulebook, TaxType
from ctis_kernel.domain.values import Money
from ctis_kernel.logging_config import get_logger

logger = get_logger("engines.income_tax")


@dataclass(frozen=True)
class Allowance:
    """An allowance claimed against gross income."""

    allowance_type: str
    amount: Money
    description: str | None = None

    @property
    def is_documented(self) -> bool:
        return bool(self.description and self.description.strip())


@dataclass(frozen=True)
class IncomeTaxRequest:
    """Income tax input for one taxpayer and tax year."""

    taxpayer_category: TaxpayerCategory
    tax_year: int
    gross_income: Money
    deductions: Money | None = None
    allowances: tuple[Allowance, ...] = ()
    due_date: date | None = None
    payment_date: date | None = None


@dataclass(frozen=True)
class IncomeTaxCalculation:
    """
    Income tax outcome.

    For companies ``minimum_tax`` is always reported, even when the
    standard tax is the larger figure.
    """

    taxpayer_category: TaxpayerCategory
    tax_year: int
    gross_income: Money
    total_deductions: Money
    total_allowances: Money
    taxable_income: Money
    standard_tax: Money
    minimum_tax: Money
    payable_tax: Money
    effective_rate: Decimal
    marginal_rate: Decimal
    penalties: PenaltyCalculation
    bracket_breakdown: tuple[BracketSlice, ...] = ()

    @property
    def minimum_tax_applied(self) -> bool:
        return self.minimum_tax > self.standard_tax

    @property
    def total_penalty(self) -> Money:
        return self.penalties.total_penalty

    @property
    def total_amount_due(self) -> Money:
        return self.payable_tax + self.total_penalty


class IncomeTaxCalculator:
    """
    Calculates income tax against one rulebook.

    Stateless apart from the immutable rulebook; safe to share.
    """

    def __init__(self, rulebook: TaxRulebook):
        self._rulebook = rulebook

    def _validate(self, request: IncomeTaxRequest) -> TaxpayerCategory:
        currency = self._rulebook.currency
        category = coerce_enum(
            "taxpayer_category", TaxpayerCategory, request.taxpayer_category
        )
        require_money("gross_income", request.gross_income, currency)
        if request.deductions is not None:
            require_money("deductions", request.deductions, currency)
        for index, allowance in enumerate(request.allowances):
            require_money(f"allowances[{index}].amount", allowance.amount, currency)
        return category

    @traced_engine("income_tax", "1.0", fingerprint_fields=("request",))
    def calculate(self, request: IncomeTaxRequest) -> IncomeTaxCalculation:
        """
        Calculate income tax for one taxpayer.

        Raises:
            InvalidInputError: Negative gross income, deductions or
                allowance amount, or an unknown taxpayer category.
        """
        t0 = time.monotonic()
        category = self._validate(request)
        rules = self._rulebook
        currency = rules.currency
        zero = Money.zero(currency)

        logger.info(
            "income_tax_calculation_started",
            extra={
                "taxpayer_category": category.value,
                "tax_year": request.tax_year,
                "gross_income": str(request.gross_income.amount),
            },
        )

        deductions = request.deductions if request.deductions is not None else zero
        total_allowances = Money.sum_of((a.amount for a in request.allowances), currency)
        taxable_income = request.gross_income - deductions - total_allowances
        if taxable_income.is_negative:
            taxable_income = zero

        breakdown: tuple[BracketSlice, ...] = ()
        if category is TaxpayerCategory.INDIVIDUAL:
            bracket_result = compute_bracket_tax(taxable_income, rules.individual_brackets)
            standard_tax = bracket_result.tax
            minimum_tax = zero
            payable_tax = standard_tax
            marginal_rate = bracket_result.marginal_rate
            breakdown = bracket_result.breakdown
        else:
            standard_tax = (taxable_income * rules.corporate_rate).round()
            minimum_tax = (
                request.gross_income * rules.minimum_tax_rate(category)
            ).round()
            payable_tax = max(standard_tax, minimum_tax)
            marginal_rate = rules.corporate_rate

        if request.gross_income.is_zero:
            effective_rate = Decimal("0")
        else:
            effective_rate = payable_tax.amount / request.gross_income.amount

        timeliness = assess_timeliness(request.due_date, request.payment_date)
        penalties = penalty_for(timeliness, payable_tax, TaxType.INCOME_TAX, rules)

        result = IncomeTaxCalculation(
            taxpayer_category=category,
            tax_year=request.tax_year,
            gross_income=request.gross_income,
            total_deductions=deductions,
            total_allowances=total_allowances,
            taxable_income=taxable_income,
            standard_tax=standard_tax,
            minimum_tax=minimum_tax,
            payable_tax=payable_tax,
            effective_rate=effective_rate,
            marginal_rate=marginal_rate,
            penalties=penalties,
            bracket_breakdown=breakdown,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "income_tax_calculation_completed",
            extra={
                "taxpayer_category": category.value,
                "taxable_income": str(taxable_income.amount),
                "payable_tax": str(payable_tax.amount),
                "minimum_tax_applied": result.minimum_tax_applied,
                "days_late": penalties.days_late,
                "duration_ms": duration_ms,
            },
        )
        return result


def calculate_income_tax(
    request: IncomeTaxRequest,
    rulebook: TaxRulebook,
) -> IncomeTaxCalculation:
    """Convenience function for one-off income tax calculation."""
    return IncomeTaxCalculator(rulebook).calculate(request)
