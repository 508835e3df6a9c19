"""
Payroll Tax Engine - PAYE and Skills Development Levy.

PAYE is the PAYE bracket table applied to each employee's annual salary.
The Skills Development Levy is a flat rate on total payroll, charged only
when average monthly payroll exceeds the rulebook's monthly threshold:

    total_paye                = sum(employee PAYE)
    skills_development_levy   = total_payroll * levy_rate
                                if total_payroll / 12 > monthly_threshold else 0
    total_payroll_tax         = total_paye + skills_development_levy

``total_payroll`` defaults to the sum of employee salaries when the
request does not state it. A penalty on the total payroll tax is attached
when remittance was made after the due date.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ctis_engines.brackets import compute_bracket_tax
from ctis_engines.penalty import PenaltyCalculation, assess_timeliness, penalty_for
from ctis_engines.tracer import traced_engine
from ctis_engines.validation import require_money, require_non_empty
from ctis_kernel.domain.tax_rules import TaxRulebook, TaxType
from ctis_kernel.domain.values import Money
from ctis_kernel.logging_config import get_logger

logger = get_logger("engines.payroll")

MONTHS_PER_YEAR = Decimal("12")


@dataclass(frozen=True)
class Employee:
    employee_id: str
    employee_name: str
    annual_salary: Money


@dataclass(frozen=True)
class PayrollTaxRequest:
    """Payroll input for one employer and tax year."""

    tax_year: int
    employees: tuple[Employee, ...]
    total_payroll: Money | None = None
    due_date: date | None = None
    remittance_date: date | None = None


@dataclass(frozen=True)
class EmployeePaye:
    """PAYE for a single employee."""

    employee_id: str
    employee_name: str
    annual_salary: Money
    monthly_income: Money
    tax_free_threshold: Money
    taxable_salary: Money
    paye_amount: Money
    effective_rate: Decimal
    marginal_rate: Decimal


@dataclass(frozen=True)
class PayrollTaxCalculation:
    """Payroll tax outcome for one employer."""

    tax_year: int
    employees: tuple[EmployeePaye, ...]
    total_payroll: Money
    total_paye: Money
    skills_levy_rate: Decimal
    skills_levy_applies: bool
    skills_development_levy: Money
    total_payroll_tax: Money
    penalties: PenaltyCalculation

    @property
    def employee_count(self) -> int:
        return len(self.employees)

    @property
    def total_penalty(self) -> Money:
        return self.penalties.total_penalty

    @property
    def total_amount_due(self) -> Money:
        return self.total_payroll_tax + self.total_penalty


class PayrollTaxCalculator:
    """Calculates PAYE and the skills levy against one rulebook."""

    def __init__(self, rulebook: TaxRulebook):
        self._rulebook = rulebook

    def _validate(self, request: PayrollTaxRequest) -> None:
        currency = self._rulebook.currency
        require_non_empty("employees", request.employees)
        for index, employee in enumerate(request.employees):
            require_money(
                f"employees[{index}].annual_salary", employee.annual_salary, currency
            )
        if request.total_payroll is not None:
            require_money("total_payroll", request.total_payroll, currency)

    def employee_paye(self, employee: Employee) -> EmployeePaye:
        rules = self._rulebook
        threshold = rules.tax_free_threshold
        bracket_result = compute_bracket_tax(employee.annual_salary, rules.paye_brackets)

        taxable_salary = employee.annual_salary - threshold
        if taxable_salary.is_negative:
            taxable_salary = Money.zero(rules.currency)

        return EmployeePaye(
            employee_id=employee.employee_id,
            employee_name=employee.employee_name,
            annual_salary=employee.annual_salary,
            monthly_income=(employee.annual_salary / MONTHS_PER_YEAR).round(),
            tax_free_threshold=threshold,
            taxable_salary=taxable_salary,
            paye_amount=bracket_result.tax,
            effective_rate=bracket_result.effective_rate,
            marginal_rate=bracket_result.marginal_rate,
        )

    @traced_engine("payroll", "1.0", fingerprint_fields=("request",))
    def calculate(self, request: PayrollTaxRequest) -> PayrollTaxCalculation:
        """
        Calculate PAYE per employee, the skills levy and the total.

        Raises:
            InvalidInputError: No employees, or a negative salary or
                total payroll.
        """
        self._validate(request)
        rules = self._rulebook
        currency = rules.currency

        logger.info(
            "payroll_calculation_started",
            extra={
                "tax_year": request.tax_year,
                "employee_count": len(request.employees),
            },
        )

        results = tuple(self.employee_paye(e) for e in request.employees)
        total_paye = Money.sum_of((r.paye_amount for r in results), currency)

        total_payroll = request.total_payroll
        if total_payroll is None:
            total_payroll = Money.sum_of((e.annual_salary for e in request.employees), currency)

        levy_applies = (
            total_payroll / MONTHS_PER_YEAR > rules.skills_levy_monthly_threshold
        )
        levy = Money.zero(currency)
        if levy_applies:
            levy = (total_payroll * rules.skills_levy_rate).round()

        total_payroll_tax = total_paye + levy

        timeliness = assess_timeliness(request.due_date, request.remittance_date)
        penalties = penalty_for(timeliness, total_payroll_tax, TaxType.PAYROLL_TAX, rules)

        logger.info(
            "payroll_calculation_completed",
            extra={
                "total_payroll": str(total_payroll.amount),
                "total_paye": str(total_paye.amount),
                "skills_development_levy": str(levy.amount),
                "days_late": penalties.days_late,
            },
        )

        return PayrollTaxCalculation(
            tax_year=request.tax_year,
            employees=results,
            total_payroll=total_payroll,
            total_paye=total_paye,
            skills_levy_rate=rules.skills_levy_rate,
            skills_levy_applies=levy_applies,
            skills_development_levy=levy,
            total_payroll_tax=total_payroll_tax,
            penalties=penalties,
        )


def calculate_payroll_tax(
    request: PayrollTaxRequest,
    rulebook: TaxRulebook,
) -> PayrollTaxCalculation:
    """Convenience function for one-off payroll tax calculation."""
    return PayrollTaxCalculator(rulebook).calculate(request)
