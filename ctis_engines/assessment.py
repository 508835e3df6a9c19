"""
Comprehensive Assessment - every tax for one taxpayer, plus a compliance grade.

Responsibility:
    Run the income tax, GST, payroll, excise and withholding calculators
    on whichever slices of the request are present, total the liabilities
    and penalties, and score the taxpayer's compliance with a fixed,
    additive rubric.

Invariants enforced:
    - All or nothing: the first failing sub-calculation aborts the whole
      assessment with AggregationFailureError naming the stage; no partial
      assessment is ever returned.
    - grand_total == total_tax_liability + total_penalties.
    - The score starts at the rubric's start score, loses a fixed number of
      points per detected issue and never drops below zero.

Scoring rubric (defaults; the rulebook may override the point values):
    late filing (GST return filed after due date)          -10 each
    late payment (income tax, payroll, excise after due)   -10 each
    GST registration required but not evidenced            -15
    allowance claimed without supporting description        -5 each

    Grade: A >= 90, B >= 75, C >= 60, D >= 40, otherwise F.
    Severity from deduction: >= 20 Critical, >= 15 High, >= 10 Medium,
    otherwise Low.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import TypeVar

from ctis_engines.excise import (
    ExciseDutyCalculation,
    ExciseDutyCalculator,
    ExciseDutyRequest,
)
from ctis_engines.gst import GstCalculation, GstCalculator, GstRequest
from ctis_engines.income_tax import (
    IncomeTaxCalculation,
    IncomeTaxCalculator,
    IncomeTaxRequest,
)
from ctis_engines.payroll import (
    PayrollTaxCalculation,
    PayrollTaxCalculator,
    PayrollTaxRequest,
)
from ctis_engines.tracer import traced_engine
from ctis_engines.validation import reject
from ctis_engines.withholding import (
    WithholdingTaxCalculation,
    WithholdingTaxCalculator,
    WithholdingTaxRequest,
)
from ctis_kernel.domain.tax_rules import IssueSeverity, TaxRulebook
from ctis_kernel.domain.values import Money
from ctis_kernel.exceptions import AggregationFailureError, TaxEngineError
from ctis_kernel.logging_config import get_logger

logger = get_logger("engines.assessment")

T = TypeVar("T")

GRADE_DESCRIPTIONS = {
    "A": "Excellent tax compliance",
    "B": "Good tax compliance",
    "C": "Satisfactory tax compliance",
    "D": "Poor tax compliance",
    "F": "Very poor tax compliance",
}


class IssueType(str, Enum):
    """Kind of compliance issue."""

    LATE_FILING = "Late Filing"
    LATE_PAYMENT = "Late Payment"
    GST_REGISTRATION = "GST Registration"
    MISSING_DOCUMENTATION = "Missing Documentation"


def severity_for(deduction: int) -> IssueSeverity:
    """Map a score deduction to an issue severity."""
    if deduction >= 20:
        return IssueSeverity.CRITICAL
    if deduction >= 15:
        return IssueSeverity.HIGH
    if deduction >= 10:
        return IssueSeverity.MEDIUM
    return IssueSeverity.LOW


@dataclass(frozen=True)
class ComprehensiveAssessmentRequest:
    """
    All tax inputs for one taxpayer and year.

    Every slice is optional, but at least one must be present. Excise is a
    tuple because each return covers a single product category.
    """

    taxpayer_id: str
    tax_year: int
    income_tax: IncomeTaxRequest | None = None
    gst: GstRequest | None = None
    payroll: PayrollTaxRequest | None = None
    excise: tuple[ExciseDutyRequest, ...] = ()
    withholding: WithholdingTaxRequest | None = None
    gst_registered: bool = False


@dataclass(frozen=True)
class ComplianceIssue:
    issue_type: IssueType
    severity: IssueSeverity
    description: str
    recommended_action: str
    deduction: int
    deadline: date | None = None


@dataclass(frozen=True)
class ComprehensiveAssessment:
    """Combined liabilities, penalties and compliance grade for one taxpayer."""

    taxpayer_id: str
    tax_year: int
    income_tax: IncomeTaxCalculation | None
    gst: GstCalculation | None
    payroll: PayrollTaxCalculation | None
    excise: tuple[ExciseDutyCalculation, ...]
    withholding: WithholdingTaxCalculation | None
    total_tax_liability: Money
    total_penalties: Money
    grand_total: Money
    compliance_score: int
    compliance_grade: str
    compliance_description: str
    compliance_issues: tuple[ComplianceIssue, ...]
    positive_factors: tuple[str, ...]
    improvement_areas: tuple[str, ...]


class ComprehensiveAssessor:
    """Runs every calculator for a taxpayer and grades compliance."""

    def __init__(self, rulebook: TaxRulebook):
        self._rulebook = rulebook
        self._income_tax = IncomeTaxCalculator(rulebook)
        self._gst = GstCalculator(rulebook)
        self._payroll = PayrollTaxCalculator(rulebook)
        self._excise = ExciseDutyCalculator(rulebook)
        self._withholding = WithholdingTaxCalculator(rulebook)

    def _run_stage(self, stage: str, func: Callable[[], T]) -> T:
        try:
            return func()
        except TaxEngineError as exc:
            logger.error(
                "assessment_stage_failed",
                extra={"stage": stage, "error_code": exc.code, "error": str(exc)},
            )
            raise AggregationFailureError(stage, exc) from exc

    @traced_engine("assessment", "1.0", fingerprint_fields=("request",))
    def assess(self, request: ComprehensiveAssessmentRequest) -> ComprehensiveAssessment:
        """
        Perform a comprehensive assessment.

        Raises:
            InvalidInputError: The request carries no slices at all.
            AggregationFailureError: A sub-calculation failed; ``stage``
                names it and the original error is chained.
        """
        t0 = time.monotonic()
        if not (
            request.income_tax
            or request.gst
            or request.payroll
            or request.excise
            or request.withholding
        ):
            raise reject("request", request.taxpayer_id, "contains no tax slices")

        logger.info(
            "assessment_started",
            extra={"taxpayer_id": request.taxpayer_id, "tax_year": request.tax_year},
        )

        income_tax = gst = payroll = withholding = None
        if request.income_tax is not None:
            income_tax = self._run_stage(
                "income_tax", lambda: self._income_tax.calculate(request.income_tax)
            )
        if request.gst is not None:
            gst = self._run_stage("gst", lambda: self._gst.calculate(request.gst))
        if request.payroll is not None:
            payroll = self._run_stage(
                "payroll", lambda: self._payroll.calculate(request.payroll)
            )
        excise = tuple(
            self._run_stage(f"excise[{index}]", lambda r=r: self._excise.calculate(r))
            for index, r in enumerate(request.excise)
        )
        if request.withholding is not None:
            withholding = self._run_stage(
                "withholding", lambda: self._withholding.calculate(request.withholding)
            )

        currency = self._rulebook.currency
        liabilities: list[Money] = []
        penalties: list[Money] = []
        if income_tax is not None:
            liabilities.append(income_tax.payable_tax)
            penalties.append(income_tax.total_penalty)
        if gst is not None:
            liabilities.append(gst.net_gst_liability)
            penalties.append(gst.total_penalty)
        if payroll is not None:
            liabilities.append(payroll.total_payroll_tax)
            penalties.append(payroll.total_penalty)
        for calc in excise:
            liabilities.append(calc.total_excise_duty)
            penalties.append(calc.total_penalty)
        if withholding is not None:
            liabilities.append(withholding.withholding_tax_amount)

        total_tax_liability = Money.sum_of(liabilities, currency)
        total_penalties = Money.sum_of(penalties, currency)

        issues = self._detect_issues(request, income_tax, gst, payroll, excise)
        rubric = self._rulebook.compliance
        score = max(0, rubric.start_score - sum(i.deduction for i in issues))
        grade = rubric.grade_for(score)
        positive, improvement = self._factors(issues, gst)

        result = ComprehensiveAssessment(
            taxpayer_id=request.taxpayer_id,
            tax_year=request.tax_year,
            income_tax=income_tax,
            gst=gst,
            payroll=payroll,
            excise=excise,
            withholding=withholding,
            total_tax_liability=total_tax_liability,
            total_penalties=total_penalties,
            grand_total=total_tax_liability + total_penalties,
            compliance_score=score,
            compliance_grade=grade,
            compliance_description=GRADE_DESCRIPTIONS.get(grade, ""),
            compliance_issues=issues,
            positive_factors=positive,
            improvement_areas=improvement,
        )

        logger.info(
            "assessment_completed",
            extra={
                "taxpayer_id": request.taxpayer_id,
                "total_tax_liability": str(total_tax_liability.amount),
                "total_penalties": str(total_penalties.amount),
                "compliance_score": score,
                "compliance_grade": grade,
                "issue_count": len(issues),
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return result

    def _detect_issues(
        self,
        request: ComprehensiveAssessmentRequest,
        income_tax: IncomeTaxCalculation | None,
        gst: GstCalculation | None,
        payroll: PayrollTaxCalculation | None,
        excise: tuple[ExciseDutyCalculation, ...],
    ) -> tuple[ComplianceIssue, ...]:
        rubric = self._rulebook.compliance
        issues: list[ComplianceIssue] = []

        def late_payment(label: str, days: int, due: date | None) -> None:
            issues.append(
                ComplianceIssue(
                    issue_type=IssueType.LATE_PAYMENT,
                    severity=severity_for(rubric.late_payment_deduction),
                    description=f"{label} paid {days} day(s) after the due date",
                    recommended_action="Make future payments on or before the due date to avoid penalties",
                    deduction=rubric.late_payment_deduction,
                    deadline=due,
                )
            )

        if gst is not None and gst.penalties.is_late:
            issues.append(
                ComplianceIssue(
                    issue_type=IssueType.LATE_FILING,
                    severity=severity_for(rubric.late_filing_deduction),
                    description=f"GST return filed {gst.penalties.days_late} day(s) late",
                    recommended_action="Ensure future filings are submitted on time",
                    deduction=rubric.late_filing_deduction,
                )
            )
        if income_tax is not None and income_tax.penalties.is_late:
            late_payment(
                "Income tax", income_tax.penalties.days_late, request.income_tax.due_date
            )
        if payroll is not None and payroll.penalties.is_late:
            late_payment("PAYE", payroll.penalties.days_late, request.payroll.due_date)
        for calc, excise_request in zip(excise, request.excise):
            if calc.penalties.is_late:
                late_payment(
                    f"{calc.product_category.value} excise duty",
                    calc.penalties.days_late,
                    excise_request.due_date,
                )

        if gst is not None and gst.registration_required and not request.gst_registered:
            issues.append(
                ComplianceIssue(
                    issue_type=IssueType.GST_REGISTRATION,
                    severity=severity_for(rubric.unregistered_gst_deduction),
                    description=(
                        "Gross sales exceed the GST registration threshold but no "
                        "GST registration is on record"
                    ),
                    recommended_action="Review GST registration requirements and register if necessary",
                    deduction=rubric.unregistered_gst_deduction,
                )
            )

        if request.income_tax is not None:
            for allowance in request.income_tax.allowances:
                if not allowance.is_documented:
                    issues.append(
                        ComplianceIssue(
                            issue_type=IssueType.MISSING_DOCUMENTATION,
                            severity=severity_for(rubric.undocumented_allowance_deduction),
                            description=(
                                f"{allowance.allowance_type} allowance of "
                                f"{allowance.amount} claimed without supporting documentation"
                            ),
                            recommended_action="Provide supporting documentation for the allowance",
                            deduction=rubric.undocumented_allowance_deduction,
                            deadline=date(request.tax_year + 1, 3, 31),
                        )
                    )

        return tuple(issues)

    @staticmethod
    def _factors(
        issues: tuple[ComplianceIssue, ...],
        gst: GstCalculation | None,
    ) -> tuple[tuple[str, ...], tuple[str, ...]]:
        found = {issue.issue_type for issue in issues}
        positive: list[str] = []
        improvement: list[str] = []

        if IssueType.LATE_FILING in found:
            improvement.append("File returns by their due dates")
        else:
            positive.append("Returns filed on time")
        if IssueType.LATE_PAYMENT in found:
            improvement.append("Pay tax liabilities by their due dates")
        else:
            positive.append("Tax payments made on time")
        if IssueType.GST_REGISTRATION in found:
            improvement.append("Register for GST")
        elif gst is not None:
            positive.append("GST registration obligations met")
        if IssueType.MISSING_DOCUMENTATION in found:
            improvement.append("Keep supporting documentation for all allowances")

        return tuple(positive), tuple(improvement)


def perform_comprehensive_assessment(
    request: ComprehensiveAssessmentRequest,
    rulebook: TaxRulebook,
) -> ComprehensiveAssessment:
    """Convenience function for one-off comprehensive assessment."""
    return ComprehensiveAssessor(rulebook).assess(request)
