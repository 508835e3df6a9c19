"""
Module: ctis_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure tax
    calculators.  This is the canonical import surface for ctis_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ctis_kernel (and sibling engine modules).
    MUST NOT import ctis_config or ctis_services.

Invariants enforced:
    - Purity: engines NEVER read the wall clock; every date is an
      explicit input.  Identical inputs always produce identical outputs.
    - Decimal-only arithmetic: amounts are Money, rates are Decimal.
    - Rates are never held by an engine; they are read from the
      TaxRulebook passed in by the caller.
    - Validate first: every calculator checks its whole request and
      raises a typed error before computing anything.

Failure modes:
    - InvalidInputError / UnknownCategoryError / UnknownWithholdingTypeError
      from individual calculators.
    - AggregationFailureError from the comprehensive assessment, naming the
      failed stage.

Audit relevance:
    Every calculator invocation is traced via ``@traced_engine`` (see
    ``ctis_engines.tracer``), emitting CTIS_ENGINE_TRACE records with the
    engine name, version, input fingerprint and duration.

Usage:
    from ctis_engines import IncomeTaxCalculator, IncomeTaxRequest
    from ctis_engines import perform_comprehensive_assessment
"""

from ctis_engines.assessment import (
    ComplianceIssue,
    ComprehensiveAssessment,
    ComprehensiveAssessmentRequest,
    ComprehensiveAssessor,
    IssueType,
    perform_comprehensive_assessment,
    severity_for,
)
from ctis_engines.brackets import BracketSlice, BracketTaxResult, compute_bracket_tax
from ctis_engines.excise import (
    ExciseDutyCalculation,
    ExciseDutyCalculator,
    ExciseDutyRequest,
    ExciseItem,
    ExciseItemDuty,
    calculate_excise_duty,
)
from ctis_engines.gst import GstCalculation, GstCalculator, GstRequest, calculate_gst
from ctis_engines.income_tax import (
    Allowance,
    IncomeTaxCalculation,
    IncomeTaxCalculator,
    IncomeTaxRequest,
    calculate_income_tax,
)
from ctis_engines.payroll import (
    Employee,
    EmployeePaye,
    PayrollTaxCalculation,
    PayrollTaxCalculator,
    PayrollTaxRequest,
    calculate_payroll_tax,
)
from ctis_engines.penalty import (
    FilingTimeliness,
    Late,
    OnTime,
    PenaltyCalculation,
    PenaltyItem,
    PenaltyItemType,
    PenaltyRequest,
    assess_timeliness,
    calculate_penalty,
)
from ctis_engines.tracer import compute_input_fingerprint, traced_engine
from ctis_engines.withholding import (
    WithholdingTaxCalculation,
    WithholdingTaxCalculator,
    WithholdingTaxRequest,
    calculate_withholding_tax,
)

__all__ = [
    # Assessment
    "ComplianceIssue",
    "ComprehensiveAssessment",
    "ComprehensiveAssessmentRequest",
    "ComprehensiveAssessor",
    "IssueType",
    "perform_comprehensive_assessment",
    "severity_for",
    # Brackets
    "BracketSlice",
    "BracketTaxResult",
    "compute_bracket_tax",
    # Excise
    "ExciseDutyCalculation",
    "ExciseDutyCalculator",
    "ExciseDutyRequest",
    "ExciseItem",
    "ExciseItemDuty",
    "calculate_excise_duty",
    # GST
    "GstCalculation",
    "GstCalculator",
    "GstRequest",
    "calculate_gst",
    # Income tax
    "Allowance",
    "IncomeTaxCalculation",
    "IncomeTaxCalculator",
    "IncomeTaxRequest",
    "calculate_income_tax",
    # Payroll
    "Employee",
    "EmployeePaye",
    "PayrollTaxCalculation",
    "PayrollTaxCalculator",
    "PayrollTaxRequest",
    "calculate_payroll_tax",
    # Penalty
    "FilingTimeliness",
    "Late",
    "OnTime",
    "PenaltyCalculation",
    "PenaltyItem",
    "PenaltyItemType",
    "PenaltyRequest",
    "assess_timeliness",
    "calculate_penalty",
    # Tracer
    "compute_input_fingerprint",
    "traced_engine",
    # Withholding
    "WithholdingTaxCalculation",
    "WithholdingTaxCalculator",
    "WithholdingTaxRequest",
    "calculate_withholding_tax",
]
