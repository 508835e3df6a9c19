"""
TaxCalculationService -- request/response facade over the tax engines.

Responsibility:
    Single entry point used by the presentation layer.  Resolves the
    rulebook for the request's tax year through ``ctis_config``, coerces
    JSON payloads into typed requests, binds request-scoped log context,
    and invokes the pure engines.

Architecture position:
    Services -- orchestration over engines + config.  Holds no state other
    than the injected rulebook (or a per-year cache of loaded rulebooks).

Failure modes:
    - Payload and engine errors (InvalidInputError, UnknownCategoryError,
      AggregationFailureError...) propagate unchanged after a
      ``calculation_failed`` log record.
    - RulebookNotFoundError when no rulebook covers the tax year.

Usage:
    service = TaxCalculationService()
    result = service.calculate_income_tax({
        "taxpayerCategory": "Individual",
        "taxYear": 2025,
        "grossIncome": "25000000",
    })
    print(result.payable_tax)  # 3100000.00 SLE
"""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, TypeVar

from ctis_config import DEFAULT_JURISDICTION, get_active_rulebook
from ctis_engines.assessment import (
    ComprehensiveAssessment,
    ComprehensiveAssessmentRequest,
    ComprehensiveAssessor,
)
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
from ctis_engines.penalty import PenaltyCalculation, PenaltyRequest, calculate_penalty
from ctis_engines.withholding import (
    WithholdingTaxCalculation,
    WithholdingTaxCalculator,
    WithholdingTaxRequest,
)
from ctis_kernel.domain.tax_rules import TaxRulebook
from ctis_kernel.domain.values import Currency
from ctis_kernel.exceptions import TaxEngineError
from ctis_kernel.logging_config import LogContext, get_logger
from ctis_services import payloads

logger = get_logger("services.tax_calculation")

T = TypeVar("T")


class TaxCalculationService:
    """
    Facade exposing every tax calculation as a request/response call.

    Each ``calculate_*`` method accepts either the typed engine request or
    a camelCase payload dict and returns the typed result; use
    ``payloads.to_payload`` (or ``handle``) for a JSON-ready response.
    """

    def __init__(
        self,
        rulebook: TaxRulebook | None = None,
        *,
        config_dir: Path | None = None,
        jurisdiction: str = DEFAULT_JURISDICTION,
        default_tax_year: int = 2025,
    ):
        self._fixed_rulebook = rulebook
        self._config_dir = config_dir
        self._jurisdiction = jurisdiction
        self._default_tax_year = default_tax_year
        self._cache: dict[int, TaxRulebook] = {}
        self._lock = threading.Lock()

    def rulebook_for(self, tax_year: int | None) -> TaxRulebook:
        """Rulebook for ``tax_year`` (the injected one, if any)."""
        if self._fixed_rulebook is not None:
            return self._fixed_rulebook
        year = tax_year if tax_year is not None else self._default_tax_year
        with self._lock:
            if year not in self._cache:
                self._cache[year] = get_active_rulebook(
                    year, self._jurisdiction, self._config_dir
                )
            return self._cache[year]

    def _failed(self, operation: str, exc: TaxEngineError) -> None:
        logger.warning(
            "calculation_failed",
            extra={
                "operation": operation,
                "error_code": exc.code,
                "error": str(exc),
            },
        )

    def _run(
        self,
        operation: str,
        request: Any,
        build: Callable[[Mapping[str, Any], Currency, int], Any],
        compute: Callable[[TaxRulebook, Any], T],
    ) -> T:
        """
        Serve one request inside its own log context.

        Year resolution, rulebook lookup, payload coercion and the engine
        call all happen inside the bound context, so every TaxEngineError
        leaves a ``calculation_failed`` record.
        """
        with LogContext.bind(
            calculation_id=str(uuid.uuid4()),
            taxpayer_id=_taxpayer_id(request),
        ):
            try:
                year = self._year(request)
            except TaxEngineError as exc:
                self._failed(operation, exc)
                raise
            with LogContext.bind(tax_year=year):
                t0 = time.monotonic()
                try:
                    rulebook = self.rulebook_for(year)
                    if isinstance(request, Mapping):
                        request = build(request, rulebook.currency, year)
                    result = compute(rulebook, request)
                except TaxEngineError as exc:
                    self._failed(operation, exc)
                    raise
                logger.info(
                    "calculation_served",
                    extra={
                        "operation": operation,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                return result

    def _year(self, request: Any) -> int:
        if isinstance(request, Mapping):
            return payloads.tax_year_of(request, self._default_tax_year)
        return getattr(request, "tax_year", None) or self._default_tax_year

    # -----------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------

    def calculate_income_tax(
        self, request: IncomeTaxRequest | Mapping[str, Any]
    ) -> IncomeTaxCalculation:
        return self._run(
            "calculate_income_tax", request,
            payloads.income_tax_request,
            lambda rulebook, r: IncomeTaxCalculator(rulebook).calculate(r),
        )

    def calculate_gst(self, request: GstRequest | Mapping[str, Any]) -> GstCalculation:
        return self._run(
            "calculate_gst", request,
            payloads.gst_request,
            lambda rulebook, r: GstCalculator(rulebook).calculate(r),
        )

    def calculate_payroll_tax(
        self, request: PayrollTaxRequest | Mapping[str, Any]
    ) -> PayrollTaxCalculation:
        return self._run(
            "calculate_payroll_tax", request,
            payloads.payroll_tax_request,
            lambda rulebook, r: PayrollTaxCalculator(rulebook).calculate(r),
        )

    def calculate_excise_duty(
        self, request: ExciseDutyRequest | Mapping[str, Any]
    ) -> ExciseDutyCalculation:
        return self._run(
            "calculate_excise_duty", request,
            payloads.excise_duty_request,
            lambda rulebook, r: ExciseDutyCalculator(rulebook).calculate(r),
        )

    def calculate_withholding_tax(
        self, request: WithholdingTaxRequest | Mapping[str, Any]
    ) -> WithholdingTaxCalculation:
        return self._run(
            "calculate_withholding_tax", request,
            lambda payload, currency, _year: payloads.withholding_tax_request(
                payload, currency
            ),
            lambda rulebook, r: WithholdingTaxCalculator(rulebook).calculate(r),
        )

    def calculate_penalties(
        self, request: PenaltyRequest | Mapping[str, Any]
    ) -> PenaltyCalculation:
        return self._run(
            "calculate_penalties", request,
            lambda payload, currency, _year: payloads.penalty_request(payload, currency),
            lambda rulebook, r: calculate_penalty(
                tax_amount=r.tax_amount,
                tax_type=r.tax_type,
                due_date=r.due_date,
                actual_date=r.actual_date,
                rulebook=rulebook,
            ),
        )

    def perform_comprehensive_assessment(
        self, request: ComprehensiveAssessmentRequest | Mapping[str, Any]
    ) -> ComprehensiveAssessment:
        return self._run(
            "perform_comprehensive_assessment", request,
            payloads.assessment_request,
            lambda rulebook, r: ComprehensiveAssessor(rulebook).assess(r),
        )

    # -----------------------------------------------------------------
    # JSON surface
    # -----------------------------------------------------------------

    _OPERATIONS = {
        "calculateIncomeTax": "calculate_income_tax",
        "calculateGst": "calculate_gst",
        "calculatePayrollTax": "calculate_payroll_tax",
        "calculateExciseDuty": "calculate_excise_duty",
        "calculateWithholdingTax": "calculate_withholding_tax",
        "calculatePenalties": "calculate_penalties",
        "performComprehensiveAssessment": "perform_comprehensive_assessment",
    }

    def handle(self, operation: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        """
        Run ``operation`` (camelCase name) on a JSON payload.

        Returns the JSON-ready result dict.

        Raises:
            KeyError: Unknown operation name.
        """
        method = getattr(self, self._OPERATIONS[operation])
        return payloads.to_payload(method(payload))


def _taxpayer_id(request: Any) -> str | None:
    if isinstance(request, Mapping):
        value = request.get("taxpayerId", request.get("taxpayer_id"))
    else:
        value = getattr(request, "taxpayer_id", None)
    return str(value) if value is not None else None
