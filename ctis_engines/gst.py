"""
GST Engine - Goods and Services Tax return calculation.

    output_gst          = taxable_supplies * gst_rate   (0% when is_export)
    reverse_charge_gst  = import_value * gst_rate       (only when is_import)
    net position        = output_gst + reverse_charge_gst - input_tax

A positive net position is reported as ``net_gst_liability``; a negative
one as ``refund_due``. Both fields are non-negative and at most one of
them is non-zero -- a credit is never reported as a negative liability.

``registration_required`` is set when gross sales exceed the rulebook's
registration threshold. A penalty on the net liability is attached when
the return was filed after its due date.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ctis_engines.penalty import PenaltyCalculation, assess_timeliness, penalty_for
from ctis_engines.tracer import traced_engine
from ctis_engines.validation import reject, require_money
from ctis_kernel.domain.tax_rules import TaxRulebook, TaxType
from ctis_kernel.domain.values import Money
from ctis_kernel.logging_config import get_logger

logger = get_logger("engines.gst")


@dataclass(frozen=True)
class GstRequest:
    """GST return input for one period."""

    tax_year: int
    gross_sales: Money
    taxable_supplies: Money
    input_tax: Money
    exempt_supplies: Money | None = None
    zero_rated_supplies: Money | None = None
    is_export: bool = False
    is_import: bool = False
    import_value: Money | None = None
    due_date: date | None = None
    filing_date: date | None = None


@dataclass(frozen=True)
class GstCalculation:
    """GST return outcome."""

    tax_year: int
    gross_sales: Money
    taxable_supplies: Money
    exempt_supplies: Money
    zero_rated_supplies: Money
    gst_rate: Decimal
    output_gst: Money
    input_tax: Money
    reverse_charge_gst: Money
    net_gst_liability: Money
    refund_due: Money
    registration_required: bool
    penalties: PenaltyCalculation

    @property
    def is_refund_position(self) -> bool:
        return self.refund_due.is_positive

    @property
    def total_penalty(self) -> Money:
        return self.penalties.total_penalty

    @property
    def total_amount_due(self) -> Money:
        return self.net_gst_liability + self.total_penalty


class GstCalculator:
    """Calculates GST returns against one rulebook."""

    def __init__(self, rulebook: TaxRulebook):
        self._rulebook = rulebook

    def _validate(self, request: GstRequest) -> None:
        currency = self._rulebook.currency
        require_money("gross_sales", request.gross_sales, currency)
        require_money("taxable_supplies", request.taxable_supplies, currency)
        require_money("input_tax", request.input_tax, currency)
        for name in ("exempt_supplies", "zero_rated_supplies", "import_value"):
            value = getattr(request, name)
            if value is not None:
                require_money(name, value, currency)
        if request.is_import and request.import_value is None:
            raise reject("import_value", None, "is required when is_import is set")

    @traced_engine("gst", "1.0", fingerprint_fields=("request",))
    def calculate(self, request: GstRequest) -> GstCalculation:
        """
        Calculate output GST, reverse charge and the net position.

        Raises:
            InvalidInputError: Negative supply or tax amount, or an import
                without an import value.
        """
        t0 = time.monotonic()
        self._validate(request)
        rules = self._rulebook
        zero = Money.zero(rules.currency)

        gst_rate = Decimal("0") if request.is_export else rules.gst_rate
        output_gst = (request.taxable_supplies * gst_rate).round()

        reverse_charge = zero
        if request.is_import:
            reverse_charge = (request.import_value * rules.gst_rate).round()

        net = output_gst + reverse_charge - request.input_tax
        net_liability, refund_due = zero, zero
        if net.is_positive:
            net_liability = net
        elif net.is_negative:
            refund_due = abs(net)

        registration_required = request.gross_sales > rules.gst_registration_threshold

        timeliness = assess_timeliness(request.due_date, request.filing_date)
        penalties = penalty_for(timeliness, net_liability, TaxType.GST, rules)

        result = GstCalculation(
            tax_year=request.tax_year,
            gross_sales=request.gross_sales,
            taxable_supplies=request.taxable_supplies,
            exempt_supplies=request.exempt_supplies or zero,
            zero_rated_supplies=request.zero_rated_supplies or zero,
            gst_rate=gst_rate,
            output_gst=output_gst,
            input_tax=request.input_tax,
            reverse_charge_gst=reverse_charge,
            net_gst_liability=net_liability,
            refund_due=refund_due,
            registration_required=registration_required,
            penalties=penalties,
        )

        logger.info(
            "gst_calculation_completed",
            extra={
                "tax_year": request.tax_year,
                "output_gst": str(output_gst.amount),
                "reverse_charge_gst": str(reverse_charge.amount),
                "net_gst_liability": str(net_liability.amount),
                "refund_due": str(refund_due.amount),
                "registration_required": registration_required,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return result


def calculate_gst(request: GstRequest, rulebook: TaxRulebook) -> GstCalculation:
    """Convenience function for one-off GST calculation."""
    return GstCalculator(rulebook).calculate(request)
