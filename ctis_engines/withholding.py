"""
Withholding Tax Engine - tax deducted at source on a single payment.

    withholding_tax_amount = amount * rate(payment type, residency)
    net_amount             = amount - withholding_tax_amount

Rates come from the rulebook's resident table. For non-resident payees
the non-resident table takes precedence for any payment type it lists.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ctis_engines.tracer import traced_engine
from ctis_engines.validation import require_money
from ctis_kernel.domain.tax_rules import TaxRulebook, WithholdingTaxType
from ctis_kernel.domain.values import Money
from ctis_kernel.exceptions import UnknownWithholdingTypeError
from ctis_kernel.logging_config import get_logger

logger = get_logger("engines.withholding")


@dataclass(frozen=True)
class WithholdingTaxRequest:
    amount: Money
    withholding_tax_type: WithholdingTaxType
    is_resident: bool = True


@dataclass(frozen=True)
class WithholdingTaxCalculation:
    """Withholding outcome for one payment."""

    amount: Money
    withholding_tax_type: WithholdingTaxType
    is_resident: bool
    rate: Decimal
    non_resident_rate_applied: bool
    withholding_tax_amount: Money
    net_amount: Money


class WithholdingTaxCalculator:
    """Looks up withholding rates and applies them to payments."""

    def __init__(self, rulebook: TaxRulebook):
        self._rulebook = rulebook

    @traced_engine("withholding", "1.0", fingerprint_fields=("request",))
    def calculate(self, request: WithholdingTaxRequest) -> WithholdingTaxCalculation:
        """
        Calculate the tax withheld on one payment.

        Raises:
            InvalidInputError: Negative amount.
            UnknownWithholdingTypeError: Payment type not in the rate table.
        """
        require_money("amount", request.amount, self._rulebook.currency)
        try:
            rate, non_resident_applied = self._rulebook.withholding_rate(
                request.withholding_tax_type, request.is_resident
            )
        except UnknownWithholdingTypeError as exc:
            logger.error(
                "unknown_withholding_type",
                extra={"withholding_tax_type": exc.withholding_type},
            )
            raise
        withheld = (request.amount * rate).round()
        wht_type = WithholdingTaxType(request.withholding_tax_type)

        logger.info(
            "withholding_calculated",
            extra={
                "withholding_tax_type": wht_type.value,
                "is_resident": request.is_resident,
                "rate": str(rate),
                "withholding_tax_amount": str(withheld.amount),
            },
        )

        return WithholdingTaxCalculation(
            amount=request.amount,
            withholding_tax_type=wht_type,
            is_resident=request.is_resident,
            rate=rate,
            non_resident_rate_applied=non_resident_applied,
            withholding_tax_amount=withheld,
            net_amount=request.amount - withheld,
        )


def calculate_withholding_tax(
    request: WithholdingTaxRequest,
    rulebook: TaxRulebook,
) -> WithholdingTaxCalculation:
    """Convenience function for one-off withholding calculation."""
    return WithholdingTaxCalculator(rulebook).calculate(request)
