"""
Excise Duty Engine - specific and ad valorem duty on excisable goods.

Per item:
    specific_duty  = quantity * specific_rate(category)
    ad_valorem_duty = value * ad_valorem_rate(category)
    total_duty     = specific_duty + ad_valorem_duty

Totals are the sums of the per-item (rounded) duties. Rates come from the
rulebook, keyed by product category (Tobacco, Alcohol, Fuel).

Usage:
    from ctis_engines.excise import ExciseDutyRequest, ExciseItem, calculate_excise_duty

    result = calculate_excise_duty(
        ExciseDutyRequest(
            tax_year=2025,
            product_category=ProductCategory.TOBACCO,
            items=(ExciseItem("TOB001", "Cigarettes", Decimal("1000"),
                              Money.of("5000000", "SLE")),),
        ),
        rulebook,
    )
    print(result.total_excise_duty)  # 1400000.00 SLE
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ctis_engines.penalty import PenaltyCalculation, assess_timeliness, penalty_for
from ctis_engines.tracer import traced_engine
from ctis_engines.validation import (
    reject,
    require_money,
    require_non_empty,
    require_non_negative,
)
from ctis_kernel.domain.tax_rules import ProductCategory, TaxRulebook, TaxType
from ctis_kernel.domain.values import Money
from ctis_kernel.exceptions import UnknownCategoryError
from ctis_kernel.logging_config import get_logger

logger = get_logger("engines.excise")


@dataclass(frozen=True)
class ExciseItem:
    product_code: str
    product_name: str
    quantity: Decimal
    value: Money


@dataclass(frozen=True)
class ExciseDutyRequest:
    """Excise return for one product category."""

    tax_year: int
    product_category: ProductCategory
    items: tuple[ExciseItem, ...]
    due_date: date | None = None
    payment_date: date | None = None


@dataclass(frozen=True)
class ExciseItemDuty:
    """Duty on one line item."""

    product_code: str
    product_name: str
    quantity: Decimal
    value: Money
    specific_rate: Money
    ad_valorem_rate: Decimal
    specific_duty: Money
    ad_valorem_duty: Money
    total_duty: Money


@dataclass(frozen=True)
class ExciseDutyCalculation:
    """Excise duty outcome for one product category."""

    tax_year: int
    product_category: ProductCategory
    unit_of_measure: str
    items: tuple[ExciseItemDuty, ...]
    total_specific_duty: Money
    total_ad_valorem_duty: Money
    total_excise_duty: Money
    penalties: PenaltyCalculation

    @property
    def total_penalty(self) -> Money:
        return self.penalties.total_penalty

    @property
    def total_amount_due(self) -> Money:
        return self.total_excise_duty + self.total_penalty


class ExciseDutyCalculator:
    """Calculates excise duty against one rulebook."""

    def __init__(self, rulebook: TaxRulebook):
        self._rulebook = rulebook

    def _validate(self, request: ExciseDutyRequest) -> None:
        currency = self._rulebook.currency
        require_non_empty("items", request.items)
        for index, item in enumerate(request.items):
            if not isinstance(item.quantity, (Decimal, int)) or isinstance(item.quantity, bool):
                raise reject(f"items[{index}].quantity", item.quantity, "must be a Decimal")
            require_non_negative(f"items[{index}].quantity", item.quantity)
            require_money(f"items[{index}].value", item.value, currency)

    @traced_engine("excise", "1.0", fingerprint_fields=("request",))
    def calculate(self, request: ExciseDutyRequest) -> ExciseDutyCalculation:
        """
        Calculate specific and ad valorem duty for every item.

        Raises:
            InvalidInputError: No items, or a negative quantity or value.
            UnknownCategoryError: Category has no rate in the rulebook.
        """
        self._validate(request)
        rules = self._rulebook
        currency = rules.currency
        try:
            rate = rules.excise_rate(request.product_category)
        except UnknownCategoryError as exc:
            logger.error("unknown_product_category", extra={"product_category": exc.category})
            raise
        category = ProductCategory(request.product_category)

        duties: list[ExciseItemDuty] = []
        for item in request.items:
            quantity = Decimal(item.quantity)
            specific = (rate.specific_rate * quantity).round()
            ad_valorem = (item.value * rate.ad_valorem_rate).round()
            duties.append(
                ExciseItemDuty(
                    product_code=item.product_code,
                    product_name=item.product_name,
                    quantity=quantity,
                    value=item.value,
                    specific_rate=rate.specific_rate,
                    ad_valorem_rate=rate.ad_valorem_rate,
                    specific_duty=specific,
                    ad_valorem_duty=ad_valorem,
                    total_duty=specific + ad_valorem,
                )
            )

        total_specific = Money.sum_of((d.specific_duty for d in duties), currency)
        total_ad_valorem = Money.sum_of((d.ad_valorem_duty for d in duties), currency)
        total = total_specific + total_ad_valorem

        timeliness = assess_timeliness(request.due_date, request.payment_date)
        penalties = penalty_for(timeliness, total, TaxType.EXCISE_DUTY, rules)

        logger.info(
            "excise_calculation_completed",
            extra={
                "product_category": category.value,
                "item_count": len(duties),
                "total_excise_duty": str(total.amount),
                "days_late": penalties.days_late,
            },
        )

        return ExciseDutyCalculation(
            tax_year=request.tax_year,
            product_category=category,
            unit_of_measure=rate.unit_of_measure,
            items=tuple(duties),
            total_specific_duty=total_specific,
            total_ad_valorem_duty=total_ad_valorem,
            total_excise_duty=total,
            penalties=penalties,
        )


def calculate_excise_duty(
    request: ExciseDutyRequest,
    rulebook: TaxRulebook,
) -> ExciseDutyCalculation:
    """Convenience function for one-off excise calculation."""
    return ExciseDutyCalculator(rulebook).calculate(request)
