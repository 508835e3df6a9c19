"""
Rulebook Validator (``ctis_config.validator``).

Responsibility
--------------
Checks a parsed ``TaxRulebook`` for completeness and sane values before it
is handed to the engines.  Structural checks on individual bands and rates
already happen when the kernel types are constructed; this module checks
the rulebook as a whole.

Invariants enforced
-------------------
* Every tax type has penalty rates; every excise category, withholding
  type and company category has a rate.
* Headline rates are fractions in [0, 1]; thresholds are positive.
* Compliance grade boundaries are strictly descending and within the
  rubric's score range.

Failure modes
-------------
* Validation errors (``RulebookValidationResult.errors``) -> the rulebook
  MUST NOT be used.
* Validation warnings -> usable, but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ctis_kernel.domain.tax_rules import (
    ProductCategory,
    TaxpayerCategory,
    TaxRulebook,
    TaxType,
    WithholdingTaxType,
)


@dataclass
class RulebookValidationResult:
    """
    Result of rulebook validation.

    ``is_valid`` is ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def _check_fraction(result: RulebookValidationResult, name: str, rate: Decimal) -> None:
    if rate < Decimal("0") or rate > Decimal("1"):
        result.add_error(f"{name} must be between 0 and 1, got {rate}")


def validate_rulebook(rulebook: TaxRulebook) -> RulebookValidationResult:
    """Validate a rulebook as a whole; never raises."""
    result = RulebookValidationResult()

    _check_fraction(result, "corporate_rate", rulebook.corporate_rate)
    _check_fraction(result, "gst_rate", rulebook.gst_rate)
    _check_fraction(result, "skills_levy_rate", rulebook.skills_levy_rate)

    if not rulebook.gst_registration_threshold.is_positive:
        result.add_error("gst_registration_threshold must be positive")
    if not rulebook.skills_levy_monthly_threshold.is_positive:
        result.add_error("skills_levy_monthly_threshold must be positive")

    for category in TaxpayerCategory:
        if not category.is_company:
            continue
        rate = rulebook.minimum_tax_rates.get(category)
        if rate is None:
            result.add_error(f"missing minimum tax rate for {category.value}")
        else:
            _check_fraction(result, f"minimum_tax_rates.{category.value}", rate)

    for tax_type in TaxType:
        if tax_type not in rulebook.penalty_rates:
            result.add_error(f"missing penalty rates for {tax_type.value}")

    for product in ProductCategory:
        if product not in rulebook.excise_rates:
            result.add_error(f"missing excise rate for {product.value}")

    for wht_type in WithholdingTaxType:
        rate = rulebook.withholding_rates.get(wht_type)
        if rate is None:
            result.add_error(f"missing withholding rate for {wht_type.value}")
            continue
        _check_fraction(result, f"withholding.resident.{wht_type.value}", rate)
        non_resident = rulebook.non_resident_withholding_rates.get(wht_type)
        if non_resident is not None:
            _check_fraction(result, f"withholding.non_resident.{wht_type.value}", non_resident)
            if non_resident < rate:
                result.add_warning(
                    f"non-resident rate for {wht_type.value} ({non_resident}) "
                    f"is below the resident rate ({rate})"
                )

    for name, table in (
        ("individual_brackets", rulebook.individual_brackets),
        ("paye_brackets", rulebook.paye_brackets),
    ):
        if not table[0].lower_bound.is_zero:
            result.add_warning(f"{name} do not start at zero")
        if table[0].lower_bound.currency != rulebook.currency:
            result.add_error(f"{name} are not in {rulebook.currency}")

    rubric = rulebook.compliance
    minimums = [minimum for _, minimum in rubric.grade_boundaries]
    if any(a <= b for a, b in zip(minimums, minimums[1:])):
        result.add_error("compliance grade boundaries must be strictly descending")
    if minimums and (minimums[0] > rubric.start_score or minimums[-1] < 0):
        result.add_error("compliance grade boundaries fall outside the score range")
    for name in (
        "late_filing_deduction",
        "late_payment_deduction",
        "unregistered_gst_deduction",
        "undocumented_allowance_deduction",
    ):
        if getattr(rubric, name) < 0:
            result.add_error(f"compliance {name} cannot be negative")

    return result
