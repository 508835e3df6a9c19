"""
Pure domain layer.

Value objects and tax rule types with NO dependencies on:
- Configuration files
- Time/clock
- I/O

All domain objects are immutable and deterministic.
"""

from ctis_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from ctis_kernel.domain.tax_rules import (
    ExciseRate,
    IssueSeverity,
    PenaltyRates,
    ProductCategory,
    TaxBracket,
    TaxpayerCategory,
    TaxRulebook,
    TaxType,
    WithholdingTaxType,
    validate_bracket_table,
)
from ctis_kernel.domain.values import Currency, Money

__all__ = [
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "ExciseRate",
    "IssueSeverity",
    "Money",
    "PenaltyRates",
    "ProductCategory",
    "TaxBracket",
    "TaxRulebook",
    "TaxType",
    "TaxpayerCategory",
    "WithholdingTaxType",
    "validate_bracket_table",
]
