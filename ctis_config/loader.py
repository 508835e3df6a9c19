"""
Rulebook Loader (``ctis_config.loader``).

Responsibility
--------------
Loads a rulebook YAML file and parses it into the frozen
``ctis_kernel.domain.tax_rules.TaxRulebook``.  This is internal tooling:
the single public entry point for runtime configuration is
``ctis_config.get_active_rulebook()``.

Invariants enforced
-------------------
* Numbers are parsed through ``Decimal(str(value))`` -- a rate written
  unquoted in YAML never keeps float noise.
* Every parse failure (missing key, bad number, unknown enum key,
  malformed bracket table) surfaces as ``InvalidRulebookError`` naming
  the source file.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``InvalidRulebookError``.
* Missing or invalid keys  -> ``InvalidRulebookError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ctis_kernel.domain.tax_rules import (
    ComplianceRubric,
    ExciseRate,
    PenaltyRates,
    ProductCategory,
    TaxBracket,
    TaxpayerCategory,
    TaxRulebook,
    TaxType,
    WithholdingTaxType,
)
from ctis_kernel.domain.values import Currency, Money
from ctis_kernel.exceptions import InvalidRulebookError, TaxEngineError


@dataclass(frozen=True)
class LoadedRulebook:
    """A parsed rulebook together with where it came from."""

    rulebook: TaxRulebook
    source: Path
    checksum: str


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any) -> Decimal:
    """Parse a YAML scalar into a Decimal."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Cannot parse decimal from {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Cannot parse decimal from {value!r}") from e


def parse_money(value: Any, currency: Currency) -> Money:
    return Money(amount=parse_decimal(value), currency=currency)


def parse_brackets(items: list[dict[str, Any]], currency: Currency) -> tuple[TaxBracket, ...]:
    """Parse a bracket list; a band without ``upper`` is unbounded."""
    return tuple(
        TaxBracket(
            lower_bound=parse_money(item["lower"], currency),
            upper_bound=(
                parse_money(item["upper"], currency)
                if item.get("upper") is not None
                else None
            ),
            rate=parse_decimal(item["rate"]),
            description=item.get("description", ""),
        )
        for item in items
    )


def parse_compliance(data: dict[str, Any]) -> ComplianceRubric:
    if not data:
        return ComplianceRubric()
    deductions = data.get("deductions", {})
    defaults = ComplianceRubric()
    grades = data.get("grades")
    return ComplianceRubric(
        start_score=int(data.get("start_score", defaults.start_score)),
        late_filing_deduction=int(
            deductions.get("late_filing", defaults.late_filing_deduction)
        ),
        late_payment_deduction=int(
            deductions.get("late_payment", defaults.late_payment_deduction)
        ),
        unregistered_gst_deduction=int(
            deductions.get("unregistered_gst", defaults.unregistered_gst_deduction)
        ),
        undocumented_allowance_deduction=int(
            deductions.get(
                "undocumented_allowance", defaults.undocumented_allowance_deduction
            )
        ),
        grade_boundaries=(
            tuple((g["grade"], int(g["min_score"])) for g in grades)
            if grades
            else defaults.grade_boundaries
        ),
        fallback_grade=data.get("fallback_grade", defaults.fallback_grade),
    )


def parse_rulebook(data: dict[str, Any]) -> TaxRulebook:
    """
    Parse a rulebook document into a ``TaxRulebook``.

    Raises:
        KeyError: if required keys are missing.
        ValueError: if a number or enum key cannot be parsed.
        InvalidBracketTableError: if a bracket table is malformed.
    """
    header = data["rulebook"]
    currency = Currency(header["currency"])
    income = data["income_tax"]
    gst = data["gst"]
    payroll = data["payroll"]
    withholding = data["withholding"]

    return TaxRulebook(
        jurisdiction=str(header["jurisdiction"]),
        tax_year=int(header["tax_year"]),
        currency=currency,
        individual_brackets=parse_brackets(data["individual_brackets"], currency),
        paye_brackets=parse_brackets(data["paye_brackets"], currency),
        corporate_rate=parse_decimal(income["corporate_rate"]),
        minimum_tax_rates={
            TaxpayerCategory(k): parse_decimal(v)
            for k, v in income["minimum_tax_rates"].items()
        },
        gst_rate=parse_decimal(gst["rate"]),
        gst_registration_threshold=parse_money(gst["registration_threshold"], currency),
        skills_levy_rate=parse_decimal(payroll["skills_levy_rate"]),
        skills_levy_monthly_threshold=parse_money(
            payroll["skills_levy_monthly_threshold"], currency
        ),
        excise_rates={
            ProductCategory(k): ExciseRate(
                specific_rate=parse_money(v["specific_rate"], currency),
                ad_valorem_rate=parse_decimal(v["ad_valorem_rate"]),
                unit_of_measure=v.get("unit_of_measure", "unit"),
            )
            for k, v in data["excise"].items()
        },
        withholding_rates={
            WithholdingTaxType(k): parse_decimal(v)
            for k, v in withholding["resident"].items()
        },
        non_resident_withholding_rates={
            WithholdingTaxType(k): parse_decimal(v)
            for k, v in (withholding.get("non_resident") or {}).items()
        },
        penalty_rates={
            TaxType(k): PenaltyRates(
                late_filing_rate=parse_decimal(v["late_filing_rate"]),
                daily_interest_rate=parse_decimal(v["daily_interest_rate"]),
            )
            for k, v in data["penalties"].items()
        },
        compliance=parse_compliance(data.get("compliance") or {}),
    )


def read_header(path: Path) -> tuple[str, int]:
    """Return (jurisdiction, tax_year) without parsing the whole rulebook."""
    try:
        header = load_yaml_file(path)["rulebook"]
        return str(header["jurisdiction"]), int(header["tax_year"])
    except (yaml.YAMLError, KeyError, TypeError, ValueError) as e:
        raise InvalidRulebookError(str(path), f"unreadable header: {e}") from e


def load_rulebook(path: Path) -> LoadedRulebook:
    """
    Load and parse one rulebook file.

    Raises:
        FileNotFoundError: if the file does not exist.
        InvalidRulebookError: if the document cannot be parsed.
    """
    try:
        data = load_yaml_file(path)
    except yaml.YAMLError as e:
        raise InvalidRulebookError(str(path), f"malformed YAML: {e}") from e
    try:
        rulebook = parse_rulebook(data)
    except KeyError as e:
        raise InvalidRulebookError(str(path), f"missing key {e}") from e
    except (TypeError, ValueError, AttributeError, TaxEngineError) as e:
        raise InvalidRulebookError(str(path), str(e)) from e
    return LoadedRulebook(rulebook=rulebook, source=path, checksum=compute_checksum(data))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
