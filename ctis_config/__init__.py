"""
ctis_config -- single public entrypoint for tax rulebooks.

Responsibility:
    Provides the ONLY way to obtain rates at runtime through
    ``get_active_rulebook()``.  No engine reads configuration files or
    holds rates of its own; every calculator receives the immutable
    ``TaxRulebook`` returned here.

Architecture position:
    Configuration -- YAML rulebooks, load-time validation.
    Sits above ``ctis_kernel`` and below ``ctis_services``.  The kernel
    and the engines MUST NEVER import from ``ctis_config``.

Invariants enforced:
    - Single entrypoint: all runtime rates flow through
      ``get_active_rulebook()``.
    - Year selection: the rulebook with the greatest tax year not after
      the requested year applies (rates carry forward until changed).
    - Validation: a rulebook that fails ``validate_rulebook`` is never
      returned.

Failure modes:
    - ``RulebookNotFoundError`` -- no rulebook for the jurisdiction covers
      the requested year.
    - ``InvalidRulebookError`` -- the selected file fails to parse or
      validate, or two files claim the same jurisdiction and year.

Audit relevance:
    Every successful call emits a ``CTIS_CONFIG_TRACE`` log entry with the
    source file and SHA-256 checksum, tying each calculation to the exact
    rate schedule that produced it.
"""

from __future__ import annotations

from pathlib import Path

from ctis_config.loader import LoadedRulebook, load_rulebook, read_header
from ctis_config.validator import validate_rulebook
from ctis_kernel.domain.tax_rules import TaxRulebook
from ctis_kernel.exceptions import InvalidRulebookError, RulebookNotFoundError
from ctis_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default rulebook directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DEFAULT_JURISDICTION = "SL"


def get_active_rulebook(
    tax_year: int,
    jurisdiction: str = DEFAULT_JURISDICTION,
    config_dir: Path | None = None,
) -> TaxRulebook:
    """The ONLY public rulebook entrypoint.

    Args:
        tax_year: Tax year the calculation belongs to.
        jurisdiction: Jurisdiction code (default ``"SL"``).
        config_dir: Override path to the rulebook directory.
            Defaults to ctis_config/sets/.

    Raises:
        RulebookNotFoundError: If no rulebook covers the year.
        InvalidRulebookError: If the selected rulebook is invalid.
    """
    loaded = _find_rulebook(Path(config_dir or _DEFAULT_CONFIG_DIR), jurisdiction, tax_year)

    validation = validate_rulebook(loaded.rulebook)
    if not validation.is_valid:
        raise InvalidRulebookError(
            str(loaded.source),
            "validation failed:\n" + "\n".join(f"  - {e}" for e in validation.errors),
        )
    for warning in validation.warnings:
        _logger.warning(
            "rulebook_validation_warning",
            extra={"source": str(loaded.source), "warning": warning},
        )

    rulebook = loaded.rulebook
    _logger.info(
        "CTIS_CONFIG_TRACE",
        extra={
            "trace_type": "CTIS_CONFIG_TRACE",
            "jurisdiction": rulebook.jurisdiction,
            "requested_tax_year": tax_year,
            "rulebook_tax_year": rulebook.tax_year,
            "currency": rulebook.currency.code,
            "source": loaded.source.name,
            "checksum": loaded.checksum,
        },
    )
    return rulebook


def _find_rulebook(sets_dir: Path, jurisdiction: str, tax_year: int) -> LoadedRulebook:
    """Pick the latest rulebook for ``jurisdiction`` not after ``tax_year``."""
    if not sets_dir.is_dir():
        raise RulebookNotFoundError(jurisdiction, tax_year)

    candidates: dict[int, Path] = {}
    for path in sorted(sets_dir.glob("*.yaml")):
        file_jurisdiction, file_year = read_header(path)
        if file_jurisdiction != jurisdiction or file_year > tax_year:
            continue
        if file_year in candidates:
            raise InvalidRulebookError(
                str(path),
                f"duplicate rulebook for {jurisdiction}/{file_year} "
                f"(also {candidates[file_year].name})",
            )
        candidates[file_year] = path

    if not candidates:
        raise RulebookNotFoundError(jurisdiction, tax_year)

    return load_rulebook(candidates[max(candidates)])


__all__ = [
    "DEFAULT_JURISDICTION",
    "LoadedRulebook",
    "get_active_rulebook",
    "load_rulebook",
    "validate_rulebook",
]
