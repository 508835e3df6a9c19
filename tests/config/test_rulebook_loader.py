"""
Tests for rulebook loading, validation and year selection.

Covers:
- Loader (parse_rulebook / load_rulebook) -- YAML to TaxRulebook
- Validator (validate_rulebook) -- whole-rulebook checks
- Entry point (get_active_rulebook) -- year selection, errors, trace log
"""

from __future__ import annotations

import dataclasses
import shutil
from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from ctis_config import get_active_rulebook
from ctis_config.loader import compute_checksum, load_rulebook, load_yaml_file, parse_rulebook
from ctis_config.validator import validate_rulebook
from ctis_kernel.domain.tax_rules import (
    ComplianceRubric,
    ProductCategory,
    TaxType,
    WithholdingTaxType,
)
from ctis_kernel.domain.values import Money
from ctis_kernel.exceptions import InvalidRulebookError, RulebookNotFoundError

SHIPPED = Path(__file__).resolve().parents[2] / "ctis_config" / "sets" / "sierra_leone_2025.yaml"


def _shipped_data() -> dict:
    return load_yaml_file(SHIPPED)


def _write(directory: Path, name: str, data: dict) -> Path:
    path = directory / name
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


# =========================================================================
# 1. Loader
# =========================================================================


class TestParseRulebook:

    def test_shipped_rulebook(self):
        rulebook = parse_rulebook(_shipped_data())

        assert rulebook.jurisdiction == "SL"
        assert rulebook.tax_year == 2025
        assert rulebook.currency.code == "SLE"
        assert rulebook.gst_rate == Decimal("0.15")
        assert rulebook.corporate_rate == Decimal("0.30")
        assert rulebook.gst_registration_threshold == Money.of("500000000", "SLE")
        assert len(rulebook.individual_brackets) == 4
        assert rulebook.individual_brackets[-1].is_unbounded
        assert rulebook.excise_rates[ProductCategory.FUEL].unit_of_measure == "litre"
        assert rulebook.withholding_rates[WithholdingTaxType.COMMISSIONS] == Decimal("0.05")
        assert rulebook.penalty_rates[TaxType.GST].late_filing_rate == Decimal("0.10")

    def test_unquoted_numbers_parse_exactly(self):
        data = _shipped_data()
        data["gst"]["rate"] = 0.15
        assert parse_rulebook(data).gst_rate == Decimal("0.15")

    def test_missing_compliance_uses_defaults(self):
        data = _shipped_data()
        del data["compliance"]
        assert parse_rulebook(data).compliance == ComplianceRubric()

    def test_missing_non_resident_table(self):
        data = _shipped_data()
        del data["withholding"]["non_resident"]
        assert len(parse_rulebook(data).non_resident_withholding_rates) == 0


class TestLoadRulebook:

    def test_checksum_is_stable(self):
        first = load_rulebook(SHIPPED)
        second = load_rulebook(SHIPPED)
        assert first.checksum == second.checksum
        assert first.checksum == compute_checksum(_shipped_data())

    def test_missing_key(self, tmp_path):
        data = _shipped_data()
        del data["gst"]
        with pytest.raises(InvalidRulebookError, match="missing key"):
            load_rulebook(_write(tmp_path, "bad.yaml", data))

    def test_unknown_excise_category(self, tmp_path):
        data = _shipped_data()
        data["excise"]["Sugar"] = {"specific_rate": "1", "ad_valorem_rate": "0"}
        with pytest.raises(InvalidRulebookError):
            load_rulebook(_write(tmp_path, "bad.yaml", data))

    def test_gapped_brackets(self, tmp_path):
        data = _shipped_data()
        data["individual_brackets"][1]["lower"] = "7000000"
        with pytest.raises(InvalidRulebookError, match="bracket"):
            load_rulebook(_write(tmp_path, "bad.yaml", data))

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("rulebook: [unclosed", encoding="utf-8")
        with pytest.raises(InvalidRulebookError, match="malformed"):
            load_rulebook(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_rulebook(tmp_path / "absent.yaml")


# =========================================================================
# 2. Validator
# =========================================================================


class TestValidateRulebook:

    def test_shipped_rulebook_is_valid(self, rulebook):
        result = validate_rulebook(rulebook)
        assert result.is_valid
        assert result.errors == []

    def test_rate_above_one(self, rulebook):
        broken = dataclasses.replace(rulebook, gst_rate=Decimal("15"))
        result = validate_rulebook(broken)
        assert not result.is_valid
        assert any("gst_rate" in e for e in result.errors)

    def test_missing_penalty_rates(self, rulebook):
        rates = {k: v for k, v in rulebook.penalty_rates.items() if k is not TaxType.GST}
        result = validate_rulebook(dataclasses.replace(rulebook, penalty_rates=rates))
        assert any("GST" in e for e in result.errors)

    def test_grade_boundaries_must_descend(self, rulebook):
        rubric = ComplianceRubric(grade_boundaries=(("A", 60), ("B", 75)))
        result = validate_rulebook(dataclasses.replace(rulebook, compliance=rubric))
        assert any("descending" in e for e in result.errors)

    def test_low_non_resident_rate_warns(self, rulebook):
        rates = dict(rulebook.non_resident_withholding_rates)
        rates[WithholdingTaxType.DIVIDENDS] = Decimal("0.05")
        result = validate_rulebook(
            dataclasses.replace(rulebook, non_resident_withholding_rates=rates)
        )
        assert result.is_valid
        assert any("Dividends" in w for w in result.warnings)


# =========================================================================
# 3. get_active_rulebook
# =========================================================================


class TestGetActiveRulebook:

    def test_default_directory(self):
        assert get_active_rulebook(2025).tax_year == 2025

    def test_later_year_carries_forward(self):
        assert get_active_rulebook(2030).tax_year == 2025

    def test_earlier_year_not_found(self):
        with pytest.raises(RulebookNotFoundError) as exc_info:
            get_active_rulebook(2020)
        assert exc_info.value.tax_year == 2020
        assert exc_info.value.code == "RULEBOOK_NOT_FOUND"

    def test_unknown_jurisdiction(self):
        with pytest.raises(RulebookNotFoundError):
            get_active_rulebook(2025, jurisdiction="GH")

    def test_latest_applicable_year_selected(self, tmp_path):
        shutil.copy(SHIPPED, tmp_path / "sl_2025.yaml")
        data = _shipped_data()
        data["rulebook"]["tax_year"] = 2027
        data["gst"]["rate"] = "0.16"
        _write(tmp_path, "sl_2027.yaml", data)

        assert get_active_rulebook(2026, config_dir=tmp_path).gst_rate == Decimal("0.15")
        assert get_active_rulebook(2027, config_dir=tmp_path).gst_rate == Decimal("0.16")
        assert get_active_rulebook(2028, config_dir=tmp_path).tax_year == 2027

    def test_duplicate_year_rejected(self, tmp_path):
        shutil.copy(SHIPPED, tmp_path / "a.yaml")
        shutil.copy(SHIPPED, tmp_path / "b.yaml")
        with pytest.raises(InvalidRulebookError, match="duplicate"):
            get_active_rulebook(2025, config_dir=tmp_path)

    def test_invalid_rulebook_never_returned(self, tmp_path):
        data = _shipped_data()
        data["payroll"]["skills_levy_monthly_threshold"] = "0"
        _write(tmp_path, "sl_2025.yaml", data)
        with pytest.raises(InvalidRulebookError, match="validation failed"):
            get_active_rulebook(2025, config_dir=tmp_path)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(RulebookNotFoundError):
            get_active_rulebook(2025, config_dir=tmp_path / "nowhere")

    def test_config_trace_logged(self, captured_logs):
        get_active_rulebook(2025)
        traces = [r for r in captured_logs() if r["message"] == "CTIS_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["rulebook_tax_year"] == 2025
        assert traces[0]["checksum"] == load_rulebook(SHIPPED).checksum
