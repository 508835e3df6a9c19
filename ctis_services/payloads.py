"""
ctis_services.payloads -- JSON payload <-> typed request/result conversion.

Responsibility:
    The presentation layer talks to the tax engine in camelCase JSON
    (``grossIncome``, ``dueDate``, ``withholdingTaxType``...).  This module
    coerces such payload dicts into the frozen engine requests and
    serialises engine results back into JSON-safe camelCase dicts.

Invariants enforced:
    - Decimal safety: ``_money`` and ``_decimal`` route every number
      through ``Decimal(str(value))``; no float reaches an engine.
    - Every key is accepted in camelCase or snake_case.
    - Monetary amounts serialise as ``{"amount": "<decimal string>",
      "currency": "<ISO code>"}`` so no precision is lost in JSON.

Failure modes:
    - InvalidInputError when a required key is missing or a value cannot
      be parsed; the error names the payload field.
"""

from __future__ import annotations

import dataclasses
import inspect
from collections.abc import Callable, Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, TypeVar

from ctis_engines.assessment import ComprehensiveAssessmentRequest
from ctis_engines.excise import ExciseDutyRequest, ExciseItem
from ctis_engines.gst import GstRequest
from ctis_engines.income_tax import Allowance, IncomeTaxRequest
from ctis_engines.payroll import Employee, PayrollTaxRequest
from ctis_engines.penalty import PenaltyRequest
from ctis_engines.withholding import WithholdingTaxRequest
from ctis_kernel.domain.tax_rules import TaxpayerCategory
from ctis_kernel.domain.values import Currency, Money
from ctis_kernel.exceptions import AggregationFailureError, InvalidInputError, TaxEngineError

_MISSING = object()

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _snake(name: str) -> str:
    return "".join("_" + c.lower() if c.isupper() else c for c in name).lstrip("_")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _get(payload: Mapping[str, Any], key: str, default: Any = _MISSING) -> Any:
    """Read ``key`` (camelCase) or its snake_case spelling from a payload."""
    if key in payload:
        return payload[key]
    snake = _snake(key)
    if snake in payload:
        return payload[snake]
    if default is _MISSING:
        raise InvalidInputError(key, None, "is required")
    return default


def _decimal(value: Any, field: str) -> Decimal:
    """Coerce to Decimal (never float)."""
    if value is None or isinstance(value, bool):
        raise InvalidInputError(field, value, "must be a number")
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation:
            raise InvalidInputError(field, value, "must be a number") from None
    if not value.is_finite():
        raise InvalidInputError(field, str(value), "must be a finite number")
    return value


def _money(value: Any, currency: Currency, field: str) -> Money | None:
    """Coerce a number, numeric string or ``{amount, currency}`` dict to Money."""
    if value is None:
        return None
    if isinstance(value, Money):
        return value
    if isinstance(value, Mapping) and "amount" in value:
        code = value.get("currency") or currency.code
        try:
            return Money(amount=_decimal(value["amount"], field), currency=code)
        except ValueError as e:
            raise InvalidInputError(field, value, str(e)) from None
    return Money(amount=_decimal(value, field), currency=currency)


def _required_money(payload: Mapping[str, Any], key: str, currency: Currency) -> Money:
    return _money(_get(payload, key), currency, key)


def _optional_money(payload: Mapping[str, Any], key: str, currency: Currency) -> Money | None:
    return _money(_get(payload, key, None), currency, key)


def _date(value: Any, field: str) -> date | None:
    """Accept ``date``, ISO date or ISO datetime strings; time of day is ignored."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            raise InvalidInputError(field, value, "must be an ISO date") from None
    raise InvalidInputError(field, value, "must be an ISO date")


def _bool(payload: Mapping[str, Any], key: str, default: bool = False) -> bool:
    value = _get(payload, key, None)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _list(payload: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    value = _get(payload, key, None) or []
    if not isinstance(value, (list, tuple)):
        raise InvalidInputError(key, value, "must be a list")
    return list(value)


def tax_year_of(payload: Mapping[str, Any], default: int) -> int:
    value = _get(payload, "taxYear", None)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInputError("taxYear", value, "must be a year") from None


# ---------------------------------------------------------------------------
# Payload -> request
# ---------------------------------------------------------------------------


def income_tax_request(
    payload: Mapping[str, Any], currency: Currency, default_year: int
) -> IncomeTaxRequest:
    allowances = tuple(
        Allowance(
            allowance_type=str(_get(item, "type", "") or _get(item, "allowanceType", "")),
            amount=_required_money(item, "amount", currency),
            description=_get(item, "description", None),
        )
        for item in _list(payload, "allowances")
    )
    return IncomeTaxRequest(
        taxpayer_category=_get(payload, "taxpayerCategory", TaxpayerCategory.INDIVIDUAL),
        tax_year=tax_year_of(payload, default_year),
        gross_income=_required_money(payload, "grossIncome", currency),
        deductions=_optional_money(payload, "deductions", currency),
        allowances=allowances,
        due_date=_date(_get(payload, "dueDate", None), "dueDate"),
        payment_date=_date(_get(payload, "paymentDate", None), "paymentDate"),
    )


def gst_request(
    payload: Mapping[str, Any], currency: Currency, default_year: int
) -> GstRequest:
    return GstRequest(
        tax_year=tax_year_of(payload, default_year),
        gross_sales=_required_money(payload, "grossSales", currency),
        taxable_supplies=_required_money(payload, "taxableSupplies", currency),
        input_tax=_required_money(payload, "inputTax", currency),
        exempt_supplies=_optional_money(payload, "exemptSupplies", currency),
        zero_rated_supplies=_optional_money(payload, "zeroRatedSupplies", currency),
        is_export=_bool(payload, "isExport"),
        is_import=_bool(payload, "isImport"),
        import_value=_optional_money(payload, "importValue", currency),
        due_date=_date(_get(payload, "dueDate", None), "dueDate"),
        filing_date=_date(_get(payload, "filingDate", None), "filingDate"),
    )


def payroll_tax_request(
    payload: Mapping[str, Any], currency: Currency, default_year: int
) -> PayrollTaxRequest:
    employees = tuple(
        Employee(
            employee_id=str(_get(item, "employeeId", "")),
            employee_name=str(_get(item, "employeeName", "")),
            annual_salary=_required_money(item, "annualSalary", currency),
        )
        for item in _list(payload, "employees")
    )
    return PayrollTaxRequest(
        tax_year=tax_year_of(payload, default_year),
        employees=employees,
        total_payroll=_optional_money(payload, "totalPayroll", currency),
        due_date=_date(_get(payload, "dueDate", None), "dueDate"),
        remittance_date=_date(_get(payload, "remittanceDate", None), "remittanceDate"),
    )


def excise_duty_request(
    payload: Mapping[str, Any], currency: Currency, default_year: int
) -> ExciseDutyRequest:
    items = tuple(
        ExciseItem(
            product_code=str(_get(item, "productCode", "")),
            product_name=str(_get(item, "productName", "")),
            quantity=_decimal(_get(item, "quantity"), "quantity"),
            value=_required_money(item, "value", currency),
        )
        for item in _list(payload, "items")
    )
    return ExciseDutyRequest(
        tax_year=tax_year_of(payload, default_year),
        product_category=_get(payload, "productCategory"),
        items=items,
        due_date=_date(_get(payload, "dueDate", None), "dueDate"),
        payment_date=_date(_get(payload, "paymentDate", None), "paymentDate"),
    )


def withholding_tax_request(
    payload: Mapping[str, Any], currency: Currency
) -> WithholdingTaxRequest:
    return WithholdingTaxRequest(
        amount=_required_money(payload, "amount", currency),
        withholding_tax_type=_get(payload, "withholdingTaxType"),
        is_resident=_bool(payload, "isResident", default=True),
    )


def penalty_request(payload: Mapping[str, Any], currency: Currency) -> PenaltyRequest:
    return PenaltyRequest(
        tax_amount=_required_money(payload, "taxAmount", currency),
        tax_type=_get(payload, "taxType"),
        due_date=_date(_get(payload, "dueDate"), "dueDate"),
        actual_date=_date(_get(payload, "actualDate"), "actualDate"),
    )


def _build_stage(stage: str, build: Callable[[], T]) -> T:
    """Build one assessment slice; payload errors name the failing stage."""
    try:
        return build()
    except TaxEngineError as exc:
        raise AggregationFailureError(stage, exc) from exc


def assessment_request(
    payload: Mapping[str, Any], currency: Currency, default_year: int
) -> ComprehensiveAssessmentRequest:
    """
    Build an assessment request; each slice inherits the top-level tax year.

    Raises:
        InvalidInputError: Top-level field (taxYear, taxpayerId) is bad.
        AggregationFailureError: A slice payload is malformed; ``stage``
            matches the stage names used by ComprehensiveAssessor.
    """
    tax_year = tax_year_of(payload, default_year)
    taxpayer_id = str(_get(payload, "taxpayerId"))

    def slice_of(key: str) -> Mapping[str, Any] | None:
        value = _get(payload, key, None)
        if value is not None and not isinstance(value, Mapping):
            raise InvalidInputError(key, value, "must be an object")
        return value

    def build(stage: str, key: str, make: Callable[[Mapping[str, Any]], T]) -> T | None:
        def run() -> T | None:
            value = slice_of(key)
            return make(value) if value else None

        return _build_stage(stage, run)

    excise_items = _build_stage("excise", lambda: _list(payload, "excise"))

    return ComprehensiveAssessmentRequest(
        taxpayer_id=taxpayer_id,
        tax_year=tax_year,
        income_tax=build(
            "income_tax", "incomeTax",
            lambda p: income_tax_request(p, currency, tax_year),
        ),
        gst=build("gst", "gst", lambda p: gst_request(p, currency, tax_year)),
        payroll=build(
            "payroll", "payroll",
            lambda p: payroll_tax_request(p, currency, tax_year),
        ),
        excise=tuple(
            _build_stage(
                f"excise[{index}]",
                lambda item=item: excise_duty_request(item, currency, tax_year),
            )
            for index, item in enumerate(excise_items)
        ),
        withholding=build(
            "withholding", "withholding",
            lambda p: withholding_tax_request(p, currency),
        ),
        gst_registered=_bool(payload, "gstRegistered"),
    )



# ---------------------------------------------------------------------------
# Result -> payload
# ---------------------------------------------------------------------------


def _properties(cls: type) -> list[str]:
    return [
        name
        for name, member in inspect.getmembers(cls, lambda m: isinstance(m, property))
        if not name.startswith("_")
    ]


def to_payload(value: Any) -> Any:
    """
    Serialise an engine result into JSON-safe camelCase structures.

    Dataclasses contribute their fields and their public properties
    (``totalPenalty``, ``totalAmountDue``...).  Money becomes
    ``{"amount": str, "currency": code}``; Decimal becomes a string.
    """
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, Money):
        return {"amount": str(value.amount), "currency": value.currency.code}
    if isinstance(value, Currency):
        return value.code
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        out: dict[str, Any] = {}
        for f in dataclasses.fields(value):
            out[_camel(f.name)] = to_payload(getattr(value, f.name))
        for name in _properties(type(value)):
            out.setdefault(_camel(name), to_payload(getattr(value, name)))
        return out
    if isinstance(value, Mapping):
        return {str(to_payload(k)): to_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_payload(v) for v in value]
    return str(value)
