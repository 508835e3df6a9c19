"""
Penalty Engine - late filing penalties and late payment interest.

Shared leaf used by every tax calculator that accepts a due date and an
actual filing / payment date.

Raw optional dates are converted once into a FilingTimeliness value
(OnTime or Late) by assess_timeliness(); calculators branch on that value
rather than comparing nullable dates themselves.

Formulas (rates from the rulebook, keyed by tax type):
    late_filing_penalty   = tax_amount * late_filing_rate
    late_payment_interest = tax_amount * daily_interest_rate * days_late / 365
    total_penalty         = late_filing_penalty + late_payment_interest

Filing early is not an error: it yields OnTime and every penalty is zero.

Usage:
    from ctis_engines.penalty import calculate_penalty

    result = calculate_penalty(
        tax_amount=Money.of("5000000", "SLE"),
        tax_type=TaxType.INCOME_TAX,
        due_date=date(2025, 3, 31),
        actual_date=date(2025, 4, 15),
        rulebook=rulebook,
    )
    print(result.total_penalty)  # 250102.74 SLE
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from ctis_engines.tracer import traced_engine
from ctis_engines.validation import coerce_enum, reject, require_money
from ctis_kernel.domain.tax_rules import TaxRulebook, TaxType
from ctis_kernel.domain.values import Money
from ctis_kernel.logging_config import get_logger

logger = get_logger("engines.penalty")

DAYS_PER_YEAR = Decimal("365")


# ---------------------------------------------------------------------------
# Timeliness
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OnTime:
    """Filed or paid on or before the due date (or no dates supplied)."""

    days_late: int = 0

    @property
    def is_late(self) -> bool:
        return False


@dataclass(frozen=True)
class Late:
    """Filed or paid after the due date."""

    days_late: int

    def __post_init__(self) -> None:
        if self.days_late <= 0:
            raise ValueError(f"Late requires a positive day count, got {self.days_late}")

    @property
    def is_late(self) -> bool:
        return True


FilingTimeliness = OnTime | Late


def _require_date(field_name: str, value: object) -> None:
    if value is not None and not isinstance(value, date):
        raise reject(field_name, value, "must be a calendar date")


def assess_timeliness(
    due_date: date | None,
    actual_date: date | None,
) -> FilingTimeliness:
    """
    Classify a due / actual date pair.

    Returns OnTime when either date is missing or actual_date <= due_date,
    otherwise Late with the calendar-day difference.
    """
    _require_date("due_date", due_date)
    _require_date("actual_date", actual_date)
    if due_date is None or actual_date is None:
        return OnTime()
    days_late = (actual_date - due_date).days
    if days_late <= 0:
        return OnTime()
    return Late(days_late=days_late)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class PenaltyItemType(str, Enum):
    """Kind of penalty line."""

    LATE_FILING = "LateFiling"
    LATE_PAYMENT_INTEREST = "LatePaymentInterest"


@dataclass(frozen=True)
class PenaltyRequest:
    """Stand-alone penalty request for an amount already assessed."""

    tax_amount: Money
    tax_type: TaxType
    due_date: date
    actual_date: date


@dataclass(frozen=True)
class PenaltyItem:
    """One line of a penalty breakdown, with its human-readable formula."""

    penalty_type: PenaltyItemType
    description: str
    rate: Decimal
    amount: Money
    calculation: str


@dataclass(frozen=True)
class PenaltyCalculation:
    """
    Penalty outcome for one tax amount.

    total_penalty always equals the sum of the breakdown amounts.
    """

    tax_type: TaxType
    tax_amount: Money
    days_late: int
    late_filing_penalty: Money
    late_payment_interest: Money
    total_penalty: Money
    breakdown: tuple[PenaltyItem, ...] = ()

    @property
    def is_late(self) -> bool:
        return self.days_late > 0

    @property
    def total_amount_due(self) -> Money:
        return self.tax_amount + self.total_penalty


def _percent(rate: Decimal) -> str:
    return f"{(rate * 100).normalize():f}%"


def no_penalty(tax_type: TaxType, tax_amount: Money) -> PenaltyCalculation:
    """Penalty result for a return filed and paid on time."""
    zero = Money.zero(tax_amount.currency)
    return PenaltyCalculation(
        tax_type=tax_type,
        tax_amount=tax_amount,
        days_late=0,
        late_filing_penalty=zero,
        late_payment_interest=zero,
        total_penalty=zero,
    )


def penalty_for(
    timeliness: FilingTimeliness,
    tax_amount: Money,
    tax_type: TaxType,
    rulebook: TaxRulebook,
) -> PenaltyCalculation:
    """
    Compute the penalty for an already-classified filing.

    Raises:
        InvalidInputError: If tax_amount is negative.
    """
    require_money("tax_amount", tax_amount, rulebook.currency)

    if isinstance(timeliness, OnTime):
        return no_penalty(tax_type, tax_amount)

    rates = rulebook.penalty_rates_for(tax_type)
    days = timeliness.days_late

    late_filing = (tax_amount * rates.late_filing_rate).round()
    interest = (
        tax_amount * rates.daily_interest_rate * Decimal(days) / DAYS_PER_YEAR
    ).round()

    breakdown = (
        PenaltyItem(
            penalty_type=PenaltyItemType.LATE_FILING,
            description=(
                f"Late filing penalty ({_percent(rates.late_filing_rate)} of tax due)"
            ),
            rate=rates.late_filing_rate,
            amount=late_filing,
            calculation=(
                f"{tax_amount.amount} x {_percent(rates.late_filing_rate)} = "
                f"{late_filing.amount}"
            ),
        ),
        PenaltyItem(
            penalty_type=PenaltyItemType.LATE_PAYMENT_INTEREST,
            description=f"Late payment interest for {days} day(s)",
            rate=rates.daily_interest_rate,
            amount=interest,
            calculation=(
                f"{tax_amount.amount} x {_percent(rates.daily_interest_rate)} x "
                f"{days} / {DAYS_PER_YEAR} = {interest.amount}"
            ),
        ),
    )

    result = PenaltyCalculation(
        tax_type=tax_type,
        tax_amount=tax_amount,
        days_late=days,
        late_filing_penalty=late_filing,
        late_payment_interest=interest,
        total_penalty=late_filing + interest,
        breakdown=breakdown,
    )

    logger.info(
        "penalty_assessed",
        extra={
            "tax_type": tax_type.value,
            "days_late": days,
            "tax_amount": str(tax_amount.amount),
            "total_penalty": str(result.total_penalty.amount),
        },
    )
    return result


@traced_engine(
    "penalty",
    "1.0",
    fingerprint_fields=("tax_amount", "tax_type", "due_date", "actual_date"),
)
def calculate_penalty(
    tax_amount: Money,
    tax_type: TaxType,
    due_date: date,
    actual_date: date,
    rulebook: TaxRulebook,
) -> PenaltyCalculation:
    """
    Compute late filing penalty and late payment interest.

    ``actual_date`` on or before ``due_date`` yields a zero penalty.

    Raises:
        InvalidInputError: If tax_amount is negative or a date is missing.
    """
    if due_date is None:
        raise reject("due_date", None, "is required")
    if actual_date is None:
        raise reject("actual_date", None, "is required")
    tax_type = coerce_enum("tax_type", TaxType, tax_type)
    timeliness = assess_timeliness(due_date, actual_date)
    return penalty_for(timeliness, tax_amount, tax_type, rulebook)
