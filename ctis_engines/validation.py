"""Input checks shared by the calculators.

Every calculator validates its whole request before computing anything;
these helpers raise InvalidInputError naming the offending field.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import TypeVar

from ctis_kernel.domain.values import Currency, Money
from ctis_kernel.exceptions import InvalidInputError
from ctis_kernel.logging_config import get_logger

logger = get_logger("engines.validation")

E = TypeVar("E", bound=Enum)


def reject(field: str, value: object, reason: str) -> InvalidInputError:
    """Log and build an InvalidInputError for the caller to raise."""
    logger.error(
        "invalid_input",
        extra={"field": field, "value": str(value), "reason": reason},
    )
    return InvalidInputError(field, value, reason)


def require_money(
    field: str,
    value: Money | None,
    currency: Currency,
) -> Money:
    """Return ``value`` if it is a non-negative Money in ``currency``."""
    if value is None:
        raise reject(field, value, "is required")
    if not isinstance(value, Money):
        raise reject(field, value, "must be a Money amount")
    if value.currency != currency:
        raise reject(field, str(value), f"must be in {currency}")
    if not value.amount.is_finite():
        raise reject(field, str(value), "must be a finite number")
    if value.is_negative:
        raise reject(field, str(value), "cannot be negative")
    return value


def require_non_negative(field: str, value):
    """Check a plain Decimal quantity."""
    if value is None:
        raise reject(field, value, "is required")
    try:
        finite = Decimal(value).is_finite()
    except (InvalidOperation, TypeError, ValueError):
        raise reject(field, value, "must be a number") from None
    if not finite:
        raise reject(field, value, "must be a finite number")
    if value < 0:
        raise reject(field, value, "cannot be negative")
    return value


def require_non_empty(field: str, items: Sequence) -> None:
    if not items:
        raise reject(field, items, "must contain at least one entry")


def coerce_enum(field: str, enum_type: type[E], value: E | str) -> E:
    """Convert ``value`` to ``enum_type`` or raise InvalidInputError."""
    try:
        return enum_type(value)
    except ValueError:
        raise reject(field, value, f"is not a valid {enum_type.__name__}") from None
