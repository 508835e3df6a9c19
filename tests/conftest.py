"""
Pytest fixtures for the CTIS tax engine test suite.

Provides:
- The shipped Sierra Leone 2025 rulebook
- Money helpers in the rulebook currency
- Structured log capture
"""

import json
import logging
from decimal import Decimal
from io import StringIO

import pytest

from ctis_config import get_active_rulebook
from ctis_kernel.domain.values import Money
from ctis_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ctis logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, rulebook):
            calculate_income_tax(request, rulebook)
            logs = captured_logs()
            assert any(r["message"] == "income_tax_calculation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ctis")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Rulebook fixtures
# =============================================================================


@pytest.fixture(scope="session")
def rulebook():
    """The shipped Sierra Leone rulebook for tax year 2025."""
    return get_active_rulebook(2025)


@pytest.fixture
def sle():
    """Build SLE Money from a string or int: ``sle("25000000")``."""

    def _make(amount) -> Money:
        return Money.of(Decimal(str(amount)), "SLE")

    return _make
