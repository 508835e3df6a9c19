"""
Typed Exception Hierarchy for the CTIS tax engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Tax calculations are surfaced to a taxpayer-facing layer that must tell the
user WHICH field to correct. Generic exceptions like ValueError force callers
to parse error messages, which is fragile and untestable.

Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (field, value, stage, ...)

Example:
    try:
        result = calculate_income_tax(request, rulebook)
    except InvalidInputError as e:
        api_response(code=e.code, field=e.field, reason=e.reason)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from TaxEngineError:

    TaxEngineError (base)
    |
    +-- CalculationError
    |   +-- InvalidInputError
    |   +-- InvalidBracketTableError
    |   +-- UnknownCategoryError
    |   +-- UnknownWithholdingTypeError
    |   +-- AggregationFailureError
    |
    +-- ConfigurationError
        +-- RulebookNotFoundError
        +-- InvalidRulebookError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Calculation     | INVALID_INPUT               | Negative or missing required value
                | INVALID_BRACKET_TABLE       | Brackets unsorted / gapped / unbounded mid-table
                | UNKNOWN_CATEGORY            | Excise product category not in rate table
                | UNKNOWN_WITHHOLDING_TYPE    | Payment type not in withholding table
                | AGGREGATION_FAILURE         | A sub-calculation of an assessment failed
----------------|-----------------------------|-----------------------------------------
Configuration   | RULEBOOK_NOT_FOUND          | No rulebook covers jurisdiction / tax year
                | INVALID_RULEBOOK            | Rulebook file fails validation

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CORRECTABLE INPUT (surface to the user, no retry):

    except InvalidInputError as e:
        highlight_field(e.field, e.reason)

2. ASSESSMENT FAILURES (the stage tells which slice to fix):

    except AggregationFailureError as e:
        show_error(stage=e.stage, code=e.cause_code)

3. CONFIGURATION ERRORS (operator problem, never user-caused):

    except ConfigurationError as e:
        page_operator(e.code)

Retrying is never meaningful: every calculation is deterministic given the
same input.
===============================================================================
"""


class TaxEngineError(Exception):
    """
    Base exception for all tax engine errors.

    All subclasses must have a `code` class attribute
    for machine-readable error identification.
    """

    code: str = "TAX_ENGINE_ERROR"


# Calculation exceptions


class CalculationError(TaxEngineError):
    """Base exception for errors raised by the calculators."""

    code: str = "CALCULATION_ERROR"


class InvalidInputError(CalculationError):
    """A required value is missing, negative or otherwise unusable."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid input for '{field}' ({value!r}): {reason}")


class InvalidBracketTableError(CalculationError):
    """
    A progressive rate table is malformed.

    This is a configuration defect, not something the taxpayer caused.
    """

    code: str = "INVALID_BRACKET_TABLE"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid bracket table: {reason}")


class UnknownCategoryError(CalculationError):
    """Excise product category has no rate in the active rulebook."""

    code: str = "UNKNOWN_CATEGORY"

    def __init__(self, category: str):
        self.category = category
        super().__init__(f"Unknown product category: '{category}'")


class UnknownWithholdingTypeError(CalculationError):
    """Withholding payment type has no rate in the active rulebook."""

    code: str = "UNKNOWN_WITHHOLDING_TYPE"

    def __init__(self, withholding_type: str):
        self.withholding_type = withholding_type
        super().__init__(f"Unknown withholding tax type: '{withholding_type}'")


class AggregationFailureError(CalculationError):
    """
    A sub-calculation of a comprehensive assessment failed.

    Carries the stage that failed and the code of the underlying error;
    the original exception is chained as __cause__.
    """

    code: str = "AGGREGATION_FAILURE"

    def __init__(self, stage: str, cause: TaxEngineError):
        self.stage = stage
        self.cause_code = cause.code
        super().__init__(f"Assessment failed in stage '{stage}': {cause}")


# Configuration exceptions


class ConfigurationError(TaxEngineError):
    """Base exception for rulebook configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class RulebookNotFoundError(ConfigurationError):
    """No rulebook applies to the requested jurisdiction and tax year."""

    code: str = "RULEBOOK_NOT_FOUND"

    def __init__(self, jurisdiction: str, tax_year: int):
        self.jurisdiction = jurisdiction
        self.tax_year = tax_year
        super().__init__(
            f"No rulebook found for jurisdiction {jurisdiction} "
            f"and tax year {tax_year}"
        )


class InvalidRulebookError(ConfigurationError):
    """A rulebook file failed to parse or validate."""

    code: str = "INVALID_RULEBOOK"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid rulebook {source}: {reason}")
