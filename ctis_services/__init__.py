"""
ctis_services -- orchestration layer over the tax engines.

TaxCalculationService is the request/response surface consumed by the
presentation layer; ``payloads`` converts camelCase JSON to typed engine
requests and back.
"""

from ctis_services.payloads import to_payload
from ctis_services.tax_calculation_service import TaxCalculationService

__all__ = [
    "TaxCalculationService",
    "to_payload",
]
