"""
CTIS Kernel - shared foundation for the tax calculation engine.

Provides:
- Money / Currency value objects with explicit, currency-derived rounding
- Tax rule types (brackets, rate tables, rulebooks) as immutable values
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging
"""

__version__ = "0.1.0"
