"""Cent and euro rounding for payroll amounts.

All arithmetic that feeds a reported amount goes through Decimal built from
the float's shortest repr, so the same input always produces the same cents
regardless of how the float was reached.

German payroll uses three rounding rules:
- Social insurance contributions: commercial rounding to the cent
  (0.005 rounds up).
- Solidarity surcharge and church tax: truncated to the cent.
- Taxable income (zvE) and income tax: truncated to whole euros.
"""

from decimal import Decimal, ROUND_DOWN, ROUND_FLOOR, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal]

CENT = Decimal("0.01")
EURO = Decimal("1")


def to_decimal(value: Number) -> Decimal:
    """Convert to Decimal via str() so 0.1 stays 0.1."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_cents(value: Number) -> float:
    """Round to the nearest cent, ties away from zero.

    Example: 42.125 -> 42.13, 42.124 -> 42.12
    """
    return float(to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def truncate_cents(value: Number) -> float:
    """Truncate to 2 decimal places (towards zero).

    Example: 394.66596 -> 394.66 (not 394.67)
    """
    return float(to_decimal(value).quantize(CENT, rounding=ROUND_DOWN))


def floor_euro(value: Number) -> int:
    """Round down to whole euros (zvE and income tax per § 32a EStG)."""
    return int(to_decimal(value).quantize(EURO, rounding=ROUND_FLOOR))


def sum_cents(*values: Number) -> float:
    """Exact sum of cent amounts."""
    total = sum((to_decimal(v) for v in values), Decimal("0"))
    return float(total.quantize(CENT, rounding=ROUND_HALF_UP))


def diff_cents(minuend: Number, *subtrahends: Number) -> float:
    """Exact ``minuend - sum(subtrahends)`` on cent amounts."""
    total = to_decimal(minuend) - sum((to_decimal(v) for v in subtrahends), Decimal("0"))
    return float(total.quantize(CENT, rounding=ROUND_HALF_UP))
