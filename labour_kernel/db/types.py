"""
Module: labour_kernel.db.types
Responsibility: Decimal coercion and rounding helpers for currency, hour
    and percentage values.  Centralizes precision so that every model,
    engine and service rounds the same way.
Architecture position: Kernel > DB.  May be imported by every layer.
    MUST NOT import from domain/, modules or services.

Invariants enforced:
    - No floats for currency, hours or rates.  All values are Decimal.
    - Currency and hour values are rounded to 2 fractional digits at the
      point of persistence (round_money), never at
      intermediate computation steps.
    - Margin fractions are stored unrounded and exact (DecimalString
      columns).
    - Efficiency percentages on task budgets are whole numbers
      (round_percent with 0 places).

Failure modes:
    - decimal.InvalidOperation if a non-numeric value is coerced.
"""

from decimal import ROUND_HALF_UP, Decimal

PERSISTED_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """
    Coerce a numeric input to Decimal.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1") rather than
    its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = PERSISTED_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a currency value to the persisted precision.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "1" if decimal_places == 0 else "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def round_percent(value: Decimal, decimal_places: int = 0) -> Decimal:
    """Round a percentage (efficiency, variance %) to ``decimal_places``."""
    return round_money(value, decimal_places=decimal_places)
