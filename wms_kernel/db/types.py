"""
Module: wms_kernel.db.types
Responsibility: Precision constants and rounding helpers for quantity and
    weight columns.  Centralizes precision so that every model, engine and
    service quantizes identically.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and wms_engines.  MUST NOT import from those layers.

Invariants enforced:
    - QUANTITY_DECIMAL_PLACES / WEIGHT_DECIMAL_PLACES match the Numeric(38, 9)
      storage scale, so a quantized value round-trips through the database
      unchanged.
    - round_quantity() / round_weight() are the only sanctioned rounding
      functions for stock values.
    - No floats.  to_decimal() rejects float input.

Failure modes:
    - TypeError when a float is passed to to_decimal().
    - decimal.InvalidOperation on a non-numeric string.
"""

from decimal import ROUND_HALF_UP, Decimal

QUANTITY_DECIMAL_PLACES = 9
WEIGHT_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP

# Weight results within this distance below zero are rounding noise.
DEFAULT_WEIGHT_TOLERANCE = Decimal("0.05")
# Weight results below this floor are rejected unless within tolerance.
DEFAULT_NEGATIVE_WEIGHT_FLOOR = Decimal("-0.01")


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce an int/str/Decimal into a Decimal.

    Raises:
        TypeError: on float input (binary floats never enter the ledger).
    """
    if isinstance(value, float):
        raise TypeError(f"float values are not accepted for stock amounts: {value!r}")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _quantize(value: Decimal, decimal_places: int, rounding: str) -> Decimal:
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def round_quantity(
    value: Decimal,
    decimal_places: int = QUANTITY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Quantize a stock quantity to storage precision."""
    return _quantize(value, decimal_places, rounding)


def round_weight(
    value: Decimal,
    decimal_places: int = WEIGHT_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Quantize a weight to storage precision.

    Proportional weight splits produce repeating decimals; every split is
    passed through here before it reaches a lot so stored and in-memory
    values agree.
    """
    return _quantize(value, decimal_places, rounding)
