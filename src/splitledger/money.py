"""Conversions between Decimal currency amounts and integer cents."""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation

from .exceptions import ValidationError

CENT = Decimal("0.01")

# Tolerance for user-supplied split totals, in currency units
SPLIT_EPSILON = Decimal("0.01")


def to_decimal(value: Decimal | int | str, field: str = "amount") -> Decimal:
    """Coerce a number-like value to Decimal, rejecting floats and garbage."""
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError("must be a Decimal, int or numeric string", field)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValidationError(f"not a number: {value!r}", field) from e
    if not result.is_finite():
        raise ValidationError("must be finite", field)
    return result


def to_cents(amount: Decimal | int | str, field: str = "amount") -> int:
    """
    Convert a currency amount to integer cents.

    The amount must already be representable in cents; more than two decimal
    places is a validation error rather than a silent rounding.

    Args:
        amount: Amount in currency units
        field: Field name reported on validation failure

    Returns:
        Amount in cents
    """
    value = to_decimal(amount, field)
    cents = value * 100
    if cents != cents.to_integral_value():
        raise ValidationError("must have at most 2 decimal places", field)
    return int(cents)


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a two-decimal currency amount."""
    return (Decimal(cents) / 100).quantize(CENT, rounding=ROUND_HALF_EVEN)


def round_money(amount: Decimal) -> Decimal:
    """Round to two decimals using banker's rounding."""
    return amount.quantize(CENT, rounding=ROUND_HALF_EVEN)
