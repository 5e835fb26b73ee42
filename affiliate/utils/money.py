"""
Money helpers.

All commission arithmetic is done on Decimal and rounded once per stored
amount, half-even, to the configured smallest currency unit.
"""

from decimal import ROUND_HALF_EVEN, Decimal


ZERO = Decimal("0")

# Stored rates are DECIMAL(5,4)
RATE_QUANTUM = Decimal("0.0001")


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Convert a numeric value to Decimal without going through float.

    Args:
        value: Decimal, int or numeric string

    Returns:
        Decimal value

    Raises:
        TypeError: If value is a float
    """
    if isinstance(value, float):
        raise TypeError("Float amounts are not accepted; pass Decimal or str")
    if isinstance(value, Decimal):
        return value
    return Decimal(value)


def quantize_money(value: Decimal, quantum: Decimal) -> Decimal:
    """
    Round amount half-even to the smallest currency unit.

    Args:
        value: Amount to round
        quantum: Smallest unit (e.g. Decimal("0.01") or Decimal("1"))

    Returns:
        Rounded amount

    Example:
        >>> quantize_money(Decimal("10.005"), Decimal("0.01"))
        Decimal('10.00')
        >>> quantize_money(Decimal("10.015"), Decimal("0.01"))
        Decimal('10.02')
    """
    return value.quantize(quantum, rounding=ROUND_HALF_EVEN)


def quantize_rate(value: Decimal) -> Decimal:
    """
    Round a rate half-even to the stored rate precision.

    Args:
        value: Rate fraction

    Returns:
        Rate with four decimal places
    """
    return value.quantize(RATE_QUANTUM, rounding=ROUND_HALF_EVEN)
