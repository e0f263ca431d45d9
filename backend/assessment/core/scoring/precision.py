"""
Deterministic decimal rounding for threshold comparisons.

Binary floating point cannot represent most decimal fractions exactly, so a
percentage that is mathematically 65.0 can arrive as 64.99999999999999 after
accumulation and fail a ``>= 65.0`` pass mark. Values are converted through
their shortest ``repr`` into ``Decimal`` and rounded half-up there, which is
what a person checking the score by hand would do.

Apply these helpers only where a value is compared against a threshold.
Intermediate accumulation stays in plain floats so rounding error does not
compound through the indicator -> competency -> overall roll-up.

Example:
    >>> round4(0.49995)
    0.5
    >>> round4(0.49994)
    0.4999
    >>> meets_threshold(0.65000000001, 0.65)
    True
"""
from decimal import ROUND_HALF_UP, Decimal

# Decimal places used for threshold comparisons
THRESHOLD_SCALE = 4


def round_half_up(value: float, places: int) -> float:
    """
    Round ``value`` to ``places`` decimals, half-up, on its decimal repr.

    Args:
        value: Value to round
        places: Number of decimal places (>= 0)

    Returns:
        The rounded value as a float
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


def round4(value: float) -> float:
    """Round to 4 decimal places using half-up on the exact decimal repr."""
    return round_half_up(value, THRESHOLD_SCALE)


def meets_threshold(value: float, threshold: float) -> bool:
    """Return True if ``value`` reaches ``threshold`` at 4-decimal precision."""
    return round4(value) >= round4(threshold)
