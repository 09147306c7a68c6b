"""Numeric-stability helpers shared by every rate and ratio computation."""

from __future__ import annotations

import math

# Smallest divisor allowed anywhere a rate is computed
DIVISOR_FLOOR = 1e-9


def finite_or_zero(value: float) -> float:
    """Return ``value`` as a float, or 0.0 if it is NaN or infinite."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isfinite(value):
        return value
    return 0.0


def safe_div(numerator: float, denominator: float, floor: float = DIVISOR_FLOOR) -> float:
    """Divide with the denominator floored to ``floor``.

    Non-finite inputs or results collapse to 0.0 so nothing downstream
    ever sees NaN or infinity.
    """
    denominator = finite_or_zero(denominator)
    if denominator < floor:
        denominator = floor
    return finite_or_zero(finite_or_zero(numerator) / denominator)


def clamp(value: float, low: float, high: float) -> float:
    """Clamp ``value`` into ``[low, high]``; non-finite values become ``low``."""
    if not math.isfinite(value):
        return low
    return max(low, min(high, value))
