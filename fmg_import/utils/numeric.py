"""
Numeric helpers matching FMG's numberUtils.

FMG rounds with Math.round (half rounds up), so Python's round() cannot be
used where values have to match the browser output exactly.
"""

import math
from typing import Any, Optional


def rn(value: float, decimals: int = 0) -> float:
    """
    Round a number the way FMG's rn() does.

    Args:
        value: Number to round
        decimals: Number of decimal places to keep

    Returns:
        Rounded value
    """
    factor = 10**decimals
    return math.floor(value * factor + 0.5) / factor


def minmax(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return min(max(value, low), high)


def normalize(value: float, low: float, high: float) -> float:
    """Map value from [low, high] onto [0, 1], clamped."""
    return minmax((value - low) / (high - low), 0, 1)


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """Coerce a JSON scalar to int, returning default when it is not numeric."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def to_float(value: Any, default: float = 0.0) -> float:
    """Coerce a JSON scalar to float, returning default for anything else."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        result = float(value)
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    return result if math.isfinite(result) else default


def js_number(value: float) -> str:
    """Format a number the way JavaScript stringifies it (1.0 -> "1")."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))
