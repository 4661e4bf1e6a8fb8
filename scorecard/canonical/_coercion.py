"""Shared coercion helpers for reconciliation configuration values."""

from __future__ import annotations

import math

_COERCE_ERRORS = (TypeError, ValueError)


def coerce_float(value: object, default: float) -> float:
    """Coerce ``value`` to ``float`` and return ``default`` on failure.

    Parameters
    ----------
    value : object
        Candidate value to convert to ``float``. Only ``int``, ``float``, and
        ``str`` values are conversion candidates; booleans and all other
        input types immediately use ``default``.
    default : float
        Fallback value returned when conversion is not possible.

    Returns
    -------
    float
        Converted floating-point value when conversion succeeds; otherwise
        ``default``.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return default
    try:
        return float(value)
    except _COERCE_ERRORS:
        return default


def coerce_int(value: object, default: int) -> int:
    """Coerce ``value`` to ``int`` and return ``default`` on failure.

    Floats are accepted only when they hold an integral value.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return default
    if isinstance(value, float):
        return int(value) if value.is_integer() else default
    try:
        return int(value)
    except _COERCE_ERRORS:
        return default


def coerce_optional_float(value: object) -> float | None:
    """Coerce ``value`` to ``float`` or return ``None`` when it is unset."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    parsed = coerce_float(value, math.nan)
    return None if math.isnan(parsed) else parsed
