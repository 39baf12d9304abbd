"""Field coercion shared by the market data adapters."""

import math
from datetime import date
from typing import Any, Optional


def to_float(value: Any) -> Optional[float]:
    """Numeric field as float; None for missing, boolean, non-numeric or non-finite values."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def parse_date(value: Any) -> Optional[date]:
    """Leading ``YYYY-MM-DD`` of a date or timestamp string."""
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None
