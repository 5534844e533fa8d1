"""Display formatting helpers that tolerate missing or invalid values"""

import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

PLACEHOLDER = "—"


def to_number(value: Any, fallback: float = 0) -> float:
    """
    Convert a store value (int, float, Decimal, numeric string) to float

    Args:
        value: Raw value from the store
        fallback: Returned for None, NaN, infinity or unparseable input

    Returns:
        float: Converted value
    """
    if value is None or isinstance(value, bool):
        return fallback
    try:
        if isinstance(value, Decimal):
            number = float(value)
        else:
            number = float(Decimal(str(value)))
    except (InvalidOperation, ValueError, TypeError):
        return fallback
    if math.isnan(number) or math.isinf(number):
        return fallback
    return number


def calculate_percent(numerator: float, denominator: float) -> int:
    """Whole-number percentage clamped to [0, 100]; 0 when the denominator is 0"""
    if not denominator or math.isnan(numerator) or math.isnan(denominator):
        return 0
    result = numerator / denominator * 100
    if math.isnan(result):
        return 0
    # round half up; Python's round() would send 12.5 to 12
    return int(min(100, max(0, math.floor(result + 0.5))))


def format_percent(value: Any, decimals: int = 0, placeholder: str = PLACEHOLDER) -> str:
    number = to_number(value, fallback=math.nan)
    if math.isnan(number):
        return placeholder
    return f"{number:.{decimals}f}%"


def format_date(value: Optional[Any], placeholder: str = PLACEHOLDER) -> str:
    """ISO calendar date (YYYY-MM-DD) for datetimes, dates and ISO strings"""
    if not value:
        return placeholder
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return datetime.fromisoformat(str(value)).date().isoformat()
    except ValueError:
        return placeholder
