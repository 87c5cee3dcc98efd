"""Display helpers for summaries and change percentages."""

import calendar
import math
from typing import Optional

NOT_TRACKED = "N/A"
NOT_COMPARABLE = "n/a"


def is_finite_change(value: Optional[float]) -> bool:
    """True when a change percentage can be shown as a number."""
    return value is not None and math.isfinite(value)


def format_change(value: Optional[float], placeholder: str = NOT_COMPARABLE) -> str:
    """'+10.0%' / '-3.5%', or the placeholder for missing or non-finite values."""
    if not is_finite_change(value):
        return placeholder
    return f"{value:+.1f}%"


def format_usage(value: Optional[float], tracked: bool = True, decimals: int = 0) -> str:
    """Usage rounded for display; 'N/A' when the meter is not tracked."""
    if not tracked or value is None:
        return NOT_TRACKED
    return f"{value:.{decimals}f}"


def format_month(month: str) -> str:
    """'2024-03' -> 'March 2024'. Unparseable keys are returned as-is."""
    try:
        year, number = month.split("-")
        month_number = int(number)
        year_number = int(year)
    except ValueError:
        return month
    if not 1 <= month_number <= 12:
        return month
    return f"{calendar.month_name[month_number]} {year_number}"


def change_trend(value: Optional[float]) -> str:
    """'up', 'down' or 'flat' for colouring; 'unknown' when not comparable."""
    if not is_finite_change(value):
        return "unknown"
    if value > 0:
        return "up"
    if value < 0:
        return "down"
    return "flat"
