"""Summary engine package."""

from meterlog.summary.engine import (
    aggregate_yearly_summaries,
    compare_months,
    compute_monthly_summaries,
    compute_usage_change,
    compute_yearly_summaries,
    group_readings_by_house,
    latest_reading,
    month_key,
    percentage_change,
    sort_readings,
    summarize_houses,
)
from meterlog.summary.formatting import (
    change_trend,
    format_change,
    format_month,
    format_usage,
    is_finite_change,
)

__all__ = [
    "aggregate_yearly_summaries",
    "change_trend",
    "compare_months",
    "compute_monthly_summaries",
    "compute_usage_change",
    "compute_yearly_summaries",
    "format_change",
    "format_month",
    "format_usage",
    "group_readings_by_house",
    "is_finite_change",
    "latest_reading",
    "month_key",
    "percentage_change",
    "sort_readings",
    "summarize_houses",
]
