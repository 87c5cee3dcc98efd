"""
Summary Engine

Turns an unordered collection of cumulative meter readings into
monthly and yearly usage.

DESIGN DECISION: Everything here is a pure function over a snapshot.
No storage access, no logging, no caching. Callers recompute from the
full reading set after every change; with a few hundred readings per
house that is cheaper than keeping an incremental model correct.

The engine trusts its input. Decreasing counters produce negative
deltas and duplicate dates produce zero deltas; rejecting those is the
job of the data-entry validator.
"""

import math
from collections.abc import Iterable, Mapping
from typing import Optional, Union

from meterlog.models.reading import MonthAttribution, Reading
from meterlog.models.summary import (
    MonthComparison,
    MonthComparisonEntry,
    MonthlySummary,
    UsageChange,
    UsageFields,
    YearlySummary,
)


# =============================================================================
# HELPERS
# =============================================================================

def sort_readings(readings: Iterable[Reading]) -> list[Reading]:
    """Ascending by date. sorted() is stable, so ties keep input order."""
    return sorted(readings, key=lambda r: r.date)


def _value(reading: Reading, field: str) -> float:
    value = getattr(reading, field)
    return 0.0 if value is None else value


def _usage_between(start: Reading, end: Reading) -> dict:
    """Field-wise `end - start`, optional meters read as 0."""
    high = _value(end, "electricity_high") - _value(start, "electricity_high")
    low = _value(end, "electricity_low") - _value(start, "electricity_low")
    return {
        "electricity_high": high,
        "electricity_low": low,
        "electricity_total": high + low,
        "gas": _value(end, "gas") - _value(start, "gas"),
        "water": _value(end, "water") - _value(start, "water"),
        "electricity_low_tracked": (
            start.electricity_low is not None or end.electricity_low is not None
        ),
        "water_tracked": start.water is not None or end.water is not None,
    }


def month_key(
    previous: Reading,
    current: Reading,
    attribution: MonthAttribution = MonthAttribution.CURRENT,
) -> str:
    """Month (YYYY-MM) that the delta between two readings belongs to."""
    if attribution == MonthAttribution.PREVIOUS:
        return previous.date[0:7]
    return current.date[0:7]


# =============================================================================
# MONTHLY
# =============================================================================

def compute_monthly_summaries(
    readings: Iterable[Reading],
    attribution: MonthAttribution = MonthAttribution.CURRENT,
) -> list[MonthlySummary]:
    """
    Monthly usage for a single house, ascending by month.

    Each adjacent pair of readings is attributed to one month key.
    The FIRST pair mapped to a month creates its entry; later pairs for
    the same month are not merged in.

    Fewer than two readings yield an empty list.
    """
    ordered = sort_readings(readings)
    by_month: dict[str, MonthlySummary] = {}

    for previous, current in zip(ordered, ordered[1:]):
        key = month_key(previous, current, attribution)
        if key in by_month:
            continue
        by_month[key] = MonthlySummary(month=key, **_usage_between(previous, current))

    return sorted(by_month.values(), key=lambda m: m.month)


# =============================================================================
# YEARLY
# =============================================================================

def compute_yearly_summaries(
    readings: Iterable[Reading],
    monthly: Optional[Iterable[MonthlySummary]] = None,
    attribution: MonthAttribution = MonthAttribution.CURRENT,
) -> list[YearlySummary]:
    """
    Yearly usage for a single house, most recent year first.

    A year runs from its first reading to the first reading of the next
    year present in the data. A reading taken on January 2nd still
    mostly reflects December, so using it as the boundary avoids
    undercounting the end of the year. The last year (or a year with no
    later one) ends at the last reading overall.

    Args:
        readings: The house's readings, any order
        monthly: Precomputed monthly summaries for the breakdown.
                 Computed with `attribution` when omitted.
        attribution: Month attribution policy for the breakdown

    Fewer than two readings yield an empty list.
    """
    ordered = sort_readings(readings)
    if len(ordered) < 2:
        return []

    if monthly is None:
        monthly = compute_monthly_summaries(ordered, attribution)
    monthly = sorted(monthly, key=lambda m: m.month)

    first_of_year: dict[str, Reading] = {}
    for reading in ordered:
        first_of_year.setdefault(reading.year_key, reading)

    years = sorted(first_of_year)
    last_reading = ordered[-1]

    summaries = []
    for i, year in enumerate(years):
        start = first_of_year[year]
        if i + 1 < len(years):
            end = first_of_year[years[i + 1]]
        else:
            end = last_reading

        summaries.append(YearlySummary(
            year=year,
            monthly_breakdown=tuple(m for m in monthly if m.month.startswith(year)),
            **_usage_between(start, end),
        ))

    summaries.sort(key=lambda y: y.year, reverse=True)
    return summaries


# =============================================================================
# CROSS-HOUSE
# =============================================================================

def aggregate_yearly_summaries(
    per_house: Union[Mapping[str, list[YearlySummary]], Iterable[list[YearlySummary]]],
) -> list[YearlySummary]:
    """
    Sum yearly summaries of several houses, keyed by year.

    Monthly breakdowns are house specific and are not carried over.
    Result is most recent year first.
    """
    groups = per_house.values() if isinstance(per_house, Mapping) else per_house

    totals: dict[str, dict] = {}
    for summaries in groups:
        for summary in summaries:
            acc = totals.setdefault(summary.year, {
                "electricity_high": 0.0,
                "electricity_low": 0.0,
                "electricity_total": 0.0,
                "gas": 0.0,
                "water": 0.0,
                "electricity_low_tracked": False,
                "water_tracked": False,
            })
            acc["electricity_high"] += summary.electricity_high
            acc["electricity_low"] += summary.electricity_low
            acc["electricity_total"] += summary.electricity_total
            acc["gas"] += summary.gas
            acc["water"] += summary.water
            acc["electricity_low_tracked"] |= summary.electricity_low_tracked
            acc["water_tracked"] |= summary.water_tracked

    combined = [YearlySummary(year=year, **acc) for year, acc in totals.items()]
    combined.sort(key=lambda y: y.year, reverse=True)
    return combined


def group_readings_by_house(readings: Iterable[Reading]) -> dict[str, list[Reading]]:
    """Partition readings by house, preserving input order within a house."""
    grouped: dict[str, list[Reading]] = {}
    for reading in readings:
        grouped.setdefault(reading.house_id, []).append(reading)
    return grouped


def summarize_houses(
    readings: Iterable[Reading],
    attribution: MonthAttribution = MonthAttribution.CURRENT,
) -> tuple[dict[str, list[YearlySummary]], list[YearlySummary]]:
    """
    Yearly summaries per house plus their combined total.

    Returns:
        (yearly_by_house, combined)
    """
    yearly_by_house = {
        house_id: compute_yearly_summaries(house_readings, attribution=attribution)
        for house_id, house_readings in group_readings_by_house(readings).items()
    }
    return yearly_by_house, aggregate_yearly_summaries(yearly_by_house)


def latest_reading(readings: Iterable[Reading]) -> Optional[Reading]:
    """Reading with the greatest date (first one wins on ties)."""
    latest = None
    for reading in readings:
        if latest is None or reading.date > latest.date:
            latest = reading
    return latest


# =============================================================================
# CHANGE PERCENTAGES
# =============================================================================

def percentage_change(current: float, previous: float) -> float:
    """
    (current - previous) / previous * 100.

    A zero previous value follows IEEE-754 division: +/-inf when the
    values differ, nan when both are zero. Never raises.
    """
    diff = current - previous
    if previous == 0:
        if diff == 0:
            return math.nan
        return math.copysign(math.inf, diff)
    return diff / previous * 100


def compute_usage_change(current: UsageFields, previous: UsageFields) -> UsageChange:
    """
    Change of every field of `current` versus `previous`.

    Optional meters are omitted (None) unless both sides track them.
    """
    low = None
    if current.electricity_low_tracked and previous.electricity_low_tracked:
        low = percentage_change(current.electricity_low, previous.electricity_low)

    water = None
    if current.water_tracked and previous.water_tracked:
        water = percentage_change(current.water, previous.water)

    return UsageChange(
        electricity_high=percentage_change(current.electricity_high, previous.electricity_high),
        electricity_low=low,
        electricity_total=percentage_change(current.electricity_total, previous.electricity_total),
        gas=percentage_change(current.gas, previous.gas),
        water=water,
    )


def compare_months(yearly: Iterable[YearlySummary]) -> list[MonthComparison]:
    """
    Line up the same calendar month across years.

    Each comparison lists entries newest year first, each with its
    change versus the next older entry. Comparisons are ordered by
    calendar month (01..12).
    """
    by_calendar_month: dict[str, list[MonthlySummary]] = {}
    for summary in yearly:
        for monthly in summary.monthly_breakdown:
            by_calendar_month.setdefault(monthly.calendar_month, []).append(monthly)

    comparisons = []
    for calendar_month in sorted(by_calendar_month):
        months = sorted(by_calendar_month[calendar_month], key=lambda m: m.month, reverse=True)
        entries = []
        for i, monthly in enumerate(months):
            older = months[i + 1] if i + 1 < len(months) else None
            entries.append(MonthComparisonEntry(
                summary=monthly,
                change=compute_usage_change(monthly, older) if older else None,
            ))
        comparisons.append(MonthComparison(
            calendar_month=calendar_month,
            entries=tuple(entries),
        ))

    return comparisons
