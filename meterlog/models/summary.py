"""
Derived Usage Models

Summaries are computed from a snapshot of readings on every change.
They are never persisted and never mutated, so every model here is frozen.

Each summary carries numeric deltas (optional meters count as 0) AND a
`*_tracked` flag per optional meter. The flag tells the presentation
layer whether to print "N/A" instead of a misleading zero.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UsageFields(BaseModel):
    """Usage values shared by monthly and yearly summaries."""
    model_config = ConfigDict(frozen=True)

    electricity_high: float = 0.0
    electricity_low: float = 0.0
    electricity_total: float = 0.0
    gas: float = 0.0
    water: float = 0.0

    electricity_low_tracked: bool = Field(
        default=False,
        description="At least one source reading had a low tariff value"
    )
    water_tracked: bool = Field(
        default=False,
        description="At least one source reading had a water value"
    )

    def display_value(self, field: str) -> Optional[float]:
        """Value for display: None for an optional meter that is not tracked."""
        if field == "electricity_low" and not self.electricity_low_tracked:
            return None
        if field == "water" and not self.water_tracked:
            return None
        return getattr(self, field)


class MonthlySummary(UsageFields):
    """Consumption attributed to one calendar month of one house."""

    month: str = Field(
        ...,
        description="Month key (YYYY-MM)"
    )

    @property
    def year(self) -> str:
        return self.month[0:4]

    @property
    def calendar_month(self) -> str:
        return self.month[5:7]


class YearlySummary(UsageFields):
    """
    Consumption of one calendar year.

    For a single house `monthly_breakdown` holds that year's months in
    ascending order. Aggregates across houses leave it empty.
    """

    year: str = Field(
        ...,
        description="Year key (YYYY)"
    )
    monthly_breakdown: tuple[MonthlySummary, ...] = Field(default_factory=tuple)


class UsageChange(BaseModel):
    """
    Percentage change of each field versus a previous period.

    Values may be non-finite (previous period was zero); check with
    `meterlog.summary.is_finite_change` before rendering.
    Optional meters are None when either side does not track them.
    """
    model_config = ConfigDict(frozen=True)

    electricity_high: float
    electricity_low: Optional[float] = None
    electricity_total: float
    gas: float
    water: Optional[float] = None


class MonthComparisonEntry(BaseModel):
    """One year's value for a calendar month, with change vs the year before."""
    model_config = ConfigDict(frozen=True)

    summary: MonthlySummary
    change: Optional[UsageChange] = None


class MonthComparison(BaseModel):
    """
    The same calendar month across years, newest year first.

    The oldest entry has no change.
    """
    model_config = ConfigDict(frozen=True)

    calendar_month: str = Field(..., description="Month number (MM)")
    entries: tuple[MonthComparisonEntry, ...] = Field(default_factory=tuple)
