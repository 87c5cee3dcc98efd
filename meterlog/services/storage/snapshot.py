"""
Live Snapshots

A snapshot holds the readings (or houses) a view is showing and keeps
them current from the store's change feed. Every applied change
triggers a full recompute of the derived summaries; the engine is cheap
enough at household scale that incremental maintenance isn't worth the
complexity.

DESIGN DECISION: Summaries are never patched. The snapshot patches its
list of readings and then reruns the pure engine over all of them, so a
snapshot always equals what a fresh list_readings() would produce.
"""

from typing import Iterable, Optional

import structlog

from meterlog.models.reading import (
    ChangeEvent,
    ChangeTable,
    ChangeType,
    House,
    MonthAttribution,
    Reading,
)
from meterlog.models.summary import MonthComparison, MonthlySummary, YearlySummary
from meterlog.services.storage.changes import ChangeFeed, Subscription
from meterlog.summary import (
    compare_months,
    compute_monthly_summaries,
    compute_yearly_summaries,
    latest_reading,
    sort_readings,
    summarize_houses,
)


logger = structlog.get_logger(__name__)


def _apply_to_records(records: list, event: ChangeEvent) -> list:
    """Return a new list with the change applied; matching is by id."""
    if event.event_type == ChangeType.INSERT:
        # An insert for an id we already hold behaves like an update
        return [r for r in records if r.id != event.new.id] + [event.new]
    if event.event_type == ChangeType.UPDATE:
        if not any(r.id == event.new.id for r in records):
            return records + [event.new]
        return [event.new if r.id == event.new.id else r for r in records]
    return [r for r in records if r.id != event.old.id]


class ReadingSnapshot:
    """
    Readings of one user, optionally restricted to one house.

    With a house_id the snapshot exposes that house's monthly and yearly
    summaries and its month comparisons. Without one it exposes the
    per-house yearly summaries and their combined total.
    """

    def __init__(
        self,
        readings: Iterable[Reading],
        user_id: str,
        house_id: Optional[str] = None,
        attribution: MonthAttribution = MonthAttribution.CURRENT,
    ):
        self.user_id = user_id
        self.house_id = house_id
        self.attribution = attribution
        self._readings: list[Reading] = sort_readings(
            r for r in readings if self._owns(r)
        )
        self.monthly: list[MonthlySummary] = []
        self.yearly: list[YearlySummary] = []
        self.comparisons: list[MonthComparison] = []
        self.yearly_by_house: dict[str, list[YearlySummary]] = {}
        self.combined: list[YearlySummary] = []
        self.recompute()

    @property
    def readings(self) -> list[Reading]:
        return list(self._readings)

    @property
    def latest(self) -> Optional[Reading]:
        return latest_reading(self._readings)

    def _owns(self, reading: Reading) -> bool:
        if reading.user_id != self.user_id:
            return False
        return self.house_id is None or reading.house_id == self.house_id

    def recompute(self) -> None:
        if self.house_id is not None:
            self.monthly = compute_monthly_summaries(self._readings, self.attribution)
            self.yearly = compute_yearly_summaries(
                self._readings, monthly=self.monthly, attribution=self.attribution
            )
            self.comparisons = compare_months(self.yearly)
        else:
            self.yearly_by_house, self.combined = summarize_houses(
                self._readings, self.attribution
            )

        logger.debug(
            "snapshot_recomputed",
            user_id=self.user_id,
            house_id=self.house_id,
            reading_count=len(self._readings),
            month_count=len(self.monthly),
            year_count=len(self.yearly) if self.house_id else len(self.combined),
        )

    def apply(self, event: ChangeEvent) -> bool:
        """
        Patch the snapshot from a change event and recompute.

        An UPDATE that moves a reading out of (or into) this snapshot's
        house is handled as a removal (or insertion).

        Returns:
            True if the event changed the snapshot
        """
        if event.table != ChangeTable.READINGS:
            return False

        new_owned = event.new is not None and self._owns(event.new)
        old_owned = event.old is not None and self._owns(event.old)
        held = event.new is not None and any(r.id == event.new.id for r in self._readings)

        if event.event_type == ChangeType.UPDATE and not new_owned:
            if not (old_owned or held):
                return False
            event = ChangeEvent(event_type=ChangeType.DELETE, table=event.table, old=event.new)
        elif event.event_type == ChangeType.INSERT and not new_owned:
            return False
        elif event.event_type == ChangeType.DELETE and not old_owned:
            return False

        self._readings = sort_readings(_apply_to_records(self._readings, event))
        self.recompute()
        return True

    def attach(self, feed: ChangeFeed) -> Subscription:
        """Follow a change feed until the returned subscription is cancelled."""
        return feed.subscribe(self.apply, user_id=self.user_id, table=ChangeTable.READINGS)


class HouseSnapshot:
    """A user's houses kept current from the change feed, oldest first."""

    def __init__(self, houses: Iterable[House], user_id: str):
        self.user_id = user_id
        self._houses = sorted(
            (h for h in houses if h.user_id == user_id),
            key=lambda h: h.created_at,
        )

    @property
    def houses(self) -> list[House]:
        return list(self._houses)

    @property
    def default_house(self) -> Optional[House]:
        return find_default_house(self._houses)

    def apply(self, event: ChangeEvent) -> bool:
        if event.table != ChangeTable.HOUSES or event.user_id != self.user_id:
            return False
        self._houses = sorted(
            _apply_to_records(self._houses, event),
            key=lambda h: h.created_at,
        )
        return True

    def attach(self, feed: ChangeFeed) -> Subscription:
        return feed.subscribe(self.apply, user_id=self.user_id, table=ChangeTable.HOUSES)


def find_default_house(houses: Iterable[House]) -> Optional[House]:
    """The default house, or the oldest one when none is marked."""
    houses = list(houses)
    for house in houses:
        if house.is_default:
            return house
    return houses[0] if houses else None
