"""
In-Memory Storage

Dictionary-backed implementations of the storage interfaces, used for
tests and for running the app locally without Google credentials.
Data lives for the lifetime of the process.

Stored records are copies, so callers mutating their objects cannot
change what the store holds without going through update_*.
"""

from typing import Optional

from meterlog.models.audit import AuditEvent
from meterlog.models.reading import (
    ChangeTable,
    ChangeType,
    House,
    Reading,
    utc_now,
)
from meterlog.services.storage.changes import ChangeFeed
from meterlog.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    HouseStorageInterface,
    NotFoundError,
    ReadingStorageInterface,
)


class InMemoryReadingStorage(ReadingStorageInterface):
    """Readings keyed by id, in insertion order."""

    def __init__(self, feed: Optional[ChangeFeed] = None):
        self._readings: dict[str, Reading] = {}
        self._feed = feed or ChangeFeed()

    @property
    def changes(self) -> ChangeFeed:
        return self._feed

    async def save_reading(self, reading: Reading) -> bool:
        if reading.id in self._readings:
            raise DuplicateError(f"Reading already exists: {reading.id}")
        stored = reading.model_copy()
        self._readings[reading.id] = stored
        self._feed.publish_change(ChangeType.INSERT, ChangeTable.READINGS, new=stored)
        return True

    async def get_reading_by_id(self, reading_id: str) -> Optional[Reading]:
        reading = self._readings.get(reading_id)
        return reading.model_copy() if reading else None

    async def update_reading(self, reading: Reading) -> bool:
        old = self._readings.get(reading.id)
        if old is None:
            raise NotFoundError(f"Reading not found: {reading.id}")
        reading.updated_at = utc_now()
        stored = reading.model_copy()
        self._readings[reading.id] = stored
        self._feed.publish_change(ChangeType.UPDATE, ChangeTable.READINGS, new=stored, old=old)
        return True

    async def delete_reading(self, reading_id: str) -> bool:
        old = self._readings.pop(reading_id, None)
        if old is None:
            return False
        self._feed.publish_change(ChangeType.DELETE, ChangeTable.READINGS, old=old)
        return True

    async def list_readings(
        self,
        user_id: str,
        house_id: Optional[str] = None,
    ) -> list[Reading]:
        readings = [
            reading.model_copy()
            for reading in self._readings.values()
            if reading.user_id == user_id
            and (house_id is None or reading.house_id == house_id)
        ]
        readings.sort(key=lambda r: r.date)
        return readings


class InMemoryHouseStorage(HouseStorageInterface):
    """Houses keyed by id."""

    def __init__(self, feed: Optional[ChangeFeed] = None):
        self._houses: dict[str, House] = {}
        self._feed = feed or ChangeFeed()

    @property
    def changes(self) -> ChangeFeed:
        return self._feed

    async def save_house(self, house: House) -> bool:
        if house.id in self._houses:
            raise DuplicateError(f"House already exists: {house.id}")
        stored = house.model_copy()
        self._houses[house.id] = stored
        self._feed.publish_change(ChangeType.INSERT, ChangeTable.HOUSES, new=stored)
        return True

    async def get_house(self, house_id: str, user_id: str) -> Optional[House]:
        house = self._houses.get(house_id)
        if house is None or house.user_id != user_id:
            return None
        return house.model_copy()

    async def update_house(self, house: House) -> bool:
        old = self._houses.get(house.id)
        if old is None:
            raise NotFoundError(f"House not found: {house.id}")
        house.updated_at = utc_now()
        stored = house.model_copy()
        self._houses[house.id] = stored
        self._feed.publish_change(ChangeType.UPDATE, ChangeTable.HOUSES, new=stored, old=old)
        return True

    async def delete_house(self, house_id: str) -> bool:
        old = self._houses.pop(house_id, None)
        if old is None:
            return False
        self._feed.publish_change(ChangeType.DELETE, ChangeTable.HOUSES, old=old)
        return True

    async def list_houses(self, user_id: str) -> list[House]:
        houses = [
            house.model_copy()
            for house in self._houses.values()
            if house.user_id == user_id
        ]
        houses.sort(key=lambda h: h.created_at)
        return houses


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
