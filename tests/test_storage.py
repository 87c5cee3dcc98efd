"""
Tests for the in-memory storage backends and the change feed.

Async methods are driven with asyncio.run().
"""

import asyncio
from datetime import datetime, timezone

import pytest

from meterlog.models.audit import AuditEventBuilder
from meterlog.models.reading import (
    ChangeEvent,
    ChangeTable,
    ChangeType,
    House,
    Reading,
)
from meterlog.services.storage import (
    ChangeFeed,
    DuplicateError,
    GoogleSheetsHouseStorage,
    GoogleSheetsReadingStorage,
    InMemoryAuditStorage,
    InMemoryHouseStorage,
    InMemoryReadingStorage,
    NotFoundError,
)
from meterlog.services.storage.rows import (
    HOUSE_COLUMNS,
    READING_COLUMNS,
    house_to_row,
    reading_to_row,
)


def make_reading(date: str, house_id: str = "house-1", user_id: str = "user-1", **kwargs) -> Reading:
    return Reading(
        date=date,
        electricity_high=kwargs.pop("high", 100),
        gas=kwargs.pop("gas", 10),
        house_id=house_id,
        user_id=user_id,
        **kwargs,
    )


class TestInMemoryReadingStorage:
    """Tests for InMemoryReadingStorage."""

    def test_save_and_get(self):
        storage = InMemoryReadingStorage()
        reading = make_reading("2024-01-01")

        asyncio.run(storage.save_reading(reading))

        assert asyncio.run(storage.get_reading_by_id(reading.id)) == reading
        assert asyncio.run(storage.get_reading_by_id("missing")) is None

    def test_duplicate_id(self):
        storage = InMemoryReadingStorage()
        reading = make_reading("2024-01-01")
        asyncio.run(storage.save_reading(reading))

        with pytest.raises(DuplicateError):
            asyncio.run(storage.save_reading(reading))

    def test_stored_copy_is_isolated(self):
        storage = InMemoryReadingStorage()
        reading = make_reading("2024-01-01")
        asyncio.run(storage.save_reading(reading))

        reading.gas = 999
        assert asyncio.run(storage.get_reading_by_id(reading.id)).gas == 10

    def test_list_is_scoped_and_sorted(self):
        storage = InMemoryReadingStorage()
        for reading in [
            make_reading("2024-03-01"),
            make_reading("2024-01-01"),
            make_reading("2024-02-01", house_id="house-2"),
            make_reading("2024-02-01", user_id="someone-else"),
        ]:
            asyncio.run(storage.save_reading(reading))

        mine = asyncio.run(storage.list_readings("user-1"))
        assert [r.date for r in mine] == ["2024-01-01", "2024-02-01", "2024-03-01"]

        house = asyncio.run(storage.list_readings("user-1", "house-1"))
        assert [r.date for r in house] == ["2024-01-01", "2024-03-01"]

    def test_last_reading(self):
        storage = InMemoryReadingStorage()
        asyncio.run(storage.save_reading(make_reading("2024-03-01", high=300)))
        asyncio.run(storage.save_reading(make_reading("2024-01-01", high=100)))

        last = asyncio.run(storage.get_last_reading("user-1", "house-1"))
        assert last.electricity_high == 300
        assert asyncio.run(storage.get_last_reading("user-1", "house-2")) is None

    def test_update_replaces(self):
        storage = InMemoryReadingStorage()
        reading = make_reading("2024-01-01")
        asyncio.run(storage.save_reading(reading))
        created = reading.updated_at

        reading.gas = 20
        asyncio.run(storage.update_reading(reading))

        stored = asyncio.run(storage.get_reading_by_id(reading.id))
        assert stored.gas == 20
        assert stored.updated_at >= created

    def test_update_missing(self):
        storage = InMemoryReadingStorage()
        with pytest.raises(NotFoundError):
            asyncio.run(storage.update_reading(make_reading("2024-01-01")))

    def test_delete(self):
        storage = InMemoryReadingStorage()
        reading = make_reading("2024-01-01")
        asyncio.run(storage.save_reading(reading))

        assert asyncio.run(storage.delete_reading(reading.id)) is True
        assert asyncio.run(storage.delete_reading(reading.id)) is False
        assert asyncio.run(storage.list_readings("user-1")) == []


class TestInMemoryHouseStorage:
    """Tests for InMemoryHouseStorage."""

    def test_get_is_user_scoped(self):
        storage = InMemoryHouseStorage()
        house = House(user_id="user-1", name="Home")
        asyncio.run(storage.save_house(house))

        assert asyncio.run(storage.get_house(house.id, "user-1")) == house
        assert asyncio.run(storage.get_house(house.id, "user-2")) is None

    def test_list_oldest_first(self):
        storage = InMemoryHouseStorage()
        first = House(user_id="user-1", name="First", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        second = House(user_id="user-1", name="Second", created_at=datetime(2024, 2, 1, tzinfo=timezone.utc))
        asyncio.run(storage.save_house(second))
        asyncio.run(storage.save_house(first))

        names = [h.name for h in asyncio.run(storage.list_houses("user-1"))]
        assert names == ["First", "Second"]

    def test_default_house(self):
        storage = InMemoryHouseStorage()
        asyncio.run(storage.save_house(House(user_id="user-1", name="A")))
        assert asyncio.run(storage.get_default_house("user-1")) is None

        asyncio.run(storage.save_house(House(user_id="user-1", name="B", is_default=True)))
        assert asyncio.run(storage.get_default_house("user-1")).name == "B"

    def test_update_and_delete(self):
        storage = InMemoryHouseStorage()
        house = House(user_id="user-1", name="Home")
        asyncio.run(storage.save_house(house))

        house.name = "Cottage"
        asyncio.run(storage.update_house(house))
        assert asyncio.run(storage.get_house(house.id, "user-1")).name == "Cottage"

        assert asyncio.run(storage.delete_house(house.id)) is True
        with pytest.raises(NotFoundError):
            asyncio.run(storage.update_house(house))


class TestInMemoryAuditStorage:
    """Tests for InMemoryAuditStorage."""

    def test_recent_events_newest_first(self):
        storage = InMemoryAuditStorage()
        first = AuditEventBuilder.house_created("h-1", "A", "user-1")
        first.timestamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
        second = AuditEventBuilder.house_created("h-2", "B", "user-1")
        second.timestamp = datetime(2024, 1, 2, tzinfo=timezone.utc)
        asyncio.run(storage.append_event(first))
        asyncio.run(storage.append_event(second))

        events = asyncio.run(storage.get_recent_events())
        assert [e.entity_id for e in events] == ["h-2", "h-1"]
        assert len(asyncio.run(storage.get_recent_events(limit=1))) == 1


class TestChangeFeed:
    """Tests for change notifications."""

    def test_store_publishes_insert_update_delete(self):
        storage = InMemoryReadingStorage()
        received: list[ChangeEvent] = []
        storage.changes.subscribe(received.append)

        reading = make_reading("2024-01-01")
        asyncio.run(storage.save_reading(reading))
        reading.gas = 11
        asyncio.run(storage.update_reading(reading))
        asyncio.run(storage.delete_reading(reading.id))

        assert [e.event_type for e in received] == [
            ChangeType.INSERT,
            ChangeType.UPDATE,
            ChangeType.DELETE,
        ]
        assert received[1].old.gas == 10
        assert received[1].new.gas == 11
        assert received[2].old.id == reading.id
        assert all(e.table == ChangeTable.READINGS for e in received)

    def test_no_event_for_failed_write(self):
        storage = InMemoryReadingStorage()
        received = []
        storage.changes.subscribe(received.append)

        asyncio.run(storage.delete_reading("missing"))
        with pytest.raises(NotFoundError):
            asyncio.run(storage.update_reading(make_reading("2024-01-01")))

        assert received == []

    def test_unsubscribe(self):
        feed = ChangeFeed()
        received = []
        subscription = feed.subscribe(received.append)
        assert subscription.active
        assert feed.subscriber_count == 1

        subscription.unsubscribe()
        feed.publish_change(ChangeType.INSERT, ChangeTable.READINGS, new=make_reading("2024-01-01"))

        assert received == []
        assert not subscription.active
        assert feed.subscriber_count == 0

    def test_unsubscribe_through_feed(self):
        feed = ChangeFeed()
        subscription = feed.subscribe(lambda event: None)
        feed.unsubscribe(subscription)
        feed.unsubscribe(subscription)  # second call is a no-op
        assert not feed.is_subscribed(subscription)

    def test_failing_callback_does_not_block_others(self):
        feed = ChangeFeed()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        feed.subscribe(broken)
        feed.subscribe(received.append)

        delivered = feed.publish_change(
            ChangeType.INSERT, ChangeTable.READINGS, new=make_reading("2024-01-01")
        )

        assert delivered == 1
        assert len(received) == 1

    def test_filters(self):
        feed = ChangeFeed()
        mine, houses = [], []
        feed.subscribe(mine.append, user_id="user-1")
        feed.subscribe(houses.append, table=ChangeTable.HOUSES)

        feed.publish_change(ChangeType.INSERT, ChangeTable.READINGS, new=make_reading("2024-01-01"))
        feed.publish_change(
            ChangeType.INSERT, ChangeTable.READINGS,
            new=make_reading("2024-01-01", user_id="user-2"),
        )
        feed.publish_change(ChangeType.INSERT, ChangeTable.HOUSES, new=House(user_id="user-2", name="X"))

        assert len(mine) == 1
        assert len(houses) == 1

    def test_callback_may_unsubscribe_itself(self):
        feed = ChangeFeed()
        calls = []

        def once(event):
            calls.append(event)
            subscription.unsubscribe()

        subscription = feed.subscribe(once)
        feed.publish_change(ChangeType.INSERT, ChangeTable.READINGS, new=make_reading("2024-01-01"))
        feed.publish_change(ChangeType.INSERT, ChangeTable.READINGS, new=make_reading("2024-01-02"))

        assert len(calls) == 1


class FakeWorksheet:
    """In-memory stand-in for a gspread worksheet."""

    def __init__(self, header: list[str]):
        self.rows = [list(header)]
        self.update_calls = []

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append(list(row))

    def update(self, range_name, values):
        self.update_calls.append(range_name)
        idx = int(range_name[1:])
        self.rows[idx - 1] = list(values[0])

    def delete_rows(self, idx):
        del self.rows[idx - 1]


class FakeSheetsClient:
    def __init__(self):
        self.readings = FakeWorksheet(READING_COLUMNS)
        self.houses = FakeWorksheet(HOUSE_COLUMNS)

    def get_readings_sheet(self):
        return self.readings

    def get_houses_sheet(self):
        return self.houses


class TestGoogleSheetsStorage:
    """Sheets backends against a fake worksheet."""

    def test_update_reading_writes_row_at_once(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsReadingStorage(client)
        first = make_reading("2024-01-01")
        second = make_reading("2024-02-01", high=150)
        asyncio.run(storage.save_reading(first))
        asyncio.run(storage.save_reading(second))

        second.gas = 42
        asyncio.run(storage.update_reading(second))

        assert client.readings.update_calls == ["A3"]
        assert client.readings.rows[2] == reading_to_row(second)
        assert len(client.readings.rows) == 3
        assert asyncio.run(storage.get_reading_by_id(second.id)).gas == 42

    def test_update_missing_reading(self):
        storage = GoogleSheetsReadingStorage(FakeSheetsClient())

        with pytest.raises(NotFoundError):
            asyncio.run(storage.update_reading(make_reading("2024-01-01")))

    def test_update_house_writes_row_at_once(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsHouseStorage(client)
        house = House(user_id="user-1", name="Home")
        asyncio.run(storage.save_house(house))

        house.name = "Cottage"
        asyncio.run(storage.update_house(house))

        assert client.houses.update_calls == ["A2"]
        assert client.houses.rows[1] == house_to_row(house)
        assert asyncio.run(storage.get_house(house.id, "user-1")).name == "Cottage"
