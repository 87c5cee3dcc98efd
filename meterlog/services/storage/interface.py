"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the summary engine decoupled from storage

Every query is scoped to a user; readings and houses are never shared.
Concurrent writers are reconciled by last-write-wins: an update simply
replaces the stored row.

Backends publish a ChangeEvent on their `changes` feed after every
successful insert, update and delete.
"""

from abc import ABC, abstractmethod
from typing import Optional

from meterlog.models.audit import AuditEvent
from meterlog.models.reading import House, Reading
from meterlog.services.storage.changes import ChangeFeed


class ReadingStorageInterface(ABC):
    """
    Abstract interface for meter reading storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @property
    @abstractmethod
    def changes(self) -> ChangeFeed:
        """Feed receiving a ChangeEvent for every write."""
        pass

    @abstractmethod
    async def save_reading(self, reading: Reading) -> bool:
        """
        Insert a new reading.

        Returns:
            True if saved successfully

        Raises:
            DuplicateError: If a reading with the same id exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_reading_by_id(self, reading_id: str) -> Optional[Reading]:
        pass

    @abstractmethod
    async def update_reading(self, reading: Reading) -> bool:
        """
        Replace an existing reading (last write wins).

        Sets `updated_at` on the passed reading.

        Raises:
            NotFoundError: If the reading doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_reading(self, reading_id: str) -> bool:
        """
        Delete a reading by ID.

        Returns:
            True if a reading was deleted, False if it didn't exist
        """
        pass

    @abstractmethod
    async def list_readings(
        self,
        user_id: str,
        house_id: Optional[str] = None,
    ) -> list[Reading]:
        """
        Point-in-time snapshot of a user's readings.

        Args:
            user_id: Owner of the readings
            house_id: Restrict to one house

        Returns:
            Readings ascending by date
        """
        pass

    async def get_last_reading(
        self,
        user_id: str,
        house_id: str,
    ) -> Optional[Reading]:
        """Most recent reading of a house (by date), or None."""
        readings = await self.list_readings(user_id, house_id)
        return readings[-1] if readings else None


class HouseStorageInterface(ABC):
    """Abstract interface for house storage operations."""

    @property
    @abstractmethod
    def changes(self) -> ChangeFeed:
        pass

    @abstractmethod
    async def save_house(self, house: House) -> bool:
        pass

    @abstractmethod
    async def get_house(self, house_id: str, user_id: str) -> Optional[House]:
        """
        Get a house owned by `user_id`.

        Returns None both when the house doesn't exist and when it
        belongs to somebody else.
        """
        pass

    @abstractmethod
    async def update_house(self, house: House) -> bool:
        """
        Raises:
            NotFoundError: If the house doesn't exist
        """
        pass

    @abstractmethod
    async def delete_house(self, house_id: str) -> bool:
        """
        Delete a house. Its readings are NOT deleted.
        """
        pass

    @abstractmethod
    async def list_houses(self, user_id: str) -> list[House]:
        """A user's houses, oldest first."""
        pass

    async def get_default_house(self, user_id: str) -> Optional[House]:
        for house in await self.list_houses(user_id):
            if house.is_default:
                return house
        return None


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
