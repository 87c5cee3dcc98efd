"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the shared backend; the in-memory backend serves tests
and local runs. Both publish row changes on a ChangeFeed.
"""

from meterlog.services.storage.changes import (
    ChangeCallback,
    ChangeFeed,
    Subscription,
)
from meterlog.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    HouseStorageInterface,
    NotFoundError,
    ReadingStorageInterface,
    StorageConnectionError,
    StorageError,
)
from meterlog.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryHouseStorage,
    InMemoryReadingStorage,
)
from meterlog.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsHouseStorage,
    GoogleSheetsReadingStorage,
)
from meterlog.services.storage.snapshot import (
    HouseSnapshot,
    ReadingSnapshot,
    find_default_house,
)

__all__ = [
    # Change feed
    "ChangeCallback",
    "ChangeFeed",
    "Subscription",
    # Interfaces
    "AuditStorageInterface",
    "HouseStorageInterface",
    "ReadingStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryHouseStorage",
    "InMemoryReadingStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsHouseStorage",
    "GoogleSheetsReadingStorage",
    # Snapshots
    "HouseSnapshot",
    "ReadingSnapshot",
    "find_default_house",
]
