"""Services package."""

from meterlog.services.export import (
    ExportError,
    ExportFormatError,
    ExportNotFoundError,
)
from meterlog.services.storage import (
    AuditStorageInterface,
    ChangeFeed,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsHouseStorage,
    GoogleSheetsReadingStorage,
    HouseStorageInterface,
    InMemoryAuditStorage,
    InMemoryHouseStorage,
    InMemoryReadingStorage,
    NotFoundError,
    ReadingStorageInterface,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    # Export
    "ExportError",
    "ExportFormatError",
    "ExportNotFoundError",
    # Storage services
    "AuditStorageInterface",
    "ChangeFeed",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsHouseStorage",
    "GoogleSheetsReadingStorage",
    "HouseStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryHouseStorage",
    "InMemoryReadingStorage",
    "NotFoundError",
    "ReadingStorageInterface",
    "StorageConnectionError",
    "StorageError",
]
