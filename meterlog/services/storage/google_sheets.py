"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the shared storage backend because:
1. Users can look at their raw readings directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. A worksheet downloads as the same CSV layout as our export

TRADEOFFS:
- Not suitable for high-volume data (a few hundred readings per house is fine)
- No transactions; concurrent writers resolve as last-write-wins
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing the summary engine.
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

import structlog

from meterlog.config import get_settings
from meterlog.models.audit import AuditEvent, AuditEventType, AuditSeverity
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
    StorageConnectionError,
    StorageError,
)
from meterlog.services.storage.rows import (
    HOUSE_COLUMNS,
    READING_COLUMNS,
    house_to_row,
    reading_to_row,
    row_to_house,
    row_to_reading,
)


logger = structlog.get_logger(__name__)

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "user_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_readings_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.readings_sheet_name, READING_COLUMNS, rows=2000
        )

    def get_houses_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.houses_sheet_name, HOUSE_COLUMNS, rows=100
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


def _find_row(all_rows: list[list], record_id: str) -> Optional[tuple[int, list]]:
    """(1-based sheet row index, row) for an id, skipping the header."""
    for idx, row in enumerate(all_rows[1:], start=2):
        if row and row[0] == record_id:
            return idx, row
    return None


class GoogleSheetsReadingStorage(ReadingStorageInterface):
    """
    Google Sheets implementation of reading storage.

    One reading per row, columns as in READING_COLUMNS.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        feed: Optional[ChangeFeed] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._feed = feed or ChangeFeed()

    @property
    def changes(self) -> ChangeFeed:
        return self._feed

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _all_rows(self) -> list[list]:
        return self._client.get_readings_sheet().get_all_values()

    async def save_reading(self, reading: Reading) -> bool:
        """Append a reading row."""
        try:
            if _find_row(self._all_rows(), reading.id):
                raise DuplicateError(f"Reading already exists: {reading.id}")
            sheet = self._client.get_readings_sheet()
            sheet.append_row(reading_to_row(reading), value_input_option="RAW")
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save reading: {e}")

        self._feed.publish_change(ChangeType.INSERT, ChangeTable.READINGS, new=reading)
        return True

    async def get_reading_by_id(self, reading_id: str) -> Optional[Reading]:
        try:
            found = _find_row(self._all_rows(), reading_id)
            return row_to_reading(found[1]) if found else None
        except Exception as e:
            raise StorageError(f"Failed to get reading: {e}")

    async def update_reading(self, reading: Reading) -> bool:
        """Rewrite the reading's row in place."""
        try:
            found = _find_row(self._all_rows(), reading.id)
            if found is None:
                raise NotFoundError(f"Reading not found: {reading.id}")
            idx, old_row = found
            reading.updated_at = utc_now()
            sheet = self._client.get_readings_sheet()
            sheet.update(range_name=f"A{idx}", values=[reading_to_row(reading)])
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update reading: {e}")

        self._feed.publish_change(
            ChangeType.UPDATE,
            ChangeTable.READINGS,
            new=reading,
            old=row_to_reading(old_row),
        )
        return True

    async def delete_reading(self, reading_id: str) -> bool:
        try:
            found = _find_row(self._all_rows(), reading_id)
            if found is None:
                return False
            idx, old_row = found
            self._client.get_readings_sheet().delete_rows(idx)
        except Exception as e:
            raise StorageError(f"Failed to delete reading: {e}")

        self._feed.publish_change(
            ChangeType.DELETE, ChangeTable.READINGS, old=row_to_reading(old_row)
        )
        return True

    async def list_readings(
        self,
        user_id: str,
        house_id: Optional[str] = None,
    ) -> list[Reading]:
        try:
            all_rows = self._all_rows()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list readings: {e}")

        readings = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            if len(row) > 7 and row[7] != user_id:
                continue
            try:
                reading = row_to_reading(row)
            except Exception as e:
                logger.warning("malformed_reading_row", row_id=row[0], error=str(e))
                continue
            if reading.user_id != user_id:
                continue
            if house_id is not None and reading.house_id != house_id:
                continue
            readings.append(reading)

        readings.sort(key=lambda r: r.date)
        return readings


class GoogleSheetsHouseStorage(HouseStorageInterface):
    """Google Sheets implementation of house storage."""

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        feed: Optional[ChangeFeed] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._feed = feed or ChangeFeed()

    @property
    def changes(self) -> ChangeFeed:
        return self._feed

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _all_rows(self) -> list[list]:
        return self._client.get_houses_sheet().get_all_values()

    async def save_house(self, house: House) -> bool:
        try:
            if _find_row(self._all_rows(), house.id):
                raise DuplicateError(f"House already exists: {house.id}")
            sheet = self._client.get_houses_sheet()
            sheet.append_row(house_to_row(house), value_input_option="RAW")
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save house: {e}")

        self._feed.publish_change(ChangeType.INSERT, ChangeTable.HOUSES, new=house)
        return True

    async def get_house(self, house_id: str, user_id: str) -> Optional[House]:
        try:
            found = _find_row(self._all_rows(), house_id)
        except Exception as e:
            raise StorageError(f"Failed to get house: {e}")
        if found is None:
            return None
        house = row_to_house(found[1])
        return house if house.user_id == user_id else None

    async def update_house(self, house: House) -> bool:
        try:
            found = _find_row(self._all_rows(), house.id)
            if found is None:
                raise NotFoundError(f"House not found: {house.id}")
            idx, old_row = found
            house.updated_at = utc_now()
            sheet = self._client.get_houses_sheet()
            sheet.update(range_name=f"A{idx}", values=[house_to_row(house)])
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update house: {e}")

        self._feed.publish_change(
            ChangeType.UPDATE, ChangeTable.HOUSES, new=house, old=row_to_house(old_row)
        )
        return True

    async def delete_house(self, house_id: str) -> bool:
        try:
            found = _find_row(self._all_rows(), house_id)
            if found is None:
                return False
            idx, old_row = found
            self._client.get_houses_sheet().delete_rows(idx)
        except Exception as e:
            raise StorageError(f"Failed to delete house: {e}")

        self._feed.publish_change(
            ChangeType.DELETE, ChangeTable.HOUSES, old=row_to_house(old_row)
        )
        return True

    async def list_houses(self, user_id: str) -> list[House]:
        try:
            all_rows = self._all_rows()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list houses: {e}")

        houses = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                house = row_to_house(row)
            except Exception as e:
                logger.warning("malformed_house_row", row_id=row[0], error=str(e))
                continue
            if house.user_id == user_id:
                houses.append(house)

        houses.sort(key=lambda h: h.created_at)
        return houses


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            user_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", event_id=str(event.event_id), error=str(e))
            return False

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception as e:
                    logger.warning("malformed_audit_row", row_id=row[0], error=str(e))

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
