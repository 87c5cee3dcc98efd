"""
Main Orchestrator for meterlog

This module ties together all the components and defines the
end-to-end flows for:
1. Readings (validate → save → audit → append to export)
2. Houses (create, rename, delete, pick the default)
3. Statistics (list readings → summary engine)
4. Export (overwrite, download, current file)
5. Preferences (initial meter values)

DESIGN DECISION: The orchestrator enforces the boundaries:
- A reading reaches storage only after validation
- Every house and reading operation is scoped to the acting user
- Summaries are derived on demand and never stored
- Every change is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from pathlib import Path
from typing import Optional
from uuid import UUID

import structlog

from meterlog.audit import AuditLogger, create_correlation_id
from meterlog.config import PreferencesStore, Settings, get_settings
from meterlog.models.reading import (
    House,
    MeterField,
    MonthAttribution,
    Reading,
    ReadingInput,
    StartNumbers,
    ValidationResult,
)
from meterlog.services.export import (
    ExportError,
    append_reading,
    read_export,
    readings_to_csv,
    write_export,
)
from meterlog.services.storage import (
    AuditStorageInterface,
    ChangeFeed,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsHouseStorage,
    GoogleSheetsReadingStorage,
    HouseStorageInterface,
    InMemoryAuditStorage,
    InMemoryHouseStorage,
    InMemoryReadingStorage,
    NotFoundError,
    ReadingSnapshot,
    ReadingStorageInterface,
    find_default_house,
)
from meterlog.validation import ReadingValidator


logger = structlog.get_logger(__name__)

DOWNLOAD_ALL_FILENAME = "energy_readings_all.csv"
DOWNLOAD_CURRENT_FILENAME = "energy_readings_current.csv"


class ReadingRejectedError(Exception):
    """Validation found errors; nothing was saved."""

    def __init__(self, result: ValidationResult, message: str = ""):
        self.result = result
        super().__init__(message or f"Reading rejected with {result.error_count} errors")


class HouseAccessError(Exception):
    """The house doesn't exist or belongs to another user."""

    def __init__(self, house_id: str):
        self.house_id = house_id
        super().__init__(f"House not found: {house_id}")


async def _require_house(
    house_storage: HouseStorageInterface,
    house_id: str,
    user_id: str,
) -> House:
    house = await house_storage.get_house(house_id, user_id)
    if house is None:
        raise HouseAccessError(house_id)
    return house


class ReadingFlow:
    """
    Orchestrates the reading entry flow.

    Flow:
    1. Check the house belongs to the user
    2. Validate → two stages against the house's readings
    3. Save → persist (store publishes the change)
    4. Audit
    5. Append → add the line to the local export file

    Errors from validation stop the flow; warnings don't.
    """

    def __init__(
        self,
        reading_storage: ReadingStorageInterface,
        house_storage: HouseStorageInterface,
        validator: Optional[ReadingValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        export_path: Optional[Path] = None,
    ):
        self._reading_storage = reading_storage
        self._house_storage = house_storage
        self._validator = validator or ReadingValidator(reading_storage)
        self._audit_logger = audit_logger
        self._export_path = export_path

    async def validate_reading(
        self,
        reading: ReadingInput,
        user_id: str,
        exclude_reading_id: Optional[str] = None,
    ) -> tuple[ValidationResult, str]:
        """
        Validate without saving, for live feedback in the entry form.

        Returns:
            (validation_result, user_message)
        """
        result = await self._validator.validate(
            reading, user_id, exclude_reading_id=exclude_reading_id
        )
        return result, self._validator.get_user_friendly_summary(result)

    async def _reject(
        self,
        reading: ReadingInput,
        result: ValidationResult,
        user_id: str,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.errors
            ]
            await self._audit_logger.log_reading_rejected(
                house_id=reading.house_id,
                reading_date=reading.date,
                issues=issues,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        raise ReadingRejectedError(result, self._validator.get_user_friendly_summary(result))

    async def add_reading(
        self,
        reading: ReadingInput,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Reading, ValidationResult]:
        """
        Validate and save a new reading.

        Returns:
            (saved_reading, validation_result) - the result may carry warnings

        Raises:
            HouseAccessError: If the house isn't the user's
            ReadingRejectedError: If validation found errors
        """
        correlation_id = correlation_id or create_correlation_id()

        await _require_house(self._house_storage, reading.house_id, user_id)

        result, _ = await self.validate_reading(reading, user_id)
        if result.has_errors:
            await self._reject(reading, result, user_id, correlation_id)

        saved = Reading.from_input(reading, user_id)
        await self._reading_storage.save_reading(saved)

        if self._audit_logger:
            await self._audit_logger.log_reading_saved(
                reading_id=saved.id,
                house_id=saved.house_id,
                reading_date=saved.date,
                user_id=user_id,
                correlation_id=correlation_id,
            )

        if self._export_path is not None:
            try:
                append_reading(self._export_path, saved)
            except (ExportError, OSError) as e:
                # The reading is stored; the export can be rewritten later
                logger.error("export_append_failed", reading_id=saved.id, error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_error(
                        error_type="export_append_failed",
                        error_message=str(e),
                        details={"reading_id": saved.id},
                        correlation_id=correlation_id,
                    )

        return saved, result

    async def _get_owned_reading(self, reading_id: str, user_id: str) -> Reading:
        reading = await self._reading_storage.get_reading_by_id(reading_id)
        if reading is None or reading.user_id != user_id:
            raise NotFoundError(f"Reading not found: {reading_id}")
        return reading

    async def update_reading(
        self,
        reading_id: str,
        changes: ReadingInput,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Reading, ValidationResult]:
        """
        Validate and apply an edit to an existing reading.

        The edited reading is validated as if the old version didn't exist.

        Raises:
            NotFoundError: If the reading isn't the user's
            HouseAccessError: If it is moved to a house that isn't the user's
            ReadingRejectedError: If validation found errors
        """
        correlation_id = correlation_id or create_correlation_id()

        current = await self._get_owned_reading(reading_id, user_id)
        if changes.house_id != current.house_id:
            await _require_house(self._house_storage, changes.house_id, user_id)

        result, _ = await self.validate_reading(
            changes, user_id, exclude_reading_id=reading_id
        )
        if result.has_errors:
            await self._reject(changes, result, user_id, correlation_id)

        changed_fields = [
            name for name in ["date", "house_id"] + [f.value for f in MeterField]
            if getattr(changes, name) != getattr(current, name)
        ]
        updated = current.model_copy(
            update=changes.model_dump(include=set(ReadingInput.model_fields))
        )
        await self._reading_storage.update_reading(updated)

        if self._audit_logger:
            await self._audit_logger.log_reading_updated(
                reading_id=reading_id,
                changed_fields=changed_fields,
                user_id=user_id,
                correlation_id=correlation_id,
            )

        return updated, result

    async def delete_reading(
        self,
        reading_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete one of the user's readings.

        Raises:
            NotFoundError: If the reading isn't the user's
        """
        correlation_id = correlation_id or create_correlation_id()

        await self._get_owned_reading(reading_id, user_id)
        deleted = await self._reading_storage.delete_reading(reading_id)

        if deleted and self._audit_logger:
            await self._audit_logger.log_reading_deleted(
                reading_id=reading_id,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        return deleted

    async def list_readings(
        self,
        user_id: str,
        house_id: Optional[str] = None,
    ) -> list[Reading]:
        return await self._reading_storage.list_readings(user_id, house_id)

    async def last_reading(self, user_id: str, house_id: str) -> Optional[Reading]:
        """Most recent reading, used to prefill the entry form."""
        return await self._reading_storage.get_last_reading(user_id, house_id)


class HouseFlow:
    """
    Orchestrates house management.

    Keeps at most one default house per user: setting a default clears
    the flag on every other house of that user.
    """

    def __init__(
        self,
        house_storage: HouseStorageInterface,
        reading_storage: ReadingStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._house_storage = house_storage
        self._reading_storage = reading_storage
        self._audit_logger = audit_logger

    async def list_houses(self, user_id: str) -> list[House]:
        return await self._house_storage.list_houses(user_id)

    async def get_house(self, house_id: str, user_id: str) -> House:
        """
        Raises:
            HouseAccessError: If the house isn't the user's
        """
        return await _require_house(self._house_storage, house_id, user_id)

    async def get_default_house(self, user_id: str) -> Optional[House]:
        """The marked default, else the oldest house, else None."""
        return find_default_house(await self._house_storage.list_houses(user_id))

    async def _clear_other_defaults(self, house_id: str, user_id: str) -> list[str]:
        cleared = []
        for other in await self._house_storage.list_houses(user_id):
            if other.id != house_id and other.is_default:
                other.is_default = False
                await self._house_storage.update_house(other)
                cleared.append(other.id)
        return cleared

    async def create_house(
        self,
        name: str,
        user_id: str,
        is_default: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> House:
        correlation_id = correlation_id or create_correlation_id()

        house = House(user_id=user_id, name=name, is_default=is_default)
        await self._house_storage.save_house(house)

        if self._audit_logger:
            await self._audit_logger.log_house_created(
                house_id=house.id,
                name=house.name,
                user_id=user_id,
                correlation_id=correlation_id,
            )

        if is_default:
            cleared = await self._clear_other_defaults(house.id, user_id)
            if self._audit_logger:
                await self._audit_logger.log_default_house_changed(
                    house_id=house.id,
                    previous_default_ids=cleared,
                    user_id=user_id,
                    correlation_id=correlation_id,
                )
        return house

    async def rename_house(
        self,
        house_id: str,
        name: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> House:
        correlation_id = correlation_id or create_correlation_id()

        house = await _require_house(self._house_storage, house_id, user_id)
        house = House(**{**house.model_dump(), "name": name})
        await self._house_storage.update_house(house)

        if self._audit_logger:
            await self._audit_logger.log_house_updated(
                house_id=house.id,
                name=house.name,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        return house

    async def set_default_house(
        self,
        house_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> House:
        """
        Make a house the user's default.

        Raises:
            HouseAccessError: If the house isn't the user's
        """
        correlation_id = correlation_id or create_correlation_id()

        house = await _require_house(self._house_storage, house_id, user_id)
        cleared = await self._clear_other_defaults(house_id, user_id)
        if not house.is_default:
            house.is_default = True
            await self._house_storage.update_house(house)

        if self._audit_logger:
            await self._audit_logger.log_default_house_changed(
                house_id=house_id,
                previous_default_ids=cleared,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        return house

    async def delete_house(
        self,
        house_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Delete a house. Its readings stay in storage.

        Returns:
            Number of readings left without a house

        Raises:
            HouseAccessError: If the house isn't the user's
        """
        correlation_id = correlation_id or create_correlation_id()

        await _require_house(self._house_storage, house_id, user_id)
        orphaned = len(await self._reading_storage.list_readings(user_id, house_id))
        await self._house_storage.delete_house(house_id)

        if self._audit_logger:
            await self._audit_logger.log_house_deleted(
                house_id=house_id,
                orphaned_readings=orphaned,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        return orphaned


class StatisticsFlow:
    """
    Builds summary snapshots for the statistics pages.

    The returned snapshots can be attached to the store's change feed to
    stay current while a page is open.
    """

    def __init__(
        self,
        reading_storage: ReadingStorageInterface,
        attribution: MonthAttribution = MonthAttribution.CURRENT,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._reading_storage = reading_storage
        self._attribution = attribution
        self._audit_logger = audit_logger

    @property
    def attribution(self) -> MonthAttribution:
        return self._attribution

    async def _audit_recompute(self, scope: str, snapshot: ReadingSnapshot, user_id: str) -> None:
        if self._audit_logger:
            years = snapshot.yearly if snapshot.house_id else snapshot.combined
            await self._audit_logger.log_summaries_recomputed(
                scope=scope,
                reading_count=len(snapshot.readings),
                month_count=len(snapshot.monthly),
                year_count=len(years),
                user_id=user_id,
            )

    async def house_statistics(self, house_id: str, user_id: str) -> ReadingSnapshot:
        """Monthly, yearly and month-over-year figures for one house."""
        readings = await self._reading_storage.list_readings(user_id, house_id)
        snapshot = ReadingSnapshot(
            readings, user_id, house_id=house_id, attribution=self._attribution
        )
        await self._audit_recompute(house_id, snapshot, user_id)
        return snapshot

    async def overall_statistics(self, user_id: str) -> ReadingSnapshot:
        """Yearly figures per house and combined over all of the user's houses."""
        readings = await self._reading_storage.list_readings(user_id)
        snapshot = ReadingSnapshot(readings, user_id, attribution=self._attribution)
        await self._audit_recompute("all", snapshot, user_id)
        return snapshot


class ExportFlow:
    """
    Orchestrates the CSV export.

    The export file on disk is appended to on every saved reading and
    can be overwritten from storage at any time.
    """

    def __init__(
        self,
        reading_storage: ReadingStorageInterface,
        export_path: Path,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._reading_storage = reading_storage
        self._export_path = Path(export_path)
        self._audit_logger = audit_logger

    @property
    def export_path(self) -> Path:
        return self._export_path

    async def overwrite_export(
        self,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Rewrite the export file from all of the user's readings.

        Returns:
            Number of rows written

        Raises:
            ExportFormatError: If a reading cannot be written
        """
        correlation_id = correlation_id or create_correlation_id()

        readings = await self._reading_storage.list_readings(user_id)
        count = write_export(readings, self._export_path)

        if self._audit_logger:
            await self._audit_logger.log_export_written(
                path=str(self._export_path),
                row_count=count,
                mode="overwrite",
                user_id=user_id,
                correlation_id=correlation_id,
            )
        return count

    async def download_all(self, user_id: str) -> tuple[str, str]:
        """
        Build a download of all the user's readings straight from storage.

        Returns:
            (filename, csv_text)
        """
        readings = await self._reading_storage.list_readings(user_id)
        return DOWNLOAD_ALL_FILENAME, readings_to_csv(readings)

    def download_current(self) -> tuple[str, str]:
        """
        The export file as it is on disk.

        Raises:
            ExportNotFoundError: If nothing has been exported yet
        """
        return DOWNLOAD_CURRENT_FILENAME, read_export(self._export_path)


class PreferencesFlow:
    """Loads and saves the initial meter values."""

    def __init__(
        self,
        store: PreferencesStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger

    def load(self) -> StartNumbers:
        return self._store.load()

    async def save(self, numbers: StartNumbers, user_id: str) -> StartNumbers:
        self._store.save(numbers)
        if self._audit_logger:
            await self._audit_logger.log_preferences_saved(user_id=user_id)
        return numbers


class AppComponents:
    """Everything the app needs, wired to one set of storage backends."""

    def __init__(
        self,
        settings: Settings,
        reading_storage: ReadingStorageInterface,
        house_storage: HouseStorageInterface,
        audit_storage: Optional[AuditStorageInterface],
        feed: ChangeFeed,
    ):
        app = settings.app
        audit_logger = AuditLogger(audit_storage)

        self.settings = settings
        self.feed = feed
        self.reading_storage = reading_storage
        self.house_storage = house_storage
        self.audit_logger = audit_logger

        self.readings = ReadingFlow(
            reading_storage,
            house_storage,
            validator=ReadingValidator(reading_storage),
            audit_logger=audit_logger,
            export_path=app.export_path,
        )
        self.houses = HouseFlow(house_storage, reading_storage, audit_logger)
        self.statistics = StatisticsFlow(
            reading_storage, app.month_attribution, audit_logger
        )
        self.export = ExportFlow(reading_storage, app.export_path, audit_logger)
        self.preferences = PreferencesFlow(
            PreferencesStore(app.preferences_path), audit_logger
        )


def create_app_components(
    settings: Optional[Settings] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    APP_STORAGE_BACKEND picks the backend. When Google Sheets is selected
    but can't be reached, the app falls back to in-memory storage so the
    pages still render.
    """
    settings = settings or get_settings()
    feed = ChangeFeed()

    if settings.app.storage_backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.get_spreadsheet()
            return AppComponents(
                settings,
                GoogleSheetsReadingStorage(sheets_client, feed),
                GoogleSheetsHouseStorage(sheets_client, feed),
                GoogleSheetsAuditStorage(sheets_client),
                feed,
            )
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", backend="google_sheets", error=str(e))

    return AppComponents(
        settings,
        InMemoryReadingStorage(feed),
        InMemoryHouseStorage(feed),
        InMemoryAuditStorage(),
        feed,
    )
