"""
Audit Logger

DESIGN DECISION: Every change to houses, readings and exports is logged.
This provides:
1. Complete traceability
2. Debugging capability when a summary looks wrong
3. User can see history of their edits

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from meterlog.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from meterlog.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_reading_saved(
        self,
        reading_id: str,
        house_id: str,
        reading_date: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.reading_saved(
            reading_id=reading_id,
            house_id=house_id,
            reading_date=reading_date,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_reading_updated(
        self,
        reading_id: str,
        changed_fields: list[str],
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.reading_updated(
            reading_id=reading_id,
            changed_fields=changed_fields,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_reading_deleted(
        self,
        reading_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.reading_deleted(
            reading_id=reading_id,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_reading_rejected(
        self,
        house_id: str,
        reading_date: str,
        issues: list[dict],
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a reading refused by validation."""
        await self.log(AuditEventBuilder.reading_rejected(
            house_id=house_id,
            reading_date=reading_date,
            issues=issues,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_house_created(
        self,
        house_id: str,
        name: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.house_created(
            house_id=house_id,
            name=name,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_house_updated(
        self,
        house_id: str,
        name: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.house_updated(
            house_id=house_id,
            name=name,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_house_deleted(
        self,
        house_id: str,
        orphaned_readings: int,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log house deletion; readings left behind raise the severity."""
        await self.log(AuditEventBuilder.house_deleted(
            house_id=house_id,
            orphaned_readings=orphaned_readings,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_default_house_changed(
        self,
        house_id: str,
        previous_default_ids: list[str],
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.default_house_changed(
            house_id=house_id,
            previous_default_ids=previous_default_ids,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_summaries_recomputed(
        self,
        scope: str,
        reading_count: int,
        month_count: int,
        year_count: int,
        user_id: str,
    ) -> None:
        await self.log(AuditEventBuilder.summaries_recomputed(
            scope=scope,
            reading_count=reading_count,
            month_count=month_count,
            year_count=year_count,
            user_id=user_id,
        ))

    async def log_export_written(
        self,
        path: str,
        row_count: int,
        mode: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.export_written(
            path=path,
            row_count=row_count,
            mode=mode,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_preferences_saved(self, user_id: str) -> None:
        await self.log(AuditEventBuilder.preferences_saved(user_id=user_id))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., saving a reading).
    Pass it through all subsequent operations.
    """
    return uuid4()
