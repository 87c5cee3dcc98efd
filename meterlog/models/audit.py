"""
Audit Models for meterlog

Every change to a user's houses and readings is logged for audit purposes.
This provides:
1. Traceability of edits to cumulative counters
2. Debugging information when a summary looks wrong
3. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from meterlog.models.reading import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Readings
    READING_SAVED = "reading_saved"
    READING_UPDATED = "reading_updated"
    READING_DELETED = "reading_deleted"
    READING_REJECTED = "reading_rejected"

    # Houses
    HOUSE_CREATED = "house_created"
    HOUSE_UPDATED = "house_updated"
    HOUSE_DELETED = "house_deleted"
    DEFAULT_HOUSE_CHANGED = "default_house_changed"

    # Derived data
    SUMMARIES_RECOMPUTED = "summaries_recomputed"
    EXPORT_WRITTEN = "export_written"

    # Preferences
    PREFERENCES_SAVED = "preferences_saved"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'reading', 'house', 'export')"
    )
    entity_id: Optional[str] = None

    # Owner and correlation
    user_id: Optional[str] = None
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a save and its export append)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         user_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.user_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.reading_saved(reading_id, house_id, date, user_id)
    """

    @staticmethod
    def reading_saved(
        reading_id: str,
        house_id: str,
        reading_date: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.READING_SAVED,
            entity_type="reading",
            entity_id=reading_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Reading saved for {reading_date}",
            details={
                "house_id": house_id,
                "date": reading_date,
            },
            is_user_action=True,
        )

    @staticmethod
    def reading_updated(
        reading_id: str,
        changed_fields: list[str],
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.READING_UPDATED,
            entity_type="reading",
            entity_id=reading_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Reading updated ({len(changed_fields)} fields)",
            details={
                "changed_fields": changed_fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def reading_deleted(
        reading_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.READING_DELETED,
            entity_type="reading",
            entity_id=reading_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description="Reading deleted",
            is_user_action=True,
        )

    @staticmethod
    def reading_rejected(
        house_id: str,
        reading_date: str,
        issues: list[dict],
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.READING_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="house",
            entity_id=house_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Reading for {reading_date} rejected with {len(issues)} issues",
            details={
                "date": reading_date,
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def house_created(
        house_id: str,
        name: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HOUSE_CREATED,
            entity_type="house",
            entity_id=house_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"House created: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def house_updated(
        house_id: str,
        name: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HOUSE_UPDATED,
            entity_type="house",
            entity_id=house_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"House updated: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def house_deleted(
        house_id: str,
        orphaned_readings: int,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HOUSE_DELETED,
            severity=AuditSeverity.WARNING if orphaned_readings else AuditSeverity.INFO,
            entity_type="house",
            entity_id=house_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description="House deleted",
            details={"orphaned_readings": orphaned_readings},
            is_user_action=True,
        )

    @staticmethod
    def default_house_changed(
        house_id: str,
        previous_default_ids: list[str],
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEFAULT_HOUSE_CHANGED,
            entity_type="house",
            entity_id=house_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description="Default house changed",
            details={"previous_default_ids": previous_default_ids},
            is_user_action=True,
        )

    @staticmethod
    def summaries_recomputed(
        scope: str,
        reading_count: int,
        month_count: int,
        year_count: int,
        user_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARIES_RECOMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="summary",
            entity_id=scope,
            user_id=user_id,
            description=f"Summaries recomputed from {reading_count} readings",
            details={
                "reading_count": reading_count,
                "month_count": month_count,
                "year_count": year_count,
            },
        )

    @staticmethod
    def export_written(
        path: str,
        row_count: int,
        mode: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_WRITTEN,
            entity_type="export",
            entity_id=path,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Export {mode}: {row_count} rows",
            details={
                "path": path,
                "row_count": row_count,
                "mode": mode,
            },
        )

    @staticmethod
    def preferences_saved(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PREFERENCES_SAVED,
            entity_type="preferences",
            user_id=user_id,
            description="Initial meter readings saved",
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

