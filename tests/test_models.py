"""
Tests for meterlog

Test strategy:
1. Unit tests for individual components (models, engine, validators)
2. Integration tests for flows (with in-memory storage)
3. No real API calls in tests
"""

import pytest
from datetime import date, datetime
from uuid import uuid4

from meterlog.models.reading import (
    ChangeEvent,
    ChangeTable,
    ChangeType,
    House,
    MeterField,
    Reading,
    ReadingInput,
    StartNumbers,
    ValidationIssue,
    ValidationResult,
)
from meterlog.models.summary import MonthlySummary, YearlySummary
from meterlog.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestReadingModels:
    """Tests for reading-related Pydantic models."""

    def test_reading_input_creation(self):
        """Test ReadingInput model creation."""
        reading = ReadingInput(
            date="2024-03-01",
            electricity_high=1234.5,
            gas=321,
            house_id="house-1",
        )
        assert reading.date == "2024-03-01"
        assert reading.electricity_low is None
        assert reading.water is None

    def test_reading_input_accepts_date_objects(self):
        """Date pickers hand over date objects."""
        reading = ReadingInput(
            date=date(2024, 3, 1),
            electricity_high=1,
            gas=1,
            house_id="house-1",
        )
        assert reading.date == "2024-03-01"

        reading = ReadingInput(
            date=datetime(2024, 3, 1, 18, 30),
            electricity_high=1,
            gas=1,
            house_id="house-1",
        )
        assert reading.date == "2024-03-01"

    def test_reading_input_strips_whitespace(self):
        reading = ReadingInput(
            date="  2024-03-01 ",
            electricity_high=1,
            gas=1,
            house_id=" house-1 ",
        )
        assert reading.date == "2024-03-01"
        assert reading.house_id == "house-1"

    def test_reading_input_requires_house(self):
        with pytest.raises(ValueError):
            ReadingInput(date="2024-03-01", electricity_high=1, gas=1, house_id="")

    def test_reading_from_input(self):
        """Test Reading gets id, owner and timestamps."""
        reading_input = ReadingInput(
            date="2024-03-01",
            electricity_high=100,
            electricity_low=50,
            gas=10,
            water=3,
            house_id="house-1",
        )
        reading = Reading.from_input(reading_input, "user-1")

        assert reading.user_id == "user-1"
        assert reading.id
        assert reading.created_at.tzinfo is not None
        assert reading.value_of(MeterField.ELECTRICITY_LOW) == 50
        assert reading.month_key == "2024-03"
        assert reading.year_key == "2024"

    def test_readings_get_unique_ids(self):
        first = Reading(date="2024-01-01", electricity_high=1, gas=1, house_id="h", user_id="u")
        second = Reading(date="2024-01-01", electricity_high=1, gas=1, house_id="h", user_id="u")
        assert first.id != second.id

    def test_malformed_date_is_kept(self):
        """The model doesn't reject dates; the validator does."""
        reading = Reading(date="not-a-date", electricity_high=1, gas=1, house_id="h", user_id="u")
        assert reading.date == "not-a-date"


class TestHouseModel:
    """Tests for House."""

    def test_house_creation(self):
        house = House(user_id="user-1", name="  Home  ")
        assert house.name == "Home"
        assert house.is_default is False

    def test_house_name_length(self):
        with pytest.raises(ValueError):
            House(user_id="user-1", name="x" * 101)

    def test_house_name_required(self):
        with pytest.raises(ValueError):
            House(user_id="user-1", name="")


class TestChangeEvent:
    """Tests for ChangeEvent payload rules."""

    def _reading(self) -> Reading:
        return Reading(date="2024-01-01", electricity_high=1, gas=1, house_id="h", user_id="u")

    def test_insert_requires_new(self):
        with pytest.raises(ValueError):
            ChangeEvent(event_type=ChangeType.INSERT, table=ChangeTable.READINGS)

    def test_delete_requires_old(self):
        with pytest.raises(ValueError):
            ChangeEvent(
                event_type=ChangeType.DELETE,
                table=ChangeTable.READINGS,
                new=self._reading(),
            )

    def test_record_and_user(self):
        reading = self._reading()
        event = ChangeEvent(event_type=ChangeType.DELETE, table=ChangeTable.READINGS, old=reading)
        assert event.record == reading
        assert event.user_id == "u"

    def test_house_payload(self):
        house = House(user_id="u", name="Home")
        event = ChangeEvent(event_type=ChangeType.INSERT, table=ChangeTable.HOUSES, new=house)
        assert isinstance(event.new, House)


class TestStartNumbers:
    """Tests for StartNumbers."""

    def test_defaults(self):
        numbers = StartNumbers()
        assert numbers.electricity_high == 0
        assert numbers.water == 0

    def test_rejects_negative(self):
        with pytest.raises(ValueError):
            StartNumbers(gas=-1)


class TestSummaryModels:
    """Tests for derived usage models."""

    def test_monthly_keys(self):
        summary = MonthlySummary(month="2024-03")
        assert summary.year == "2024"
        assert summary.calendar_month == "03"

    def test_yearly_defaults(self):
        summary = YearlySummary(year="2024")
        assert summary.monthly_breakdown == ()
        assert summary.display_value("electricity_low") is None


class TestValidationModels:
    """Tests for validation models."""

    def test_validation_issue_creation(self):
        """Test ValidationIssue model."""
        issue = ValidationIssue(
            field="gas",
            issue_type="decreasing",
            message="Gas is lower than the previous reading",
            severity="error",
            suggested_fix="Check the meter",
        )
        assert issue.field == "gas"
        assert issue.severity == "error"

    def test_validation_issue_severity_validation(self):
        """Test severity must be error, warning, or info."""
        with pytest.raises(ValueError):
            ValidationIssue(
                field="test",
                issue_type="test",
                message="test",
                severity="invalid",
            )

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(field="date", issue_type="missing", message="Missing", severity="error"),
                ValidationIssue(field="date", issue_type="future_date", message="Future", severity="warning"),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert [i.issue_type for i in result.errors] == ["missing"]


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.READING_SAVED,
            severity=AuditSeverity.INFO,
            entity_type="reading",
            entity_id="reading-1",
            description="Reading saved",
        )
        assert event.event_type == AuditEventType.READING_SAVED
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.HOUSE_CREATED,
            description="House created",
            correlation_id=correlation_id,
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "house_created"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_audit_event_to_sheets_row(self):
        """Test conversion to spreadsheet row."""
        event = AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description="Test error",
            error_message="Something went wrong",
        )
        row = event.to_sheets_row()
        assert isinstance(row, list)
        assert len(row) == 12
        assert row[2] == "system_error"
        assert row[3] == "error"

    def test_audit_event_builder_reading_saved(self):
        """Test AuditEventBuilder.reading_saved."""
        correlation_id = uuid4()
        event = AuditEventBuilder.reading_saved(
            reading_id="reading-1",
            house_id="house-1",
            reading_date="2024-03-01",
            user_id="user-1",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.READING_SAVED
        assert event.details["house_id"] == "house-1"
        assert event.is_user_action is True

    def test_house_deleted_severity(self):
        """Deleting a house that still has readings is a warning."""
        assert AuditEventBuilder.house_deleted("h", 0, "u").severity == AuditSeverity.INFO
        assert AuditEventBuilder.house_deleted("h", 3, "u").severity == AuditSeverity.WARNING

    def test_audit_event_builder_system_error(self):
        """Test AuditEventBuilder.system_error."""
        event = AuditEventBuilder.system_error(
            error_type="ConnectionError",
            error_message="Failed to connect",
            details={"service": "google_sheets"},
        )
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "Failed to connect"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
