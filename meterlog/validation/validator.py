"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Date format
- Sign of the meter values
- This catches typos in the entry form

STAGE 2 - SEMANTIC VALIDATION:
- Counters going down compared to the previous reading
- Back-dated and duplicate dates
- Future date detection
- Meters that stopped being tracked
- This catches readings that are well formed but suspicious

WHY TWO STAGES:
1. Separation of concerns (structural vs logical)
2. Better error messages (know exactly what kind of issue)
3. Can skip stage 2 if stage 1 fails
4. Stage 2 needs the house's existing readings

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; the summary engine itself accepts anything and
simply shows a negative delta for a decreasing counter.
"""

from datetime import date, timedelta
from typing import Iterable, Optional

from meterlog.config import get_settings
from meterlog.models.reading import (
    MeterField,
    OPTIONAL_FIELDS,
    Reading,
    ReadingInput,
    ValidationIssue,
    ValidationResult,
)
from meterlog.services.storage import ReadingStorageInterface


_FIELD_LABELS = {
    MeterField.ELECTRICITY_HIGH: "Electricity (high)",
    MeterField.ELECTRICITY_LOW: "Electricity (low)",
    MeterField.GAS: "Gas",
    MeterField.WATER: "Water",
}


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None


class ReadingValidator:
    """
    Validates a meter reading through a two-stage pipeline.

    Stage 1: Schema validation (needs nothing but the reading)
    Stage 2: Semantic validation (against the house's existing readings)
    """

    def __init__(
        self,
        reading_storage: Optional[ReadingStorageInterface] = None,
        reject_decreasing: Optional[bool] = None,
        future_date_tolerance_days: Optional[int] = None,
    ):
        """
        Initialize validator.

        Args:
            reading_storage: Used by validate() to load existing readings.
                            If None, only check() with explicit readings works.
            reject_decreasing: Treat a decreasing counter as an error.
                              Defaults to APP_REJECT_DECREASING_READINGS.
            future_date_tolerance_days: Defaults to APP_FUTURE_DATE_TOLERANCE_DAYS.
        """
        settings = get_settings().app
        self._storage = reading_storage
        self._reject_decreasing = (
            settings.reject_decreasing_readings
            if reject_decreasing is None
            else reject_decreasing
        )
        self._future_tolerance = (
            settings.future_date_tolerance_days
            if future_date_tolerance_days is None
            else future_date_tolerance_days
        )

    def _validate_schema(
        self,
        reading: ReadingInput,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not reading.date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="Reading date is required",
                severity="error",
                suggested_fix="Pick the date the meters were read",
            ))
        elif _parse_date(reading.date) is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message=f"Reading date '{reading.date}' is not a valid date",
                severity="error",
                suggested_fix="Use the YYYY-MM-DD format",
            ))

        for field in MeterField:
            value = getattr(reading, field.value)
            if value is not None and value < 0:
                issues.append(ValidationIssue(
                    field=field.value,
                    issue_type="negative",
                    message=f"{_FIELD_LABELS[field]} cannot be negative",
                    severity="error",
                    suggested_fix="Enter the number shown on the meter",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        reading: ReadingInput,
        existing: list[Reading],
        today: date,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation against the same house's readings.

        The reading is compared with the closest reading dated on or
        before it; that is the counter it must not fall below.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        reading_date = _parse_date(reading.date)

        # Future date check (with tolerance)
        max_future_date = today + timedelta(days=self._future_tolerance)
        if reading_date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Reading date ({reading.date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if existing:
            latest = max(existing, key=lambda r: r.date)
            if reading.date < latest.date:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="backdated",
                    message=(
                        f"Reading date ({reading.date}) is before the latest "
                        f"reading ({latest.date})"
                    ),
                    severity="warning",
                    suggested_fix="Summaries will be recomputed in date order",
                ))

            if any(r.date == reading.date for r in existing):
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="duplicate_date",
                    message=f"A reading for {reading.date} already exists for this house",
                    severity="warning",
                    suggested_fix="Edit the existing reading instead",
                ))

        earlier = [r for r in existing if r.date <= reading.date]
        previous = earlier[-1] if earlier else None
        if previous is not None:
            severity = "error" if self._reject_decreasing else "warning"
            for field in MeterField:
                new_value = getattr(reading, field.value)
                old_value = previous.value_of(field)
                if new_value is None or old_value is None:
                    continue
                if new_value < old_value:
                    issues.append(ValidationIssue(
                        field=field.value,
                        issue_type="decreasing",
                        message=(
                            f"{_FIELD_LABELS[field]} ({new_value:g}) is lower than "
                            f"the previous reading ({old_value:g} on {previous.date})"
                        ),
                        severity=severity,
                        suggested_fix="Meter counters only go up; check the value",
                    ))

            for field in OPTIONAL_FIELDS:
                if previous.value_of(field) is not None and getattr(reading, field.value) is None:
                    issues.append(ValidationIssue(
                        field=field.value,
                        issue_type="no_longer_tracked",
                        message=(
                            f"{_FIELD_LABELS[field]} was recorded before but is "
                            f"missing now"
                        ),
                        severity="warning",
                        suggested_fix="Leave it empty only if the meter was removed",
                    ))

        # A back-dated reading must not exceed the reading that follows it
        later = [r for r in existing if r.date > reading.date]
        following = later[0] if later else None
        if following is not None:
            severity = "error" if self._reject_decreasing else "warning"
            for field in MeterField:
                new_value = getattr(reading, field.value)
                next_value = following.value_of(field)
                if new_value is None or next_value is None:
                    continue
                if new_value > next_value:
                    issues.append(ValidationIssue(
                        field=field.value,
                        issue_type="decreasing",
                        message=(
                            f"{_FIELD_LABELS[field]} ({new_value:g}) is higher than "
                            f"the next reading ({next_value:g} on {following.date})"
                        ),
                        severity=severity,
                        suggested_fix="Meter counters only go up; check the value",
                    ))

        is_valid =not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def check(
        self,
        reading: ReadingInput,
        existing: Iterable[Reading] = (),
        exclude_reading_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run both stages against explicit existing readings.

        Args:
            reading: The reading to validate
            existing: Readings already stored for the same house
            exclude_reading_id: Skip this id in `existing` (when editing)
            today: Reference date for the future check

        Returns:
            ValidationResult with all issues found
        """
        others = sorted(
            (
                r for r in existing
                if r.house_id == reading.house_id and r.id != exclude_reading_id
            ),
            key=lambda r: r.date,
        )

        all_issues = []

        # Stage 1: Schema validation
        schema_valid, schema_issues = self._validate_schema(reading)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(
                reading, others, today or date.today()
            )
            all_issues.extend(semantic_issues)

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=[i.message for i in all_issues if i.severity == "warning"],
        )

    async def validate(
        self,
        reading: ReadingInput,
        user_id: str,
        exclude_reading_id: Optional[str] = None,
    ) -> ValidationResult:
        """
        Run full two-stage validation, loading the house's readings from storage.

        Raises:
            ValueError: If the validator has no storage
        """
        if self._storage is None:
            raise ValueError("ReadingValidator.validate() requires reading storage")

        existing = await self._storage.list_readings(user_id, reading.house_id)
        return self.check(reading, existing, exclude_reading_id=exclude_reading_id)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what the entry form shows.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed!"

        lines = []

        if result.has_errors:
            lines.append("❌ The reading cannot be saved:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
