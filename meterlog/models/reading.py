"""
Core Data Models for meterlog

These models define the schemas for everything a user records:
houses, cumulative meter readings and the initial meter values.

DESIGN DECISION: Reading dates are kept as ISO strings (YYYY-MM-DD).
The summary engine orders readings lexically, so a malformed date still
sorts somewhere instead of crashing a statistics page. Format checks
belong to the data-entry validator, not to the model.

Optional meters (low tariff, water) are None when not tracked.
They are only converted to 0 at the point of arithmetic.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    """Timezone-aware UTC timestamp used for audit fields."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class MonthAttribution(str, Enum):
    """
    Which month a delta between two consecutive readings belongs to.

    CURRENT: the month of the later reading
             (a reading on March 1st closes February, logged as March).
    PREVIOUS: the month of the earlier reading
              (the month in which the usage was generated).

    A deployment picks one and applies it to every view.
    """
    CURRENT = "current"
    PREVIOUS = "previous"


class MeterField(str, Enum):
    """Cumulative counters tracked on every reading."""
    ELECTRICITY_HIGH = "electricity_high"
    ELECTRICITY_LOW = "electricity_low"
    GAS = "gas"
    WATER = "water"


OPTIONAL_FIELDS = (MeterField.ELECTRICITY_LOW, MeterField.WATER)


class ChangeType(str, Enum):
    """Row-level change emitted by the store."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeTable(str, Enum):
    READINGS = "readings"
    HOUSES = "houses"


# =============================================================================
# READINGS
# =============================================================================

class ReadingInput(BaseModel):
    """
    Values entered by the user for one meter snapshot.

    The store assigns id, owner and timestamps when it becomes a Reading.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: str = Field(
        ...,
        description="Reading date (YYYY-MM-DD)"
    )
    electricity_high: float = Field(
        ...,
        description="Cumulative high tariff electricity (kWh)"
    )
    electricity_low: Optional[float] = Field(
        default=None,
        description="Cumulative low tariff electricity (kWh), None if not tracked"
    )
    gas: float = Field(
        ...,
        description="Cumulative gas (m³)"
    )
    water: Optional[float] = Field(
        default=None,
        description="Cumulative water (m³), None if not tracked"
    )
    house_id: str = Field(
        ...,
        min_length=1,
        description="House this reading belongs to"
    )

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, v):
        """Accept date objects from form widgets."""
        if isinstance(v, datetime):
            return v.date().isoformat()
        if isinstance(v, date):
            return v.isoformat()
        return v


class Reading(ReadingInput):
    """
    One cumulative meter snapshot, as persisted.

    Within one house, readings sorted by date form non-decreasing
    counters. This is NOT enforced here; violations simply show up
    as negative deltas in the summaries.
    """

    id: str = Field(
        default_factory=new_id,
        description="Unique reading ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner of the reading"
    )
    created_at: datetime = Field(
        default_factory=utc_now,
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
    )

    @classmethod
    def from_input(cls, reading: ReadingInput, user_id: str) -> "Reading":
        return cls(user_id=user_id, **reading.model_dump())

    def value_of(self, field: MeterField) -> Optional[float]:
        return getattr(self, field.value)

    @property
    def month_key(self) -> str:
        return self.date[0:7]

    @property
    def year_key(self) -> str:
        return self.date[0:4]


# =============================================================================
# HOUSES
# =============================================================================

class House(BaseModel):
    """
    A house owned by a single user.

    At most one house per user should be the default; the house flow
    keeps that true when a default is set, the model does not.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: str = Field(..., min_length=1)
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    is_default: bool = Field(
        default=False,
        description="Opened when no house is selected"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# CHANGE NOTIFICATIONS
# =============================================================================

class ChangeEvent(BaseModel):
    """
    A row-level change published by the store.

    INSERT carries `new`, DELETE carries `old`, UPDATE carries both.
    """

    event_type: ChangeType
    table: ChangeTable
    new: Optional[Union[Reading, House]] = None
    old: Optional[Union[Reading, House]] = None
    emitted_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def check_payload(self) -> "ChangeEvent":
        if self.event_type in (ChangeType.INSERT, ChangeType.UPDATE) and self.new is None:
            raise ValueError(f"{self.event_type.value} event requires a new record")
        if self.event_type == ChangeType.DELETE and self.old is None:
            raise ValueError("DELETE event requires an old record")
        return self

    @property
    def record(self) -> Union[Reading, House]:
        """The record the event is about (new if present, else old)."""
        return self.new if self.new is not None else self.old

    @property
    def user_id(self) -> str:
        return self.record.user_id


# =============================================================================
# PREFERENCES
# =============================================================================

class StartNumbers(BaseModel):
    """Meter values before the first logged reading."""

    electricity_high: float = Field(default=0.0, ge=0)
    electricity_low: float = Field(default=0.0, ge=0)
    gas: float = Field(default=0.0, ge=0)
    water: float = Field(default=0.0, ge=0)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'negative', 'decreasing')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage reading validation.

    Stage 1: Schema validation (presence, sign, date format)
    Stage 2: Semantic validation (against the house's existing readings)
    """

    validated_at: datetime = Field(default_factory=utc_now)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]
