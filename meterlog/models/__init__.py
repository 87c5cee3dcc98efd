"""
Data Models Package

This package contains all Pydantic models used in meterlog.
All data flowing through the system must conform to these schemas.
"""

from meterlog.models.reading import (
    ChangeEvent,
    ChangeTable,
    ChangeType,
    House,
    MeterField,
    MonthAttribution,
    Reading,
    ReadingInput,
    StartNumbers,
    ValidationIssue,
    ValidationResult,
)
from meterlog.models.summary import (
    MonthComparison,
    MonthComparisonEntry,
    MonthlySummary,
    UsageChange,
    UsageFields,
    YearlySummary,
)
from meterlog.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Reading models
    "ChangeEvent",
    "ChangeTable",
    "ChangeType",
    "House",
    "MeterField",
    "MonthAttribution",
    "Reading",
    "ReadingInput",
    "StartNumbers",
    "ValidationIssue",
    "ValidationResult",
    # Summary models
    "MonthComparison",
    "MonthComparisonEntry",
    "MonthlySummary",
    "UsageChange",
    "UsageFields",
    "YearlySummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
