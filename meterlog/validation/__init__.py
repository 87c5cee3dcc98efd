"""Reading validation package."""

from meterlog.validation.validator import ReadingValidator

__all__ = ["ReadingValidator"]
