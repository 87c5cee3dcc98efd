"""Readings export package."""

from meterlog.services.export.csv_export import (
    ExportError,
    ExportFormatError,
    ExportNotFoundError,
    append_reading,
    header_line,
    parse_csv,
    read_export,
    reading_to_line,
    readings_to_csv,
    write_export,
)

__all__ = [
    "ExportError",
    "ExportFormatError",
    "ExportNotFoundError",
    "append_reading",
    "header_line",
    "parse_csv",
    "read_export",
    "reading_to_line",
    "readings_to_csv",
    "write_export",
]
