"""
CSV Export

Plain comma separated export of readings, in the same column layout as
the Readings worksheet.

DESIGN DECISION: No quoting or escaping. The file is meant to be opened
by hand and diffed; instead of quoting, a value that would need it is
refused with ExportFormatError. Free text never reaches a reading
(ids are uuids, dates are ISO strings), so in practice this only fires
on corrupted data.
"""

from pathlib import Path
from typing import Iterable, Union

import structlog

from meterlog.models.reading import Reading
from meterlog.services.storage.rows import READING_COLUMNS, reading_to_row, row_to_reading


logger = structlog.get_logger(__name__)

PathLike = Union[str, Path]


class ExportError(Exception):
    """Base exception for export operations."""
    pass


class ExportFormatError(ExportError):
    """A value cannot be written without quoting, or a line cannot be parsed."""
    pass


class ExportNotFoundError(ExportError):
    """The export file doesn't exist yet."""
    pass


def header_line() -> str:
    return ",".join(READING_COLUMNS) + "\n"


def reading_to_line(reading: Reading) -> str:
    """One CSV line (with trailing newline) for a reading."""
    cells = reading_to_row(reading)
    for column, cell in zip(READING_COLUMNS, cells):
        if "," in cell or "\n" in cell or "\r" in cell:
            raise ExportFormatError(
                f"Value for '{column}' of reading {reading.id} cannot be exported: {cell!r}"
            )
    return ",".join(cells) + "\n"


def readings_to_csv(readings: Iterable[Reading]) -> str:
    """Header plus one line per reading, in the given order."""
    return header_line() + "".join(reading_to_line(r) for r in readings)


def parse_csv(text: str) -> list[Reading]:
    """
    Parse export text back into readings.

    Blank lines are skipped. The header must match the export columns.

    Raises:
        ExportFormatError: On a wrong header, wrong cell count or bad value
    """
    lines = text.splitlines()
    if not lines:
        return []

    if lines[0].strip() != ",".join(READING_COLUMNS):
        raise ExportFormatError(f"Unexpected header: {lines[0]!r}")

    readings = []
    for line_no, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        cells = line.split(",")
        if len(cells) != len(READING_COLUMNS):
            raise ExportFormatError(
                f"Line {line_no}: expected {len(READING_COLUMNS)} values, got {len(cells)}"
            )
        try:
            readings.append(row_to_reading(cells))
        except ValueError as e:
            raise ExportFormatError(f"Line {line_no}: {e}") from e
    return readings


def write_export(readings: Iterable[Reading], path: PathLike) -> int:
    """
    Overwrite the export file with the given readings.

    The content is built before the file is opened, so a format error
    leaves an existing export untouched.

    Returns:
        Number of reading rows written
    """
    readings = list(readings)
    content = readings_to_csv(readings)

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")

    logger.info("export_written", path=str(path), row_count=len(readings))
    return len(readings)


def append_reading(path: PathLike, reading: Reading) -> None:
    """Append one reading, writing the header first when the file is new."""
    line = reading_to_line(reading)

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    is_new = not path.exists() or path.stat().st_size == 0
    with path.open("a", encoding="utf-8") as f:
        if is_new:
            f.write(header_line())
        f.write(line)

    logger.debug("export_appended", path=str(path), reading_id=reading.id)


def read_export(path: PathLike) -> str:
    """
    Raw export file content.

    Raises:
        ExportNotFoundError: If no export has been written yet
    """
    path = Path(path)
    if not path.exists():
        raise ExportNotFoundError(f"Export file not found: {path}")
    return path.read_text(encoding="utf-8")
