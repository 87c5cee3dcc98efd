"""
Row Codecs

Flat string rows for readings and houses. The same reading layout is
used for the Readings worksheet and for the CSV export, so a sheet can
be downloaded and re-imported without any mapping.

Numbers are written so that parsing them back gives the same float:
integral values without a fractional part, everything else via repr().
"""

from datetime import datetime
from typing import Optional

from meterlog.models.reading import House, Reading


READING_COLUMNS = [
    "id",
    "date",
    "electricity_high",
    "electricity_low",
    "gas",
    "water",
    "house_id",
    "user_id",
    "created_at",
    "updated_at",
]

HOUSE_COLUMNS = [
    "id",
    "user_id",
    "name",
    "is_default",
    "created_at",
    "updated_at",
]


def format_number(value: Optional[float]) -> str:
    """Stable text form of a meter value; empty for an untracked meter."""
    if value is None:
        return ""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def parse_number(text: str) -> Optional[float]:
    text = text.strip()
    return float(text) if text else None


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def reading_to_row(reading: Reading) -> list[str]:
    """Convert a Reading to a row in READING_COLUMNS order."""
    return [
        reading.id,
        reading.date,
        format_number(reading.electricity_high),
        format_number(reading.electricity_low),
        format_number(reading.gas),
        format_number(reading.water),
        reading.house_id,
        reading.user_id,
        reading.created_at.isoformat(),
        reading.updated_at.isoformat(),
    ]


def row_to_reading(row: list) -> Reading:
    """
    Convert a row in READING_COLUMNS order to a Reading.

    Missing trailing cells are tolerated; missing timestamps default to now.
    """
    values = {
        "id": _safe_get(row, 0),
        "date": _safe_get(row, 1),
        "electricity_high": float(_safe_get(row, 2, "0")),
        "electricity_low": parse_number(_safe_get(row, 3)),
        "gas": float(_safe_get(row, 4, "0")),
        "water": parse_number(_safe_get(row, 5)),
        "house_id": _safe_get(row, 6),
        "user_id": _safe_get(row, 7),
    }
    if _safe_get(row, 8):
        values["created_at"] = datetime.fromisoformat(_safe_get(row, 8))
    if _safe_get(row, 9):
        values["updated_at"] = datetime.fromisoformat(_safe_get(row, 9))
    return Reading(**values)


def house_to_row(house: House) -> list[str]:
    return [
        house.id,
        house.user_id,
        house.name,
        str(house.is_default),
        house.created_at.isoformat(),
        house.updated_at.isoformat(),
    ]


def row_to_house(row: list) -> House:
    values = {
        "id": _safe_get(row, 0),
        "user_id": _safe_get(row, 1),
        "name": _safe_get(row, 2),
        "is_default": _safe_get(row, 3).lower() == "true",
    }
    if _safe_get(row, 4):
        values["created_at"] = datetime.fromisoformat(_safe_get(row, 4))
    if _safe_get(row, 5):
        values["updated_at"] = datetime.fromisoformat(_safe_get(row, 5))
    return House(**values)
