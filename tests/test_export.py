"""
Tests for the CSV export and the shared row codec.
"""

from datetime import datetime, timezone

import pytest

from meterlog.models.reading import House, Reading
from meterlog.services.export import (
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
from meterlog.services.storage.rows import (
    format_number,
    house_to_row,
    row_to_house,
    row_to_reading,
)


def make_reading(**overrides) -> Reading:
    values = {
        "id": "r-1",
        "date": "2024-03-01",
        "electricity_high": 1234.5,
        "electricity_low": 567.0,
        "gas": 89.125,
        "water": None,
        "house_id": "house-1",
        "user_id": "user-1",
        "created_at": datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc),
        "updated_at": datetime(2024, 3, 2, 9, 30, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return Reading(**values)


class TestNumberFormat:
    """Tests for the stable number format."""

    def test_integral_values_have_no_fraction(self):
        assert format_number(100.0) == "100"
        assert format_number(0) == "0"

    def test_fractions_use_repr(self):
        assert format_number(0.1) == "0.1"
        assert format_number(1234.5) == "1234.5"

    def test_none_is_empty(self):
        assert format_number(None) == ""


class TestReadingLines:
    """Tests for single export lines."""

    def test_header(self):
        assert header_line() == (
            "id,date,electricity_high,electricity_low,gas,water,"
            "house_id,user_id,created_at,updated_at\n"
        )

    def test_line(self):
        line = reading_to_line(make_reading())
        assert line == (
            "r-1,2024-03-01,1234.5,567,89.125,,house-1,user-1,"
            "2024-03-01T08:00:00+00:00,2024-03-02T09:30:00+00:00\n"
        )

    def test_value_with_comma_is_refused(self):
        with pytest.raises(ExportFormatError):
            reading_to_line(make_reading(house_id="a,b"))

    def test_value_with_newline_is_refused(self):
        with pytest.raises(ExportFormatError):
            reading_to_line(make_reading(id="r\n1"))


class TestRoundTrip:
    """Export then parse reproduces every field."""

    def test_round_trip(self):
        readings = [
            make_reading(),
            make_reading(
                id="r-2",
                date="2024-04-01",
                electricity_high=1300.25,
                electricity_low=None,
                gas=95.3,
                water=12.75,
            ),
            make_reading(id="r-3", date="2024-05-01", electricity_high=0.1 + 0.2, gas=1e6),
        ]
        parsed = parse_csv(readings_to_csv(readings))

        assert parsed == readings

    def test_empty_text(self):
        assert parse_csv("") == []

    def test_header_only(self):
        assert parse_csv(header_line()) == []

    def test_blank_lines_skipped(self):
        text = readings_to_csv([make_reading()]) + "\n\n"
        assert len(parse_csv(text)) == 1

    def test_wrong_header(self):
        with pytest.raises(ExportFormatError):
            parse_csv("a,b,c\n")

    def test_wrong_cell_count(self):
        with pytest.raises(ExportFormatError):
            parse_csv(header_line() + "r-1,2024-03-01\n")

    def test_bad_number(self):
        line = reading_to_line(make_reading()).replace("1234.5", "lots")
        with pytest.raises(ExportFormatError):
            parse_csv(header_line() + line)


class TestExportFiles:
    """Tests for writing and reading the export file."""

    def test_write_and_read(self, tmp_path):
        path = tmp_path / "export" / "energy_reading.csv"
        count = write_export([make_reading(), make_reading(id="r-2")], path)

        assert count == 2
        assert parse_csv(read_export(path))[1].id == "r-2"

    def test_write_overwrites(self, tmp_path):
        path = tmp_path / "energy_reading.csv"
        write_export([make_reading(), make_reading(id="r-2")], path)
        write_export([make_reading(id="r-3")], path)

        assert [r.id for r in parse_csv(read_export(path))] == ["r-3"]

    def test_format_error_keeps_existing_file(self, tmp_path):
        path = tmp_path / "energy_reading.csv"
        write_export([make_reading()], path)
        before = read_export(path)

        with pytest.raises(ExportFormatError):
            write_export([make_reading(house_id="a,b")], path)
        assert read_export(path) == before

    def test_append_writes_header_once(self, tmp_path):
        path = tmp_path / "energy_reading.csv"
        append_reading(path, make_reading())
        append_reading(path, make_reading(id="r-2"))

        text = read_export(path)
        assert text.count(header_line()) == 1
        assert [r.id for r in parse_csv(text)] == ["r-1", "r-2"]

    def test_read_missing(self, tmp_path):
        with pytest.raises(ExportNotFoundError):
            read_export(tmp_path / "missing.csv")


class TestRowCodec:
    """Tests for the worksheet row codec."""

    def test_missing_timestamps_tolerated(self):
        reading = row_to_reading(["r-1", "2024-03-01", "10", "", "5", "", "house-1", "user-1"])
        assert reading.id == "r-1"
        assert reading.electricity_low is None
        assert reading.water is None
        assert reading.created_at is not None

    def test_empty_required_numbers_read_as_zero(self):
        reading = row_to_reading(["r-1", "2024-03-01", "", "", "", "", "house-1", "user-1"])
        assert reading.electricity_high == 0
        assert reading.gas == 0

    def test_house_round_trip(self):
        house = House(user_id="user-1", name="Home", is_default=True)
        assert row_to_house(house_to_row(house)) == house
