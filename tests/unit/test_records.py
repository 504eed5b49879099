"""
Unit Tests - Core Records
"""
from datetime import date, datetime, timezone

import pytest

from src.core.records import MISSING, Dataset, TimeWindow, get_path, jsonable, parse_timestamp


class TestTimestamps:
    """Tests for timestamp parsing and windows"""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2024-03-04T10:00:00Z", datetime(2024, 3, 4, 10, tzinfo=timezone.utc)),
            ("2024-03-04T12:00:00+02:00", datetime(2024, 3, 4, 10, tzinfo=timezone.utc)),
            ("2024-03-04", datetime(2024, 3, 4, tzinfo=timezone.utc)),
            (date(2024, 3, 4), datetime(2024, 3, 4, tzinfo=timezone.utc)),
            ("not a date", None),
            (None, None),
        ],
    )
    def test_parse_timestamp(self, value, expected):
        """Test naive values are UTC and bad input is None"""
        assert parse_timestamp(value) == expected

    def test_window_is_half_open(self, march_2024):
        """Test the start is included and the end excluded"""
        assert march_2024.contains("2024-03-01T00:00:00Z")
        assert not march_2024.contains("2024-04-01T00:00:00Z")
        assert not march_2024.contains(None)

    def test_previous_window(self):
        """Test the preceding window has the same length"""
        window = TimeWindow("2024-03-10", "2024-03-20")

        previous = window.previous()

        assert previous.start == datetime(2024, 2, 29, tzinfo=timezone.utc)
        assert previous.end == window.start

    def test_inverted_window(self):
        """Test end before start is rejected"""
        with pytest.raises(ValueError):
            TimeWindow("2024-03-20", "2024-03-10")


class TestDataset:
    """Tests for the Dataset bundle"""

    def test_frame(self, dataset):
        """Test tables convert to polars frames"""
        frame = dataset.frame("attendance")

        assert frame.height == 10
        assert frame["status"].to_list().count("Present") == 5
        assert Dataset().frame("payments").is_empty()

    def test_unknown_table(self, dataset):
        """Test unknown table names"""
        with pytest.raises(KeyError):
            dataset.frame("grades")

    def test_from_dict_copies_rows(self):
        """Test omitted tables are empty and rows are copied"""
        rows = [{"id": "s1", "role": "Student"}]

        dataset = Dataset.from_dict({"users": rows})
        dataset.users[0]["role"] = "Teacher"

        assert rows[0]["role"] == "Student"
        assert dataset.courses == []
        assert [s["id"] for s in Dataset.from_dict({"users": rows}).students()] == ["s1"]


class TestRowHelpers:
    """Tests for path lookup and JSON conversion"""

    def test_get_path(self):
        """Test nested lookup and missing hops"""
        row = {"student": {"profile": {"cohort": "2024"}}, "grade": None}

        assert get_path(row, "student.profile.cohort") == "2024"
        assert get_path(row, "grade") is None
        assert get_path(row, "student.name") is MISSING
        assert get_path(row, "grade.value") is MISSING

    def test_jsonable(self, march_2024):
        """Test dataclasses and timestamps become plain types"""
        assert jsonable({"window": march_2024}) == {
            "window": {"start": "2024-03-01T00:00:00+00:00", "end": "2024-04-01T00:00:00+00:00"},
        }
