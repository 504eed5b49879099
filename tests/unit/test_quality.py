"""
Unit Tests - Data Quality
"""
import pytest

from src.quality import (
    IssueType,
    SchemaRule,
    SchemaValidator,
    assess_quality,
)
from src.transformation import DataProcessor


class TestSchemaValidator:
    """Tests for SchemaValidator"""

    def test_valid_rows_pass(self):
        """Test rows satisfying every rule"""
        rows = [{"email": "a@example.edu", "grade": 88}]

        validator = SchemaValidator()
        validator.add_rule(SchemaRule("email", "email", required=True))
        validator.add_rule(SchemaRule("grade", "number", min=0, max=100))

        report = validator.validate(rows)

        assert report.valid is True
        assert report.errors == []
        assert report.rows_checked == 1

    def test_required_field_missing(self):
        """Test absent, None and empty values fail a required rule"""
        rows = [{"name": "x"}, {"email": None}, {"email": ""}]

        report = SchemaValidator([SchemaRule("email", "email", required=True)]).validate(rows)

        assert report.valid is False
        assert [e.row for e in report.errors] == [0, 1, 2]
        assert report.errors[0].message == "Field email is required"

    def test_optional_field_missing_is_fine(self):
        """Test non-required rules skip absent values"""
        report = SchemaValidator([SchemaRule("grade", "number", min=0)]).validate([{}])

        assert report.valid is True

    def test_range_check(self):
        """Test numeric min and max"""
        rows = [{"grade": 50}, {"grade": -5}, {"grade": 120}]

        report = SchemaValidator([SchemaRule("grade", "number", min=0, max=100)]).validate(rows)

        assert [e.row for e in report.errors] == [1, 2]
        assert "at least" in report.errors[0].message
        assert "at most" in report.errors[1].message

    def test_type_check(self):
        """Test type mismatches are reported"""
        rows = [{"grade": "ninety", "active": "yes", "due": "2024-03-10"}]

        report = SchemaValidator([
            SchemaRule("grade", "number"),
            SchemaRule("active", "boolean"),
            SchemaRule("due", "date"),
        ]).validate(rows)

        assert report.by_field() == {"grade": 1, "active": 1}

    def test_pattern_check(self):
        """Test regex pattern check"""
        rows = [{"id": "s-1"}, {"id": "teacher"}]

        report = SchemaValidator([SchemaRule("id", "string", pattern=r"^s-\d+$")]).validate(rows)

        assert report.error_count == 1
        assert report.errors[0].row == 1

    def test_all_violations_collected(self):
        """Test one violation per failing (row, field) pair"""
        rows = [{"email": "bad", "grade": 200}, {"email": "ok@example.edu", "grade": "x"}]

        report = DataProcessor().validate(rows, [
            SchemaRule("email", "email"),
            SchemaRule("grade", "number", max=100),
        ])

        assert [(e.row, e.field) for e in report.errors] == [(0, "email"), (0, "grade"), (1, "grade")]

    def test_unknown_type_rejected(self):
        """Test schema rule types are validated"""
        with pytest.raises(ValueError):
            SchemaRule("x", "uuid")


class TestQualityProfile:
    """Tests for assess_quality"""

    def test_completeness_and_consistency(self):
        """Test scores over the union of fields"""
        rows = [{"a": 1, "b": "x"}, {"a": None, "b": 2}, {"a": 3}]

        report = assess_quality(rows)

        assert report.completeness == pytest.approx(66.67)
        assert report.field_completeness == {"a": pytest.approx(66.67), "b": pytest.approx(66.67)}
        assert report.consistency == {"a": True, "b": False}
        assert report.consistency_score == 50.0

    def test_issues_reported(self):
        """Test missing and inconsistent issues"""
        rows = [{"a": 1, "b": "x"}, {"a": None, "b": 2}, {"a": 3}]

        report = assess_quality(rows)

        kinds = {(i.type, i.field): i.count for i in report.issues}
        assert kinds[(IssueType.MISSING, "a")] == 1
        assert kinds[(IssueType.MISSING, "b")] == 1
        assert kinds[(IssueType.INCONSISTENT, "b")] == 1

    def test_empty_rows(self):
        """Test empty input scores zero"""
        report = assess_quality([])

        assert report.completeness == 0.0
        assert report.issues == []
