"""
Unit Tests - Synthetic Data Generator
"""
import pytest

from src.core.records import parse_timestamp
from src.data import DataGenerator
from src.reporting import ReportConfig, ReportGenerator

SIZES = dict(n_students=15, n_teachers=2, n_courses=3, assignments_per_course=2, sessions_per_course=3)


@pytest.fixture(scope="module")
def generated():
    return DataGenerator(seed=7).generate(**SIZES)


class TestDataGenerator:
    """Tests for DataGenerator"""

    def test_deterministic(self, generated):
        """Test the same seed yields the same dataset"""
        again = DataGenerator(seed=7).generate(**SIZES)

        assert again.to_dict() == generated.to_dict()

    def test_roles(self, generated):
        """Test one admin plus the requested teachers and students"""
        roles = [u["role"] for u in generated.users]

        assert roles.count("SuperAdmin") == 1
        assert roles.count("Teacher") == 2
        assert roles.count("Student") == 15

    def test_enrolments_reference_students(self, generated):
        """Test courses enroll known students only"""
        students = {u["id"] for u in generated.users if u["role"] == "Student"}

        for course in generated.courses:
            assert set(course["student_ids"]) <= students
            assert len(course["student_ids"]) >= 8

    def test_grades_in_range(self, generated):
        """Test grades are clipped to 0-100"""
        grades = [s["grade"] for s in generated.submissions if s["grade"] is not None]

        assert grades
        assert all(0 <= g <= 100 for g in grades)

    def test_unique_submission_ids(self, generated):
        """Test one submission per student and assignment"""
        ids = [s["id"] for s in generated.submissions]

        assert len(ids) == len(set(ids))

    def test_payment_dates(self, generated):
        """Test only paid payments carry a payment date, never before creation"""
        for payment in generated.payments:
            if payment["status"] == "Paid":
                assert parse_timestamp(payment["payment_date"]) >= parse_timestamp(payment["created_at"])
            else:
                assert payment["payment_date"] is None

    def test_reports_run_on_generated_data(self, generated):
        """Test generated records feed the report generator"""
        report = ReportGenerator().generate(ReportConfig(id="smoke", type="course-analytics"), {}, generated)

        assert report.metadata.total_records == 3
