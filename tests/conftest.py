"""
Test Suite Configuration
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from src.analytics import InMemoryBaselineProvider
from src.config import Settings
from src.config.settings import ReportingSettings
from src.core.records import Dataset, TimeWindow
from src.reporting import ReportConfig, ReportGenerator
from src.services import create_services


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        APP_ENV="testing",
        reporting=ReportingSettings(batch_delay_seconds=0, batch_size=2),
    )


@pytest.fixture
def dataset() -> Dataset:
    """
    Small school: two courses, three students.

    Algebra I (c1) enrolls s1, s2, s3 with assignments a1 and a2;
    Biology (c2) enrolls s1, s2 with assignment a3.
    """
    return Dataset(
        users=[
            {"id": "admin_1", "name": "Ada Admin", "email": "admin@example.edu", "role": "SuperAdmin"},
            {"id": "teacher_1", "name": "Tom Teacher", "email": "tom@example.edu", "role": "Teacher"},
            {"id": "s1", "name": "Alice Adams", "email": "alice@example.edu", "role": "Student", "cohort": "2024"},
            {"id": "s2", "name": "Ben Brown", "email": "ben@example.edu", "role": "Student", "cohort": "2024"},
            {"id": "s3", "name": "Cara Cole", "email": "cara@example.edu", "role": "Student", "cohort": "2025"},
        ],
        courses=[
            {"id": "c1", "name": "Algebra I", "category": "mathematics", "teacher_id": "teacher_1",
             "student_ids": ["s1", "s2", "s3"], "cost": 500.0},
            {"id": "c2", "name": "Biology", "category": "science", "teacher_id": "teacher_1",
             "student_ids": ["s1", "s2"], "cost": 400.0},
        ],
        assignments=[
            {"id": "a1", "course_id": "c1", "title": "Quiz 1", "due_date": "2024-03-10T23:59:00+00:00"},
            {"id": "a2", "course_id": "c1", "title": "Homework 2", "due_date": "2024-03-20T23:59:00+00:00"},
            {"id": "a3", "course_id": "c2", "title": "Lab 1", "due_date": "2024-03-15T23:59:00+00:00"},
        ],
        submissions=[
            {"id": "sub1", "assignment_id": "a1", "student_id": "s1", "submitted_at": "2024-03-09T10:00:00Z", "grade": 95},
            {"id": "sub2", "assignment_id": "a1", "student_id": "s2", "submitted_at": "2024-03-11T10:00:00Z", "grade": 72},
            {"id": "sub3", "assignment_id": "a1", "student_id": "s3", "submitted_at": "2024-03-10T12:00:00Z", "grade": 55},
            {"id": "sub4", "assignment_id": "a2", "student_id": "s1", "submitted_at": "2024-03-19T09:00:00Z", "grade": 88},
            {"id": "sub5", "assignment_id": "a2", "student_id": "s2", "submitted_at": "2024-03-20T08:00:00Z", "grade": None},
            {"id": "sub6", "assignment_id": "a3", "student_id": "s1", "submitted_at": "2024-03-14T15:00:00Z", "grade": 91},
            {"id": "sub7", "assignment_id": "a3", "student_id": "s2", "submitted_at": "2024-03-16T09:00:00Z", "grade": 64},
        ],
        attendance=[
            {"id": "att1", "student_id": "s1", "course_id": "c1", "date": "2024-03-04", "status": "Present"},
            {"id": "att2", "student_id": "s1", "course_id": "c1", "date": "2024-03-05", "status": "Present"},
            {"id": "att3", "student_id": "s1", "course_id": "c2", "date": "2024-03-06", "status": "Present"},
            {"id": "att4", "student_id": "s1", "course_id": "c2", "date": "2024-03-07", "status": "Late"},
            {"id": "att5", "student_id": "s2", "course_id": "c1", "date": "2024-03-04", "status": "Late"},
            {"id": "att6", "student_id": "s2", "course_id": "c1", "date": "2024-03-05", "status": "Absent"},
            {"id": "att7", "student_id": "s2", "course_id": "c2", "date": "2024-03-06", "status": "Present"},
            {"id": "att8", "student_id": "s2", "course_id": "c2", "date": "2024-03-07", "status": "Present"},
            {"id": "att9", "student_id": "s3", "course_id": "c1", "date": "2024-03-04", "status": "Absent"},
            {"id": "att10", "student_id": "s3", "course_id": "c1", "date": "2024-03-05", "status": "Excused"},
        ],
        payments=[
            {"id": "p1", "student_id": "s1", "course_id": "c1", "amount": 500.0, "status": "Paid",
             "payment_date": "2024-02-01T10:00:00Z"},
            {"id": "p2", "student_id": "s2", "course_id": "c1", "amount": 500.0, "status": "Pending",
             "created_at": "2024-02-02T10:00:00Z"},
            {"id": "p3", "student_id": "s3", "course_id": "c1", "amount": 500.0, "status": "Paid",
             "payment_date": "2024-02-03T10:00:00Z"},
            {"id": "p4", "student_id": "s1", "course_id": "c2", "amount": 400.0, "status": "Paid",
             "payment_date": "2024-02-04T10:00:00Z"},
            {"id": "p5", "student_id": "s2", "course_id": "c2", "amount": 400.0, "status": "Failed",
             "created_at": "2024-02-05T10:00:00Z"},
        ],
    )


@pytest.fixture
def march_2024() -> TimeWindow:
    return TimeWindow(
        datetime(2024, 3, 1, tzinfo=timezone.utc),
        datetime(2024, 4, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def baselines() -> InMemoryBaselineProvider:
    return InMemoryBaselineProvider()


@pytest.fixture
def generator() -> ReportGenerator:
    return ReportGenerator()


@pytest.fixture
def make_report(generator, dataset):
    """Factory generating a report of ``report_type`` over the sample dataset."""
    def _make(report_type: str = "student-performance", report_id: str = "weekly", **parameters):
        return generator.generate(ReportConfig(id=report_id, type=report_type), parameters, dataset)
    return _make


class FakeClock:
    """Settable wall clock for expiry tests"""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def services(test_settings, dataset):
    """Service container built outside any running loop, for TestClient tests."""
    return asyncio.run(create_services(test_settings, dataset=dataset))
