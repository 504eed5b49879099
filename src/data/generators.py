"""
Synthetic Data Generator

Generates realistic education-platform records for testing and development.
Includes:
- Users across the SuperAdmin, Teacher and Student roles, grouped in cohorts
- Courses with enrolled students and fees
- Assignments, submissions and grades
- Attendance records and course payments
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import numpy as np
from faker import Faker

from src.core.records import AttendanceStatus, Dataset, PaymentStatus, Row, UserRole


# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORIES = [
    ("mathematics", ["Algebra", "Calculus", "Statistics", "Geometry"]),
    ("science", ["Physics", "Chemistry", "Biology", "Astronomy"]),
    ("computing", ["Programming", "Databases", "Networks", "Data Science"]),
    ("languages", ["English", "French", "Spanish", "Literature"]),
    ("humanities", ["History", "Philosophy", "Economics", "Geography"]),
]

ASSIGNMENT_KINDS = ["Quiz", "Homework", "Lab", "Essay", "Project", "Midterm"]

ATTENDANCE_STATUSES = [
    (AttendanceStatus.PRESENT, 0.78),
    (AttendanceStatus.LATE, 0.08),
    (AttendanceStatus.ABSENT, 0.10),
    (AttendanceStatus.EXCUSED, 0.04),
]

PAYMENT_STATUSES = [
    (PaymentStatus.PAID, 0.80),
    (PaymentStatus.PENDING, 0.15),
    (PaymentStatus.FAILED, 0.05),
]

# Student ability profiles: (share, grade mean, grade sd, attendance bias)
STUDENT_PROFILES = {
    "strong": (0.25, 88, 6, 0.08),
    "average": (0.50, 74, 9, 0.0),
    "struggling": (0.25, 58, 11, -0.15),
}


def _iso(value: datetime) -> str:
    return value.isoformat()


# =============================================================================
# GENERATORS
# =============================================================================

class UserGenerator:
    """Generate platform users"""

    def __init__(self, fake: Faker, rng: np.random.Generator):
        self.fake = fake
        self.rng = rng

    def generate(self, n_students: int, n_teachers: int, cohorts: List[str]) -> List[Row]:
        users = [{
            "id": "admin_1",
            "name": self.fake.name(),
            "email": "admin@example.edu",
            "role": UserRole.SUPER_ADMIN.value,
        }]

        for i in range(n_teachers):
            users.append({
                "id": f"teacher_{i + 1}",
                "name": f"{self.fake.prefix()} {self.fake.last_name()}",
                "email": self.fake.unique.email(),
                "role": UserRole.TEACHER.value,
            })

        profiles = list(STUDENT_PROFILES)
        weights = [STUDENT_PROFILES[p][0] for p in profiles]
        for i in range(n_students):
            users.append({
                "id": f"student_{i + 1}",
                "name": self.fake.name(),
                "email": self.fake.unique.email(),
                "role": UserRole.STUDENT.value,
                "cohort": str(self.rng.choice(cohorts)),
                "profile": str(self.rng.choice(profiles, p=weights)),
            })
        return users


class CourseGenerator:
    """Generate courses with enrolments"""

    def __init__(self, fake: Faker, rng: np.random.Generator):
        self.fake = fake
        self.rng = rng

    def generate(self, n: int, teachers: List[Row], students: List[Row]) -> List[Row]:
        courses = []
        student_ids = [s["id"] for s in students]
        for i in range(n):
            category, subjects = CATEGORIES[int(self.rng.integers(len(CATEGORIES)))]
            subject = subjects[int(self.rng.integers(len(subjects)))]
            size = int(min(len(student_ids), self.rng.integers(8, 30)))
            enrolled = self.rng.choice(student_ids, size=size, replace=False).tolist() if student_ids else []
            courses.append({
                "id": f"course_{i + 1}",
                "name": f"{subject} {100 + 10 * (i % 40)}",
                "category": category,
                "teacher_id": teachers[i % len(teachers)]["id"] if teachers else None,
                "student_ids": enrolled,
                "cost": float(self.rng.choice([0, 150, 250, 400, 600])),
            })
        return courses


class ActivityGenerator:
    """Generate assignments, submissions, attendance and payments"""

    def __init__(self, fake: Faker, rng: np.random.Generator, start: datetime, end: datetime):
        self.fake = fake
        self.rng = rng
        self.start = start
        self.end = end

    def _moment(self, low: Optional[datetime] = None, high: Optional[datetime] = None) -> datetime:
        low = low or self.start
        high = high or self.end
        span = max(1, int((high - low).total_seconds()))
        return low + timedelta(seconds=int(self.rng.integers(span)))

    def assignments(self, courses: List[Row], per_course: int) -> List[Row]:
        rows = []
        for course in courses:
            for j in range(per_course):
                kind = ASSIGNMENT_KINDS[int(self.rng.integers(len(ASSIGNMENT_KINDS)))]
                rows.append({
                    "id": f"{course['id']}_assignment_{j + 1}",
                    "course_id": course["id"],
                    "title": f"{kind} {j + 1}: {self.fake.catch_phrase()}",
                    "due_date": _iso(self._moment()),
                    "total_points": 100,
                })
        return rows

    def submissions(self, assignments: List[Row], courses: Dict[str, Row], profiles: Dict[str, str]) -> List[Row]:
        rows = []
        for assignment in assignments:
            due = datetime.fromisoformat(assignment["due_date"])
            for student_id in courses[assignment["course_id"]]["student_ids"]:
                profile = profiles.get(student_id, "average")
                if self.rng.random() < (0.7 if profile == "struggling" else 0.9):
                    _, mean, sd, _ = STUDENT_PROFILES[profile]
                    submitted = due - timedelta(hours=float(self.rng.normal(24, 36)))
                    graded = self.rng.random() < 0.85
                    rows.append({
                        "id": f"submission_{assignment['id']}_{student_id}",
                        "assignment_id": assignment["id"],
                        "student_id": student_id,
                        "submitted_at": _iso(submitted),
                        "grade": round(float(np.clip(self.rng.normal(mean, sd), 0, 100)), 1) if graded else None,
                    })
        return rows

    def attendance(self, courses: List[Row], sessions: int, profiles: Dict[str, str]) -> List[Row]:
        rows = []
        statuses = [s.value for s, _ in ATTENDANCE_STATUSES]
        base = np.array([w for _, w in ATTENDANCE_STATUSES])
        step = (self.end - self.start) / max(1, sessions)
        for course in courses:
            for k in range(sessions):
                day = (self.start + step * k).date()
                for student_id in course["student_ids"]:
                    bias = STUDENT_PROFILES[profiles.get(student_id, "average")][3]
                    weights = base.copy()
                    weights[0] = max(0.05, weights[0] + bias)
                    weights = weights / weights.sum()
                    rows.append({
                        "id": f"{course['id']}_{student_id}_{day.isoformat()}",
                        "student_id": student_id,
                        "course_id": course["id"],
                        "date": day.isoformat(),
                        "status": str(self.rng.choice(statuses, p=weights)),
                    })
        return rows

    def payments(self, courses: List[Row]) -> List[Row]:
        rows = []
        statuses = [s.value for s, _ in PAYMENT_STATUSES]
        weights = [w for _, w in PAYMENT_STATUSES]
        for course in courses:
            if not course["cost"]:
                continue
            for student_id in course["student_ids"]:
                status = str(self.rng.choice(statuses, p=weights))
                created = self._moment()
                rows.append({
                    "id": f"payment_{course['id']}_{student_id}",
                    "student_id": student_id,
                    "course_id": course["id"],
                    "amount": course["cost"],
                    "status": status,
                    "created_at": _iso(created),
                    "payment_date": _iso(self._moment(created)) if status == PaymentStatus.PAID.value else None,
                })
        return rows


class DataGenerator:
    """
    Seeded generator of a complete education Dataset.

    Example:
        dataset = DataGenerator(seed=42).generate(n_students=200, n_courses=12)
    """

    def __init__(
        self,
        seed: int = 42,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ):
        self.fake = Faker()
        self.fake.seed_instance(seed)
        self.rng = np.random.default_rng(seed)
        self.end = end or datetime(2025, 6, 30, tzinfo=timezone.utc)
        self.start = start or self.end - timedelta(days=365)

    def generate(
        self,
        n_students: int = 200,
        n_teachers: int = 10,
        n_courses: int = 12,
        assignments_per_course: int = 6,
        sessions_per_course: int = 20,
    ) -> Dataset:
        cohorts = [str(year) for year in range(self.start.year - 2, self.start.year + 1)]
        users = UserGenerator(self.fake, self.rng).generate(n_students, n_teachers, cohorts)
        teachers = [u for u in users if u["role"] == UserRole.TEACHER.value]
        students = [u for u in users if u["role"] == UserRole.STUDENT.value]
        profiles = {s["id"]: s["profile"] for s in students}

        courses = CourseGenerator(self.fake, self.rng).generate(n_courses, teachers, students)
        activity = ActivityGenerator(self.fake, self.rng, self.start, self.end)
        assignments = activity.assignments(courses, assignments_per_course)
        course_index = {c["id"]: c for c in courses}

        return Dataset(
            users=users,
            courses=courses,
            assignments=assignments,
            submissions=activity.submissions(assignments, course_index, profiles),
            attendance=activity.attendance(courses, sessions_per_course, profiles),
            payments=activity.payments(courses),
        )
