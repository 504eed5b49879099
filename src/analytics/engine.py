"""
Analytics Engine

Domain metric sets over a half-open time window:
- Engagement: active users, submission rate, attendance rate
- Performance: average grade, completion rate, grade variance
- Financial: collected revenue, collection rate, revenue per course

Every metric carries a period-over-period trend against an injected
baseline provider, plus per-student risk prediction and series regression.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np
import structlog

from src.config import get_settings
from src.core.records import (
    AttendanceStatus,
    Dataset,
    PaymentStatus,
    Row,
    TimeWindow,
    parse_timestamp,
    to_number,
)
from src.transformation.processor import DataProcessor, FilterSpec
from .baselines import BaselineProvider, InMemoryBaselineProvider
from .models import (
    AnalyticsMetric,
    MetricCategory,
    RiskLevel,
    RiskPrediction,
    TrendAnalysis,
)
from .trends import analyze_trend, compute_trend

logger = structlog.get_logger(__name__)

RECENT_SCORES = 5
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
GRADE_WEIGHT = 0.7
ATTENDANCE_WEIGHT = 0.3

RECOMMENDATIONS = {
    RiskLevel.HIGH: [
        "Immediate intervention required",
        "Schedule one-on-one meeting",
        "Provide additional resources",
    ],
    RiskLevel.MEDIUM: [
        "Monitor progress closely",
        "Offer additional support",
    ],
    RiskLevel.LOW: [
        "Continue current approach",
    ],
}
ATTENDANCE_RECOMMENDATION = "Address attendance issues"


def graded_scores(submissions: Iterable[Row]) -> List[float]:
    scores = []
    for submission in submissions:
        grade = to_number(submission.get("grade"))
        if grade is not None:
            scores.append(grade)
    return scores


def attendance_rate(records: Sequence[Row]) -> float:
    """Percentage of records marked Present (Late does not count)."""
    if not records:
        return 0.0
    present = sum(1 for r in records if r.get("status") == AttendanceStatus.PRESENT.value)
    return present / len(records) * 100


def expected_submissions(assignments: Iterable[Row], dataset: Dataset) -> int:
    """Assignments times the enrolled students of each assignment's course."""
    enrolled = {c.get("id"): len(c.get("student_ids") or []) for c in dataset.courses}
    return sum(enrolled.get(a.get("course_id"), 0) for a in assignments)


class AnalyticsEngine:
    """
    Computes metric sets for dashboards and reports.

    Example:
        engine = AnalyticsEngine(baselines=InMemoryBaselineProvider({"active_users": 40}))
        metrics = engine.engagement_metrics(dataset, TimeWindow(start, end))
    """

    def __init__(
        self,
        baselines: Optional[BaselineProvider] = None,
        processor: Optional[DataProcessor] = None,
        stability_band: Optional[float] = None,
    ):
        self.baselines = baselines or InMemoryBaselineProvider()
        self.processor = processor or DataProcessor()
        if stability_band is None:
            stability_band = get_settings().reporting.stability_band
        self.stability_band = stability_band

    def _metric(
        self,
        metric_id: str,
        name: str,
        value: float,
        unit: str,
        category: MetricCategory,
        window: TimeWindow,
        benchmark: Optional[float] = None,
        target: Optional[float] = None,
    ) -> AnalyticsMetric:
        previous = self.baselines.get_baseline(metric_id, window)
        return AnalyticsMetric(
            id=metric_id,
            name=name,
            value=value,
            unit=unit,
            category=category,
            benchmark=benchmark,
            target=target,
            trend=compute_trend(value, previous, self.stability_band),
        )

    @staticmethod
    def _in_window(rows: Iterable[Row], key: str, window: TimeWindow) -> List[Row]:
        return [r for r in rows if window.contains(r.get(key))]

    # ------------------------------------------------------------------
    # Metric sets
    # ------------------------------------------------------------------

    def engagement_metrics(self, dataset: Dataset, window: TimeWindow) -> List[AnalyticsMetric]:
        submissions = self._in_window(dataset.submissions, "submitted_at", window)
        attendance = self._in_window(dataset.attendance, "date", window)
        known_users = {u.get("id") for u in dataset.users}

        active: Set[str] = {s.get("student_id") for s in submissions}
        active |= {
            a.get("student_id") for a in attendance
            if a.get("status") in (AttendanceStatus.PRESENT.value, AttendanceStatus.LATE.value)
        }
        if known_users:
            active &= known_users
        active.discard(None)

        due = self._in_window(dataset.assignments, "due_date", window)
        expected = expected_submissions(due, dataset)
        submission_rate = min(100.0, len(submissions) / expected * 100) if expected else 0.0
        user_count = len(dataset.users)

        metrics = [
            self._metric(
                "active_users", "Active Users", len(active), "users",
                MetricCategory.ENGAGEMENT, window,
                benchmark=user_count * 0.7, target=user_count * 0.8,
            ),
            self._metric(
                "submission_rate", "Submission Rate", round(submission_rate), "%",
                MetricCategory.ENGAGEMENT, window, benchmark=75, target=85,
            ),
            self._metric(
                "attendance_rate", "Attendance Rate", round(attendance_rate(attendance)), "%",
                MetricCategory.ENGAGEMENT, window, benchmark=80, target=90,
            ),
        ]
        logger.debug("Engagement metrics computed", active_users=len(active), window_start=str(window.start))
        return metrics

    def performance_metrics(self, dataset: Dataset, window: TimeWindow) -> List[AnalyticsMetric]:
        submissions = self._in_window(dataset.submissions, "submitted_at", window)
        scores = graded_scores(submissions)
        average = float(np.mean(scores)) if scores else 0.0
        spread = float(np.std(scores)) if scores else 0.0

        due = self._in_window(dataset.assignments, "due_date", window)
        due_ids = {a.get("id") for a in due}
        completed: Set[Tuple] = {
            (s.get("student_id"), s.get("assignment_id"))
            for s in dataset.submissions if s.get("assignment_id") in due_ids
        }
        expected = expected_submissions(due, dataset)
        completion = min(100.0, len(completed) / expected * 100) if expected else 0.0

        return [
            self._metric(
                "average_grade", "Average Grade", round(average), "%",
                MetricCategory.PERFORMANCE, window, benchmark=75, target=80,
            ),
            self._metric(
                "completion_rate", "Completion Rate", round(completion), "%",
                MetricCategory.PERFORMANCE, window, benchmark=85, target=95,
            ),
            self._metric(
                "grade_variance", "Grade Variance", round(spread), "points",
                MetricCategory.PERFORMANCE, window, benchmark=15, target=10,
            ),
        ]

    def financial_metrics(self, dataset: Dataset, window: TimeWindow) -> List[AnalyticsMetric]:
        in_window = [
            p for p in dataset.payments
            if window.contains(p.get("payment_date") or p.get("created_at"))
        ]
        paid = self.processor.filter(in_window, [FilterSpec("status", "equals", PaymentStatus.PAID.value)])
        revenue = sum(to_number(p.get("amount")) or 0.0 for p in paid)
        collection = len(paid) / len(in_window) * 100 if in_window else 0.0
        per_course = revenue / len(dataset.courses) if dataset.courses else 0.0

        return [
            self._metric(
                "total_revenue", "Total Revenue", revenue, "USD",
                MetricCategory.FINANCIAL, window,
            ),
            self._metric(
                "collection_rate", "Collection Rate", round(collection), "%",
                MetricCategory.FINANCIAL, window, benchmark=85, target=95,
            ),
            self._metric(
                "avg_revenue_per_course", "Avg Revenue per Course", round(per_course), "USD",
                MetricCategory.FINANCIAL, window,
            ),
        ]

    # ------------------------------------------------------------------
    # Prediction and regression
    # ------------------------------------------------------------------

    def predict_performance(
        self,
        student_id: str,
        submissions: Sequence[Row],
        attendance: Sequence[Row],
    ) -> RiskPrediction:
        """
        Predicted score = 0.7 x mean of the five most recent graded scores
        + 0.3 x attendance rate over all of the student's records.
        """
        own = [
            s for s in submissions
            if s.get("student_id") == student_id and to_number(s.get("grade")) is not None
        ]
        own.sort(key=lambda s: parse_timestamp(s.get("submitted_at")) or EPOCH)
        recent = graded_scores(own[-RECENT_SCORES:])
        average = float(np.mean(recent)) if recent else 0.0

        rate = attendance_rate([a for a in attendance if a.get("student_id") == student_id])
        predicted = GRADE_WEIGHT * average + ATTENDANCE_WEIGHT * rate

        if predicted < 60:
            risk = RiskLevel.HIGH
        elif predicted < 75:
            risk = RiskLevel.MEDIUM
        else:
            risk = RiskLevel.LOW

        recommendations = list(RECOMMENDATIONS[risk])
        if rate < 80:
            recommendations.append(ATTENDANCE_RECOMMENDATION)

        return RiskPrediction(
            student_id=student_id,
            predicted_score=round(predicted, 2),
            risk_level=risk,
            recommendations=recommendations,
            average_score=round(average, 2),
            attendance_rate=round(rate, 2),
        )

    def analyze_trend(self, series: Sequence[float]) -> TrendAnalysis:
        return analyze_trend(series)
