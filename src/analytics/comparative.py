"""
Comparative Analysis

Compares one baseline entity against others along a dimension (course,
semester, year, cohort) and tests whether two samples differ.
"""

import math
import re
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog
from scipy import stats

from src.config import get_settings
from src.core.exceptions import ConfigurationError
from src.core.records import Dataset, TimeWindow
from .engine import attendance_rate, expected_submissions, graded_scores
from .models import ComparativeAnalysis, ComparisonDimension, SignificanceResult

logger = structlog.get_logger(__name__)

MetricSet = Dict[str, float]
Entity = Tuple[str, MetricSet]

_SEMESTER_RE = re.compile(r"^(\d{4})-S([12])$")
_YEAR_RE = re.compile(r"^\d{4}$")


def calculate_variance(baseline: MetricSet, comparison: MetricSet) -> Dict[str, float]:
    """
    Signed percentage difference of each shared metric from its baseline.
    A zero baseline yields 100 when the comparison is positive, else 0.
    """
    variance = {}
    for metric_id, base in baseline.items():
        if metric_id not in comparison:
            continue
        value = comparison[metric_id]
        if base == 0:
            variance[metric_id] = 100.0 if value > 0 else 0.0
        else:
            variance[metric_id] = (value - base) / base * 100
    return variance


def significance(
    sample_a: Sequence[float],
    sample_b: Sequence[float],
    confidence_level: float = 0.95,
    method: Optional[str] = None,
) -> SignificanceResult:
    """
    Two-sample test of ``mean(b) - mean(a)``.

    ``method="welch"`` compares the t statistic against the Student t
    distribution with Welch-Satterthwaite degrees of freedom, so the critical
    value and interval width follow ``confidence_level``.

    ``method="coarse"`` is the fixed approximation: significant when
    ``|t| > 2``, p-value bucketed to 0.01 or 0.1, interval at +/-1.96 SE.
    ``confidence_level`` is unused in this mode.
    """
    method = (method or get_settings().reporting.significance_method).lower()
    if method not in ("welch", "coarse"):
        raise ValueError(f"Unknown significance method: {method}")
    if not 0 < confidence_level < 1:
        raise ValueError("confidence_level must be between 0 and 1")

    a = np.asarray(list(sample_a), dtype=float)
    b = np.asarray(list(sample_b), dtype=float)
    if len(a) < 2 or len(b) < 2:
        raise ValueError("Each sample needs at least two observations")

    var_a, var_b = float(a.var(ddof=1)), float(b.var(ddof=1))
    se_a, se_b = var_a / len(a), var_b / len(b)
    se = math.sqrt(se_a + se_b)
    diff = float(b.mean() - a.mean())

    if se == 0:
        t_stat = 0.0 if diff == 0 else math.copysign(math.inf, diff)
        df = float(len(a) + len(b) - 2)
    else:
        t_stat = diff / se
        # Welch-Satterthwaite
        df = (se_a + se_b) ** 2 / (se_a ** 2 / (len(a) - 1) + se_b ** 2 / (len(b) - 1))

    if method == "coarse":
        critical = 2.0
        significant = abs(t_stat) > critical
        p_value = 0.01 if significant else 0.1
        margin = 1.96 * se
    else:
        alpha = 1 - confidence_level
        critical = float(stats.t.ppf(1 - alpha / 2, df))
        p_value = float(2 * stats.t.sf(abs(t_stat), df))
        significant = p_value < alpha
        margin = critical * se

    return SignificanceResult(
        is_significant=significant,
        p_value=p_value,
        confidence_interval=[diff - margin, diff + margin],
        t_statistic=t_stat,
        degrees_of_freedom=df,
        critical_value=critical,
        method=method,
    )


def _mean(values: List[float]) -> float:
    return round(float(np.mean(values)), 2) if values else 0.0


class ComparativeAnalysisEngine:
    """
    Builds baseline-versus-comparison metric tables.

    Example:
        engine = ComparativeAnalysisEngine()
        analysis = engine.compare("course", "c1", ["c2", "c3"], dataset)
    """

    def __init__(self):
        self._routines: Dict[ComparisonDimension, Callable[[str, Dataset], Entity]] = {
            ComparisonDimension.COURSE: self._course_metrics,
            ComparisonDimension.SEMESTER: self._semester_metrics,
            ComparisonDimension.YEAR: self._year_metrics,
            ComparisonDimension.COHORT: self._cohort_metrics,
        }

    def compare(
        self,
        dimension: str,
        baseline_id: str,
        comparison_ids: Sequence[str],
        dataset: Dataset,
    ) -> ComparativeAnalysis:
        try:
            dim = ComparisonDimension(dimension)
        except ValueError:
            raise ConfigurationError(f"Unknown comparison dimension: {dimension}")
        routine = self._routines[dim]

        base_name, base_metrics = routine(baseline_id, dataset)
        comparisons = []
        for entity_id in comparison_ids:
            name, metrics = routine(entity_id, dataset)
            comparisons.append({
                "id": entity_id,
                "name": name,
                "metrics": metrics,
                "variance": calculate_variance(base_metrics, metrics),
            })

        logger.info(
            "Comparative analysis computed",
            dimension=dim.value,
            baseline=baseline_id,
            comparisons=len(comparisons),
        )
        return ComparativeAnalysis(
            id=f"{dim.value}_comparison_{uuid.uuid4().hex[:12]}",
            type=dim,
            baseline={"id": baseline_id, "name": base_name, "metrics": base_metrics},
            comparisons=comparisons,
            metrics=list(base_metrics),
        )

    def calculate_variance(self, baseline: MetricSet, comparison: MetricSet) -> Dict[str, float]:
        return calculate_variance(baseline, comparison)

    def significance(self, sample_a, sample_b, confidence_level: float = 0.95, method: Optional[str] = None):
        return significance(sample_a, sample_b, confidence_level, method)

    # ------------------------------------------------------------------
    # Dimension routines
    # ------------------------------------------------------------------

    def _course_metrics(self, course_id: str, dataset: Dataset) -> Entity:
        course = dataset.course(course_id)
        if course is None:
            raise ConfigurationError(f"Course not found: {course_id}", {"course_id": course_id})

        assignments = [a for a in dataset.assignments if a.get("course_id") == course_id]
        assignment_ids = {a.get("id") for a in assignments}
        submissions = [s for s in dataset.submissions if s.get("assignment_id") in assignment_ids]
        pairs = {(s.get("student_id"), s.get("assignment_id")) for s in submissions}
        expected = expected_submissions(assignments, dataset)

        return course.get("name", course_id), {
            "enrollment": float(len(course.get("student_ids") or [])),
            "average_grade": _mean(graded_scores(submissions)),
            "attendance_rate": round(attendance_rate(
                [a for a in dataset.attendance if a.get("course_id") == course_id]
            ), 2),
            "completion_rate": round(len(pairs) / expected * 100, 2) if expected else 0.0,
        }

    @staticmethod
    def _window_metrics(window: TimeWindow, dataset: Dataset) -> MetricSet:
        submissions = [s for s in dataset.submissions if window.contains(s.get("submitted_at"))]
        attendance = [a for a in dataset.attendance if window.contains(a.get("date"))]
        assignments = {a.get("id"): a for a in dataset.assignments}
        active_courses = {
            assignments[s["assignment_id"]].get("course_id")
            for s in submissions if s.get("assignment_id") in assignments
        }
        active_courses |= {a.get("course_id") for a in attendance}
        active_courses.discard(None)
        students = {s.get("student_id") for s in submissions} | {a.get("student_id") for a in attendance}
        students.discard(None)
        return {
            "courses": float(len(active_courses)),
            "students": float(len(students)),
            "average_grade": _mean(graded_scores(submissions)),
            "attendance_rate": round(attendance_rate(attendance), 2),
        }

    def _semester_metrics(self, semester_id: str, dataset: Dataset) -> Entity:
        match = _SEMESTER_RE.match(semester_id)
        if not match:
            raise ConfigurationError(f"Semester id must look like 2024-S1: {semester_id}")
        year, half = int(match.group(1)), int(match.group(2))
        start = datetime(year, 1 if half == 1 else 7, 1, tzinfo=timezone.utc)
        end = datetime(year, 7, 1, tzinfo=timezone.utc) if half == 1 else datetime(year + 1, 1, 1, tzinfo=timezone.utc)
        metrics = self._window_metrics(TimeWindow(start, end), dataset)
        return f"Semester {semester_id}", {
            "total_courses": metrics["courses"],
            "total_students": metrics["students"],
            "semester_average_grade": metrics["average_grade"],
            "semester_attendance_rate": metrics["attendance_rate"],
        }

    def _year_metrics(self, year_id: str, dataset: Dataset) -> Entity:
        if not _YEAR_RE.match(str(year_id)):
            raise ConfigurationError(f"Year id must be a four-digit year: {year_id}")
        year = int(year_id)
        window = TimeWindow(
            datetime(year, 1, 1, tzinfo=timezone.utc),
            datetime(year + 1, 1, 1, tzinfo=timezone.utc),
        )
        metrics = self._window_metrics(window, dataset)
        return f"Year {year_id}", {
            "yearly_enrollment": metrics["students"],
            "yearly_courses": metrics["courses"],
            "yearly_performance": metrics["average_grade"],
        }

    def _cohort_metrics(self, cohort_id: str, dataset: Dataset) -> Entity:
        members = {u.get("id") for u in dataset.users if str(u.get("cohort")) == str(cohort_id)}
        submissions = [s for s in dataset.submissions if s.get("student_id") in members]
        attendance = [a for a in dataset.attendance if a.get("student_id") in members]
        return f"Cohort {cohort_id}", {
            "cohort_size": float(len(members)),
            "cohort_performance": _mean(graded_scores(submissions)),
            "cohort_attendance": round(attendance_rate(attendance), 2),
        }
