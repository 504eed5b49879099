"""
Report Generator

Turns a ReportConfig, parameters and a Dataset into an immutable ReportData.

Routines:
- student-performance: per-student grades, submissions and attendance
- course-analytics: per-course enrollment, activity and completion
- attendance-summary: per-student attendance status counts
- grade-distribution: graded submissions bucketed A-F
- engagement-metrics: per-student activity and timeliness
- financial-summary: per-course revenue and collection
- comparative-analysis: baseline versus comparison entities
"""

import time
import uuid
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

import polars as pl
import structlog
from prometheus_client import Histogram

from src.analytics.comparative import ComparativeAnalysisEngine
from src.analytics.engine import attendance_rate, graded_scores
from src.core.exceptions import ComputationError, ConfigurationError
from src.core.records import (
    AttendanceStatus,
    Dataset,
    PaymentStatus,
    Row,
    TimeWindow,
    UserRole,
    parse_timestamp,
    to_number,
    utcnow,
)
from src.transformation.processor import DataProcessor, FilterSpec, SortKey
from .models import ReportConfig, ReportData, ReportMetadata, ReportType
from .summaries import summarize

logger = structlog.get_logger(__name__)

REPORT_GENERATION_TIME = Histogram(
    "reporting_report_generation_seconds",
    "Time spent generating reports",
    ["report_type"],
)

GRADE_BANDS = [
    ("A", "90-100", 90),
    ("B", "80-89", 80),
    ("C", "70-79", 70),
    ("D", "60-69", 60),
    ("F", "0-59", float("-inf")),
]
RECENT_ACTIVITY_DAYS = 30


def _round(value: float, digits: int = 2) -> float:
    return round(value, digits)


class ReportContext:
    """Parameter-resolved view over a dataset shared by the routines."""

    def __init__(self, parameters: Dict[str, Any], dataset: Dataset):
        self.parameters = parameters
        self.dataset = dataset
        self.course_id: Optional[str] = parameters.get("course_id")
        self.assignment_id: Optional[str] = parameters.get("assignment_id")
        self.window = self._window(parameters.get("date_range"))
        self.assignments = dataset.assignment_index()

    @staticmethod
    def _window(date_range: Any) -> Optional[TimeWindow]:
        if not date_range:
            return None
        try:
            return TimeWindow(date_range["start"], date_range["end"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid date_range: {date_range}") from exc

    def in_window(self, value: Any) -> bool:
        return self.window is None or self.window.contains(value)

    def course_of(self, submission: Row) -> Optional[str]:
        assignment = self.assignments.get(submission.get("assignment_id"))
        return assignment.get("course_id") if assignment else None

    def submissions(self) -> List[Row]:
        """Submissions narrowed by course, assignment and date range."""
        rows = []
        for s in self.dataset.submissions:
            if self.course_id and self.course_of(s) != self.course_id:
                continue
            if self.assignment_id and s.get("assignment_id") != self.assignment_id:
                continue
            if not self.in_window(s.get("submitted_at")):
                continue
            rows.append(s)
        return rows

    def attendance(self) -> List[Row]:
        return [
            a for a in self.dataset.attendance
            if (not self.course_id or a.get("course_id") == self.course_id)
            and self.in_window(a.get("date"))
        ]

    def courses(self) -> List[Row]:
        if self.course_id:
            course = self.dataset.course(self.course_id)
            if course is None:
                raise ConfigurationError(f"Course not found: {self.course_id}")
            return [course]
        return list(self.dataset.courses)

    def as_of(self):
        """Reference instant for recency: explicit, end of range, or latest submission."""
        explicit = parse_timestamp(self.parameters.get("as_of"))
        if explicit:
            return explicit
        if self.window:
            return self.window.end
        stamps = [parse_timestamp(s.get("submitted_at")) for s in self.dataset.submissions]
        stamps = [s for s in stamps if s]
        return max(stamps) if stamps else None


class ReportGenerator:
    """
    Dispatches report requests to generation routines.

    Example:
        generator = ReportGenerator()
        report = generator.generate(
            ReportConfig(id="weekly", type="attendance-summary"),
            {"course_id": "course-1"},
            dataset,
        )
    """

    def __init__(
        self,
        processor: Optional[DataProcessor] = None,
        comparative: Optional[ComparativeAnalysisEngine] = None,
    ):
        self.processor = processor or DataProcessor()
        self.comparative = comparative or ComparativeAnalysisEngine()
        self._routines: Dict[ReportType, Callable[[ReportContext], List[Row]]] = {
            ReportType.STUDENT_PERFORMANCE: self._student_performance,
            ReportType.COURSE_ANALYTICS: self._course_analytics,
            ReportType.ATTENDANCE_SUMMARY: self._attendance_summary,
            ReportType.GRADE_DISTRIBUTION: self._grade_distribution,
            ReportType.ENGAGEMENT_METRICS: self._engagement_metrics,
            ReportType.FINANCIAL_SUMMARY: self._financial_summary,
            ReportType.COMPARATIVE_ANALYSIS: self._comparative_analysis,
        }

    def generate(
        self,
        config: ReportConfig,
        parameters: Optional[Dict[str, Any]],
        dataset: Dataset,
    ) -> ReportData:
        try:
            report_type = ReportType(config.type)
        except ValueError:
            raise ConfigurationError(f"Unknown report type: {config.type}", {"report_id": config.id})

        parameters = dict(parameters or {})
        started = time.perf_counter()
        log = logger.bind(report_id=config.id, report_type=report_type.value)

        try:
            context = ReportContext(parameters, dataset)
            rows = self._routines[report_type](context)
            summary = summarize(report_type, rows)
        except ConfigurationError:
            raise
        except Exception as exc:
            log.error("Report generation failed", error=str(exc))
            raise ComputationError(
                f"Failed to generate {report_type.value} report: {exc}",
                {"report_id": config.id},
            ) from exc

        elapsed = time.perf_counter() - started
        REPORT_GENERATION_TIME.labels(report_type=report_type.value).observe(elapsed)
        log.info("Report generated", rows=len(rows), execution_ms=round(elapsed * 1000, 2))

        return ReportData(
            id=f"report_{uuid.uuid4().hex}",
            report_id=config.id,
            report_type=report_type,
            data=rows,
            metadata=ReportMetadata(
                generated_at=utcnow(),
                parameters=parameters,
                total_records=len(rows),
                execution_time=round(elapsed * 1000, 2),
            ),
            summary=summary,
        )

    # ------------------------------------------------------------------
    # Routines
    # ------------------------------------------------------------------

    def _student_performance(self, ctx: ReportContext) -> List[Row]:
        students = self.processor.filter(
            ctx.dataset.users, [FilterSpec("role", "equals", UserRole.STUDENT.value)]
        )
        if ctx.course_id:
            course = ctx.courses()[0]
            enrolled = set(course.get("student_ids") or [])
            students = [s for s in students if s.get("id") in enrolled]

        submissions = ctx.submissions()
        attendance = ctx.attendance()
        rows = []
        for student in students:
            sid = student.get("id")
            own = [s for s in submissions if s.get("student_id") == sid]
            scores = graded_scores(own)
            stamps = [parse_timestamp(s.get("submitted_at")) for s in own]
            stamps = [t for t in stamps if t]
            rows.append({
                "student_id": sid,
                "student_name": student.get("name"),
                "student_email": student.get("email"),
                "average_grade": _round(sum(scores) / len(scores)) if scores else 0.0,
                "total_submissions": len(own),
                "graded_submissions": len(scores),
                "attendance_rate": _round(attendance_rate(
                    [a for a in attendance if a.get("student_id") == sid]
                )),
                "last_submission": max(stamps).isoformat() if stamps else None,
                "course_id": ctx.course_id or "all",
            })
        return self.processor.sort(rows, [SortKey("average_grade", "desc"), SortKey("student_name")])

    def _course_analytics(self, ctx: ReportContext) -> List[Row]:
        submissions = ctx.submissions()
        rows = []
        for course in ctx.courses():
            cid = course.get("id")
            enrolled = len(course.get("student_ids") or [])
            assignments = [a for a in ctx.dataset.assignments if a.get("course_id") == cid]
            course_subs = [s for s in submissions if ctx.course_of(s) == cid]
            active = {s.get("student_id") for s in course_subs}
            pairs = {(s.get("student_id"), s.get("assignment_id")) for s in course_subs}
            expected = len(assignments) * enrolled
            scores = graded_scores(course_subs)
            rows.append({
                "course_id": cid,
                "course_name": course.get("name"),
                "teacher_id": course.get("teacher_id"),
                "enrolled_students": enrolled,
                "active_students": len(active),
                "total_assignments": len(assignments),
                "total_submissions": len(course_subs),
                "average_grade": _round(sum(scores) / len(scores)) if scores else 0.0,
                "completion_rate": _round(len(pairs) / expected * 100) if expected else 0.0,
                "engagement_score": _round(len(active) / enrolled * 100) if enrolled else 0.0,
            })
        return rows

    def _attendance_summary(self, ctx: ReportContext) -> List[Row]:
        records = ctx.attendance()
        if not records:
            return []
        frame = pl.DataFrame(
            [{"student_id": r.get("student_id"), "status": r.get("status")} for r in records],
            schema={"student_id": pl.Utf8, "status": pl.Utf8},
        )
        counts = frame.group_by("student_id", maintain_order=True).agg(
            pl.len().alias("total_days"),
            (pl.col("status") == AttendanceStatus.PRESENT.value).sum().alias("present_days"),
            (pl.col("status") == AttendanceStatus.LATE.value).sum().alias("late_days"),
            (pl.col("status") == AttendanceStatus.ABSENT.value).sum().alias("absent_days"),
            (pl.col("status") == AttendanceStatus.EXCUSED.value).sum().alias("excused_days"),
        )

        names = {u.get("id"): u.get("name") for u in ctx.dataset.users}
        rows = []
        for row in counts.iter_rows(named=True):
            total, present, late = row["total_days"], row["present_days"], row["late_days"]
            attended = present + late
            rows.append({
                "student_id": row["student_id"],
                "student_name": names.get(row["student_id"]),
                "total_days": total,
                "present_days": present,
                "late_days": late,
                "absent_days": row["absent_days"],
                "excused_days": row["excused_days"],
                "attendance_rate": _round(present / total * 100) if total else 0.0,
                "punctuality_rate": _round(present / attended * 100) if attended else 0.0,
            })
        return rows

    def _grade_distribution(self, ctx: ReportContext) -> List[Row]:
        scores = graded_scores(ctx.submissions())
        counts = {band: 0 for band, _, _ in GRADE_BANDS}
        for score in scores:
            for band, _, floor in GRADE_BANDS:
                if score >= floor:
                    counts[band] += 1
                    break
        total = len(scores)
        return [
            {
                "grade": band,
                "range": label,
                "count": counts[band],
                "percentage": _round(counts[band] / total * 100) if total else 0.0,
            }
            for band, label, _ in GRADE_BANDS
        ]

    def _engagement_metrics(self, ctx: ReportContext) -> List[Row]:
        as_of = ctx.as_of()
        recent_start = as_of - timedelta(days=RECENT_ACTIVITY_DAYS) if as_of else None
        submissions = ctx.submissions()
        courses = ctx.courses()

        rows = []
        for student in ctx.dataset.students():
            sid = student.get("id")
            course_ids = {c.get("id") for c in courses if sid in (c.get("student_ids") or [])}
            if ctx.course_id and not course_ids:
                continue
            expected = sum(1 for a in ctx.assignments.values() if a.get("course_id") in course_ids)
            own = [s for s in submissions if s.get("student_id") == sid]

            on_time = late = recent = 0
            last = None
            for s in own:
                submitted = parse_timestamp(s.get("submitted_at"))
                assignment = ctx.assignments.get(s.get("assignment_id")) or {}
                due = parse_timestamp(assignment.get("due_date"))
                if submitted and due and submitted > due:
                    late += 1
                else:
                    on_time += 1
                if submitted and recent_start and recent_start <= submitted <= as_of:
                    recent += 1
                if submitted and (last is None or submitted > last):
                    last = submitted

            scores = graded_scores(own)
            submission_rate = min(1.0, len(own) / expected) if expected else 0.0
            timeliness = on_time / len(own) if own else 0.0
            quality = (sum(scores) / len(scores)) / 100 if scores else 0.0
            score = (0.4 * submission_rate + 0.3 * timeliness + 0.3 * quality) * 100

            rows.append({
                "student_id": sid,
                "student_name": student.get("name"),
                "total_submissions": len(own),
                "recent_submissions": recent,
                "on_time_submissions": on_time,
                "late_submissions": late,
                "engagement_score": _round(score),
                "last_activity": last.isoformat() if last else None,
            })
        return self.processor.sort(rows, [SortKey("engagement_score", "desc")])

    def _financial_summary(self, ctx: ReportContext) -> List[Row]:
        courses = ctx.courses()
        payments = [
            p for p in ctx.dataset.payments
            if ctx.in_window(p.get("payment_date") or p.get("created_at"))
        ]
        totals: Dict[str, Row] = {}
        if payments:
            frame = pl.DataFrame(
                [
                    {
                        "course_id": p.get("course_id"),
                        "student_id": p.get("student_id"),
                        "status": p.get("status"),
                        "amount": to_number(p.get("amount")) or 0.0,
                    }
                    for p in payments
                ],
                schema={"course_id": pl.Utf8, "student_id": pl.Utf8, "status": pl.Utf8, "amount": pl.Float64},
            )
            paid = pl.col("status") == PaymentStatus.PAID.value
            pending = pl.col("status") == PaymentStatus.PENDING.value
            grouped = frame.group_by("course_id").agg(
                pl.col("amount").filter(paid).sum().alias("total_revenue"),
                pl.col("amount").filter(pending).sum().alias("pending_revenue"),
                pl.col("student_id").filter(paid).n_unique().alias("paid_students"),
            )
            totals = {row["course_id"]: row for row in grouped.iter_rows(named=True)}

        rows = []
        for course in courses:
            cid = course.get("id")
            cost = to_number(course.get("cost")) or 0.0
            enrolled = len(course.get("student_ids") or [])
            agg = totals.get(cid, {})
            paid_students = agg.get("paid_students", 0)
            rows.append({
                "course_id": cid,
                "course_name": course.get("name"),
                "course_cost": cost,
                "enrolled_students": enrolled,
                "paid_students": paid_students,
                "total_revenue": _round(agg.get("total_revenue") or 0.0),
                "pending_revenue": _round(agg.get("pending_revenue") or 0.0),
                "collection_rate": _round(paid_students / enrolled * 100) if enrolled else 0.0,
                "expected_revenue": _round(cost * enrolled),
            })
        return rows

    def _comparative_analysis(self, ctx: ReportContext) -> List[Row]:
        params = ctx.parameters
        missing = [k for k in ("dimension", "baseline_id", "comparison_ids") if not params.get(k)]
        if missing:
            raise ConfigurationError(f"Comparative analysis requires parameters: {', '.join(missing)}")

        analysis = self.comparative.compare(
            params["dimension"], params["baseline_id"], list(params["comparison_ids"]), ctx.dataset
        )
        baseline = analysis.baseline["metrics"]
        rows = []
        for comparison in analysis.comparisons:
            for metric, variance in comparison["variance"].items():
                rows.append({
                    "analysis_id": analysis.id,
                    "entity_id": comparison["id"],
                    "entity_name": comparison["name"],
                    "metric": metric,
                    "baseline_value": baseline[metric],
                    "value": comparison["metrics"][metric],
                    "variance": _round(variance),
                })
        return rows
