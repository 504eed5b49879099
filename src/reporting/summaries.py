"""
Report summaries.

Each summary is derived from the generated rows alone: two or three key
metrics and a handful of insight strings.
"""

from typing import Callable, Dict, List, Sequence

from src.core.records import Row, to_number
from .models import KeyMetric, ReportSummary, ReportType

AT_RISK_GRADE = 60
LOW_ATTENDANCE = 80


def _avg(rows: Sequence[Row], key: str) -> float:
    values = [to_number(r.get(key)) for r in rows]
    values = [v for v in values if v is not None]
    return round(sum(values) / len(values), 2) if values else 0.0


def _total(rows: Sequence[Row], key: str) -> float:
    return round(sum(to_number(r.get(key)) or 0.0 for r in rows), 2)


def student_performance(rows: Sequence[Row]) -> ReportSummary:
    graded = [r for r in rows if r.get("graded_submissions")]
    avg_grade = _avg(graded, "average_grade")
    avg_attendance = _avg(rows, "attendance_rate")
    at_risk = [r for r in graded if (r.get("average_grade") or 0) < AT_RISK_GRADE]
    top = max(graded, key=lambda r: r.get("average_grade") or 0, default=None)

    insights = [f"{len(at_risk)} of {len(rows)} students are averaging below {AT_RISK_GRADE}%"]
    if top:
        insights.append(f"Top performer: {top.get('student_name')} ({top.get('average_grade')}%)")
    insights.append(f"Average attendance across students is {avg_attendance}%")

    recommendations = []
    if at_risk:
        recommendations.append("Schedule interventions for students averaging below 60%")
    if avg_attendance < LOW_ATTENDANCE:
        recommendations.append("Review attendance policies with low-attendance students")

    return ReportSummary(
        key_metrics=[
            KeyMetric("Total Students", len(rows)),
            KeyMetric("Average Grade", avg_grade, "%"),
            KeyMetric("Average Attendance", avg_attendance, "%"),
        ],
        insights=insights,
        recommendations=recommendations,
    )


def course_analytics(rows: Sequence[Row]) -> ReportSummary:
    best = max(rows, key=lambda r: r.get("engagement_score") or 0, default=None)
    low_completion = [r for r in rows if (r.get("completion_rate") or 0) < 50]
    insights = [f"{len(low_completion)} courses have completion below 50%"]
    if best:
        insights.append(f"Most engaged course: {best.get('course_name')} ({best.get('engagement_score')}%)")
    return ReportSummary(
        key_metrics=[
            KeyMetric("Total Courses", len(rows)),
            KeyMetric("Total Enrollment", int(_total(rows, "enrolled_students"))),
            KeyMetric("Average Completion", _avg(rows, "completion_rate"), "%"),
        ],
        insights=insights,
    )


def attendance_summary(rows: Sequence[Row]) -> ReportSummary:
    rate = _avg(rows, "attendance_rate")
    chronic = [r for r in rows if (r.get("attendance_rate") or 0) < LOW_ATTENDANCE]
    insights = [
        f"{len(chronic)} students attend less than {LOW_ATTENDANCE}% of sessions",
        f"{int(_total(rows, 'late_days'))} late arrivals were recorded",
    ]
    recommendations = ["Contact students with attendance below 80%"] if chronic else []
    return ReportSummary(
        key_metrics=[
            KeyMetric("Students Tracked", len(rows)),
            KeyMetric("Average Attendance", rate, "%"),
            KeyMetric("Average Punctuality", _avg(rows, "punctuality_rate"), "%"),
        ],
        insights=insights,
        recommendations=recommendations,
    )


def grade_distribution(rows: Sequence[Row]) -> ReportSummary:
    total = int(_total(rows, "count"))
    passing = int(sum(r.get("count", 0) for r in rows if r.get("grade") != "F"))
    largest = max(rows, key=lambda r: r.get("count") or 0, default=None)
    pass_rate = round(passing / total * 100, 2) if total else 0.0
    insights = [f"{pass_rate}% of graded submissions are passing"]
    if largest and total:
        insights.append(f"Most common grade band is {largest.get('grade')} ({largest.get('percentage')}%)")
    return ReportSummary(
        key_metrics=[
            KeyMetric("Graded Submissions", total),
            KeyMetric("Pass Rate", pass_rate, "%"),
        ],
        insights=insights,
    )


def engagement_metrics(rows: Sequence[Row]) -> ReportSummary:
    disengaged = [r for r in rows if not r.get("recent_submissions")]
    on_time = _total(rows, "on_time_submissions")
    submitted = _total(rows, "total_submissions")
    timeliness = round(on_time / submitted * 100, 2) if submitted else 0.0
    return ReportSummary(
        key_metrics=[
            KeyMetric("Average Engagement", _avg(rows, "engagement_score"), "%"),
            KeyMetric("On-Time Rate", timeliness, "%"),
            KeyMetric("Total Submissions", int(submitted)),
        ],
        insights=[
            f"{len(disengaged)} students have not submitted work in the last 30 days",
            f"{timeliness}% of submissions arrived on time",
        ],
        recommendations=["Reach out to students without recent activity"] if disengaged else [],
    )


def financial_summary(rows: Sequence[Row]) -> ReportSummary:
    revenue = _total(rows, "total_revenue")
    pending = _total(rows, "pending_revenue")
    expected = _total(rows, "expected_revenue")
    collection = round(revenue / expected * 100, 2) if expected else 0.0
    return ReportSummary(
        key_metrics=[
            KeyMetric("Total Revenue", revenue, "USD"),
            KeyMetric("Pending Revenue", pending, "USD"),
            KeyMetric("Collection Rate", collection, "%"),
        ],
        insights=[
            f"${revenue:,.2f} collected of ${expected:,.2f} expected",
            f"${pending:,.2f} is awaiting payment",
        ],
    )


def comparative_analysis(rows: Sequence[Row]) -> ReportSummary:
    ordered = sorted(rows, key=lambda r: r.get("variance") or 0)
    insights: List[str] = []
    if ordered:
        high, low = ordered[-1], ordered[0]
        insights.append(
            f"Largest gain: {high.get('entity_name')} {high.get('metric')} ({high.get('variance'):+.2f}%)"
        )
        insights.append(
            f"Largest drop: {low.get('entity_name')} {low.get('metric')} ({low.get('variance'):+.2f}%)"
        )
    return ReportSummary(
        key_metrics=[
            KeyMetric("Comparisons", len({r.get("entity_id") for r in rows})),
            KeyMetric("Average Variance", _avg(rows, "variance"), "%"),
        ],
        insights=insights,
    )


SUMMARIZERS: Dict[ReportType, Callable[[Sequence[Row]], ReportSummary]] = {
    ReportType.STUDENT_PERFORMANCE: student_performance,
    ReportType.COURSE_ANALYTICS: course_analytics,
    ReportType.ATTENDANCE_SUMMARY: attendance_summary,
    ReportType.GRADE_DISTRIBUTION: grade_distribution,
    ReportType.ENGAGEMENT_METRICS: engagement_metrics,
    ReportType.FINANCIAL_SUMMARY: financial_summary,
    ReportType.COMPARATIVE_ANALYSIS: comparative_analysis,
}


def summarize(report_type: ReportType, rows: Sequence[Row]) -> ReportSummary:
    return SUMMARIZERS[report_type](rows)
