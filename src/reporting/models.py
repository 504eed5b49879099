"""
Report configuration and output types.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from src.core.records import Row, jsonable


class ReportType(str, Enum):
    """Report generation routines"""
    STUDENT_PERFORMANCE = "student-performance"
    COURSE_ANALYTICS = "course-analytics"
    ATTENDANCE_SUMMARY = "attendance-summary"
    GRADE_DISTRIBUTION = "grade-distribution"
    ENGAGEMENT_METRICS = "engagement-metrics"
    FINANCIAL_SUMMARY = "financial-summary"
    COMPARATIVE_ANALYSIS = "comparative-analysis"


@dataclass(frozen=True)
class ReportConfig:
    id: str
    type: str
    name: str = ""
    description: str = ""


@dataclass(frozen=True)
class KeyMetric:
    label: str
    value: Any
    unit: Optional[str] = None


@dataclass(frozen=True)
class ReportSummary:
    key_metrics: List[KeyMetric] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReportMetadata:
    generated_at: datetime
    parameters: Dict[str, Any]
    total_records: int
    execution_time: float


@dataclass(frozen=True)
class ReportData:
    """
    One generation result. ``metadata.total_records`` always equals
    ``len(data)``.
    """
    id: str
    report_id: str
    report_type: ReportType
    data: List[Row]
    metadata: ReportMetadata
    summary: Optional[ReportSummary] = None

    def __post_init__(self):
        if self.metadata.total_records != len(self.data):
            raise ValueError("total_records must equal the number of rows")

    def to_dict(self) -> Dict[str, Any]:
        return jsonable(self)
