"""
Analytics result types.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class SeriesTrend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class MetricCategory(str, Enum):
    ENGAGEMENT = "engagement"
    PERFORMANCE = "performance"
    FINANCIAL = "financial"
    OPERATIONAL = "operational"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ComparisonDimension(str, Enum):
    COURSE = "course"
    SEMESTER = "semester"
    YEAR = "year"
    COHORT = "cohort"


@dataclass(frozen=True)
class MetricTrend:
    direction: TrendDirection
    percentage: float
    period: str = "vs last period"


@dataclass
class AnalyticsMetric:
    """A named value with optional benchmark, target and trend."""
    id: str
    name: str
    value: float
    unit: str
    category: MetricCategory
    benchmark: Optional[float] = None
    target: Optional[float] = None
    trend: Optional[MetricTrend] = None


@dataclass
class RiskPrediction:
    student_id: str
    predicted_score: float
    risk_level: RiskLevel
    recommendations: List[str]
    average_score: float
    attendance_rate: float


@dataclass
class TrendAnalysis:
    trend: SeriesTrend
    slope: float
    correlation: float
    forecast: List[float] = field(default_factory=list)


@dataclass
class SignificanceResult:
    is_significant: bool
    p_value: float
    confidence_interval: List[float]
    t_statistic: float
    degrees_of_freedom: float
    critical_value: float
    method: str


@dataclass
class ComparativeAnalysis:
    id: str
    type: ComparisonDimension
    baseline: Dict[str, Any]
    comparisons: List[Dict[str, Any]]
    metrics: List[str]
