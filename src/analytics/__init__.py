"""
Analytics: metric sets, trends, risk prediction and comparative analysis
"""
from .baselines import BaselineProvider, InMemoryBaselineProvider
from .comparative import ComparativeAnalysisEngine, calculate_variance, significance
from .engine import AnalyticsEngine
from .models import (
    AnalyticsMetric,
    ComparativeAnalysis,
    ComparisonDimension,
    MetricCategory,
    MetricTrend,
    RiskLevel,
    RiskPrediction,
    SeriesTrend,
    SignificanceResult,
    TrendAnalysis,
    TrendDirection,
)
from .trends import analyze_trend, compute_trend

__all__ = [
    "AnalyticsEngine",
    "AnalyticsMetric",
    "BaselineProvider",
    "ComparativeAnalysis",
    "ComparativeAnalysisEngine",
    "ComparisonDimension",
    "InMemoryBaselineProvider",
    "MetricCategory",
    "MetricTrend",
    "RiskLevel",
    "RiskPrediction",
    "SeriesTrend",
    "SignificanceResult",
    "TrendAnalysis",
    "TrendDirection",
    "analyze_trend",
    "calculate_variance",
    "compute_trend",
    "significance",
]
