"""
Report generation and summaries
"""
from .generator import ReportGenerator
from .models import KeyMetric, ReportConfig, ReportData, ReportMetadata, ReportSummary, ReportType

__all__ = [
    "KeyMetric",
    "ReportConfig",
    "ReportData",
    "ReportGenerator",
    "ReportMetadata",
    "ReportSummary",
    "ReportType",
]
