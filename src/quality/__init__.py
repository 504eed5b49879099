"""
Data quality: schema validation and profiling
"""
from .validators import FieldType, RowViolation, SchemaRule, SchemaValidator, ValidationReport
from .profiler import IssueType, QualityIssue, QualityReport, assess_quality

__all__ = [
    "FieldType",
    "RowViolation",
    "SchemaRule",
    "SchemaValidator",
    "ValidationReport",
    "IssueType",
    "QualityIssue",
    "QualityReport",
    "assess_quality",
]
