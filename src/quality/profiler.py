"""
Data Quality Profiling

Completeness and type-consistency scoring over row dictionaries.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Sequence

from src.core.records import Row


class IssueType(str, Enum):
    MISSING = "missing"
    INCONSISTENT = "inconsistent"


@dataclass
class QualityIssue:
    type: IssueType
    field: str
    count: int
    percentage: float


@dataclass
class QualityReport:
    """Quality profile of a row set. Percentages are 0-100."""
    completeness: float
    field_completeness: Dict[str, float] = field(default_factory=dict)
    consistency: Dict[str, bool] = field(default_factory=dict)
    consistency_score: float = 100.0
    issues: List[QualityIssue] = field(default_factory=list)


def _type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    return type(value).__name__


def assess_quality(rows: Sequence[Row]) -> QualityReport:
    """
    Profile completeness and consistency per top-level field.

    Fields are the union of keys across all rows, in first-seen order. A value
    is missing when the key is absent, None or the empty string. A field is
    inconsistent when its present values span more than one type; the issue
    count is the number of values outside the dominant type.
    """
    if not rows:
        return QualityReport(completeness=0.0, consistency_score=0.0)

    fields: Dict[str, None] = {}
    for row in rows:
        for key in row:
            fields.setdefault(key, None)

    total = len(rows)
    report = QualityReport(completeness=0.0)
    missing_cells = 0

    for name in fields:
        present = [row[name] for row in rows if row.get(name) not in (None, "")]
        missing = total - len(present)
        missing_cells += missing
        report.field_completeness[name] = round(len(present) / total * 100, 2)
        if missing:
            report.issues.append(QualityIssue(
                type=IssueType.MISSING,
                field=name,
                count=missing,
                percentage=round(missing / total * 100, 2),
            ))

        type_counts: Dict[str, int] = {}
        for value in present:
            kind = _type_name(value)
            type_counts[kind] = type_counts.get(kind, 0) + 1
        inconsistent = len(present) - max(type_counts.values(), default=0)
        report.consistency[name] = inconsistent == 0
        if inconsistent:
            report.issues.append(QualityIssue(
                type=IssueType.INCONSISTENT,
                field=name,
                count=inconsistent,
                percentage=round(inconsistent / total * 100, 2),
            ))

    cells = total * len(fields)
    report.completeness = round((cells - missing_cells) / cells * 100, 2) if cells else 0.0
    consistent = sum(1 for ok in report.consistency.values() if ok)
    report.consistency_score = round(consistent / len(fields) * 100, 2) if fields else 100.0
    return report
