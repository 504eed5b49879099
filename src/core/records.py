"""
Operational records consumed by the analytics and reporting layers.

Records are plain dictionaries with snake_case keys so the same rows can flow
through the data processor, the report routines and polars frames without
conversion.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import polars as pl


class UserRole(str, Enum):
    """Dashboard and account roles"""
    SUPER_ADMIN = "SuperAdmin"
    TEACHER = "Teacher"
    STUDENT = "Student"


class AttendanceStatus(str, Enum):
    PRESENT = "Present"
    ABSENT = "Absent"
    LATE = "Late"
    EXCUSED = "Excused"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"


Row = Dict[str, Any]

TABLES = ("users", "courses", "assignments", "submissions", "attendance", "payments")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Coerce a datetime, date or ISO-8601 string to an aware UTC datetime.

    Naive values are taken to be UTC. Returns None for missing or unparseable
    input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval ``[start, end)``."""
    start: datetime
    end: datetime

    def __post_init__(self):
        start = parse_timestamp(self.start)
        end = parse_timestamp(self.end)
        if start is None or end is None:
            raise ValueError("TimeWindow bounds must be timestamps")
        if end < start:
            raise ValueError("TimeWindow end precedes start")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    def contains(self, value: Any) -> bool:
        ts = parse_timestamp(value)
        return ts is not None and self.start <= ts < self.end

    @property
    def duration(self):
        return self.end - self.start

    def previous(self) -> "TimeWindow":
        """The window of equal length ending where this one starts."""
        return TimeWindow(self.start - self.duration, self.start)


@dataclass
class Dataset:
    """
    Bundle of raw operational records.

    Example:
        dataset = Dataset(users=[{"id": "s1", "role": "Student", ...}])
        frame = dataset.frame("attendance")
    """
    users: List[Row] = field(default_factory=list)
    courses: List[Row] = field(default_factory=list)
    assignments: List[Row] = field(default_factory=list)
    submissions: List[Row] = field(default_factory=list)
    attendance: List[Row] = field(default_factory=list)
    payments: List[Row] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Dict[str, Iterable[Row]]) -> "Dataset":
        return cls(**{name: [dict(r) for r in payload.get(name) or []] for name in TABLES})

    def to_dict(self) -> Dict[str, List[Row]]:
        return {name: list(getattr(self, name)) for name in TABLES}

    def frame(self, name: str) -> pl.DataFrame:
        """Return one table as a polars DataFrame (empty frame for no rows)."""
        if name not in TABLES:
            raise KeyError(name)
        rows = getattr(self, name)
        if not rows:
            return pl.DataFrame()
        return pl.DataFrame(rows, infer_schema_length=None)

    def students(self) -> List[Row]:
        return [u for u in self.users if u.get("role") == UserRole.STUDENT.value]

    def course(self, course_id: str) -> Optional[Row]:
        return next((c for c in self.courses if c.get("id") == course_id), None)

    def assignment_index(self) -> Dict[str, Row]:
        return {a["id"]: a for a in self.assignments if "id" in a}


class _Missing:
    """Marker for a dot-path that does not resolve."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def get_path(row: Any, path: str) -> Any:
    """
    Resolve ``"a.b.c"`` against nested mappings.

    Returns MISSING when any hop is absent or not a mapping.
    """
    current = row
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return MISSING
        current = current[part]
    return current


def to_number(value: Any) -> Optional[float]:
    """Numeric coercion shared by filters, aggregations and metrics."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def jsonable(value: Any) -> Any:
    """Recursively convert dataclasses, enums and timestamps to JSON types."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [jsonable(v) for v in value]
    return value
