"""
Core records and errors
"""
from .exceptions import (
    ReportingError,
    ConfigurationError,
    ComputationError,
    TransportError,
    ExportError,
    ExpressionError,
)
from .records import (
    MISSING,
    AttendanceStatus,
    Dataset,
    get_path,
    jsonable,
    to_number,
    PaymentStatus,
    Row,
    TimeWindow,
    UserRole,
    parse_timestamp,
    utcnow,
)

__all__ = [
    "ReportingError",
    "ConfigurationError",
    "ComputationError",
    "TransportError",
    "ExportError",
    "ExpressionError",
    "AttendanceStatus",
    "Dataset",
    "PaymentStatus",
    "Row",
    "TimeWindow",
    "UserRole",
    "parse_timestamp",
    "utcnow",
    "MISSING",
    "get_path",
    "jsonable",
    "to_number",
]
