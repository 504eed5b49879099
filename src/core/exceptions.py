"""
Error taxonomy shared by every reporting component.

Validation problems are never raised; they travel as data in
``ValidationReport.errors``.
"""

from typing import Any, Dict, Optional


class ReportingError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ReportingError):
    """Unknown report type, API name or resource id, or malformed identifiers."""


class ComputationError(ReportingError):
    """An unexpected fault while computing a report."""


class TransportError(ReportingError):
    """A realtime fetch or outbound HTTP call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.status_code = status_code


class ExportError(ReportingError):
    """Serializing a report into an export format failed."""


class ExpressionError(ValueError):
    """A calculate expression could not be parsed."""
