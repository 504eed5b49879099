"""
Schema Validation Module

Rule-based validation of row dictionaries.

Features:
- Required field checks
- Type checks (string, number, boolean, date, email)
- Numeric range checks
- Pattern matching

Violations are collected, never raised: a single pass reports every failing
(row, field) pair.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import structlog

from src.core.records import MISSING, Row, get_path, parse_timestamp, to_number

logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    EMAIL = "email"


@dataclass(frozen=True)
class SchemaRule:
    """Constraints for one field"""
    field: str
    type: FieldType
    required: bool = False
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "type", FieldType(self.type))


@dataclass
class RowViolation:
    """One failing (row, field) pair"""
    row: int
    field: str
    message: str


@dataclass
class ValidationReport:
    valid: bool
    errors: List[RowViolation] = field(default_factory=list)
    rows_checked: int = 0

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def by_field(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for error in self.errors:
            counts[error.field] = counts.get(error.field, 0) + 1
        return counts


def _is_empty(value: Any) -> bool:
    return value is MISSING or value is None or value == ""


def _type_ok(value: Any, field_type: FieldType) -> bool:
    if field_type == FieldType.STRING:
        return isinstance(value, str)
    if field_type == FieldType.NUMBER:
        return not isinstance(value, bool) and to_number(value) is not None
    if field_type == FieldType.BOOLEAN:
        return isinstance(value, bool)
    if field_type == FieldType.DATE:
        return isinstance(value, date) or parse_timestamp(value) is not None
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value))


class SchemaValidator:
    """
    Validates rows against a list of field rules.

    Example:
        validator = SchemaValidator()
        validator.add_rule(SchemaRule("email", "email", required=True))
        validator.add_rule(SchemaRule("grade", "number", min=0, max=100))
        report = validator.validate(rows)
    """

    def __init__(self, rules: Optional[Sequence[SchemaRule]] = None):
        self._rules: List[SchemaRule] = list(rules or [])

    def add_rule(self, rule: SchemaRule) -> "SchemaValidator":
        self._rules.append(rule)
        return self

    def _check(self, value: Any, rule: SchemaRule) -> Optional[str]:
        if _is_empty(value):
            if rule.required:
                return f"Field {rule.field} is required"
            return None

        if not _type_ok(value, rule.type):
            return f"Field {rule.field} must be of type {rule.type.value}"

        if rule.type == FieldType.NUMBER:
            number = to_number(value)
            if rule.min is not None and number < rule.min:
                return f"Field {rule.field} must be at least {rule.min}"
            if rule.max is not None and number > rule.max:
                return f"Field {rule.field} must be at most {rule.max}"

        if rule.pattern and isinstance(value, str) and not re.search(rule.pattern, value):
            return f"Field {rule.field} does not match required pattern"
        return None

    def validate(self, rows: Sequence[Row]) -> ValidationReport:
        errors: List[RowViolation] = []
        for index, row in enumerate(rows):
            for rule in self._rules:
                message = self._check(get_path(row, rule.field), rule)
                if message:
                    errors.append(RowViolation(row=index, field=rule.field, message=message))

        if errors:
            logger.info("Validation found violations", rows=len(rows), violations=len(errors))
        return ValidationReport(valid=not errors, errors=errors, rows_checked=len(rows))
