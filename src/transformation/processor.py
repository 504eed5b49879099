"""
Data Processor

Pure, synchronous row operations used by every report and widget:
- Filtering with comparison operators on dot-path fields
- Grouping and aggregation
- Stable multi-key sorting
- Pagination
- Field transforms (rename, format, calculate, convert)
- Deduplication on composite keys

Inputs are never mutated; every operation returns new lists and new row
dictionaries where a row changes.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from src.core.records import MISSING, Row, get_path, parse_timestamp, to_number as _to_number
from src.quality.profiler import QualityReport, assess_quality
from src.quality.validators import SchemaRule, SchemaValidator, ValidationReport
from .expressions import evaluate, parse_expression

logger = structlog.get_logger(__name__)

MISSING_GROUP = "(missing)"


# ============================================================================
# Specifications
# ============================================================================

class FilterOperator(str, Enum):
    EQUALS = "equals"
    CONTAINS = "contains"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    BETWEEN = "between"
    IN = "in"


class AggregationOperation(str, Enum):
    SUM = "sum"
    AVG = "avg"
    COUNT = "count"
    MIN = "min"
    MAX = "max"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class TransformOperation(str, Enum):
    RENAME = "rename"
    FORMAT = "format"
    CALCULATE = "calculate"
    CONVERT = "convert"


@dataclass(frozen=True)
class FilterSpec:
    field: str
    operator: FilterOperator
    value: Any = None

    def __post_init__(self):
        object.__setattr__(self, "operator", FilterOperator(self.operator))


@dataclass(frozen=True)
class AggregationSpec:
    field: str
    operation: AggregationOperation
    alias: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "operation", AggregationOperation(self.operation))

    @property
    def output_name(self) -> str:
        return self.alias or f"{self.operation.value}_{self.field}"


@dataclass(frozen=True)
class SortKey:
    field: str
    direction: SortDirection = SortDirection.ASC

    def __post_init__(self):
        object.__setattr__(self, "direction", SortDirection(self.direction))


@dataclass(frozen=True)
class TransformOp:
    field: str
    operation: TransformOperation
    params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "operation", TransformOperation(self.operation))


@dataclass
class Pagination:
    current_page: int
    page_size: int
    total_items: int
    total_pages: int
    has_next: bool
    has_previous: bool


@dataclass
class Page:
    data: List[Row]
    pagination: Pagination


@dataclass
class DedupResult:
    deduplicated: List[Row]
    duplicates: List[Row]


# ============================================================================
# Filter predicates
# ============================================================================

def _equals(value: Any, target: Any) -> bool:
    return value == target


def _contains(value: Any, target: Any) -> bool:
    return str(target).lower() in str(value).lower()


def _greater_than(value: Any, target: Any) -> bool:
    left, right = _to_number(value), _to_number(target)
    return left is not None and right is not None and left > right


def _less_than(value: Any, target: Any) -> bool:
    left, right = _to_number(value), _to_number(target)
    return left is not None and right is not None and left < right


def _between(value: Any, target: Any) -> bool:
    if not isinstance(target, (list, tuple)) or len(target) != 2:
        return False
    number = _to_number(value)
    low, high = _to_number(target[0]), _to_number(target[1])
    if number is None or low is None or high is None:
        return False
    return low <= number <= high


def _in(value: Any, target: Any) -> bool:
    if not isinstance(target, (list, tuple, set, frozenset)):
        return False
    try:
        return value in target
    except TypeError:
        # unhashable row value against a set
        return any(value == t for t in target)


# ============================================================================
# Formatting helpers
# ============================================================================

def format_currency(value: Any) -> Any:
    number = _to_number(value)
    if number is None:
        return value
    sign = "-" if number < 0 else ""
    return f"{sign}${abs(number):,.2f}"


def format_percentage(value: Any) -> Any:
    number = _to_number(value)
    if number is None:
        return value
    return f"{number * 100:.1f}%"


def format_number(value: Any) -> Any:
    number = _to_number(value)
    if number is None:
        return value
    if number.is_integer():
        return f"{int(number):,}"
    return f"{number:,.3f}".rstrip("0").rstrip(".")


def format_date(value: Any) -> Any:
    ts = parse_timestamp(value)
    return ts.strftime("%Y-%m-%d") if ts else value


def format_datetime(value: Any) -> Any:
    ts = parse_timestamp(value)
    return ts.strftime("%Y-%m-%d %H:%M:%S") if ts else value


def _convert(value: Any, source: str, target: str) -> Any:
    pair = (source, target)
    if pair == ("string", "number"):
        number = _to_number(value)
        if number is None:
            return None
        return int(number) if number.is_integer() else number
    if pair == ("number", "string"):
        return str(value)
    if pair == ("string", "date"):
        return parse_timestamp(value)
    if pair == ("date", "string"):
        ts = parse_timestamp(value)
        return ts.isoformat() if ts else None
    if pair == ("boolean", "string"):
        return "true" if value else "false"
    if pair == ("string", "boolean"):
        return str(value).strip().lower() == "true"
    logger.warning("Unsupported conversion", source=source, target=target)
    return value


def _sort_value(value: Any) -> Tuple:
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    ts = value if hasattr(value, "isoformat") else None
    if ts is not None:
        return (1, parse_timestamp(ts))
    if isinstance(value, str):
        return (2, value)
    return (2, str(value))


def _hashable(value: Any) -> Any:
    if value is MISSING:
        return ("__missing__",)
    if isinstance(value, dict):
        return tuple(sorted((k, _hashable(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple, set)):
        return tuple(_hashable(v) for v in value)
    return value


class DataProcessor:
    """
    Row-level processing toolkit.

    Operators and transforms are kept in registries so callers can plug in
    their own rules.

    Example:
        processor = DataProcessor()
        rows = processor.filter(rows, [FilterSpec("role", "equals", "Student")])
        page = processor.paginate(processor.sort(rows, [SortKey("name")]), 1, 20)
    """

    def __init__(self):
        self._operators: Dict[str, Callable[[Any, Any], bool]] = {
            FilterOperator.EQUALS.value: _equals,
            FilterOperator.CONTAINS.value: _contains,
            FilterOperator.GREATER_THAN.value: _greater_than,
            FilterOperator.LESS_THAN.value: _less_than,
            FilterOperator.BETWEEN.value: _between,
            FilterOperator.IN.value: _in,
        }
        self._formatters: Dict[str, Callable[[Any], Any]] = {
            "currency": format_currency,
            "percentage": format_percentage,
            "number": format_number,
            "date": format_date,
            "datetime": format_datetime,
        }

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def matches(self, row: Row, spec: FilterSpec) -> bool:
        value = get_path(row, spec.field)
        if value is MISSING:
            return False
        return self._operators[spec.operator.value](value, spec.value)

    def filter(self, rows: Iterable[Row], specs: Sequence[FilterSpec]) -> List[Row]:
        """Keep rows that satisfy every spec, preserving input order."""
        return [row for row in rows if all(self.matches(row, spec) for spec in specs)]

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def aggregate(
        self,
        rows: Iterable[Row],
        group_by: str,
        specs: Sequence[AggregationSpec],
    ) -> List[Row]:
        """
        Partition rows by ``group_by`` and compute one output row per group.

        Group keys are stringified; rows missing the field fall into the
        ``MISSING_GROUP`` bucket. Groups appear in first-seen order.
        """
        groups: Dict[str, List[Row]] = {}
        for row in rows:
            value = get_path(row, group_by)
            key = MISSING_GROUP if value is MISSING or value is None else str(value)
            groups.setdefault(key, []).append(row)

        output = []
        for key, members in groups.items():
            result: Row = {group_by: key}
            for spec in specs:
                result[spec.output_name] = self._aggregate_group(members, spec)
            output.append(result)
        return output

    @staticmethod
    def _aggregate_group(members: List[Row], spec: AggregationSpec) -> float:
        if spec.operation == AggregationOperation.COUNT:
            return len(members)
        values = [_to_number(get_path(r, spec.field)) or 0.0 for r in members]
        if spec.operation == AggregationOperation.SUM:
            return sum(values)
        if spec.operation == AggregationOperation.AVG:
            return sum(values) / len(values)
        if spec.operation == AggregationOperation.MIN:
            return min(values)
        return max(values)

    # ------------------------------------------------------------------
    # Sorting and pagination
    # ------------------------------------------------------------------

    def sort(self, rows: Iterable[Row], keys: Sequence[SortKey]) -> List[Row]:
        """
        Stable multi-key sort. Keys are applied from least to most
        significant so ties on the first key fall through to the next.
        Rows missing a key's field go last in either direction.
        """
        result = list(rows)
        for key in reversed(keys):
            present, missing = [], []
            for row in result:
                value = get_path(row, key.field)
                (missing if value is MISSING or value is None else present).append(row)
            present.sort(
                key=lambda r, f=key.field: _sort_value(get_path(r, f)),
                reverse=key.direction == SortDirection.DESC,
            )
            result = present + missing
        return result

    def paginate(self, rows: Sequence[Row], page: int, page_size: int) -> Page:
        if page < 1:
            raise ValueError("page must be >= 1")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        rows = list(rows)
        total = len(rows)
        total_pages = math.ceil(total / page_size)
        start = (page - 1) * page_size
        return Page(
            data=rows[start:start + page_size],
            pagination=Pagination(
                current_page=page,
                page_size=page_size,
                total_items=total,
                total_pages=total_pages,
                has_next=page < total_pages,
                has_previous=page > 1,
            ),
        )

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def transform(self, rows: Iterable[Row], ops: Sequence[TransformOp]) -> List[Row]:
        """
        Apply field operations to copies of each row, in order.

        Calculate expressions are parsed once up front; a malformed
        expression raises ExpressionError before any row is touched.
        """
        compiled = []
        for op in ops:
            ast = None
            if op.operation == TransformOperation.CALCULATE:
                ast = parse_expression(op.params.get("expression", ""))
            compiled.append((op, ast))

        output = []
        for row in rows:
            new_row = dict(row)
            for op, ast in compiled:
                self._apply(new_row, op, ast)
            output.append(new_row)
        return output

    def _apply(self, row: Row, op: TransformOp, ast) -> None:
        if op.operation == TransformOperation.CALCULATE:
            target = op.params.get("new_field") or op.field
            row[target] = evaluate(ast, lambda path: get_path(row, path))
            return

        if op.field not in row:
            return

        if op.operation == TransformOperation.RENAME:
            new_name = op.params.get("new_name")
            if new_name and new_name != op.field:
                row[new_name] = row.pop(op.field)
        elif op.operation == TransformOperation.FORMAT:
            formatter = self._formatters.get(op.params.get("format", ""))
            if formatter is None:
                logger.warning("Unknown format", format=op.params.get("format"), field=op.field)
                return
            row[op.field] = formatter(row[op.field])
        elif op.operation == TransformOperation.CONVERT:
            row[op.field] = _convert(row[op.field], op.params.get("from", ""), op.params.get("to", ""))

    # ------------------------------------------------------------------
    # Validation and quality
    # ------------------------------------------------------------------

    def validate(self, rows: Sequence[Row], schema: Sequence[SchemaRule]) -> ValidationReport:
        """Check rows against a schema, collecting every violation."""
        return SchemaValidator(schema).validate(rows)

    def assess_quality(self, rows: Sequence[Row]) -> QualityReport:
        return assess_quality(rows)

    # ------------------------------------------------------------------
    # Deduplication
    # ------------------------------------------------------------------

    def deduplicate(self, rows: Iterable[Row], key_fields: Sequence[str]) -> DedupResult:
        """Keep the first row per composite key; later ones go to ``duplicates``."""
        seen = set()
        kept, duplicates = [], []
        for row in rows:
            key = tuple(_hashable(get_path(row, f)) for f in key_fields)
            if key in seen:
                duplicates.append(row)
            else:
                seen.add(key)
                kept.append(row)
        return DedupResult(deduplicated=kept, duplicates=duplicates)
