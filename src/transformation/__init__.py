"""
Row processing: filter, aggregate, sort, paginate, transform, deduplicate
"""
from .processor import (
    AggregationOperation,
    AggregationSpec,
    DataProcessor,
    DedupResult,
    FilterOperator,
    FilterSpec,
    MISSING_GROUP,
    Page,
    Pagination,
    SortDirection,
    SortKey,
    TransformOp,
    TransformOperation,
)
from .expressions import evaluate, parse_expression

__all__ = [
    "AggregationOperation",
    "AggregationSpec",
    "DataProcessor",
    "DedupResult",
    "FilterOperator",
    "FilterSpec",
    "MISSING_GROUP",
    "Page",
    "Pagination",
    "SortDirection",
    "SortKey",
    "TransformOp",
    "TransformOperation",
    "evaluate",
    "parse_expression",
]
