"""
Widget view-models.

``shape_widget_data`` maps raw rows to the structure a widget type renders.
It is pure: no I/O and no mutation of its inputs.
"""

from typing import Any, Callable, Dict, List, Sequence

from src.core.records import MISSING, Row, get_path, to_number
from .models import WidgetConfig, WidgetType

PALETTE = ["#3B82F6", "#EF4444", "#10B981", "#F59E0B", "#8B5CF6", "#EC4899"]
DEFAULT_LIST_LIMIT = 10
DEFAULT_MAX = 100


def _first_present(row: Row, *keys: str) -> Any:
    for key in keys:
        value = get_path(row, key)
        if value is not MISSING and value is not None:
            return value
    return None


def _percentage(value: float, maximum: float) -> float:
    return round(value / maximum * 100, 1) if maximum else 0.0


def _metric_card(widget: WidgetConfig, rows: Sequence[Row]) -> Dict[str, Any]:
    aggregation = widget.config.get("aggregation", "count")
    if aggregation == "count":
        return {"value": len(rows)}

    field = widget.config.get("field", "value")
    values = [to_number(get_path(r, field)) or 0 for r in rows]
    if not values:
        return {"value": 0}
    if aggregation == "sum":
        value = sum(values)
    elif aggregation == "avg":
        value = sum(values) / len(values)
    elif aggregation == "min":
        value = min(values)
    elif aggregation == "max":
        value = max(values)
    else:
        raise ValueError(f"Unknown aggregation: {aggregation}")
    return {"value": value}


def _chart(widget: WidgetConfig, rows: Sequence[Row]) -> Dict[str, Any]:
    colors = widget.config.get("colors") or PALETTE
    group_by = widget.config.get("group_by")

    if group_by:
        counts: Dict[str, int] = {}
        for row in rows:
            key = _first_present(row, group_by)
            label = "(missing)" if key is None else str(key)
            counts[label] = counts.get(label, 0) + 1
        pairs = list(counts.items())
    else:
        pairs = [
            (_first_present(row, "label", "name"), to_number(_first_present(row, "value")) or 0)
            for row in rows
        ]

    points = [
        {"label": label, "value": value, "color": colors[i % len(colors)]}
        for i, (label, value) in enumerate(pairs)
    ]
    return {"chart_type": widget.config.get("chart_type", "bar"), "points": points}


def _table(widget: WidgetConfig, rows: Sequence[Row]) -> Dict[str, Any]:
    return {"columns": list(rows[0].keys()) if rows else [], "rows": list(rows)}


def _progress_bar(widget: WidgetConfig, rows: Sequence[Row]) -> List[Dict[str, Any]]:
    items = []
    for row in rows:
        value = to_number(_first_present(row, "value")) or 0
        maximum = to_number(_first_present(row, "max")) or widget.config.get("max", DEFAULT_MAX)
        items.append({
            "label": _first_present(row, "label", "name"),
            "value": value,
            "max": maximum,
            "percentage": _percentage(value, maximum),
        })
    return items


def _list(widget: WidgetConfig, rows: Sequence[Row]) -> List[Row]:
    return list(rows[:widget.config.get("limit", DEFAULT_LIST_LIMIT)])


def _gauge(widget: WidgetConfig, rows: Sequence[Row]) -> Dict[str, Any]:
    first = rows[0] if rows else {}
    value = to_number(_first_present(first, "value")) or 0
    maximum = to_number(_first_present(first, "max")) or widget.config.get("max", DEFAULT_MAX)
    return {"value": value, "max": maximum, "percentage": _percentage(value, maximum)}


def _heatmap(widget: WidgetConfig, rows: Sequence[Row]) -> List[Dict[str, Any]]:
    return [
        {
            "x": _first_present(row, "x", "date"),
            "y": _first_present(row, "y", "category"),
            "value": _first_present(row, "value", "count"),
        }
        for row in rows
    ]


SHAPERS: Dict[WidgetType, Callable[[WidgetConfig, Sequence[Row]], Any]] = {
    WidgetType.METRIC_CARD: _metric_card,
    WidgetType.CHART: _chart,
    WidgetType.TABLE: _table,
    WidgetType.PROGRESS_BAR: _progress_bar,
    WidgetType.LIST: _list,
    WidgetType.GAUGE: _gauge,
    WidgetType.HEATMAP: _heatmap,
}


def shape_widget_data(widget: WidgetConfig, rows: Sequence[Row]) -> Any:
    """Build the view-model for ``widget`` from ``rows``."""
    return SHAPERS[widget.type](widget, list(rows))
