"""
Dashboard Manager

In-memory registry of dashboard layouts and widgets with role defaults.
"""

import uuid
from dataclasses import fields
from typing import Any, Dict, List, Optional, Sequence

import structlog

from src.core.exceptions import ConfigurationError
from src.core.records import Row, UserRole, utcnow
from .models import DashboardLayout, WidgetConfig, WidgetPosition, WidgetType
from .widgets import shape_widget_data

logger = structlog.get_logger(__name__)

_IMMUTABLE = {"id", "created_at"}


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _apply_changes(target: Any, changes: Dict[str, Any]) -> None:
    allowed = {f.name for f in fields(target)} - _IMMUTABLE
    unknown = set(changes) - allowed
    if unknown:
        raise ConfigurationError(f"Cannot update fields: {', '.join(sorted(unknown))}")
    for key, value in changes.items():
        setattr(target, key, value)
    # re-run coercion of enum and nested fields
    target.__post_init__()


class DashboardManager:
    """
    Owns layouts and widgets for the process lifetime.

    Example:
        manager = DashboardManager()
        manager.create_default_dashboards()
        layout = manager.get_default_for_role("Teacher")
    """

    def __init__(self):
        self._layouts: Dict[str, DashboardLayout] = {}
        self._widgets: Dict[str, WidgetConfig] = {}

    # ------------------------------------------------------------------
    # Layouts
    # ------------------------------------------------------------------

    def create_layout(
        self,
        name: str,
        role: str,
        widgets: Optional[Sequence[WidgetConfig]] = None,
        is_default: bool = False,
        created_by: str = "system",
    ) -> DashboardLayout:
        layout = DashboardLayout(
            id=_new_id("layout"),
            name=name,
            role=role,
            widgets=list(widgets or []),
            is_default=is_default,
            created_by=created_by,
        )
        self._layouts[layout.id] = layout
        logger.info("Dashboard layout created", layout_id=layout.id, role=layout.role.value)
        return layout

    def update_layout(self, layout_id: str, **changes: Any) -> DashboardLayout:
        layout = self._require_layout(layout_id)
        _apply_changes(layout, changes)
        layout.updated_at = utcnow()
        return layout

    def delete_layout(self, layout_id: str) -> None:
        self._require_layout(layout_id)
        del self._layouts[layout_id]
        logger.info("Dashboard layout deleted", layout_id=layout_id)

    def get_layout(self, layout_id: str) -> Optional[DashboardLayout]:
        return self._layouts.get(layout_id)

    def list_layouts(self, role: Optional[str] = None) -> List[DashboardLayout]:
        if role is None:
            return list(self._layouts.values())
        role = UserRole(role)
        return [layout for layout in self._layouts.values() if layout.role == role]

    def get_default_for_role(self, role: str) -> Optional[DashboardLayout]:
        """First layout flagged default for ``role``, if any."""
        return next((layout for layout in self.list_layouts(role) if layout.is_default), None)

    def _require_layout(self, layout_id: str) -> DashboardLayout:
        layout = self._layouts.get(layout_id)
        if layout is None:
            raise ConfigurationError(f"Dashboard layout not found: {layout_id}")
        return layout

    # ------------------------------------------------------------------
    # Widgets
    # ------------------------------------------------------------------

    def create_widget(
        self,
        type: str,
        title: str,
        position: Optional[Any] = None,
        config: Optional[Dict[str, Any]] = None,
        data_source: Optional[str] = None,
        refresh_interval: Optional[float] = None,
        role: Optional[str] = None,
    ) -> WidgetConfig:
        widget = WidgetConfig(
            id=_new_id("widget"),
            type=type,
            title=title,
            position=position or WidgetPosition(),
            config=dict(config or {}),
            data_source=data_source,
            refresh_interval=refresh_interval,
            role=role,
        )
        self._widgets[widget.id] = widget
        return widget

    def update_widget(self, widget_id: str, **changes: Any) -> WidgetConfig:
        widget = self._require_widget(widget_id)
        _apply_changes(widget, changes)
        return widget

    def delete_widget(self, widget_id: str) -> None:
        self._require_widget(widget_id)
        del self._widgets[widget_id]

    def get_widget(self, widget_id: str) -> Optional[WidgetConfig]:
        return self._widgets.get(widget_id)

    def list_widgets(self, role: Optional[str] = None) -> List[WidgetConfig]:
        if role is None:
            return list(self._widgets.values())
        role = UserRole(role)
        return [w for w in self._widgets.values() if w.role == role]

    def _require_widget(self, widget_id: str) -> WidgetConfig:
        widget = self._widgets.get(widget_id)
        if widget is None:
            raise ConfigurationError(f"Widget not found: {widget_id}")
        return widget

    def shape_widget_data(self, widget: WidgetConfig, rows: Sequence[Row]) -> Any:
        return shape_widget_data(widget, rows)

    # ------------------------------------------------------------------
    # Defaults
    # ------------------------------------------------------------------

    def create_default_dashboards(self) -> List[DashboardLayout]:
        """Seed one default layout per role."""
        layouts = []
        for role, name, specs in DEFAULT_DASHBOARDS:
            widgets = [
                self.create_widget(
                    type=spec["type"],
                    title=spec["title"],
                    position=WidgetPosition(*spec["position"]),
                    config=spec.get("config"),
                    data_source=spec.get("data_source"),
                    refresh_interval=spec.get("refresh_interval"),
                    role=role.value,
                )
                for spec in specs
            ]
            layouts.append(self.create_layout(name, role.value, widgets, is_default=True))
        return layouts


DEFAULT_DASHBOARDS = [
    (UserRole.SUPER_ADMIN, "Administration Overview", [
        {"type": WidgetType.METRIC_CARD, "title": "Total Users", "position": (0, 0, 3, 2),
         "config": {"aggregation": "count"}, "data_source": "users"},
        {"type": WidgetType.METRIC_CARD, "title": "Total Courses", "position": (3, 0, 3, 2),
         "config": {"aggregation": "count"}, "data_source": "courses"},
        {"type": WidgetType.METRIC_CARD, "title": "Total Revenue", "position": (6, 0, 3, 2),
         "config": {"aggregation": "sum", "field": "amount"}, "data_source": "payments"},
        {"type": WidgetType.GAUGE, "title": "System Load", "position": (9, 0, 3, 2),
         "config": {"max": 100}, "data_source": "system_metrics", "refresh_interval": 30},
        {"type": WidgetType.CHART, "title": "Courses by Category", "position": (0, 2, 6, 4),
         "config": {"chart_type": "pie", "group_by": "category"}, "data_source": "courses"},
        {"type": WidgetType.METRIC_CARD, "title": "Active Users", "position": (6, 2, 6, 2),
         "config": {"aggregation": "sum", "field": "value"}, "data_source": "active_users",
         "refresh_interval": 30},
    ]),
    (UserRole.TEACHER, "Teaching Dashboard", [
        {"type": WidgetType.METRIC_CARD, "title": "My Students", "position": (0, 0, 4, 2),
         "config": {"aggregation": "count"}, "data_source": "students"},
        {"type": WidgetType.METRIC_CARD, "title": "Average Grade", "position": (4, 0, 4, 2),
         "config": {"aggregation": "avg", "field": "grade"}, "data_source": "submissions"},
        {"type": WidgetType.CHART, "title": "Grade Distribution", "position": (0, 2, 6, 4),
         "config": {"chart_type": "bar"}, "data_source": "grade_distribution"},
        {"type": WidgetType.PROGRESS_BAR, "title": "Course Completion", "position": (6, 2, 6, 4),
         "data_source": "course_completion"},
        {"type": WidgetType.HEATMAP, "title": "Attendance", "position": (0, 6, 12, 4),
         "data_source": "live_attendance", "refresh_interval": 60},
    ]),
    (UserRole.STUDENT, "My Learning", [
        {"type": WidgetType.METRIC_CARD, "title": "My Average Grade", "position": (0, 0, 4, 2),
         "config": {"aggregation": "avg", "field": "grade"}, "data_source": "my_submissions"},
        {"type": WidgetType.PROGRESS_BAR, "title": "Assignment Progress", "position": (4, 0, 8, 2),
         "data_source": "my_progress"},
        {"type": WidgetType.LIST, "title": "Recent Submissions", "position": (0, 2, 6, 4),
         "config": {"limit": 5}, "data_source": "recent_submissions", "refresh_interval": 60},
        {"type": WidgetType.CHART, "title": "Grade Trend", "position": (6, 2, 6, 4),
         "config": {"chart_type": "line"}, "data_source": "my_grades"},
    ]),
]
