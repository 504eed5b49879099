"""
Dashboard layouts, widgets and widget view-models
"""
from .manager import DashboardManager
from .models import DashboardLayout, WidgetConfig, WidgetPosition, WidgetType
from .widgets import PALETTE, shape_widget_data

__all__ = [
    "DashboardLayout",
    "DashboardManager",
    "PALETTE",
    "WidgetConfig",
    "WidgetPosition",
    "WidgetType",
    "shape_widget_data",
]
