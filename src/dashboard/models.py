"""
Dashboard layout and widget types.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from src.core.records import UserRole, utcnow


class WidgetType(str, Enum):
    METRIC_CARD = "metric-card"
    CHART = "chart"
    TABLE = "table"
    PROGRESS_BAR = "progress-bar"
    LIST = "list"
    GAUGE = "gauge"
    HEATMAP = "heatmap"


@dataclass
class WidgetPosition:
    x: int = 0
    y: int = 0
    w: int = 3
    h: int = 2


@dataclass
class WidgetConfig:
    """
    A dashboard widget. ``data_source`` names a realtime data source and is
    only a lookup key.
    """
    id: str
    type: WidgetType
    title: str
    position: WidgetPosition = field(default_factory=WidgetPosition)
    config: Dict[str, Any] = field(default_factory=dict)
    data_source: Optional[str] = None
    refresh_interval: Optional[float] = None
    role: Optional[UserRole] = None

    def __post_init__(self):
        self.type = WidgetType(self.type)
        if isinstance(self.position, dict):
            self.position = WidgetPosition(**self.position)
        if self.role is not None:
            self.role = UserRole(self.role)


@dataclass
class DashboardLayout:
    id: str
    name: str
    role: UserRole
    widgets: List[WidgetConfig] = field(default_factory=list)
    is_default: bool = False
    created_by: str = "system"
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.role = UserRole(self.role)
