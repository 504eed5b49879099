"""
Historical baselines for metric trends.

The analytics engine asks a provider for the value a metric had in the
previous period. Providers never invent data: when no history is known the
trend is reported as stable.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from src.core.records import TimeWindow


class BaselineProvider(ABC):
    """Source of prior-period metric values."""

    @abstractmethod
    def get_baseline(self, metric_id: str, window: TimeWindow) -> Optional[float]:
        """Value of ``metric_id`` for the period before ``window``, if known."""


class InMemoryBaselineProvider(BaselineProvider):
    """
    Baselines held in memory.

    Values may be keyed by metric id alone or by ``(metric_id, window.start)``
    for window-specific history.

    Example:
        provider = InMemoryBaselineProvider({"attendance_rate": 82.0})
    """

    def __init__(self, values: Optional[Dict] = None):
        self._values: Dict = dict(values or {})

    def record(self, metric_id: str, value: float, window: Optional[TimeWindow] = None) -> None:
        key = (metric_id, window.start) if window else metric_id
        self._values[key] = value

    def get_baseline(self, metric_id: str, window: TimeWindow) -> Optional[float]:
        keyed: Tuple = (metric_id, window.start)
        if keyed in self._values:
            return self._values[keyed]
        return self._values.get(metric_id)
