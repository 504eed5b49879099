"""
Series trend analysis and period-over-period trends.
"""

from typing import Optional, Sequence

import numpy as np

from .models import MetricTrend, SeriesTrend, TrendAnalysis, TrendDirection

FORECAST_STEPS = 3
STABLE_SLOPE = 0.1


def analyze_trend(series: Sequence[float]) -> TrendAnalysis:
    """
    Least-squares line over ``series`` indexed 0..n-1.

    Returns the slope, Pearson correlation of value against index and a
    forecast for the next three indices. Fewer than two points yield a stable
    trend with zero slope and no forecast.
    """
    y = np.asarray(list(series), dtype=float)
    n = len(y)
    if n < 2:
        return TrendAnalysis(trend=SeriesTrend.STABLE, slope=0.0, correlation=0.0, forecast=[])

    x = np.arange(n, dtype=float)
    dx = x - x.mean()
    dy = y - y.mean()
    sxx = float(np.dot(dx, dx))
    sxy = float(np.dot(dx, dy))
    syy = float(np.dot(dy, dy))

    slope = sxy / sxx
    intercept = float(y.mean()) - slope * float(x.mean())
    correlation = sxy / float(np.sqrt(sxx * syy)) if syy > 0 else 0.0

    if abs(slope) <= STABLE_SLOPE:
        trend = SeriesTrend.STABLE
    elif slope > 0:
        trend = SeriesTrend.INCREASING
    else:
        trend = SeriesTrend.DECREASING

    forecast = [slope * (n + step) + intercept for step in range(FORECAST_STEPS)]
    return TrendAnalysis(trend=trend, slope=slope, correlation=correlation, forecast=forecast)


def compute_trend(
    current: float,
    previous: Optional[float],
    stability_band: float = 5.0,
    period: str = "vs last period",
) -> MetricTrend:
    """
    Period-over-period trend. Changes within ``stability_band`` percent are
    stable; an unknown baseline is stable at 0%.
    """
    if previous is None:
        return MetricTrend(direction=TrendDirection.STABLE, percentage=0, period=period)
    if previous == 0:
        change = 0.0 if current == 0 else 100.0 * (1 if current > 0 else -1)
    else:
        change = (current - previous) / abs(previous) * 100

    if change > stability_band:
        direction = TrendDirection.UP
    elif change < -stability_band:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.STABLE
    return MetricTrend(direction=direction, percentage=abs(round(change)), period=period)
