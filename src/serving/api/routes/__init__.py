"""
API Routes Module
"""
from .health import router as health_router
from .reports import router as reports_router
from .exports import router as exports_router
from .dashboards import router as dashboards_router
from .realtime import router as realtime_router
from .analytics import router as analytics_router

__all__ = [
    "health_router",
    "reports_router",
    "exports_router",
    "dashboards_router",
    "realtime_router",
    "analytics_router",
]
