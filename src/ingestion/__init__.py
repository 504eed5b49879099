"""
Realtime Data Ingestion Module
"""
from .fetchers import HttpDataFetcher
from .realtime import DataSourceStatus, RealtimeDataManager, RealtimeDataSource

__all__ = [
    "DataSourceStatus",
    "HttpDataFetcher",
    "RealtimeDataManager",
    "RealtimeDataSource",
]
