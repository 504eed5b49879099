"""
Export Module

Report serialization and time-limited export artifacts.
"""

from .manager import ExportManager
from .models import (
    BatchItemResult,
    ExportFormat,
    ExportSchedule,
    ExportStatus,
    ReportExport,
    ScheduleFrequency,
)
from .serializers import CONTENT_TYPES, EXTENSIONS, serialize
from .storage import ArtifactStore, MemoryArtifactStore, RedisArtifactStore, StoredArtifact

__all__ = [
    "ExportManager",
    "BatchItemResult",
    "ExportFormat",
    "ExportSchedule",
    "ExportStatus",
    "ReportExport",
    "ScheduleFrequency",
    "CONTENT_TYPES",
    "EXTENSIONS",
    "serialize",
    "ArtifactStore",
    "MemoryArtifactStore",
    "RedisArtifactStore",
    "StoredArtifact",
]
