"""
Export records and scheduling intents.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"
    EXCEL = "excel"
    PDF = "pdf"


class ExportStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS: Dict[ExportStatus, Set[ExportStatus]] = {
    ExportStatus.PENDING: {ExportStatus.PROCESSING, ExportStatus.FAILED},
    ExportStatus.PROCESSING: {ExportStatus.COMPLETED, ExportStatus.FAILED},
    ExportStatus.COMPLETED: set(),
    ExportStatus.FAILED: set(),
}


@dataclass
class BatchItemResult:
    report_id: str
    success: bool
    file_size: Optional[int] = None
    error: Optional[str] = None


@dataclass
class ReportExport:
    """
    Export artifact record. Status moves pending -> processing ->
    completed | failed; terminal states are final.
    """
    id: str
    report_id: str
    format: ExportFormat
    created_at: datetime
    expires_at: datetime
    status: ExportStatus = ExportStatus.PENDING
    download_url: Optional[str] = None
    file_size: Optional[int] = None
    error: Optional[str] = None
    items: List[BatchItemResult] = field(default_factory=list)

    def transition(self, status: ExportStatus) -> None:
        if status not in _TRANSITIONS[self.status]:
            raise ValueError(f"Illegal export transition {self.status.value} -> {status.value}")
        self.status = status

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.status]


class ScheduleFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass
class ExportSchedule:
    """Recorded intent only; an external job runner does the executing."""
    id: str
    report_id: str
    format: ExportFormat
    frequency: ScheduleFrequency
    time: str
    recipients: List[str]
    created_at: datetime
    enabled: bool = True
