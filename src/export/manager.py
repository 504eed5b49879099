"""
Export Manager

Turns generated reports into time-limited artifacts:
- Single exports with a pending -> processing -> completed | failed lifecycle
- Batch exports processed in throttled chunks and bundled as one zip
- Scheduling intents recorded for an external job runner
- Sweeping of records past their expiry
"""

import asyncio
import io
import json
import re
import uuid
import zipfile
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

import structlog
from prometheus_client import Counter

from src.config import get_settings
from src.core.exceptions import ConfigurationError, ExportError
from src.core.records import utcnow
from src.reporting.models import ReportData
from .models import (
    BatchItemResult,
    ExportFormat,
    ExportSchedule,
    ExportStatus,
    ReportExport,
    ScheduleFrequency,
)
from .serializers import CONTENT_TYPES, EXTENSIONS, serialize
from .storage import ArtifactStore, MemoryArtifactStore, StoredArtifact

logger = structlog.get_logger(__name__)

BATCH_REPORT_ID = "batch"
ZIP_CONTENT_TYPE = "application/zip"
SCHEDULE_TIME = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


# =============================================================================
# METRICS
# =============================================================================

EXPORTS = Counter(
    "reporting_exports_total",
    "Export attempts by format and outcome",
    ["format", "status"],
)


class ExportManager:
    """
    Registry of export records backed by an artifact store.

    Example:
        exports = ExportManager(MemoryArtifactStore())
        record = await exports.export(report, ExportFormat.CSV)
        artifact = await exports.get_artifact(record.id)
    """

    def __init__(
        self,
        store: Optional[ArtifactStore] = None,
        clock: Callable[[], datetime] = utcnow,
        ttl: Optional[timedelta] = None,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
    ):
        settings = get_settings().reporting
        self.store = store or MemoryArtifactStore()
        self.ttl = ttl or timedelta(hours=settings.export_ttl_hours)
        self.batch_size = batch_size or settings.batch_size
        self.batch_delay = settings.batch_delay_seconds if batch_delay is None else batch_delay
        self._clock = clock
        self._exports: Dict[str, ReportExport] = {}
        self._schedules: Dict[str, ExportSchedule] = {}

    def _new_record(self, report_id: str, fmt: ExportFormat) -> ReportExport:
        created_at = self._clock()
        record = ReportExport(
            id=f"export_{uuid.uuid4().hex[:12]}",
            report_id=report_id,
            format=fmt,
            created_at=created_at,
            expires_at=created_at + self.ttl,
        )
        self._exports[record.id] = record
        return record

    async def _complete(self, record: ReportExport, content: bytes, content_type: str, filename: str) -> None:
        artifact = StoredArtifact(content=content, content_type=content_type, filename=filename)
        record.download_url = await self.store.put(record.id, artifact, record.expires_at - record.created_at)
        record.file_size = len(content)
        record.transition(ExportStatus.COMPLETED)

    # ------------------------------------------------------------------
    # Single export
    # ------------------------------------------------------------------

    async def export(
        self,
        report: ReportData,
        fmt: ExportFormat,
        filename: Optional[str] = None,
    ) -> ReportExport:
        """
        Serialize ``report`` and store the artifact.

        On failure the record stays registered as failed and ExportError is
        raised.
        """
        fmt = ExportFormat(fmt)
        record = self._new_record(report.report_id, fmt)
        record.transition(ExportStatus.PROCESSING)
        filename = filename or f"{report.report_id}.{EXTENSIONS[fmt]}"

        try:
            content = serialize(report, fmt)
            await self._complete(record, content, CONTENT_TYPES[fmt], filename)
        except Exception as e:
            record.error = str(e)
            record.transition(ExportStatus.FAILED)
            EXPORTS.labels(format=fmt.value, status="failed").inc()
            logger.error("Export failed", export_id=record.id, report_id=report.report_id, format=fmt.value, error=str(e))
            raise ExportError(f"Export {record.id} failed: {e}", details={"export_id": record.id}) from e

        EXPORTS.labels(format=fmt.value, status="completed").inc()
        logger.info("Export completed", export_id=record.id, format=fmt.value, file_size=record.file_size)
        return record

    # ------------------------------------------------------------------
    # Batch export
    # ------------------------------------------------------------------

    async def batch_export(self, reports: Sequence[ReportData], fmt: ExportFormat) -> ReportExport:
        """
        Export many reports into one zip bundle.

        Reports are serialized in chunks of ``batch_size`` with ``batch_delay``
        seconds between chunks. Individual failures are recorded per item;
        the record only fails when no item succeeds.
        """
        fmt = ExportFormat(fmt)
        record = self._new_record(BATCH_REPORT_ID, fmt)
        record.transition(ExportStatus.PROCESSING)

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as bundle:
            for start in range(0, len(reports), self.batch_size):
                if start:
                    await asyncio.sleep(self.batch_delay)
                for report in reports[start:start + self.batch_size]:
                    record.items.append(self._bundle_item(bundle, report, fmt))

            manifest = {
                "exported_at": self._clock().isoformat(),
                "format": fmt.value,
                "items": [
                    {
                        "report_id": item.report_id,
                        "success": item.success,
                        "file_size": item.file_size,
                        "error": item.error,
                    }
                    for item in record.items
                ],
            }
            bundle.writestr("manifest.json", json.dumps(manifest, indent=2))

        succeeded = sum(1 for item in record.items if item.success)
        if reports and not succeeded:
            record.error = "All batch items failed"
            record.transition(ExportStatus.FAILED)
            EXPORTS.labels(format=fmt.value, status="failed").inc()
            logger.error("Batch export failed", export_id=record.id, items=len(reports))
            return record

        await self._complete(record, buffer.getvalue(), ZIP_CONTENT_TYPE, f"{record.id}.zip")
        EXPORTS.labels(format=fmt.value, status="completed").inc()
        logger.info(
            "Batch export completed",
            export_id=record.id,
            items=len(reports),
            succeeded=succeeded,
            failed=len(reports) - succeeded,
        )
        return record

    def _bundle_item(self, bundle: zipfile.ZipFile, report: ReportData, fmt: ExportFormat) -> BatchItemResult:
        try:
            content = serialize(report, fmt)
        except Exception as e:
            logger.warning("Batch item failed", report_id=report.report_id, error=str(e))
            return BatchItemResult(report_id=report.report_id, success=False, error=str(e))
        bundle.writestr(f"{report.report_id}_{report.id}.{EXTENSIONS[fmt]}", content)
        return BatchItemResult(report_id=report.report_id, success=True, file_size=len(content))

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def get_export(self, export_id: str) -> Optional[ReportExport]:
        return self._exports.get(export_id)

    def list_exports(self, report_id: Optional[str] = None) -> List[ReportExport]:
        return [e for e in self._exports.values() if report_id is None or e.report_id == report_id]

    async def get_artifact(self, export_id: str) -> Optional[StoredArtifact]:
        """Stored bytes of a completed, unexpired export."""
        record = self._exports.get(export_id)
        if record is None or record.status != ExportStatus.COMPLETED:
            return None
        if record.expires_at <= self._clock():
            return None
        return await self.store.get(export_id)

    async def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Delete every record past its expiry, whatever its status."""
        now = now or self._clock()
        expired = [e.id for e in self._exports.values() if e.expires_at <= now]
        for export_id in expired:
            del self._exports[export_id]
            await self.store.delete(export_id)
        if expired:
            logger.info("Expired exports swept", count=len(expired))
        return len(expired)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule_export(
        self,
        report_id: str,
        fmt: ExportFormat,
        frequency: ScheduleFrequency,
        time: str,
        recipients: Sequence[str],
    ) -> ExportSchedule:
        """Record a recurring export intent. Nothing is executed here."""
        if not SCHEDULE_TIME.match(time):
            raise ValueError(f"Schedule time must be HH:MM, got {time!r}")
        schedule = ExportSchedule(
            id=f"schedule_{uuid.uuid4().hex[:12]}",
            report_id=report_id,
            format=ExportFormat(fmt),
            frequency=ScheduleFrequency(frequency),
            time=time,
            recipients=list(recipients),
            created_at=self._clock(),
        )
        self._schedules[schedule.id] = schedule
        logger.info(
            "Export scheduled",
            schedule_id=schedule.id,
            report_id=report_id,
            frequency=schedule.frequency.value,
            time=time,
            recipients=len(schedule.recipients),
        )
        return schedule

    def cancel_scheduled_export(self, schedule_id: str) -> ExportSchedule:
        schedule = self._schedules.pop(schedule_id, None)
        if schedule is None:
            raise ConfigurationError(f"Scheduled export not found: {schedule_id}")
        schedule.enabled = False
        logger.info("Scheduled export cancelled", schedule_id=schedule_id)
        return schedule

    def list_schedules(self, report_id: Optional[str] = None) -> List[ExportSchedule]:
        return [s for s in self._schedules.values() if report_id is None or s.report_id == report_id]
