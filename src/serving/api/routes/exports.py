"""
Export API Endpoints

Report exports, artifact downloads and scheduled export intents.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field

from src.core.records import jsonable
from src.export import ExportFormat, ReportExport, ScheduleFrequency
from src.serving.api.dependencies import ReportRequest, get_services
from src.serving.api.routes.reports import build_report
from src.services import ReportingServices

router = APIRouter()


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class ExportRequest(BaseModel):
    """Generate a report and export it"""
    report: ReportRequest
    format: ExportFormat = ExportFormat.JSON
    filename: Optional[str] = None


class BatchExportRequest(BaseModel):
    reports: List[ReportRequest] = Field(min_length=1)
    format: ExportFormat = ExportFormat.JSON


class ScheduleRequest(BaseModel):
    report_id: str
    format: ExportFormat = ExportFormat.PDF
    frequency: ScheduleFrequency
    time: str = Field(description="HH:MM, 24 hour clock")
    recipients: List[str] = Field(default_factory=list)


class ExportResponse(BaseModel):
    id: str
    report_id: str
    format: ExportFormat
    status: str
    created_at: datetime
    expires_at: datetime
    download_url: Optional[str] = None
    file_size: Optional[int] = None
    error: Optional[str] = None
    items: List[Dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: ReportExport) -> "ExportResponse":
        return cls(**jsonable(record))


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("", response_model=ExportResponse, status_code=201)
async def create_export(
    body: ExportRequest,
    services: ReportingServices = Depends(get_services),
) -> ExportResponse:
    """Generate a report and store it as a 24 hour artifact."""
    report = build_report(services, body.report)
    record = await services.exports.export(report, body.format, body.filename)
    return ExportResponse.from_record(record)


@router.post("/batch", response_model=ExportResponse, status_code=201)
async def create_batch_export(
    body: BatchExportRequest,
    services: ReportingServices = Depends(get_services),
) -> ExportResponse:
    """Generate several reports and bundle them into one zip artifact."""
    reports = [build_report(services, request) for request in body.reports]
    record = await services.exports.batch_export(reports, body.format)
    return ExportResponse.from_record(record)


@router.get("", response_model=List[ExportResponse])
async def list_exports(
    report_id: Optional[str] = Query(None),
    services: ReportingServices = Depends(get_services),
) -> List[ExportResponse]:
    return [ExportResponse.from_record(r) for r in services.exports.list_exports(report_id)]


@router.post("/sweep")
async def sweep_expired_exports(services: ReportingServices = Depends(get_services)) -> Dict[str, int]:
    """Delete exports past their expiry."""
    return {"removed": await services.exports.sweep_expired()}


@router.post("/schedules", status_code=201)
async def schedule_export(
    body: ScheduleRequest,
    services: ReportingServices = Depends(get_services),
) -> Dict[str, Any]:
    schedule = services.exports.schedule_export(
        body.report_id, body.format, body.frequency, body.time, body.recipients,
    )
    return jsonable(schedule)


@router.get("/schedules")
async def list_schedules(
    report_id: Optional[str] = Query(None),
    services: ReportingServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return jsonable(services.exports.list_schedules(report_id))


@router.delete("/schedules/{schedule_id}", status_code=204)
async def cancel_schedule(
    schedule_id: str,
    services: ReportingServices = Depends(get_services),
) -> Response:
    services.exports.cancel_scheduled_export(schedule_id)
    return Response(status_code=204)


@router.get("/{export_id}", response_model=ExportResponse)
async def get_export(
    export_id: str,
    services: ReportingServices = Depends(get_services),
) -> ExportResponse:
    record = services.exports.get_export(export_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Export not found: {export_id}")
    return ExportResponse.from_record(record)


@router.get("/{export_id}/download")
async def download_export(
    export_id: str,
    services: ReportingServices = Depends(get_services),
) -> Response:
    """Artifact bytes; 404 once the export has expired or never completed."""
    artifact = await services.exports.get_artifact(export_id)
    if artifact is None:
        raise HTTPException(status_code=404, detail=f"No artifact available for export {export_id}")
    return Response(
        content=artifact.content,
        media_type=artifact.content_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )
