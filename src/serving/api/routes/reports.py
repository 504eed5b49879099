"""
Report API Endpoints

On-demand report generation over the served or an inline dataset.
"""

import uuid
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from src.reporting import ReportConfig, ReportData, ReportType
from src.serving.api.dependencies import ReportRequest, get_services, resolve_dataset
from src.services import ReportingServices

router = APIRouter()


def build_report(services: ReportingServices, body: ReportRequest) -> ReportData:
    """Generate the report described by ``body``; shared with the export endpoints."""
    config = ReportConfig(
        id=body.report_id or f"{body.report_type}_{uuid.uuid4().hex[:12]}",
        type=body.report_type,
        name=body.name or body.report_type.replace("-", " ").title(),
    )
    return services.reports.generate(config, body.parameters, resolve_dataset(services, body.dataset))


@router.get("/types")
async def list_report_types() -> List[str]:
    """Available report types."""
    return [t.value for t in ReportType]


@router.post("/generate")
async def generate_report(
    body: ReportRequest,
    services: ReportingServices = Depends(get_services),
) -> Dict[str, Any]:
    """
    Generate a report.

    Unknown report types are rejected with 400; any failure during
    generation returns 500 and no partial report.
    """
    return build_report(services, body).to_dict()
