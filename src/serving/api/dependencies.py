"""
Shared request dependencies and payload models.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request
from pydantic import BaseModel, Field

from src.core.records import Dataset, Row
from src.services import ReportingServices


def get_services(request: Request) -> ReportingServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return services


class DatasetPayload(BaseModel):
    """Inline records; omitted tables are empty"""
    users: List[Row] = Field(default_factory=list)
    courses: List[Row] = Field(default_factory=list)
    assignments: List[Row] = Field(default_factory=list)
    submissions: List[Row] = Field(default_factory=list)
    attendance: List[Row] = Field(default_factory=list)
    payments: List[Row] = Field(default_factory=list)

    def to_dataset(self) -> Dataset:
        return Dataset.from_dict(self.model_dump())


def resolve_dataset(services: ReportingServices, payload: Optional[DatasetPayload]) -> Dataset:
    """Inline dataset if the request carries one, else the served dataset."""
    return payload.to_dataset() if payload is not None else services.dataset


class ReportRequest(BaseModel):
    """Report generation request"""
    report_type: str
    name: Optional[str] = None
    report_id: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    dataset: Optional[DatasetPayload] = None
