"""
Realtime API Endpoints

Registration and inspection of polled data sources.
"""

from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from src.core.records import jsonable
from src.ingestion import RealtimeDataSource
from src.serving.api.dependencies import get_services
from src.services import ReportingServices

router = APIRouter()


class SourceCreate(BaseModel):
    name: str
    endpoint: str
    update_interval: float = Field(gt=0, description="Seconds between polls")


class SourceUpdate(BaseModel):
    name: Optional[str] = None
    endpoint: Optional[str] = None
    update_interval: Optional[float] = Field(None, gt=0)


class AggregateRequest(BaseModel):
    source_ids: List[str] = Field(min_length=1)
    operation: Literal["sum", "avg", "min", "max", "count"] = "sum"


def _source_out(services: ReportingServices, source: RealtimeDataSource) -> Dict[str, Any]:
    out = jsonable(source)
    out["subscribers"] = services.realtime.subscriber_count(source.id)
    return out


def _require_source(services: ReportingServices, source_id: str) -> RealtimeDataSource:
    source = services.realtime.get_source(source_id)
    if source is None:
        raise HTTPException(status_code=404, detail=f"Realtime data source not found: {source_id}")
    return source


@router.get("/sources")
async def list_sources(services: ReportingServices = Depends(get_services)) -> List[Dict[str, Any]]:
    return [_source_out(services, s) for s in services.realtime.list_sources()]


@router.post("/sources", status_code=201)
async def register_source(
    body: SourceCreate,
    services: ReportingServices = Depends(get_services),
) -> Dict[str, Any]:
    """Register a source; polling starts immediately."""
    source = services.realtime.register(body.name, body.endpoint, body.update_interval)
    return _source_out(services, source)


@router.get("/sources/{source_id}")
async def get_source(source_id: str, services: ReportingServices = Depends(get_services)) -> Dict[str, Any]:
    return _source_out(services, _require_source(services, source_id))


@router.patch("/sources/{source_id}")
async def update_source(
    source_id: str,
    body: SourceUpdate,
    services: ReportingServices = Depends(get_services),
) -> Dict[str, Any]:
    _require_source(services, source_id)
    source = services.realtime.update(source_id, **body.model_dump(exclude_unset=True, exclude_none=True))
    return _source_out(services, source)


@router.delete("/sources/{source_id}", status_code=204)
async def remove_source(source_id: str, services: ReportingServices = Depends(get_services)) -> Response:
    """Stop polling. Removing an unknown source is not an error."""
    await services.realtime.remove(source_id)
    return Response(status_code=204)


@router.get("/sources/{source_id}/cached")
async def get_cached_payload(source_id: str, services: ReportingServices = Depends(get_services)) -> Dict[str, Any]:
    """Latest payload if still fresh, else null."""
    _require_source(services, source_id)
    return {"source_id": source_id, "data": await services.realtime.get_cached(source_id)}


@router.delete("/cache", status_code=204)
async def clear_cache(
    source_id: Optional[str] = None,
    services: ReportingServices = Depends(get_services),
) -> Response:
    await services.realtime.clear_cache(source_id)
    return Response(status_code=204)


@router.post("/aggregate")
async def aggregate_sources(
    body: AggregateRequest,
    services: ReportingServices = Depends(get_services),
) -> Dict[str, Any]:
    value = await services.realtime.aggregate(body.source_ids, body.operation)
    return {"operation": body.operation, "value": value}
