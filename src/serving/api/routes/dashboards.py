"""
Dashboard API Endpoints

Layout and widget management plus widget view-model shaping.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field

from src.core.records import Row, jsonable
from src.dashboard import DashboardLayout, WidgetConfig, WidgetType
from src.serving.api.dependencies import get_services
from src.services import ReportingServices

router = APIRouter()


# =============================================================================
# REQUEST MODELS
# =============================================================================

class Position(BaseModel):
    x: int = 0
    y: int = 0
    w: int = Field(3, ge=1)
    h: int = Field(2, ge=1)


class WidgetCreate(BaseModel):
    type: WidgetType
    title: str
    position: Position = Field(default_factory=Position)
    config: Dict[str, Any] = Field(default_factory=dict)
    data_source: Optional[str] = None
    refresh_interval: Optional[float] = Field(None, gt=0)
    role: Optional[str] = None


class WidgetUpdate(BaseModel):
    type: Optional[WidgetType] = None
    title: Optional[str] = None
    position: Optional[Position] = None
    config: Optional[Dict[str, Any]] = None
    data_source: Optional[str] = None
    refresh_interval: Optional[float] = Field(None, gt=0)


class LayoutCreate(BaseModel):
    name: str
    role: str
    widget_ids: List[str] = Field(default_factory=list)
    is_default: bool = False
    created_by: str = "system"


class LayoutUpdate(BaseModel):
    name: Optional[str] = None
    widget_ids: Optional[List[str]] = None
    is_default: Optional[bool] = None


class ShapeRequest(BaseModel):
    rows: List[Row] = Field(default_factory=list)


# =============================================================================
# HELPERS
# =============================================================================

def _layout_out(layout: DashboardLayout) -> Dict[str, Any]:
    return jsonable(layout)


def _resolve_widgets(services: ReportingServices, widget_ids: List[str]) -> List[WidgetConfig]:
    widgets = []
    for widget_id in widget_ids:
        widget = services.dashboards.get_widget(widget_id)
        if widget is None:
            raise HTTPException(status_code=404, detail=f"Widget not found: {widget_id}")
        widgets.append(widget)
    return widgets


def _require_widget(services: ReportingServices, widget_id: str) -> WidgetConfig:
    widget = services.dashboards.get_widget(widget_id)
    if widget is None:
        raise HTTPException(status_code=404, detail=f"Widget not found: {widget_id}")
    return widget


def _require_layout(services: ReportingServices, layout_id: str) -> DashboardLayout:
    layout = services.dashboards.get_layout(layout_id)
    if layout is None:
        raise HTTPException(status_code=404, detail=f"Dashboard layout not found: {layout_id}")
    return layout


# =============================================================================
# WIDGET ENDPOINTS
# =============================================================================

@router.get("/widgets")
async def list_widgets(
    role: Optional[str] = Query(None),
    services: ReportingServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return jsonable(services.dashboards.list_widgets(role))


@router.post("/widgets", status_code=201)
async def create_widget(
    body: WidgetCreate,
    services: ReportingServices = Depends(get_services),
) -> Dict[str, Any]:
    widget = services.dashboards.create_widget(**body.model_dump())
    return jsonable(widget)


@router.get("/widgets/{widget_id}")
async def get_widget(widget_id: str, services: ReportingServices = Depends(get_services)) -> Dict[str, Any]:
    return jsonable(_require_widget(services, widget_id))


@router.patch("/widgets/{widget_id}")
async def update_widget(
    widget_id: str,
    body: WidgetUpdate,
    services: ReportingServices = Depends(get_services),
) -> Dict[str, Any]:
    _require_widget(services, widget_id)
    widget = services.dashboards.update_widget(widget_id, **body.model_dump(exclude_unset=True))
    return jsonable(widget)


@router.delete("/widgets/{widget_id}", status_code=204)
async def delete_widget(widget_id: str, services: ReportingServices = Depends(get_services)) -> Response:
    _require_widget(services, widget_id)
    services.dashboards.delete_widget(widget_id)
    return Response(status_code=204)


@router.post("/widgets/{widget_id}/shape")
async def shape_widget(
    widget_id: str,
    body: ShapeRequest,
    services: ReportingServices = Depends(get_services),
) -> Any:
    """Shape raw rows into the view-model the widget type renders."""
    widget = _require_widget(services, widget_id)
    return jsonable(services.dashboards.shape_widget_data(widget, body.rows))


# =============================================================================
# LAYOUT ENDPOINTS
# =============================================================================

@router.get("")
async def list_layouts(
    role: Optional[str] = Query(None),
    services: ReportingServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return [_layout_out(layout) for layout in services.dashboards.list_layouts(role)]


@router.post("", status_code=201)
async def create_layout(
    body: LayoutCreate,
    services: ReportingServices = Depends(get_services),
) -> Dict[str, Any]:
    layout = services.dashboards.create_layout(
        name=body.name,
        role=body.role,
        widgets=_resolve_widgets(services, body.widget_ids),
        is_default=body.is_default,
        created_by=body.created_by,
    )
    return _layout_out(layout)


@router.get("/default/{role}")
async def get_default_layout(role: str, services: ReportingServices = Depends(get_services)) -> Dict[str, Any]:
    layout = services.dashboards.get_default_for_role(role)
    if layout is None:
        raise HTTPException(status_code=404, detail=f"No default dashboard for role {role}")
    return _layout_out(layout)


@router.get("/{layout_id}")
async def get_layout(layout_id: str, services: ReportingServices = Depends(get_services)) -> Dict[str, Any]:
    return _layout_out(_require_layout(services, layout_id))


@router.patch("/{layout_id}")
async def update_layout(
    layout_id: str,
    body: LayoutUpdate,
    services: ReportingServices = Depends(get_services),
) -> Dict[str, Any]:
    _require_layout(services, layout_id)
    changes = body.model_dump(exclude_unset=True)
    if "widget_ids" in changes:
        changes["widgets"] = _resolve_widgets(services, changes.pop("widget_ids") or [])
    return _layout_out(services.dashboards.update_layout(layout_id, **changes))


@router.delete("/{layout_id}", status_code=204)
async def delete_layout(layout_id: str, services: ReportingServices = Depends(get_services)) -> Response:
    _require_layout(services, layout_id)
    services.dashboards.delete_layout(layout_id)
    return Response(status_code=204)
