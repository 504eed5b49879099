"""
Analytics API Endpoints

Metric sets, risk prediction, trend regression and comparative analysis.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
import structlog

from src.analytics import ComparisonDimension
from src.core.records import TimeWindow, jsonable
from src.serving.api.dependencies import DatasetPayload, get_services, resolve_dataset
from src.services import ReportingServices

router = APIRouter()
logger = structlog.get_logger(__name__)


class WindowRequest(BaseModel):
    start: datetime
    end: datetime
    dataset: Optional[DatasetPayload] = None


class PredictRequest(BaseModel):
    dataset: Optional[DatasetPayload] = None


class TrendRequest(BaseModel):
    series: List[float]


class CompareRequest(BaseModel):
    dimension: ComparisonDimension
    baseline_id: str
    comparison_ids: List[str] = Field(min_length=1)
    dataset: Optional[DatasetPayload] = None


class SignificanceRequest(BaseModel):
    sample_a: List[float] = Field(min_length=2)
    sample_b: List[float] = Field(min_length=2)
    confidence_level: float = Field(0.95, gt=0, lt=1)
    method: Optional[Literal["welch", "coarse"]] = None


@router.post("/metrics/{category}")
async def metric_set(
    category: Literal["engagement", "performance", "financial"],
    body: WindowRequest,
    services: ReportingServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    """Metric set for ``[start, end)`` with trends against the baseline provider."""
    window = TimeWindow(body.start, body.end)
    dataset = resolve_dataset(services, body.dataset)
    compute = {
        "engagement": services.analytics.engagement_metrics,
        "performance": services.analytics.performance_metrics,
        "financial": services.analytics.financial_metrics,
    }[category]
    return jsonable(compute(dataset, window))


@router.post("/students/{student_id}/prediction")
async def predict_performance(
    student_id: str,
    body: Optional[PredictRequest] = None,
    services: ReportingServices = Depends(get_services),
) -> Dict[str, Any]:
    dataset = resolve_dataset(services, body.dataset if body else None)
    prediction = services.analytics.predict_performance(student_id, dataset.submissions, dataset.attendance)
    return jsonable(prediction)


@router.post("/trend")
async def analyze_trend(body: TrendRequest, services: ReportingServices = Depends(get_services)) -> Dict[str, Any]:
    return jsonable(services.analytics.analyze_trend(body.series))


@router.post("/compare")
async def compare(body: CompareRequest, services: ReportingServices = Depends(get_services)) -> Dict[str, Any]:
    dataset = resolve_dataset(services, body.dataset)
    analysis = services.comparative.compare(body.dimension, body.baseline_id, body.comparison_ids, dataset)
    return jsonable(analysis)


@router.post("/significance")
async def significance(
    body: SignificanceRequest,
    services: ReportingServices = Depends(get_services),
) -> Dict[str, Any]:
    result = services.comparative.significance(
        body.sample_a, body.sample_b, body.confidence_level, body.method,
    )
    return jsonable(result)
