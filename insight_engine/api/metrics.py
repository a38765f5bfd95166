"""
FastAPI router module for metric insights, smart alerts and insight feedback.

Endpoints:
- POST /metrics/analyze: Run the local metric analyzers (24h cached)
- POST /metrics/alerts: Threshold and period-over-period alerts
- PUT /metrics/feedback: Record "was this insight helpful?"
- GET /metrics/feedback/{form_id}/{insight_id}: Read stored feedback

All computation is local; nothing here calls an external service.
"""

import logging
from typing import List

from fastapi import APIRouter

from insight_engine.core.dependencies import SettingsDep, StoreDep
from insight_engine.models import (
    AlertsRequest,
    AnalyzeMetricsRequest,
    InsightFeedbackRequest,
    InsightFeedbackResponse,
    MetricEngineResult,
    SmartAlert,
)
from insight_engine.services.alerts import (
    generate_alerts,
    get_insight_feedback,
    store_insight_feedback,
)
from insight_engine.services.metric_cache import MetricCache
from insight_engine.services.metric_engine import analyze_all_metrics

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.post(
    "/analyze",
    response_model=MetricEngineResult,
    response_model_exclude_none=True,
)
async def analyze_metrics(
    request: AnalyzeMetricsRequest,
    store: StoreDep,
    settings: SettingsDep,
) -> MetricEngineResult:
    """
    Analyze the supplied metric inputs for a form.

    Only analyzers whose input key is present run; the others are omitted
    from the response. Identical inputs within 24h are served from cache
    (same updatedAt) unless forceRefresh is set.
    """
    cache = MetricCache(store, ttl_ms=settings.metric_cache_ttl_ms)
    return await analyze_all_metrics(
        request.inputs,
        form_id=request.formId,
        force_refresh=request.forceRefresh,
        cache=cache,
    )


@router.post("/alerts", response_model=List[SmartAlert])
async def metric_alerts(request: AlertsRequest) -> List[SmartAlert]:
    """Threshold crossings and ±15% changes for the supplied metrics."""
    return generate_alerts(
        request.metrics,
        request.previousMetrics,
        request.thresholds,
    )


@router.put("/feedback", response_model=InsightFeedbackResponse)
async def put_insight_feedback(
    request: InsightFeedbackRequest,
    store: StoreDep,
) -> InsightFeedbackResponse:
    """Store feedback and echo what is now stored (None if storage is disabled)."""
    store_insight_feedback(request.formId, request.insightId, request.helpful, store=store)
    return InsightFeedbackResponse(
        formId=request.formId,
        insightId=request.insightId,
        feedback=get_insight_feedback(request.formId, request.insightId, store=store),
    )


@router.get("/feedback/{form_id}/{insight_id}", response_model=InsightFeedbackResponse)
async def read_insight_feedback(
    form_id: str,
    insight_id: str,
    store: StoreDep,
) -> InsightFeedbackResponse:
    return InsightFeedbackResponse(
        formId=form_id,
        insightId=insight_id,
        feedback=get_insight_feedback(form_id, insight_id, store=store),
    )
