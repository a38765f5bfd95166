"""
Pydantic models for the Insight Engine.

This module provides type-safe validation and serialization for the metric
analyzer inputs and outputs, the cached engine result, normalized AI insights,
auto-rebuild plans, smart alerts, and the HTTP request/response bodies.

Field names are camelCase to match the JSON contracts consumed by the web
client (`overallSummary`, `cacheKey`, `insightsHash`, ...).

All models use Pydantic v2 syntax.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from insight_engine.models.enums import (
    AlertType,
    Confidence,
    InsightFeedback,
    PlanPriority,
    PlannedActionType,
    ThresholdDirection,
    Trend,
    UserPlan,
)


# =============================================================================
# Metric Insight
# =============================================================================


class MetricInsight(BaseModel):
    """
    Output of one analyzer: a short insight and a one-line suggestion.

    Immutable; analyzers build a fresh instance on every run.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "insight": "Completion rate is 80%, up 12% vs last period.",
                "suggestion": "Consider simplifying longer sections or clarifying "
                              "instructions where drop-offs occur.",
                "confidence": "high"
            }
        }
    )

    insight: str
    suggestion: str
    confidence: Optional[Confidence] = None


# =============================================================================
# Analyzer Inputs (ModularInputs members)
# =============================================================================


class CompletionInput(BaseModel):
    """Response counts by completion state, plus optional period totals."""
    totalResponses: Optional[int] = 0
    complete: Optional[int] = 0
    partial: Optional[int] = None
    abandoned: Optional[int] = None
    lastWeekComplete: Optional[int] = None
    prevWeekComplete: Optional[int] = None


class TimeInput(BaseModel):
    """Completion durations in ms, or a precomputed average."""
    durationsMs: Optional[List[float]] = None
    avgMs: Optional[float] = None


class DeviceTimes(BaseModel):
    """Average completion time per device class in ms."""
    desktop: Optional[float] = None
    mobile: Optional[float] = None
    tablet: Optional[float] = None


class DevicesInput(BaseModel):
    """Response counts per device class."""
    desktop: Optional[int] = 0
    mobile: Optional[int] = 0
    tablet: Optional[int] = 0
    avgTimeByDeviceMs: Optional[DeviceTimes] = None


class TrafficInput(BaseModel):
    """Response counts keyed by referrer/source (names or URLs)."""
    bySource: Dict[str, float] = Field(default_factory=dict)


class GeoInput(BaseModel):
    """Response counts keyed by country name."""
    byCountry: Dict[str, float] = Field(default_factory=dict)


class QuestionPerfItem(BaseModel):
    """Per-question friction statistics. Rates are in [0, 1]."""
    id: str
    label: Optional[str] = None
    completionRate: Optional[float] = None
    skipRate: Optional[float] = None
    avgDwellMs: Optional[float] = None


class QuestionsInput(BaseModel):
    items: List[QuestionPerfItem] = Field(default_factory=list)


class TimeActivityInput(BaseModel):
    """
    Response activity over time.

    byHour is a 24-slot histogram (hour 0..23), byDay a 7-slot histogram
    (0 = Sunday). timestamps accepts epoch milliseconds, ISO-8601 strings or
    datetimes and is only used when byHour is missing or malformed.
    """
    byHour: Optional[List[float]] = None
    byDay: Optional[List[float]] = None
    timestamps: Optional[List[Union[int, float, datetime, str]]] = None


class SentimentInput(BaseModel):
    """Free-text response samples."""
    samples: List[str] = Field(default_factory=list)


class ModularInputs(BaseModel):
    """
    Per-metric analyzer inputs. Every key is optional.

    Absence of a key means "do not run that analyzer"; it is not the same as
    an empty payload, which runs the analyzer and yields a low-confidence
    "not enough data yet" insight.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "completion": {"totalResponses": 120, "complete": 96, "partial": 12},
                "time": {"avgMs": 210000},
                "devices": {"desktop": 120, "mobile": 260, "tablet": 20},
                "traffic": {"bySource": {"twitter": 78, "google": 46, "direct": 22}},
                "geography": {"byCountry": {"United States": 140, "Canada": 38}},
                "questions": {"items": [{"id": "Q4", "label": "Question 4", "skipRate": 0.62}]},
                "sentiment": {"samples": ["Great form!", "Too long"]}
            }
        }
    )

    completion: Optional[CompletionInput] = None
    time: Optional[TimeInput] = None
    devices: Optional[DevicesInput] = None
    traffic: Optional[TrafficInput] = None
    geography: Optional[GeoInput] = None
    questions: Optional[QuestionsInput] = None
    activity: Optional[TimeActivityInput] = None
    sentiment: Optional[SentimentInput] = None


# =============================================================================
# Metric Engine Result
# =============================================================================


class MetricEngineResult(BaseModel):
    """
    Aggregated analyzer output with cache metadata.

    Only analyzers that actually ran have a value; the others stay None and
    are dropped when the result is serialized. Timestamps are epoch ms.
    """
    completionRate: Optional[MetricInsight] = None
    avgCompletionTime: Optional[MetricInsight] = None
    devices: Optional[MetricInsight] = None
    traffic: Optional[MetricInsight] = None
    geography: Optional[MetricInsight] = None
    questions: Optional[MetricInsight] = None
    activity: Optional[MetricInsight] = None
    sentiment: Optional[MetricInsight] = None
    overallSummary: Optional[str] = None
    cacheKey: str
    updatedAt: int
    expiresAt: int


# =============================================================================
# AI Insights and Auto-Rebuild Plans
# =============================================================================


class AIInsights(BaseModel):
    """
    Normalized AI summarizer output.

    Produced only by `normalize_insights`, which coerces any malformed or
    partial payload into this shape with empty defaults.
    """
    summary: str = ""
    keyInsights: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)


class PlannedAction(BaseModel):
    """One atomic, human-reviewable suggestion. Never executed automatically."""
    type: PlannedActionType
    priority: PlanPriority
    reason: str
    questionId: Optional[str] = None
    questionLabel: Optional[str] = None
    preview: Optional[str] = None


class AutoRebuildPlan(BaseModel):
    """
    A proposed set of survey edits, or a "ghost" plan explaining why none was made.

    Ghost plans have eligible=False and no actions; they exist for UI messaging
    and are never persisted.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "formId": "form_123",
                "createdAt": "2026-10-18T09:00:00.000Z",
                "eligible": True,
                "reason": "Plan derived from latest AI insights",
                "actions": [
                    {
                        "type": "tweak_question_copy",
                        "priority": "high",
                        "reason": "High drop-off/skip detected",
                        "questionLabel": "Question 4",
                        "preview": "Reword or simplify the question to reduce friction"
                    }
                ],
                "insightsHash": "3b2f9c1a",
                "scheduleNextCheckAt": "2026-10-19T09:00:00.000Z"
            }
        }
    )

    formId: str
    createdAt: str
    eligible: bool
    reason: str
    actions: List[PlannedAction] = Field(default_factory=list)
    insightsHash: str
    scheduleNextCheckAt: Optional[str] = None


class EligibilityDecision(BaseModel):
    """Result of a single eligibility evaluation. nextCheckAt is epoch ms."""
    eligible: bool
    reason: str
    nextCheckAt: int


# =============================================================================
# Smart Alerts
# =============================================================================


class MetricComparison(BaseModel):
    """Change of a metric between the previous and current period."""
    current: float
    previous: float
    delta: float
    deltaPercent: float
    trend: Trend


class AlertThreshold(BaseModel):
    """Static alert rule on a single metric."""
    metric: str
    threshold: float
    direction: ThresholdDirection
    message: str


class SmartAlert(BaseModel):
    """Alert raised by a threshold crossing or a large period-over-period change."""
    id: str
    type: AlertType
    message: str
    metric: str
    threshold: str
    timestamp: datetime


# =============================================================================
# API Request / Response Bodies
# =============================================================================


class AnalyzeMetricsRequest(BaseModel):
    """Body of POST /metrics/analyze."""
    formId: str = Field(..., min_length=1)
    forceRefresh: bool = False
    inputs: ModularInputs = Field(default_factory=ModularInputs)


class AlertsRequest(BaseModel):
    """Body of POST /metrics/alerts. Omitted thresholds use the defaults."""
    metrics: Dict[str, float]
    previousMetrics: Optional[Dict[str, float]] = None
    thresholds: Optional[List[AlertThreshold]] = None


class InsightFeedbackRequest(BaseModel):
    """Body of PUT /metrics/feedback."""
    formId: str = Field(..., min_length=1)
    insightId: str = Field(..., min_length=1)
    helpful: bool


class InsightFeedbackResponse(BaseModel):
    formId: str
    insightId: str
    feedback: Optional[InsightFeedback] = None


class RebuildTriggerRequest(BaseModel):
    """
    Body of POST /rebuild/trigger.

    `insights` is deliberately untyped: it carries raw summarizer output and
    is normalized server-side.
    """
    formId: str = ""
    responseCount: int = 0
    insights: Any = None
    lastRunAt: Optional[int] = None
    minIntervalMs: Optional[int] = Field(default=None, ge=0)
    dryRun: bool = False
    userPlan: Optional[UserPlan] = None
    lastPlanHash: Optional[str] = None
    questionIdMap: Optional[Dict[str, str]] = None


class LastPlanResponse(BaseModel):
    """Body of GET /rebuild/{form_id}."""
    plan: AutoRebuildPlan
    lastRunAt: Optional[int] = None
