"""
Package initialization file for Insight Engine models.

Re-exports all Pydantic schemas and enumerations from schemas.py and enums.py
so other modules can import them from insight_engine.models directly.

Usage:
    from insight_engine.models import (
        Confidence,
        MetricInsight,
        ModularInputs,
        AutoRebuildPlan,
    )
"""

# =============================================================================
# Enums
# =============================================================================

from insight_engine.models.enums import (
    AlertType,
    Confidence,
    InsightFeedback,
    PlanPriority,
    PlannedActionType,
    SentimentLabel,
    ThresholdDirection,
    Trend,
    UserPlan,
)


# =============================================================================
# Schemas
# =============================================================================

from insight_engine.models.schemas import (
    # -------------------------------------------------------------------------
    # Analyzer inputs and outputs
    # -------------------------------------------------------------------------
    MetricInsight,
    CompletionInput,
    TimeInput,
    DeviceTimes,
    DevicesInput,
    TrafficInput,
    GeoInput,
    QuestionPerfItem,
    QuestionsInput,
    TimeActivityInput,
    SentimentInput,
    ModularInputs,
    MetricEngineResult,

    # -------------------------------------------------------------------------
    # Auto-rebuild
    # -------------------------------------------------------------------------
    AIInsights,
    PlannedAction,
    AutoRebuildPlan,
    EligibilityDecision,

    # -------------------------------------------------------------------------
    # Smart alerts
    # -------------------------------------------------------------------------
    MetricComparison,
    AlertThreshold,
    SmartAlert,

    # -------------------------------------------------------------------------
    # API bodies
    # -------------------------------------------------------------------------
    AnalyzeMetricsRequest,
    AlertsRequest,
    InsightFeedbackRequest,
    InsightFeedbackResponse,
    RebuildTriggerRequest,
    LastPlanResponse,
)


__all__ = [
    # Enums
    'AlertType',
    'Confidence',
    'InsightFeedback',
    'PlanPriority',
    'PlannedActionType',
    'SentimentLabel',
    'ThresholdDirection',
    'Trend',
    'UserPlan',
    # Analyzer inputs and outputs
    'MetricInsight',
    'CompletionInput',
    'TimeInput',
    'DeviceTimes',
    'DevicesInput',
    'TrafficInput',
    'GeoInput',
    'QuestionPerfItem',
    'QuestionsInput',
    'TimeActivityInput',
    'SentimentInput',
    'ModularInputs',
    'MetricEngineResult',
    # Auto-rebuild
    'AIInsights',
    'PlannedAction',
    'AutoRebuildPlan',
    'EligibilityDecision',
    # Smart alerts
    'MetricComparison',
    'AlertThreshold',
    'SmartAlert',
    # API bodies
    'AnalyzeMetricsRequest',
    'AlertsRequest',
    'InsightFeedbackRequest',
    'InsightFeedbackResponse',
    'RebuildTriggerRequest',
    'LastPlanResponse',
]
