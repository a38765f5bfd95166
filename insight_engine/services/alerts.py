"""
Smart Alerts - threshold crossings and large period-over-period changes.

Complements the metric analyzers with short alert messages for the
dashboard, plus a tiny per-user feedback store ("was this insight helpful?").

Alert sources:
1. THRESHOLD CROSSINGS - static rules per metric (above -> warning, below -> info)
2. SIGNIFICANT CHANGES - deltas beyond ±15% vs the previous period
   (drop -> warning, improvement -> success)
"""

import json
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from insight_engine.core.storage import KeyValueStore, get_store
from insight_engine.models import (
    AlertThreshold,
    AlertType,
    InsightFeedback,
    MetricComparison,
    SmartAlert,
    ThresholdDirection,
    Trend,
)

logger = logging.getLogger(__name__)

# Percentage change beyond which a delta alert is raised
SIGNIFICANT_CHANGE_PCT = 15.0

# Dead band for the stable trend
TREND_DEAD_BAND_PCT = 1.0

FEEDBACK_KEY_PREFIX = "sfai:insight-feedback:"

DEFAULT_ALERT_THRESHOLDS: List[AlertThreshold] = [
    AlertThreshold(
        metric="completionRate",
        threshold=0.5,
        direction=ThresholdDirection.BELOW,
        message="Completion rate is below 50%. Consider simplifying your survey.",
    ),
    AlertThreshold(
        metric="completionRate",
        threshold=0.8,
        direction=ThresholdDirection.ABOVE,
        message="Excellent completion rate! Keep up the great work.",
    ),
    AlertThreshold(
        metric="avgCompletionTime",
        threshold=300_000,
        direction=ThresholdDirection.ABOVE,
        message="Average completion time exceeds 5 minutes. Consider shortening your survey.",
    ),
]


def calculate_delta(current: float, previous: Optional[float]) -> Optional[MetricComparison]:
    """
    Compare a metric with its previous value.

    Returns None when there is no usable previous value (None or 0).
    deltaPercent is rounded to one decimal.
    """
    if previous is None or previous == 0:
        return None

    delta = current - previous
    delta_percent = delta / previous * 100
    if delta_percent > TREND_DEAD_BAND_PCT:
        trend = Trend.UP
    elif delta_percent < -TREND_DEAD_BAND_PCT:
        trend = Trend.DOWN
    else:
        trend = Trend.STABLE

    return MetricComparison(
        current=current,
        previous=previous,
        delta=delta,
        deltaPercent=round(delta_percent, 1),
        trend=trend,
    )


def _fmt_threshold(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def generate_alerts(
    metrics: Dict[str, float],
    previous_metrics: Optional[Dict[str, float]] = None,
    thresholds: Optional[List[AlertThreshold]] = None,
    *,
    now: Optional[datetime] = None,
) -> List[SmartAlert]:
    """
    Alerts for threshold crossings, then for significant changes.

    Args:
        metrics: Current metric values by name
        previous_metrics: Previous period values; enables change alerts
        thresholds: Rules to check; defaults to DEFAULT_ALERT_THRESHOLDS
        now: Timestamp for alert ids and the timestamp field

    Returns:
        Alerts in evaluation order
    """
    if thresholds is None:
        thresholds = DEFAULT_ALERT_THRESHOLDS
    moment = now or datetime.now(timezone.utc)
    stamp = int(moment.timestamp() * 1000)
    alerts: List[SmartAlert] = []

    for rule in thresholds:
        value = metrics.get(rule.metric)
        if value is None:
            continue
        above = rule.direction == ThresholdDirection.ABOVE
        crossed = value > rule.threshold if above else value < rule.threshold
        if not crossed:
            continue
        alerts.append(SmartAlert(
            id=f"{rule.metric}-{stamp}",
            type=AlertType.WARNING if above else AlertType.INFO,
            message=rule.message,
            metric=rule.metric,
            threshold=f"{'>' if above else '<'} {_fmt_threshold(rule.threshold)}",
            timestamp=moment,
        ))

    if previous_metrics:
        for metric, current in metrics.items():
            comparison = calculate_delta(current, previous_metrics.get(metric))
            if comparison is None:
                continue
            change = f"{comparison.deltaPercent:.1f}% change"
            if comparison.deltaPercent < -SIGNIFICANT_CHANGE_PCT:
                alerts.append(SmartAlert(
                    id=f"{metric}-drop-{stamp}",
                    type=AlertType.WARNING,
                    message=(
                        f"Your Agent noticed {metric} dropped "
                        f"{abs(comparison.deltaPercent):.1f}% this week."
                    ),
                    metric=metric,
                    threshold=change,
                    timestamp=moment,
                ))
            elif comparison.deltaPercent > SIGNIFICANT_CHANGE_PCT:
                alerts.append(SmartAlert(
                    id=f"{metric}-improve-{stamp}",
                    type=AlertType.SUCCESS,
                    message=f"Great news! {metric} improved {comparison.deltaPercent:.1f}% this week.",
                    metric=metric,
                    threshold=change,
                    timestamp=moment,
                ))

    logger.debug(f"Generated {len(alerts)} alert(s) for {len(metrics)} metric(s)")
    return alerts


# =============================================================================
# Insight Feedback
# =============================================================================


def _feedback_key(form_id: str, insight_id: str) -> str:
    return f"{FEEDBACK_KEY_PREFIX}{form_id}:{insight_id}"


def store_insight_feedback(
    form_id: str,
    insight_id: str,
    helpful: bool,
    *,
    store: Optional[KeyValueStore] = None,
    now_ms: Optional[int] = None,
) -> None:
    """Record whether an insight was helpful. Best-effort."""
    store = store if store is not None else get_store()
    if store is None:
        return
    if now_ms is None:
        now_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
    try:
        store.set(
            _feedback_key(form_id, insight_id),
            json.dumps({"helpful": bool(helpful), "timestamp": now_ms}),
        )
    except Exception as e:
        logger.error(f"Failed to store insight feedback for {form_id}/{insight_id}: {e}")


def get_insight_feedback(
    form_id: str,
    insight_id: str,
    *,
    store: Optional[KeyValueStore] = None,
) -> Optional[InsightFeedback]:
    """Stored verdict for an insight, or None when absent or unreadable."""
    store = store if store is not None else get_store()
    if store is None:
        return None
    try:
        raw = store.get(_feedback_key(form_id, insight_id))
        if not raw:
            return None
        data = json.loads(raw)
    except Exception as e:
        logger.warning(f"Failed to read insight feedback for {form_id}/{insight_id}: {e}")
        return None
    if not isinstance(data, dict):
        return None
    return InsightFeedback.HELPFUL if data.get("helpful") else InsightFeedback.NOT_HELPFUL
