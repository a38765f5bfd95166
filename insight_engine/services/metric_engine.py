"""
Insight Aggregator - runs the metric analyzers with content-addressed caching.

`analyze_all_metrics` fingerprints the inputs, serves a cached result when
one is fresh, and otherwise runs exactly the analyzers whose input key is
present. Invalid input fields are dropped before analysis, analyzers are pure,
and the cache layer degrades store failures to misses, so a call never fails
on bad data.

Usage:
    result = await analyze_all_metrics(
        {"completion": {"totalResponses": 120, "complete": 96}},
        form_id="form_123",
    )
    result.completionRate.insight
    result.overallSummary
"""

import logging
import re
from typing import Any, Callable, Optional, Tuple

from insight_engine.core.storage import get_store
from insight_engine.models import MetricEngineResult, MetricInsight, ModularInputs
from insight_engine.services.hashing import compute_signature
from insight_engine.services.metric_analyzers import (
    analyze_avg_completion_time,
    analyze_completion_rate,
    analyze_devices,
    analyze_geography,
    analyze_questions,
    analyze_sentiment,
    analyze_time_activity,
    analyze_traffic,
    coerce_model,
)
from insight_engine.services.metric_cache import MetricCache, build_cache_key

logger = logging.getLogger(__name__)

# (input key, result field, analyzer)
ANALYZERS: Tuple[Tuple[str, str, Callable[[Any], MetricInsight]], ...] = (
    ("completion", "completionRate", analyze_completion_rate),
    ("time", "avgCompletionTime", analyze_avg_completion_time),
    ("devices", "devices", analyze_devices),
    ("traffic", "traffic", analyze_traffic),
    ("geography", "geography", analyze_geography),
    ("questions", "questions", analyze_questions),
    ("activity", "activity", analyze_time_activity),
    ("sentiment", "sentiment", analyze_sentiment),
)

SUMMARY_HEAD = "Survey performance looks steady."
SUMMARY_FALLBACK = "Survey performance is building. More responses will unlock richer insights."

_MOBILE_SHARE = re.compile(r"Mobile\s(\d+)%", re.IGNORECASE)
_TRAILING_PERIOD = re.compile(r"\.$")


def compose_overall_summary(result: MetricEngineResult) -> str:
    """
    One short paragraph from the individual insights.

    Up to five clauses in fixed order: completion, device, questions, timing,
    traffic. Falls back to a generic "building up data" sentence.
    """
    lines = []

    if result.completionRate and result.completionRate.insight:
        lines.append(_TRAILING_PERIOD.sub("", result.completionRate.insight) + ".")
    if result.devices and result.devices.insight:
        match = _MOBILE_SHARE.search(result.devices.insight)
        if match:
            lines.append(f"Mobile share around {match.group(1)}%.")
    if result.questions and result.questions.insight:
        lines.append(result.questions.insight)
    if result.avgCompletionTime and result.avgCompletionTime.insight:
        lines.append(result.avgCompletionTime.insight)
    if result.traffic and result.traffic.insight:
        channel = result.traffic.insight.replace("Most responses come from ", "")
        lines.append(f"Top channel: {_TRAILING_PERIOD.sub('', channel)}.")

    if not lines:
        return SUMMARY_FALLBACK
    return f"{SUMMARY_HEAD} {' '.join(lines)}"


async def analyze_all_metrics(
    inputs: Any,
    *,
    form_id: str,
    force_refresh: bool = False,
    cache: Optional[MetricCache] = None,
) -> MetricEngineResult:
    """
    Run every analyzer whose input is present, with 24h caching.

    Args:
        inputs: ModularInputs or an equivalent dict
        form_id: Owner of the cached result; part of the cache key
        force_refresh: Skip the cache read (the fresh result is still written)
        cache: Cache to use; defaults to a MetricCache over the shared store

    Returns:
        MetricEngineResult. Two structurally equal inputs produce the same
        cacheKey regardless of dict key order.
    """
    if not isinstance(inputs, ModularInputs):
        inputs = coerce_model(ModularInputs, inputs or {})
    if cache is None:
        cache = MetricCache(get_store())

    signature = compute_signature(inputs)
    cache_key = build_cache_key(form_id, signature)

    if not force_refresh:
        cached = cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Metric cache hit for {cache_key}")
            return cached

    now = cache.clock()
    result = MetricEngineResult(
        cacheKey=cache_key,
        updatedAt=now,
        expiresAt=now + cache.ttl_ms,
    )

    ran = []
    for input_key, result_field, analyzer in ANALYZERS:
        payload = getattr(inputs, input_key)
        if payload is None:
            continue
        setattr(result, result_field, analyzer(payload))
        ran.append(input_key)

    result.overallSummary = compose_overall_summary(result)
    logger.info(f"Analyzed metrics for form {form_id}: {', '.join(ran) or 'no inputs'}")

    cache.set(cache_key, result)
    return result
