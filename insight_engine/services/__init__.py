"""
Insight Engine Services Module

Business logic for local survey insights and rebuild planning. Every service
is synchronous and stateless apart from the injected key-value store;
`analyze_all_metrics` is the only coroutine.

Services:
- hashing: Stable serialization and djb2 fingerprints
- metric_analyzers: One pure analyzer per metric family
- metric_cache: TTL-bound, content-addressed result cache
- metric_engine: Aggregator with overall summary
- auto_rebuild: Eligibility gate, rule table, plan builder, trigger
- plan_store: Latest plan and last-run persistence
- alerts: Threshold/delta alerts and insight feedback
"""

# =============================================================================
# Hashing
# =============================================================================

from insight_engine.services.hashing import (
    stable_stringify,
    hash_string,
    compute_signature,
)

# =============================================================================
# Metric Analyzers
# =============================================================================

from insight_engine.services.metric_analyzers import (
    analyze_completion_rate,
    analyze_avg_completion_time,
    analyze_devices,
    analyze_traffic,
    analyze_geography,
    analyze_questions,
    analyze_time_activity,
    analyze_sentiment,
    classify_sentiment,
    pretty_source,
    format_ms,
)

# =============================================================================
# Metric Cache and Aggregator
# =============================================================================

from insight_engine.services.metric_cache import (
    MetricCache,
    build_cache_key,
)
from insight_engine.services.metric_engine import (
    analyze_all_metrics,
    compose_overall_summary,
)

# =============================================================================
# Auto-Rebuild Planning and Persistence
# =============================================================================

from insight_engine.services.plan_store import (
    persist_plan,
    load_last_plan,
    load_last_run_at,
    clear_plan_cache,
)
from insight_engine.services.auto_rebuild import (
    AutoRebuildOptions,
    QuestionRef,
    RebuildRule,
    RuleContext,
    REBUILD_RULES,
    normalize_insights,
    compute_insights_hash,
    evaluate_auto_rebuild_eligibility,
    extract_question_refs,
    map_question_refs_to_ids,
    apply_rules,
    build_auto_rebuild_plan,
    trigger_survey_rebuild_if_needed,
)

# =============================================================================
# Smart Alerts
# =============================================================================

from insight_engine.services.alerts import (
    DEFAULT_ALERT_THRESHOLDS,
    calculate_delta,
    generate_alerts,
    store_insight_feedback,
    get_insight_feedback,
)


__all__ = [
    # ----- Hashing -----
    'stable_stringify',
    'hash_string',
    'compute_signature',
    # ----- Metric Analyzers -----
    'analyze_completion_rate',
    'analyze_avg_completion_time',
    'analyze_devices',
    'analyze_traffic',
    'analyze_geography',
    'analyze_questions',
    'analyze_time_activity',
    'analyze_sentiment',
    'classify_sentiment',
    'pretty_source',
    'format_ms',
    # ----- Metric Cache and Aggregator -----
    'MetricCache',
    'build_cache_key',
    'analyze_all_metrics',
    'compose_overall_summary',
    # ----- Plan Persistence -----
    'persist_plan',
    'load_last_plan',
    'load_last_run_at',
    'clear_plan_cache',
    # ----- Auto-Rebuild -----
    'AutoRebuildOptions',
    'QuestionRef',
    'RebuildRule',
    'RuleContext',
    'REBUILD_RULES',
    'normalize_insights',
    'compute_insights_hash',
    'evaluate_auto_rebuild_eligibility',
    'extract_question_refs',
    'map_question_refs_to_ids',
    'apply_rules',
    'build_auto_rebuild_plan',
    'trigger_survey_rebuild_if_needed',
    # ----- Smart Alerts -----
    'DEFAULT_ALERT_THRESHOLDS',
    'calculate_delta',
    'generate_alerts',
    'store_insight_feedback',
    'get_insight_feedback',
]
