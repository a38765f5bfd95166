"""
Tests for smart alerts and insight feedback.
"""

import json
from datetime import datetime, timezone

import pytest

from insight_engine.models import (
    AlertThreshold,
    AlertType,
    InsightFeedback,
    ThresholdDirection,
    Trend,
)
from insight_engine.services.alerts import (
    DEFAULT_ALERT_THRESHOLDS,
    calculate_delta,
    generate_alerts,
    get_insight_feedback,
    store_insight_feedback,
)


NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)
STAMP = 1_704_067_200_000


class TestCalculateDelta:

    def test_upward_trend(self) -> None:
        comparison = calculate_delta(105, 100)

        assert comparison.delta == 5
        assert comparison.deltaPercent == 5.0
        assert comparison.trend == Trend.UP

    def test_downward_trend(self) -> None:
        comparison = calculate_delta(90, 100)

        assert comparison.deltaPercent == -10.0
        assert comparison.trend == Trend.DOWN

    def test_small_change_is_stable(self) -> None:
        assert calculate_delta(100.5, 100).trend == Trend.STABLE

    def test_rounds_to_one_decimal(self) -> None:
        assert calculate_delta(0.4, 0.6).deltaPercent == -33.3

    @pytest.mark.parametrize("previous", [None, 0])
    def test_no_previous_value(self, previous) -> None:
        assert calculate_delta(10, previous) is None


class TestGenerateAlerts:

    def test_default_thresholds(self) -> None:
        alerts = generate_alerts({"completionRate": 0.4, "avgCompletionTime": 400_000}, now=NOW)

        assert [(a.metric, a.type, a.threshold) for a in alerts] == [
            ("completionRate", AlertType.INFO, "< 0.5"),
            ("avgCompletionTime", AlertType.WARNING, "> 300000"),
        ]
        assert alerts[0].id == f"completionRate-{STAMP}"
        assert alerts[0].message == DEFAULT_ALERT_THRESHOLDS[0].message
        assert alerts[0].timestamp == NOW

    def test_excellent_completion(self) -> None:
        alerts = generate_alerts({"completionRate": 0.9}, now=NOW)

        assert len(alerts) == 1
        assert alerts[0].type == AlertType.WARNING
        assert alerts[0].message.startswith("Excellent completion rate")

    def test_values_inside_thresholds_raise_nothing(self) -> None:
        assert generate_alerts({"completionRate": 0.6, "avgCompletionTime": 100_000}, now=NOW) == []

    def test_significant_drop(self) -> None:
        alerts = generate_alerts(
            {"completionRate": 0.4},
            {"completionRate": 0.6},
            thresholds=[],
            now=NOW,
        )

        assert len(alerts) == 1
        assert alerts[0].id == f"completionRate-drop-{STAMP}"
        assert alerts[0].type == AlertType.WARNING
        assert alerts[0].message == "Your Agent noticed completionRate dropped 33.3% this week."
        assert alerts[0].threshold == "-33.3% change"

    def test_significant_improvement(self) -> None:
        alerts = generate_alerts({"responses": 120}, {"responses": 100}, thresholds=[], now=NOW)

        assert alerts[0].id == f"responses-improve-{STAMP}"
        assert alerts[0].type == AlertType.SUCCESS
        assert alerts[0].message == "Great news! responses improved 20.0% this week."

    def test_small_change_raises_nothing(self) -> None:
        assert generate_alerts({"responses": 110}, {"responses": 100}, thresholds=[], now=NOW) == []

    def test_custom_threshold(self) -> None:
        rule = AlertThreshold(
            metric="skipRate",
            threshold=0.25,
            direction=ThresholdDirection.ABOVE,
            message="Skip rate is high.",
        )
        alerts = generate_alerts({"skipRate": 0.3}, thresholds=[rule], now=NOW)

        assert alerts[0].threshold == "> 0.25"


class TestInsightFeedback:

    def test_round_trip(self, memory_store) -> None:
        store_insight_feedback("form_1", "completionRate", True, store=memory_store, now_ms=1)
        store_insight_feedback("form_1", "devices", False, store=memory_store, now_ms=2)

        assert get_insight_feedback("form_1", "completionRate", store=memory_store) == InsightFeedback.HELPFUL
        assert get_insight_feedback("form_1", "devices", store=memory_store) == InsightFeedback.NOT_HELPFUL
        stored = json.loads(memory_store.get("sfai:insight-feedback:form_1:devices"))
        assert stored == {"helpful": False, "timestamp": 2}

    def test_missing_or_garbage(self, memory_store) -> None:
        memory_store.set("sfai:insight-feedback:form_1:x", "{oops")

        assert get_insight_feedback("form_1", "x", store=memory_store) is None
        assert get_insight_feedback("form_1", "y", store=memory_store) is None

    def test_failing_store(self, failing_store) -> None:
        store_insight_feedback("form_1", "x", True, store=failing_store)
        assert get_insight_feedback("form_1", "x", store=failing_store) is None

    def test_defaults_to_shared_store(self) -> None:
        store_insight_feedback("form_1", "x", True)
        assert get_insight_feedback("form_1", "x") == InsightFeedback.HELPFUL
