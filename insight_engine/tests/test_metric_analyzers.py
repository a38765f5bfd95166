"""
Test suite for the per-metric analyzers.

Each analyzer is pure, so these tests call them directly with dict inputs
(the same shape the HTTP layer receives) and check the insight text,
suggestion branch and confidence.
"""

import pytest

from insight_engine.models import (
    CompletionInput,
    Confidence,
    MetricInsight,
    SentimentLabel,
)
from insight_engine.services.metric_analyzers import (
    analyze_avg_completion_time,
    analyze_completion_rate,
    analyze_devices,
    analyze_geography,
    analyze_questions,
    analyze_sentiment,
    analyze_time_activity,
    analyze_traffic,
    classify_sentiment,
    coerce_model,
    format_ms,
    percent,
    pretty_source,
    to_fixed,
)


# =============================================================================
# TEST CLASS: FORMATTING HELPERS
# =============================================================================


class TestFormatting:

    @pytest.mark.parametrize(
        "ms,expected",
        [
            (45_000, "45s"),
            (210_000, "3m 30s"),
            (59_600, "1m 0s"),
            (0, "0s"),
            (-5, "0s"),
        ],
    )
    def test_format_ms(self, ms: float, expected: str) -> None:
        assert format_ms(ms) == expected

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("twitter", "Twitter/X"),
            ("x", "Twitter/X"),
            ("google-ads", "Google"),
            ("Facebook", "Facebook"),
            ("linkedin.com", "LinkedIn"),
            ("direct", "Direct"),
            ("https://www.example.com/landing?utm=1", "example.com"),
            ("https://blog.example.org", "blog.example.org"),
            ("newsletter", "newsletter"),
        ],
    )
    def test_pretty_source(self, source: str, expected: str) -> None:
        assert pretty_source(source) == expected

    def test_pretty_source_truncates_long_labels(self) -> None:
        assert pretty_source("a" * 50) == "a" * 37 + "..."

    @pytest.mark.parametrize(
        "value,digits,expected",
        [
            (62.5, 0, "63"),
            (2.5, 0, "3"),
            (12.4, 0, "12"),
            (0.125, 2, "0.13"),
            (1.005, 2, "1.00"),
            (80.0, 0, "80"),
            (float("nan"), 0, "0"),
        ],
    )
    def test_to_fixed_rounds_ties_up(self, value: float, digits: int, expected: str) -> None:
        assert to_fixed(value, digits) == expected

    def test_percent_rounds_ties_up(self) -> None:
        assert percent(5, 8) == "63%"
        assert percent(0, 0) == "0%"


# =============================================================================
# TEST CLASS: COMPLETION RATE
# =============================================================================


class TestCompletionRate:
    """Completion rate, abandonment and period-over-period change."""

    def test_zero_responses_is_low_confidence_without_artifacts(self) -> None:
        result = analyze_completion_rate({"totalResponses": 0, "complete": 0})

        assert isinstance(result, MetricInsight)
        assert result.confidence == Confidence.LOW
        assert result.insight == "Completion rate has limited data."
        for artifact in ("NaN", "nan", "Infinity", "inf%"):
            assert artifact not in result.insight

    def test_rate_with_abandonment_and_change(self, sample_inputs) -> None:
        result = analyze_completion_rate(sample_inputs["completion"])

        assert result.insight == "Completion rate is 80% (10% abandoned), up 12% vs last period."
        assert result.suggestion.startswith("Consider simplifying")
        assert result.confidence == Confidence.HIGH

    def test_high_rate_gets_positive_reinforcement(self) -> None:
        result = analyze_completion_rate(CompletionInput(totalResponses=20, complete=18, partial=2))

        assert result.insight == "Completion rate is 90%."
        assert result.suggestion.startswith("Great retention")
        assert result.confidence == Confidence.HIGH

    def test_low_rate_gets_corrective_message(self) -> None:
        result = analyze_completion_rate({"totalResponses": 4, "complete": 1})

        assert result.insight == "Completion rate is 25% (75% abandoned)."
        assert result.suggestion.startswith("Significant drop-offs")
        assert result.confidence == Confidence.LOW

    def test_downward_change(self) -> None:
        result = analyze_completion_rate({
            "totalResponses": 10,
            "complete": 7,
            "abandoned": 3,
            "lastWeekComplete": 30,
            "prevWeekComplete": 40,
        })

        assert result.insight == "Completion rate is 70% (30% abandoned), down 25% vs last period."
        assert result.confidence == Confidence.MEDIUM

    def test_complete_is_clamped_to_total(self) -> None:
        result = analyze_completion_rate({"totalResponses": 10, "complete": 15})
        assert result.insight.startswith("Completion rate is 100%")

    def test_missing_previous_period_omits_change(self) -> None:
        result = analyze_completion_rate({
            "totalResponses": 10,
            "complete": 10,
            "lastWeekComplete": 5,
            "prevWeekComplete": 0,
        })
        assert "vs last period" not in result.insight


# =============================================================================
# TEST CLASS: COMPLETION TIME
# =============================================================================


class TestAverageCompletionTime:

    def test_precomputed_average_wins(self) -> None:
        result = analyze_avg_completion_time({"avgMs": 210_000, "durationsMs": [1_000, 2_000]})

        assert result.insight.startswith("Average completion time is 3m 30s")
        assert result.suggestion.startswith("Consider trimming")

    def test_bare_average_is_medium_confidence(self) -> None:
        result = analyze_avg_completion_time({"avgMs": 90_000})

        assert result.insight == "Average completion time is 1m 30s."
        assert result.suggestion.startswith("Good pace")
        assert result.confidence == Confidence.MEDIUM

    def test_mean_and_median_of_samples(self, sample_inputs) -> None:
        result = analyze_avg_completion_time(sample_inputs["time"])

        assert result.insight == "Average completion time is 3m 15s (median 3m 15s)."
        assert result.confidence == Confidence.LOW

    def test_many_samples_are_high_confidence(self) -> None:
        result = analyze_avg_completion_time({"durationsMs": [60_000] * 25})
        assert result.confidence == Confidence.HIGH

    def test_invalid_samples_are_ignored(self) -> None:
        result = analyze_avg_completion_time({"durationsMs": [-1, 0]})

        assert result.insight == "Average completion time is not available yet."
        assert result.confidence == Confidence.LOW


# =============================================================================
# TEST CLASS: DEVICES
# =============================================================================


class TestDevices:

    def test_mix_and_speed_note(self, sample_inputs) -> None:
        result = analyze_devices(sample_inputs["devices"])

        assert result.insight == (
            "Device mix: Mobile 65%, Desktop 30%, Tablet 5%. "
            "Mobile users complete noticeably faster."
        )
        assert result.suggestion.startswith("Prioritize mobile layout")
        assert result.confidence == Confidence.HIGH

    def test_desktop_faster_note(self) -> None:
        result = analyze_devices({
            "desktop": 10,
            "mobile": 2,
            "avgTimeByDeviceMs": {"desktop": 100_000, "mobile": 150_000},
        })

        assert result.insight.endswith("Desktop users complete noticeably faster.")
        assert "Tablet" not in result.insight
        assert result.suggestion.startswith("Optimize large-screen")
        assert result.confidence == Confidence.MEDIUM

    def test_small_speed_difference_has_no_note(self) -> None:
        result = analyze_devices({
            "desktop": 5,
            "mobile": 5,
            "avgTimeByDeviceMs": {"desktop": 100_000, "mobile": 95_000},
        })

        assert result.insight == "Device mix: Mobile 50%, Desktop 50%."
        assert result.suggestion == "Ensure a consistent experience across devices."

    def test_no_devices(self) -> None:
        result = analyze_devices({})
        assert result.confidence == Confidence.LOW


# =============================================================================
# TEST CLASS: TRAFFIC AND GEOGRAPHY
# =============================================================================


class TestTrafficAndGeography:

    def test_top_source(self, sample_inputs) -> None:
        result = analyze_traffic(sample_inputs["traffic"])

        assert result.insight == "Most responses come from Twitter/X (53%)."
        assert "Twitter/X" in result.suggestion
        assert result.confidence == Confidence.HIGH

    def test_url_source_is_prettified(self) -> None:
        result = analyze_traffic({"bySource": {"https://www.news.example.com/a": 3, "direct": 1}})

        assert result.insight == "Most responses come from news.example.com (75%)."
        assert result.confidence == Confidence.MEDIUM

    def test_zero_counts_are_ignored(self) -> None:
        result = analyze_traffic({"bySource": {"google": 0}})
        assert result.confidence == Confidence.LOW

    def test_top_two_countries(self, sample_inputs) -> None:
        result = analyze_geography(sample_inputs["geography"])

        assert result.insight == "Highest engagement from United States & Canada."
        assert result.confidence == Confidence.MEDIUM

    def test_single_country(self) -> None:
        result = analyze_geography({"byCountry": {"Canada": 4}})
        assert result.insight == "Highest engagement from Canada."

    def test_no_countries(self) -> None:
        assert analyze_geography({"byCountry": {}}).confidence == Confidence.LOW


# =============================================================================
# TEST CLASS: QUESTIONS
# =============================================================================


class TestQuestions:

    def test_highest_skip_rate(self, sample_inputs) -> None:
        result = analyze_questions(sample_inputs["questions"])

        assert result.insight == "Question 4 shows a 62% skip rate."
        assert result.confidence == Confidence.HIGH

    def test_label_falls_back_to_id(self) -> None:
        result = analyze_questions({"items": [{"id": "q7", "skipRate": 0.35}]})

        assert result.insight == "Question q7 shows a 35% skip rate."
        assert result.confidence == Confidence.MEDIUM

    def test_skip_rate_is_clamped(self) -> None:
        result = analyze_questions({"items": [{"id": "q1", "label": "Q1", "skipRate": 1.7}]})
        assert result.insight == "Q1 shows a 100% skip rate."

    def test_items_without_skip_rate(self) -> None:
        result = analyze_questions({"items": [{"id": "q1", "completionRate": 0.9}]})

        assert result.insight == "Question performance looks balanced so far."
        assert result.confidence == Confidence.MEDIUM

    def test_no_items(self) -> None:
        assert analyze_questions({"items": []}).confidence == Confidence.LOW


# =============================================================================
# TEST CLASS: ACTIVITY
# =============================================================================


class TestTimeActivity:

    def test_peak_from_histogram(self, sample_inputs) -> None:
        result = analyze_time_activity(sample_inputs["activity"])

        assert result.insight == "Peak engagement around 14:00."
        assert result.confidence == Confidence.HIGH

    def test_busiest_day(self) -> None:
        result = analyze_time_activity({
            "byHour": [1] + [0] * 23,
            "byDay": [0, 0, 5, 1, 0, 0, 0],
        })

        assert result.insight == "Peak engagement around 00:00. Busiest day: Tuesday."
        assert result.confidence == Confidence.MEDIUM

    def test_peak_from_timestamps(self) -> None:
        result = analyze_time_activity({
            "timestamps": [
                "2024-01-01T09:15:00Z",
                "2024-01-02T09:45:00Z",
                "2024-01-03T17:00:00Z",
            ]
        })

        assert result.insight == "Peak engagement around 09:00."
        assert result.confidence == Confidence.LOW

    def test_epoch_millisecond_timestamps(self, fixed_now_ms: int) -> None:
        # 2023-11-14T22:13:20Z
        result = analyze_time_activity({"timestamps": [fixed_now_ms]})
        assert result.insight == "Peak engagement around 22:00."

    def test_timestamps_bucketed_in_timezone(self) -> None:
        result = analyze_time_activity(
            {"timestamps": ["2024-01-01T09:15:00Z"]},
            timezone="America/New_York",
        )
        assert result.insight == "Peak engagement around 04:00."

    def test_unparseable_timestamps_are_skipped(self) -> None:
        result = analyze_time_activity({"timestamps": ["not a date"]})

        assert result.insight == "No clear activity peak yet."
        assert result.confidence == Confidence.LOW

    def test_empty_histogram_has_no_peak(self) -> None:
        result = analyze_time_activity({"byHour": [0] * 24})
        assert result.insight == "No clear activity peak yet."


# =============================================================================
# TEST CLASS: SENTIMENT
# =============================================================================


class TestSentiment:

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Great form!", SentimentLabel.POSITIVE),
            ("Love the flow", SentimentLabel.POSITIVE),
            ("Too long", SentimentLabel.NEGATIVE),
            ("Confusing question 4", SentimentLabel.NEGATIVE),
            ("Upload failed twice", SentimentLabel.NEGATIVE),
            ("Good but too long", SentimentLabel.NEUTRAL),
            ("It was fine", SentimentLabel.NEUTRAL),
        ],
    )
    def test_classify(self, text: str, expected: SentimentLabel) -> None:
        assert classify_sentiment(text) == expected

    def test_mixed_samples(self) -> None:
        result = analyze_sentiment({
            "samples": ["Great form!", "Love the flow", "Too long", "Confusing question 4"]
        })

        positives = sum(
            classify_sentiment(s) == SentimentLabel.POSITIVE
            for s in ["Great form!", "Love the flow", "Too long", "Confusing question 4"]
        )
        assert positives >= 2
        assert "%" in result.insight
        assert result.insight == "Responses are mostly positive (50%)."
        assert result.suggestion.startswith("Address common pain points")
        assert result.confidence == Confidence.MEDIUM

    def test_mostly_neutral(self) -> None:
        result = analyze_sentiment({"samples": ["ok", "fine", "Great"]})
        assert result.insight == "Responses are mostly neutral (67%), 33% positive."

    def test_overwhelmingly_positive(self) -> None:
        result = analyze_sentiment({"samples": ["great"] * 25})

        assert result.insight == "Responses are mostly positive (100%)."
        assert result.suggestion == "Keep the current tone and content."
        assert result.confidence == Confidence.HIGH

    def test_no_samples(self) -> None:
        assert analyze_sentiment({"samples": []}).confidence == Confidence.LOW

    def test_halves_round_up(self) -> None:
        result = analyze_sentiment({"samples": ["great"] + ["ok"] * 7})
        assert result.insight == "Responses are mostly neutral (88%), 13% positive."


# =============================================================================
# TEST CLASS: SPARSE AND MALFORMED INPUTS
# =============================================================================


class TestSparseInputs:
    """Null counts and wrong-typed fields fall back to defaults instead of raising."""

    def test_null_completion_counts(self) -> None:
        result = analyze_completion_rate({"totalResponses": None, "complete": None})

        assert result.insight == "Completion rate has limited data."
        assert result.confidence == Confidence.LOW

    def test_null_device_count(self) -> None:
        result = analyze_devices({"desktop": 3, "mobile": None})

        assert result.insight == "Device mix: Mobile 0%, Desktop 100%."
        assert result.suggestion.startswith("Optimize large-screen")
        assert result.confidence == Confidence.LOW

    def test_device_shares_round_ties_up(self) -> None:
        result = analyze_devices({"desktop": 3, "mobile": 5})
        assert result.insight == "Device mix: Mobile 63%, Desktop 38%."

    def test_wrong_typed_count_is_dropped(self) -> None:
        result = analyze_completion_rate({"totalResponses": 10, "complete": "lots"})

        assert result.insight == "Completion rate is 0% (100% abandoned)."
        assert result.confidence == Confidence.MEDIUM

    def test_null_traffic_count_is_dropped(self) -> None:
        result = analyze_traffic({"bySource": {"google": None, "twitter": 3}})
        assert result.insight == "Most responses come from Twitter/X (100%)."

    def test_bad_question_items(self) -> None:
        result = analyze_questions({
            "items": [
                {"id": "q1", "skipRate": "high"},
                {"label": "no id", "skipRate": 0.9},
                {"id": "q2", "label": "Question 2", "skipRate": 0.4},
            ]
        })

        assert result.insight == "Question 2 shows a 40% skip rate."
        assert result.confidence == Confidence.MEDIUM

    def test_non_string_samples_are_dropped(self) -> None:
        result = analyze_sentiment({"samples": ["great", 5, None]})
        assert result.insight == "Responses are mostly positive (100%)."

    @pytest.mark.parametrize("payload", ["not a payload", 42, ["desktop", 3]])
    def test_unusable_payload_uses_defaults(self, payload) -> None:
        assert analyze_devices(payload).confidence == Confidence.LOW

    def test_coerce_model_keeps_valid_fields(self) -> None:
        data = coerce_model(CompletionInput, {"totalResponses": 12, "complete": [], "partial": "x"})

        assert data.totalResponses == 12
        assert data.complete == 0
        assert data.partial is None
