"""
Metric Analyzers - Local, Deterministic Survey Insights

One small analyzer per analytics panel. Each analyzer:
- accepts only the payload it needs (model instance or plain dict)
- returns a MetricInsight: a short insight, a one-line suggestion, a confidence
- reasons locally with threshold branching; no network, no model

Analyzers are pure and total. Empty inputs and zero denominators produce a
low-confidence "not enough data yet" insight instead of an error, rates are
clamped to [0, 1], and confidence comes from per-analyzer sample thresholds.

Analyzers:
1. COMPLETION RATE - complete / total, optional period-over-period change
2. COMPLETION TIME - mean of duration samples (or precomputed average)
3. DEVICES - desktop/mobile/tablet share, cross-device speed note (8% threshold)
4. TRAFFIC - top referrer with prettified label
5. GEOGRAPHY - top one or two countries
6. QUESTIONS - question with the highest skip rate
7. ACTIVITY - peak hour (histogram or raw timestamps), busiest weekday
8. SENTIMENT - keyword classifier, majority label with percentage
"""

import logging
import math
import numbers
import re
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar
from urllib.parse import urlparse

import numpy as np
import pandas as pd
from pydantic import BaseModel, ValidationError

from insight_engine.core.config import get_settings
from insight_engine.models import (
    CompletionInput,
    Confidence,
    DevicesInput,
    GeoInput,
    MetricInsight,
    QuestionsInput,
    SentimentInput,
    SentimentLabel,
    TimeActivityInput,
    TimeInput,
    TrafficInput,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Completion time above which trimming is suggested (3 minutes)
FAST_COMPLETION_MS = 180_000

# Relative difference in per-device completion time that counts as "noticeably faster"
DEVICE_SPEED_DELTA_PCT = 8.0

WEEKDAY_NAMES = [
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
]

POSITIVE_PATTERN = re.compile(
    r"\b(good|great|excellent|love|amazing|perfect|happy|satisfied|best|"
    r"fantastic|wonderful|awesome|easy)",
    re.IGNORECASE,
)
NEGATIVE_PATTERN = re.compile(
    r"\b(bad|terrible|awful|hate|worst|disappointed|poor|unhappy|frustrat|"
    r"problem|issue|fail|confus|too long)",
    re.IGNORECASE,
)


# =============================================================================
# Helpers
# =============================================================================


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def _error_target(payload: Any, loc: Tuple[Any, ...]) -> Optional[Tuple[Any, Any]]:
    """Deepest (container, key) along an error location that exists in the payload."""
    target = None
    node = payload
    for part in loc:
        if isinstance(node, dict) and part in node:
            target = (node, part)
        elif isinstance(node, list) and isinstance(part, int) and 0 <= part < len(node):
            target = (node, part)
        else:
            break
        node = node[part]
    return target


def coerce_model(model_cls: Type[ModelT], value: Any, max_passes: int = 5) -> ModelT:
    """
    Validate `value` as `model_cls`, dropping whatever does not validate.

    Each failing field or list entry is removed so its default applies, and
    validation is retried. Anything that cannot be repaired this way becomes
    the model's all-defaults instance. Never raises.
    """
    if isinstance(value, model_cls):
        return value
    if value is None:
        return model_cls()

    payload = _plain(value)
    for _ in range(max_passes):
        try:
            return model_cls.model_validate(payload)
        except ValidationError as exc:
            targets = [_error_target(payload, tuple(err["loc"])) for err in exc.errors()]
            if not targets or any(t is None for t in targets):
                break
            fields = sorted({".".join(map(str, err["loc"])) for err in exc.errors()})
            logger.warning(f"Dropping invalid {model_cls.__name__} fields: {', '.join(fields)}")
            # list entries go last-first so earlier indices stay valid
            keyed = [(container, key) for container, key in targets if isinstance(container, dict)]
            indexed = sorted(
                {(id(c), k): (c, k) for c, k in targets if isinstance(c, list)}.values(),
                key=lambda pair: pair[1],
                reverse=True,
            )
            for container, key in keyed:
                container.pop(key, None)
            for container, index in indexed:
                del container[index]

    logger.warning(f"Unusable {model_cls.__name__} payload; using defaults")
    return model_cls()


def _finite(value: Any) -> bool:
    return (
        isinstance(value, numbers.Real)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def clamp(n: float, low: float, high: float) -> float:
    return max(low, min(high, n))


def to_fixed(value: float, digits: int = 0) -> str:
    """Fixed-point text with ties rounded away from zero: 62.5 -> '63'."""
    if not _finite(value):
        return "0"
    with localcontext() as ctx:
        # room for every digit of the largest finite float
        ctx.prec = 400
        return str(Decimal(value).quantize(Decimal(1).scaleb(-digits), rounding=ROUND_HALF_UP))


def round_half_up(value: float) -> int:
    return int(to_fixed(value))


def percent(numerator: float, denominator: float, digits: int = 0) -> str:
    """Format numerator/denominator as a percentage; "0%" for empty denominators."""
    if not denominator or denominator <= 0:
        return "0%"
    return f"{to_fixed(numerator / denominator * 100, digits)}%"


def format_ms(ms: float) -> str:
    """Humanize a duration: 45000 -> '45s', 210000 -> '3m 30s'."""
    if not _finite(ms) or ms <= 0:
        return "0s"
    seconds = int(math.floor(ms / 1000 + 0.5))
    minutes, rem = divmod(seconds, 60)
    if minutes <= 0:
        return f"{seconds}s"
    return f"{minutes}m {rem}s"


def pretty_source(src: str) -> str:
    """
    Human label for a traffic source key.

    Known networks map to their brand name, URLs collapse to their host
    without "www.", and anything else is truncated to 40 characters.
    """
    lower = src.lower()
    if "twitter" in lower or lower == "x":
        return "Twitter/X"
    if "google" in lower:
        return "Google"
    if "facebook" in lower:
        return "Facebook"
    if "linkedin" in lower:
        return "LinkedIn"
    if "direct" in lower:
        return "Direct"

    parsed = urlparse(src)
    if parsed.scheme and parsed.hostname:
        host = parsed.hostname
        return host[4:] if host.startswith("www.") else host

    return f"{src[:37]}..." if len(src) > 40 else src


def _ranked(counts: Dict[str, float]) -> List[Tuple[str, float]]:
    """Positive counts sorted descending; ties keep insertion order."""
    entries = [(k, float(v)) for k, v in counts.items() if _finite(v) and v > 0]
    return sorted(entries, key=lambda kv: kv[1], reverse=True)


def _sample_confidence(n: int, high: int = 20, medium: int = 5) -> Confidence:
    if n >= high:
        return Confidence.HIGH
    if n >= medium:
        return Confidence.MEDIUM
    return Confidence.LOW


def _histogram_peak(values: Sequence[float]) -> Tuple[int, float]:
    """Index and value of the first maximum of a histogram."""
    arr = np.asarray(values, dtype=float)
    arr = np.where(np.isfinite(arr), arr, 0.0)
    idx = int(np.argmax(arr))
    return idx, float(arr[idx])


def _timestamp_hours(values: Sequence[Any], timezone: str) -> List[int]:
    """
    Hour of day for each parseable timestamp.

    Numbers are epoch milliseconds; strings and datetimes go through pandas.
    Naive values are taken as UTC. Unparseable entries are skipped.
    """
    hours: List[int] = []
    for raw in values:
        if isinstance(raw, bool):
            continue
        try:
            if isinstance(raw, numbers.Real):
                ts = pd.to_datetime(raw, unit="ms", utc=True)
            else:
                ts = pd.to_datetime(raw, utc=True)
        except (ValueError, TypeError, OverflowError):
            continue
        if pd.isna(ts):
            continue
        try:
            ts = ts.tz_convert(timezone)
        except (KeyError, ValueError, TypeError):
            logger.debug(f"Unknown activity timezone {timezone!r}; using UTC")
        hours.append(int(ts.hour))
    return hours


def classify_sentiment(text: str) -> SentimentLabel:
    """Keyword sentiment for one response; mixed or no signal is neutral."""
    pos = bool(POSITIVE_PATTERN.search(text))
    neg = bool(NEGATIVE_PATTERN.search(text))
    if pos and not neg:
        return SentimentLabel.POSITIVE
    if neg and not pos:
        return SentimentLabel.NEGATIVE
    return SentimentLabel.NEUTRAL


# =============================================================================
# Analyzers
# =============================================================================


def analyze_completion_rate(data: Any) -> MetricInsight:
    """
    Completion rate with an optional period-over-period change.

    The change is the plain percentage difference between the two period
    counts: (lastWeekComplete - prevWeekComplete) / prevWeekComplete.

    Args:
        data: CompletionInput or equivalent dict

    Returns:
        MetricInsight; low confidence when there are no responses
    """
    data = coerce_model(CompletionInput, data)
    total = max(0, data.totalResponses or 0)
    complete = clamp(data.complete or 0, 0, total)
    partial = clamp(data.partial or 0, 0, total)
    if data.abandoned is not None:
        abandoned = clamp(data.abandoned, 0, total)
    else:
        abandoned = max(0, total - complete - partial)

    delta_text = ""
    last, prev = data.lastWeekComplete, data.prevWeekComplete
    if last is not None and prev is not None and prev > 0:
        change = (last - prev) / prev * 100
        if change > 0:
            delta_text = f", up {to_fixed(abs(change))}% vs last period"
        elif change < 0:
            delta_text = f", down {to_fixed(abs(change))}% vs last period"
        else:
            delta_text = ", steady vs last period"

    if total == 0:
        return MetricInsight(
            insight=f"Completion rate has limited data{delta_text}.",
            suggestion="Not enough responses yet. Share the survey to start measuring completion.",
            confidence=Confidence.LOW,
        )

    rate = complete / total
    abandoned_text = f" ({percent(abandoned, total)} abandoned)" if abandoned > 0 else ""
    insight = f"Completion rate is {percent(complete, total)}{abandoned_text}{delta_text}."

    suggestion = "Consider simplifying longer sections or clarifying instructions where drop-offs occur."
    if rate >= 0.85:
        suggestion = "Great retention. Keep sections concise and maintain the current flow."
    elif rate <= 0.5:
        suggestion = "Significant drop-offs. Shorten early questions and remove low-value fields."

    return MetricInsight(
        insight=insight,
        suggestion=suggestion,
        confidence=_sample_confidence(total),
    )


def analyze_avg_completion_time(data: Any) -> MetricInsight:
    """
    Average time to complete, humanized as "Xm Ys".

    A precomputed avgMs wins over the samples; samples that are not positive
    finite numbers are ignored. Confidence follows the sample count, and a
    bare precomputed average is medium confidence.
    """
    data = coerce_model(TimeInput, data)
    samples = [d for d in (data.durationsMs or []) if _finite(d) and d > 0]

    avg = data.avgMs if _finite(data.avgMs) and data.avgMs > 0 else 0.0
    if not avg and samples:
        avg = float(np.mean(samples))

    if avg <= 0:
        return MetricInsight(
            insight="Average completion time is not available yet.",
            suggestion="Completion times will appear once responses are submitted.",
            confidence=Confidence.LOW,
        )

    insight = f"Average completion time is {format_ms(avg)}"
    if len(samples) >= 2:
        insight += f" (median {format_ms(float(np.median(samples)))})"
    insight += "."

    if avg <= FAST_COMPLETION_MS:
        suggestion = "Good pace. Keep the survey concise and focused."
    else:
        suggestion = "Consider trimming or reordering longer sections to reduce time-to-complete."

    confidence = _sample_confidence(len(samples)) if samples else Confidence.MEDIUM
    return MetricInsight(insight=insight, suggestion=suggestion, confidence=confidence)


def analyze_devices(data: Any) -> MetricInsight:
    """Device share plus a note when one device class finishes noticeably faster."""
    data = coerce_model(DevicesInput, data)
    desktop = max(0, data.desktop or 0)
    mobile = max(0, data.mobile or 0)
    tablet = max(0, data.tablet or 0)
    total = desktop + mobile + tablet

    if total <= 0:
        return MetricInsight(
            insight="Device distribution is not available yet.",
            suggestion="Ensure a consistent experience across devices.",
            confidence=Confidence.LOW,
        )

    mobile_share = mobile / total * 100
    desktop_share = desktop / total * 100
    tablet_share = tablet / total * 100

    speed_note = ""
    times = data.avgTimeByDeviceMs
    if times is not None:
        dt, mt = times.desktop, times.mobile
        if _finite(dt) and _finite(mt) and dt > 0 and mt > 0:
            delta = (dt - mt) / dt * 100
            if delta > DEVICE_SPEED_DELTA_PCT:
                speed_note = " Mobile users complete noticeably faster."
            elif delta < -DEVICE_SPEED_DELTA_PCT:
                speed_note = " Desktop users complete noticeably faster."

    insight = f"Device mix: Mobile {to_fixed(mobile_share)}%, Desktop {to_fixed(desktop_share)}%"
    if tablet > 0:
        insight += f", Tablet {to_fixed(tablet_share)}%"
    insight += f".{speed_note}"

    if mobile_share >= 60:
        suggestion = "Prioritize mobile layout and thumb-friendly controls."
    elif desktop_share >= 60:
        suggestion = "Optimize large-screen spacing, keyboard flow, and scroll ergonomics."
    else:
        suggestion = "Ensure a consistent experience across devices."

    if total > 20:
        confidence = Confidence.HIGH
    elif total > 5:
        confidence = Confidence.MEDIUM
    else:
        confidence = Confidence.LOW

    return MetricInsight(insight=insight, suggestion=suggestion, confidence=confidence)


def analyze_traffic(data: Any) -> MetricInsight:
    """Top traffic source and its share of responses."""
    data = coerce_model(TrafficInput, data)
    entries = _ranked(data.bySource)
    if not entries:
        return MetricInsight(
            insight="Traffic sources not available yet.",
            suggestion="Share your survey link across your top channels to collect balanced data.",
            confidence=Confidence.LOW,
        )

    top, top_count = entries[0]
    total = sum(v for _, v in entries)
    label = pretty_source(top)
    return MetricInsight(
        insight=f"Most responses come from {label} ({to_fixed(top_count / total * 100)}%).",
        suggestion=f"Consider investing a bit more into {label} or A/B test messaging on that channel.",
        confidence=Confidence.HIGH if total > 20 else Confidence.MEDIUM,
    )


def analyze_geography(data: Any) -> MetricInsight:
    """Top one or two countries by response count."""
    data = coerce_model(GeoInput, data)
    entries = _ranked(data.byCountry)
    if not entries:
        return MetricInsight(
            insight="Not enough geographic data yet.",
            suggestion="As data grows, consider localizing copy for your top regions.",
            confidence=Confidence.LOW,
        )

    top = [country for country, _ in entries[:2]]
    if len(top) >= 2:
        insight = f"Highest engagement from {top[0]} & {top[1]}."
    else:
        insight = f"Highest engagement from {top[0]}."

    return MetricInsight(
        insight=insight,
        suggestion="Localize labels or hints for top regions; consider time-zone optimized reminders.",
        confidence=Confidence.HIGH if len(entries) > 3 else Confidence.MEDIUM,
    )


def analyze_questions(data: Any) -> MetricInsight:
    """The question with the highest skip rate."""
    data = coerce_model(QuestionsInput, data)
    if not data.items:
        return MetricInsight(
            insight="No question performance data yet.",
            suggestion="Collect more responses to detect weak spots and drop-offs.",
            confidence=Confidence.LOW,
        )

    with_skip = [
        (item, clamp(item.skipRate, 0.0, 1.0))
        for item in data.items
        if _finite(item.skipRate)
    ]
    if not with_skip:
        return MetricInsight(
            insight="Question performance looks balanced so far.",
            suggestion="Keep monitoring skip and dwell times to spot friction.",
            confidence=Confidence.MEDIUM,
        )

    worst, skip_rate = max(with_skip, key=lambda pair: pair[1])
    label = worst.label or f"Question {worst.id}"

    if skip_rate >= 0.5:
        confidence = Confidence.HIGH
    elif skip_rate >= 0.3:
        confidence = Confidence.MEDIUM
    else:
        confidence = Confidence.LOW

    return MetricInsight(
        insight=f"{label} shows a {percent(skip_rate, 1)} skip rate.",
        suggestion="Reword for clarity, reduce cognitive load, or split into simpler steps.",
        confidence=confidence,
    )


def analyze_time_activity(data: Any, timezone: Optional[str] = None) -> MetricInsight:
    """
    Peak hour of engagement, plus the busiest weekday when byDay is given.

    A 24-slot byHour histogram is preferred; otherwise the hour is derived
    from raw timestamps bucketed in `timezone` (default: settings).
    """
    data = coerce_model(TimeActivityInput, data)
    tz = timezone or get_settings().activity_timezone

    peak_label: Optional[str] = None
    confidence = Confidence.LOW

    if data.byHour is not None and len(data.byHour) == 24:
        idx, peak = _histogram_peak(data.byHour)
        if peak > 0:
            peak_label = f"{idx:02d}:00"
            confidence = Confidence.HIGH if peak >= 5 else Confidence.MEDIUM
    elif data.timestamps:
        hours = _timestamp_hours(data.timestamps, tz)
        if hours:
            idx, peak = _histogram_peak(np.bincount(hours, minlength=24))
            peak_label = f"{idx:02d}:00"
            confidence = Confidence.MEDIUM if peak >= 5 else Confidence.LOW

    day_text = ""
    if data.byDay is not None and len(data.byDay) == 7:
        day_idx, day_peak = _histogram_peak(data.byDay)
        if day_peak > 0:
            day_text = f" Busiest day: {WEEKDAY_NAMES[day_idx]}."

    if peak_label is None:
        return MetricInsight(
            insight=f"No clear activity peak yet.{day_text}",
            suggestion="Activity patterns will emerge as more responses arrive.",
            confidence=Confidence.LOW,
        )

    return MetricInsight(
        insight=f"Peak engagement around {peak_label}.{day_text}",
        suggestion="Schedule reminders and promotions around the peak window to maximize completions.",
        confidence=confidence,
    )


def analyze_sentiment(data: Any) -> MetricInsight:
    """
    Majority sentiment across free-text samples.

    Ties resolve positive, then negative, then neutral.
    """
    data = coerce_model(SentimentInput, data)
    if not data.samples:
        return MetricInsight(
            insight="No text responses to analyze yet.",
            suggestion="As free-text feedback arrives, sentiment patterns will appear.",
            confidence=Confidence.LOW,
        )

    dist = {label: 0 for label in SentimentLabel}
    for sample in data.samples:
        dist[classify_sentiment(sample)] += 1

    total = len(data.samples)
    order = [SentimentLabel.POSITIVE, SentimentLabel.NEGATIVE, SentimentLabel.NEUTRAL]
    dominant = max(order, key=lambda label: dist[label])
    dominant_pct = round_half_up(dist[dominant] / total * 100)
    pos_pct = round_half_up(dist[SentimentLabel.POSITIVE] / total * 100)
    neg_pct = round_half_up(dist[SentimentLabel.NEGATIVE] / total * 100)

    if dominant == SentimentLabel.NEUTRAL:
        insight = f"Responses are mostly neutral ({dominant_pct}%), {pos_pct}% positive."
    else:
        insight = f"Responses are mostly {dominant.value} ({dominant_pct}%)."

    if pos_pct >= 70:
        suggestion = "Keep the current tone and content."
    elif neg_pct >= 30:
        suggestion = "Address common pain points surfaced in negative responses."
    else:
        suggestion = "Invite more detailed feedback to understand mixed reactions."

    return MetricInsight(
        insight=insight,
        suggestion=suggestion,
        confidence=Confidence.HIGH if total > 20 else Confidence.MEDIUM,
    )
