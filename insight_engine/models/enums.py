"""
Enumeration definitions for the Insight Engine.

All enums inherit from both `str` and `Enum` so they serialize as plain JSON
strings in Pydantic models and compare equal to their raw values
(`Confidence.LOW == "low"`).
"""

from enum import Enum


class Confidence(str, Enum):
    """
    Confidence attached to a single metric insight.

    Derived from analyzer-specific sample-size thresholds, never from a
    learned model. Low confidence is also the marker for "not enough data yet".
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PlanPriority(str, Enum):
    """Priority of a proposed rebuild action."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PlannedActionType(str, Enum):
    """
    Kinds of survey edits a rebuild plan can propose.

    Purely descriptive: nothing in this package executes them.

    - tweak_question_copy: Reword a specific high-friction question
    - reorder_question: Move a question earlier or later
    - insert_section_break: Chunk the survey into smaller steps
    - optimize_mobile: Improve the small-screen layout
    - improve_desktop_ux: Improve the large-screen layout
    - shorten_survey: Remove or defer low-value questions
    - clarify_instruction: Add helper text to an ambiguous question
    - adjust_requiredness: Make a question optional or required
    - add_progress_indicator: Show progress through the survey
    """
    TWEAK_QUESTION_COPY = "tweak_question_copy"
    REORDER_QUESTION = "reorder_question"
    INSERT_SECTION_BREAK = "insert_section_break"
    OPTIMIZE_MOBILE = "optimize_mobile"
    IMPROVE_DESKTOP_UX = "improve_desktop_ux"
    SHORTEN_SURVEY = "shorten_survey"
    CLARIFY_INSTRUCTION = "clarify_instruction"
    ADJUST_REQUIREDNESS = "adjust_requiredness"
    ADD_PROGRESS_INDICATOR = "add_progress_indicator"


class SentimentLabel(str, Enum):
    """Keyword classifier output for one free-text response."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class UserPlan(str, Enum):
    """Subscription tier of the form owner. Informative only."""
    FREE = "free"
    PRO = "pro"


class Trend(str, Enum):
    """Direction of a metric between two periods (±1% dead band)."""
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class AlertType(str, Enum):
    """
    Display category for a smart alert.

    - warning: Threshold crossed upwards or a drop of more than 15%
    - info: Threshold crossed downwards
    - success: Improvement of more than 15%
    """
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"


class ThresholdDirection(str, Enum):
    """Which side of an alert threshold triggers the alert."""
    ABOVE = "above"
    BELOW = "below"


class InsightFeedback(str, Enum):
    """Stored user verdict on an insight."""
    HELPFUL = "helpful"
    NOT_HELPFUL = "not-helpful"
