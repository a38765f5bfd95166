"""
Auto-Rebuild Planning - gated, descriptive survey rebuild plans from AI insights.

This module NEVER changes survey data. It:
1. Normalizes untyped AI summarizer output into AIInsights (never raises)
2. Decides whether a new plan may be proposed (sample size, cooldown, change)
3. Scans the insight text with an ordered rule table and emits PlannedActions
4. Persists the latest plan and notifies an optional hook

Eligibility (first match wins):
- missing form id
- fewer than `min_responses_for_rebuild` responses (10)
- less than `min_interval_ms` since the last run (24h); reports minutes left
- insights hash equal to the last plan's hash ("no significant changes")

Ineligible calls return a "ghost" plan (eligible=False, no actions) so the UI
always has something to render; ghost plans are not persisted.

Rules live in REBUILD_RULES as independent records. Several may fire on the
same text; order only affects the order of the resulting actions.
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ValidationError

from insight_engine.core.config import get_settings
from insight_engine.core.storage import KeyValueStore
from insight_engine.models import (
    AIInsights,
    AutoRebuildPlan,
    EligibilityDecision,
    PlanPriority,
    PlannedAction,
    PlannedActionType,
    UserPlan,
)
from insight_engine.services.hashing import compute_signature
from insight_engine.services.metric_cache import now_ms as _clock
from insight_engine.services.plan_store import load_last_plan, load_last_run_at, persist_plan

logger = logging.getLogger(__name__)

ELIGIBLE_REASON = "Eligible for planning"
PLAN_REASON = "Plan derived from latest AI insights"

# "Question 4" / "question4" or "Q4" / "q 4"
_QUESTION_REF = re.compile(r"question\s*(\d+)|\bq\s*(\d+)\b", re.IGNORECASE)


# =============================================================================
# Normalization and Hashing
# =============================================================================


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str)]


def normalize_insights(raw: Any) -> AIInsights:
    """
    Coerce arbitrary summarizer output into AIInsights.

    Accepts AIInsights, other pydantic models, mappings and JSON object
    strings. Wrong-typed fields fall back to empty defaults and non-string
    list entries are dropped. Never raises.
    """
    if isinstance(raw, AIInsights):
        return raw.model_copy(deep=True)
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    elif isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            return AIInsights()

    if not isinstance(raw, Mapping):
        return AIInsights()

    summary = raw.get("summary")
    details = raw.get("details")
    try:
        return AIInsights(
            summary=summary if isinstance(summary, str) else "",
            keyInsights=_string_list(raw.get("keyInsights")),
            recommendations=_string_list(raw.get("recommendations")),
            details={str(k): v for k, v in details.items()} if isinstance(details, Mapping) else {},
        )
    except ValidationError:
        logger.warning("Unusable AI insights payload; using empty insights")
        return AIInsights()


def compute_insights_hash(insights: AIInsights) -> str:
    """Stable hash of normalized insights; key order never matters."""
    return compute_signature(insights.model_dump())


def _to_epoch_ms(value: Union[int, float, datetime, None]) -> int:
    if value is None:
        return 0
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    if isinstance(value, (int, float)) and math.isfinite(value):
        return int(value)
    return 0


def _iso(ms: int) -> str:
    """Epoch ms -> ISO-8601 UTC with millisecond precision and a 'Z' suffix."""
    moment = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# =============================================================================
# Eligibility
# =============================================================================


def evaluate_auto_rebuild_eligibility(
    insights: AIInsights,
    *,
    form_id: str,
    response_count: int,
    last_run_at: Union[int, float, datetime, None] = None,
    min_interval_ms: Optional[int] = None,
    last_plan_hash: Optional[str] = None,
    now_ms: Optional[int] = None,
) -> EligibilityDecision:
    """
    Decide whether a new rebuild plan may be proposed.

    Args:
        insights: Normalized insights (see normalize_insights)
        form_id: Form being planned; empty means ineligible
        response_count: Responses collected so far
        last_run_at: Last plan time (epoch ms or datetime); None means never
        min_interval_ms: Cooldown; defaults to settings.rebuild_min_interval_ms
        last_plan_hash: insightsHash of the last stored plan, if any
        now_ms: Current time override

    Returns:
        EligibilityDecision with the reason and when re-evaluation may succeed
    """
    settings = get_settings()
    now = now_ms if now_ms is not None else _clock()
    interval = min_interval_ms if min_interval_ms is not None else settings.rebuild_min_interval_ms
    last_run = _to_epoch_ms(last_run_at)
    min_responses = settings.min_responses_for_rebuild

    if not form_id:
        return EligibilityDecision(
            eligible=False,
            reason="Missing formId",
            nextCheckAt=now + interval,
        )

    if (response_count or 0) < min_responses:
        return EligibilityDecision(
            eligible=False,
            reason=f"Need at least {min_responses} responses for meaningful rebuild planning",
            nextCheckAt=now + interval,
        )

    elapsed = now - last_run
    if elapsed < interval:
        remaining = interval - elapsed
        minutes = math.ceil(remaining / 60_000)
        return EligibilityDecision(
            eligible=False,
            reason=f"Minimum interval not reached. Try again in ~{minutes} minutes",
            nextCheckAt=last_run + interval,
        )

    if last_plan_hash and last_plan_hash == compute_insights_hash(insights):
        return EligibilityDecision(
            eligible=False,
            reason="No significant changes since last analysis",
            nextCheckAt=now + interval,
        )

    return EligibilityDecision(
        eligible=True,
        reason=ELIGIBLE_REASON,
        nextCheckAt=now + interval,
    )


# =============================================================================
# Question References
# =============================================================================


@dataclass
class QuestionRef:
    """A question mentioned in insight text, e.g. 'Question 4' or 'Q4'."""
    label: str
    index: int
    question_id: Optional[str] = None


def extract_question_refs(texts: Iterable[str]) -> List[QuestionRef]:
    """Question references in first-seen order, de-duplicated by number."""
    refs: List[QuestionRef] = []
    seen = set()
    for line in texts:
        for match in _QUESTION_REF.finditer(line):
            index = int(match.group(1) or match.group(2))
            if index in seen:
                continue
            seen.add(index)
            refs.append(QuestionRef(label=f"Question {index}", index=index))
    return refs


def map_question_refs_to_ids(
    refs: List[QuestionRef],
    question_id_map: Optional[Mapping[str, str]] = None,
) -> List[QuestionRef]:
    """
    Attach real question ids using a label lookup.

    Keys are tried as 'Q4', 'Question 4', then '4'. Unmapped refs keep
    question_id=None.
    """
    if not question_id_map:
        return refs
    mapped = []
    for ref in refs:
        question_id = None
        for key in (f"Q{ref.index}", f"Question {ref.index}", str(ref.index)):
            if question_id_map.get(key):
                question_id = question_id_map[key]
                break
        mapped.append(QuestionRef(label=ref.label, index=ref.index, question_id=question_id))
    return mapped


# =============================================================================
# Rule Table
# =============================================================================


@dataclass
class RuleContext:
    """
    What every rule sees.

    Attributes:
        text: keyInsights + recommendations + summary, joined and lowercased
        insights: The normalized insights
        refs: Question references with ids mapped where possible
        actions: Actions emitted by earlier rules in this run
    """
    text: str
    insights: AIInsights
    refs: List[QuestionRef]
    actions: List[PlannedAction] = field(default_factory=list)


@dataclass(frozen=True)
class RebuildRule:
    name: str
    predicate: Callable[[RuleContext], bool]
    build: Callable[[RuleContext], List[PlannedAction]]


_DROP_OFF = re.compile(r"(drop[-\s]?off|skip|abandon)")
_MOBILE_AHEAD = re.compile(r"mobile.*(faster|better|higher)")
_DESKTOP_AHEAD = re.compile(r"desktop.*(faster|better|higher)")
_LENGTH_OR_COMPLEXITY = re.compile(r"(too long|longer than|length|complex|confusing)")
_AMBIGUITY = re.compile(r"clarif|confus", re.IGNORECASE)


def _drop_off_actions(ctx: RuleContext) -> List[PlannedAction]:
    actions = [
        PlannedAction(
            type=PlannedActionType.TWEAK_QUESTION_COPY,
            priority=PlanPriority.HIGH,
            reason="High drop-off/skip detected",
            questionId=ref.question_id,
            questionLabel=ref.label,
            preview="Reword or simplify the question to reduce friction",
        )
        for ref in ctx.refs
    ]
    actions.append(PlannedAction(
        type=PlannedActionType.INSERT_SECTION_BREAK,
        priority=PlanPriority.MEDIUM,
        reason="Reduce cognitive load by chunking",
        preview="Add section break before/after high-friction questions",
    ))
    actions.append(PlannedAction(
        type=PlannedActionType.ADD_PROGRESS_INDICATOR,
        priority=PlanPriority.MEDIUM,
        reason="Maintain perceived progress to reduce abandonment",
        preview="Enable or keep a progress bar throughout the survey",
    ))
    return actions


def _single(
    action_type: PlannedActionType,
    priority: PlanPriority,
    reason: str,
    preview: str,
) -> Callable[[RuleContext], List[PlannedAction]]:
    def build(ctx: RuleContext) -> List[PlannedAction]:
        return [PlannedAction(type=action_type, priority=priority, reason=reason, preview=preview)]
    return build


REBUILD_RULES: Tuple[RebuildRule, ...] = (
    RebuildRule(
        name="drop_off",
        predicate=lambda ctx: bool(_DROP_OFF.search(ctx.text)),
        build=_drop_off_actions,
    ),
    RebuildRule(
        name="mobile_ahead",
        predicate=lambda ctx: bool(_MOBILE_AHEAD.search(ctx.text)),
        build=_single(
            PlannedActionType.IMPROVE_DESKTOP_UX,
            PlanPriority.MEDIUM,
            "Desktop users lag behind mobile users",
            "Optimize spacing and interaction targets for desktop",
        ),
    ),
    RebuildRule(
        name="desktop_ahead",
        predicate=lambda ctx: bool(_DESKTOP_AHEAD.search(ctx.text)),
        build=_single(
            PlannedActionType.OPTIMIZE_MOBILE,
            PlanPriority.HIGH,
            "Mobile users underperform compared to desktop",
            "Reduce vertical clutter; ensure controls are thumb-friendly",
        ),
    ),
    RebuildRule(
        name="length_complexity",
        predicate=lambda ctx: bool(_LENGTH_OR_COMPLEXITY.search(ctx.text)),
        build=_single(
            PlannedActionType.SHORTEN_SURVEY,
            PlanPriority.MEDIUM,
            "Survey length/complexity likely impacting completion",
            "Remove or defer low-value questions; tighten copy",
        ),
    ),
    RebuildRule(
        name="ambiguity",
        predicate=lambda ctx: not ctx.refs and any(
            _AMBIGUITY.search(line) for line in ctx.insights.keyInsights
        ),
        build=_single(
            PlannedActionType.CLARIFY_INSTRUCTION,
            PlanPriority.MEDIUM,
            "Ambiguity detected in user responses",
            "Add brief helper text below the ambiguous question",
        ),
    ),
    # Must stay last: only fires when nothing above produced an action
    RebuildRule(
        name="general_fallback",
        predicate=lambda ctx: not ctx.actions and bool(ctx.insights.recommendations),
        build=_single(
            PlannedActionType.CLARIFY_INSTRUCTION,
            PlanPriority.LOW,
            "General improvements suggested by AI",
            "Add quick helper text to the most critical questions",
        ),
    ),
)


def apply_rules(
    ctx: RuleContext,
    rules: Iterable[RebuildRule] = REBUILD_RULES,
) -> List[PlannedAction]:
    """Run `rules` in order, accumulating actions on ctx.actions."""
    for rule in rules:
        if rule.predicate(ctx):
            produced = rule.build(ctx)
            logger.debug(f"Rebuild rule {rule.name} produced {len(produced)} action(s)")
            ctx.actions.extend(produced)
    return ctx.actions


# =============================================================================
# Plan Builder
# =============================================================================


def build_auto_rebuild_plan(
    insights: Any,
    *,
    form_id: str,
    min_interval_ms: Optional[int] = None,
    question_id_map: Optional[Mapping[str, str]] = None,
    now_ms: Optional[int] = None,
) -> AutoRebuildPlan:
    """
    Build a descriptive plan from insights. Call only after eligibility passes.

    Args:
        insights: Raw or normalized insights
        form_id: Form the plan is for
        min_interval_ms: Cadence for scheduleNextCheckAt (default 24h)
        question_id_map: Optional 'Q4' / 'Question 4' / '4' -> question id lookup
        now_ms: Current time override

    Returns:
        An eligible AutoRebuildPlan; actions may be empty
    """
    normalized = normalize_insights(insights)
    now = now_ms if now_ms is not None else _clock()
    interval = min_interval_ms if min_interval_ms is not None else get_settings().rebuild_min_interval_ms

    lines = [
        line
        for line in [*normalized.keyInsights, *normalized.recommendations, normalized.summary]
        if line
    ]
    refs = map_question_refs_to_ids(extract_question_refs(lines), question_id_map)
    ctx = RuleContext(text=" ".join(lines).lower(), insights=normalized, refs=refs)
    actions = apply_rules(ctx)

    return AutoRebuildPlan(
        formId=form_id,
        createdAt=_iso(now),
        eligible=True,
        reason=PLAN_REASON,
        actions=actions,
        insightsHash=compute_insights_hash(normalized),
        scheduleNextCheckAt=_iso(now + interval),
    )


# =============================================================================
# Trigger
# =============================================================================


@dataclass
class AutoRebuildOptions:
    """
    Context for trigger_survey_rebuild_if_needed.

    Attributes:
        form_id: Form to plan for
        response_count: Responses collected so far
        last_run_at: Overrides the stored last-run time (epoch ms or datetime)
        min_interval_ms: Cooldown between plans; defaults to settings
        dry_run: Build and return the plan without persisting it
        user_plan: Owner's subscription tier; informative only, never enforced
        last_plan_hash: Overrides the stored plan's insightsHash
        question_id_map: 'Q4' / 'Question 4' / '4' -> question id lookup
        on_planned: Called with each newly built plan; errors are logged
    """
    form_id: str
    response_count: int
    last_run_at: Union[int, float, datetime, None] = None
    min_interval_ms: Optional[int] = None
    dry_run: bool = False
    user_plan: Optional[UserPlan] = None
    last_plan_hash: Optional[str] = None
    question_id_map: Optional[Dict[str, str]] = None
    on_planned: Optional[Callable[[AutoRebuildPlan], None]] = None


def trigger_survey_rebuild_if_needed(
    raw_insights: Any,
    options: AutoRebuildOptions,
    *,
    store: Optional[KeyValueStore] = None,
    now_ms: Optional[int] = None,
) -> AutoRebuildPlan:
    """
    Check eligibility, build and persist a plan, and notify the hook.

    Always returns a plan: a populated eligible one, or a ghost plan whose
    `reason` explains why planning was skipped. Never mutates survey data.

    Args:
        raw_insights: Untyped summarizer output
        options: Planning context
        store: Store override for plan persistence; defaults to the shared store
        now_ms: Current time override
    """
    insights = normalize_insights(raw_insights)
    now = now_ms if now_ms is not None else _clock()
    form_id = options.form_id

    last_run_at = options.last_run_at
    if last_run_at is None:
        last_run_at = load_last_run_at(form_id, store=store) if form_id else None

    last_plan_hash = options.last_plan_hash
    if last_plan_hash is None and form_id:
        last_plan = load_last_plan(form_id, store=store)
        last_plan_hash = last_plan.insightsHash if last_plan else None

    decision = evaluate_auto_rebuild_eligibility(
        insights,
        form_id=form_id,
        response_count=options.response_count,
        last_run_at=last_run_at,
        min_interval_ms=options.min_interval_ms,
        last_plan_hash=last_plan_hash,
        now_ms=now,
    )

    if not decision.eligible:
        logger.info(f"Rebuild planning skipped for form {form_id or '<missing>'}: {decision.reason}")
        return AutoRebuildPlan(
            formId=form_id,
            createdAt=_iso(now),
            eligible=False,
            reason=decision.reason,
            actions=[],
            insightsHash=compute_insights_hash(insights),
            scheduleNextCheckAt=_iso(decision.nextCheckAt),
        )

    plan = build_auto_rebuild_plan(
        insights,
        form_id=form_id,
        min_interval_ms=options.min_interval_ms,
        question_id_map=options.question_id_map,
        now_ms=now,
    )
    user_plan = getattr(options.user_plan, "value", options.user_plan) or "unknown"
    logger.info(
        f"Rebuild plan for form {form_id} with {len(plan.actions)} action(s) "
        f"(user_plan={user_plan}, dry_run={options.dry_run})"
    )

    if not options.dry_run:
        persist_plan(form_id, plan, store=store, timestamp_ms=now)

    if options.on_planned is not None:
        try:
            options.on_planned(plan)
        except Exception:
            logger.exception(f"on_planned hook failed for form {form_id}")

    return plan
