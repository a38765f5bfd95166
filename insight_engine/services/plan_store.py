"""
Plan Persistence - latest auto-rebuild plan and last-run timestamp per form.

Two keys per form:
- sfai:auto-rebuild:plan:{formId}      plan JSON
- sfai:auto-rebuild:last-run:{formId}  epoch ms as a decimal string

Every operation is best-effort. With no store (storage disabled) they are
silent no-ops; store and parse failures are logged and read as "nothing
stored". Nothing here raises to the caller.
"""

import json
import logging
import math
from typing import Optional

from pydantic import ValidationError

from insight_engine.core.storage import KeyValueStore, get_store
from insight_engine.models import AutoRebuildPlan
from insight_engine.services.metric_cache import now_ms

logger = logging.getLogger(__name__)

PLAN_KEY_PREFIX = "sfai:auto-rebuild:plan:"
LAST_RUN_KEY_PREFIX = "sfai:auto-rebuild:last-run:"


def plan_key(form_id: str) -> str:
    return f"{PLAN_KEY_PREFIX}{form_id}"


def last_run_key(form_id: str) -> str:
    return f"{LAST_RUN_KEY_PREFIX}{form_id}"


def _resolve(store: Optional[KeyValueStore]) -> Optional[KeyValueStore]:
    return store if store is not None else get_store()


def persist_plan(
    form_id: str,
    plan: AutoRebuildPlan,
    *,
    store: Optional[KeyValueStore] = None,
    timestamp_ms: Optional[int] = None,
) -> None:
    """
    Store `plan` as the latest plan for `form_id` and stamp the last run.

    Args:
        form_id: Form the plan belongs to
        plan: Plan to store
        store: Store override; defaults to the shared store
        timestamp_ms: Last-run value to record; defaults to now
    """
    store = _resolve(store)
    if store is None:
        return
    try:
        store.set(plan_key(form_id), plan.model_dump_json(exclude_none=True))
        store.set(last_run_key(form_id), str(timestamp_ms if timestamp_ms is not None else now_ms()))
    except Exception as e:
        logger.warning(f"Failed to persist rebuild plan for form {form_id}: {e}")


def load_last_plan(
    form_id: str,
    *,
    store: Optional[KeyValueStore] = None,
) -> Optional[AutoRebuildPlan]:
    """Most recent plan for `form_id`, or None when missing or malformed."""
    store = _resolve(store)
    if store is None:
        return None
    try:
        raw = store.get(plan_key(form_id))
    except Exception as e:
        logger.warning(f"Failed to read rebuild plan for form {form_id}: {e}")
        return None
    if not raw:
        return None

    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.debug(f"Ignoring unparseable rebuild plan for form {form_id}")
        return None
    if not isinstance(parsed, dict) or not parsed.get("formId"):
        return None

    try:
        return AutoRebuildPlan.model_validate(parsed)
    except ValidationError:
        logger.debug(f"Ignoring malformed rebuild plan for form {form_id}")
        return None


def load_last_run_at(
    form_id: str,
    *,
    store: Optional[KeyValueStore] = None,
) -> Optional[int]:
    """Epoch ms of the last persisted plan, or None."""
    store = _resolve(store)
    if store is None:
        return None
    try:
        raw = store.get(last_run_key(form_id))
    except Exception as e:
        logger.warning(f"Failed to read last run for form {form_id}: {e}")
        return None
    if not raw:
        return None

    try:
        value = float(raw)
    except ValueError:
        return None
    return int(value) if math.isfinite(value) else None


def clear_plan_cache(
    form_id: str,
    *,
    store: Optional[KeyValueStore] = None,
) -> None:
    """Remove both the stored plan and the last-run timestamp."""
    store = _resolve(store)
    if store is None:
        return
    try:
        store.remove(plan_key(form_id))
        store.remove(last_run_key(form_id))
    except Exception as e:
        logger.warning(f"Failed to clear rebuild plan cache for form {form_id}: {e}")
