"""
FastAPI router module for auto-rebuild planning.

Endpoints:
- POST /rebuild/trigger: Evaluate eligibility and build a plan (or a ghost plan)
- GET /rebuild/{form_id}: Latest stored plan and last-run timestamp
- DELETE /rebuild/{form_id}: Clear the stored plan and last-run timestamp

Plans are descriptive only. No endpoint here modifies a survey.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from insight_engine.core.dependencies import StoreDep
from insight_engine.models import AutoRebuildPlan, LastPlanResponse, RebuildTriggerRequest
from insight_engine.services.auto_rebuild import (
    AutoRebuildOptions,
    trigger_survey_rebuild_if_needed,
)
from insight_engine.services.plan_store import (
    clear_plan_cache,
    load_last_plan,
    load_last_run_at,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rebuild", tags=["rebuild"])


@router.post(
    "/trigger",
    response_model=AutoRebuildPlan,
    response_model_exclude_none=True,
)
async def trigger_rebuild(
    request: RebuildTriggerRequest,
    store: StoreDep,
) -> AutoRebuildPlan:
    """
    Propose a rebuild plan from raw AI insights.

    Always answers 200 with a plan: check `eligible` and `reason` to tell a
    real plan from a ghost plan.
    """
    options = AutoRebuildOptions(
        form_id=request.formId,
        response_count=request.responseCount,
        last_run_at=request.lastRunAt,
        min_interval_ms=request.minIntervalMs,
        dry_run=request.dryRun,
        user_plan=request.userPlan,
        last_plan_hash=request.lastPlanHash,
        question_id_map=request.questionIdMap,
    )
    return trigger_survey_rebuild_if_needed(request.insights, options, store=store)


@router.get(
    "/{form_id}",
    response_model=LastPlanResponse,
    response_model_exclude_none=True,
)
async def get_last_plan(form_id: str, store: StoreDep) -> LastPlanResponse:
    """
    Latest stored plan for a form.

    Raises:
        HTTPException 404: If no valid plan is stored
    """
    plan = load_last_plan(form_id, store=store)
    if plan is None:
        raise HTTPException(status_code=404, detail=f"No rebuild plan stored for form {form_id}")
    return LastPlanResponse(plan=plan, lastRunAt=load_last_run_at(form_id, store=store))


@router.delete("/{form_id}")
async def delete_plan_cache(form_id: str, store: StoreDep) -> Dict[str, Any]:
    """Remove the stored plan and last-run timestamp (debug/settings screens)."""
    clear_plan_cache(form_id, store=store)
    logger.info(f"Cleared rebuild plan cache for form {form_id}")
    return {"formId": form_id, "cleared": True}
