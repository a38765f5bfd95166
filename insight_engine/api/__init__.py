"""
Insight Engine API package initialization.

Router modules:
- metrics: Metric insights, smart alerts, insight feedback
- rebuild: Auto-rebuild plan trigger, lookup and reset
"""

from fastapi import APIRouter

from insight_engine.api.metrics import router as metrics_router
from insight_engine.api.rebuild import router as rebuild_router

# Both routers carry their own prefix
api_router = APIRouter()
api_router.include_router(metrics_router)
api_router.include_router(rebuild_router)

__all__ = [
    "api_router",
    "metrics_router",
    "rebuild_router",
]
