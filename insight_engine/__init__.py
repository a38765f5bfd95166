"""
SmartFormAI Insight Engine Package.

Local, cost-free analytics layer for survey responses. Turns raw response
metrics into short natural-language insights and turns AI insight text into
a gated, human-reviewable "auto-rebuild" plan. No network or LLM calls are
made and survey definitions are never modified.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, key-value storage, and dependencies
    - models: Pydantic schemas and enums
    - services: Hashing, analyzers, caching, rebuild planning, alerts
"""

__version__ = "1.0.0"
