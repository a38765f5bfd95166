'''
SmartForm Insight Engine Test Suite

Test Modules:
-------------
- test_hashing.py: Stable serialization and djb2 fingerprints
  - Key-order independence, cycle sentinel, known hash values

- test_metric_analyzers.py: Per-analyzer behavior
  - Zero/empty guards return low-confidence insights
  - Threshold branching of suggestions and confidence
  - Sentiment keyword classification

- test_metric_engine.py: Aggregator and cache
  - Deterministic cache keys, cache hit within TTL, expiry at expiresAt
  - Absent inputs produce absent insights

- test_auto_rebuild.py: Rebuild planning
  - Eligibility gating (responses, cooldown, dedup)
  - Rule table and question mapping
  - Ghost plans, dry runs, hook failures

- test_plan_store.py: Plan and last-run persistence
- test_alerts.py: Smart alerts and insight feedback
- test_api.py: FastAPI endpoints via TestClient

Running Tests:
--------------
    pip install -e ".[test]"
    pytest insight_engine/tests -v

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

__all__ = []
