"""
Pytest Configuration and Shared Fixtures for Insight Engine Tests.

Provides:
- Custom markers
- Isolation of the settings cache and the shared key-value store
- In-memory and failing stores
- A controllable clock for TTL and cooldown tests
- Sample metric inputs and AI insights

Dependencies:
- pytest
- pytest-asyncio (async tests are marked individually with @pytest.mark.asyncio)
"""

from typing import Any, Dict, Generator, List, Optional

import pytest

from insight_engine.core.config import get_settings
from insight_engine.core.storage import InMemoryStore, close_store, set_store


# 2023-11-14T22:13:20.000Z
FIXED_NOW_MS = 1_700_000_000_000

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Configure custom pytest markers.

    - slow: Marks tests as slow (deselect with -m "not slow")
    - api: Marks tests that go through the FastAPI app
    """
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with -m "not slow")'
    )
    config.addinivalue_line(
        'markers',
        'api: marks tests exercising HTTP endpoints through TestClient'
    )


# ============================================================
# ISOLATION
# ============================================================

@pytest.fixture(autouse=True)
def isolated_environment() -> Generator[None, None, None]:
    """
    Fresh settings and a fresh shared in-memory store for every test.

    Services that fall back to the shared store never see data written by
    another test.
    """
    get_settings.cache_clear()
    set_store(InMemoryStore())
    yield
    close_store()
    get_settings.cache_clear()


# ============================================================
# STORES AND CLOCKS
# ============================================================

class FailingStore:
    """Store whose every operation raises, to exercise best-effort paths."""

    def __init__(self) -> None:
        self.calls: List[str] = []

    def get(self, key: str) -> Optional[str]:
        self.calls.append(f"get:{key}")
        raise OSError("store unavailable")

    def set(self, key: str, value: str) -> None:
        self.calls.append(f"set:{key}")
        raise OSError("quota exceeded")

    def remove(self, key: str) -> None:
        self.calls.append(f"remove:{key}")
        raise OSError("store unavailable")


class MutableClock:
    """Callable epoch-ms clock that tests can move forward."""

    def __init__(self, now: int = FIXED_NOW_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def memory_store() -> InMemoryStore:
    """Empty in-memory store, independent of the shared one."""
    return InMemoryStore()


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def fixed_now_ms() -> int:
    return FIXED_NOW_MS


# ============================================================
# SAMPLE DATA
# ============================================================

@pytest.fixture
def sample_inputs() -> Dict[str, Any]:
    """A full set of analyzer inputs for a reasonably healthy survey."""
    return {
        "completion": {
            "totalResponses": 120,
            "complete": 96,
            "partial": 12,
            "lastWeekComplete": 56,
            "prevWeekComplete": 50,
        },
        "time": {"durationsMs": [150_000, 180_000, 240_000, 210_000]},
        "devices": {
            "desktop": 120,
            "mobile": 260,
            "tablet": 20,
            "avgTimeByDeviceMs": {"desktop": 240_000, "mobile": 200_000},
        },
        "traffic": {"bySource": {"twitter": 78, "google": 46, "direct": 22}},
        "geography": {"byCountry": {"United States": 140, "Canada": 38, "Germany": 12}},
        "questions": {
            "items": [
                {"id": "q1", "label": "Question 1", "skipRate": 0.05},
                {"id": "q4", "label": "Question 4", "skipRate": 0.62},
            ]
        },
        "activity": {"byHour": [0] * 14 + [9] + [0] * 9},
        "sentiment": {"samples": ["Great form!", "Love the flow", "Too long"]},
    }


@pytest.fixture
def drop_off_insights() -> Dict[str, Any]:
    """Summarizer output that mentions a skipped question."""
    return {
        "summary": "",
        "keyInsights": ["90% of users skipped Question 4"],
        "recommendations": [],
    }
