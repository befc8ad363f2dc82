"""Shared fixtures for recurrence_engine tests."""

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from recurrence_engine.expansion_cache import reset_expansion_cache
from recurrence_engine.models import Series

WEEKLY_MON_WED = "RRULE:FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE"


def pytest_configure(config: Any) -> None:
    """Register test markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "critical_path: Core functionality tests")


@pytest.fixture(autouse=True)
def reset_shared_cache() -> Generator[None, Any, None]:
    """Give every test a fresh process-wide expansion cache.

    The shared cache in recurrence_engine.expansion_cache outlives a single
    test; without a reset, hit/miss counts and cached results leak between
    tests.
    """
    reset_expansion_cache()
    yield
    reset_expansion_cache()


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> None:
    """Clear engine environment overrides so host settings cannot leak in."""
    for name in (
        "RECURRENCE_ENGINE_CONFIG",
        "RECURRENCE_ENGINE_DEBUG",
        "RECURRENCE_ENGINE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def anchor_start() -> datetime:
    """Monday 2024-01-01 09:00 UTC."""
    return datetime(2024, 1, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
def make_series(anchor_start: datetime):
    """Factory for one-hour series anchored at ``anchor_start``."""

    def _make(rule: str = WEEKLY_MON_WED, **overrides: Any) -> Series:
        fields: dict[str, Any] = {
            "id": "evt-1",
            "anchor_start": anchor_start,
            "anchor_end": anchor_start + timedelta(hours=1),
            "rule": rule,
        }
        fields.update(overrides)
        return Series(**fields)

    return _make


