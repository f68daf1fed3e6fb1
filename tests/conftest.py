"""Central Pytest Fixtures for Privacy Gaps.

This module provides reusable configs, schedules, stores and clocks across
all test modules, and isolates every test from the caller's environment.

Fixtures included:
- Isolation: isolated_environment (autouse)
- Core data: schedule_day, default_config, alpha_schedule
- Stores: memory_store, cache_dir
- Utilities: Clock, never_crisis
"""

import logging
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

import privacy_gaps.config as config_module
from privacy_gaps.config import DEFAULT_PRIVACY_GAP_CONFIG, PrivacyGapConfig, reset_config
from privacy_gaps.core.models import GapSchedule
from privacy_gaps.core.scheduler import generate_daily_gap_schedule
from privacy_gaps.core.store import InMemoryScheduleStore

# =============================================================================
# Helper Classes
# =============================================================================


class Clock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch):
    """Keep host config files, env vars and CLI logging setup out of tests."""
    import os

    for key in list(os.environ):
        if key.upper().startswith("PRIVACY_GAPS_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_SEARCH_PATHS", ())
    reset_config()

    yield

    reset_config()
    package_logger = logging.getLogger("privacy_gaps")
    package_logger.handlers = []
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


# =============================================================================
# Core Data
# =============================================================================


@pytest.fixture
def schedule_day() -> date:
    return date(2025, 12, 16)


@pytest.fixture
def generated_at() -> datetime:
    return datetime(2025, 12, 16, 0, 5, tzinfo=timezone.utc)


@pytest.fixture
def default_config() -> PrivacyGapConfig:
    return DEFAULT_PRIVACY_GAP_CONFIG


@pytest.fixture
def alpha_schedule(schedule_day: date, generated_at: datetime) -> GapSchedule:
    """Schedule for child-alpha on 2025-12-16 with default bounds."""
    return generate_daily_gap_schedule("child-alpha", schedule_day, generated_at=generated_at)


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture
def clock(generated_at: datetime) -> Clock:
    return Clock(generated_at)


@pytest.fixture
def memory_store(clock: Clock) -> InMemoryScheduleStore:
    return InMemoryScheduleStore(clock=clock)


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "schedule-cache"


@pytest.fixture
def never_crisis():
    """Crisis predicate that matches nothing."""
    return lambda url: False
