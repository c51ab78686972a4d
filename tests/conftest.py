"""Global test fixtures and utilities for devxp tests"""
import random
from datetime import datetime

import pytest

from devxp.config import EngineSettings
from devxp.engine import GamificationEngine
from devxp.events import EventEmitter
from devxp.models.activity import ActivityContext, ActivityOccurrence, ActivityType, UserSnapshot


# 2024-01-10 is a Wednesday, 2024-01-06 a Saturday
WEDNESDAY_NOON = datetime(2024, 1, 10, 12, 0)
SATURDAY_MORNING = datetime(2024, 1, 6, 6, 0)


# ============================================================================
# User & Activity Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "dev-1"


@pytest.fixture
def make_occurrence(test_user_id):
    """Factory for activity occurrences at a fixed weekday noon"""
    def _make(
        activity_type=ActivityType.GIT_COMMIT,
        timestamp=WEDNESDAY_NOON,
        context=None,
        base_xp=None,
        override_multipliers=None,
        **user_fields,
    ):
        user_fields.setdefault("user_id", test_user_id)
        return ActivityOccurrence(
            activity_type=activity_type,
            user=UserSnapshot(**user_fields),
            timestamp=timestamp,
            context=context or ActivityContext(),
            base_xp=base_xp,
            override_multipliers=override_multipliers or [],
        )
    return _make


# ============================================================================
# Engine Fixtures
# ============================================================================

@pytest.fixture
def settings():
    """Default engine settings (no environment overrides)"""
    return EngineSettings()


@pytest.fixture
def seeded_random():
    """Deterministic random source"""
    return random.Random(1234)


@pytest.fixture
def emitter():
    return EventEmitter()


@pytest.fixture
def engine(settings, seeded_random):
    """Fresh engine per test"""
    eng = GamificationEngine(settings=settings, rng=seeded_random)
    yield eng
    eng.teardown()
