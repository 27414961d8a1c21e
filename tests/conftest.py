from datetime import datetime, timedelta

import pytest
from habits.clock import FixedClock
from habits.config import EngineConfig
from habits.db import MemoryBlobStore
from habits.engine import SuggestionEngine
from habits.models import ActionKind

# 2026-01-05 is a Monday
MONDAY_7AM = datetime(2026, 1, 5, 7, 0)


@pytest.fixture
def clock():
    return FixedClock(MONDAY_7AM)


@pytest.fixture
def store():
    return MemoryBlobStore()


@pytest.fixture
def engine(store, clock):
    return SuggestionEngine(store=store, clock=clock, config=EngineConfig())


def log_at(engine, clock, moment, device_id, device_name, action=ActionKind.TURNED_ON, value=None):
    """Ingest an action as if it happened at `moment`."""
    clock.set(moment)
    return engine.ingest(device_id, device_name, action, value)


def log_weekly(engine, clock, start, device_id, device_name, weeks=3, action=ActionKind.TURNED_ON):
    """Ingest the same action at the same time on consecutive weeks."""
    for week in range(weeks):
        log_at(engine, clock, start + timedelta(weeks=week), device_id, device_name, action)
