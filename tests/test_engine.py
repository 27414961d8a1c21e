"""Tests for the suggestion engine service."""

import threading
from datetime import datetime, timedelta

import pytest
from conftest import MONDAY_7AM, log_at, log_weekly
from habits.analysis.confidence import INTERVAL_CONFIDENCE, ROUTINE_CONFIDENCE
from habits.config import EngineConfig
from habits.db import MemoryBlobStore
from habits.engine import SuggestionEngine
from habits.models import ActionKind, ActionValue, PatternKey, SuggestionKind, ValueType


def kitchen_routine(engine, clock):
    """Kitchen light and speaker switched on at Monday 07:00 three weeks running."""
    log_weekly(engine, clock, MONDAY_7AM, "kitchen-light", "Kitchen Light")
    log_weekly(engine, clock, MONDAY_7AM + timedelta(minutes=1), "kitchen-speaker", "Kitchen Speaker")


def test_ingest_records_entry_and_pattern(engine, clock):
    entry = engine.ingest("lamp", "Desk Lamp", ActionKind.TURNED_ON)

    assert entry.timestamp == MONDAY_7AM
    assert len(engine.log) == 1
    pattern = engine.patterns.get(PatternKey("lamp", 2, 7, ActionKind.TURNED_ON))
    assert pattern.frequency == 1
    assert pattern.device_name == "Desk Lamp"


def test_ingest_wraps_raw_values(engine):
    entry = engine.ingest("lamp", "Desk Lamp", ActionKind.BRIGHTNESS_CHANGED, 80)

    assert entry.value == ActionValue(ValueType.INTEGER, 80)


def test_ingest_missing_name_degrades_to_empty(engine):
    entry = engine.ingest("lamp", None, ActionKind.TURNED_ON)

    assert entry.device_name == ""


def test_pattern_frequency_matches_log_count(engine, clock):
    for week in range(5):
        log_at(engine, clock, MONDAY_7AM + timedelta(weeks=week, minutes=week), "lamp", "Lamp")
    # Same slot, different action
    log_at(engine, clock, MONDAY_7AM + timedelta(weeks=5), "lamp", "Lamp", ActionKind.TURNED_OFF)

    on = engine.patterns.get(PatternKey("lamp", 2, 7, ActionKind.TURNED_ON))
    off = engine.patterns.get(PatternKey("lamp", 2, 7, ActionKind.TURNED_OFF))
    assert on.frequency == 5
    assert off.frequency == 1
    assert len(engine.patterns) == 2


def test_scenario_co_occurrence(engine, clock):
    kitchen_routine(engine, clock)

    co = [s for s in engine.suggestions if s.kind is SuggestionKind.CO_OCCURRENCE]
    assert len(co) == 1
    assert co[0].title == "Monday 7:00 AM Routine"
    assert co[0].confidence > 0
    assert {a.device_name for a in co[0].actions} == {"Kitchen Light", "Kitchen Speaker"}
    assert co[0].trigger.weekday == 2
    assert co[0].trigger.hour == 7


def test_scenario_regular_interval(engine, clock):
    start = datetime(2026, 1, 5, 19, 30)
    for day in range(4):
        log_at(engine, clock, start + timedelta(days=day), "porch", "Porch Light")

    regular = [s for s in engine.suggestions if s.kind is SuggestionKind.REGULAR_INTERVAL]
    assert len(regular) == 1
    assert regular[0].title == "Regular Porch Light Usage"
    assert regular[0].confidence == INTERVAL_CONFIDENCE == 0.7
    assert regular[0].trigger is None
    assert regular[0].description.endswith("every 1 day")


def test_scenario_morning_routine(engine, clock):
    log_weekly(engine, clock, datetime(2026, 1, 5, 6, 15), "blinds", "Bedroom Blinds")
    log_weekly(engine, clock, datetime(2026, 1, 6, 8, 40), "kettle", "Kettle")

    assert [s.title for s in engine.suggestions] == ["Morning Routine"]
    routine = engine.suggestions[0]
    assert routine.confidence == ROUTINE_CONFIDENCE == 0.8
    assert routine.trigger.hour == 6
    assert len(routine.based_on) == 2


def test_no_routine_outside_windows(engine, clock):
    log_weekly(engine, clock, datetime(2026, 1, 5, 10, 15), "blinds", "Bedroom Blinds")
    log_weekly(engine, clock, datetime(2026, 1, 6, 12, 40), "kettle", "Kettle")

    assert engine.suggestions == []


def test_scenario_retention_keeps_patterns(engine, clock):
    log_at(engine, clock, MONDAY_7AM, "lamp", "Lamp")
    log_at(engine, clock, MONDAY_7AM + timedelta(days=31), "heater", "Heater")

    assert [e.device_id for e in engine.log] == ["heater"]
    assert engine.patterns.get(PatternKey("lamp", 2, 7, ActionKind.TURNED_ON)).frequency == 1


def test_suggestions_sorted_by_confidence(engine, clock):
    kitchen_routine(engine, clock)
    start = datetime(2026, 1, 5, 19, 30)
    for day in range(4):
        log_at(engine, clock, start + timedelta(days=day), "porch", "Porch Light")

    confidences = [s.confidence for s in engine.suggestions]
    assert confidences == sorted(confidences, reverse=True)
    assert all(0.0 <= c <= 1.0 for c in confidences)


def test_learning_disabled_ignores_ingest(engine):
    engine.set_learning(False)

    assert engine.ingest("lamp", "Lamp", ActionKind.TURNED_ON) is None
    assert len(engine.log) == 0
    assert len(engine.patterns) == 0


def test_dismiss_is_stable_across_regeneration(engine, clock):
    kitchen_routine(engine, clock)
    target = next(s for s in engine.suggestions if s.kind is SuggestionKind.CO_OCCURRENCE)

    dismissed = engine.dismiss(target.id)
    assert dismissed is target
    assert target.id not in [s.id for s in engine.suggestions]

    # Another week of the same habit regenerates the same content
    log_at(engine, clock, MONDAY_7AM + timedelta(weeks=3), "kitchen-light", "Kitchen Light")
    assert target.id in engine.dismissed
    assert all(s.kind is not SuggestionKind.CO_OCCURRENCE for s in engine.generate())


def test_suggestion_ids_are_deterministic(engine, clock):
    kitchen_routine(engine, clock)

    first = [s.id for s in engine.suggestions]
    second = [s.id for s in engine.generate()]
    assert first == second


def test_accept_removes_suggestion(engine, clock):
    kitchen_routine(engine, clock)
    target = engine.suggestions[0]

    accepted = engine.accept(target.id)

    assert accepted.title == target.title
    assert target.id in engine.dismissed
    assert engine.get_suggestion(target.id) is None


def test_dismiss_unknown_id_is_recorded(engine):
    assert engine.dismiss("does-not-exist") is None
    assert "does-not-exist" in engine.dismissed


def test_clear_all(engine, clock):
    kitchen_routine(engine, clock)
    visible = {s.id for s in engine.suggestions}

    assert engine.clear_all() == len(visible) == 2
    assert engine.suggestions == []
    assert visible <= engine.dismissed
    assert engine.generate() == []


def test_minimum_confidence_filters_co_occurrence(engine, clock):
    kitchen_routine(engine, clock)
    # Six logs keep the weekly ceiling at 1, so co-occurrence scores 1.0
    engine.set_minimum_confidence(1.0)
    assert any(s.kind is SuggestionKind.CO_OCCURRENCE for s in engine.suggestions)

    with pytest.raises(ValueError):
        engine.set_minimum_confidence(1.5)


def test_learning_progress(engine, clock):
    for i in range(25):
        log_at(engine, clock, MONDAY_7AM + timedelta(minutes=i), "lamp", "Lamp")
    assert engine.learning_progress == 0.5

    for i in range(30):
        log_at(engine, clock, MONDAY_7AM + timedelta(hours=1, minutes=i), "lamp", "Lamp")
    assert engine.learning_progress == 1.0


def test_top_suggestions_and_flag(engine, clock):
    assert not engine.has_suggestions
    kitchen_routine(engine, clock)

    assert engine.has_suggestions
    assert engine.top_suggestions == engine.suggestions[:5]


def test_backfill_uses_entry_timestamps(engine, clock):
    from habits.models import UsageLogEntry

    entries = [
        UsageLogEntry("porch", "Porch Light", datetime(2026, 1, 5, 19, 0) + timedelta(days=d), ActionKind.TURNED_ON)
        for d in (3, 0, 2, 1)
    ]
    clock.set(datetime(2026, 1, 10, 12, 0))

    assert engine.backfill(entries) == 4
    assert [e.timestamp.day for e in engine.log] == [5, 6, 7, 8]
    assert [s.title for s in engine.suggestions] == ["Regular Porch Light Usage"]


def test_backfill_prunes_against_clock(engine, clock):
    from habits.models import UsageLogEntry

    old = UsageLogEntry("lamp", "Lamp", MONDAY_7AM - timedelta(days=45), ActionKind.TURNED_ON)

    assert engine.backfill([old]) == 1
    assert len(engine.log) == 0
    assert len(engine.patterns) == 1


def test_decay_policy_is_opt_in(store, clock):
    engine = SuggestionEngine(store=store, clock=clock, config=EngineConfig(decay_idle_days=7))
    for _ in range(4):
        engine.ingest("lamp", "Lamp", ActionKind.TURNED_ON)
    engine.ingest("fan", "Fan", ActionKind.TURNED_ON)

    log_at(engine, clock, MONDAY_7AM + timedelta(days=10), "heater", "Heater")

    assert engine.patterns.get(PatternKey("lamp", 2, 7, ActionKind.TURNED_ON)).frequency == 2
    assert engine.patterns.get(PatternKey("fan", 2, 7, ActionKind.TURNED_ON)) is None

    # Not halved again until another idle period passes
    log_at(engine, clock, MONDAY_7AM + timedelta(days=11), "heater", "Heater")
    assert engine.patterns.get(PatternKey("lamp", 2, 7, ActionKind.TURNED_ON)).frequency == 2


def test_no_decay_by_default(engine, clock):
    for _ in range(4):
        engine.ingest("lamp", "Lamp", ActionKind.TURNED_ON)
    log_at(engine, clock, MONDAY_7AM + timedelta(days=60), "heater", "Heater")

    assert engine.patterns.get(PatternKey("lamp", 2, 7, ActionKind.TURNED_ON)).frequency == 4


def test_reset_keeps_settings(engine, clock):
    kitchen_routine(engine, clock)
    engine.set_minimum_confidence(0.9)
    engine.dismiss(engine.suggestions[0].id)

    engine.reset()

    assert len(engine.log) == 0
    assert len(engine.patterns) == 0
    assert engine.dismissed == set()
    assert engine.suggestions == []
    assert engine.minimum_confidence == 0.9


def test_concurrent_ingest_is_serialized(engine):
    def worker():
        for _ in range(50):
            engine.ingest("lamp", "Lamp", ActionKind.TURNED_ON)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(engine.log) == 200
    assert engine.patterns.get(PatternKey("lamp", 2, 7, ActionKind.TURNED_ON)).frequency == 200


def test_persist_failure_does_not_raise(clock, caplog):
    class BrokenStore(MemoryBlobStore):
        def save(self, key, data):
            raise OSError("disk full")

    engine = SuggestionEngine(store=BrokenStore(), clock=clock)

    assert engine.ingest("lamp", "Lamp", ActionKind.TURNED_ON) is not None
    assert "Failed to persist" in caplog.text
