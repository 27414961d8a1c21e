"""Suggestion detection strategies.

Three independent passes over the pattern table and usage log:

1. Co-occurrence: two or more strong patterns share a weekday/hour slot.
2. Regular interval: a device is used at a steady cadence.
3. Routine window: strong patterns cluster in the morning or evening.

Suggestion ids are derived from the strategy and the pattern keys that
produced them, so the same habit keeps the same id across regenerations.
"""

import hashlib
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable

from ..models import (
    PatternKey,
    SceneSuggestion,
    SuggestedAction,
    SuggestionKind,
    SuggestionTrigger,
    TriggerCondition,
    UsagePattern,
)
from ..usage_log import UsageLog
from .confidence import (
    co_occurrence_confidence,
    interval_confidence,
    interval_statistics,
    routine_confidence,
)
from .patterns import MIN_PATTERN_FREQUENCY, PatternTable

MIN_INTERVAL = timedelta(hours=1).total_seconds()
MAX_INTERVAL = timedelta(days=7).total_seconds()
MIN_INTERVALS = 3

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


@dataclass(frozen=True)
class RoutineWindow:
    """An hour range [start_hour, end_hour) scanned for habitual actions."""

    name: str
    start_hour: int
    end_hour: int
    description: str

    def contains(self, hour: int) -> bool:
        return self.start_hour <= hour < self.end_hour


ROUTINE_WINDOWS = (
    RoutineWindow("Morning Routine", 6, 9, "Create a scene for your typical morning activities"),
    RoutineWindow("Evening Routine", 20, 23, "Create a scene for your typical evening activities"),
)


def suggestion_id(kind: SuggestionKind, parts: Iterable[str]) -> str:
    """Stable id from the strategy kind and its sorted contributing keys."""
    digest = hashlib.sha1()
    digest.update(kind.value.encode("utf-8"))
    for part in sorted(parts):
        digest.update(b"\x00")
        digest.update(part.encode("utf-8"))
    return digest.hexdigest()[:16]


def pattern_key_token(key: PatternKey) -> str:
    return f"{key.device_id}|{key.weekday}|{key.hour}|{key.action.value}"


def day_name(weekday: int) -> str:
    """Name for a Sunday = 1 weekday number, clamped into range."""
    return DAY_NAMES[min(max(weekday, 1), 7) - 1]


def format_hour(hour: int) -> str:
    """12-hour clock label, e.g. 7 -> "7:00 AM", 0 -> "12:00 AM"."""
    suffix = "PM" if hour >= 12 else "AM"
    display = hour % 12 or 12
    return f"{display}:00 {suffix}"


def format_interval(seconds: float) -> str:
    hours = int(seconds // 3600)
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''}"
    days = hours // 24
    return f"{days} day{'s' if days != 1 else ''}"


def actions_for(patterns: list[UsagePattern]) -> list[SuggestedAction]:
    return [
        SuggestedAction(device_id=p.device_id, device_name=p.device_name, action=p.action)
        for p in patterns
    ]


def find_co_occurrences(
    table: PatternTable,
    log_count: int,
    min_frequency: int = MIN_PATTERN_FREQUENCY,
    minimum_confidence: float = 0.6,
    dismissed: set[str] | frozenset[str] = frozenset(),
) -> list[SceneSuggestion]:
    """Suggest a scene for every weekday/hour slot shared by two or more strong patterns."""
    slots: dict[tuple[int, int], list[UsagePattern]] = {}
    for pattern in table.strong(min_frequency):
        slots.setdefault((pattern.weekday, pattern.hour), []).append(pattern)

    suggestions = []
    for (weekday, hour), slot_patterns in slots.items():
        if len(slot_patterns) < 2:
            continue

        confidence = co_occurrence_confidence(slot_patterns, log_count)
        if confidence < minimum_confidence:
            continue

        sid = suggestion_id(
            SuggestionKind.CO_OCCURRENCE, (pattern_key_token(p.key) for p in slot_patterns)
        )
        if sid in dismissed:
            continue

        suggestions.append(
            SceneSuggestion(
                id=sid,
                kind=SuggestionKind.CO_OCCURRENCE,
                title=f"{day_name(weekday)} {format_hour(hour)} Routine",
                description=f"You often use these {len(slot_patterns)} devices together at this time",
                confidence=confidence,
                based_on=list(slot_patterns),
                actions=actions_for(slot_patterns),
                trigger=SuggestionTrigger(TriggerCondition.TIME_OF_DAY, weekday=weekday, hour=hour),
            )
        )

    return suggestions


def usage_intervals(timestamps: list) -> list[float]:
    """Gaps in seconds between consecutive uses, keeping only those between 1 hour and 7 days."""
    ordered = sorted(timestamps)
    intervals = []
    for previous, current in zip(ordered, ordered[1:]):
        gap = (current - previous).total_seconds()
        if MIN_INTERVAL < gap < MAX_INTERVAL:
            intervals.append(gap)
    return intervals


def find_regular_intervals(
    log: UsageLog,
    dismissed: set[str] | frozenset[str] = frozenset(),
) -> list[SceneSuggestion]:
    """Suggest an automation for each device used at a steady cadence."""
    suggestions = []
    for device_id, entries in log.by_device().items():
        intervals = usage_intervals([e.timestamp for e in entries])
        if len(intervals) < MIN_INTERVALS:
            continue

        confidence = interval_confidence(intervals)
        if confidence <= 0:
            continue

        sid = suggestion_id(SuggestionKind.REGULAR_INTERVAL, [device_id])
        if sid in dismissed:
            continue

        mean, _ = interval_statistics(intervals)
        device_name = entries[0].device_name or "Device"
        suggestions.append(
            SceneSuggestion(
                id=sid,
                kind=SuggestionKind.REGULAR_INTERVAL,
                title=f"Regular {device_name} Usage",
                description=f"You use this device regularly every {format_interval(mean)}",
                confidence=confidence,
            )
        )

    return suggestions


def find_routines(
    table: PatternTable,
    min_frequency: int = MIN_PATTERN_FREQUENCY,
    dismissed: set[str] | frozenset[str] = frozenset(),
    windows: tuple[RoutineWindow, ...] = ROUTINE_WINDOWS,
) -> list[SceneSuggestion]:
    """Suggest a routine scene for each window holding two or more strong patterns."""
    strong = table.strong(min_frequency)
    suggestions = []
    for window in windows:
        matching = [p for p in strong if window.contains(p.hour)]
        if len(matching) < 2:
            continue

        sid = suggestion_id(
            SuggestionKind.ROUTINE,
            [window.name] + [pattern_key_token(p.key) for p in matching],
        )
        if sid in dismissed:
            continue

        suggestions.append(
            SceneSuggestion(
                id=sid,
                kind=SuggestionKind.ROUTINE,
                title=window.name,
                description=window.description,
                confidence=routine_confidence(),
                based_on=matching,
                actions=actions_for(matching),
                trigger=SuggestionTrigger(TriggerCondition.TIME_OF_DAY, hour=window.start_hour),
            )
        )

    return suggestions


def generate_suggestions(
    table: PatternTable,
    log: UsageLog,
    min_frequency: int = MIN_PATTERN_FREQUENCY,
    minimum_confidence: float = 0.6,
    dismissed: set[str] | frozenset[str] = frozenset(),
) -> list[SceneSuggestion]:
    """Run all strategies and concatenate their results in strategy order (unsorted)."""
    suggestions = find_co_occurrences(
        table, len(log), min_frequency, minimum_confidence, dismissed
    )
    suggestions.extend(find_regular_intervals(log, dismissed))
    suggestions.extend(find_routines(table, min_frequency, dismissed))
    return suggestions
