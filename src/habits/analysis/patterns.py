"""Aggregation of usage logs into weekday/hour patterns."""

from datetime import datetime, timedelta
from typing import Iterable, Iterator

from ..clock import weekday_number
from ..models import PatternKey, UsageLogEntry, UsagePattern

MIN_PATTERN_FREQUENCY = 3


class PatternTable:
    """Deduplicated (device, weekday, hour, action) -> frequency table.

    Patterns keep their first-seen order, which is also the order strategies
    scan them in.
    """

    def __init__(self, patterns: Iterable[UsagePattern] = ()):
        self._patterns: dict[PatternKey, UsagePattern] = {}
        self.replace(patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def __iter__(self) -> Iterator[UsagePattern]:
        return iter(self._patterns.values())

    def get(self, key: PatternKey) -> UsagePattern | None:
        return self._patterns.get(key)

    @property
    def patterns(self) -> list[UsagePattern]:
        return list(self._patterns.values())

    def replace(self, patterns: Iterable[UsagePattern]) -> None:
        self._patterns = {}
        for pattern in patterns:
            existing = self._patterns.get(pattern.key)
            if existing:
                # Merge duplicate keys from older persisted tables
                existing.frequency += pattern.frequency
            else:
                self._patterns[pattern.key] = pattern

    def clear(self) -> None:
        self._patterns = {}

    def apply(self, entry: UsageLogEntry) -> UsagePattern:
        """Count one log entry into its bucket, creating the bucket if needed."""
        key = PatternKey(
            device_id=entry.device_id,
            weekday=weekday_number(entry.timestamp),
            hour=entry.timestamp.hour,
            action=entry.action,
        )
        pattern = self._patterns.get(key)
        if pattern:
            pattern.frequency += 1
            pattern.last_seen = entry.timestamp
            return pattern

        pattern = UsagePattern(
            device_id=key.device_id,
            device_name=entry.device_name,
            weekday=key.weekday,
            hour=key.hour,
            action=key.action,
            frequency=1,
            last_seen=entry.timestamp,
        )
        self._patterns[key] = pattern
        return pattern

    def strong(self, min_frequency: int = MIN_PATTERN_FREQUENCY) -> list[UsagePattern]:
        return [p for p in self._patterns.values() if p.frequency >= min_frequency]

    def decay(self, now: datetime, idle_days: int) -> int:
        """Halve the frequency of patterns idle for more than `idle_days`.

        A halved pattern counts as freshly seen, so it is halved again only
        after another idle period. Patterns that reach zero are removed.
        Returns the number of patterns touched.
        """
        cutoff = now - timedelta(days=idle_days)
        touched = 0
        for key, pattern in list(self._patterns.items()):
            if pattern.last_seen is None or pattern.last_seen >= cutoff:
                continue
            touched += 1
            pattern.frequency //= 2
            pattern.last_seen = now
            if pattern.frequency < 1:
                del self._patterns[key]
        return touched
