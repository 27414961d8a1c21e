"""Time-windowed buffer of raw device actions."""

from datetime import datetime, timedelta
from typing import Iterable, Iterator

from .models import UsageLogEntry

RETENTION_DAYS = 30
PERSISTED_LOG_LIMIT = 1000


class UsageLog:
    """Append-only log that forgets entries older than the retention window."""

    def __init__(self, retention_days: int = RETENTION_DAYS):
        self.retention = timedelta(days=retention_days)
        self._entries: list[UsageLogEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[UsageLogEntry]:
        return iter(self._entries)

    @property
    def entries(self) -> list[UsageLogEntry]:
        return list(self._entries)

    def append(self, entry: UsageLogEntry) -> None:
        self._entries.append(entry)

    def replace(self, entries: Iterable[UsageLogEntry]) -> None:
        self._entries = list(entries)

    def clear(self) -> None:
        self._entries = []

    def prune(self, now: datetime) -> int:
        """Drop entries older than the retention window. Returns how many were removed."""
        cutoff = now - self.retention
        kept = [e for e in self._entries if e.timestamp >= cutoff]
        removed = len(self._entries) - len(kept)
        self._entries = kept
        return removed

    def tail(self, limit: int = PERSISTED_LOG_LIMIT) -> list[UsageLogEntry]:
        """The newest `limit` entries in insertion order."""
        if limit <= 0:
            return []
        return self._entries[-limit:]

    def by_device(self) -> dict[str, list[UsageLogEntry]]:
        grouped: dict[str, list[UsageLogEntry]] = {}
        for entry in self._entries:
            grouped.setdefault(entry.device_id, []).append(entry)
        return grouped
