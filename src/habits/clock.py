"""Time sources for the suggestion engine."""

from datetime import datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock local time (naive), matching how usage is bucketed."""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock:
    """A manually driven clock for tests and replays."""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def set(self, moment: datetime) -> None:
        self.current = moment

    def advance(self, delta: timedelta | None = None, **kwargs) -> datetime:
        self.current += delta if delta is not None else timedelta(**kwargs)
        return self.current


def weekday_number(moment: datetime) -> int:
    """Day of week with Sunday = 1 through Saturday = 7."""
    return moment.isoweekday() % 7 + 1
