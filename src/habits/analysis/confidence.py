"""Confidence heuristics for each suggestion strategy.

These are descriptive scores in [0, 1], not calibrated probabilities.
"""

import math

from ..models import UsagePattern

# Regular-interval detection
MAX_COEFFICIENT_OF_VARIATION = 0.3
INTERVAL_CONFIDENCE = 0.7

# Morning/evening routine windows
ROUTINE_CONFIDENCE = 0.8

DAYS_PER_WEEK = 7


def co_occurrence_confidence(patterns: list[UsagePattern], log_count: int) -> float:
    """Average slot frequency relative to an approximate weekly ceiling.

    The ceiling is the log count spread over a week (integer division),
    floored at 1.
    """
    if not patterns:
        return 0.0
    avg_frequency = sum(p.frequency for p in patterns) / len(patterns)
    weekly_ceiling = max(log_count // DAYS_PER_WEEK, 1)
    return min(avg_frequency / weekly_ceiling, 1.0)


def interval_statistics(intervals: list[float]) -> tuple[float, float]:
    """Mean and population standard deviation."""
    mean = sum(intervals) / len(intervals)
    variance = sum((i - mean) ** 2 for i in intervals) / len(intervals)
    return mean, math.sqrt(variance)


def is_regular(intervals: list[float]) -> bool:
    """True when the spread of intervals is below 30% of their mean."""
    if not intervals:
        return False
    mean, std_dev = interval_statistics(intervals)
    return std_dev < mean * MAX_COEFFICIENT_OF_VARIATION


def interval_confidence(intervals: list[float]) -> float:
    return INTERVAL_CONFIDENCE if is_regular(intervals) else 0.0


def routine_confidence() -> float:
    return ROUTINE_CONFIDENCE
